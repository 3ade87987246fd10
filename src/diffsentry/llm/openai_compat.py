"""
OpenAI-compatible chat completion provider.

One implementation covers every endpoint that speaks the OpenAI chat API:
OpenAI itself, Groq and a local Ollama server.
"""

import httpx
import structlog
from openai import AsyncOpenAI, OpenAIError

from ..config import ProviderSettings
from .base import ModelResponse
from .pricing import estimate_cost_usd

logger = structlog.get_logger(__name__)

SYSTEM_PROMPT = (
    "You are a meticulous senior code reviewer. Follow the requested output "
    "format exactly."
)


def _normalize_base_url(base_url: str) -> str:
    normalized = base_url.rstrip("/")
    if normalized.endswith("/v1"):
        return normalized
    return f"{normalized}/v1"


class OpenAICompatibleProvider:
    """Chat completions over the openai SDK with a shared httpx client."""

    def __init__(self, settings: ProviderSettings, http_client: httpx.AsyncClient):
        """
        Args:
            settings: Endpoint, key and model for this provider
            http_client: Connection pool shared by all providers
        """
        self.name = settings.name
        self.settings = settings
        self._client = AsyncOpenAI(
            api_key=settings.api_key or "unused",
            base_url=_normalize_base_url(settings.base_url),
            http_client=http_client,
        )

    def is_enabled(self) -> bool:
        return self.settings.is_configured

    async def generate(self, prompt: str) -> ModelResponse:
        try:
            logger.debug(
                "Model request", provider=self.name, model=self.settings.model, chars=len(prompt)
            )
            response = await self._client.chat.completions.create(
                model=self.settings.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                max_tokens=self.settings.max_output_tokens,
                temperature=self.settings.temperature,
            )
        except OpenAIError as e:
            logger.warning("Model API error", provider=self.name, error=str(e))
            raise
        except httpx.HTTPError as e:
            logger.warning("Model HTTP error", provider=self.name, error=str(e))
            raise

        if not response.choices or response.choices[0].message.content is None:
            raise RuntimeError(f"{self.name} returned no content")

        content = response.choices[0].message.content
        usage = response.usage
        input_tokens = usage.prompt_tokens if usage else 0
        output_tokens = usage.completion_tokens if usage else 0

        logger.debug(
            "Model response",
            provider=self.name,
            chars=len(content),
            input_tokens=input_tokens,
            output_tokens=output_tokens,
        )
        return ModelResponse(
            content=content,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            provider=self.name,
            model=self.settings.model,
        )

    def estimate_cost(self, input_tokens: int, output_tokens: int) -> float:
        return estimate_cost_usd(self.settings.model, input_tokens, output_tokens)
