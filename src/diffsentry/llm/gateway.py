"""
Model Gateway

Routes prompts to model providers by task category with ordered fallback.
Every prompt is redacted here, so no caller can send an unredacted prompt.
"""

from collections.abc import Iterable

import structlog

from ..config import RoutingConfig
from ..errors import ModelGenerationError, NoModelProviderError
from ..review.secret_redactor import SecretRedactor
from .base import ModelProvider, ModelResponse, TaskCategory

logger = structlog.get_logger(__name__)


class ModelGateway:
    """Provider-agnostic text generation with fallback."""

    def __init__(
        self,
        providers: Iterable[ModelProvider],
        routing: RoutingConfig | None = None,
        redactor: SecretRedactor | None = None,
    ):
        self.providers: dict[str, ModelProvider] = {p.name: p for p in providers}
        self.routing = routing or RoutingConfig()
        self._redactor = redactor or SecretRedactor()

    def fallback_chain(self, task: TaskCategory) -> list[str]:
        """Preferred, default, then fallback provider names, de-duplicated."""
        preferred = self.routing.task_providers.get(task.value, self.routing.default_provider)
        chain: list[str] = []
        for name in (preferred, self.routing.default_provider, self.routing.fallback_provider):
            if name and name not in chain:
                chain.append(name)
        return chain

    def _enabled(self, name: str) -> ModelProvider | None:
        provider = self.providers.get(name)
        if provider is None or not provider.is_enabled():
            return None
        return provider

    def provider_for(self, task: TaskCategory) -> ModelProvider:
        """First enabled provider of the task's chain."""
        for name in self.fallback_chain(task):
            provider = self._enabled(name)
            if provider is not None:
                return provider
        raise NoModelProviderError(
            f"No model provider available for task '{task.value}'. "
            f"Configure one of: {', '.join(self.fallback_chain(task))}"
        )

    async def generate(self, prompt: str, task: TaskCategory) -> ModelResponse:
        """
        Generate text for ``prompt`` using the task's fallback chain.

        Raises:
            ModelGenerationError: every attempted provider failed, or the
                first failed while fallback is disabled
            NoModelProviderError: no provider in the chain is enabled
        """
        safe_prompt = self._redactor.redact(prompt) or ""

        failed: list[str] = []
        attempts = 0
        for name in self.fallback_chain(task):
            if attempts >= self.routing.max_attempts:
                logger.warning("Max model attempts reached", max_attempts=self.routing.max_attempts)
                break

            provider = self._enabled(name)
            if provider is None:
                logger.debug("Provider not available, skipping", provider=name)
                continue

            attempts += 1
            try:
                response = await provider.generate(safe_prompt)
            except Exception as e:
                failed.append(name)
                logger.warning(
                    "Model provider failed", provider=name, task=task.value, error=str(e)
                )
                if not self.routing.fallback_enabled:
                    raise ModelGenerationError(
                        f"Model call failed and fallback is disabled: {e}", failed
                    ) from e
                continue

            if attempts > 1:
                logger.info(
                    "Model call succeeded with fallback provider",
                    provider=name,
                    attempts=attempts,
                    failed=failed,
                )
            return response

        if attempts == 0:
            raise NoModelProviderError(f"No model provider available for task '{task.value}'")
        raise ModelGenerationError(
            f"All model providers failed after {attempts} attempts. Tried: {failed}", failed
        )

    def estimate_cost(self, task: TaskCategory, input_tokens: int, output_tokens: int) -> float:
        """Cost in USD as priced by the provider routed for ``task``."""
        return self.provider_for(task).estimate_cost(input_tokens, output_tokens)
