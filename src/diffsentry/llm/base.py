"""Model provider interface shared by the gateway and its providers."""

from dataclasses import dataclass
from enum import Enum
from typing import Protocol, runtime_checkable


class TaskCategory(str, Enum):
    """What a prompt is for; routing picks a provider per category."""

    REVIEW = "review"
    SECURITY = "security"
    SUMMARY = "summary"


@dataclass(frozen=True)
class ModelResponse:
    """Generated text plus token accounting."""

    content: str
    input_tokens: int = 0
    output_tokens: int = 0
    provider: str = ""
    model: str = ""


@runtime_checkable
class ModelProvider(Protocol):
    """A single text-generation backend."""

    name: str

    def is_enabled(self) -> bool:
        """Whether the provider is configured and may be called."""
        ...

    async def generate(self, prompt: str) -> ModelResponse:
        """Generate a completion for a single user prompt."""
        ...

    def estimate_cost(self, input_tokens: int, output_tokens: int) -> float:
        """Estimated cost in USD."""
        ...
