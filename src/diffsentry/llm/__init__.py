"""Model providers and the routing gateway."""

from .base import ModelProvider, ModelResponse, TaskCategory
from .gateway import ModelGateway
from .openai_compat import OpenAICompatibleProvider

__all__ = [
    "ModelGateway",
    "ModelProvider",
    "ModelResponse",
    "OpenAICompatibleProvider",
    "TaskCategory",
]
