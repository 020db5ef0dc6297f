"""Provider implementations."""

from conceptdeck.ai.providers.base import AIModel, StructuredModelResponse
from conceptdeck.ai.providers.gemini import GeminiModel
from conceptdeck.ai.providers.openai import OpenAIModel

__all__ = ["AIModel", "StructuredModelResponse", "GeminiModel", "OpenAIModel"]
