"""Per-invocation resolution of the generation provider."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Literal

from conceptdeck.ai.providers.base import AIModel
from conceptdeck.ai.providers.gemini import GeminiModel
from conceptdeck.ai.providers.openai import OpenAIModel
from conceptdeck.config import Settings
from conceptdeck.jobs.errors import USER_MESSAGES, Err, Ok

ProviderName = Literal["google", "openai"]
ModelFactory = Callable[["ProviderConfig"], AIModel]


@dataclass(frozen=True)
class ProviderConfig:
  """Provider, model names and credentials for one task invocation."""

  provider: ProviderName
  model: str
  embedding_model: str | None
  api_key: str = field(repr=False)


def resolve_provider_config(settings: Settings) -> Ok[ProviderConfig] | Err:
  """Resolve the configured provider, failing with API_KEY when its credential is missing."""
  provider = settings.ai_provider
  api_key = settings.google_ai_api_key if provider == "google" else settings.openai_api_key
  if not api_key:
    env_name = "GOOGLE_AI_API_KEY" if provider == "google" else "OPENAI_API_KEY"
    return Err(code="API_KEY", retryable=False, message=USER_MESSAGES["API_KEY"], detail=f"{env_name} is not configured for AI_PROVIDER={provider}.")
  return Ok(ProviderConfig(provider=provider, model=settings.ai_model, embedding_model=settings.embedding_model, api_key=api_key))  # type: ignore[arg-type]


def build_model(config: ProviderConfig) -> AIModel:
  """Instantiate the model client for a resolved provider config."""
  if config.provider == "google":
    return GeminiModel(config.model, api_key=config.api_key, embedding_model=config.embedding_model)
  return OpenAIModel(config.model, api_key=config.api_key, embedding_model=config.embedding_model)
