"""Gemini provider implementation using the google-genai SDK."""

from __future__ import annotations

import json
import logging
from typing import Any, cast

from google import genai

from conceptdeck.ai.backoff import with_backoff
from conceptdeck.ai.json_parser import parse_json_with_fallback, strip_json_fences
from conceptdeck.ai.providers.base import AIModel, StructuredModelResponse

logger = logging.getLogger(__name__)

DEFAULT_EMBEDDING_MODEL = "text-embedding-004"


class GeminiModel(AIModel):
  """Gemini model client with JSON-mode structured output."""

  def __init__(self, name: str, api_key: str, embedding_model: str | None = None) -> None:
    self.name = name
    self.embedding_model = embedding_model or DEFAULT_EMBEDDING_MODEL
    self._client = genai.Client(api_key=api_key)

  async def generate_structured(self, prompt: str, schema: dict[str, Any]) -> StructuredModelResponse:
    # Use the async client to avoid blocking the asyncio event loop.
    response = await with_backoff(self._client.aio.models.generate_content, model=self.name, contents=prompt, config={"response_mime_type": "application/json", "response_json_schema": schema})
    text = response.text or ""
    logger.debug("Gemini structured response (raw):\n%s", text)

    usage = None
    if response.usage_metadata:
      usage = {"prompt_tokens": response.usage_metadata.prompt_token_count, "completion_tokens": response.usage_metadata.candidates_token_count, "total_tokens": response.usage_metadata.total_token_count}

    if not text.strip():
      raise RuntimeError("Gemini returned no object generated for the structured request.")
    try:
      parsed = cast(dict[str, Any], parse_json_with_fallback(strip_json_fences(text)))
    except json.JSONDecodeError as e:
      raise RuntimeError(f"Gemini returned invalid JSON: {e}") from e
    return StructuredModelResponse(content=parsed, usage=usage)

  async def embed(self, text: str) -> list[float]:
    response = await with_backoff(self._client.aio.models.embed_content, model=self.embedding_model, contents=text)
    if not response.embeddings or not response.embeddings[0].values:
      raise RuntimeError("Gemini returned an empty embedding.")
    return list(response.embeddings[0].values)
