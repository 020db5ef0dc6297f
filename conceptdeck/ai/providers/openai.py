"""OpenAI provider implementation using the openai SDK."""

from __future__ import annotations

import json
import logging
from typing import Any, cast

from openai import AsyncOpenAI

from conceptdeck.ai.backoff import with_backoff
from conceptdeck.ai.json_parser import parse_json_with_fallback, strip_json_fences
from conceptdeck.ai.providers.base import AIModel, StructuredModelResponse

logger = logging.getLogger(__name__)

DEFAULT_EMBEDDING_MODEL = "text-embedding-3-small"


class OpenAIModel(AIModel):
  """OpenAI model client using json_schema response formats."""

  def __init__(self, name: str, api_key: str, embedding_model: str | None = None) -> None:
    self.name = name
    self.embedding_model = embedding_model or DEFAULT_EMBEDDING_MODEL
    self._client = AsyncOpenAI(api_key=api_key)

  async def generate_structured(self, prompt: str, schema: dict[str, Any]) -> StructuredModelResponse:
    response = await with_backoff(
      self._client.chat.completions.create,
      model=self.name,
      messages=[{"role": "system", "content": "You output valid JSON only, no markdown formatting."}, {"role": "user", "content": prompt}],
      response_format={"type": "json_schema", "json_schema": {"name": schema.get("title", "structured_response"), "schema": schema, "strict": True}},
    )

    content = response.choices[0].message.content or ""
    logger.debug("OpenAI structured response (raw):\n%s", content)
    usage = None
    if response.usage:
      usage = {"prompt_tokens": response.usage.prompt_tokens, "completion_tokens": response.usage.completion_tokens, "total_tokens": response.usage.total_tokens}

    if not content.strip():
      raise RuntimeError("OpenAI returned no object generated for the structured request.")
    try:
      parsed = cast(dict[str, Any], parse_json_with_fallback(strip_json_fences(content)))
    except json.JSONDecodeError as e:
      raise RuntimeError(f"OpenAI returned invalid JSON: {e}") from e
    return StructuredModelResponse(content=parsed, usage=usage)

  async def embed(self, text: str) -> list[float]:
    response = await with_backoff(self._client.embeddings.create, model=self.embedding_model, input=text)
    return list(response.data[0].embedding)
