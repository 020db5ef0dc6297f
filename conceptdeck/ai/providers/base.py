"""Base interfaces for AI models."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any


@dataclass
class StructuredModelResponse:
  """Parsed structured output and optional token usage."""

  content: dict[str, Any]
  usage: dict[str, int] | None = None


class AIModel(ABC):
  """Abstract base class for the structured-generation and embedding calls."""

  name: str
  embedding_model: str

  @abstractmethod
  async def generate_structured(self, prompt: str, schema: dict[str, Any]) -> StructuredModelResponse:
    """Generate output that conforms to the provided JSON schema."""

  @abstractmethod
  async def embed(self, text: str) -> list[float]:
    """Return the embedding vector for a piece of text."""
