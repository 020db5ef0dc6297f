from __future__ import annotations

from typing import Any, Protocol

CONCEPT_SYNTHESIS_TASK = "concept_synthesis"
PHRASING_EXPANSION_TASK = "phrasing_expansion"
CLEANUP_JOBS_TASK = "cleanup_jobs"


class TaskEnqueuer(Protocol):
  """Interface for enqueuing durable background tasks (at-least-once delivery)."""

  async def enqueue(self, task_name: str, args: dict[str, Any], delay_seconds: int = 0) -> None:
    """Schedule `task_name` with JSON-serializable args after an optional delay."""
    ...
