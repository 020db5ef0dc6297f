"""Structured logging for concept pipeline events."""

from __future__ import annotations

import logging
from typing import Any, Literal

ConceptPhase = Literal["submit", "stage_a", "stage_b", "manual", "cleanup"]

logger = logging.getLogger("conceptdeck.jobs.events")


def log_concept_event(level: int, message: str, *, phase: ConceptPhase, event: str, correlation_id: str, exc_info: bool = False, **metadata: Any) -> None:
  """Log one pipeline event named `concepts.<phase>.<event>` with its correlation id.

  Metadata is attached both to the record (as `concept_event`) and to the rendered
  message so plain-text handlers keep the identifiers.
  """
  name = f"concepts.{phase}.{event}"
  fields = {key: value for key, value in metadata.items() if value is not None}
  rendered = " ".join(f"{key}={value}" for key, value in sorted(fields.items()))
  logger.log(level, "%s %s correlation_id=%s %s", name, message, correlation_id, rendered, exc_info=exc_info, extra={"concept_event": {"event": name, "correlation_id": correlation_id, **fields}})
