"""Shared plumbing for the concept synthesis and phrasing expansion workers."""

from __future__ import annotations

import logging
from typing import Any

from conceptdeck.ai.config import ModelFactory, build_model, resolve_provider_config
from conceptdeck.ai.providers.base import AIModel
from conceptdeck.config import Settings
from conceptdeck.jobs.errors import Err, Ok
from conceptdeck.jobs.events import ConceptPhase, log_concept_event
from conceptdeck.services.tasks.interface import TaskEnqueuer
from conceptdeck.storage.concepts_repo import ConceptsRepository
from conceptdeck.storage.jobs_repo import JobsRepository


class StageWorker:
  """Holds the collaborators every stage needs and writes job failures."""

  phase: ConceptPhase

  def __init__(self, *, jobs_repo: JobsRepository, concepts_repo: ConceptsRepository, enqueuer: TaskEnqueuer, settings: Settings, model_factory: ModelFactory = build_model) -> None:
    self._jobs_repo = jobs_repo
    self._concepts_repo = concepts_repo
    self._enqueuer = enqueuer
    self._settings = settings
    self._model_factory = model_factory

  def _resolve_model(self) -> Ok[AIModel] | Err:
    """Resolve the provider for this invocation and build its client."""
    resolved = resolve_provider_config(self._settings)
    if isinstance(resolved, Err):
      return resolved
    return Ok(self._model_factory(resolved.value))

  async def _fail(self, job_id: str, err: Err, *, correlation_id: str, **metadata: Any) -> None:
    """Write the sanitized failure triple onto the job; the first failure wins."""
    applied = await self._jobs_repo.fail_job(job_id, code=err.code, message=err.message, retryable=err.retryable)
    log_concept_event(
      logging.ERROR, "job failed", phase=self.phase, event="failed", correlation_id=correlation_id, job_id=job_id, error_code=err.code, retryable=err.retryable, detail=err.detail, applied=applied, **metadata
    )
