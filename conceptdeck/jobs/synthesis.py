"""Stage A: turn a learner prompt into concepts and fan out phrasing expansion."""

from __future__ import annotations

import asyncio
import logging

from pydantic import BaseModel

from conceptdeck.jobs.errors import Err
from conceptdeck.jobs.events import log_concept_event
from conceptdeck.jobs.models import JobRecord
from conceptdeck.jobs.normalizers import prepare_concept_ideas
from conceptdeck.jobs.prompts import CONCEPT_SYNTHESIS_SCHEMA, build_concept_synthesis_prompt
from conceptdeck.jobs.worker import StageWorker
from conceptdeck.services.tasks.interface import PHRASING_EXPANSION_TASK
from conceptdeck.utils.ids import generate_correlation_id

_NO_IDEAS_MESSAGE = "We couldn't find distinct concepts in that prompt. Try a narrower topic or a single idea."
_NO_NEW_CONCEPTS_MESSAGE = "Every concept from that prompt is already in your library. Try a different topic."


class ConceptSynthesisArgs(BaseModel):
  job_id: str


class ConceptSynthesisWorker(StageWorker):
  """Runs once per job; never re-enters a job that already has concepts."""

  phase = "stage_a"
  args_model = ConceptSynthesisArgs

  async def process(self, args: ConceptSynthesisArgs) -> JobRecord | None:
    return await self.run(args.job_id)

  async def run(self, job_id: str) -> JobRecord | None:
    correlation_id = generate_correlation_id()
    job = await self._jobs_repo.get_job(job_id)
    if job is None:
      log_concept_event(logging.WARNING, "job not found", phase=self.phase, event="missing_job", correlation_id=correlation_id, job_id=job_id)
      return None
    if job.status == "cancelled":
      log_concept_event(logging.INFO, "job cancelled before synthesis", phase=self.phase, event="cancelled", correlation_id=correlation_id, job_id=job_id)
      return job
    if job.status != "pending" or job.concept_ids:
      log_concept_event(logging.INFO, "job already synthesized", phase=self.phase, event="skipped", correlation_id=correlation_id, job_id=job_id, status=job.status)
      return job

    resolved = self._resolve_model()
    if isinstance(resolved, Err):
      await self._fail(job_id, resolved, correlation_id=correlation_id)
      return await self._jobs_repo.get_job(job_id)
    model = resolved.value

    try:
      claimed = await self._jobs_repo.claim_for_synthesis(job_id)
      if claimed is None:
        log_concept_event(logging.INFO, "job claimed elsewhere or no longer pending", phase=self.phase, event="skipped", correlation_id=correlation_id, job_id=job_id)
        return await self._jobs_repo.get_job(job_id)

      log_concept_event(logging.INFO, "synthesis started", phase=self.phase, event="started", correlation_id=correlation_id, job_id=job_id, provider=model.name)
      response = await model.generate_structured(build_concept_synthesis_prompt(claimed.prompt), CONCEPT_SYNTHESIS_SCHEMA)
      raw_ideas = response.content.get("concepts")
      ideas = prepare_concept_ideas(raw_ideas if isinstance(raw_ideas, list) else [])
      if not ideas:
        await self._fail(job_id, Err.domain("SCHEMA_VALIDATION", retryable=False, message=_NO_IDEAS_MESSAGE), correlation_id=correlation_id)
        return await self._jobs_repo.get_job(job_id)

      current = await self._jobs_repo.get_job(job_id)
      if current is None or current.status == "cancelled":
        log_concept_event(logging.INFO, "job cancelled during synthesis", phase=self.phase, event="cancelled", correlation_id=correlation_id, job_id=job_id)
        return current

      concept_ids = await self._concepts_repo.create_many(claimed.owner_id, job_id, ideas)
      if not concept_ids:
        await self._fail(job_id, Err.domain("SCHEMA_VALIDATION", retryable=False, message=_NO_NEW_CONCEPTS_MESSAGE), correlation_id=correlation_id, ideas=len(ideas))
        return await self._jobs_repo.get_job(job_id)

      estimated_total = len(concept_ids) * self._settings.target_phrasings_per_concept
      updated = await self._jobs_repo.set_concept_work(job_id, concept_ids, estimated_total)
      if updated is None:
        log_concept_event(logging.INFO, "job left processing before fan-out", phase=self.phase, event="cancelled", correlation_id=correlation_id, job_id=job_id, concepts=len(concept_ids))
        return await self._jobs_repo.get_job(job_id)

      await asyncio.gather(*(self._enqueuer.enqueue(PHRASING_EXPANSION_TASK, {"job_id": job_id, "concept_id": concept_id}) for concept_id in concept_ids))
      log_concept_event(logging.INFO, "fan-out scheduled", phase=self.phase, event="completed", correlation_id=correlation_id, job_id=job_id, concepts=len(concept_ids), ideas=len(ideas))
      return updated

    except Exception as exc:
      log_concept_event(logging.ERROR, "synthesis raised", phase=self.phase, event="error", correlation_id=correlation_id, exc_info=True, job_id=job_id)
      await self._fail(job_id, Err.from_exception(exc), correlation_id=correlation_id)
      raise
