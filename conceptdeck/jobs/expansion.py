"""Stage B: expand one concept into phrasings and join back into the job."""

from __future__ import annotations

import asyncio
import logging
from datetime import timedelta

from pydantic import BaseModel

from conceptdeck.ai.providers.base import AIModel
from conceptdeck.jobs.errors import Err
from conceptdeck.jobs.events import log_concept_event
from conceptdeck.jobs.models import JobRecord, PhrasingDraft
from conceptdeck.jobs.normalizers import compute_conflict_score, prepare_generated_phrasings
from conceptdeck.jobs.prompts import PHRASING_EXPANSION_SCHEMA, build_phrasing_expansion_prompt
from conceptdeck.jobs.worker import StageWorker
from conceptdeck.utils.ids import generate_correlation_id

EMBEDDING_BATCH_SIZE = 5
RECENT_PHRASING_LIMIT = 20
CONCEPT_CLAIM_LEASE = timedelta(minutes=15)

_NO_PHRASINGS_MESSAGE = "The AI did not produce usable questions for this concept. Please try again."
_NOTHING_SAVED_MESSAGE = "Generated questions duplicated existing ones and were not saved. Please try again."


class PhrasingExpansionArgs(BaseModel):
  job_id: str
  concept_id: str


class PhrasingExpansionWorker(StageWorker):
  """Runs once per (job, concept); safe under at-least-once delivery."""

  phase = "stage_b"
  args_model = PhrasingExpansionArgs

  async def process(self, args: PhrasingExpansionArgs) -> JobRecord | None:
    return await self.run(args.job_id, args.concept_id)

  async def run(self, job_id: str, concept_id: str) -> JobRecord | None:
    correlation_id = generate_correlation_id()
    job = await self._jobs_repo.get_job(job_id)
    if job is None:
      log_concept_event(logging.WARNING, "job not found", phase=self.phase, event="missing_job", correlation_id=correlation_id, job_id=job_id, concept_id=concept_id)
      return None
    if job.status == "cancelled":
      log_concept_event(logging.INFO, "job cancelled", phase=self.phase, event="cancelled", correlation_id=correlation_id, job_id=job_id, concept_id=concept_id)
      return job

    concept = await self._concepts_repo.get_concept(concept_id)
    if concept is None or concept.owner_id != job.owner_id:
      # An unusable concept still has to leave the pending set so the job can finish.
      if concept_id in job.pending_concept_ids:
        outcome = await self._jobs_repo.record_concept_completion(job_id, concept_id, questions_generated=0, questions_saved=0)
        log_concept_event(logging.WARNING, "concept missing or not owned", phase=self.phase, event="invalid_concept", correlation_id=correlation_id, job_id=job_id, concept_id=concept_id, finalized=outcome.finalized)
        return outcome.record
      return job

    if concept_id not in job.pending_concept_ids:
      log_concept_event(logging.INFO, "concept already joined", phase=self.phase, event="duplicate_delivery", correlation_id=correlation_id, job_id=job_id, concept_id=concept_id)
      return job

    resolved = self._resolve_model()
    if isinstance(resolved, Err):
      await self._fail(job_id, resolved, correlation_id=correlation_id, concept_id=concept_id)
      return await self._jobs_repo.get_job(job_id)
    model = resolved.value
    target = self._settings.target_phrasings_per_concept

    try:
      # Manual phrasing jobs enter processing here; generation jobs already did in Stage A.
      claimed = await self._jobs_repo.claim_concept(job_id, concept_id, lease=CONCEPT_CLAIM_LEASE)
      if claimed is None:
        log_concept_event(logging.INFO, "concept claimed by another delivery or job not processing", phase=self.phase, event="skipped", correlation_id=correlation_id, job_id=job_id, concept_id=concept_id)
        return await self._jobs_repo.get_job(job_id)

      log_concept_event(logging.INFO, "expansion started", phase=self.phase, event="started", correlation_id=correlation_id, job_id=job_id, concept_id=concept_id, provider=model.name)
      existing = await self._concepts_repo.list_recent_phrasings(job.owner_id, concept_id, limit=RECENT_PHRASING_LIMIT)
      existing_questions = [phrasing.question for phrasing in existing]

      prompt = build_phrasing_expansion_prompt(concept.title, concept.description, existing_questions, target)
      response = await model.generate_structured(prompt, PHRASING_EXPANSION_SCHEMA)
      raw_phrasings = response.content.get("phrasings")
      drafts = prepare_generated_phrasings(raw_phrasings if isinstance(raw_phrasings, list) else [], existing_questions, target)
      if not drafts:
        await self._fail(job_id, Err.domain("SCHEMA_VALIDATION", retryable=True, message=_NO_PHRASINGS_MESSAGE), correlation_id=correlation_id, concept_id=concept_id)
        return await self._jobs_repo.get_job(job_id)

      embedded = await self._attach_embeddings(model, drafts, correlation_id=correlation_id, job_id=job_id, concept_id=concept_id)

      stored_questions = await self._concepts_repo.list_question_texts(job.owner_id, concept_id)
      conflict_score = compute_conflict_score([*stored_questions, *(draft.question for draft in drafts)])

      inserted_ids = await self._concepts_repo.insert_phrasings(job.owner_id, concept_id, drafts)
      if not inserted_ids:
        await self._fail(job_id, Err.domain("SCHEMA_VALIDATION", retryable=True, message=_NOTHING_SAVED_MESSAGE), correlation_id=correlation_id, concept_id=concept_id)
        return await self._jobs_repo.get_job(job_id)

      await self._concepts_repo.apply_phrasing_metrics(concept_id, inserted=len(inserted_ids), target=target, conflict_score=conflict_score)

      outcome = await self._jobs_repo.record_concept_completion(job_id, concept_id, questions_generated=len(drafts), questions_saved=len(inserted_ids))
      log_concept_event(
        logging.INFO,
        "concept expanded",
        phase=self.phase,
        event="completed",
        correlation_id=correlation_id,
        job_id=job_id,
        concept_id=concept_id,
        generated=len(drafts),
        saved=len(inserted_ids),
        embedded=embedded,
        remaining=outcome.remaining,
        finalized=outcome.finalized,
      )
      return outcome.record

    except Exception as exc:
      log_concept_event(logging.ERROR, "expansion raised", phase=self.phase, event="error", correlation_id=correlation_id, exc_info=True, job_id=job_id, concept_id=concept_id)
      await self._fail(job_id, Err.from_exception(exc), correlation_id=correlation_id, concept_id=concept_id)
      raise

  async def _attach_embeddings(self, model: AIModel, drafts: list[PhrasingDraft], *, correlation_id: str, job_id: str, concept_id: str) -> int:
    """Embed drafts in batches; a failed item keeps no embedding. Returns how many succeeded."""
    embedded = 0
    for start in range(0, len(drafts), EMBEDDING_BATCH_SIZE):
      batch = drafts[start : start + EMBEDDING_BATCH_SIZE]
      results = await asyncio.gather(*(self._embed_one(model, draft, correlation_id=correlation_id, job_id=job_id, concept_id=concept_id) for draft in batch))
      embedded += sum(results)
    return embedded

  async def _embed_one(self, model: AIModel, draft: PhrasingDraft, *, correlation_id: str, job_id: str, concept_id: str) -> bool:
    try:
      draft.embedding = await model.embed(draft.question)
    except Exception as exc:  # noqa: BLE001
      log_concept_event(logging.WARNING, "embedding failed; saving without vector", phase=self.phase, event="embedding_failed", correlation_id=correlation_id, job_id=job_id, concept_id=concept_id, error=f"{type(exc).__name__}: {exc}")
      return False
    return True
