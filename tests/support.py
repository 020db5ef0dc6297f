"""In-memory collaborators honouring the repository, enqueuer and model contracts."""

from __future__ import annotations

import asyncio
import copy
import inspect
import os
from collections.abc import Awaitable, Callable, Sequence
from datetime import UTC, datetime, timedelta
from typing import Any

from conceptdeck.ai.config import ProviderConfig
from conceptdeck.ai.providers.base import AIModel, StructuredModelResponse
from conceptdeck.jobs.models import ACTIVE_JOB_STATUSES, ConceptIdea, ConceptRecord, JobRecord, JobStatus, JoinOutcome, PhrasingDraft, PhrasingRecord
from conceptdeck.jobs.normalizers import compute_thin_score
from conceptdeck.utils.ids import generate_concept_id, generate_phrasing_id


class InMemoryJobsRepository:
  """JobsRepository fake; the join runs under one asyncio.Lock like a row lock."""

  def __init__(self) -> None:
    self.jobs: dict[str, JobRecord] = {}
    self._lock = asyncio.Lock()
    self.finalize_count: dict[str, int] = {}

  def _snapshot(self, job_id: str) -> JobRecord | None:
    record = self.jobs.get(job_id)
    return copy.deepcopy(record) if record is not None else None

  async def create_job(self, record: JobRecord) -> None:
    self.jobs[record.job_id] = copy.deepcopy(record)

  async def get_job(self, job_id: str) -> JobRecord | None:
    return self._snapshot(job_id)

  async def count_jobs_by_status(self, owner_id: str, status: JobStatus) -> int:
    return sum(1 for job in self.jobs.values() if job.owner_id == owner_id and job.status == status)

  async def list_recent_jobs(self, owner_id: str, limit: int) -> list[JobRecord]:
    owned = [job for job in self.jobs.values() if job.owner_id == owner_id]
    owned.sort(key=lambda job: job.created_at, reverse=True)
    return [copy.deepcopy(job) for job in owned[:limit]]

  async def claim_for_synthesis(self, job_id: str) -> JobRecord | None:
    async with self._lock:
      job = self.jobs.get(job_id)
      if job is None or job.status != "pending" or job.concept_ids:
        return None
      job.status = "processing"
      job.phase = "concept_synthesis"
      job.started_at = job.started_at or datetime.now(UTC)
      return self._snapshot(job_id)

  async def claim_concept(self, job_id: str, concept_id: str, *, lease: timedelta) -> JobRecord | None:
    async with self._lock:
      job = self.jobs.get(job_id)
      if job is None:
        return None
      now = datetime.now(UTC)
      if job.status == "pending":
        job.status = "processing"
        job.started_at = job.started_at or now
      if job.status != "processing" or concept_id not in job.pending_concept_ids:
        return None
      claimed_at = job.concept_claims.get(concept_id)
      if claimed_at is not None and datetime.fromisoformat(claimed_at) > now - lease:
        return None
      job.concept_claims[concept_id] = now.isoformat()
      return self._snapshot(job_id)

  async def set_concept_work(self, job_id: str, concept_ids: list[str], estimated_total: int) -> JobRecord | None:
    async with self._lock:
      job = self.jobs.get(job_id)
      if job is None or job.status != "processing":
        return None
      job.concept_ids = list(concept_ids)
      job.pending_concept_ids = list(concept_ids)
      job.phase = "phrasing_generation"
      job.estimated_total = estimated_total
      return self._snapshot(job_id)

  async def record_concept_completion(self, job_id: str, concept_id: str, *, questions_generated: int, questions_saved: int) -> JoinOutcome:
    async with self._lock:
      job = self.jobs.get(job_id)
      if job is None:
        return JoinOutcome(applied=False, finalized=False, remaining=0, record=None)
      if concept_id not in job.pending_concept_ids:
        return JoinOutcome(applied=False, finalized=False, remaining=len(job.pending_concept_ids), record=self._snapshot(job_id))
      # Yield inside the critical section so racing workers actually interleave.
      await asyncio.sleep(0)
      job.pending_concept_ids = [pending for pending in job.pending_concept_ids if pending != concept_id]
      job.concept_claims.pop(concept_id, None)
      job.questions_generated += questions_generated
      job.questions_saved += questions_saved
      finalized = False
      if not job.pending_concept_ids and job.status == "processing":
        now = datetime.now(UTC)
        job.status = "completed"
        job.phase = "finalizing"
        job.completed_at = now
        job.duration_ms = int((now - job.started_at).total_seconds() * 1000) if job.started_at else None
        self.finalize_count[job_id] = self.finalize_count.get(job_id, 0) + 1
        finalized = True
      return JoinOutcome(applied=True, finalized=finalized, remaining=len(job.pending_concept_ids), record=self._snapshot(job_id))

  async def fail_job(self, job_id: str, *, code: str, message: str, retryable: bool) -> bool:
    async with self._lock:
      job = self.jobs.get(job_id)
      if job is None or job.status not in ACTIVE_JOB_STATUSES:
        return False
      job.status = "failed"
      job.error_code = code
      job.error_message = message
      job.retryable = retryable
      job.completed_at = datetime.now(UTC)
      return True

  async def cancel_job(self, job_id: str) -> bool:
    async with self._lock:
      job = self.jobs.get(job_id)
      if job is None or job.status not in ACTIVE_JOB_STATUSES:
        return False
      job.status = "cancelled"
      job.completed_at = datetime.now(UTC)
      return True

  async def find_active_job_for_concept(self, owner_id: str, concept_id: str) -> JobRecord | None:
    for job in self.jobs.values():
      if job.owner_id == owner_id and job.status in ACTIVE_JOB_STATUSES and concept_id in job.concept_ids:
        return copy.deepcopy(job)
    return None

  async def delete_expired_jobs(self, *, completed_before: datetime, failed_before: datetime) -> tuple[int, int]:
    expired_completed = [job_id for job_id, job in self.jobs.items() if job.status == "completed" and job.completed_at and job.completed_at < completed_before]
    expired_failed = [job_id for job_id, job in self.jobs.items() if job.status == "failed" and job.completed_at and job.completed_at < failed_before]
    for job_id in [*expired_completed, *expired_failed]:
      del self.jobs[job_id]
    return len(expired_completed), len(expired_failed)


class InMemoryConceptsRepository:
  """ConceptsRepository fake with case-insensitive title dedup per owner."""

  def __init__(self) -> None:
    self.concepts: dict[str, ConceptRecord] = {}
    self.phrasings: list[PhrasingRecord] = []

  def add_concept(self, owner_id: str, title: str, description: str = "An existing concept description that is long enough.") -> ConceptRecord:
    record = ConceptRecord(concept_id=generate_concept_id(), owner_id=owner_id, title=title, description=description, created_at=datetime.now(UTC))
    self.concepts[record.concept_id] = record
    return record

  async def create_many(self, owner_id: str, job_id: str, ideas: Sequence[ConceptIdea]) -> list[str]:
    seen = {concept.title.lower() for concept in self.concepts.values() if concept.owner_id == owner_id}
    new_ids: list[str] = []
    for idea in ideas:
      if idea.title.lower() in seen:
        continue
      seen.add(idea.title.lower())
      record = ConceptRecord(concept_id=generate_concept_id(), owner_id=owner_id, title=idea.title, description=idea.description, generation_job_id=job_id, created_at=datetime.now(UTC))
      self.concepts[record.concept_id] = record
      new_ids.append(record.concept_id)
    return new_ids

  async def get_concept(self, concept_id: str) -> ConceptRecord | None:
    record = self.concepts.get(concept_id)
    return copy.deepcopy(record) if record is not None else None

  async def list_recent_phrasings(self, owner_id: str, concept_id: str, limit: int = 20) -> list[PhrasingRecord]:
    matching = [phrasing for phrasing in self.phrasings if phrasing.owner_id == owner_id and phrasing.concept_id == concept_id]
    return list(reversed(matching))[:limit]

  async def list_question_texts(self, owner_id: str, concept_id: str) -> list[str]:
    return [phrasing.question for phrasing in self.phrasings if phrasing.owner_id == owner_id and phrasing.concept_id == concept_id]

  async def insert_phrasings(self, owner_id: str, concept_id: str, drafts: Sequence[PhrasingDraft]) -> list[str]:
    existing = {phrasing.question.lower() for phrasing in self.phrasings if phrasing.concept_id == concept_id}
    inserted: list[str] = []
    for draft in drafts:
      if draft.question.lower() in existing:
        continue
      existing.add(draft.question.lower())
      record = PhrasingRecord(
        phrasing_id=generate_phrasing_id(),
        owner_id=owner_id,
        concept_id=concept_id,
        question=draft.question,
        explanation=draft.explanation,
        type=draft.type,
        options=list(draft.options),
        correct_answer=draft.correct_answer,
        embedding=draft.embedding,
        created_at=datetime.now(UTC),
      )
      self.phrasings.append(record)
      inserted.append(record.phrasing_id)
    return inserted

  async def apply_phrasing_metrics(self, concept_id: str, *, inserted: int, target: int, conflict_score: int | None) -> ConceptRecord | None:
    record = self.concepts.get(concept_id)
    if record is None:
      return None
    record.phrasing_count += inserted
    record.thin_score = compute_thin_score(record.phrasing_count, target)
    record.conflict_score = conflict_score
    return copy.deepcopy(record)


class RecordingEnqueuer:
  """TaskEnqueuer fake that records every enqueue call."""

  def __init__(self) -> None:
    self.calls: list[tuple[str, dict[str, Any], int]] = []

  async def enqueue(self, task_name: str, args: dict[str, Any], delay_seconds: int = 0) -> None:
    self.calls.append((task_name, dict(args), delay_seconds))


class InMemoryRateLimiter:
  def __init__(self, max_attempts: int) -> None:
    self.max_attempts = max_attempts
    self.attempts: dict[str, int] = {}

  async def check_and_record(self, origin_address: str) -> bool:
    count = self.attempts.get(origin_address, 0)
    if count >= self.max_attempts:
      return False
    self.attempts[origin_address] = count + 1
    return True

  async def prune_expired(self) -> int:
    removed = sum(self.attempts.values())
    self.attempts.clear()
    return removed


class FakeModel(AIModel):
  """Scripted model: structured output comes from a sync or async callable keyed on the schema title."""

  def __init__(self, responder: Callable[[str, dict[str, Any]], dict[str, Any] | Awaitable[dict[str, Any]]], *, failing_embeddings: set[str] | None = None) -> None:
    self.name = "fake-model"
    self.embedding_model = "fake-embedding"
    self._responder = responder
    self._failing_embeddings = failing_embeddings or set()
    self.prompts: list[str] = []
    self.embedded: list[str] = []

  async def generate_structured(self, prompt: str, schema: dict[str, Any]) -> StructuredModelResponse:
    self.prompts.append(prompt)
    content = self._responder(prompt, schema)
    if inspect.isawaitable(content):
      content = await content
    return StructuredModelResponse(content=content)

  async def embed(self, text: str) -> list[float]:
    self.embedded.append(text)
    if text in self._failing_embeddings:
      raise RuntimeError("embedding backend unavailable")
    return [0.1, 0.2, 0.3]


def make_phrasing(question: str, *, answer: str = "Option A") -> dict[str, Any]:
  return {"question": question, "explanation": "Because the concept says so in detail.", "type": "multiple-choice", "options": ["Option A", "Option B", "Option C"], "correctAnswer": answer}


def make_job(owner_id: str = "user-1", *, status: JobStatus = "pending", **overrides: Any) -> JobRecord:
  fields: dict[str, Any] = {"job_id": f"job-{os.urandom(4).hex()}", "owner_id": owner_id, "prompt": "Explain mitosis", "status": status, "phase": "clarifying", "created_at": datetime.now(UTC)}
  fields.update(overrides)
  return JobRecord(**fields)


def model_factory_for(model: AIModel) -> Callable[[ProviderConfig], AIModel]:
  def _factory(config: ProviderConfig) -> AIModel:
    _ = config
    return model

  return _factory
