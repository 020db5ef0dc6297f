"""Postgres-backed repository for generation jobs using SQLAlchemy."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from conceptdeck.core.database import get_session_factory
from conceptdeck.jobs.models import ACTIVE_JOB_STATUSES, JobRecord, JobStatus, JoinOutcome
from conceptdeck.schema.jobs import GenerationJob
from conceptdeck.storage.jobs_repo import JobsRepository


class PostgresJobsRepository(JobsRepository):
  """Persist generation jobs to Postgres using SQLAlchemy."""

  def __init__(self) -> None:
    self._session_factory = get_session_factory()
    if self._session_factory is None:
      raise RuntimeError("Database not initialized")

  async def create_job(self, record: JobRecord) -> None:
    async with self._session_factory() as session:
      session.add(
        GenerationJob(
          job_id=record.job_id,
          owner_id=record.owner_id,
          prompt=record.prompt,
          status=record.status,
          phase=record.phase,
          concept_ids=list(record.concept_ids),
          pending_concept_ids=list(record.pending_concept_ids),
          questions_generated=record.questions_generated,
          questions_saved=record.questions_saved,
          estimated_total=record.estimated_total,
          topic=record.topic,
          origin_address=record.origin_address,
          created_at=record.created_at,
        )
      )
      await session.commit()

  async def get_job(self, job_id: str) -> JobRecord | None:
    async with self._session_factory() as session:
      row = await session.get(GenerationJob, job_id)
      if row is None:
        return None
      return self._model_to_record(row)

  async def count_jobs_by_status(self, owner_id: str, status: JobStatus) -> int:
    async with self._session_factory() as session:
      stmt = select(func.count()).select_from(GenerationJob).where(GenerationJob.owner_id == owner_id, GenerationJob.status == status)
      return int(await session.scalar(stmt) or 0)

  async def list_recent_jobs(self, owner_id: str, limit: int) -> list[JobRecord]:
    async with self._session_factory() as session:
      stmt = select(GenerationJob).where(GenerationJob.owner_id == owner_id).order_by(GenerationJob.created_at.desc()).limit(limit)
      rows = (await session.execute(stmt)).scalars().all()
      return [self._model_to_record(row) for row in rows]

  async def claim_for_synthesis(self, job_id: str) -> JobRecord | None:
    async with self._session_factory() as session, session.begin():
      row = await self._lock_job(session, job_id)
      if row is None or row.status != "pending" or row.concept_ids:
        return None
      row.status = "processing"
      row.phase = "concept_synthesis"
      row.started_at = row.started_at or datetime.now(UTC)
      return self._model_to_record(row)

  async def claim_concept(self, job_id: str, concept_id: str, *, lease: timedelta) -> JobRecord | None:
    async with self._session_factory() as session, session.begin():
      row = await self._lock_job(session, job_id)
      if row is None:
        return None
      now = datetime.now(UTC)
      if row.status == "pending":
        row.status = "processing"
        row.started_at = row.started_at or now
      if row.status != "processing" or concept_id not in (row.pending_concept_ids or []):
        return None

      claims = dict(row.concept_claims or {})
      claimed_at = claims.get(concept_id)
      # A stale claim belongs to a delivery that died mid-expansion and may be taken over.
      if claimed_at is not None and datetime.fromisoformat(claimed_at) > now - lease:
        return None
      claims[concept_id] = now.isoformat()
      row.concept_claims = claims
      return self._model_to_record(row)

  async def set_concept_work(self, job_id: str, concept_ids: list[str], estimated_total: int) -> JobRecord | None:
    async with self._session_factory() as session, session.begin():
      row = await self._lock_job(session, job_id)
      if row is None or row.status != "processing":
        return None
      row.concept_ids = list(concept_ids)
      row.pending_concept_ids = list(concept_ids)
      row.phase = "phrasing_generation"
      row.estimated_total = estimated_total
      return self._model_to_record(row)

  async def record_concept_completion(self, job_id: str, concept_id: str, *, questions_generated: int, questions_saved: int) -> JoinOutcome:
    # Row lock, remove, write and emptiness check happen in one transaction.
    async with self._session_factory() as session, session.begin():
      row = await self._lock_job(session, job_id)
      if row is None:
        return JoinOutcome(applied=False, finalized=False, remaining=0, record=None)

      pending = list(row.pending_concept_ids or [])
      if concept_id not in pending:
        return JoinOutcome(applied=False, finalized=False, remaining=len(pending), record=self._model_to_record(row))

      pending.remove(concept_id)
      row.pending_concept_ids = pending
      row.concept_claims = {key: value for key, value in (row.concept_claims or {}).items() if key != concept_id}
      row.questions_generated = (row.questions_generated or 0) + questions_generated
      row.questions_saved = (row.questions_saved or 0) + questions_saved

      finalized = False
      if not pending and row.status == "processing":
        now = datetime.now(UTC)
        row.status = "completed"
        row.phase = "finalizing"
        row.completed_at = now
        row.duration_ms = int((now - row.started_at).total_seconds() * 1000) if row.started_at else None
        finalized = True

      return JoinOutcome(applied=True, finalized=finalized, remaining=len(pending), record=self._model_to_record(row))

  async def fail_job(self, job_id: str, *, code: str, message: str, retryable: bool) -> bool:
    values = {"status": "failed", "error_code": code, "error_message": message, "retryable": retryable, "completed_at": datetime.now(UTC)}
    return await self._transition_active(job_id, values)

  async def cancel_job(self, job_id: str) -> bool:
    return await self._transition_active(job_id, {"status": "cancelled", "completed_at": datetime.now(UTC)})

  async def find_active_job_for_concept(self, owner_id: str, concept_id: str) -> JobRecord | None:
    async with self._session_factory() as session:
      stmt = (
        select(GenerationJob)
        .where(GenerationJob.owner_id == owner_id, GenerationJob.status.in_(ACTIVE_JOB_STATUSES), GenerationJob.concept_ids.contains([concept_id]))
        .order_by(GenerationJob.created_at.desc())
        .limit(1)
      )
      row = (await session.execute(stmt)).scalar_one_or_none()
      if row is None:
        return None
      return self._model_to_record(row)

  async def delete_expired_jobs(self, *, completed_before: datetime, failed_before: datetime) -> tuple[int, int]:
    async with self._session_factory() as session:
      completed = await session.execute(delete(GenerationJob).where(GenerationJob.status == "completed", GenerationJob.completed_at < completed_before))
      failed = await session.execute(delete(GenerationJob).where(GenerationJob.status == "failed", GenerationJob.completed_at < failed_before))
      await session.commit()
      return int(completed.rowcount or 0), int(failed.rowcount or 0)

  async def _transition_active(self, job_id: str, values: dict) -> bool:
    async with self._session_factory() as session:
      stmt = update(GenerationJob).where(GenerationJob.job_id == job_id, GenerationJob.status.in_(ACTIVE_JOB_STATUSES)).values(**values)
      result = await session.execute(stmt)
      await session.commit()
      return bool(result.rowcount)

  async def _lock_job(self, session: AsyncSession, job_id: str) -> GenerationJob | None:
    stmt = select(GenerationJob).where(GenerationJob.job_id == job_id).with_for_update()
    return (await session.execute(stmt)).scalar_one_or_none()

  def _model_to_record(self, row: GenerationJob) -> JobRecord:
    return JobRecord(
      job_id=row.job_id,
      owner_id=row.owner_id,
      prompt=row.prompt,
      status=row.status,
      phase=row.phase,
      created_at=row.created_at,
      concept_ids=list(row.concept_ids or []),
      pending_concept_ids=list(row.pending_concept_ids or []),
      concept_claims=dict(row.concept_claims or {}),
      questions_generated=row.questions_generated or 0,
      questions_saved=row.questions_saved or 0,
      estimated_total=row.estimated_total,
      topic=row.topic,
      error_message=row.error_message,
      error_code=row.error_code,
      retryable=row.retryable,
      started_at=row.started_at,
      completed_at=row.completed_at,
      duration_ms=row.duration_ms,
      origin_address=row.origin_address,
    )
