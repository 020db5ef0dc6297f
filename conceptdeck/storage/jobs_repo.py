"""Storage interface for generation jobs."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Protocol

from conceptdeck.jobs.models import JobRecord, JobStatus, JoinOutcome


class JobsRepository(Protocol):
  """Repository contract for generation job persistence.

  Every state transition is conditional on the current status so that concurrent
  workers and the cancellation entrypoint never overwrite a terminal job.
  """

  async def create_job(self, record: JobRecord) -> None:
    """Persist an initial job record."""

  async def get_job(self, job_id: str) -> JobRecord | None:
    """Fetch a job by identifier."""

  async def count_jobs_by_status(self, owner_id: str, status: JobStatus) -> int:
    """Count an owner's jobs in one status."""

  async def list_recent_jobs(self, owner_id: str, limit: int) -> list[JobRecord]:
    """Return an owner's jobs, newest first."""

  async def claim_for_synthesis(self, job_id: str) -> JobRecord | None:
    """Move a pending job without concepts to processing/concept_synthesis.

    Returns None unless this call performed the transition, so a re-delivered
    synthesis task never runs twice.
    """

  async def claim_concept(self, job_id: str, concept_id: str, *, lease: timedelta) -> JobRecord | None:
    """Claim one pending concept for expansion under the job row lock.

    A pending job moves to processing and gets started_at (first writer only). Returns
    None when the job is not processing, the concept is no longer pending, or another
    delivery claimed it less than `lease` ago.
    """

  async def set_concept_work(self, job_id: str, concept_ids: list[str], estimated_total: int) -> JobRecord | None:
    """Record Stage A output and enter phrasing_generation; None when the job is no longer processing."""

  async def record_concept_completion(self, job_id: str, concept_id: str, *, questions_generated: int, questions_saved: int) -> JoinOutcome:
    """Atomically drop a concept and its claim from the pending set, finalizing the job when the set empties."""

  async def fail_job(self, job_id: str, *, code: str, message: str, retryable: bool) -> bool:
    """Mark an active job failed; returns False when it was already terminal."""

  async def cancel_job(self, job_id: str) -> bool:
    """Mark an active job cancelled; returns False when it was already terminal."""

  async def find_active_job_for_concept(self, owner_id: str, concept_id: str) -> JobRecord | None:
    """Return a pending or processing job whose concept list includes the concept."""

  async def delete_expired_jobs(self, *, completed_before: datetime, failed_before: datetime) -> tuple[int, int]:
    """Delete completed and failed jobs older than the cutoffs; returns (completed, failed) counts."""
