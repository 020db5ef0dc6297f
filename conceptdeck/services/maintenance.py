"""Maintenance services for scheduled background cleanup tasks."""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta

from conceptdeck.config import Settings
from conceptdeck.jobs.events import log_concept_event
from conceptdeck.services.rate_limit import RateLimiter
from conceptdeck.storage.jobs_repo import JobsRepository
from conceptdeck.utils.ids import generate_correlation_id


async def cleanup_expired_jobs(jobs_repo: JobsRepository, *, settings: Settings, rate_limiter: RateLimiter | None = None, now: datetime | None = None) -> dict[str, int]:
  """Delete finished jobs past their retention window.

  How/Why:
    - Completed jobs are kept for a short window so the UI can show recent results.
    - Failed jobs are kept longer for support investigations.
    - Cancelled jobs are left alone; they are rare and carry no generated content.
    - Admission rate-limit attempts outside their window are pruned in the same pass.
  """
  reference = now or datetime.now(UTC)
  completed_before = reference - timedelta(days=settings.completed_job_retention_days)
  failed_before = reference - timedelta(days=settings.failed_job_retention_days)
  deleted_completed, deleted_failed = await jobs_repo.delete_expired_jobs(completed_before=completed_before, failed_before=failed_before)
  pruned_attempts = await rate_limiter.prune_expired() if rate_limiter is not None else 0
  log_concept_event(
    logging.INFO,
    "expired jobs removed",
    phase="cleanup",
    event="completed",
    correlation_id=generate_correlation_id(),
    deleted_completed=deleted_completed,
    deleted_failed=deleted_failed,
    pruned_attempts=pruned_attempts,
  )
  return {"deleted_completed": deleted_completed, "deleted_failed": deleted_failed, "pruned_attempts": pruned_attempts}
