"""Admission and lifecycle operations for generation jobs."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any

from fastapi import BackgroundTasks, HTTPException, status

from conceptdeck.api.models import JobCreateResponse, JobListResponse, JobStatusResponse
from conceptdeck.config import Settings
from conceptdeck.jobs.errors import Err
from conceptdeck.jobs.events import log_concept_event
from conceptdeck.jobs.models import TERMINAL_JOB_STATUSES, JobRecord
from conceptdeck.services.rate_limit import RateLimiter
from conceptdeck.services.tasks.interface import CONCEPT_SYNTHESIS_TASK, PHRASING_EXPANSION_TASK, TaskEnqueuer
from conceptdeck.storage.concepts_repo import ConceptsRepository
from conceptdeck.storage.jobs_repo import JobsRepository
from conceptdeck.utils.ids import generate_correlation_id, generate_job_id

logger = logging.getLogger(__name__)

_JOB_NOT_FOUND_MSG = "Job not found."
_CONCEPT_NOT_FOUND_MSG = "Concept not found."
DEFAULT_RECENT_JOBS_LIMIT = 20
MAX_RECENT_JOBS_LIMIT = 100


def _validate_prompt(prompt: str, settings: Settings) -> str:
  """Trim the prompt and enforce the configured length bounds."""
  trimmed = prompt.strip()
  if not settings.min_prompt_length <= len(trimmed) <= settings.max_prompt_length:
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Prompt must be between {settings.min_prompt_length} and {settings.max_prompt_length} characters.")
  return trimmed


async def _get_owned_job(jobs_repo: JobsRepository, owner_id: str, job_id: str) -> JobRecord:
  record = await jobs_repo.get_job(job_id)
  # Foreign jobs are reported as missing so ids cannot be enumerated.
  if record is None or record.owner_id != owner_id:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=_JOB_NOT_FOUND_MSG)
  return record


async def submit_job(
  prompt: str,
  owner_id: str,
  settings: Settings,
  background_tasks: BackgroundTasks,
  *,
  jobs_repo: JobsRepository,
  enqueuer: TaskEnqueuer,
  rate_limiter: RateLimiter | None = None,
  origin_address: str | None = None,
) -> JobCreateResponse:
  """Validate, admit and persist a generation job, then schedule concept synthesis."""
  trimmed = _validate_prompt(prompt, settings)

  in_flight = await jobs_repo.count_jobs_by_status(owner_id, "processing")
  if in_flight >= settings.max_concurrent_jobs:
    raise HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail=f"You already have {in_flight} generation jobs in progress. Wait for one to finish before starting another.")

  if origin_address and rate_limiter is not None:
    allowed = await rate_limiter.check_and_record(origin_address)
    if not allowed:
      raise HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail="Too many generation requests from this address. Please try again later.")

  record = JobRecord(job_id=generate_job_id(), owner_id=owner_id, prompt=trimmed, status="pending", phase="clarifying", created_at=datetime.now(UTC), origin_address=origin_address)
  await jobs_repo.create_job(record)
  log_concept_event(logging.INFO, "job admitted", phase="submit", event="created", correlation_id=generate_correlation_id(), job_id=record.job_id, owner_id=owner_id, prompt_length=len(trimmed))

  trigger_task(background_tasks, CONCEPT_SYNTHESIS_TASK, {"job_id": record.job_id}, settings, jobs_repo=jobs_repo, enqueuer=enqueuer)
  return JobCreateResponse(job_id=record.job_id)


async def cancel_job(owner_id: str, job_id: str, *, jobs_repo: JobsRepository) -> JobStatusResponse:
  """Cancel a pending or processing job; terminal jobs are rejected."""
  record = await _get_owned_job(jobs_repo, owner_id, job_id)
  if record.status in TERMINAL_JOB_STATUSES:
    raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=f"Job is already {record.status}.")

  cancelled = await jobs_repo.cancel_job(job_id)
  refreshed = await jobs_repo.get_job(job_id) or record
  if not cancelled:
    raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=f"Job is already {refreshed.status}.")

  logger.info("Cancelled job %s for owner %s", job_id, owner_id)
  return JobStatusResponse.from_record(refreshed)


async def get_job(owner_id: str, job_id: str, *, jobs_repo: JobsRepository) -> JobStatusResponse:
  """Return a snapshot of one of the owner's jobs."""
  record = await _get_owned_job(jobs_repo, owner_id, job_id)
  return JobStatusResponse.from_record(record)


async def list_recent_jobs(owner_id: str, *, jobs_repo: JobsRepository, limit: int = DEFAULT_RECENT_JOBS_LIMIT) -> JobListResponse:
  """Return the owner's most recent jobs, newest first."""
  bounded = max(1, min(limit, MAX_RECENT_JOBS_LIMIT))
  records = await jobs_repo.list_recent_jobs(owner_id, bounded)
  return JobListResponse(jobs=[JobStatusResponse.from_record(record) for record in records])


async def request_concept_phrasings(
  owner_id: str, concept_id: str, settings: Settings, background_tasks: BackgroundTasks, *, jobs_repo: JobsRepository, concepts_repo: ConceptsRepository, enqueuer: TaskEnqueuer
) -> JobCreateResponse:
  """Start a phrasing-only job for one existing concept, skipping concept synthesis."""
  concept = await concepts_repo.get_concept(concept_id)
  if concept is None or concept.owner_id != owner_id:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=_CONCEPT_NOT_FOUND_MSG)

  existing = await jobs_repo.find_active_job_for_concept(owner_id, concept_id)
  if existing is not None:
    raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Generation already in progress for this concept.")

  record = JobRecord(
    job_id=generate_job_id(),
    owner_id=owner_id,
    prompt=f"Manual concept phrasing request: {concept.title}",
    status="pending",
    phase="phrasing_generation",
    created_at=datetime.now(UTC),
    concept_ids=[concept_id],
    pending_concept_ids=[concept_id],
    estimated_total=settings.target_phrasings_per_concept,
    topic=concept.title,
  )
  await jobs_repo.create_job(record)
  log_concept_event(logging.INFO, "phrasing job created", phase="manual", event="created", correlation_id=generate_correlation_id(), job_id=record.job_id, concept_id=concept_id)

  trigger_task(background_tasks, PHRASING_EXPANSION_TASK, {"job_id": record.job_id, "concept_id": concept_id}, settings, jobs_repo=jobs_repo, enqueuer=enqueuer)
  return JobCreateResponse(job_id=record.job_id)


def trigger_task(background_tasks: BackgroundTasks, task_name: str, args: dict[str, Any], settings: Settings, *, jobs_repo: JobsRepository, enqueuer: TaskEnqueuer) -> None:
  """Schedule a pipeline task via the configured task enqueuer after the response is sent."""

  if not settings.jobs_auto_process:
    return

  async def _dispatch() -> None:
    try:
      await enqueuer.enqueue(task_name, args)
    except Exception as exc:  # noqa: BLE001
      logger.error("Failed to enqueue %s for job %s: %s", task_name, args.get("job_id"), exc, exc_info=True)
      # Fail the job on enqueue errors so it does not stay pending forever.
      err = Err.from_exception(exc)
      await jobs_repo.fail_job(str(args["job_id"]), code=err.code, message=err.message, retryable=err.retryable)

  background_tasks.add_task(_dispatch)
