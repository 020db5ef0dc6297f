import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request

from conceptdeck.api.deps import get_admission_rate_limiter, get_current_owner_id, get_enqueuer, get_jobs_repo, get_origin_address
from conceptdeck.api.models import JobCreateResponse, JobListResponse, JobStatusResponse, JobSubmitRequest
from conceptdeck.config import Settings, get_settings
from conceptdeck.services import jobs as job_service
from conceptdeck.services.rate_limit import RateLimiter
from conceptdeck.services.tasks.interface import TaskEnqueuer
from conceptdeck.storage.jobs_repo import JobsRepository

router = APIRouter()
logger = logging.getLogger("conceptdeck.api.routes.jobs")


@router.post("", response_model=JobCreateResponse, status_code=202)
async def submit_job(  # noqa: B008
  payload: JobSubmitRequest,
  request: Request,
  background_tasks: BackgroundTasks,
  settings: Settings = Depends(get_settings),  # noqa: B008
  owner_id: str = Depends(get_current_owner_id),  # noqa: B008
  jobs_repo: JobsRepository = Depends(get_jobs_repo),  # noqa: B008
  enqueuer: TaskEnqueuer = Depends(get_enqueuer),  # noqa: B008
  rate_limiter: RateLimiter = Depends(get_admission_rate_limiter),  # noqa: B008
) -> JobCreateResponse:
  """Create a concept generation job and return its id immediately."""
  return await job_service.submit_job(
    payload.prompt, owner_id, settings, background_tasks, jobs_repo=jobs_repo, enqueuer=enqueuer, rate_limiter=rate_limiter, origin_address=get_origin_address(request)
  )


@router.get("", response_model=JobListResponse)
async def list_recent_jobs(  # noqa: B008
  limit: int = Query(default=job_service.DEFAULT_RECENT_JOBS_LIMIT, ge=1, le=job_service.MAX_RECENT_JOBS_LIMIT),
  owner_id: str = Depends(get_current_owner_id),  # noqa: B008
  jobs_repo: JobsRepository = Depends(get_jobs_repo),  # noqa: B008
) -> JobListResponse:
  """List the caller's most recent jobs."""
  return await job_service.list_recent_jobs(owner_id, jobs_repo=jobs_repo, limit=limit)


@router.get("/{job_id}", response_model=JobStatusResponse)
async def get_job_status(  # noqa: B008
  job_id: str,
  owner_id: str = Depends(get_current_owner_id),  # noqa: B008
  jobs_repo: JobsRepository = Depends(get_jobs_repo),  # noqa: B008
) -> JobStatusResponse:
  """Fetch a snapshot of a generation job."""
  return await job_service.get_job(owner_id, job_id, jobs_repo=jobs_repo)


@router.post("/{job_id}/cancel", response_model=JobStatusResponse)
async def cancel_job(  # noqa: B008
  job_id: str,
  owner_id: str = Depends(get_current_owner_id),  # noqa: B008
  jobs_repo: JobsRepository = Depends(get_jobs_repo),  # noqa: B008
) -> JobStatusResponse:
  """Request cancellation of a pending or processing job."""
  return await job_service.cancel_job(owner_id, job_id, jobs_repo=jobs_repo)
