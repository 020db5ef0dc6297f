"""Shared FastAPI dependencies for owner identity and pipeline collaborators."""

from __future__ import annotations

from fastapi import Depends, Header, HTTPException, Request, status

from conceptdeck.config import Settings, get_settings
from conceptdeck.jobs.dispatch import JobProcessorRegistry, build_registry
from conceptdeck.services.rate_limit import RateLimiter, get_rate_limiter
from conceptdeck.services.tasks.factory import get_task_enqueuer
from conceptdeck.services.tasks.interface import TaskEnqueuer
from conceptdeck.storage.concepts_repo import ConceptsRepository
from conceptdeck.storage.factory import _get_concepts_repo, _get_jobs_repo
from conceptdeck.storage.jobs_repo import JobsRepository


async def get_current_owner_id(x_owner_id: str | None = Header(default=None)) -> str:
  """Resolve the owner id forwarded by the authenticating gateway."""
  owner_id = (x_owner_id or "").strip()
  if not owner_id:
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing owner identity.")
  return owner_id


def get_origin_address(request: Request) -> str | None:
  """Return the client address, preferring the first X-Forwarded-For hop."""
  forwarded = request.headers.get("x-forwarded-for")
  if forwarded:
    first_hop = forwarded.split(",")[0].strip()
    if first_hop:
      return first_hop
  if request.client is not None:
    return request.client.host
  return None


def get_jobs_repo(settings: Settings = Depends(get_settings)) -> JobsRepository:  # noqa: B008
  return _get_jobs_repo(settings)


def get_concepts_repo(settings: Settings = Depends(get_settings)) -> ConceptsRepository:  # noqa: B008
  return _get_concepts_repo(settings)


def get_enqueuer(settings: Settings = Depends(get_settings)) -> TaskEnqueuer:  # noqa: B008
  return get_task_enqueuer(settings)


def get_admission_rate_limiter(settings: Settings = Depends(get_settings)) -> RateLimiter:  # noqa: B008
  return get_rate_limiter(settings)


def get_task_registry(
  settings: Settings = Depends(get_settings),  # noqa: B008
  jobs_repo: JobsRepository = Depends(get_jobs_repo),  # noqa: B008
  concepts_repo: ConceptsRepository = Depends(get_concepts_repo),  # noqa: B008
  enqueuer: TaskEnqueuer = Depends(get_enqueuer),  # noqa: B008
  rate_limiter: RateLimiter = Depends(get_admission_rate_limiter),  # noqa: B008
) -> JobProcessorRegistry:
  """Build the task registry with request-scoped collaborators."""
  return build_registry(jobs_repo=jobs_repo, concepts_repo=concepts_repo, enqueuer=enqueuer, settings=settings, rate_limiter=rate_limiter)
