import logging

from fastapi import APIRouter, BackgroundTasks, Depends

from conceptdeck.api.deps import get_concepts_repo, get_current_owner_id, get_enqueuer, get_jobs_repo
from conceptdeck.api.models import JobCreateResponse
from conceptdeck.config import Settings, get_settings
from conceptdeck.services import jobs as job_service
from conceptdeck.services.tasks.interface import TaskEnqueuer
from conceptdeck.storage.concepts_repo import ConceptsRepository
from conceptdeck.storage.jobs_repo import JobsRepository

router = APIRouter()
logger = logging.getLogger("conceptdeck.api.routes.concepts")


@router.post("/{concept_id}/phrasings", response_model=JobCreateResponse, status_code=202)
async def request_phrasings(  # noqa: B008
  concept_id: str,
  background_tasks: BackgroundTasks,
  settings: Settings = Depends(get_settings),  # noqa: B008
  owner_id: str = Depends(get_current_owner_id),  # noqa: B008
  jobs_repo: JobsRepository = Depends(get_jobs_repo),  # noqa: B008
  concepts_repo: ConceptsRepository = Depends(get_concepts_repo),  # noqa: B008
  enqueuer: TaskEnqueuer = Depends(get_enqueuer),  # noqa: B008
) -> JobCreateResponse:
  """Queue more phrasings for one existing concept."""
  return await job_service.request_concept_phrasings(owner_id, concept_id, settings, background_tasks, jobs_repo=jobs_repo, concepts_repo=concepts_repo, enqueuer=enqueuer)
