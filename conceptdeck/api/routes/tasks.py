from __future__ import annotations

import logging
import secrets
from typing import Annotated, Any

from fastapi import APIRouter, BackgroundTasks, Body, Depends, Header, HTTPException, status
from pydantic import BaseModel, ValidationError

from conceptdeck.api.deps import get_task_registry
from conceptdeck.config import Settings, get_settings
from conceptdeck.jobs.dispatch import JobProcessorRegistry, process_task

logger = logging.getLogger(__name__)


def verify_task_secret(
  settings: Annotated[Settings, Depends(get_settings)], authorization: str | None = Header(default=None), x_conceptdeck_task_secret: str | None = Header(default=None)
) -> None:
  """Reject task deliveries without the shared task secret."""
  # Internal task endpoints must be authenticated to avoid arbitrary job execution.
  if not settings.task_secret:
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Task authentication is not configured.")
  # Cloud Tasks OIDC uses Authorization for Cloud Run invoker auth, so accept a dedicated secret header first.
  shared_secret_valid = secrets.compare_digest((x_conceptdeck_task_secret or ""), settings.task_secret)
  bearer_valid = secrets.compare_digest((authorization or ""), f"Bearer {settings.task_secret}")
  if not shared_secret_valid and not bearer_valid:
    logger.warning("Unauthorized access attempt to internal task endpoint")
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid task secret.")


async def _run_task(task_name: str, args: BaseModel, registry: JobProcessorRegistry) -> None:
  """Run one task after the response; the job record already carries any failure."""
  try:
    await process_task(task_name, args, registry)
  except Exception:
    logger.error("Task %s failed with args %s", task_name, args.model_dump(), exc_info=True)


router = APIRouter(prefix="/tasks", tags=["tasks"], dependencies=[Depends(verify_task_secret)])


@router.post("/{task_name}", status_code=status.HTTP_200_OK)
async def handle_task(
  task_name: str,
  background_tasks: BackgroundTasks,
  registry: Annotated[JobProcessorRegistry, Depends(get_task_registry)],
  payload: Annotated[dict[str, Any] | None, Body()] = None,
) -> dict[str, str]:
  """
  Handler for Cloud Tasks (and local simulation).
  Accepts the task quickly and processes it in the background to avoid client disconnects/timeouts.
  """
  try:
    handler = registry.resolve(task_name)
  except ValueError as exc:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

  try:
    args = handler.args_model.model_validate(payload or {})
  except ValidationError as exc:
    raise HTTPException(status_code=422, detail=f"Invalid arguments for task {task_name}.") from exc

  logger.info("Received %s task with args %s", task_name, args.model_dump())
  background_tasks.add_task(_run_task, task_name, args, registry)
  return {"status": "accepted"}
