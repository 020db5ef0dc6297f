"""Dependency-injected task dispatch for the internal task endpoint."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol

from pydantic import BaseModel

from conceptdeck.ai.config import ModelFactory, build_model
from conceptdeck.config import Settings
from conceptdeck.jobs.expansion import PhrasingExpansionWorker
from conceptdeck.jobs.synthesis import ConceptSynthesisWorker
from conceptdeck.services.maintenance import cleanup_expired_jobs
from conceptdeck.services.rate_limit import RateLimiter
from conceptdeck.services.tasks.interface import CLEANUP_JOBS_TASK, CONCEPT_SYNTHESIS_TASK, PHRASING_EXPANSION_TASK, TaskEnqueuer
from conceptdeck.storage.concepts_repo import ConceptsRepository
from conceptdeck.storage.jobs_repo import JobsRepository


class TaskHandler(Protocol):
  """Processor contract for one task name."""

  args_model: type[BaseModel]

  async def process(self, args: Any) -> Any:
    """Process one delivered task with validated args."""


@dataclass(frozen=True)
class TaskProcessResult:
  """Result wrapper returned by the central dispatch function."""

  task_name: str
  result: Any


class CleanupJobsArgs(BaseModel):
  pass


class CleanupJobsHandler:
  """Runs the job retention cleanup as a task."""

  args_model = CleanupJobsArgs

  def __init__(self, *, jobs_repo: JobsRepository, settings: Settings, rate_limiter: RateLimiter | None = None) -> None:
    self._jobs_repo = jobs_repo
    self._settings = settings
    self._rate_limiter = rate_limiter

  async def process(self, args: CleanupJobsArgs) -> dict[str, int]:
    _ = args
    return await cleanup_expired_jobs(self._jobs_repo, settings=self._settings, rate_limiter=self._rate_limiter)


class JobProcessorRegistry:
  """Registry mapping task names to processor handlers."""

  def __init__(self, handlers: dict[str, TaskHandler]) -> None:
    self._handlers = handlers

  def resolve(self, task_name: str) -> TaskHandler:
    """Resolve the processor for a task name."""
    handler = self._handlers.get(task_name)
    if handler is None:
      raise ValueError(f"Unsupported task: {task_name}")
    return handler


def build_registry(
  *,
  jobs_repo: JobsRepository,
  concepts_repo: ConceptsRepository,
  enqueuer: TaskEnqueuer,
  settings: Settings,
  rate_limiter: RateLimiter | None = None,
  model_factory: ModelFactory = build_model,
) -> JobProcessorRegistry:
  """Wire the pipeline handlers with shared collaborators."""
  collaborators = {"jobs_repo": jobs_repo, "concepts_repo": concepts_repo, "enqueuer": enqueuer, "settings": settings, "model_factory": model_factory}
  return JobProcessorRegistry(
    {
      CONCEPT_SYNTHESIS_TASK: ConceptSynthesisWorker(**collaborators),
      PHRASING_EXPANSION_TASK: PhrasingExpansionWorker(**collaborators),
      CLEANUP_JOBS_TASK: CleanupJobsHandler(jobs_repo=jobs_repo, settings=settings, rate_limiter=rate_limiter),
    }
  )


async def process_task(task_name: str, args: BaseModel, registry: JobProcessorRegistry) -> TaskProcessResult:
  """Dispatch a delivered task to its handler."""
  handler = registry.resolve(task_name)
  result = await handler.process(args)
  return TaskProcessResult(task_name=task_name, result=result)
