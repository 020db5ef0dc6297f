from __future__ import annotations

from conceptdeck.config import Settings
from conceptdeck.services.tasks.interface import TaskEnqueuer


def get_task_enqueuer(settings: Settings) -> TaskEnqueuer:
  """Factory to get the configured task enqueuer."""
  if settings.task_service_provider == "gcp":
    from conceptdeck.services.tasks.gcp import CloudTasksEnqueuer

    return CloudTasksEnqueuer(settings)

  from conceptdeck.services.tasks.local import LocalHttpEnqueuer

  return LocalHttpEnqueuer(settings)
