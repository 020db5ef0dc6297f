from __future__ import annotations

import datetime
import json
import logging
from typing import Any

from google.cloud import tasks_v2
from google.protobuf import timestamp_pb2
from starlette.concurrency import run_in_threadpool

from conceptdeck.config import Settings
from conceptdeck.services.tasks.interface import TaskEnqueuer

logger = logging.getLogger(__name__)


class CloudTasksEnqueuer(TaskEnqueuer):
  """Enqueues tasks to Google Cloud Tasks."""

  def __init__(self, settings: Settings) -> None:
    self.settings = settings
    self.client = tasks_v2.CloudTasksClient()

  def _build_task(self, task_name: str, args: dict[str, Any], delay_seconds: int) -> dict[str, Any]:
    if not self.settings.base_url:
      raise RuntimeError("Base URL not configured.")

    headers = {"Content-Type": "application/json"}
    # OIDC tokens occupy the Authorization header, so the shared secret travels separately.
    if self.settings.task_secret:
      headers["X-Conceptdeck-Task-Secret"] = self.settings.task_secret

    http_request: dict[str, Any] = {
      "http_method": tasks_v2.HttpMethod.POST,
      "url": f"{self.settings.base_url.rstrip('/')}/internal/tasks/{task_name}",
      "headers": headers,
      "body": json.dumps(args).encode(),
    }
    if self.settings.cloud_run_invoker_service_account:
      http_request["oidc_token"] = {"service_account_email": self.settings.cloud_run_invoker_service_account}

    task: dict[str, Any] = {"http_request": http_request}
    if delay_seconds > 0:
      schedule_time = timestamp_pb2.Timestamp()
      schedule_time.FromDatetime(datetime.datetime.now(datetime.UTC) + datetime.timedelta(seconds=delay_seconds))
      task["schedule_time"] = schedule_time
    return task

  async def enqueue(self, task_name: str, args: dict[str, Any], delay_seconds: int = 0) -> None:
    """Create a Cloud Tasks HTTP task targeting the internal task endpoint."""
    if not self.settings.cloud_tasks_queue_path:
      raise RuntimeError("Cloud Tasks queue path not configured.")

    task = self._build_task(task_name, args, delay_seconds)
    try:
      # The Cloud Tasks client is synchronous; keep it off the event loop.
      response = await run_in_threadpool(self.client.create_task, request={"parent": self.settings.cloud_tasks_queue_path, "task": task})
    except Exception:
      logger.error("Failed to enqueue %s task with args %s", task_name, args, exc_info=True)
      raise
    logger.info("Enqueued task %s (%s)", response.name, task_name)
