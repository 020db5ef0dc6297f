from __future__ import annotations

import asyncio
import logging
from typing import Any
from urllib.parse import urlparse

import httpx

from conceptdeck.config import Settings
from conceptdeck.services.tasks.interface import TaskEnqueuer

logger = logging.getLogger(__name__)


class LocalHttpEnqueuer(TaskEnqueuer):
  """Enqueues tasks via local HTTP requests to simulate Cloud Tasks."""

  def __init__(self, settings: Settings) -> None:
    self.settings = settings

  def _should_use_asgi_transport(self, base_url: str) -> bool:
    """Decide if we should route requests in-process via ASGITransport."""
    parsed = urlparse(base_url)
    hostname = (parsed.hostname or "").lower()
    return hostname in {"localhost", "127.0.0.1", "::1", "0.0.0.0"}

  def _build_client(self, base_url: str) -> httpx.AsyncClient:
    """Build an httpx client for local task dispatch."""
    # Never trust environment proxy variables for internal task dispatch.
    if self._should_use_asgi_transport(base_url):
      from conceptdeck.main import app

      transport = httpx.ASGITransport(app=app)
      return httpx.AsyncClient(transport=transport, base_url=base_url, trust_env=False)
    return httpx.AsyncClient(trust_env=False)

  def _task_headers(self) -> dict[str, str]:
    """Build task authentication headers for internal endpoints."""
    if not self.settings.task_secret:
      raise RuntimeError("Task secret not configured.")
    return {"authorization": f"Bearer {self.settings.task_secret}"}

  async def enqueue(self, task_name: str, args: dict[str, Any], delay_seconds: int = 0) -> None:
    """Dispatch a task by POSTing to the local internal task endpoint."""
    if not self.settings.base_url:
      raise RuntimeError("Base URL not configured, strictly required for LocalHttpEnqueuer.")

    if delay_seconds > 0:
      await asyncio.sleep(delay_seconds)

    url = f"{self.settings.base_url.rstrip('/')}/internal/tasks/{task_name}"

    try:
      async with self._build_client(self.settings.base_url) as client:
        logger.info("Dispatching %s task locally to %s", task_name, url)
        response = await client.post(url, json=args, headers=self._task_headers(), timeout=1800.0)
        response.raise_for_status()

    except httpx.HTTPStatusError as e:
      logger.error("Local task dispatch returned %s for %s: %s", e.response.status_code, task_name, e.response.text)
      raise
    except httpx.RequestError as e:
      logger.error("Failed to dispatch local %s task: %s", task_name, e)
      raise
