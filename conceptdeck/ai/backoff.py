"""Retry helper for provider calls rejected with 429 or quota errors."""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from typing import TypeVar

T = TypeVar("T")
logger = logging.getLogger(__name__)

_RETRY_MARKERS = ("429", "too many requests", "resource exhausted", "resource_exhausted")


def _is_rate_limited(exc: BaseException) -> bool:
  message = str(exc).lower()
  return any(marker in message for marker in _RETRY_MARKERS)


async def with_backoff(func: Callable[..., Awaitable[T]], *args, retries: int = 3, base_delay: float = 1.0, **kwargs) -> T:
  """Call an async provider function, backing off exponentially on rate limiting.

  Other errors propagate immediately. The last rate-limit error propagates once
  retries are exhausted so the pipeline can classify it as RATE_LIMIT.
  """
  for attempt in range(retries):
    try:
      return await func(*args, **kwargs)
    except Exception as exc:
      if not _is_rate_limited(exc) or attempt == retries - 1:
        raise
      delay = base_delay * (2**attempt) + random.uniform(0, 1)
      logger.warning("Provider rate limited (attempt %s/%s); retrying in %.1fs: %s", attempt + 1, retries, delay, exc)
      await asyncio.sleep(delay)
  raise RuntimeError("with_backoff requires at least one attempt.")
