"""Per-origin sliding-window rate limiting backed by Postgres."""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta
from typing import Protocol

from sqlalchemy import delete, func, select

from conceptdeck.config import Settings
from conceptdeck.core.database import get_session_factory
from conceptdeck.schema.rate_limits import RateLimitAttempt

logger = logging.getLogger(__name__)


class RateLimiter(Protocol):
  """Admission rate limiter keyed by client origin."""

  async def check_and_record(self, origin_address: str) -> bool:
    """Record an attempt and return True when the origin is still within its window."""

  async def prune_expired(self) -> int:
    """Delete attempts older than the window and return how many were removed."""


class PostgresRateLimiter(RateLimiter):
  """Count attempts per origin over a trailing window stored in `rate_limit_attempts`."""

  def __init__(self, *, max_attempts: int, window_seconds: int) -> None:
    self._max_attempts = max_attempts
    self._window = timedelta(seconds=window_seconds)
    self._session_factory = get_session_factory()
    if self._session_factory is None:
      raise RuntimeError("Database not initialized")

  async def check_and_record(self, origin_address: str) -> bool:
    window_start = datetime.now(UTC) - self._window
    async with self._session_factory() as session, session.begin():
      # Serialize concurrent attempts from one origin for the rest of the transaction.
      await session.execute(select(func.pg_advisory_xact_lock(func.hashtext(origin_address))))
      stmt = select(func.count()).select_from(RateLimitAttempt).where(RateLimitAttempt.origin_address == origin_address, RateLimitAttempt.created_at > window_start)
      attempts = int(await session.scalar(stmt) or 0)
      if attempts >= self._max_attempts:
        logger.info("Rate limit exceeded for origin %s (%s attempts in window).", origin_address, attempts)
        return False
      session.add(RateLimitAttempt(origin_address=origin_address))
      return True

  async def prune_expired(self) -> int:
    cutoff = datetime.now(UTC) - self._window
    async with self._session_factory() as session:
      result = await session.execute(delete(RateLimitAttempt).where(RateLimitAttempt.created_at <= cutoff))
      await session.commit()
      return int(result.rowcount or 0)


def get_rate_limiter(settings: Settings) -> PostgresRateLimiter:
  """Build the rate limiter from settings."""
  return PostgresRateLimiter(max_attempts=settings.rate_limit_max_attempts, window_seconds=settings.rate_limit_window_seconds)
