"""Error classification and the tagged result type shared by pipeline stages."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, Literal, TypeVar

T = TypeVar("T")

ErrorCode = Literal["SCHEMA_VALIDATION", "RATE_LIMIT", "API_KEY", "NETWORK", "UNKNOWN"]

_SCHEMA_MARKERS = ("schema", "validation", "does not match validator", "no object generated", "invalid json")
_SCHEMA_NAME_MARKERS = ("noobjectgenerated", "validationerror")
_RATE_LIMIT_MARKERS = ("rate limit", "429", "quota")
_API_KEY_MARKERS = ("api key", "401", "unauthorized")
_NETWORK_MARKERS = ("network", "timeout", "etimedout")

USER_MESSAGES: dict[ErrorCode, str] = {
  "SCHEMA_VALIDATION": "The AI generated content in an unexpected format. This is usually temporary. Please try again.",
  "RATE_LIMIT": "Rate limit reached. Please wait a moment and try again.",
  "API_KEY": "API configuration error. Please contact support.",
  "NETWORK": "Network error. Please check your connection and try again.",
  "UNKNOWN": "Something went wrong while generating your questions. Please try again later.",
}


@dataclass(frozen=True)
class Ok(Generic[T]):
  """Successful stage step carrying its value."""

  value: T


@dataclass(frozen=True)
class Err:
  """Failed stage step carrying the user-safe failure triple.

  `detail` keeps the raw diagnostic text for server logs and is never written to the job.
  """

  code: ErrorCode
  retryable: bool
  message: str
  detail: str | None = None

  @classmethod
  def domain(cls, code: ErrorCode, *, retryable: bool, message: str) -> Err:
    """Build an error whose code and message are decided by the pipeline itself."""
    return cls(code=code, retryable=retryable, message=message, detail=message)

  @classmethod
  def from_exception(cls, exc: BaseException) -> Err:
    """Build an error by pattern-classifying an unexpected exception."""
    code, retryable = classify_error(exc)
    return cls(code=code, retryable=retryable, message=USER_MESSAGES[code], detail=f"{type(exc).__name__}: {exc}")


Result = Ok[T] | Err


def classify_error(exc: BaseException) -> tuple[ErrorCode, bool]:
  """Map an exception to an error code and retry advice, first match wins."""
  message = str(exc).lower()
  name = type(exc).__name__.lower()

  if any(marker in name for marker in _SCHEMA_NAME_MARKERS) or any(marker in message for marker in _SCHEMA_MARKERS):
    return "SCHEMA_VALIDATION", True

  if any(marker in message for marker in _RATE_LIMIT_MARKERS):
    return "RATE_LIMIT", True

  if any(marker in message for marker in _API_KEY_MARKERS):
    return "API_KEY", False

  if any(marker in message or marker in name for marker in _NETWORK_MARKERS):
    return "NETWORK", True

  return "UNKNOWN", False
