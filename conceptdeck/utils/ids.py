"""Identifier utilities."""

from __future__ import annotations

import secrets
import string
import time
import uuid


def generate_job_id() -> str:
  """Return a new generation job identifier."""
  return str(uuid.uuid4())


def generate_concept_id() -> str:
  """Return a new concept identifier."""
  return str(uuid.uuid4())


def generate_phrasing_id() -> str:
  """Return a new phrasing identifier."""
  return str(uuid.uuid4())


def generate_correlation_id(prefix: str = "concepts") -> str:
  """Return a short id that ties together log lines from one pipeline stage run."""
  alphabet = string.ascii_lowercase + string.digits
  random_segment = "".join(secrets.choice(alphabet) for _ in range(6))
  return f"{prefix}-{int(time.time() * 1000):x}-{random_segment}"
