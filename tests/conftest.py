"""Test configuration: environment defaults and shared fixtures."""

from __future__ import annotations

import os
from dataclasses import replace

os.environ.setdefault("CONCEPTDECK_ALLOWED_ORIGINS", "http://localhost:3000")
os.environ.setdefault("CONCEPTDECK_TASK_SECRET", "test-task-secret")

import pytest  # noqa: E402

from conceptdeck.config import Settings, get_settings  # noqa: E402
from tests.support import InMemoryConceptsRepository, InMemoryJobsRepository, RecordingEnqueuer  # noqa: E402


@pytest.fixture
def anyio_backend() -> str:
  return "asyncio"


@pytest.fixture
def settings() -> Settings:
  return replace(get_settings(), openai_api_key="sk-test", ai_provider="openai", target_phrasings_per_concept=4, max_concurrent_jobs=3)


@pytest.fixture
def jobs_repo() -> InMemoryJobsRepository:
  return InMemoryJobsRepository()


@pytest.fixture
def concepts_repo() -> InMemoryConceptsRepository:
  return InMemoryConceptsRepository()


@pytest.fixture
def enqueuer() -> RecordingEnqueuer:
  return RecordingEnqueuer()
