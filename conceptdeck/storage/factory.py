"""Repository construction helpers."""

from __future__ import annotations

from conceptdeck.config import Settings
from conceptdeck.storage.concepts_repo import ConceptsRepository
from conceptdeck.storage.jobs_repo import JobsRepository
from conceptdeck.storage.postgres_concepts_repo import PostgresConceptsRepository
from conceptdeck.storage.postgres_jobs_repo import PostgresJobsRepository


def _get_jobs_repo(settings: Settings) -> JobsRepository:
  """Return the jobs repository for the configured database."""
  _ = settings
  return PostgresJobsRepository()


def _get_concepts_repo(settings: Settings) -> ConceptsRepository:
  """Return the concepts repository for the configured database."""
  _ = settings
  return PostgresConceptsRepository()
