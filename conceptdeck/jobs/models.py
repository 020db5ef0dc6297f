"""Domain models for asynchronous concept generation jobs."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal

JobStatus = Literal["pending", "processing", "completed", "failed", "cancelled"]
JobPhase = Literal["clarifying", "concept_synthesis", "phrasing_generation", "finalizing"]
PhrasingType = Literal["multiple-choice", "true-false"]

ACTIVE_JOB_STATUSES: tuple[JobStatus, ...] = ("pending", "processing")
TERMINAL_JOB_STATUSES: tuple[JobStatus, ...] = ("completed", "failed", "cancelled")


@dataclass
class JobRecord:
  """Represents one generation request and its fan-out/join state."""

  job_id: str
  owner_id: str
  prompt: str
  status: JobStatus
  phase: JobPhase
  created_at: datetime
  concept_ids: list[str] = field(default_factory=list)
  pending_concept_ids: list[str] = field(default_factory=list)
  concept_claims: dict[str, str] = field(default_factory=dict)
  questions_generated: int = 0
  questions_saved: int = 0
  estimated_total: int | None = None
  topic: str | None = None
  error_message: str | None = None
  error_code: str | None = None
  retryable: bool | None = None
  started_at: datetime | None = None
  completed_at: datetime | None = None
  duration_ms: int | None = None
  origin_address: str | None = None


@dataclass
class ConceptRecord:
  """Atomic testable unit owned by one user."""

  concept_id: str
  owner_id: str
  title: str
  description: str
  phrasing_count: int = 0
  thin_score: int | None = None
  conflict_score: int | None = None
  embedding: list[float] | None = None
  generation_job_id: str | None = None
  created_at: datetime | None = None


@dataclass
class PhrasingRecord:
  """One persisted question instance of a concept."""

  phrasing_id: str
  owner_id: str
  concept_id: str
  question: str
  explanation: str
  type: PhrasingType
  options: list[str]
  correct_answer: str
  embedding: list[float] | None = None
  created_at: datetime | None = None


@dataclass(frozen=True)
class ConceptIdea:
  """Normalized Stage A candidate ready for bulk creation."""

  title: str
  description: str
  rationale: str | None = None


@dataclass
class PhrasingDraft:
  """Normalized Stage B candidate awaiting embedding and persistence."""

  question: str
  explanation: str
  type: PhrasingType
  options: list[str]
  correct_answer: str
  embedding: list[float] | None = None


@dataclass(frozen=True)
class JoinOutcome:
  """Result of removing one concept from a job's pending set."""

  applied: bool
  finalized: bool
  remaining: int
  record: JobRecord | None
