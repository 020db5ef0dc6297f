from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, StrictStr

from conceptdeck.jobs.models import JobPhase, JobRecord, JobStatus


class JobSubmitRequest(BaseModel):
  """Request payload for a concept generation job."""

  prompt: StrictStr = Field(description="Free-text learning prompt; trimmed before validation.")
  model_config = ConfigDict(extra="forbid")


class JobCreateResponse(BaseModel):
  """Response payload for job creation."""

  job_id: StrictStr


class JobStatusResponse(BaseModel):
  """Snapshot of a generation job."""

  job_id: StrictStr
  status: JobStatus
  phase: JobPhase
  prompt: StrictStr
  topic: StrictStr | None = None
  concept_ids: list[str] = Field(default_factory=list)
  pending_concept_ids: list[str] = Field(default_factory=list)
  questions_generated: int = 0
  questions_saved: int = 0
  estimated_total: int | None = None
  error_message: StrictStr | None = None
  error_code: StrictStr | None = None
  retryable: bool | None = None
  created_at: datetime
  started_at: datetime | None = None
  completed_at: datetime | None = None
  duration_ms: int | None = None

  @classmethod
  def from_record(cls, record: JobRecord) -> JobStatusResponse:
    return cls(
      job_id=record.job_id,
      status=record.status,
      phase=record.phase,
      prompt=record.prompt,
      topic=record.topic,
      concept_ids=list(record.concept_ids),
      pending_concept_ids=list(record.pending_concept_ids),
      questions_generated=record.questions_generated,
      questions_saved=record.questions_saved,
      estimated_total=record.estimated_total,
      error_message=record.error_message,
      error_code=record.error_code,
      retryable=record.retryable,
      created_at=record.created_at,
      started_at=record.started_at,
      completed_at=record.completed_at,
      duration_ms=record.duration_ms,
    )


class JobListResponse(BaseModel):
  """Recent jobs for the current owner, newest first."""

  jobs: list[JobStatusResponse]
