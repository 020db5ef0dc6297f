from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Index, Integer, String, Text, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from conceptdeck.core.database import Base


class GenerationJob(Base):
  __tablename__ = "generation_jobs"
  __table_args__ = (Index("ix_generation_jobs_owner_status", "owner_id", "status"), Index("ix_generation_jobs_owner_created", "owner_id", "created_at"))

  job_id: Mapped[str] = mapped_column(String, primary_key=True)
  owner_id: Mapped[str] = mapped_column(String, nullable=False)
  prompt: Mapped[str] = mapped_column(Text, nullable=False)
  status: Mapped[str] = mapped_column(String, nullable=False)
  phase: Mapped[str] = mapped_column(String, nullable=False)
  concept_ids: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)
  pending_concept_ids: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)
  # concept_id -> ISO timestamp of the Stage B delivery currently expanding it.
  concept_claims: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)
  questions_generated: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
  questions_saved: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
  estimated_total: Mapped[int | None] = mapped_column(Integer, nullable=True)
  topic: Mapped[str | None] = mapped_column(String, nullable=True)
  error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
  error_code: Mapped[str | None] = mapped_column(String, nullable=True)
  retryable: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
  origin_address: Mapped[str | None] = mapped_column(String, nullable=True)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
  started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
  completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, index=True)
  duration_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)
