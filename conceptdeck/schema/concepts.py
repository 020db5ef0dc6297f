from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from conceptdeck.core.database import Base


class Concept(Base):
  __tablename__ = "concepts"
  __table_args__ = (Index("ix_concepts_owner_normalized_title", "owner_id", "normalized_title"),)

  concept_id: Mapped[str] = mapped_column(String, primary_key=True)
  owner_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
  title: Mapped[str] = mapped_column(String, nullable=False)
  normalized_title: Mapped[str] = mapped_column(String, nullable=False)
  description: Mapped[str] = mapped_column(Text, nullable=False)
  phrasing_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
  thin_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
  conflict_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
  embedding: Mapped[list | None] = mapped_column(JSONB, nullable=True)
  generation_job_id: Mapped[str | None] = mapped_column(String, nullable=True, index=True)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class Phrasing(Base):
  __tablename__ = "phrasings"
  __table_args__ = (Index("ux_phrasings_concept_normalized_question", "concept_id", "normalized_question", unique=True), Index("ix_phrasings_owner_concept_created", "owner_id", "concept_id", "created_at"))

  phrasing_id: Mapped[str] = mapped_column(String, primary_key=True)
  owner_id: Mapped[str] = mapped_column(String, nullable=False)
  concept_id: Mapped[str] = mapped_column(ForeignKey("concepts.concept_id", ondelete="CASCADE"), nullable=False)
  question: Mapped[str] = mapped_column(Text, nullable=False)
  normalized_question: Mapped[str] = mapped_column(Text, nullable=False)
  explanation: Mapped[str] = mapped_column(Text, nullable=False)
  type: Mapped[str] = mapped_column(String, nullable=False)
  options: Mapped[list] = mapped_column(JSONB, nullable=False)
  correct_answer: Mapped[str] = mapped_column(String, nullable=False)
  embedding: Mapped[list | None] = mapped_column(JSONB, nullable=True)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
