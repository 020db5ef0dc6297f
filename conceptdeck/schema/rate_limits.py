from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Index, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from conceptdeck.core.database import Base


class RateLimitAttempt(Base):
  __tablename__ = "rate_limit_attempts"
  __table_args__ = (Index("ix_rate_limit_attempts_origin_created", "origin_address", "created_at"),)

  id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
  origin_address: Mapped[str] = mapped_column(String, nullable=False)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
