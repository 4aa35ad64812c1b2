"""PipelineRun, PipelineUpdate, PipelineLock ORM models (invocation tracking, dashboard feed, per-user lock)."""
from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from newsletter_intel.db.base import Base, IdMixin


class PipelineRun(Base, IdMixin):
    """One invocation of the background processor."""

    __tablename__ = "pipeline_runs"

    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    trigger: Mapped[str] = mapped_column(String(32), nullable=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    finished_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    processed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    companies_extracted: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    failed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    remaining: Mapped[int | None] = mapped_column(Integer, nullable=True)
    follow_up_triggered: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    error_summary: Mapped[str | None] = mapped_column(String(4096), nullable=True)

    __table_args__ = (
        Index("ix_pipeline_runs_user_id_started_at", "user_id", "started_at"),
    )


class PipelineUpdate(Base, IdMixin):
    """Progress event queued for a dashboard poller; consumed once read."""

    __tablename__ = "pipeline_updates"

    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    update_json: Mapped[str] = mapped_column(Text, nullable=False)
    consumed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_pipeline_updates_user_consumed_created", "user_id", "consumed", "created_at"),
    )


class PipelineLock(Base):
    """Per-user advisory lock. A row whose expires_at has passed may be taken over."""

    __tablename__ = "pipeline_locks"

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    holder: Mapped[str] = mapped_column(String(64), nullable=False)
    acquired_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
