"""Email ORM model: one ingested newsletter e-mail and its extraction lifecycle."""
from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from newsletter_intel.db.base import Base, IdMixin, TimestampMixin


class Email(Base, IdMixin, TimestampMixin):
    """Work item for the pipeline. processing_status and extraction_status move in lockstep."""

    __tablename__ = "emails"

    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    newsletter_name: Mapped[str | None] = mapped_column(String(256), nullable=True)
    subject: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    received_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    clean_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    raw_html: Mapped[str | None] = mapped_column(Text, nullable=True)

    processing_status: Mapped[str] = mapped_column(String(32), nullable=False, default="pending")
    extraction_status: Mapped[str] = mapped_column(String(32), nullable=False, default="pending")
    extraction_started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    extraction_completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    companies_extracted: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    extraction_error: Mapped[str | None] = mapped_column(String(4096), nullable=True)

    __table_args__ = (
        Index("ix_emails_user_status_received", "user_id", "processing_status", "received_at"),
    )
