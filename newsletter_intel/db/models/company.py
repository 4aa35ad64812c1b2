"""Company and CompanyMention ORM models (per-user knowledge base)."""
from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, DateTime, Float, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from newsletter_intel.db.base import Base, IdMixin


class Company(Base, IdMixin):
    """Canonical company per (user_id, exact name). normalized_name is a slug, not a dedup key."""

    __tablename__ = "companies"

    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(512), nullable=False)
    normalized_name: Mapped[str] = mapped_column(String(600), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    industry: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    mention_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    first_seen_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    last_updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (UniqueConstraint("user_id", "name", name="uq_companies_user_name"),)

    mentions: Mapped[list["CompanyMention"]] = relationship(
        "CompanyMention",
        back_populates="company",
        cascade="all, delete-orphan",
    )


class CompanyMention(Base, IdMixin):
    """One extraction of a company from one e-mail. Insert-only."""

    __tablename__ = "company_mentions"

    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    company_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("companies.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    email_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("emails.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    context: Mapped[str | None] = mapped_column(Text, nullable=True)
    sentiment: Mapped[str] = mapped_column(String(16), nullable=False, default="neutral")
    confidence: Mapped[float] = mapped_column(Float, nullable=False, default=0.8)
    extracted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    company: Mapped["Company"] = relationship("Company", back_populates="mentions")
