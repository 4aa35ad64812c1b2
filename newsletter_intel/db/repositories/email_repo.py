"""Email repository: pending batches, lifecycle updates, per-status counts."""
from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import uuid4

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from newsletter_intel.db.models.email import Email
from newsletter_intel.db.schemas.email import EmailDTO

# Columns the pipeline may write on a status transition.
_STATUS_FIELDS = frozenset(
    {
        "processing_status",
        "extraction_status",
        "extraction_started_at",
        "extraction_completed_at",
        "companies_extracted",
        "extraction_error",
    }
)


class EmailRepo:
    """Returns DTOs only."""

    def create(
        self,
        session: Session,
        user_id: str,
        *,
        newsletter_name: str | None = None,
        subject: str | None = None,
        received_at: datetime | None = None,
        clean_text: str | None = None,
        raw_html: str | None = None,
        status: str = "pending",
    ) -> EmailDTO:
        row = Email(
            id=str(uuid4()),
            user_id=user_id,
            newsletter_name=newsletter_name,
            subject=subject,
            received_at=received_at,
            clean_text=clean_text,
            raw_html=raw_html,
            processing_status=status,
            extraction_status=status,
            companies_extracted=0,
        )
        session.add(row)
        session.flush()
        return EmailDTO.model_validate(row)

    def get(self, session: Session, email_id: str) -> EmailDTO | None:
        row = session.get(Email, email_id)
        return EmailDTO.model_validate(row) if row else None

    def list_pending(self, session: Session, user_id: str, limit: int) -> list[EmailDTO]:
        """Pending e-mails for a user, most recently received first."""
        rows = session.execute(
            select(Email)
            .where(Email.user_id == user_id, Email.processing_status == "pending")
            .order_by(Email.received_at.desc(), Email.id)
            .limit(limit)
        ).scalars().all()
        return [EmailDTO.model_validate(r) for r in rows]

    def update_status(self, session: Session, email_id: str, fields: dict[str, Any]) -> int:
        """Single-statement update of lifecycle columns. Returns affected row count."""
        unknown = set(fields) - _STATUS_FIELDS
        if unknown:
            raise ValueError(f"Not a lifecycle column: {sorted(unknown)}")
        result = session.execute(update(Email).where(Email.id == email_id).values(**fields))
        session.flush()
        return result.rowcount or 0

    def count_pending(self, session: Session, user_id: str) -> int:
        return session.execute(
            select(func.count())
            .select_from(Email)
            .where(Email.user_id == user_id, Email.processing_status == "pending")
        ).scalar_one()

    def status_counts(self, session: Session, user_id: str) -> dict[str, int]:
        rows = session.execute(
            select(Email.processing_status, func.count(Email.id))
            .where(Email.user_id == user_id)
            .group_by(Email.processing_status)
        ).all()
        return {status: count for status, count in rows}

    def users_with_pending(self, session: Session, limit: int) -> list[str]:
        rows = session.execute(
            select(Email.user_id)
            .where(Email.processing_status == "pending")
            .group_by(Email.user_id)
            .order_by(func.max(Email.received_at).desc())
            .limit(limit)
        ).scalars().all()
        return list(rows)
