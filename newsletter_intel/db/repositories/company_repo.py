"""Company and CompanyMention repositories. Mention counts are only ever changed in SQL."""
from __future__ import annotations

from datetime import datetime
from uuid import uuid4

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from newsletter_intel.db.models.company import Company, CompanyMention
from newsletter_intel.db.schemas.company import CompanyDTO, CompanyMentionDTO
from newsletter_intel.db.utils import upsert_insert, wrap_integrity_error


class CompanyRepo:
    """Exact-name lookup plus conflict-safe create (unique on user_id, name)."""

    def get_by_name(self, session: Session, user_id: str, name: str) -> CompanyDTO | None:
        row = session.execute(
            select(Company).where(Company.user_id == user_id, Company.name == name)
        ).scalar_one_or_none()
        return CompanyDTO.model_validate(row) if row else None

    def increment_mentions(self, session: Session, company_id: str, now: datetime) -> CompanyDTO | None:
        """mention_count = mention_count + 1 in one UPDATE (no read-modify-write)."""
        session.execute(
            update(Company)
            .where(Company.id == company_id)
            .values(mention_count=Company.mention_count + 1, last_updated_at=now)
        )
        session.flush()
        row = session.execute(
            select(Company).where(Company.id == company_id).execution_options(populate_existing=True)
        ).scalar_one_or_none()
        return CompanyDTO.model_validate(row) if row else None

    def upsert(
        self,
        session: Session,
        user_id: str,
        name: str,
        normalized_name: str,
        now: datetime,
        *,
        description: str | None = None,
        industry: list[str] | None = None,
    ) -> tuple[CompanyDTO, bool]:
        """Insert a company with mention_count=1; on (user_id, name) conflict increment instead.

        Returns (company, created). created is False when another writer got there first.
        """
        new_id = str(uuid4())
        stmt = upsert_insert(session, Company).values(
            id=new_id,
            user_id=user_id,
            name=name,
            normalized_name=normalized_name,
            description=description,
            industry=list(industry or []),
            mention_count=1,
            first_seen_at=now,
            last_updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["user_id", "name"],
            set_={
                "mention_count": Company.mention_count + 1,
                "last_updated_at": now,
            },
        )
        session.execute(stmt)
        session.flush()
        row = session.execute(
            select(Company)
            .where(Company.user_id == user_id, Company.name == name)
            .execution_options(populate_existing=True)
        ).scalar_one()
        return CompanyDTO.model_validate(row), row.id == new_id

    def list_for_user(self, session: Session, user_id: str) -> list[CompanyDTO]:
        rows = session.execute(
            select(Company).where(Company.user_id == user_id).order_by(Company.name)
        ).scalars().all()
        return [CompanyDTO.model_validate(r) for r in rows]

    def count_for_user(self, session: Session, user_id: str) -> int:
        return session.execute(
            select(func.count()).select_from(Company).where(Company.user_id == user_id)
        ).scalar_one()


class CompanyMentionRepo:
    @wrap_integrity_error
    def create(
        self,
        session: Session,
        user_id: str,
        company_id: str,
        email_id: str,
        *,
        context: str | None,
        sentiment: str,
        confidence: float,
        extracted_at: datetime,
    ) -> CompanyMentionDTO:
        row = CompanyMention(
            id=str(uuid4()),
            user_id=user_id,
            company_id=company_id,
            email_id=email_id,
            context=context,
            sentiment=sentiment,
            confidence=confidence,
            extracted_at=extracted_at,
        )
        session.add(row)
        session.flush()
        return CompanyMentionDTO.model_validate(row)

    def list_by_email(self, session: Session, email_id: str) -> list[CompanyMentionDTO]:
        rows = session.execute(
            select(CompanyMention).where(CompanyMention.email_id == email_id)
        ).scalars().all()
        return [CompanyMentionDTO.model_validate(r) for r in rows]

    def count_for_user(self, session: Session, user_id: str) -> int:
        return session.execute(
            select(func.count()).select_from(CompanyMention).where(CompanyMention.user_id == user_id)
        ).scalar_one()
