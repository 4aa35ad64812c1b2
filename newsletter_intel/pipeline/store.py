"""SqlWorkStore: WorkStorePort over SQLAlchemy repositories, one session_scope per call."""
from __future__ import annotations

from datetime import datetime
from typing import Any

from newsletter_intel.clock import utc_now
from newsletter_intel.db.repositories import (
    CompanyMentionRepo,
    CompanyRepo,
    EmailRepo,
    PipelineLockRepo,
    PipelineRunRepo,
)
from newsletter_intel.db.schemas import CompanyDTO, CompanyMentionDTO, EmailDTO
from newsletter_intel.db.session import session_scope


class SqlWorkStore:
    """Each method is its own unit of work (commit on success, rollback on error)."""

    def __init__(self) -> None:
        self._emails = EmailRepo()
        self._companies = CompanyRepo()
        self._mentions = CompanyMentionRepo()
        self._locks = PipelineLockRepo()
        self._runs = PipelineRunRepo()

    def fetch_pending_batch(self, user_id: str, limit: int) -> list[EmailDTO]:
        with session_scope() as session:
            return self._emails.list_pending(session, user_id, limit)

    def update_work_item_status(self, item_id: str, **fields: Any) -> None:
        with session_scope() as session:
            self._emails.update_status(session, item_id, fields)

    def find_company_by_name(self, user_id: str, name: str) -> CompanyDTO | None:
        with session_scope() as session:
            return self._companies.get_by_name(session, user_id, name)

    def increment_company_mentions(self, company_id: str, now: datetime) -> CompanyDTO | None:
        with session_scope() as session:
            return self._companies.increment_mentions(session, company_id, now)

    def upsert_company(
        self,
        user_id: str,
        name: str,
        normalized_name: str,
        now: datetime,
        *,
        description: str | None = None,
        industry: list[str] | None = None,
    ) -> tuple[CompanyDTO, bool]:
        with session_scope() as session:
            return self._companies.upsert(
                session,
                user_id,
                name,
                normalized_name,
                now,
                description=description,
                industry=industry,
            )

    def insert_mention(
        self,
        user_id: str,
        company_id: str,
        item_id: str,
        *,
        context: str | None,
        sentiment: str,
        confidence: float,
        extracted_at: datetime,
    ) -> CompanyMentionDTO:
        with session_scope() as session:
            return self._mentions.create(
                session,
                user_id,
                company_id,
                item_id,
                context=context,
                sentiment=sentiment,
                confidence=confidence,
                extracted_at=extracted_at,
            )

    def count_pending(self, user_id: str) -> int:
        with session_scope() as session:
            return self._emails.count_pending(session, user_id)

    def users_with_pending(self, limit: int) -> list[str]:
        with session_scope() as session:
            return self._emails.users_with_pending(session, limit)

    def status_counts(self, user_id: str) -> dict[str, int]:
        with session_scope() as session:
            return self._emails.status_counts(session, user_id)

    def company_counts(self, user_id: str) -> dict[str, int]:
        with session_scope() as session:
            return {
                "companies": self._companies.count_for_user(session, user_id),
                "mentions": self._mentions.count_for_user(session, user_id),
            }

    def acquire_user_lock(self, user_id: str, holder: str, ttl_s: float) -> bool:
        with session_scope() as session:
            return self._locks.acquire(session, user_id, holder, utc_now(), ttl_s)

    def release_user_lock(self, user_id: str, holder: str) -> bool:
        with session_scope() as session:
            return self._locks.release(session, user_id, holder)

    def force_release_user_lock(self, user_id: str) -> bool:
        with session_scope() as session:
            return self._locks.force_release(session, user_id)

    def is_user_locked(self, user_id: str) -> bool:
        with session_scope() as session:
            return self._locks.is_locked(session, user_id, utc_now())

    def start_run(self, user_id: str, trigger: str) -> str:
        with session_scope() as session:
            return self._runs.start(session, user_id, trigger, utc_now()).id

    def finish_run(self, run_id: str, **summary: Any) -> None:
        with session_scope() as session:
            self._runs.finish(session, run_id, finished_at=utc_now(), **summary)
