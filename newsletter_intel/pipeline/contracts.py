"""Protocols the pipeline depends on (not concrete implementations)."""
from __future__ import annotations

from datetime import datetime
from typing import Any, Mapping, Protocol, runtime_checkable

from newsletter_intel.db.schemas import CompanyDTO, CompanyMentionDTO, EmailDTO
from newsletter_intel.pipeline.models import ContinuationToken, ExtractionResult


@runtime_checkable
class WorkStorePort(Protocol):
    """Data-store capability. Methods are blocking; the pipeline runs them in worker threads."""

    def fetch_pending_batch(self, user_id: str, limit: int) -> list[EmailDTO]:
        ...

    def update_work_item_status(self, item_id: str, **fields: Any) -> None:
        ...

    def find_company_by_name(self, user_id: str, name: str) -> CompanyDTO | None:
        ...

    def increment_company_mentions(self, company_id: str, now: datetime) -> CompanyDTO | None:
        ...

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
        ...

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
        ...

    def count_pending(self, user_id: str) -> int:
        ...

    def users_with_pending(self, limit: int) -> list[str]:
        ...

    def status_counts(self, user_id: str) -> dict[str, int]:
        ...

    def acquire_user_lock(self, user_id: str, holder: str, ttl_s: float) -> bool:
        ...

    def release_user_lock(self, user_id: str, holder: str) -> bool:
        ...

    def force_release_user_lock(self, user_id: str) -> bool:
        ...

    def is_user_locked(self, user_id: str) -> bool:
        ...

    def start_run(self, user_id: str, trigger: str) -> str:
        ...

    def finish_run(self, run_id: str, **summary: Any) -> None:
        ...


@runtime_checkable
class ExtractorPort(Protocol):
    """Company extraction from newsletter text. May raise on timeout, quota, malformed output."""

    async def extract(self, content: str, source_label: str) -> ExtractionResult:
        ...


@runtime_checkable
class ProgressSinkPort(Protocol):
    async def publish(self, user_id: str, event: dict[str, Any]) -> None:
        ...


@runtime_checkable
class ContinuationPort(Protocol):
    """Hands a continuation token to whatever runs the next invocation. Returns True if accepted."""

    async def dispatch(
        self,
        token: ContinuationToken,
        *,
        origin: str | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> bool:
        ...
