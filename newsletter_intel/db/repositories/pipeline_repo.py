"""Pipeline run history, dashboard update queue, per-user processing lock."""
from __future__ import annotations

import json
from datetime import datetime, timedelta
from typing import Any
from uuid import uuid4

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from newsletter_intel.db.models.pipeline import PipelineLock, PipelineRun, PipelineUpdate
from newsletter_intel.db.schemas.pipeline import PipelineRunDTO, PipelineUpdateDTO
from newsletter_intel.db.utils import json_serialize, upsert_insert


class PipelineRunRepo:
    def start(self, session: Session, user_id: str, trigger: str, started_at: datetime) -> PipelineRunDTO:
        row = PipelineRun(
            id=str(uuid4()),
            user_id=user_id,
            trigger=trigger,
            status="running",
            started_at=started_at,
            processed=0,
            companies_extracted=0,
            failed=0,
            follow_up_triggered=False,
        )
        session.add(row)
        session.flush()
        return PipelineRunDTO.model_validate(row)

    def finish(
        self,
        session: Session,
        run_id: str,
        *,
        status: str,
        finished_at: datetime,
        processed: int,
        companies_extracted: int,
        failed: int,
        remaining: int | None,
        follow_up_triggered: bool,
        error_summary: str | None = None,
    ) -> PipelineRunDTO | None:
        row = session.get(PipelineRun, run_id)
        if row is None:
            return None
        row.status = status
        row.finished_at = finished_at
        row.processed = processed
        row.companies_extracted = companies_extracted
        row.failed = failed
        row.remaining = remaining
        row.follow_up_triggered = follow_up_triggered
        row.error_summary = error_summary[:4096] if error_summary else None
        session.flush()
        return PipelineRunDTO.model_validate(row)

    def latest(self, session: Session, user_id: str) -> PipelineRunDTO | None:
        row = session.execute(
            select(PipelineRun)
            .where(PipelineRun.user_id == user_id)
            .order_by(PipelineRun.started_at.desc())
            .limit(1)
        ).scalar_one_or_none()
        return PipelineRunDTO.model_validate(row) if row else None


class PipelineUpdateRepo:
    """Queue of progress payloads stored as JSON text, read by dashboard pollers."""

    def append(self, session: Session, user_id: str, update_: dict[str, Any], created_at: datetime) -> str:
        row = PipelineUpdate(
            id=str(uuid4()),
            user_id=user_id,
            update_json=json_serialize(update_),
            consumed=False,
            created_at=created_at,
        )
        session.add(row)
        session.flush()
        return row.id

    def list_unconsumed(self, session: Session, user_id: str, limit: int = 100) -> list[PipelineUpdateDTO]:
        rows = session.execute(
            select(PipelineUpdate)
            .where(PipelineUpdate.user_id == user_id, PipelineUpdate.consumed.is_(False))
            .order_by(PipelineUpdate.created_at, PipelineUpdate.id)
            .limit(limit)
        ).scalars().all()
        return [_update_dto(r) for r in rows]

    def consume(self, session: Session, user_id: str, limit: int = 100) -> list[PipelineUpdateDTO]:
        """Return unconsumed updates and mark them consumed."""
        items = self.list_unconsumed(session, user_id, limit)
        if items:
            session.execute(
                update(PipelineUpdate)
                .where(PipelineUpdate.id.in_([i.id for i in items]))
                .values(consumed=True)
            )
            session.flush()
        return items

    def clear(self, session: Session, user_id: str) -> int:
        result = session.execute(delete(PipelineUpdate).where(PipelineUpdate.user_id == user_id))
        session.flush()
        return result.rowcount or 0


def _update_dto(row: PipelineUpdate) -> PipelineUpdateDTO:
    return PipelineUpdateDTO(
        id=row.id,
        user_id=row.user_id,
        update=json.loads(row.update_json),
        consumed=row.consumed,
        created_at=row.created_at,
    )


class PipelineLockRepo:
    """Row-per-user lease. Taken over only once expires_at has passed."""

    def acquire(self, session: Session, user_id: str, holder: str, now: datetime, ttl_s: float) -> bool:
        expires_at = now + timedelta(seconds=ttl_s)
        stmt = upsert_insert(session, PipelineLock).values(
            user_id=user_id,
            holder=holder,
            acquired_at=now,
            expires_at=expires_at,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["user_id"],
            set_={"holder": holder, "acquired_at": now, "expires_at": expires_at},
            where=PipelineLock.expires_at < now,
        )
        session.execute(stmt)
        session.flush()
        current = session.execute(
            select(PipelineLock.holder).where(PipelineLock.user_id == user_id)
        ).scalar_one_or_none()
        return current == holder

    def release(self, session: Session, user_id: str, holder: str) -> bool:
        result = session.execute(
            delete(PipelineLock).where(PipelineLock.user_id == user_id, PipelineLock.holder == holder)
        )
        session.flush()
        return bool(result.rowcount)

    def force_release(self, session: Session, user_id: str) -> bool:
        result = session.execute(delete(PipelineLock).where(PipelineLock.user_id == user_id))
        session.flush()
        return bool(result.rowcount)

    def is_locked(self, session: Session, user_id: str, now: datetime) -> bool:
        row = session.execute(
            select(PipelineLock.user_id).where(
                PipelineLock.user_id == user_id, PipelineLock.expires_at >= now
            )
        ).scalar_one_or_none()
        return row is not None
