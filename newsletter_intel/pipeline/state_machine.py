"""Item lifecycle: pending -> processing -> completed | failed, both status columns in lockstep."""
from __future__ import annotations

import asyncio
import logging
from enum import Enum

from newsletter_intel.clock import utc_now
from newsletter_intel.db.schemas import EmailDTO
from newsletter_intel.pipeline.contracts import WorkStorePort
from newsletter_intel.pipeline.errors import InvalidTransitionError

logger = logging.getLogger(__name__)

_ERROR_MAX_CHARS = 4096


class ItemStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


ALLOWED_TRANSITIONS: dict[ItemStatus, frozenset[ItemStatus]] = {
    ItemStatus.PENDING: frozenset({ItemStatus.PROCESSING}),
    ItemStatus.PROCESSING: frozenset({ItemStatus.COMPLETED, ItemStatus.FAILED}),
    ItemStatus.COMPLETED: frozenset(),
    ItemStatus.FAILED: frozenset(),
}


def check_transition(current: ItemStatus, target: ItemStatus) -> None:
    if target not in ALLOWED_TRANSITIONS[current]:
        raise InvalidTransitionError(f"Illegal transition {current.value} -> {target.value}")


class ItemStateMachine:
    """
    Drives items through their lifecycle for one run and persists every transition.
    The state it tracks is the state it last wrote, so a terminal item cannot regress
    within the run even if the store is re-read.
    """

    def __init__(self, store: WorkStorePort) -> None:
        self._store = store
        self._states: dict[str, ItemStatus] = {}

    def state_of(self, item_id: str) -> ItemStatus | None:
        return self._states.get(item_id)

    async def start(self, item: EmailDTO) -> None:
        """pending -> processing. Written before extraction so an in-flight item is visible."""
        current = self._states.get(item.id) or ItemStatus(item.processing_status)
        check_transition(current, ItemStatus.PROCESSING)
        await self._write(
            item.id,
            ItemStatus.PROCESSING,
            extraction_started_at=utc_now(),
            extraction_error=None,
        )

    async def complete(self, item_id: str, extracted_count: int) -> None:
        self._require(item_id, ItemStatus.COMPLETED)
        await self._write(
            item_id,
            ItemStatus.COMPLETED,
            extraction_completed_at=utc_now(),
            companies_extracted=extracted_count,
            extraction_error=None,
        )

    async def fail(self, item_id: str, error_message: str) -> None:
        self._require(item_id, ItemStatus.FAILED)
        await self._write(
            item_id,
            ItemStatus.FAILED,
            extraction_completed_at=utc_now(),
            extraction_error=(error_message or "Unknown error")[:_ERROR_MAX_CHARS],
        )

    def _require(self, item_id: str, target: ItemStatus) -> None:
        current = self._states.get(item_id)
        if current is None:
            raise InvalidTransitionError(f"Item {item_id} was not started in this run")
        check_transition(current, target)

    async def _write(self, item_id: str, status: ItemStatus, **fields: object) -> None:
        await asyncio.to_thread(
            self._store.update_work_item_status,
            item_id,
            processing_status=status.value,
            extraction_status=status.value,
            **fields,
        )
        self._states[item_id] = status
        logger.debug("item_transition", extra={"item_id": item_id, "status": status.value})
