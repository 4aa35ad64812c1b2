"""Progress broadcasting (fire-and-forget) and operator alerts."""
from __future__ import annotations

import asyncio
import json
import logging
from collections import defaultdict
from typing import Any

from newsletter_intel.clock import utc_now
from newsletter_intel.db.repositories import PipelineUpdateRepo
from newsletter_intel.db.session import session_scope
from newsletter_intel.pipeline.contracts import ProgressSinkPort

logger = logging.getLogger(__name__)

_ALERT_LEVELS = {"info": logging.INFO, "warning": logging.WARNING, "error": logging.ERROR}


class InMemoryProgressSink:
    """Process-local queues keyed by user. For tests and single-process dev."""

    def __init__(self) -> None:
        self._queues: dict[str, list[dict[str, Any]]] = defaultdict(list)

    async def publish(self, user_id: str, event: dict[str, Any]) -> None:
        self._queues[user_id].append(event)

    def consume(self, user_id: str) -> list[dict[str, Any]]:
        out = list(self._queues.get(user_id, []))
        self._queues.pop(user_id, None)
        return out

    def peek(self, user_id: str) -> list[dict[str, Any]]:
        return list(self._queues.get(user_id, []))


class DbProgressSink:
    """Persists events to pipeline_updates for a dashboard poller."""

    async def publish(self, user_id: str, event: dict[str, Any]) -> None:
        await asyncio.to_thread(self._append, user_id, event)

    def _append(self, user_id: str, event: dict[str, Any]) -> None:
        with session_scope() as session:
            PipelineUpdateRepo().append(session, user_id, event, utc_now())

    def consume_updates(self, user_id: str, limit: int = 100) -> list[dict[str, Any]]:
        with session_scope() as session:
            return [u.update for u in PipelineUpdateRepo().consume(session, user_id, limit)]


class ProgressBroadcaster:
    """
    broadcast() schedules the publish on the running loop and returns immediately.
    Publish failures are logged, never raised. drain() waits (bounded) for outstanding
    publishes so they are not lost when the invocation's loop closes.
    """

    def __init__(self, sink: ProgressSinkPort, *, drain_timeout_s: float = 2.0) -> None:
        self._sink = sink
        self._drain_timeout_s = drain_timeout_s
        self._pending: set[asyncio.Task] = set()

    def broadcast(self, user_id: str, event: dict[str, Any]) -> None:
        payload = {**event, "timestamp": utc_now().isoformat()}
        try:
            task = asyncio.get_running_loop().create_task(self._publish(user_id, payload))
        except RuntimeError:
            logger.warning("progress event dropped, no running loop: user_id=%s type=%s", user_id, event.get("type"))
            return
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _publish(self, user_id: str, payload: dict[str, Any]) -> None:
        try:
            await self._sink.publish(user_id, payload)
        except Exception:
            logger.warning("progress publish failed: user_id=%s type=%s", user_id, payload.get("type"), exc_info=True)

    async def drain(self) -> None:
        if not self._pending:
            return
        _, pending = await asyncio.wait(set(self._pending), timeout=self._drain_timeout_s)
        if pending:
            logger.warning("progress drain timed out with %d publish(es) outstanding", len(pending))


def progress_event(
    *,
    processed: int,
    total: int,
    companies: int,
    failed: int,
    message: str,
) -> dict[str, Any]:
    return {
        "type": "background_progress",
        "status": "extracting",
        "message": message,
        "processedCount": processed,
        "totalCount": total,
        "companiesExtracted": companies,
        "failedCount": failed,
    }


def complete_event(*, processed: int, companies: int) -> dict[str, Any]:
    return {
        "type": "background_complete",
        "status": "complete",
        "message": "All emails have been processed",
        "processedCount": processed,
        "companiesExtracted": companies,
    }


def emit_pipeline_alert(
    level: str,
    title: str,
    message: str,
    metrics: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Log an alert as `[PIPELINE:ALERT:<LEVEL>] <json>` for log-based monitors. Returns the alert."""
    alert = {
        "timestamp": utc_now().isoformat(),
        "type": level,
        "title": title,
        "message": message,
        "source": "newsletter-pipeline",
        "metrics": metrics or {},
    }
    logger.log(
        _ALERT_LEVELS.get(level, logging.INFO),
        "[PIPELINE:ALERT:%s] %s",
        level.upper(),
        json.dumps(alert, sort_keys=True, default=str),
    )
    return alert
