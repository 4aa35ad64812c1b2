"""
Continuation: after the fetch loop, hand leftover work to a follow-up invocation.
Transports are swappable behind ContinuationPort:
  - HttpSelfInvoker: POST to this service's own process endpoint (serverless-style)
  - QueueContinuationDispatcher: in-process topic queue drained by continuation_worker_tick
"""
from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from typing import TYPE_CHECKING, Any, Mapping

import httpx

from newsletter_intel.pipeline.contracts import ContinuationPort, WorkStorePort
from newsletter_intel.pipeline.errors import StoreUnavailableError
from newsletter_intel.pipeline.models import ContinuationToken, RunContext
from newsletter_intel.pipeline.progress import ProgressBroadcaster, complete_event, emit_pipeline_alert
from newsletter_intel.pipeline.settings import PipelineSettings

if TYPE_CHECKING:
    from newsletter_intel.pipeline.processor import BackgroundProcessor

logger = logging.getLogger(__name__)

CONTINUATION_TOPIC = "pipeline.continue"
TRIGGER_HEADER = "x-pipeline-trigger"

_queues: dict[str, list[dict[str, Any]]] = defaultdict(list)
# Names of live consumers of the continuation topic (e.g. the CLI drain loop).
_workers: set[str] = set()


def get_continuation_queues() -> dict[str, list[dict[str, Any]]]:
    return _queues


def reset_continuation_queues() -> None:
    _queues.clear()
    _workers.clear()


def register_continuation_worker(name: str = "default") -> None:
    _workers.add(name)


def unregister_continuation_worker(name: str = "default") -> None:
    _workers.discard(name)


def has_continuation_worker() -> bool:
    return bool(_workers)


def resolve_origin(headers: Mapping[str, str], public_url: str) -> str:
    """Forwarded host (with forwarded proto, default https) if present, else the configured public URL."""
    lowered = {k.lower(): v for k, v in headers.items()}
    host = (lowered.get("x-forwarded-host") or "").split(",")[0].strip()
    if host:
        proto = (lowered.get("x-forwarded-proto") or "https").split(",")[0].strip()
        return f"{proto}://{host}"
    return public_url.rstrip("/")


def forwardable_headers(
    headers: Mapping[str, str],
    names: list[str],
    prefixes: list[str],
) -> dict[str, str]:
    """Only identity headers survive: exact names plus session-vendor prefixes. Keys lower-cased."""
    allowed = {n.lower() for n in names}
    lowered_prefixes = tuple(p.lower() for p in prefixes)
    out: dict[str, str] = {}
    for key, value in headers.items():
        k = key.lower()
        if k in allowed or (lowered_prefixes and k.startswith(lowered_prefixes)):
            out[k] = value
    return out


class HttpSelfInvoker:
    """
    POSTs {userId, batchSize} to <origin><process_path>. A dispatch counts as soon as the
    request is accepted: True on a non-error status, and also True on a read timeout after
    the request went out. The follow-up runs for up to its own budget while
    continuation_timeout_s is a few seconds, so most real dispatches end in that timeout
    and report True with no status seen. Connect/write failures and statuses >= 400 give False.
    """

    def __init__(self, settings: PipelineSettings, *, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._settings = settings
        self._transport = transport

    async def dispatch(
        self,
        token: ContinuationToken,
        *,
        origin: str | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> bool:
        url = f"{(origin or self._settings.public_url).rstrip('/')}{self._settings.process_path}"
        send_headers = dict(headers or {})
        send_headers[TRIGGER_HEADER] = "continuation"
        timeout = httpx.Timeout(self._settings.continuation_timeout_s)
        try:
            async with httpx.AsyncClient(timeout=timeout, transport=self._transport) as client:
                resp = await client.post(url, json=token.to_payload(), headers=send_headers)
        except httpx.ReadTimeout:
            logger.info("continuation sent, not awaiting completion: user_id=%s url=%s", token.user_id, url)
            return True
        except httpx.HTTPError as e:
            logger.warning("continuation dispatch failed: user_id=%s url=%s error=%s", token.user_id, url, e)
            return False
        if resp.status_code >= 400:
            logger.warning(
                "continuation rejected: user_id=%s url=%s status=%d",
                token.user_id,
                url,
                resp.status_code,
            )
            return False
        return True


class QueueContinuationDispatcher:
    """
    Publishes tokens to the in-process continuation topic. Identity headers are not needed.
    Without a registered worker nothing would consume the token, so it is not queued and
    the dispatch reports False.
    """

    async def dispatch(
        self,
        token: ContinuationToken,
        *,
        origin: str | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> bool:
        if not has_continuation_worker():
            logger.warning(
                "continuation not queued, no worker consumes %s: user_id=%s",
                CONTINUATION_TOPIC,
                token.user_id,
            )
            return False
        _queues[CONTINUATION_TOPIC].append(token.to_payload())
        return True


async def continuation_worker_tick(processor: "BackgroundProcessor") -> int:
    """
    Consume all queued continuation tokens and run each one.
    Returns the number of tokens consumed.
    """
    pending = _queues.get(CONTINUATION_TOPIC, [])
    if not pending:
        return 0
    jobs = list(pending)
    del pending[:]
    for job in jobs:
        try:
            await processor.process(job["userId"], job.get("batchSize"), trigger="continuation")
        except Exception as e:
            logger.exception("Continuation job failed for user %s: %s", job.get("userId"), e)
    return len(jobs)


class ContinuationScheduler:
    """Counts what is left after the loop and, if anything is, dispatches exactly one follow-up."""

    def __init__(
        self,
        store: WorkStorePort,
        dispatcher: ContinuationPort,
        broadcaster: ProgressBroadcaster,
    ) -> None:
        self._store = store
        self._dispatcher = dispatcher
        self._broadcaster = broadcaster

    async def count_remaining(self, ctx: RunContext) -> int:
        try:
            return await asyncio.to_thread(self._store.count_pending, ctx.user_id)
        except Exception as e:
            raise StoreUnavailableError("Failed to count pending emails") from e

    async def schedule(self, ctx: RunContext, remaining: int) -> bool:
        """Returns followUpTriggered. Never raises: a failed dispatch is logged and reported as False."""
        if remaining <= 0:
            if ctx.processed_count > 0:
                self._broadcaster.broadcast(
                    ctx.user_id,
                    complete_event(processed=ctx.processed_count, companies=ctx.extracted_count),
                )
                emit_pipeline_alert(
                    "info",
                    "Background Processing Complete",
                    f"Processed {ctx.processed_count} emails, extracted {ctx.extracted_count} companies",
                    {
                        "userId": ctx.user_id,
                        "processedCount": ctx.processed_count,
                        "companiesExtracted": ctx.extracted_count,
                    },
                )
            return False

        token = ContinuationToken(user_id=ctx.user_id, batch_size=min(ctx.batch_size, remaining))
        try:
            triggered = await self._dispatcher.dispatch(
                token,
                origin=ctx.origin,
                headers=ctx.forwarded_headers,
            )
        except Exception:
            logger.exception("continuation scheduling failed: user_id=%s", ctx.user_id)
            triggered = False
        if triggered:
            logger.info(
                "continuation scheduled: user_id=%s batch_size=%d remaining=%d",
                ctx.user_id,
                token.batch_size,
                remaining,
            )
        return bool(triggered)
