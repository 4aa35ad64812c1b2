"""BackgroundProcessor: the time-boxed fetch loop for one user."""
from __future__ import annotations

import asyncio
import logging
from typing import Mapping
from uuid import uuid4

from newsletter_intel.clock import utc_now
from newsletter_intel.db.schemas import EmailDTO
from newsletter_intel.pipeline.budget import ExecutionBudget
from newsletter_intel.pipeline.continuation import ContinuationScheduler, forwardable_headers, resolve_origin
from newsletter_intel.pipeline.contracts import ContinuationPort, ExtractorPort, ProgressSinkPort, WorkStorePort
from newsletter_intel.pipeline.errors import InvalidRequestError, StoreUnavailableError
from newsletter_intel.pipeline.extraction import ExtractionGateway, select_content
from newsletter_intel.pipeline.models import ProcessResult, RunContext
from newsletter_intel.pipeline.progress import ProgressBroadcaster, progress_event
from newsletter_intel.pipeline.resolver import EntityResolver
from newsletter_intel.pipeline.settings import PipelineSettings
from newsletter_intel.pipeline.state_machine import ItemStateMachine

logger = logging.getLogger(__name__)


def describe_error(e: BaseException) -> str:
    return str(e) or type(e).__name__


def result_message(processed: int, remaining: int) -> str:
    if processed == 0 and remaining == 0:
        return "No pending emails to process"
    if remaining > 0:
        return f"Processed {processed} emails, {remaining} remaining"
    return "All emails processed successfully"


class BackgroundProcessor:
    """
    Pulls pending e-mails in batches until the budget expires or the backlog is empty.
    Each item goes pending -> processing -> completed|failed; one failing item never stops
    the batch. Afterwards the pending count decides whether a follow-up is dispatched.
    """

    def __init__(
        self,
        store: WorkStorePort,
        extractor: ExtractorPort,
        dispatcher: ContinuationPort,
        sink: ProgressSinkPort,
        settings: PipelineSettings | None = None,
    ) -> None:
        self._settings = settings or PipelineSettings()
        self._store = store
        self._gateway = ExtractionGateway(extractor, self._settings)
        self._resolver = EntityResolver(store, self._settings)
        self._broadcaster = ProgressBroadcaster(sink, drain_timeout_s=self._settings.progress_drain_timeout_s)
        self._scheduler = ContinuationScheduler(store, dispatcher, self._broadcaster)

    @property
    def settings(self) -> PipelineSettings:
        return self._settings

    @property
    def store(self) -> WorkStorePort:
        return self._store

    async def process(
        self,
        user_id: str | None,
        batch_size: int | None = None,
        *,
        request_headers: Mapping[str, str] | None = None,
        trigger: str = "manual",
        budget_s: float | None = None,
    ) -> ProcessResult:
        """
        Run one invocation. Raises InvalidRequestError (no userId) or StoreUnavailableError
        (nothing could be fetched, or the remaining count failed); everything else is
        reported in the result.
        """
        if not user_id or not str(user_id).strip():
            raise InvalidRequestError("userId is required")
        user_id = str(user_id).strip()
        headers = request_headers or {}
        ctx = RunContext(
            user_id=user_id,
            batch_size=self._settings.clamp_batch_size(batch_size),
            budget=ExecutionBudget(budget_s if budget_s is not None else self._settings.max_processing_seconds),
            started_at=utc_now(),
            trigger=trigger,
            forwarded_headers=forwardable_headers(
                headers,
                self._settings.forwarded_headers,
                self._settings.forwarded_header_prefixes,
            ),
            origin=resolve_origin(headers, self._settings.public_url),
        )
        logger.info(
            "Starting background processor: user_id=%s batch_size=%d budget_s=%.1f trigger=%s",
            user_id,
            ctx.batch_size,
            ctx.budget.ceiling_s,
            trigger,
        )

        holder = uuid4().hex
        if self._settings.user_lock_enabled and not await self._acquire_lock(ctx, holder):
            remaining = await self._scheduler.count_remaining(ctx)
            logger.info("Processing already in progress for user %s; skipping", user_id)
            return ProcessResult(
                processed=0,
                remaining=remaining,
                companies_extracted=0,
                follow_up_triggered=False,
                message="Processing already in progress",
            )

        ctx.run_id = await self._start_run(ctx)
        try:
            try:
                await self._run_loop(ctx)
                remaining = await self._scheduler.count_remaining(ctx)
            finally:
                if self._settings.user_lock_enabled:
                    await self._release_lock(ctx, holder)
            follow_up = await self._scheduler.schedule(ctx, remaining)
        except Exception as e:
            await self._finish_run(ctx, status="failed", remaining=None, follow_up=False, error=describe_error(e))
            raise
        finally:
            await self._broadcaster.drain()

        result = ProcessResult(
            processed=ctx.processed_count,
            remaining=remaining,
            companies_extracted=ctx.extracted_count,
            failed=ctx.failed_count,
            errors=list(ctx.errors) or None,
            follow_up_triggered=follow_up,
            message=result_message(ctx.processed_count, remaining),
        )
        await self._finish_run(
            ctx,
            status="completed_with_errors" if ctx.failed_count else "completed",
            remaining=remaining,
            follow_up=follow_up,
            error="; ".join(ctx.errors) or None,
        )
        logger.info(
            "pipeline_run",
            extra={
                "user_id": user_id,
                "run_id": ctx.run_id,
                "processed": result.processed,
                "remaining": result.remaining,
                "companies_extracted": result.companies_extracted,
                "failed": result.failed,
                "follow_up_triggered": result.follow_up_triggered,
                "elapsed_s": round(ctx.budget.elapsed(), 3),
            },
        )
        return result

    async def _run_loop(self, ctx: RunContext) -> None:
        machine = ItemStateMachine(self._store)
        while not ctx.budget.expired():
            try:
                batch = await asyncio.to_thread(self._store.fetch_pending_batch, ctx.user_id, ctx.batch_size)
            except Exception as e:
                if ctx.processed_count == 0:
                    raise StoreUnavailableError("Failed to fetch pending emails") from e
                logger.exception("Fetch failed after %d emails; stopping this run", ctx.processed_count)
                return
            if not batch:
                logger.info("No more pending emails for user %s", ctx.user_id)
                return
            fresh = [item for item in batch if item.id not in ctx.attempted]
            if not fresh:
                logger.warning(
                    "Fetched batch for user %s holds only emails already attempted in this run; stopping",
                    ctx.user_id,
                )
                return
            ctx.queued_count += len(fresh)
            for item in fresh:
                if ctx.budget.expired():
                    logger.info(
                        "Budget exhausted after %.1fs; processed %d emails",
                        ctx.budget.elapsed(),
                        ctx.processed_count,
                    )
                    return
                await self._process_item(ctx, machine, item)

    async def _process_item(self, ctx: RunContext, machine: ItemStateMachine, item: EmailDTO) -> None:
        ctx.attempted.add(item.id)
        try:
            await machine.start(item)
            content = select_content(item)
            saved = 0
            if self._gateway.is_extractable(content):
                result = await self._gateway.extract(content, item.newsletter_name)
                for entity in result.entities:
                    await self._resolver.resolve(ctx.user_id, entity, item.id)
                    saved += 1
                    ctx.extracted_count += 1
            await machine.complete(item.id, saved)
            message = f"Background: Processed {ctx.processed_count + 1} emails"
        except Exception as e:
            error = describe_error(e)
            logger.exception("Failed to process email %s", item.id)
            ctx.errors.append(f"{item.id}: {error}")
            ctx.failed_count += 1
            await self._mark_failed(machine, item.id, error)
            message = f"Background: Failed to process {item.newsletter_name or 'newsletter'} ({error})"
        ctx.processed_count += 1
        self._broadcaster.broadcast(
            ctx.user_id,
            progress_event(
                processed=ctx.processed_count,
                total=ctx.queued_count,
                companies=ctx.extracted_count,
                failed=ctx.failed_count,
                message=message,
            ),
        )

    async def _mark_failed(self, machine: ItemStateMachine, item_id: str, error: str) -> None:
        try:
            await machine.fail(item_id, error)
        except Exception:
            logger.exception("Could not record failure for email %s", item_id)

    async def _acquire_lock(self, ctx: RunContext, holder: str) -> bool:
        try:
            return await asyncio.to_thread(
                self._store.acquire_user_lock,
                ctx.user_id,
                holder,
                self._settings.user_lock_ttl_s,
            )
        except Exception as e:
            raise StoreUnavailableError("Failed to acquire processing lock") from e

    async def _release_lock(self, ctx: RunContext, holder: str) -> None:
        try:
            await asyncio.to_thread(self._store.release_user_lock, ctx.user_id, holder)
        except Exception:
            logger.exception("Failed to release processing lock for user %s", ctx.user_id)

    async def _start_run(self, ctx: RunContext) -> str | None:
        try:
            return await asyncio.to_thread(self._store.start_run, ctx.user_id, ctx.trigger)
        except Exception:
            logger.exception("Failed to record pipeline run start for user %s", ctx.user_id)
            return None

    async def _finish_run(
        self,
        ctx: RunContext,
        *,
        status: str,
        remaining: int | None,
        follow_up: bool,
        error: str | None,
    ) -> None:
        if ctx.run_id is None:
            return
        try:
            await asyncio.to_thread(
                self._store.finish_run,
                ctx.run_id,
                status=status,
                processed=ctx.processed_count,
                companies_extracted=ctx.extracted_count,
                failed=ctx.failed_count,
                remaining=remaining,
                follow_up_triggered=follow_up,
                error_summary=error,
            )
        except Exception:
            logger.exception("Failed to record pipeline run finish: run_id=%s", ctx.run_id)
