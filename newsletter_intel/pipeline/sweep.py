"""Periodic sweep: run the processor for each user that still has pending e-mails."""
from __future__ import annotations

import asyncio
import logging
from typing import Any

from newsletter_intel.pipeline.budget import ExecutionBudget
from newsletter_intel.pipeline.errors import StoreUnavailableError
from newsletter_intel.pipeline.processor import BackgroundProcessor, describe_error

logger = logging.getLogger(__name__)


async def run_sweep(processor: BackgroundProcessor) -> dict[str, Any]:
    """
    One cron tick. Users are processed one after another under a single shared budget;
    each user's run may schedule its own continuation for what it leaves behind.
    """
    settings = processor.settings
    store = processor.store
    try:
        user_ids = await asyncio.to_thread(store.users_with_pending, settings.sweep_user_limit)
    except Exception as e:
        raise StoreUnavailableError("Failed to query pending emails") from e

    if not user_ids:
        return {
            "success": True,
            "message": "No pending emails to process",
            "processedUsers": 0,
            "totalUsers": 0,
            "results": [],
        }

    logger.info("Sweep found %d users with pending emails", len(user_ids))
    budget = ExecutionBudget(settings.max_processing_seconds)
    results: list[dict[str, Any]] = []
    for user_id in user_ids:
        if budget.expired():
            results.append({"userId": user_id, "success": False, "error": "Sweep budget exhausted"})
            continue
        try:
            outcome = await processor.process(
                user_id,
                settings.sweep_batch_size,
                trigger="cron",
                budget_s=budget.remaining(),
            )
        except Exception as e:
            logger.exception("Sweep failed for user %s", user_id)
            results.append({"userId": user_id, "success": False, "error": describe_error(e)})
            continue
        results.append(
            {
                "userId": user_id,
                "success": outcome.success,
                "processed": outcome.processed,
                "remaining": outcome.remaining,
            }
        )

    total_processed = sum(r.get("processed", 0) for r in results)
    successful = sum(1 for r in results if r["success"])
    logger.info(
        "Sweep complete: processed %d emails for %d/%d users",
        total_processed,
        successful,
        len(user_ids),
    )
    return {
        "success": True,
        "message": f"Processed {total_processed} emails for {successful} users",
        "processedUsers": successful,
        "totalUsers": len(user_ids),
        "results": results,
    }
