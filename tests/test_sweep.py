"""Cron sweep: every user with pending e-mails gets a run under one shared budget."""
import pytest

from conftest import ScriptedExtractor
from newsletter_intel.pipeline.errors import StoreUnavailableError
from newsletter_intel.pipeline.store import SqlWorkStore
from newsletter_intel.pipeline.sweep import run_sweep


@pytest.mark.asyncio
async def test_sweep_with_nothing_pending(make_processor, store):
    summary = await run_sweep(make_processor())
    assert summary == {
        "success": True,
        "message": "No pending emails to process",
        "processedUsers": 0,
        "totalUsers": 0,
        "results": [],
    }


@pytest.mark.asyncio
async def test_sweep_runs_each_user(make_processor, seed_emails, fake_clock):
    seed_emails(3, user_id="alice")
    seed_emails(2, user_id="bob")
    processor = make_processor(sweep_batch_size=5)

    summary = await run_sweep(processor)

    assert summary["totalUsers"] == 2
    assert summary["processedUsers"] == 2
    assert summary["message"] == "Processed 5 emails for 2 users"
    by_user = {r["userId"]: r for r in summary["results"]}
    assert by_user["alice"] == {"userId": "alice", "success": True, "processed": 3, "remaining": 0}
    assert by_user["bob"]["processed"] == 2


@pytest.mark.asyncio
async def test_sweep_stops_starting_users_when_budget_spent(make_processor, seed_emails, fake_clock):
    seed_emails(3, user_id="alice")
    seed_emails(3, user_id="bob")
    extractor = ScriptedExtractor(on_call=lambda: fake_clock.advance(5))
    processor = make_processor(extractor=extractor, max_processing_seconds=10.0, sweep_batch_size=5)

    summary = await run_sweep(processor)

    first, second = summary["results"]
    assert first["success"] is True
    assert first["processed"] == 2
    assert second == {"userId": second["userId"], "success": False, "error": "Sweep budget exhausted"}
    assert summary["processedUsers"] == 1


class NoUserQueryStore(SqlWorkStore):
    def users_with_pending(self, limit):
        raise RuntimeError("database is locked")


@pytest.mark.asyncio
async def test_sweep_store_failure(make_processor, store):
    with pytest.raises(StoreUnavailableError):
        await run_sweep(make_processor(store_override=NoUserQueryStore()))
