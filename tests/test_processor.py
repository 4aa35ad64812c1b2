"""BackgroundProcessor end to end against SQLite with scripted extractor and dispatcher."""
import pytest

from conftest import LONG_TEXT, RecordingDispatcher, ScriptedExtractor
from newsletter_intel.db.repositories import EmailRepo, PipelineRunRepo
from newsletter_intel.db.session import session_scope
from newsletter_intel.pipeline.errors import InvalidRequestError, StoreUnavailableError
from newsletter_intel.pipeline.progress import InMemoryProgressSink
from newsletter_intel.pipeline.store import SqlWorkStore


def _email(email_id):
    with session_scope() as session:
        return EmailRepo().get(session, email_id)


def _numbered(i):
    return f"{LONG_TEXT} #{i}"


@pytest.mark.asyncio
async def test_small_backlog_finishes_in_one_run(make_processor, seed_emails, fake_clock):
    ids = seed_emails(3)
    dispatcher = RecordingDispatcher()
    processor = make_processor(dispatcher=dispatcher)

    result = await processor.process("user-1", 10)

    assert result.to_response() == {
        "success": True,
        "processed": 3,
        "remaining": 0,
        "companiesExtracted": 3,
        "failed": 0,
        "followUpTriggered": False,
        "message": "All emails processed successfully",
    }
    assert dispatcher.calls == []
    for email_id in ids:
        row = _email(email_id)
        assert row.processing_status == "completed"
        assert row.extraction_status == "completed"
        assert row.companies_extracted == 1


@pytest.mark.asyncio
async def test_budget_cuts_run_and_schedules_follow_up(make_processor, seed_emails, fake_clock):
    seed_emails(30)
    dispatcher = RecordingDispatcher()
    extractor = ScriptedExtractor(on_call=lambda: fake_clock.advance(1))
    processor = make_processor(extractor=extractor, dispatcher=dispatcher, max_processing_seconds=12.0)

    result = await processor.process("user-1", 5)

    assert result.processed == 12
    assert result.remaining == 18
    assert result.follow_up_triggered is True
    assert result.message == "Processed 12 emails, 18 remaining"
    (call,) = dispatcher.calls
    assert call["token"].to_payload() == {"userId": "user-1", "batchSize": 5}


@pytest.mark.asyncio
async def test_follow_up_batch_is_capped_at_remaining(make_processor, seed_emails, fake_clock):
    seed_emails(12)
    dispatcher = RecordingDispatcher()
    extractor = ScriptedExtractor(on_call=lambda: fake_clock.advance(1))
    processor = make_processor(extractor=extractor, dispatcher=dispatcher, max_processing_seconds=10.0)

    result = await processor.process("user-1", 5)

    assert result.remaining == 2
    assert dispatcher.calls[0]["token"].batch_size == 2


@pytest.mark.asyncio
async def test_one_failing_item_does_not_stop_the_batch(make_processor, seed_emails, fake_clock):
    texts = {0: _numbered(0), 1: _numbered(1) + " FAIL", 2: _numbered(2)}
    ids = seed_emails(3, text=lambda i: texts[i])
    extractor = ScriptedExtractor(fail_when=lambda content: "FAIL" in content)
    processor = make_processor(extractor=extractor)

    result = await processor.process("user-1")

    assert result.processed == 3
    assert result.failed == 1
    assert result.companies_extracted == 2
    assert result.remaining == 0
    failed_id = ids[1]
    assert result.errors == [f"{failed_id}: extractor quota exceeded"]
    row = _email(failed_id)
    assert row.processing_status == "failed"
    assert row.extraction_status == "failed"
    assert row.extraction_error == "extractor quota exceeded"
    with session_scope() as session:
        run = PipelineRunRepo().latest(session, "user-1")
    assert run.status == "completed_with_errors"
    assert run.failed == 1


@pytest.mark.asyncio
async def test_short_content_completes_without_extraction(make_processor, seed_emails, fake_clock):
    (email_id,) = seed_emails(1, text="tiny")
    extractor = ScriptedExtractor()
    processor = make_processor(extractor=extractor)

    result = await processor.process("user-1")

    assert extractor.calls == []
    assert result.processed == 1
    assert result.companies_extracted == 0
    row = _email(email_id)
    assert row.processing_status == "completed"
    assert row.companies_extracted == 0


@pytest.mark.asyncio
async def test_raw_html_used_when_clean_text_missing(make_processor, seed_emails, fake_clock):
    seed_emails(1, text="", raw_html="<p>Globex opened a new office in Springfield this week.</p>")
    extractor = ScriptedExtractor()
    processor = make_processor(extractor=extractor)
    await processor.process("user-1")
    assert extractor.calls[0][0].startswith("<p>Globex")
    assert extractor.calls[0][1] == "Tech Weekly"


@pytest.mark.asyncio
async def test_items_processed_newest_first(make_processor, seed_emails, fake_clock):
    seed_emails(3, text=_numbered)
    extractor = ScriptedExtractor()
    processor = make_processor(extractor=extractor)
    await processor.process("user-1", 10)
    assert [content for content, _ in extractor.calls] == [_numbered(2), _numbered(1), _numbered(0)]


@pytest.mark.asyncio
async def test_missing_user_is_invalid(make_processor):
    processor = make_processor()
    with pytest.raises(InvalidRequestError):
        await processor.process("  ")
    with pytest.raises(InvalidRequestError):
        await processor.process(None)


@pytest.mark.asyncio
async def test_no_pending_work(make_processor, store, fake_clock):
    dispatcher = RecordingDispatcher()
    sink = InMemoryProgressSink()
    processor = make_processor(dispatcher=dispatcher, sink=sink)

    result = await processor.process("user-1")

    assert result.processed == 0
    assert result.remaining == 0
    assert result.follow_up_triggered is False
    assert result.message == "No pending emails to process"
    assert dispatcher.calls == []
    assert sink.peek("user-1") == []


class FailingFetchStore(SqlWorkStore):
    def fetch_pending_batch(self, user_id, limit):
        raise RuntimeError("database is locked")


@pytest.mark.asyncio
async def test_fetch_failure_before_any_work_is_store_unavailable(make_processor, store, seed_emails, fake_clock):
    seed_emails(2)
    processor = make_processor(store_override=FailingFetchStore())
    with pytest.raises(StoreUnavailableError):
        await processor.process("user-1")
    assert store.is_user_locked("user-1") is False
    with session_scope() as session:
        assert PipelineRunRepo().latest(session, "user-1").status == "failed"


@pytest.mark.asyncio
async def test_lock_held_by_another_run(make_processor, store, seed_emails, fake_clock):
    seed_emails(3)
    store.acquire_user_lock("user-1", "other-invocation", 120)
    extractor = ScriptedExtractor()
    processor = make_processor(extractor=extractor)

    result = await processor.process("user-1")

    assert result.processed == 0
    assert result.remaining == 3
    assert result.follow_up_triggered is False
    assert result.message == "Processing already in progress"
    assert extractor.calls == []


@pytest.mark.asyncio
async def test_lock_released_after_run(make_processor, store, seed_emails, fake_clock):
    seed_emails(2)
    processor = make_processor()
    await processor.process("user-1")
    assert store.is_user_locked("user-1") is False
    assert store.acquire_user_lock("user-1", "next", 120) is True


@pytest.mark.asyncio
async def test_progress_events_per_item_and_completion(make_processor, seed_emails, fake_clock):
    seed_emails(3)
    sink = InMemoryProgressSink()
    processor = make_processor(sink=sink)

    await processor.process("user-1", 10)

    events = sink.consume("user-1")
    progress = [e for e in events if e["type"] == "background_progress"]
    assert [e["processedCount"] for e in progress] == [1, 2, 3]
    assert all(e["totalCount"] == 3 for e in progress)
    assert progress[-1]["companiesExtracted"] == 3
    (complete,) = [e for e in events if e["type"] == "background_complete"]
    assert complete["processedCount"] == 3


@pytest.mark.asyncio
async def test_dispatch_error_reports_no_follow_up(make_processor, seed_emails, fake_clock):
    seed_emails(4)
    dispatcher = RecordingDispatcher(error=RuntimeError("network down"))
    extractor = ScriptedExtractor(on_call=lambda: fake_clock.advance(5))
    processor = make_processor(extractor=extractor, dispatcher=dispatcher, max_processing_seconds=10.0)

    result = await processor.process("user-1", 5)

    assert result.processed == 2
    assert result.remaining == 2
    assert result.follow_up_triggered is False
    assert len(dispatcher.calls) == 1


@pytest.mark.asyncio
async def test_follow_up_carries_identity_and_origin(make_processor, seed_emails, fake_clock):
    seed_emails(10)
    dispatcher = RecordingDispatcher()
    extractor = ScriptedExtractor(on_call=lambda: fake_clock.advance(10))
    processor = make_processor(extractor=extractor, dispatcher=dispatcher, max_processing_seconds=20.0)

    await processor.process(
        "user-1",
        5,
        request_headers={
            "Cookie": "session=abc",
            "X-Forwarded-Host": "app.example.com",
            "Content-Type": "application/json",
        },
    )

    (call,) = dispatcher.calls
    assert call["origin"] == "https://app.example.com"
    assert call["headers"] == {"cookie": "session=abc"}


class StuckStartStore(SqlWorkStore):
    """Cannot move one particular e-mail out of pending."""

    def __init__(self, stuck_id):
        super().__init__()
        self.stuck_id = stuck_id

    def update_work_item_status(self, item_id, **fields):
        if item_id == self.stuck_id:
            raise RuntimeError("row is locked")
        super().update_work_item_status(item_id, **fields)


@pytest.mark.asyncio
async def test_item_stuck_in_pending_is_attempted_once(make_processor, seed_emails, fake_clock):
    ids = seed_emails(3)
    extractor = ScriptedExtractor()
    processor = make_processor(extractor=extractor, store_override=StuckStartStore(ids[0]))

    result = await processor.process("user-1", 10)

    assert result.processed == 3
    assert result.failed == 1
    assert result.remaining == 1
    assert len(extractor.calls) == 2
    assert _email(ids[0]).processing_status == "pending"


@pytest.mark.asyncio
async def test_zero_budget_override_is_honoured(make_processor, seed_emails, fake_clock):
    seed_emails(4)
    extractor = ScriptedExtractor()
    dispatcher = RecordingDispatcher()
    processor = make_processor(extractor=extractor, dispatcher=dispatcher)

    result = await processor.process("user-1", 5, budget_s=0.0)

    assert result.processed == 0
    assert result.remaining == 4
    assert extractor.calls == []
    assert result.follow_up_triggered is True
    assert dispatcher.calls[0]["token"].batch_size == 4
