"""Progress broadcasting is fire-and-forget; alerts are a log line with a stable prefix."""
import asyncio
import json
import logging

import pytest

from newsletter_intel.pipeline.progress import (
    DbProgressSink,
    InMemoryProgressSink,
    ProgressBroadcaster,
    complete_event,
    emit_pipeline_alert,
    progress_event,
)


class BrokenSink:
    async def publish(self, user_id, event):
        raise ConnectionError("realtime channel down")


class SlowSink:
    def __init__(self):
        self.events = []

    async def publish(self, user_id, event):
        await asyncio.sleep(0.01)
        self.events.append(event)


def test_progress_event_shape():
    event = progress_event(processed=3, total=10, companies=5, failed=1, message="Background: Processed 3 emails")
    assert event == {
        "type": "background_progress",
        "status": "extracting",
        "message": "Background: Processed 3 emails",
        "processedCount": 3,
        "totalCount": 10,
        "companiesExtracted": 5,
        "failedCount": 1,
    }
    assert complete_event(processed=3, companies=5)["type"] == "background_complete"


@pytest.mark.asyncio
async def test_broadcast_adds_timestamp_and_drains():
    sink = SlowSink()
    broadcaster = ProgressBroadcaster(sink)
    broadcaster.broadcast("user-1", {"type": "background_progress"})
    broadcaster.broadcast("user-1", {"type": "background_complete"})
    assert sink.events == []
    await broadcaster.drain()
    assert [e["type"] for e in sink.events] == ["background_progress", "background_complete"]
    assert all("timestamp" in e for e in sink.events)


@pytest.mark.asyncio
async def test_publish_failure_is_logged_not_raised(caplog):
    broadcaster = ProgressBroadcaster(BrokenSink())
    with caplog.at_level(logging.WARNING):
        broadcaster.broadcast("user-1", {"type": "background_progress"})
        await broadcaster.drain()
    assert any("progress publish failed" in r.getMessage() for r in caplog.records)


def test_broadcast_without_loop_drops_event(caplog):
    sink = InMemoryProgressSink()
    broadcaster = ProgressBroadcaster(sink)
    with caplog.at_level(logging.WARNING):
        broadcaster.broadcast("user-1", {"type": "background_progress"})
    assert sink.peek("user-1") == []
    assert any("no running loop" in r.getMessage() for r in caplog.records)


@pytest.mark.asyncio
async def test_drain_is_bounded(caplog):
    class HangingSink:
        async def publish(self, user_id, event):
            await asyncio.sleep(10)

    broadcaster = ProgressBroadcaster(HangingSink(), drain_timeout_s=0.05)
    with caplog.at_level(logging.WARNING):
        broadcaster.broadcast("user-1", {"type": "background_progress"})
        await broadcaster.drain()
    assert any("drain timed out" in r.getMessage() for r in caplog.records)


@pytest.mark.asyncio
async def test_db_sink_round_trip(store):
    sink = DbProgressSink()
    await sink.publish("user-1", {"type": "background_progress", "processedCount": 1})
    await sink.publish("user-2", {"type": "background_progress", "processedCount": 9})
    assert sink.consume_updates("user-1") == [{"type": "background_progress", "processedCount": 1}]
    assert sink.consume_updates("user-1") == []


def test_memory_sink_consume_empties_queue():
    sink = InMemoryProgressSink()
    asyncio.run(sink.publish("user-1", {"type": "background_complete"}))
    assert len(sink.consume("user-1")) == 1
    assert sink.consume("user-1") == []


def test_alert_log_line(caplog):
    with caplog.at_level(logging.INFO):
        alert = emit_pipeline_alert("warning", "Slow batch", "took a while", {"userId": "user-1"})
    record = next(r for r in caplog.records if "[PIPELINE:ALERT:WARNING]" in r.getMessage())
    assert record.levelno == logging.WARNING
    payload = json.loads(record.getMessage().split(" ", 1)[1])
    assert payload["source"] == "newsletter-pipeline"
    assert payload["metrics"] == {"userId": "user-1"}
    assert alert["title"] == "Slow batch"
