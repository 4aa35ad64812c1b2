"""Pytest config and fixtures: temp SQLite DB, fake clock, scripted pipeline collaborators."""
import os
import tempfile
from datetime import datetime, timedelta, timezone
from typing import Callable

import pytest

from newsletter_intel import clock
from newsletter_intel.db.base import Base
from newsletter_intel.db.config import DBConfig
from newsletter_intel.db.engine import create_engine_from_config
from newsletter_intel.db.repositories import EmailRepo
from newsletter_intel.db.session import create_all, init_db, session_scope
from newsletter_intel.pipeline.continuation import reset_continuation_queues
from newsletter_intel.pipeline.models import ExtractionResult
from newsletter_intel.pipeline.processor import BackgroundProcessor
from newsletter_intel.pipeline.progress import InMemoryProgressSink
from newsletter_intel.pipeline.settings import PipelineSettings
from newsletter_intel.pipeline.store import SqlWorkStore

# Import models so Base.metadata has all tables
import newsletter_intel.db.models  # noqa: F401

LONG_TEXT = "Acme Robotics raised a Series B this week to expand its warehouse automation line."


@pytest.fixture
def temp_db_url() -> str:
    """SQLite URL for a temporary file (WAL-friendly)."""
    fd, path = tempfile.mkstemp(suffix=".db")
    os.close(fd)
    yield f"sqlite:///{path}"
    for suffix in ("", "-wal", "-shm"):
        try:
            os.unlink(path + suffix)
        except OSError:
            pass


@pytest.fixture
def db_config(temp_db_url: str) -> DBConfig:
    """DBConfig pointing to temp SQLite file."""
    return DBConfig(db_url=temp_db_url, echo_sql=False)


@pytest.fixture
def sync_engine(db_config: DBConfig):
    engine = create_engine_from_config(db_config)
    yield engine
    engine.dispose()


@pytest.fixture
def db_with_tables(sync_engine):
    """Create all tables on the engine (for tests that need schema)."""
    Base.metadata.create_all(sync_engine)
    return sync_engine


@pytest.fixture
def store(db_config: DBConfig) -> SqlWorkStore:
    """SqlWorkStore bound to the temp DB through the module-level session factory."""
    init_db(db_config)
    create_all()
    return SqlWorkStore()


class FakeClock:
    """Monotonic seconds and UTC time that only move when told to."""

    def __init__(self, start: datetime | None = None) -> None:
        self.t = 0.0
        self.start = start or datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)

    def advance(self, seconds: float) -> None:
        self.t += seconds

    def monotonic(self) -> float:
        return self.t

    def utc_now(self) -> datetime:
        return self.start + timedelta(seconds=self.t)


@pytest.fixture
def fake_clock():
    fc = FakeClock()
    clock.set_monotonic(fc.monotonic)
    clock.set_utc_now(fc.utc_now)
    yield fc
    clock.reset_clocks()


@pytest.fixture(autouse=True)
def _clean_continuation_queue():
    reset_continuation_queues()
    yield
    reset_continuation_queues()


class ScriptedExtractor:
    """ExtractorPort stand-in. companies_for maps content to raw company dicts."""

    def __init__(
        self,
        companies_for: Callable[[str], list[dict]] | None = None,
        *,
        fail_when: Callable[[str], bool] | None = None,
        on_call: Callable[[], None] | None = None,
    ) -> None:
        self.companies_for = companies_for or (lambda content: [{"name": "Acme Robotics"}])
        self.fail_when = fail_when or (lambda content: False)
        self.on_call = on_call
        self.calls: list[tuple[str, str]] = []

    async def extract(self, content: str, source_label: str) -> ExtractionResult:
        self.calls.append((content, source_label))
        if self.on_call is not None:
            self.on_call()
        if self.fail_when(content):
            raise RuntimeError("extractor quota exceeded")
        return ExtractionResult(entities=self.companies_for(content))


class RecordingDispatcher:
    """ContinuationPort stand-in: records every token, answers with a fixed outcome."""

    def __init__(self, outcome: bool = True, error: Exception | None = None) -> None:
        self.outcome = outcome
        self.error = error
        self.calls: list[dict] = []

    async def dispatch(self, token, *, origin=None, headers=None) -> bool:
        self.calls.append({"token": token, "origin": origin, "headers": dict(headers or {})})
        if self.error is not None:
            raise self.error
        return self.outcome


@pytest.fixture
def seed_emails(store):
    """seed_emails(n, user_id=..., text=...) -> ids, newest first."""

    def _seed(
        n: int,
        *,
        user_id: str = "user-1",
        text: str | Callable[[int], str] = LONG_TEXT,
        newsletter_name: str | None = "Tech Weekly",
        raw_html: str | None = None,
    ) -> list[str]:
        base = datetime(2026, 2, 1, tzinfo=timezone.utc)
        ids = []
        with session_scope() as session:
            repo = EmailRepo()
            for i in range(n):
                body = text(i) if callable(text) else text
                dto = repo.create(
                    session,
                    user_id,
                    newsletter_name=newsletter_name,
                    subject=f"Issue {i}",
                    received_at=base + timedelta(hours=i),
                    clean_text=body,
                    raw_html=raw_html,
                )
                ids.append(dto.id)
        return list(reversed(ids))

    return _seed


@pytest.fixture
def pipeline_settings() -> PipelineSettings:
    return PipelineSettings(
        max_processing_seconds=50.0,
        public_url="http://pipeline.test",
        progress_backend="memory",
        cron_secret=None,
    )


@pytest.fixture
def make_processor(store, pipeline_settings):
    """make_processor(extractor=..., dispatcher=..., sink=..., **settings_overrides)."""

    def _make(extractor=None, dispatcher=None, sink=None, store_override=None, **overrides):
        settings = pipeline_settings.model_copy(update=overrides) if overrides else pipeline_settings
        return BackgroundProcessor(
            store=store_override or store,
            extractor=extractor or ScriptedExtractor(),
            dispatcher=dispatcher or RecordingDispatcher(),
            sink=sink or InMemoryProgressSink(),
            settings=settings,
        )

    return _make
