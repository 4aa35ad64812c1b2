"""Session factory and unit-of-work context manager."""
from contextlib import contextmanager
from typing import Generator

from sqlalchemy.orm import Session, sessionmaker

from newsletter_intel.db.config import DBConfig
from newsletter_intel.db.engine import create_engine_from_config

# Module-level engine/session factory, set by init_db()
_sync_engine = None
SessionLocal = None


def init_db(cfg: DBConfig | None = None) -> None:
    """Initialize engine and session factory. Call once at app startup."""
    global _sync_engine, SessionLocal
    cfg = cfg or DBConfig()
    if _sync_engine is not None:
        _sync_engine.dispose()
    _sync_engine = create_engine_from_config(cfg)
    SessionLocal = sessionmaker(
        bind=_sync_engine,
        autoflush=True,
        expire_on_commit=True,
        autocommit=False,
        autobegin=True,
    )


def create_all() -> None:
    """Create every table registered on Base.metadata (dev/test convenience; use Alembic in prod)."""
    from newsletter_intel.db.base import Base
    import newsletter_intel.db.models  # noqa: F401

    if _sync_engine is None:
        init_db()
    Base.metadata.create_all(_sync_engine)


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """Session context: commit on success, rollback + re-raise on exception."""
    if SessionLocal is None:
        init_db()
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
