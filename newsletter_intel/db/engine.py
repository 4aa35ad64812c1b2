"""Engine creation with SQLite PRAGMAs."""
from sqlalchemy import event
from sqlalchemy.engine import Engine, create_engine

from newsletter_intel.db.config import DBConfig


def _apply_sqlite_pragmas(dbapi_conn, connection_record, cfg: DBConfig):
    # PRAGMA journal_mode cannot run inside a transaction. Engine is created
    # with isolation_level=None so we're in autocommit here.
    cursor = dbapi_conn.cursor()
    try:
        cursor.execute(f"PRAGMA journal_mode={cfg.sqlite_journal_mode};")
        cursor.execute(f"PRAGMA foreign_keys={'ON' if cfg.sqlite_foreign_keys else 'OFF'};")
        cursor.execute(f"PRAGMA synchronous={cfg.sqlite_synchronous};")
        cursor.execute(f"PRAGMA busy_timeout={cfg.sqlite_busy_timeout_ms};")
    finally:
        cursor.close()


def _ensure_sqlite_dir(db_url: str) -> None:
    """Create the parent directory of a file-backed SQLite URL (default ./data/app.db)."""
    from pathlib import Path

    path = db_url.split("///", 1)[-1]
    if path and path != ":memory:":
        Path(path).parent.mkdir(parents=True, exist_ok=True)


def create_engine_from_config(cfg: DBConfig) -> Engine:
    """Create sync SQLAlchemy engine. SQLite gets PRAGMAs; other backends get pool_pre_ping."""
    if "sqlite" in cfg.db_url:
        _ensure_sqlite_dir(cfg.db_url)
        # isolation_level=None so the connection is in autocommit when created,
        # allowing PRAGMA journal_mode=WAL to run (it cannot run inside a transaction).
        engine = create_engine(
            cfg.db_url,
            echo=cfg.echo_sql,
            connect_args={"isolation_level": None, "check_same_thread": False},
        )
        event.listens_for(engine, "connect")(
            lambda c, cr: _apply_sqlite_pragmas(c, cr, cfg)
        )
        return engine
    return create_engine(cfg.db_url, echo=cfg.echo_sql, pool_pre_ping=cfg.pool_pre_ping)
