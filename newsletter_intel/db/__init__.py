"""DB module: config, engine, session, models, repositories."""
from newsletter_intel.db.config import DBConfig
from newsletter_intel.db.session import init_db, session_scope

__all__ = ["DBConfig", "init_db", "session_scope"]
