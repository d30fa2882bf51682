# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
SQLAlchemy engine, session factory, declarative base, and the FastAPI
dependency that provides a transactional DB session per request.

The database is the only arbiter of concurrent mutation: nothing about an
account or a reset token is cached in process memory.
"""

from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import declarative_base, sessionmaker

from core.config import settings


def _engine_options(url: str) -> dict:
    """Bounded waits: pool checkout everywhere, statement_timeout on PostgreSQL."""
    options = {"pool_pre_ping": True}
    backend = make_url(url).get_backend_name()
    if backend == "postgresql":
        options["pool_timeout"] = settings.db_pool_timeout
        options["connect_args"] = {
            "options": f"-c statement_timeout={settings.db_statement_timeout_ms}",
        }
    elif backend == "sqlite":
        options["connect_args"] = {
            "check_same_thread": False,
            "timeout": settings.db_pool_timeout,
        }
    return options


# pool_pre_ping keeps idle connections alive across server-side idle timeouts
engine = create_engine(settings.database_url, **_engine_options(settings.database_url))

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """
    FastAPI dependency.  Yields a session for the duration of the request,
    then closes it.  Use with Depends(get_db).
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
