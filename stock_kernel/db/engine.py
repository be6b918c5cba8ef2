"""
Engine and sessions (``stock_kernel.db.engine``).

One process-wide engine, set up by ``init_engine_from_url``; services take
their ``Session`` from ``get_session`` or ``get_session_factory``.

Backends
--------
- PostgreSQL (production): pooled connections at READ COMMITTED.  Order and
  write-off transitions lock their row ``FOR UPDATE`` and purchase orders
  carry an optimistic version column on top.
- SQLite (tests, local use): an in-memory URL shares a single connection so
  every session sees the same database; a file URL gets a connection per
  session.

Calling any accessor before ``init_engine_from_url`` raises RuntimeError.
"""

from sqlalchemy import create_engine
from sqlalchemy.engine import URL, Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from stock_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_sessions: sessionmaker[Session] | None = None

_NOT_INITIALIZED = "No database engine. Call init_engine_from_url() first."


def _is_memory_sqlite(url: URL) -> bool:
    return url.get_backend_name() == "sqlite" and url.database in (None, "", ":memory:")


def _engine_options(url: URL, pool_size: int, pool_recycle: int) -> dict:
    if url.get_backend_name() == "sqlite":
        options: dict = {"connect_args": {"check_same_thread": False}}
        if _is_memory_sqlite(url):
            options["poolclass"] = StaticPool
        return options
    return {
        "pool_size": pool_size,
        "max_overflow": pool_size // 2,
        "pool_pre_ping": True,
        "pool_recycle": pool_recycle,
        "isolation_level": "READ COMMITTED",
    }


def init_engine_from_url(
    database_url: str,
    echo: bool = False,
    pool_size: int = 10,
    pool_recycle: int = 1800,
) -> Engine:
    """
    Create the engine for ``database_url`` and a session factory bound to it.

    Replaces any engine set up earlier.  Sessions keep loaded rows after a
    commit (``expire_on_commit=False``).
    """
    global _engine, _sessions

    reset_engine()
    url = make_url(database_url)
    _engine = create_engine(url, echo=echo, **_engine_options(url, pool_size, pool_recycle))
    _sessions = sessionmaker(bind=_engine, expire_on_commit=False)

    configure_logging()
    logger.info(
        "engine_initialized",
        extra={
            "backend": url.get_backend_name(),
            "database": url.database if url.get_backend_name() == "sqlite" else url.host,
            "shared_connection": _is_memory_sqlite(url),
        },
    )
    return _engine


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    """Factory for callers that need one session per thread or request."""
    if _sessions is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _sessions


def get_session() -> Session:
    return get_session_factory()()


def create_tables() -> None:
    """Create the catalog, ledger and fulfillment tables that do not exist yet."""
    from stock_kernel.db.base import Base
    from stock_modules._orm_registry import import_all_orm_models

    import_all_orm_models()
    Base.metadata.create_all(get_engine())
    logger.info("tables_created", extra={"tables": sorted(Base.metadata.tables)})


def reset_engine() -> None:
    """Dispose the engine and forget the session factory."""
    global _engine, _sessions

    if _engine is not None:
        _engine.dispose()
    _engine = None
    _sessions = None
