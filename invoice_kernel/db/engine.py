"""
Engine and session management.

One process-wide engine, built by ``init_engine_from_url()``, backs every
session the services use.  Two backends are supported:

    postgresql://...   production; READ COMMITTED, pre-pinged QueuePool
    sqlite:///...      local use and tests; ``sqlite:///:memory:`` shares a
                       single connection (StaticPool) so every session sees
                       the same schema

Services only flush.  ``session_scope()`` is where work is committed or
rolled back.

This module sits below the models: ``create_tables``/``drop_tables``
import ``invoice_kernel.models`` lazily to register the tables.
"""

import atexit
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.engine import URL, Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from invoice_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None

_NOT_INITIALISED = "Engine not initialized. Call init_engine_from_url() first."


def _engine_options(
    url: URL,
    *,
    echo: bool,
    pool_pre_ping: bool,
    pool_size: int,
    max_overflow: int,
    pool_timeout: int,
    pool_recycle: int,
) -> dict[str, Any]:
    options: dict[str, Any] = {"echo": echo, "pool_pre_ping": pool_pre_ping}

    if url.get_backend_name() != "sqlite":
        options.update(
            poolclass=QueuePool,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_timeout=pool_timeout,
            pool_recycle=pool_recycle,
            isolation_level="READ COMMITTED",
        )
        return options

    options["connect_args"] = {"check_same_thread": False}
    if url.database in (None, "", ":memory:"):
        options["poolclass"] = StaticPool
    return options


def init_engine_from_url(
    database_url: str,
    echo: bool = False,
    pool_size: int = 20,
    max_overflow: int = 10,
    pool_pre_ping: bool = True,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
) -> Engine:
    """
    Build the process-wide engine and session factory.

    Calling it again replaces the previous engine (the old one is not
    disposed; use ``reset_engine()`` for that).  The pool arguments only
    apply to PostgreSQL.
    """
    global _engine, _SessionFactory

    url = make_url(database_url)
    options = _engine_options(
        url,
        echo=echo,
        pool_pre_ping=pool_pre_ping,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_timeout=pool_timeout,
        pool_recycle=pool_recycle,
    )

    _engine = create_engine(url, **options)
    _SessionFactory = sessionmaker(bind=_engine, expire_on_commit=False)

    configure_logging()
    logger.info(
        "engine_initialized",
        extra={
            "dialect": url.get_backend_name(),
            "database": url.database,
            "echo": echo,
        },
    )
    return _engine


def _require_factory() -> sessionmaker[Session]:
    if _SessionFactory is None:
        raise RuntimeError(_NOT_INITIALISED)
    return _SessionFactory


def get_engine() -> Engine:
    """The current engine.  RuntimeError before initialisation."""
    if _engine is None:
        raise RuntimeError(_NOT_INITIALISED)
    return _engine


def get_session() -> Session:
    return _require_factory()()


def get_session_factory() -> sessionmaker[Session]:
    return _require_factory()


@contextmanager
def session_scope() -> Iterator[Session]:
    """
    Unit of work: commit on clean exit, roll back and re-raise otherwise.

        with session_scope() as session:
            InvoiceService(session).create_invoice(request)
    """
    session = get_session()
    logger.debug("transaction_started")
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        logger.warning("transaction_rolled_back", exc_info=True)
        raise
    else:
        logger.debug("transaction_committed")
    finally:
        session.close()


def create_tables() -> None:
    """Create every table registered under ``invoice_kernel.models``."""
    import invoice_kernel.models  # noqa: F401
    from invoice_kernel.db.base import Base

    Base.metadata.create_all(get_engine())
    logger.info("tables_created", extra={"tables": sorted(Base.metadata.tables)})


def drop_tables() -> None:
    """Drop every registered table.  Tests and local resets only."""
    import invoice_kernel.models  # noqa: F401
    from invoice_kernel.db.base import Base

    Base.metadata.drop_all(get_engine())
    logger.info("tables_dropped")


def reset_engine() -> None:
    """Dispose the engine and forget the session factory."""
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionFactory = None


def is_postgres() -> bool:
    return _engine is not None and _engine.dialect.name == "postgresql"


@atexit.register
def _dispose_on_exit() -> None:
    if _engine is not None:
        _engine.dispose()
