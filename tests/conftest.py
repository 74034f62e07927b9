"""
Shared fixtures.

Every test runs with the ``invoice_kernel`` loggers configured at DEBUG
and an empty LogContext.  Database tests get a private in-memory SQLite
schema; service tests get a frozen clock and predictable tokens.
"""

import json
import logging
from collections.abc import Iterator
from datetime import datetime, timezone

import pytest
from sqlalchemy.orm import Session

from invoice_kernel.db.engine import (
    create_tables,
    get_session,
    init_engine_from_url,
    reset_engine,
)
from invoice_kernel.domain.clock import DeterministicClock
from invoice_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from invoice_kernel.services.settings_service import SettingsService
from invoice_services.invoice_service import InvoiceService

TEST_DATABASE_URL = "sqlite:///:memory:"


# =============================================================================
# Logging
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _suite_logging():
    reset_logging()
    configure_logging(level="DEBUG")
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _empty_log_context():
    LogContext.clear()
    yield
    LogContext.clear()


class _JSONCollector(logging.Handler):
    """Keeps each formatted record as a parsed dict."""

    def __init__(self):
        super().__init__(level=logging.DEBUG)
        self.setFormatter(StructuredFormatter())
        self.entries: list[dict] = []

    def emit(self, record: logging.LogRecord) -> None:
        self.entries.append(json.loads(self.format(record)))


@pytest.fixture
def captured_logs():
    """
    Structured records emitted during the test.

        def test_trace(captured_logs):
            compute_uniform_totals(items)
            assert any(e["message"] == "INVOICE_ENGINE_TRACE" for e in captured_logs())
    """
    collector = _JSONCollector()
    namespace = logging.getLogger("invoice_kernel")
    saved_level = namespace.level
    namespace.setLevel(logging.DEBUG)
    namespace.addHandler(collector)

    yield lambda: list(collector.entries)

    namespace.removeHandler(collector)
    namespace.setLevel(saved_level)


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def db_engine():
    """Fresh in-memory SQLite database with all tables."""
    eng = init_engine_from_url(TEST_DATABASE_URL)
    create_tables()
    yield eng
    reset_engine()


@pytest.fixture
def session(db_engine) -> Iterator[Session]:
    """Session on the in-memory database; rolled back at teardown."""
    sess = get_session()
    yield sess
    sess.rollback()
    sess.close()


# =============================================================================
# Clock and token fixtures
# =============================================================================


@pytest.fixture
def deterministic_clock():
    """Clock fixed at 2024-03-15 09:00 UTC."""
    return DeterministicClock(datetime(2024, 3, 15, 9, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def fixed_token():
    """Random-token source that always returns 'A' repeated."""

    def _token(length: int) -> str:
        return "A" * length

    return _token


@pytest.fixture
def counting_tokens():
    """Random-token source yielding distinct, predictable tokens."""
    counter = {"n": 0}

    def _token(length: int) -> str:
        counter["n"] += 1
        return str(counter["n"]).rjust(length, "X")

    return _token


# =============================================================================
# Service fixtures
# =============================================================================


@pytest.fixture
def settings_service(session: Session) -> SettingsService:
    return SettingsService(session)


@pytest.fixture
def invoice_service(session: Session, deterministic_clock, counting_tokens) -> InvoiceService:
    """InvoiceService with a fixed clock and predictable tokens."""
    share_counter = {"n": 0}

    def _share_token() -> str:
        share_counter["n"] += 1
        return f"share-{share_counter['n']:04d}"

    return InvoiceService(
        session,
        clock=deterministic_clock,
        token=counting_tokens,
        share_token=_share_token,
    )
