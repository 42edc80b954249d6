"""
Pytest fixtures for the billing kernel test suite.

Provides:
- Structured logging configuration and log capture
- A deterministic clock and default config
- In-memory SQLite sessions for service tests
- Engagement fixtures built from tests.factories
"""

import json
import logging
from datetime import date
from io import StringIO
from typing import Generator

import pytest
from sqlalchemy.orm import Session

from billing_config import BillingConfig
from billing_kernel.db.engine import (
    create_tables,
    get_session,
    init_engine_from_url,
    reset_engine,
)
from billing_kernel.domain.clock import DeterministicClock
from billing_kernel.domain.dtos import BillingMode, Engagement
from billing_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from tests.factories import make_engagement


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture billing_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs):
            build_invoice(...)
            logs = captured_logs()
            assert any(r["message"] == "invoice_built" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("billing_kernel")
    root.addHandler(handler)
    previous_level = root.level
    root.setLevel(logging.DEBUG)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Time and configuration
# =============================================================================


@pytest.fixture
def clock() -> DeterministicClock:
    """Clock fixed at 2025-04-15 12:00 UTC."""
    return DeterministicClock.at_date(date(2025, 4, 15))


@pytest.fixture
def config() -> BillingConfig:
    return BillingConfig()


# =============================================================================
# Database
# =============================================================================


@pytest.fixture
def session() -> Generator[Session, None, None]:
    """Fresh in-memory SQLite database per test."""
    init_engine_from_url("sqlite://")
    create_tables()
    db_session = get_session()
    try:
        yield db_session
    finally:
        db_session.rollback()
        db_session.close()
        reset_engine()


# =============================================================================
# Engagement fixtures
# =============================================================================


@pytest.fixture
def hourly_engagement() -> Engagement:
    """$100/h engagement for calendar 2025."""
    return make_engagement()


@pytest.fixture
def fixed_fee_engagement() -> Engagement:
    """$5,000 fixed-fee engagement for calendar 2025."""
    return make_engagement(billing_mode=BillingMode.FIXED_FEE, fixed_fee="5000")
