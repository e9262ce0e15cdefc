"""
Pytest fixtures for the advance tax test suite.

Provides:
- Structured logging configured once per run, with a log capture fixture
- A fresh database per test (in-memory SQLite by default)
- A deterministic clock and in-memory fakes for every collaborator
- A wired ``AdvanceTaxService``

Environment Variables:
- ADVTAX_TEST_DATABASE_URL: database URL for the suite.  Defaults to an
  in-memory SQLite database; point it at PostgreSQL to run the same tests
  against the production backend.
"""

import json
import logging
import os
from datetime import date
from decimal import Decimal
from io import StringIO
from typing import Generator
from uuid import UUID, uuid4

import pytest
from sqlalchemy.orm import Session

from advtax_config import clear_policy_cache, get_active_policy
from advtax_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session,
    init_engine_from_url,
    reset_engine,
)
from advtax_kernel.domain.clock import DeterministicClock
from advtax_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from advtax_modules.advance_tax.collaborators import YtdFinancials
from advtax_modules.advance_tax.config import AdvanceTaxConfig
from advtax_modules.advance_tax.locking import AssessmentLockRegistry
from advtax_modules.advance_tax.service import AdvanceTaxService

# Test actor ID for all test operations
TEST_ACTOR_ID = UUID("00000000-0000-4000-a000-0000000000ff")
TEST_COMPANY_ID = UUID("00000000-0000-4000-a000-000000000001")

DEFAULT_TEST_URL = "sqlite://"


def get_database_url() -> str:
    return os.environ.get("ADVTAX_TEST_DATABASE_URL", DEFAULT_TEST_URL)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG, stream=StringIO())
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
    Capture advtax logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, service):
            service.create_assessment(...)
            logs = captured_logs()
            assert any(r["message"] == "advance_tax_assessment_created" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("advtax")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def db_engine():
    """Fresh engine and schema per test; SQLite makes this cheap."""
    eng = init_engine_from_url(get_database_url(), echo=False)
    drop_tables()
    create_tables()
    yield eng
    drop_tables()
    reset_engine()


@pytest.fixture
def file_db_engine(tmp_path):
    """File-backed SQLite engine: every session gets its own connection."""
    eng = init_engine_from_url(f"sqlite:///{tmp_path / 'advtax.db'}", echo=False)
    create_tables()
    yield eng
    reset_engine()


@pytest.fixture
def session(db_engine) -> Generator[Session, None, None]:
    sess = get_session()
    yield sess
    sess.close()


# =============================================================================
# Clock, policy and actor fixtures
# =============================================================================


@pytest.fixture
def test_actor_id() -> UUID:
    return TEST_ACTOR_ID


@pytest.fixture
def company_id() -> UUID:
    return TEST_COMPANY_ID


@pytest.fixture
def deterministic_clock() -> DeterministicClock:
    """Clock fixed on 1 May 2024 (FY 2024-25, Q1, before the first due date)."""
    return DeterministicClock.on(date(2024, 5, 1))


@pytest.fixture
def default_policy():
    clear_policy_cache()
    return get_active_policy(date(2024, 4, 1))


# =============================================================================
# Collaborator fakes
# =============================================================================


class FakeJournalPoster:
    """Returns sequential journal numbers; fails the first ``fail_times`` calls."""

    def __init__(self, fail_times: int = 0):
        self.fail_times = fail_times
        self.calls: list[dict] = []
        self._issued = 0

    def post_advance_tax_payment(self, assessment_id, payment_id, amount, payment_date) -> str:
        self.calls.append({
            "assessment_id": assessment_id,
            "payment_id": payment_id,
            "amount": amount,
            "payment_date": payment_date,
        })
        if len(self.calls) <= self.fail_times:
            raise RuntimeError("ledger unavailable")
        self._issued += 1
        return f"JE-{self._issued:05d}"


class FakeYtdSource:
    def __init__(self, revenue: Decimal = Decimal("0"), expenses: Decimal = Decimal("0")):
        self.revenue = revenue
        self.expenses = expenses
        self.calls: list[tuple] = []

    def get_ytd_financials(self, company_id, start, through) -> YtdFinancials:
        self.calls.append((company_id, start, through))
        return YtdFinancials(revenue=self.revenue, expenses=self.expenses)


class FakeCreditSource:
    def __init__(self, tds: Decimal = Decimal("0"), tcs: Decimal = Decimal("0")):
        self.tds = tds
        self.tcs = tcs

    def get_tds_receivable(self, company_id, financial_year) -> Decimal:
        return self.tds

    def get_tcs_credit(self, company_id, financial_year) -> Decimal:
        return self.tcs


@pytest.fixture
def journal_poster() -> FakeJournalPoster:
    return FakeJournalPoster()


@pytest.fixture
def flaky_journal_poster() -> FakeJournalPoster:
    """Fails once, then succeeds."""
    return FakeJournalPoster(fail_times=1)


@pytest.fixture
def down_journal_poster() -> FakeJournalPoster:
    """Never succeeds."""
    return FakeJournalPoster(fail_times=10**6)


@pytest.fixture
def ytd_source() -> FakeYtdSource:
    return FakeYtdSource()


@pytest.fixture
def credit_source() -> FakeCreditSource:
    return FakeCreditSource()


@pytest.fixture
def make_ytd_source():
    """Factory for YTD sources with given ledger figures."""
    return FakeYtdSource


@pytest.fixture
def make_credit_source():
    """Factory for credit sources with given TDS/TCS."""
    return FakeCreditSource


@pytest.fixture
def lock_registry() -> AssessmentLockRegistry:
    return AssessmentLockRegistry(timeout_seconds=1.0)


# =============================================================================
# Service fixtures
# =============================================================================


@pytest.fixture
def make_service(session, deterministic_clock, journal_poster, lock_registry):
    """Factory for services with custom collaborators or config."""

    def _make(
        *,
        config: AdvanceTaxConfig | None = None,
        journal_poster=journal_poster,
        ytd_source=None,
        credit_source=None,
        company_directory=None,
        clock=deterministic_clock,
    ) -> AdvanceTaxService:
        return AdvanceTaxService(
            session,
            clock,
            config,
            journal_poster=journal_poster,
            ytd_source=ytd_source,
            credit_source=credit_source,
            company_directory=company_directory,
            lock_registry=lock_registry,
        )

    return _make


@pytest.fixture
def service(make_service) -> AdvanceTaxService:
    return make_service()


@pytest.fixture
def random_uuid():
    return uuid4()
