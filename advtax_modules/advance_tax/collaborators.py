"""
External collaborator interfaces of the advance tax service.

Responsibility:
    Structural protocols for the systems the service consumes but does not
    own: company master data, the journal/ledger posting subsystem, ledger
    YTD totals, and the TDS/TCS credit register.

Architecture:
    advtax_modules -- module layer.  Implementations live in the host
    application; tests supply in-memory fakes.

Failure modes:
    - ``JournalPoster.post_advance_tax_payment`` raises on failure; any
      exception is treated as a failed attempt and retried by the service.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Protocol, runtime_checkable
from uuid import UUID


@dataclass(frozen=True)
class YtdFinancials:
    """Ledger totals for a date range."""
    revenue: Decimal
    expenses: Decimal


@runtime_checkable
class CompanyDirectory(Protocol):
    """Resolves a company id to its display name (not used in calculation)."""

    def get_company_name(self, company_id: UUID) -> str | None:
        ...


@runtime_checkable
class JournalPoster(Protocol):
    """Posts an advance tax payment to the general ledger."""

    def post_advance_tax_payment(
        self,
        assessment_id: UUID,
        payment_id: UUID,
        amount: Decimal,
        payment_date: date,
    ) -> str:
        """Return the journal number; raise on failure."""
        ...


@runtime_checkable
class YtdFinancialsSource(Protocol):
    """Revenue and expense totals from the ledger."""

    def get_ytd_financials(self, company_id: UUID, start: date, through: date) -> YtdFinancials:
        ...


@runtime_checkable
class TaxCreditSource(Protocol):
    """TDS receivable and TCS credit registers."""

    def get_tds_receivable(self, company_id: UUID, financial_year: str) -> Decimal:
        ...

    def get_tcs_credit(self, company_id: UUID, financial_year: str) -> Decimal:
        ...
