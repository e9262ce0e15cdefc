"""
Interest Engine - Sections 234B and 234C.

Responsibility:
    Statutory simple interest on advance tax paid late or short.

    234C (deferment), per quarter: when the cumulative tax paid by the due
    date is below the cumulative target, interest accrues on that quarter's
    shortfall for a fixed number of months (3, 3, 3, 1 by default):

        interest_234c = shortfall * monthly_rate * months

    234B (default), once per year: on the shortfall of advance tax against
    assessed tax, for each month (partial months rounded up) from 1 April
    of the assessment year to the earlier of the computation date and the
    final payment date:

        interest_234b = max(0, assessed_tax - advance_tax_paid) * monthly_rate * months

Architecture position:
    Engines -- pure calculation layer.  Consumes schedule lines produced by
    ``advtax_engines.schedule`` and the payment history.

Invariants enforced:
    - Zero or negative shortfalls produce exactly zero interest.
    - Interest is simple, never compounded.
    - Results depend only on arguments (the computation date is a parameter),
      so recomputation is idempotent.

Failure modes:
    - ValueError for a negative monthly rate or negative month counts.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING, Sequence

from advtax_engines.tracer import traced_engine
from advtax_kernel.domain.values import ZERO, FinancialYear, months_spanned, round_money
from advtax_kernel.logging_config import get_logger

if TYPE_CHECKING:
    from advtax_engines.schedule import LedgerPayment, ScheduleLine

logger = get_logger("engines.interest")

DEFAULT_MONTHLY_RATE = Decimal("0.01")


@dataclass(frozen=True)
class QuarterInterest:
    """234C figure for one installment."""

    quarter: int
    due_date: date
    cumulative_tax_due: Decimal
    cumulative_tax_paid: Decimal
    shortfall: Decimal
    months: int
    interest: Decimal


@dataclass(frozen=True)
class Interest234B:
    """234B figure for the year."""

    assessed_tax: Decimal
    advance_tax_paid: Decimal
    shortfall: Decimal
    period_start: date
    period_end: date
    months: int
    interest: Decimal


@dataclass(frozen=True)
class InterestBreakdown:
    """Per-quarter 234C plus the single 234B figure."""

    quarters: tuple[QuarterInterest, ...]
    total_interest_234c: Decimal
    interest_234b: Interest234B

    @property
    def total_interest(self) -> Decimal:
        return self.total_interest_234c + self.interest_234b.interest


class InterestCalculator:
    """
    Computes 234B and 234C interest.

    Pure functions - no I/O.  The monthly rate is a parameter (1% by
    statute, configured in the policy YAML).
    """

    def __init__(self, monthly_rate: Decimal = DEFAULT_MONTHLY_RATE):
        if monthly_rate < ZERO:
            raise ValueError("Monthly interest rate cannot be negative")
        self._monthly_rate = monthly_rate

    @property
    def monthly_rate(self) -> Decimal:
        return self._monthly_rate

    def simple_interest(self, principal: Decimal, months: int) -> Decimal:
        """principal * rate * months, zero for non-positive principal."""
        if months < 0:
            raise ValueError(f"Months cannot be negative: {months}")
        if principal <= ZERO or months == 0:
            return round_money(ZERO)
        return round_money(principal * self._monthly_rate * months)

    def quarter_234c(
        self,
        shortfall: Decimal,
        cumulative_tax_paid: Decimal,
        cumulative_tax_due: Decimal,
        months: int,
    ) -> Decimal:
        """234C for one quarter; zero unless paid-to-date is below target."""
        if cumulative_tax_paid >= cumulative_tax_due:
            return round_money(ZERO)
        return self.simple_interest(shortfall, months)

    def breakdown_234c(self, lines: Sequence[ScheduleLine]) -> tuple[tuple[QuarterInterest, ...], Decimal]:
        """Per-quarter 234C rows and their total, read from schedule lines."""
        rows = tuple(
            QuarterInterest(
                quarter=line.quarter,
                due_date=line.due_date,
                cumulative_tax_due=line.cumulative_tax_due,
                cumulative_tax_paid=line.cumulative_tax_paid,
                shortfall=line.shortfall_amount,
                months=line.interest_months,
                interest=line.interest_234c,
            )
            for line in lines
        )
        total = round_money(sum((row.interest for row in rows), ZERO))
        return rows, total

    @traced_engine(
        "interest_234b", "1.0",
        fingerprint_fields=("assessed_tax", "financial_year", "as_of", "final_payment_date"),
    )
    def calculate_234b(
        self,
        assessed_tax: Decimal,
        payments: Sequence[LedgerPayment],
        financial_year: FinancialYear,
        as_of: date,
        final_payment_date: date | None = None,
    ) -> Interest234B:
        """
        234B interest as of ``as_of``.

        Advance tax paid is the total of payments dated within the
        financial year.  Months run from 1 April of the assessment year to
        the earlier of ``as_of`` and ``final_payment_date``; before the
        assessment year starts no month has elapsed.
        """
        t0 = time.monotonic()
        assessed_tax = round_money(assessed_tax)
        advance_paid = round_money(sum(
            (p.amount for p in payments if financial_year.contains(p.payment_date)),
            ZERO,
        ))
        shortfall = round_money(max(ZERO, assessed_tax - advance_paid))

        period_start = financial_year.assessment_year.start_date
        period_end = as_of if final_payment_date is None else min(as_of, final_payment_date)
        months = months_spanned(period_start, period_end)
        interest = self.simple_interest(shortfall, months)

        result = Interest234B(
            assessed_tax=assessed_tax,
            advance_tax_paid=advance_paid,
            shortfall=shortfall,
            period_start=period_start,
            period_end=period_end,
            months=months,
            interest=interest,
        )

        logger.info("interest_234b_calculated", extra={
            "financial_year": financial_year.label,
            "assessed_tax": str(assessed_tax),
            "advance_tax_paid": str(advance_paid),
            "shortfall": str(shortfall),
            "months": months,
            "interest": str(interest),
            "duration_ms": round((time.monotonic() - t0) * 1000, 2),
        })
        return result

    def breakdown(
        self,
        lines: Sequence[ScheduleLine],
        assessed_tax: Decimal,
        payments: Sequence[LedgerPayment],
        financial_year: FinancialYear,
        as_of: date,
        final_payment_date: date | None = None,
    ) -> InterestBreakdown:
        """Full interest breakdown for an assessment."""
        rows, total_234c = self.breakdown_234c(lines)
        interest_234b = self.calculate_234b(
            assessed_tax=assessed_tax,
            payments=payments,
            financial_year=financial_year,
            as_of=as_of,
            final_payment_date=final_payment_date,
        )
        return InterestBreakdown(
            quarters=rows,
            total_interest_234c=total_234c,
            interest_234b=interest_234b,
        )
