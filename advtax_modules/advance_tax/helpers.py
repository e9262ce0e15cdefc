"""
Advance Tax Helpers -- Pure functions behind the read-side views.

Responsibility:
    Arithmetic for the revision recommendation and the payment tracker
    that the calculation engines do not cover.

Architecture:
    advtax_modules -- module layer.
    Every function is pure: no I/O, no side effects, no database.  "Today"
    is always a parameter.

Invariants:
    - All inputs and outputs are ``Decimal`` -- NEVER ``float``.
    - Division-by-zero cases return a defined value instead of raising
      (0% variance for a zero projection, 100% paid when nothing is due).
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from advtax_engines.projection import MONTHS_IN_YEAR, months_covered
from advtax_engines.schedule import InstallmentStatus
from advtax_kernel.domain.values import ZERO, FinancialYear, round_money, round_rate

_HUNDRED = Decimal("100")


def current_quarter(today: date) -> int:
    """Fiscal quarter of ``today``: Apr-Jun is 1 ... Jan-Mar is 4."""
    return FinancialYear.containing(today).quarter_of(today)


@dataclass(frozen=True)
class RevisionCheck:
    months_elapsed: int
    actual_ytd_profit: Decimal
    prorated_projected_profit: Decimal
    variance_amount: Decimal
    variance_percentage: Decimal
    revision_recommended: bool
    reason: str | None


def check_revision(
    ytd_revenue: Decimal,
    ytd_expenses: Decimal,
    profit_before_tax: Decimal,
    financial_year: FinancialYear,
    today: date,
    last_revision_quarter: int | None,
    threshold_pct: Decimal,
) -> RevisionCheck:
    """
    Compare YTD profit with the projection prorated to the months elapsed.

    Revision is recommended when the variance exceeds ``threshold_pct``
    or, past Q1, when no revision was made in the current quarter.
    """
    elapsed = months_covered(financial_year.start_date, today)
    actual = round_money(ytd_revenue - ytd_expenses)
    prorated = round_money(profit_before_tax * elapsed / MONTHS_IN_YEAR)
    variance = actual - prorated
    if prorated == ZERO:
        variance_pct = round_rate(ZERO)
    else:
        variance_pct = round_rate(variance / abs(prorated) * _HUNDRED)

    quarter = current_quarter(today)
    reason = None
    if abs(variance_pct) > threshold_pct:
        reason = (
            f"Actual profit deviates {variance_pct.quantize(Decimal('0.01'))}% "
            f"from the prorated projection"
        )
    elif quarter > 1 and (last_revision_quarter is None or last_revision_quarter < quarter):
        reason = f"No revision recorded in Q{quarter}"

    return RevisionCheck(
        months_elapsed=elapsed,
        actual_ytd_profit=actual,
        prorated_projected_profit=prorated,
        variance_amount=variance,
        variance_percentage=variance_pct,
        revision_recommended=reason is not None,
        reason=reason,
    )


def payment_percentage(total_paid: Decimal, net_tax_payable: Decimal) -> Decimal:
    """Share of net payable paid, in percent; 100 when nothing is payable."""
    if net_tax_payable <= ZERO:
        return round_money(_HUNDRED)
    return round_money(total_paid / net_tax_payable * _HUNDRED)


@dataclass(frozen=True)
class NextDue:
    due_date: date
    amount: Decimal
    days_until: int


def next_due(entries: Sequence, today: date) -> NextDue | None:
    """
    First installment not yet paid whose due date is today or later.

    ``entries`` are schedule entries ordered by quarter.  The amount is
    the installment's remaining shortfall.
    """
    for entry in entries:
        if entry.payment_status is InstallmentStatus.PAID:
            continue
        if entry.due_date >= today:
            return NextDue(
                due_date=entry.due_date,
                amount=entry.shortfall_amount,
                days_until=(entry.due_date - today).days,
            )
    return None
