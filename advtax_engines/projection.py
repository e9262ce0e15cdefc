"""
Profit Projection Engine -- full-year profit from YTD actuals.

Combines year-to-date ledger totals with the editable "projected
additional" figures into the full-year projection that feeds the
reconciliation, and derives trend-based suggestions for the remaining
months.

Pure functions with no I/O.

Usage:
    from advtax_engines.projection import ProjectionInputs, project_profit

    projection = project_profit(ProjectionInputs(
        ytd_revenue=Decimal("6000000"),
        ytd_expenses=Decimal("4200000"),
        projected_additional_revenue=Decimal("6000000"),
        projected_additional_expenses=Decimal("4200000"),
        projected_depreciation=Decimal("300000"),
    ))
    print(projection.profit_before_tax)  # 3300000.00
"""

from __future__ import annotations

import time
from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal

from advtax_engines.tracer import traced_engine
from advtax_kernel.domain.values import ZERO, months_spanned, round_money
from advtax_kernel.logging_config import get_logger

logger = get_logger("engines.projection")

MONTHS_IN_YEAR = 12


@dataclass(frozen=True)
class ProjectionInputs:
    """Editable projection inputs of an assessment."""

    ytd_revenue: Decimal = ZERO
    ytd_expenses: Decimal = ZERO
    projected_additional_revenue: Decimal = ZERO
    projected_additional_expenses: Decimal = ZERO
    projected_depreciation: Decimal = ZERO
    projected_other_income: Decimal = ZERO

    def adjusted(
        self,
        revenue_delta: Decimal = ZERO,
        expense_delta: Decimal = ZERO,
        depreciation_delta: Decimal = ZERO,
    ) -> ProjectionInputs:
        """Copy with signed deltas applied to the projected (non-YTD) figures."""
        return replace(
            self,
            projected_additional_revenue=self.projected_additional_revenue + revenue_delta,
            projected_additional_expenses=self.projected_additional_expenses + expense_delta,
            projected_depreciation=self.projected_depreciation + depreciation_delta,
        )


@dataclass(frozen=True)
class ProfitProjection:
    """Full-year projection."""

    projected_revenue: Decimal
    projected_expenses: Decimal
    projected_depreciation: Decimal
    projected_other_income: Decimal
    profit_before_tax: Decimal


@dataclass(frozen=True)
class TrendProjection:
    """Run-rate extrapolation of YTD actuals to the rest of the year."""

    through_date: date
    months_covered: int
    remaining_months: int
    avg_monthly_revenue: Decimal
    avg_monthly_expenses: Decimal
    suggested_additional_revenue: Decimal
    suggested_additional_expenses: Decimal


@traced_engine("projection", "1.0", fingerprint_fields=("inputs",))
def project_profit(inputs: ProjectionInputs) -> ProfitProjection:
    """
    Full-year revenue and expenses are YTD plus projected additional;
    profit before tax adds other income and subtracts depreciation.
    """
    revenue = round_money(inputs.ytd_revenue + inputs.projected_additional_revenue)
    expenses = round_money(inputs.ytd_expenses + inputs.projected_additional_expenses)
    depreciation = round_money(inputs.projected_depreciation)
    other_income = round_money(inputs.projected_other_income)
    return ProfitProjection(
        projected_revenue=revenue,
        projected_expenses=expenses,
        projected_depreciation=depreciation,
        projected_other_income=other_income,
        profit_before_tax=revenue + other_income - expenses - depreciation,
    )


def months_covered(fy_start: date, through: date) -> int:
    """Months of the year covered by YTD actuals, partial month counted, 0..12."""
    return max(0, min(MONTHS_IN_YEAR, months_spanned(fy_start, through)))


def project_from_trend(
    ytd_revenue: Decimal,
    ytd_expenses: Decimal,
    fy_start: date,
    through: date,
) -> TrendProjection:
    """
    Extrapolate the YTD monthly average over the remaining months.

    With no month covered the averages and suggestions are zero.
    """
    t0 = time.monotonic()
    covered = months_covered(fy_start, through)
    remaining = MONTHS_IN_YEAR - covered

    if covered > 0:
        avg_revenue = ytd_revenue / covered
        avg_expenses = ytd_expenses / covered
    else:
        avg_revenue = avg_expenses = ZERO

    result = TrendProjection(
        through_date=through,
        months_covered=covered,
        remaining_months=remaining,
        avg_monthly_revenue=round_money(avg_revenue),
        avg_monthly_expenses=round_money(avg_expenses),
        suggested_additional_revenue=round_money(avg_revenue * remaining),
        suggested_additional_expenses=round_money(avg_expenses * remaining),
    )

    logger.info("trend_projection_completed", extra={
        "months_covered": covered,
        "remaining_months": remaining,
        "suggested_additional_revenue": str(result.suggested_additional_revenue),
        "suggested_additional_expenses": str(result.suggested_additional_expenses),
        "duration_ms": round((time.monotonic() - t0) * 1000, 2),
    })
    return result
