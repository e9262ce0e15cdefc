"""
Scenario Engine - What-if reruns of the profit-to-liability pipeline.

Responsibility:
    Applies signed deltas to a base assessment's projection inputs and
    reruns projection, reconciliation and liability with the base
    reconciliation inputs and credits.  No schedule, no interest: a
    scenario has no payment history.

        revenue_adjustment                          -> projected revenue
        expense_adjustment, payroll_change,
        other_adjustments                           -> projected expenses
        capex_impact                                -> projected depreciation

        variance_from_base = adjusted_tax_liability - base_total_tax_liability

Architecture position:
    Engines -- pure calculation layer composed from the projection,
    reconciliation and liability engines.

Invariants enforced:
    - The base inputs are value objects; a scenario cannot mutate them.
    - Zero deltas reproduce the base liability (variance 0.00).
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from decimal import Decimal

from advtax_engines.liability import LiabilityCalculator, LiabilityResult, TaxRegimeRates
from advtax_engines.projection import ProfitProjection, ProjectionInputs, project_profit
from advtax_engines.reconciliation import (
    ReconciliationCalculator,
    ReconciliationInputs,
    ReconciliationResult,
)
from advtax_kernel.domain.values import ZERO, round_money
from advtax_kernel.logging_config import get_logger

logger = get_logger("engines.scenario")


@dataclass(frozen=True)
class ScenarioAdjustments:
    """Signed deltas of a what-if scenario."""

    revenue_adjustment: Decimal = ZERO
    expense_adjustment: Decimal = ZERO
    capex_impact: Decimal = ZERO
    payroll_change: Decimal = ZERO
    other_adjustments: Decimal = ZERO

    @property
    def expense_delta(self) -> Decimal:
        return self.expense_adjustment + self.payroll_change + self.other_adjustments

    @property
    def is_empty(self) -> bool:
        return (
            self.revenue_adjustment == ZERO
            and self.expense_delta == ZERO
            and self.capex_impact == ZERO
        )


@dataclass(frozen=True)
class ScenarioBase:
    """Resolved inputs of the base assessment."""

    projection: ProjectionInputs
    reconciliation: ReconciliationInputs
    regime: TaxRegimeRates
    total_tax_liability: Decimal
    tds_receivable: Decimal = ZERO
    tcs_credit: Decimal = ZERO
    mat_credit: Decimal = ZERO


@dataclass(frozen=True)
class ScenarioResult:
    """Outcome of one scenario."""

    adjustments: ScenarioAdjustments
    projection: ProfitProjection
    reconciliation: ReconciliationResult
    liability: LiabilityResult
    base_tax_liability: Decimal
    variance_from_base: Decimal

    @property
    def adjusted_taxable_income(self) -> Decimal:
        return self.reconciliation.taxable_income

    @property
    def adjusted_tax_liability(self) -> Decimal:
        return self.liability.total_tax_liability


class ScenarioEngine:
    """Evaluates scenarios against a base assessment."""

    def __init__(
        self,
        reconciler: ReconciliationCalculator | None = None,
        liability_calculator: LiabilityCalculator | None = None,
    ):
        self._reconciler = reconciler or ReconciliationCalculator()
        self._liability = liability_calculator or LiabilityCalculator()

    def evaluate(self, base: ScenarioBase, adjustments: ScenarioAdjustments) -> ScenarioResult:
        t0 = time.monotonic()
        logger.info("scenario_evaluation_started", extra={
            "revenue_adjustment": str(adjustments.revenue_adjustment),
            "expense_delta": str(adjustments.expense_delta),
            "capex_impact": str(adjustments.capex_impact),
        })

        inputs = base.projection.adjusted(
            revenue_delta=adjustments.revenue_adjustment,
            expense_delta=adjustments.expense_delta,
            depreciation_delta=adjustments.capex_impact,
        )
        projection = project_profit(inputs=inputs)
        reconciliation = self._reconciler.reconcile(
            book_profit=projection.profit_before_tax,
            inputs=base.reconciliation,
        )
        liability = self._liability.calculate(
            taxable_income=reconciliation.taxable_income,
            regime=base.regime,
            tds_receivable=base.tds_receivable,
            tcs_credit=base.tcs_credit,
            mat_credit=base.mat_credit,
        )
        base_total = round_money(base.total_tax_liability)
        variance = liability.total_tax_liability - base_total

        logger.info("scenario_evaluation_completed", extra={
            "adjusted_taxable_income": str(reconciliation.taxable_income),
            "adjusted_tax_liability": str(liability.total_tax_liability),
            "variance_from_base": str(variance),
            "duration_ms": round((time.monotonic() - t0) * 1000, 2),
        })
        return ScenarioResult(
            adjustments=adjustments,
            projection=projection,
            reconciliation=reconciliation,
            liability=liability,
            base_tax_liability=base_total,
            variance_from_base=variance,
        )
