"""
Liability Engine - Taxable income to tax liability and net payable.

Regime-aware: each regime supplies a base rate, a cess rate and surcharge
slabs.  Rates are passed in as value objects (built from the YAML policy
by ``advtax_config.bridges``), so new regimes need no code change.

    base_tax   = taxable_income * base_rate
    surcharge  = base_tax * surcharge_rate(taxable_income)
    cess       = (base_tax + surcharge) * cess_rate
    total      = base_tax + surcharge + cess
    net        = max(0, total - tds - tcs - mat_credit)

Pure functions with no I/O.

Usage:
    from advtax_engines.liability import LiabilityCalculator, SurchargeSlab, TaxRegimeRates

    normal = TaxRegimeRates(
        code="normal",
        description="Normal provisions",
        base_rate=Decimal("0.25"),
        cess_rate=Decimal("0.04"),
        surcharge_slabs=(SurchargeSlab(Decimal("10000000"), Decimal("0.07")),),
    )
    result = LiabilityCalculator().calculate(
        taxable_income=Decimal("1000000"),
        regime=normal,
        tds_receivable=Decimal("20000"),
    )
    print(result.total_tax_liability)  # 260000.00
    print(result.net_tax_payable)      # 240000.00
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from decimal import Decimal

from advtax_engines.tracer import traced_engine
from advtax_kernel.domain.values import ZERO, round_money
from advtax_kernel.logging_config import get_logger

logger = get_logger("engines.liability")


@dataclass(frozen=True)
class SurchargeSlab:
    """Surcharge ``rate`` applies when taxable income exceeds ``above``."""

    above: Decimal
    rate: Decimal

    def __post_init__(self) -> None:
        if self.above < ZERO:
            raise ValueError("Surcharge threshold cannot be negative")
        if self.rate < ZERO:
            raise ValueError("Surcharge rate cannot be negative")


@dataclass(frozen=True)
class TaxRegimeRates:
    """
    Rate table of one tax regime.

    Immutable value object.  Rates are fractions (0.25 for 25%).
    """

    code: str
    description: str
    base_rate: Decimal
    cess_rate: Decimal
    surcharge_slabs: tuple[SurchargeSlab, ...] = ()

    def __post_init__(self) -> None:
        if not self.code:
            raise ValueError("Regime code cannot be empty")
        if self.base_rate < ZERO:
            raise ValueError("Base rate cannot be negative")
        if self.cess_rate < ZERO:
            raise ValueError("Cess rate cannot be negative")
        thresholds = [slab.above for slab in self.surcharge_slabs]
        if thresholds != sorted(thresholds) or len(set(thresholds)) != len(thresholds):
            raise ValueError(
                f"Surcharge slabs of regime {self.code} must have strictly increasing thresholds"
            )

    def surcharge_rate_for(self, taxable_income: Decimal) -> Decimal:
        """Rate of the highest slab whose threshold the income exceeds, else 0."""
        rate = ZERO
        for slab in self.surcharge_slabs:
            if taxable_income > slab.above:
                rate = slab.rate
        return rate

    def effective_rate_for(self, taxable_income: Decimal) -> Decimal:
        """Combined rate including surcharge and cess."""
        surcharge_rate = self.surcharge_rate_for(taxable_income)
        return self.base_rate * (1 + surcharge_rate) * (1 + self.cess_rate)


@dataclass(frozen=True)
class LiabilityResult:
    """Tax liability and credits for one taxable income under one regime."""

    taxable_income: Decimal
    regime: str
    base_rate: Decimal
    surcharge_rate: Decimal
    cess_rate: Decimal
    base_tax: Decimal
    surcharge: Decimal
    cess: Decimal
    total_tax_liability: Decimal
    tds_receivable: Decimal
    tcs_credit: Decimal
    mat_credit: Decimal
    net_tax_payable: Decimal

    @property
    def total_credits(self) -> Decimal:
        return self.tds_receivable + self.tcs_credit + self.mat_credit

    @property
    def effective_tax_rate(self) -> Decimal:
        """Total liability / taxable income (0 for nil income)."""
        if self.taxable_income == ZERO:
            return ZERO
        return self.total_tax_liability / self.taxable_income


class LiabilityCalculator:
    """
    Computes total tax liability and net payable.

    Pure functions - no I/O, no database access.
    Regime rates provided as parameters.
    """

    @traced_engine(
        "liability", "1.0",
        fingerprint_fields=("taxable_income", "regime", "tds_receivable", "tcs_credit", "mat_credit"),
    )
    def calculate(
        self,
        taxable_income: Decimal,
        regime: TaxRegimeRates,
        tds_receivable: Decimal = ZERO,
        tcs_credit: Decimal = ZERO,
        mat_credit: Decimal = ZERO,
    ) -> LiabilityResult:
        """
        Compute liability for ``taxable_income`` under ``regime``.

        Raises:
            ValueError: If taxable income or any credit is negative.
        """
        t0 = time.monotonic()
        logger.info("liability_calculation_started", extra={
            "taxable_income": str(taxable_income),
            "regime": regime.code,
        })

        for name, value in (
            ("taxable_income", taxable_income),
            ("tds_receivable", tds_receivable),
            ("tcs_credit", tcs_credit),
            ("mat_credit", mat_credit),
        ):
            if value < ZERO:
                logger.error("liability_negative_input", extra={
                    "field": name,
                    "value": str(value),
                })
                raise ValueError(f"{name} cannot be negative: {value}")

        taxable_income = round_money(taxable_income)
        surcharge_rate = regime.surcharge_rate_for(taxable_income)

        base_tax = round_money(taxable_income * regime.base_rate)
        surcharge = round_money(base_tax * surcharge_rate)
        cess = round_money((base_tax + surcharge) * regime.cess_rate)
        total = base_tax + surcharge + cess

        tds_receivable = round_money(tds_receivable)
        tcs_credit = round_money(tcs_credit)
        mat_credit = round_money(mat_credit)
        net = round_money(max(ZERO, total - tds_receivable - tcs_credit - mat_credit))

        result = LiabilityResult(
            taxable_income=taxable_income,
            regime=regime.code,
            base_rate=regime.base_rate,
            surcharge_rate=surcharge_rate,
            cess_rate=regime.cess_rate,
            base_tax=base_tax,
            surcharge=surcharge,
            cess=cess,
            total_tax_liability=total,
            tds_receivable=tds_receivable,
            tcs_credit=tcs_credit,
            mat_credit=mat_credit,
            net_tax_payable=net,
        )

        logger.info("liability_calculation_completed", extra={
            "regime": regime.code,
            "taxable_income": str(taxable_income),
            "surcharge_rate": str(surcharge_rate),
            "total_tax_liability": str(total),
            "net_tax_payable": str(net),
            "duration_ms": round((time.monotonic() - t0) * 1000, 2),
        })
        return result
