"""
Advance tax policy schema.

Defines the human-authored, reviewable source artifact for the statutory
parameters: regime rate tables, installment rules, interest rate and MAT
parameters.  YAML is parsed into these types by the loader and turned into
engine inputs by ``advtax_config.bridges``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

# ---------------------------------------------------------------------------
# Regimes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SurchargeSlabDef:
    """Surcharge ``rate`` applies above ``above`` of taxable income."""

    above: Decimal
    rate: Decimal


@dataclass(frozen=True)
class RegimeDef:
    code: str
    description: str
    base_rate: Decimal
    cess_rate: Decimal
    surcharge_slabs: tuple[SurchargeSlabDef, ...] = ()


# ---------------------------------------------------------------------------
# Schedule and interest
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class InstallmentDef:
    quarter: int
    due_month: int
    due_day: int
    cumulative_percentage: Decimal  # whole percent
    interest_months: int  # 234C months


@dataclass(frozen=True)
class InterestDef:
    monthly_rate: Decimal = Decimal("0.01")


@dataclass(frozen=True)
class MatDef:
    rate: Decimal
    surcharge_rate: Decimal
    surcharge_threshold: Decimal
    cess_rate: Decimal
    eligible_regimes: tuple[str, ...] = ()
    credit_carry_forward_years: int = 15


# ---------------------------------------------------------------------------
# Policy
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AdvanceTaxPolicy:
    """
    One effective-dated statutory policy.

    ``checksum`` is the SHA-256 of the policy's canonical JSON source and
    identifies the exact parameters used for a computation.
    """

    policy_id: str
    version: int
    description: str
    effective_from: date
    effective_to: date | None
    interest: InterestDef
    installments: tuple[InstallmentDef, ...]
    regimes: tuple[RegimeDef, ...]
    mat: MatDef
    checksum: str = ""

    def is_effective_on(self, as_of: date) -> bool:
        if as_of < self.effective_from:
            return False
        return self.effective_to is None or as_of <= self.effective_to

    @property
    def regime_codes(self) -> tuple[str, ...]:
        return tuple(r.code for r in self.regimes)

    def regime(self, code: str) -> RegimeDef | None:
        for regime in self.regimes:
            if regime.code == code:
                return regime
        return None
