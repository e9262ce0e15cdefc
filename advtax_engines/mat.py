"""
MAT Engine - Minimum Alternate Tax comparison (read-only).

Compares the normal-provisions liability with MAT on book profit:

    mat_base      = book_profit * mat_rate
    mat_surcharge = mat_base * surcharge_rate     (only above the threshold)
    mat_cess      = (mat_base + mat_surcharge) * cess_rate

When MAT exceeds normal tax (and the regime is MAT-eligible) MAT is payable
and the excess becomes credit for later years.  Otherwise available credit
is utilised up to the excess of normal tax over MAT.

Pure functions with no I/O.  Nothing computed here is stored.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from advtax_kernel.domain.values import ZERO, round_money
from advtax_kernel.logging_config import get_logger

logger = get_logger("engines.mat")


@dataclass(frozen=True)
class MatPolicy:
    """MAT parameters."""

    rate: Decimal = Decimal("0.15")
    surcharge_rate: Decimal = Decimal("0.07")
    surcharge_threshold: Decimal = Decimal("10000000")
    cess_rate: Decimal = Decimal("0.04")
    eligible_regimes: frozenset[str] = frozenset({"normal"})
    credit_carry_forward_years: int = 15

    def __post_init__(self) -> None:
        for name in ("rate", "surcharge_rate", "surcharge_threshold", "cess_rate"):
            if getattr(self, name) < ZERO:
                raise ValueError(f"MAT {name} cannot be negative")
        if self.credit_carry_forward_years < 1:
            raise ValueError("MAT credit_carry_forward_years must be at least 1")


@dataclass(frozen=True)
class MatComputation:
    book_profit: Decimal
    mat_rate: Decimal
    mat_base: Decimal
    mat_surcharge: Decimal
    mat_cess: Decimal
    total_mat: Decimal
    normal_tax: Decimal
    regime: str
    is_mat_applicable: bool
    mat_credit_available: Decimal
    mat_credit_created: Decimal
    mat_credit_to_utilize: Decimal
    final_tax_payable: Decimal


class MatCalculator:
    """Computes the MAT comparison for one assessment."""

    def __init__(self, policy: MatPolicy | None = None):
        self._policy = policy or MatPolicy()

    @property
    def policy(self) -> MatPolicy:
        return self._policy

    def compute(
        self,
        book_profit: Decimal,
        normal_tax: Decimal,
        regime: str,
        mat_credit_available: Decimal = ZERO,
    ) -> MatComputation:
        policy = self._policy
        book_profit = round_money(book_profit)
        normal_tax = round_money(normal_tax)
        available = round_money(max(ZERO, mat_credit_available))

        taxable_book_profit = max(ZERO, book_profit)
        mat_base = round_money(taxable_book_profit * policy.rate)
        surcharge_rate = policy.surcharge_rate if book_profit > policy.surcharge_threshold else ZERO
        mat_surcharge = round_money(mat_base * surcharge_rate)
        mat_cess = round_money((mat_base + mat_surcharge) * policy.cess_rate)
        total_mat = mat_base + mat_surcharge + mat_cess

        applicable = regime in policy.eligible_regimes and total_mat > normal_tax
        if applicable:
            created = total_mat - normal_tax
            utilize = round_money(ZERO)
            final = total_mat
        else:
            created = round_money(ZERO)
            utilize = round_money(min(available, max(ZERO, normal_tax - total_mat)))
            final = normal_tax - utilize

        logger.info("mat_computation_completed", extra={
            "regime": regime,
            "book_profit": str(book_profit),
            "total_mat": str(total_mat),
            "normal_tax": str(normal_tax),
            "is_mat_applicable": applicable,
            "final_tax_payable": str(final),
        })
        return MatComputation(
            book_profit=book_profit,
            mat_rate=policy.rate,
            mat_base=mat_base,
            mat_surcharge=mat_surcharge,
            mat_cess=mat_cess,
            total_mat=total_mat,
            normal_tax=normal_tax,
            regime=regime,
            is_mat_applicable=applicable,
            mat_credit_available=available,
            mat_credit_created=created,
            mat_credit_to_utilize=utilize,
            final_tax_payable=final,
        )
