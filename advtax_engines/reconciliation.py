"""
Reconciliation Engine - Book profit to taxable income.

Applies the statutory additions (disallowed expenses added back) and
deductions to book profit.  Every line is reported individually so the
computation can be audited line by line.

Pure functions with no I/O.

Usage:
    from advtax_engines.reconciliation import (
        ReconciliationCalculator, ReconciliationInputs,
    )
    from decimal import Decimal

    result = ReconciliationCalculator().reconcile(
        book_profit=Decimal("1000000"),
        inputs=ReconciliationInputs(
            disallowed_cash_payments=Decimal("25000"),
            deduction_80c=Decimal("150000"),
        ),
    )
    print(result.taxable_income)  # 875000.00
"""

from __future__ import annotations

import time
from dataclasses import dataclass, fields
from decimal import Decimal
from enum import Enum

from advtax_engines.tracer import traced_engine
from advtax_kernel.domain.values import ZERO, round_money
from advtax_kernel.logging_config import get_logger

logger = get_logger("engines.reconciliation")


class AdjustmentKind(str, Enum):
    """Direction of a reconciliation line."""

    ADDITION = "addition"
    DEDUCTION = "deduction"


# field name -> (kind, label)
_LINE_CATALOGUE: dict[str, tuple[AdjustmentKind, str]] = {
    "depreciation_addback": (AdjustmentKind.ADDITION, "Book depreciation added back"),
    "disallowed_cash_payments": (AdjustmentKind.ADDITION, "Cash payments disallowed u/s 40A(3)"),
    "disallowed_gratuity_provision": (AdjustmentKind.ADDITION, "Gratuity provision disallowed u/s 40A(7)"),
    "disallowed_unpaid_statutory_dues": (AdjustmentKind.ADDITION, "Unpaid statutory dues u/s 43B"),
    "other_disallowances": (AdjustmentKind.ADDITION, "Other disallowances"),
    "tax_depreciation": (AdjustmentKind.DEDUCTION, "Depreciation as per Income Tax Act"),
    "deduction_80c": (AdjustmentKind.DEDUCTION, "Deduction u/s 80C"),
    "deduction_80d": (AdjustmentKind.DEDUCTION, "Deduction u/s 80D"),
    "other_deductions": (AdjustmentKind.DEDUCTION, "Other deductions"),
}


@dataclass(frozen=True)
class ReconciliationInputs:
    """
    Addition and deduction amounts of an assessment.

    All amounts are non-negative; direction comes from the line kind.
    """

    depreciation_addback: Decimal = ZERO
    disallowed_cash_payments: Decimal = ZERO
    disallowed_gratuity_provision: Decimal = ZERO
    disallowed_unpaid_statutory_dues: Decimal = ZERO
    other_disallowances: Decimal = ZERO
    tax_depreciation: Decimal = ZERO
    deduction_80c: Decimal = ZERO
    deduction_80d: Decimal = ZERO
    other_deductions: Decimal = ZERO

    def __post_init__(self) -> None:
        for f in fields(self):
            value = getattr(self, f.name)
            if not isinstance(value, Decimal):
                raise TypeError(f"{f.name} must be Decimal, got {type(value).__name__}")
            if value < ZERO:
                raise ValueError(f"{f.name} cannot be negative: {value}")

    def as_dict(self) -> dict[str, Decimal]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass(frozen=True)
class ReconciliationLine:
    """One audited addition or deduction."""

    code: str
    label: str
    kind: AdjustmentKind
    amount: Decimal


@dataclass(frozen=True)
class ReconciliationResult:
    """Book-to-taxable reconciliation."""

    book_profit: Decimal
    additions: tuple[ReconciliationLine, ...]
    deductions: tuple[ReconciliationLine, ...]
    total_additions: Decimal
    total_deductions: Decimal
    taxable_income: Decimal

    @property
    def adjusted_profit(self) -> Decimal:
        """Book profit after adjustments, before the floor at zero."""
        return self.book_profit + self.total_additions - self.total_deductions

    @property
    def is_clamped(self) -> bool:
        """True when adjustments produced a loss that was floored at zero."""
        return self.adjusted_profit < ZERO


class ReconciliationCalculator:
    """
    Converts book profit into taxable income.

    Pure functions - no I/O, no database access.  Identical inputs always
    produce an identical result.
    """

    @traced_engine("reconciliation", "1.0", fingerprint_fields=("book_profit", "inputs"))
    def reconcile(
        self,
        book_profit: Decimal,
        inputs: ReconciliationInputs,
    ) -> ReconciliationResult:
        """
        taxable_income = max(0, book_profit + additions - deductions).

        Raises:
            TypeError: If book_profit is not a Decimal.
        """
        t0 = time.monotonic()
        book_profit = round_money(book_profit)
        logger.info("reconciliation_started", extra={
            "book_profit": str(book_profit),
        })

        additions: list[ReconciliationLine] = []
        deductions: list[ReconciliationLine] = []
        for code, amount in inputs.as_dict().items():
            kind, label = _LINE_CATALOGUE[code]
            line = ReconciliationLine(
                code=code,
                label=label,
                kind=kind,
                amount=round_money(amount),
            )
            if kind is AdjustmentKind.ADDITION:
                additions.append(line)
            else:
                deductions.append(line)

        total_additions = sum((line.amount for line in additions), ZERO)
        total_deductions = sum((line.amount for line in deductions), ZERO)
        adjusted = book_profit + total_additions - total_deductions
        taxable_income = round_money(max(ZERO, adjusted))

        if adjusted < ZERO:
            logger.debug("reconciliation_loss_clamped", extra={
                "adjusted_profit": str(adjusted),
            })

        result = ReconciliationResult(
            book_profit=book_profit,
            additions=tuple(additions),
            deductions=tuple(deductions),
            total_additions=total_additions,
            total_deductions=total_deductions,
            taxable_income=taxable_income,
        )

        logger.info("reconciliation_completed", extra={
            "book_profit": str(book_profit),
            "total_additions": str(total_additions),
            "total_deductions": str(total_deductions),
            "taxable_income": str(taxable_income),
            "duration_ms": round((time.monotonic() - t0) * 1000, 2),
        })
        return result
