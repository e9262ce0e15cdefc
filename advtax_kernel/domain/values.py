"""
Value objects for the advance tax domain.

Responsibility:
    The two primitives every calculation shares: the Indian financial year
    (1 April to 31 March, labelled ``"2024-25"``) and the rounding rule for
    money and rates.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - ``round_money`` is the ONLY sanctioned rounding function for money:
      two decimal places, ROUND_HALF_UP.  Engines never call ``quantize``
      on monetary values directly.
    - A ``FinancialYear`` always starts on 1 April of ``start_year`` and
      ends on 31 March of ``start_year + 1``.

Failure modes:
    - ``FinancialYear.parse`` raises ``InvalidFinancialYearError`` for
      malformed or non-consecutive labels.
    - ``round_money`` raises ``TypeError`` for non-Decimal input (floats are
      never accepted as money).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal

from advtax_kernel.exceptions import InvalidFinancialYearError

MONEY_DECIMAL_PLACES = 2
RATE_DECIMAL_PLACES = 6

ZERO = Decimal("0")
_MONEY_QUANTUM = Decimal("0.01")
_RATE_QUANTUM = Decimal("0.000001")

# First month of the Indian financial year.
FY_START_MONTH = 4


def round_money(value: Decimal) -> Decimal:
    """Quantize a monetary value to two places, ROUND_HALF_UP."""
    if not isinstance(value, Decimal):
        raise TypeError(f"Money must be Decimal, got {type(value).__name__}")
    return value.quantize(_MONEY_QUANTUM, rounding=ROUND_HALF_UP)


def round_rate(value: Decimal) -> Decimal:
    """Quantize a rate (fraction or percentage) to six places."""
    if not isinstance(value, Decimal):
        raise TypeError(f"Rate must be Decimal, got {type(value).__name__}")
    return value.quantize(_RATE_QUANTUM, rounding=ROUND_HALF_UP)


def months_spanned(start: date, end: date) -> int:
    """
    Count calendar months from ``start`` to ``end``, partial months rounded up.

    Both endpoint months are counted: 1 Apr -> 10 Apr is 1 month,
    1 Apr -> 1 May is 2 months.  Returns 0 when ``end`` precedes ``start``.
    """
    if end < start:
        return 0
    return (end.year - start.year) * 12 + (end.month - start.month) + 1


@dataclass(frozen=True, slots=True)
class FinancialYear:
    """
    An Indian financial year, 1 April ``start_year`` to 31 March ``start_year + 1``.

    The assessment year is the following financial year: income of FY
    2024-25 is assessed in AY 2025-26.
    """

    start_year: int

    @classmethod
    def parse(cls, label: str) -> FinancialYear:
        """Parse ``"2024-25"`` or ``"2024-2025"``."""
        if not isinstance(label, str):
            raise InvalidFinancialYearError(str(label))
        parts = label.strip().split("-")
        if len(parts) != 2 or not all(p.isdigit() for p in parts):
            raise InvalidFinancialYearError(label)
        head, tail = parts
        if len(head) != 4 or len(tail) not in (2, 4):
            raise InvalidFinancialYearError(label)
        start = int(head)
        expected = start + 1 if len(tail) == 4 else (start + 1) % 100
        if int(tail) != expected:
            raise InvalidFinancialYearError(label)
        return cls(start)

    @classmethod
    def containing(cls, day: date) -> FinancialYear:
        """The financial year in which ``day`` falls."""
        return cls(day.year if day.month >= FY_START_MONTH else day.year - 1)

    @property
    def label(self) -> str:
        return f"{self.start_year}-{(self.start_year + 1) % 100:02d}"

    @property
    def start_date(self) -> date:
        return date(self.start_year, FY_START_MONTH, 1)

    @property
    def end_date(self) -> date:
        return date(self.start_year + 1, FY_START_MONTH - 1, 31)

    @property
    def assessment_year(self) -> FinancialYear:
        return FinancialYear(self.start_year + 1)

    def shifted(self, years: int) -> FinancialYear:
        return FinancialYear(self.start_year + years)

    def contains(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date

    def clamp(self, day: date) -> date:
        """Limit ``day`` to the year's end date (used for YTD cut-offs)."""
        return min(day, self.end_date)

    def quarter_of(self, day: date) -> int:
        """
        Fiscal quarter of ``day``: Apr-Jun is 1 ... Jan-Mar is 4.

        Days outside the year are still mapped by calendar month.
        """
        return (day.month - FY_START_MONTH) % 12 // 3 + 1

    def __str__(self) -> str:
        return self.label
