"""
Schedule Engine - Quarterly advance tax installments.

Responsibility:
    Derives the installment plan from net tax payable and measures it
    against the payment history.

    For installment i with cumulative percentage p_i:
        cumulative_tax_due_i     = round(p_i% * net)      (last = net exactly)
        tax_payable_this_quarter = cumulative_tax_due_i - cumulative_tax_due_{i-1}

    Payments are attributed to an installment: a payment linked to a
    quarter counts there when made on or before its due date, otherwise
    it falls to the first installment whose due date is on or after the
    payment date.  Payments after the last due date belong to no
    installment.  Credit flows forward: each installment is credited up to
    its obligation from the cumulative amount paid, and any excess carries
    to the next one (the last installment absorbs the remainder).

Architecture position:
    Engines -- pure calculation layer.  Uses ``InterestCalculator`` for the
    per-quarter 234C figure so schedule and interest breakdown agree.

Invariants enforced:
    - The installments' ``tax_payable_this_quarter`` sum to net tax payable
      exactly (no rounding drift).
    - Cumulative percentages are strictly increasing and end at 100.
    - Output depends only on (net, financial year, payments, rules):
      recomputing with the same history yields identical lines.

Failure modes:
    - ValueError for negative net payable, non-positive payment amounts,
      or links to a quarter that does not exist.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Sequence

from advtax_engines.interest import InterestCalculator
from advtax_engines.tracer import traced_engine
from advtax_kernel.domain.values import FY_START_MONTH, ZERO, FinancialYear, round_money
from advtax_kernel.logging_config import get_logger

logger = get_logger("engines.schedule")

_HUNDRED = Decimal("100")


class InstallmentStatus(str, Enum):
    """Fulfilment status of one installment."""

    PENDING = "pending"
    PARTIAL = "partial"
    PAID = "paid"


@dataclass(frozen=True)
class InstallmentRule:
    """
    Statutory definition of one installment.

    Due months from April onward fall in the financial year's start year;
    January to March fall in the following calendar year.
    """

    quarter: int
    due_month: int
    due_day: int
    cumulative_percentage: Decimal
    interest_months: int

    def __post_init__(self) -> None:
        if self.quarter < 1:
            raise ValueError(f"Quarter must be >= 1, got {self.quarter}")
        if not 1 <= self.due_month <= 12:
            raise ValueError(f"Invalid due month {self.due_month}")
        if not 1 <= self.due_day <= 28:
            raise ValueError(f"Due day must be 1..28, got {self.due_day}")
        if not ZERO < self.cumulative_percentage <= _HUNDRED:
            raise ValueError(
                f"Cumulative percentage must be in (0, 100], got {self.cumulative_percentage}"
            )
        if self.interest_months < 0:
            raise ValueError("Interest months cannot be negative")

    def due_date(self, financial_year: FinancialYear) -> date:
        year = financial_year.start_year
        if self.due_month < FY_START_MONTH:
            year += 1
        return date(year, self.due_month, self.due_day)


@dataclass(frozen=True)
class LedgerPayment:
    """A payment as seen by the engines."""

    payment_date: date
    amount: Decimal
    linked_quarter: int | None = None
    payment_id: Any = None

    def __post_init__(self) -> None:
        if self.amount <= ZERO:
            raise ValueError(f"Payment amount must be positive, got {self.amount}")


@dataclass(frozen=True)
class ScheduleLine:
    """One installment of the plan with its fulfilment."""

    quarter: int
    due_date: date
    cumulative_percentage: Decimal
    cumulative_tax_due: Decimal
    tax_payable_this_quarter: Decimal
    tax_paid_this_quarter: Decimal
    cumulative_tax_paid: Decimal
    shortfall_amount: Decimal
    interest_months: int
    interest_234c: Decimal
    payment_status: InstallmentStatus

    def is_overdue(self, today: date) -> bool:
        return today > self.due_date and self.payment_status is not InstallmentStatus.PAID


@dataclass(frozen=True)
class ScheduleResult:
    """Installment plan plus attribution totals."""

    financial_year: FinancialYear
    net_tax_payable: Decimal
    lines: tuple[ScheduleLine, ...]
    unattributed_amount: Decimal

    @property
    def total_payable(self) -> Decimal:
        return sum((line.tax_payable_this_quarter for line in self.lines), ZERO)

    @property
    def total_attributed(self) -> Decimal:
        return self.lines[-1].cumulative_tax_paid if self.lines else ZERO

    @property
    def total_interest_234c(self) -> Decimal:
        return sum((line.interest_234c for line in self.lines), ZERO)

    def line_for(self, quarter: int) -> ScheduleLine:
        for line in self.lines:
            if line.quarter == quarter:
                return line
        raise KeyError(quarter)


class ScheduleGenerator:
    """
    Builds the quarterly schedule.

    Pure functions - no I/O.  Installment rules are provided as parameters
    (from the policy YAML via ``advtax_config.bridges``).
    """

    def __init__(
        self,
        rules: Sequence[InstallmentRule],
        interest_calculator: InterestCalculator | None = None,
    ):
        ordered = tuple(sorted(rules, key=lambda r: r.quarter))
        if not ordered:
            raise ValueError("At least one installment rule is required")
        if [r.quarter for r in ordered] != list(range(1, len(ordered) + 1)):
            raise ValueError("Installment quarters must be numbered 1..n without gaps")
        percentages = [r.cumulative_percentage for r in ordered]
        if any(b <= a for a, b in zip(percentages, percentages[1:])):
            raise ValueError("Cumulative percentages must be strictly increasing")
        if percentages[-1] != _HUNDRED:
            raise ValueError("The last installment must reach 100%")
        sample = FinancialYear(2000)
        due_dates = [r.due_date(sample) for r in ordered]
        if any(b <= a for a, b in zip(due_dates, due_dates[1:])):
            raise ValueError("Installment due dates must be strictly increasing")
        if not all(sample.contains(d) for d in due_dates):
            raise ValueError("Installment due dates must fall within the financial year")

        self._rules = ordered
        self._interest = interest_calculator or InterestCalculator()

    @property
    def rules(self) -> tuple[InstallmentRule, ...]:
        return self._rules

    def due_dates(self, financial_year: FinancialYear) -> tuple[date, ...]:
        return tuple(r.due_date(financial_year) for r in self._rules)

    def attribute(self, payment: LedgerPayment, financial_year: FinancialYear) -> int | None:
        """Quarter a payment counts toward, or None when paid after the last due date."""
        due_dates = self.due_dates(financial_year)
        if payment.linked_quarter is not None:
            if not 1 <= payment.linked_quarter <= len(due_dates):
                raise ValueError(f"Payment linked to unknown quarter {payment.linked_quarter}")
            if payment.payment_date <= due_dates[payment.linked_quarter - 1]:
                return payment.linked_quarter
        for index, due in enumerate(due_dates):
            if payment.payment_date <= due:
                return index + 1
        return None

    def cumulative_targets(self, net_tax_payable: Decimal) -> tuple[Decimal, ...]:
        """Cumulative amount due by each installment; the last equals net exactly."""
        targets = [
            round_money(net_tax_payable * rule.cumulative_percentage / _HUNDRED)
            for rule in self._rules[:-1]
        ]
        targets.append(net_tax_payable)
        return tuple(targets)

    @traced_engine(
        "schedule", "1.0",
        fingerprint_fields=("net_tax_payable", "financial_year", "payments"),
    )
    def generate(
        self,
        net_tax_payable: Decimal,
        financial_year: FinancialYear,
        payments: Sequence[LedgerPayment] = (),
    ) -> ScheduleResult:
        """
        Build the installment lines for ``net_tax_payable``.

        Raises:
            ValueError: If net tax payable is negative.
        """
        t0 = time.monotonic()
        if net_tax_payable < ZERO:
            logger.error("schedule_negative_net_payable", extra={
                "net_tax_payable": str(net_tax_payable),
            })
            raise ValueError(f"Net tax payable cannot be negative: {net_tax_payable}")

        net = round_money(net_tax_payable)
        logger.info("schedule_generation_started", extra={
            "financial_year": financial_year.label,
            "net_tax_payable": str(net),
            "payment_count": len(payments),
        })

        paid_by_quarter = [ZERO] * len(self._rules)
        unattributed = ZERO
        for payment in payments:
            quarter = self.attribute(payment, financial_year)
            if quarter is None:
                unattributed += payment.amount
            else:
                paid_by_quarter[quarter - 1] += payment.amount

        targets = self.cumulative_targets(net)
        lines: list[ScheduleLine] = []
        previous_target = round_money(ZERO)
        cumulative_paid = ZERO
        credited_so_far = ZERO
        last_index = len(self._rules) - 1

        for index, rule in enumerate(self._rules):
            target = targets[index]
            payable = target - previous_target
            cumulative_paid += paid_by_quarter[index]

            available = cumulative_paid - credited_so_far
            credited = available if index == last_index else min(available, payable)
            credited_so_far += credited

            shortfall = round_money(max(ZERO, payable - credited))
            if shortfall == ZERO and cumulative_paid >= target:
                status = InstallmentStatus.PAID
            elif credited > ZERO:
                status = InstallmentStatus.PARTIAL
            else:
                status = InstallmentStatus.PENDING

            lines.append(ScheduleLine(
                quarter=rule.quarter,
                due_date=rule.due_date(financial_year),
                cumulative_percentage=rule.cumulative_percentage,
                cumulative_tax_due=target,
                tax_payable_this_quarter=payable,
                tax_paid_this_quarter=round_money(credited),
                cumulative_tax_paid=round_money(cumulative_paid),
                shortfall_amount=shortfall,
                interest_months=rule.interest_months,
                interest_234c=self._interest.quarter_234c(
                    shortfall=shortfall,
                    cumulative_tax_paid=cumulative_paid,
                    cumulative_tax_due=target,
                    months=rule.interest_months,
                ),
                payment_status=status,
            ))
            previous_target = target

        result = ScheduleResult(
            financial_year=financial_year,
            net_tax_payable=net,
            lines=tuple(lines),
            unattributed_amount=round_money(unattributed),
        )

        logger.info("schedule_generation_completed", extra={
            "financial_year": financial_year.label,
            "net_tax_payable": str(net),
            "total_attributed": str(result.total_attributed),
            "unattributed_amount": str(result.unattributed_amount),
            "total_interest_234c": str(result.total_interest_234c),
            "statuses": [line.payment_status.value for line in lines],
            "duration_ms": round((time.monotonic() - t0) * 1000, 2),
        })
        return result
