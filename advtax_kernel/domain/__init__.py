"""
Pure domain layer.

Value objects and abstractions with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- I/O (SystemClock is the one sanctioned boundary for time)

All domain objects are immutable and deterministic.
"""

from advtax_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from advtax_kernel.domain.values import FinancialYear, round_money, round_rate
from advtax_kernel.domain.workflow import Guard, Transition, Workflow

__all__ = [
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "FinancialYear",
    "round_money",
    "round_rate",
    "Guard",
    "Transition",
    "Workflow",
]
