"""
Module: advtax_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    calculation engines.  This is the import surface for the config bridges
    and the advance tax module.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import advtax_kernel (values, logging) and sibling engines.
    MUST NOT import advtax_config or advtax_modules.

Invariants enforced:
    - Purity: engines never read the clock.  "Today" and computation dates
      are passed in by the service.
    - Decimal-only arithmetic, rounded through ``round_money``.
    - Determinism: identical inputs always produce identical outputs.

Audit relevance:
    Entry points are wrapped in ``@traced_engine`` and emit
    ADVTAX_ENGINE_TRACE records with a deterministic input fingerprint.

Usage:
    from advtax_engines import (
        LiabilityCalculator, ReconciliationCalculator, ScheduleGenerator,
    )
"""

from advtax_kernel.logging_config import get_logger

logger = get_logger("engines")

from advtax_engines.interest import (  # noqa: E402
    DEFAULT_MONTHLY_RATE,
    Interest234B,
    InterestBreakdown,
    InterestCalculator,
    QuarterInterest,
)
from advtax_engines.liability import (  # noqa: E402
    LiabilityCalculator,
    LiabilityResult,
    SurchargeSlab,
    TaxRegimeRates,
)
from advtax_engines.mat import MatCalculator, MatComputation, MatPolicy  # noqa: E402
from advtax_engines.projection import (  # noqa: E402
    ProfitProjection,
    ProjectionInputs,
    TrendProjection,
    months_covered,
    project_from_trend,
    project_profit,
)
from advtax_engines.reconciliation import (  # noqa: E402
    AdjustmentKind,
    ReconciliationCalculator,
    ReconciliationInputs,
    ReconciliationLine,
    ReconciliationResult,
)
from advtax_engines.scenario import (  # noqa: E402
    ScenarioAdjustments,
    ScenarioBase,
    ScenarioEngine,
    ScenarioResult,
)
from advtax_engines.schedule import (  # noqa: E402
    InstallmentRule,
    InstallmentStatus,
    LedgerPayment,
    ScheduleGenerator,
    ScheduleLine,
    ScheduleResult,
)
from advtax_engines.tracer import compute_input_fingerprint, traced_engine  # noqa: E402

__all__ = [
    "DEFAULT_MONTHLY_RATE",
    "AdjustmentKind",
    "InstallmentRule",
    "InstallmentStatus",
    "Interest234B",
    "InterestBreakdown",
    "InterestCalculator",
    "LedgerPayment",
    "LiabilityCalculator",
    "LiabilityResult",
    "MatCalculator",
    "MatComputation",
    "MatPolicy",
    "ProfitProjection",
    "ProjectionInputs",
    "QuarterInterest",
    "ReconciliationCalculator",
    "ReconciliationInputs",
    "ReconciliationLine",
    "ReconciliationResult",
    "ScenarioAdjustments",
    "ScenarioBase",
    "ScenarioEngine",
    "ScenarioResult",
    "ScheduleGenerator",
    "ScheduleLine",
    "ScheduleResult",
    "SurchargeSlab",
    "TaxRegimeRates",
    "TrendProjection",
    "compute_input_fingerprint",
    "months_covered",
    "project_from_trend",
    "project_profit",
    "traced_engine",
]
