"""
Advance Tax Domain Models.

Responsibility:
    Frozen dataclass DTOs representing the nouns of advance tax: the
    assessment with its derived figures, schedule entries, payments,
    scenarios, revisions, MAT credits, and the read-side views (tracker, revision
    status, tax computation, previews).

Architecture:
    advtax_modules -- module layer.
    These models are pure data containers with no I/O and no ORM coupling.

Invariants:
    - All models are ``frozen=True`` (immutable after construction).
    - All monetary fields use ``Decimal`` -- NEVER ``float``.
    - Rates are fractions; ``cumulative_percentage`` is a whole percent.

Audit relevance:
    - ``Assessment.status`` is governed by ``workflows.py``.
    - ``Payment`` is append-only; ``journal_number`` is set once.
    - ``Revision`` preserves the figures an assessment had before each
      revision.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from advtax_engines.reconciliation import ReconciliationInputs, ReconciliationLine
from advtax_engines.projection import TrendProjection
from advtax_engines.schedule import InstallmentStatus
from advtax_kernel.domain.values import ZERO
from advtax_kernel.logging_config import get_logger

logger = get_logger("modules.advance_tax.models")


class AssessmentStatus(Enum):
    """Assessment lifecycle states."""
    DRAFT = "draft"
    ACTIVE = "active"
    FINALIZED = "finalized"


class MatCreditStatus(Enum):
    """MAT credit register entry states."""
    ACTIVE = "active"
    FULLY_UTILIZED = "fully_utilized"


# Tracker status when the company has no assessment for the year.
TRACKER_NOT_CREATED = "not_created"


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AssessmentCreate:
    """
    Inputs for a new assessment.

    ``projected_revenue`` / ``projected_expenses`` are full-year figures; the
    projected additional amount is derived as the excess over YTD actuals.
    When omitted, the remainder of the year is projected from the YTD
    monthly trend.  Credits left as None are pulled from the credit source;
    a None ``tax_regime`` takes the configured default.
    """
    company_id: UUID
    financial_year: str
    tax_regime: str | None = None
    projected_revenue: Decimal | None = None
    projected_expenses: Decimal | None = None
    projected_depreciation: Decimal = ZERO
    projected_other_income: Decimal = ZERO
    adjustments: ReconciliationInputs = field(default_factory=ReconciliationInputs)
    tds_receivable: Decimal | None = None
    tcs_credit: Decimal | None = None
    mat_credit: Decimal = ZERO
    notes: str | None = None


@dataclass(frozen=True)
class AssessmentUpdate:
    """Editable inputs; None leaves a field unchanged."""
    tax_regime: str | None = None
    projected_additional_revenue: Decimal | None = None
    projected_additional_expenses: Decimal | None = None
    projected_depreciation: Decimal | None = None
    projected_other_income: Decimal | None = None
    adjustments: ReconciliationInputs | None = None
    tds_receivable: Decimal | None = None
    tcs_credit: Decimal | None = None
    mat_credit: Decimal | None = None
    notes: str | None = None


@dataclass(frozen=True)
class ScenarioRequest:
    """A named set of signed what-if deltas."""
    name: str
    description: str | None = None
    revenue_adjustment: Decimal = ZERO
    expense_adjustment: Decimal = ZERO
    capex_impact: Decimal = ZERO
    payroll_change: Decimal = ZERO
    other_adjustments: Decimal = ZERO


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Assessment:
    """One advance tax assessment per (company, financial year)."""
    id: UUID
    company_id: UUID
    financial_year: str
    assessment_year: str
    tax_regime: str
    status: AssessmentStatus
    # YTD actuals
    ytd_revenue: Decimal = ZERO
    ytd_expenses: Decimal = ZERO
    ytd_through_date: date | None = None
    # editable projections
    projected_additional_revenue: Decimal = ZERO
    projected_additional_expenses: Decimal = ZERO
    projected_depreciation: Decimal = ZERO
    projected_other_income: Decimal = ZERO
    # derived projection
    projected_revenue: Decimal = ZERO
    projected_expenses: Decimal = ZERO
    profit_before_tax: Decimal = ZERO
    book_profit: Decimal = ZERO
    # reconciliation
    adjustments: ReconciliationInputs = field(default_factory=ReconciliationInputs)
    total_additions: Decimal = ZERO
    total_deductions: Decimal = ZERO
    taxable_income: Decimal = ZERO
    # liability
    base_rate: Decimal = ZERO
    surcharge_rate: Decimal = ZERO
    cess_rate: Decimal = ZERO
    base_tax: Decimal = ZERO
    surcharge: Decimal = ZERO
    cess: Decimal = ZERO
    total_tax_liability: Decimal = ZERO
    tds_receivable: Decimal = ZERO
    tcs_credit: Decimal = ZERO
    mat_credit: Decimal = ZERO
    net_tax_payable: Decimal = ZERO
    # interest snapshot (set on finalization)
    interest_234b: Decimal = ZERO
    interest_234c: Decimal = ZERO
    total_interest: Decimal = ZERO
    interest_as_of: date | None = None  # 234B period end frozen at finalization
    # revisions
    revision_count: int = 0
    last_revision_date: date | None = None
    last_revision_quarter: int | None = None
    policy_checksum: str | None = None
    notes: str | None = None
    version: int = 1

    @property
    def is_finalized(self) -> bool:
        return self.status is AssessmentStatus.FINALIZED

    @property
    def enforces_schedule(self) -> bool:
        """Overdue flags only apply once the schedule is authoritative."""
        return self.status in (AssessmentStatus.ACTIVE, AssessmentStatus.FINALIZED)


@dataclass(frozen=True)
class ScheduleEntry:
    """One quarterly installment of an assessment."""
    id: UUID
    assessment_id: UUID
    quarter: int
    due_date: date
    cumulative_percentage: Decimal
    cumulative_tax_due: Decimal
    tax_payable_this_quarter: Decimal
    tax_paid_this_quarter: Decimal = ZERO
    cumulative_tax_paid: Decimal = ZERO
    shortfall_amount: Decimal = ZERO
    interest_234c: Decimal = ZERO
    interest_months: int = 0
    payment_status: InstallmentStatus = InstallmentStatus.PENDING
    is_overdue: bool = False


@dataclass(frozen=True)
class Payment:
    """An advance tax payment (append-only)."""
    id: UUID
    assessment_id: UUID
    payment_date: date
    amount: Decimal
    schedule_id: UUID | None = None
    challan_number: str | None = None
    bsr_code: str | None = None
    notes: str | None = None
    journal_number: str | None = None
    journal_attempts: int = 0
    journal_last_error: str | None = None

    @property
    def is_posted(self) -> bool:
        return self.journal_number is not None


@dataclass(frozen=True)
class Scenario:
    """A persisted what-if projection."""
    id: UUID
    assessment_id: UUID
    name: str
    description: str | None = None
    revenue_adjustment: Decimal = ZERO
    expense_adjustment: Decimal = ZERO
    capex_impact: Decimal = ZERO
    payroll_change: Decimal = ZERO
    other_adjustments: Decimal = ZERO
    adjusted_taxable_income: Decimal = ZERO
    adjusted_tax_liability: Decimal = ZERO
    variance_from_base: Decimal = ZERO


@dataclass(frozen=True)
class Revision:
    """Snapshot of an assessment's figures before and after a revision."""
    id: UUID
    assessment_id: UUID
    revision_number: int
    revision_quarter: int
    revision_date: date
    previous_projected_revenue: Decimal
    revised_projected_revenue: Decimal
    previous_projected_expenses: Decimal
    revised_projected_expenses: Decimal
    previous_taxable_income: Decimal
    revised_taxable_income: Decimal
    previous_tax_liability: Decimal
    revised_tax_liability: Decimal
    previous_net_payable: Decimal
    revised_net_payable: Decimal
    reason: str | None = None
    notes: str | None = None

    @property
    def liability_change(self) -> Decimal:
        return self.revised_tax_liability - self.previous_tax_liability


@dataclass(frozen=True)
class MatCredit:
    """
    MAT credit created in one financial year.

    The excess of MAT over normal tax in a MAT year can be set off against
    normal tax of the following years until ``expiry_year``.
    """
    id: UUID
    company_id: UUID
    financial_year: str
    assessment_year: str
    expiry_year: str
    book_profit: Decimal
    mat_rate: Decimal
    total_mat: Decimal
    normal_tax: Decimal
    credit_created: Decimal
    credit_utilized: Decimal
    credit_balance: Decimal
    status: MatCreditStatus
    assessment_id: UUID | None = None


@dataclass(frozen=True)
class MatCreditUtilization:
    """One draw on a MAT credit by a later year's assessment."""
    id: UUID
    mat_credit_id: UUID
    assessment_id: UUID
    utilization_year: str
    amount_utilized: Decimal
    balance_after: Decimal


# ---------------------------------------------------------------------------
# Read-side views
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RevisionStatus:
    """Whether the projection should be revised now."""
    assessment_id: UUID
    current_quarter: int
    months_elapsed: int
    actual_ytd_profit: Decimal
    prorated_projected_profit: Decimal
    variance_amount: Decimal
    variance_percentage: Decimal
    revision_recommended: bool
    recommendation_reason: str | None
    revision_count: int
    last_revision_quarter: int | None


@dataclass(frozen=True)
class TaxComputation:
    """Regime rates, tax components and credits of an assessment."""
    assessment_id: UUID
    tax_regime: str
    regime_description: str
    book_profit: Decimal
    additions: tuple[ReconciliationLine, ...]
    deductions: tuple[ReconciliationLine, ...]
    taxable_income: Decimal
    base_rate: Decimal
    surcharge_rate: Decimal
    cess_rate: Decimal
    effective_rate: Decimal
    base_tax: Decimal
    surcharge: Decimal
    cess: Decimal
    total_tax_liability: Decimal
    tds_receivable: Decimal
    tcs_credit: Decimal
    mat_credit: Decimal
    total_credits: Decimal
    net_tax_payable: Decimal


@dataclass(frozen=True)
class MatCreditSummary:
    """MAT credit a company can still set off in a financial year."""
    company_id: UUID
    financial_year: str
    total_credit_available: Decimal
    credits: tuple[MatCredit, ...]
    expiring_soon_amount: Decimal
    expiring_soon_count: int

    @property
    def years_with_credit(self) -> int:
        return len(self.credits)


@dataclass(frozen=True)
class PaymentTracker:
    """Dashboard view of one company's advance tax position for a year."""
    company_id: UUID
    financial_year: str
    status: str  # assessment status value, or TRACKER_NOT_CREATED
    current_quarter: int
    assessment_id: UUID | None = None
    company_name: str | None = None
    total_tax_liability: Decimal = ZERO
    net_tax_payable: Decimal = ZERO
    total_paid: Decimal = ZERO
    remaining: Decimal = ZERO
    payment_percentage: Decimal = ZERO
    next_due_date: date | None = None
    next_due_amount: Decimal | None = None
    days_until_next_due: int | None = None
    interest_234b: Decimal = ZERO
    interest_234c: Decimal = ZERO
    total_interest: Decimal = ZERO
    schedule: tuple[ScheduleEntry, ...] = ()


@dataclass(frozen=True)
class YtdPreview:
    """Ledger YTD actuals against the stored figures, not persisted."""
    assessment_id: UUID
    through_date: date
    ytd_revenue: Decimal
    ytd_expenses: Decimal
    stored_ytd_revenue: Decimal
    stored_ytd_expenses: Decimal
    trend: TrendProjection


@dataclass(frozen=True)
class CreditPreview:
    """TDS/TCS from the credit source against the stored credits."""
    assessment_id: UUID
    source_tds_receivable: Decimal
    source_tcs_credit: Decimal
    stored_tds_receivable: Decimal
    stored_tcs_credit: Decimal

    @property
    def tds_difference(self) -> Decimal:
        return self.source_tds_receivable - self.stored_tds_receivable

    @property
    def tcs_difference(self) -> Decimal:
        return self.source_tcs_credit - self.stored_tcs_credit

    @property
    def has_changes(self) -> bool:
        return self.tds_difference != ZERO or self.tcs_difference != ZERO
