"""
Advance Tax ORM Persistence Models (``advtax_modules.advance_tax.orm``).

Responsibility:
    SQLAlchemy ORM models that persist the frozen dataclass DTOs defined in
    ``advtax_modules.advance_tax.models``.  Each ORM class mirrors a DTO and
    provides ``to_dto()`` conversion; the service writes columns directly.

Architecture position:
    **Modules layer** -- persistence companions to the pure DTO models.
    Inherits from ``TrackedBase`` (kernel DB base) which provides:
    id (UUID PK, auto-generated), created_at, updated_at,
    created_by_id (NOT NULL UUID), updated_by_id (nullable UUID).

Invariants enforced:
    - Money columns are Numeric(20, 2); rates and percentages Numeric(12, 6).
    - Enum fields stored as String(20) containing the enum .value string.
    - One assessment per (company, financial year) (uq_advtax_company_fy).
    - One schedule row per (assessment, quarter); rows keep their id across
      recomputes so payment links stay valid.
    - ``AdvanceTaxAssessmentModel.version`` is the SQLAlchemy version
      counter: a stale UPDATE raises ``StaleDataError``.

Audit relevance:
    Payments are append-only (see ``immutability.py``); revisions keep the
    before/after figures of every projection change.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from advtax_kernel.db.base import RATE_TYPE, TrackedBase

_ZERO = Decimal("0")


# ---------------------------------------------------------------------------
# AdvanceTaxAssessmentModel
# ---------------------------------------------------------------------------

class AdvanceTaxAssessmentModel(TrackedBase):
    """
    ORM model for ``Assessment``.

    Contract:
        Inputs (YTD, projections, adjustments, credits) are written by the
        service; every derived column is recomputed from them in the same
        flush.  Derived columns are never set independently.
    """

    __tablename__ = "advance_tax_assessments"

    company_id: Mapped[UUID] = mapped_column(nullable=False)
    financial_year: Mapped[str] = mapped_column(String(9), nullable=False)
    assessment_year: Mapped[str] = mapped_column(String(9), nullable=False)
    tax_regime: Mapped[str] = mapped_column(String(20), nullable=False, default="normal")
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="draft")

    # YTD actuals
    ytd_revenue: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)
    ytd_expenses: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)
    ytd_through_date: Mapped[date | None] = mapped_column(nullable=True)

    # Editable projections
    projected_additional_revenue: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)
    projected_additional_expenses: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)
    projected_depreciation: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)
    projected_other_income: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)

    # Derived projection
    projected_revenue: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)
    projected_expenses: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)
    profit_before_tax: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)
    book_profit: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)

    # Reconciliation inputs: additions
    depreciation_addback: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)
    disallowed_cash_payments: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)
    disallowed_gratuity_provision: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)
    disallowed_unpaid_statutory_dues: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)
    other_disallowances: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)
    # Reconciliation inputs: deductions
    tax_depreciation: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)
    deduction_80c: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)
    deduction_80d: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)
    other_deductions: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)

    total_additions: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)
    total_deductions: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)
    taxable_income: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)

    # Liability
    base_rate: Mapped[Decimal] = mapped_column(RATE_TYPE, nullable=False, default=_ZERO)
    surcharge_rate: Mapped[Decimal] = mapped_column(RATE_TYPE, nullable=False, default=_ZERO)
    cess_rate: Mapped[Decimal] = mapped_column(RATE_TYPE, nullable=False, default=_ZERO)
    base_tax: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)
    surcharge: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)
    cess: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)
    total_tax_liability: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)

    # Credits
    tds_receivable: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)
    tcs_credit: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)
    mat_credit: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)
    net_tax_payable: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)

    # Interest snapshot (finalization)
    interest_234b: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)
    interest_234c: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)
    total_interest: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)
    interest_as_of: Mapped[date | None] = mapped_column(nullable=True)

    # Revision tracking
    revision_count: Mapped[int] = mapped_column(nullable=False, default=0)
    last_revision_date: Mapped[date | None] = mapped_column(nullable=True)
    last_revision_quarter: Mapped[int | None] = mapped_column(nullable=True)

    policy_checksum: Mapped[str | None] = mapped_column(String(64), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        UniqueConstraint("company_id", "financial_year", name="uq_advtax_company_fy"),
        Index("idx_advtax_assessment_status", "status"),
        Index("idx_advtax_assessment_company", "company_id"),
    )

    ADJUSTMENT_FIELDS = (
        "depreciation_addback",
        "disallowed_cash_payments",
        "disallowed_gratuity_provision",
        "disallowed_unpaid_statutory_dues",
        "other_disallowances",
        "tax_depreciation",
        "deduction_80c",
        "deduction_80d",
        "other_deductions",
    )

    def adjustments_dto(self):
        from advtax_engines.reconciliation import ReconciliationInputs
        return ReconciliationInputs(**{name: getattr(self, name) for name in self.ADJUSTMENT_FIELDS})

    def apply_adjustments(self, adjustments) -> None:
        for name, value in adjustments.as_dict().items():
            setattr(self, name, value)

    def to_dto(self):
        from advtax_modules.advance_tax.models import Assessment, AssessmentStatus
        return Assessment(
            id=self.id,
            company_id=self.company_id,
            financial_year=self.financial_year,
            assessment_year=self.assessment_year,
            tax_regime=self.tax_regime,
            status=AssessmentStatus(self.status),
            ytd_revenue=self.ytd_revenue,
            ytd_expenses=self.ytd_expenses,
            ytd_through_date=self.ytd_through_date,
            projected_additional_revenue=self.projected_additional_revenue,
            projected_additional_expenses=self.projected_additional_expenses,
            projected_depreciation=self.projected_depreciation,
            projected_other_income=self.projected_other_income,
            projected_revenue=self.projected_revenue,
            projected_expenses=self.projected_expenses,
            profit_before_tax=self.profit_before_tax,
            book_profit=self.book_profit,
            adjustments=self.adjustments_dto(),
            total_additions=self.total_additions,
            total_deductions=self.total_deductions,
            taxable_income=self.taxable_income,
            base_rate=self.base_rate,
            surcharge_rate=self.surcharge_rate,
            cess_rate=self.cess_rate,
            base_tax=self.base_tax,
            surcharge=self.surcharge,
            cess=self.cess,
            total_tax_liability=self.total_tax_liability,
            tds_receivable=self.tds_receivable,
            tcs_credit=self.tcs_credit,
            mat_credit=self.mat_credit,
            net_tax_payable=self.net_tax_payable,
            interest_234b=self.interest_234b,
            interest_234c=self.interest_234c,
            total_interest=self.total_interest,
            interest_as_of=self.interest_as_of,
            revision_count=self.revision_count,
            last_revision_date=self.last_revision_date,
            last_revision_quarter=self.last_revision_quarter,
            policy_checksum=self.policy_checksum,
            notes=self.notes,
            version=self.version,
        )

    def __repr__(self) -> str:
        return (
            f"<AdvanceTaxAssessmentModel company={self.company_id} "
            f"fy={self.financial_year} status={self.status}>"
        )


# ---------------------------------------------------------------------------
# AdvanceTaxScheduleModel
# ---------------------------------------------------------------------------

class AdvanceTaxScheduleModel(TrackedBase):
    """
    ORM model for ``ScheduleEntry`` -- one quarterly installment.

    Contract:
        Rewritten in place by the schedule generator on every recompute.
        ``is_overdue`` is not stored; it depends on "today".
    """

    __tablename__ = "advance_tax_schedules"

    assessment_id: Mapped[UUID] = mapped_column(
        ForeignKey("advance_tax_assessments.id"), nullable=False,
    )
    quarter: Mapped[int] = mapped_column(nullable=False)
    due_date: Mapped[date] = mapped_column(nullable=False)
    cumulative_percentage: Mapped[Decimal] = mapped_column(RATE_TYPE, nullable=False)
    cumulative_tax_due: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)
    tax_payable_this_quarter: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)
    tax_paid_this_quarter: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)
    cumulative_tax_paid: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)
    shortfall_amount: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)
    interest_234c: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)
    interest_months: Mapped[int] = mapped_column(nullable=False, default=0)
    payment_status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")

    __table_args__ = (
        UniqueConstraint("assessment_id", "quarter", name="uq_advtax_schedule_quarter"),
        Index("idx_advtax_schedule_assessment", "assessment_id"),
        Index("idx_advtax_schedule_due", "due_date"),
    )

    def apply_line(self, line) -> None:
        """Overwrite the computed fields from an engine ``ScheduleLine``."""
        self.due_date = line.due_date
        self.cumulative_percentage = line.cumulative_percentage
        self.cumulative_tax_due = line.cumulative_tax_due
        self.tax_payable_this_quarter = line.tax_payable_this_quarter
        self.tax_paid_this_quarter = line.tax_paid_this_quarter
        self.cumulative_tax_paid = line.cumulative_tax_paid
        self.shortfall_amount = line.shortfall_amount
        self.interest_234c = line.interest_234c
        self.interest_months = line.interest_months
        self.payment_status = line.payment_status.value

    def to_dto(self, is_overdue: bool = False):
        from advtax_engines.schedule import InstallmentStatus
        from advtax_modules.advance_tax.models import ScheduleEntry
        return ScheduleEntry(
            id=self.id,
            assessment_id=self.assessment_id,
            quarter=self.quarter,
            due_date=self.due_date,
            cumulative_percentage=self.cumulative_percentage,
            cumulative_tax_due=self.cumulative_tax_due,
            tax_payable_this_quarter=self.tax_payable_this_quarter,
            tax_paid_this_quarter=self.tax_paid_this_quarter,
            cumulative_tax_paid=self.cumulative_tax_paid,
            shortfall_amount=self.shortfall_amount,
            interest_234c=self.interest_234c,
            interest_months=self.interest_months,
            payment_status=InstallmentStatus(self.payment_status),
            is_overdue=is_overdue,
        )

    def __repr__(self) -> str:
        return (
            f"<AdvanceTaxScheduleModel assessment={self.assessment_id} "
            f"Q{self.quarter} due={self.due_date} status={self.payment_status}>"
        )


# ---------------------------------------------------------------------------
# AdvanceTaxPaymentModel
# ---------------------------------------------------------------------------

class AdvanceTaxPaymentModel(TrackedBase):
    """
    ORM model for ``Payment`` -- append-only.

    Contract:
        Fact columns never change after insert.  ``journal_number`` goes
        from NULL to a value exactly once; the posting attempt columns may
        change until then.
    """

    __tablename__ = "advance_tax_payments"

    assessment_id: Mapped[UUID] = mapped_column(
        ForeignKey("advance_tax_assessments.id"), nullable=False,
    )
    schedule_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("advance_tax_schedules.id"), nullable=True,
    )
    payment_date: Mapped[date] = mapped_column(nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    challan_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    bsr_code: Mapped[str | None] = mapped_column(String(20), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    journal_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    journal_attempts: Mapped[int] = mapped_column(nullable=False, default=0)
    journal_last_error: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index("idx_advtax_payment_assessment", "assessment_id"),
        Index("idx_advtax_payment_date", "payment_date"),
        Index("idx_advtax_payment_journal", "journal_number"),
    )

    FACT_FIELDS = (
        "assessment_id",
        "schedule_id",
        "payment_date",
        "amount",
        "challan_number",
        "bsr_code",
        "notes",
    )

    def to_dto(self):
        from advtax_modules.advance_tax.models import Payment
        return Payment(
            id=self.id,
            assessment_id=self.assessment_id,
            schedule_id=self.schedule_id,
            payment_date=self.payment_date,
            amount=self.amount,
            challan_number=self.challan_number,
            bsr_code=self.bsr_code,
            notes=self.notes,
            journal_number=self.journal_number,
            journal_attempts=self.journal_attempts,
            journal_last_error=self.journal_last_error,
        )

    def __repr__(self) -> str:
        return (
            f"<AdvanceTaxPaymentModel assessment={self.assessment_id} "
            f"{self.payment_date} amount={self.amount} journal={self.journal_number}>"
        )


# ---------------------------------------------------------------------------
# AdvanceTaxScenarioModel
# ---------------------------------------------------------------------------

class AdvanceTaxScenarioModel(TrackedBase):
    """ORM model for ``Scenario`` -- disposable what-if results."""

    __tablename__ = "advance_tax_scenarios"

    assessment_id: Mapped[UUID] = mapped_column(
        ForeignKey("advance_tax_assessments.id"), nullable=False,
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    revenue_adjustment: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)
    expense_adjustment: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)
    capex_impact: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)
    payroll_change: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)
    other_adjustments: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)
    adjusted_taxable_income: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)
    adjusted_tax_liability: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)
    variance_from_base: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)

    __table_args__ = (
        Index("idx_advtax_scenario_assessment", "assessment_id"),
    )

    def to_dto(self):
        from advtax_modules.advance_tax.models import Scenario
        return Scenario(
            id=self.id,
            assessment_id=self.assessment_id,
            name=self.name,
            description=self.description,
            revenue_adjustment=self.revenue_adjustment,
            expense_adjustment=self.expense_adjustment,
            capex_impact=self.capex_impact,
            payroll_change=self.payroll_change,
            other_adjustments=self.other_adjustments,
            adjusted_taxable_income=self.adjusted_taxable_income,
            adjusted_tax_liability=self.adjusted_tax_liability,
            variance_from_base=self.variance_from_base,
        )

    def __repr__(self) -> str:
        return f"<AdvanceTaxScenarioModel {self.name} variance={self.variance_from_base}>"


# ---------------------------------------------------------------------------
# AdvanceTaxRevisionModel
# ---------------------------------------------------------------------------

class AdvanceTaxRevisionModel(TrackedBase):
    """ORM model for ``Revision`` -- before/after snapshot of a revision."""

    __tablename__ = "advance_tax_revisions"

    assessment_id: Mapped[UUID] = mapped_column(
        ForeignKey("advance_tax_assessments.id"), nullable=False,
    )
    revision_number: Mapped[int] = mapped_column(nullable=False)
    revision_quarter: Mapped[int] = mapped_column(nullable=False)
    revision_date: Mapped[date] = mapped_column(nullable=False)
    previous_projected_revenue: Mapped[Decimal] = mapped_column(nullable=False)
    revised_projected_revenue: Mapped[Decimal] = mapped_column(nullable=False)
    previous_projected_expenses: Mapped[Decimal] = mapped_column(nullable=False)
    revised_projected_expenses: Mapped[Decimal] = mapped_column(nullable=False)
    previous_taxable_income: Mapped[Decimal] = mapped_column(nullable=False)
    revised_taxable_income: Mapped[Decimal] = mapped_column(nullable=False)
    previous_tax_liability: Mapped[Decimal] = mapped_column(nullable=False)
    revised_tax_liability: Mapped[Decimal] = mapped_column(nullable=False)
    previous_net_payable: Mapped[Decimal] = mapped_column(nullable=False)
    revised_net_payable: Mapped[Decimal] = mapped_column(nullable=False)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint("assessment_id", "revision_number", name="uq_advtax_revision_number"),
        Index("idx_advtax_revision_assessment", "assessment_id"),
    )

    def to_dto(self):
        from advtax_modules.advance_tax.models import Revision
        return Revision(
            id=self.id,
            assessment_id=self.assessment_id,
            revision_number=self.revision_number,
            revision_quarter=self.revision_quarter,
            revision_date=self.revision_date,
            previous_projected_revenue=self.previous_projected_revenue,
            revised_projected_revenue=self.revised_projected_revenue,
            previous_projected_expenses=self.previous_projected_expenses,
            revised_projected_expenses=self.revised_projected_expenses,
            previous_taxable_income=self.previous_taxable_income,
            revised_taxable_income=self.revised_taxable_income,
            previous_tax_liability=self.previous_tax_liability,
            revised_tax_liability=self.revised_tax_liability,
            previous_net_payable=self.previous_net_payable,
            revised_net_payable=self.revised_net_payable,
            reason=self.reason,
            notes=self.notes,
        )

    def __repr__(self) -> str:
        return (
            f"<AdvanceTaxRevisionModel assessment={self.assessment_id} "
            f"#{self.revision_number} Q{self.revision_quarter}>"
        )


# ---------------------------------------------------------------------------
# AdvanceTaxMatCreditModel
# ---------------------------------------------------------------------------

class AdvanceTaxMatCreditModel(TrackedBase):
    """
    ORM model for ``MatCredit`` -- one row per company and MAT year.

    Contract:
        ``credit_balance`` always equals ``credit_created - credit_utilized``;
        the service changes both through ``draw``.
    """

    __tablename__ = "advance_tax_mat_credits"

    company_id: Mapped[UUID] = mapped_column(nullable=False)
    assessment_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("advance_tax_assessments.id"), nullable=True,
    )
    financial_year: Mapped[str] = mapped_column(String(9), nullable=False)
    assessment_year: Mapped[str] = mapped_column(String(9), nullable=False)
    expiry_year: Mapped[str] = mapped_column(String(9), nullable=False)
    book_profit: Mapped[Decimal] = mapped_column(nullable=False)
    mat_rate: Mapped[Decimal] = mapped_column(RATE_TYPE, nullable=False)
    total_mat: Mapped[Decimal] = mapped_column(nullable=False)
    normal_tax: Mapped[Decimal] = mapped_column(nullable=False)
    credit_created: Mapped[Decimal] = mapped_column(nullable=False)
    credit_utilized: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)
    credit_balance: Mapped[Decimal] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")

    __table_args__ = (
        UniqueConstraint("company_id", "financial_year", name="uq_advtax_mat_credit_company_fy"),
        Index("idx_advtax_mat_credit_company", "company_id"),
    )

    def draw(self, amount: Decimal) -> Decimal:
        """Utilize up to ``amount``; returns what was taken."""
        taken = min(amount, self.credit_balance)
        self.credit_utilized += taken
        self.credit_balance = self.credit_created - self.credit_utilized
        self.status = "fully_utilized" if self.credit_balance <= _ZERO else "active"
        return taken

    def to_dto(self):
        from advtax_modules.advance_tax.models import MatCredit, MatCreditStatus
        return MatCredit(
            id=self.id,
            company_id=self.company_id,
            assessment_id=self.assessment_id,
            financial_year=self.financial_year,
            assessment_year=self.assessment_year,
            expiry_year=self.expiry_year,
            book_profit=self.book_profit,
            mat_rate=self.mat_rate,
            total_mat=self.total_mat,
            normal_tax=self.normal_tax,
            credit_created=self.credit_created,
            credit_utilized=self.credit_utilized,
            credit_balance=self.credit_balance,
            status=MatCreditStatus(self.status),
        )

    def __repr__(self) -> str:
        return (
            f"<AdvanceTaxMatCreditModel company={self.company_id} "
            f"fy={self.financial_year} balance={self.credit_balance}>"
        )


# ---------------------------------------------------------------------------
# AdvanceTaxMatCreditUtilizationModel
# ---------------------------------------------------------------------------

class AdvanceTaxMatCreditUtilizationModel(TrackedBase):
    """ORM model for ``MatCreditUtilization`` (append-only)."""

    __tablename__ = "advance_tax_mat_credit_utilizations"

    mat_credit_id: Mapped[UUID] = mapped_column(
        ForeignKey("advance_tax_mat_credits.id"), nullable=False,
    )
    assessment_id: Mapped[UUID] = mapped_column(
        ForeignKey("advance_tax_assessments.id"), nullable=False,
    )
    utilization_year: Mapped[str] = mapped_column(String(9), nullable=False)
    amount_utilized: Mapped[Decimal] = mapped_column(nullable=False)
    balance_after: Mapped[Decimal] = mapped_column(nullable=False)

    __table_args__ = (
        Index("idx_advtax_mat_utilization_credit", "mat_credit_id"),
    )

    def to_dto(self):
        from advtax_modules.advance_tax.models import MatCreditUtilization
        return MatCreditUtilization(
            id=self.id,
            mat_credit_id=self.mat_credit_id,
            assessment_id=self.assessment_id,
            utilization_year=self.utilization_year,
            amount_utilized=self.amount_utilized,
            balance_after=self.balance_after,
        )

    def __repr__(self) -> str:
        return (
            f"<AdvanceTaxMatCreditUtilizationModel credit={self.mat_credit_id} "
            f"amount={self.amount_utilized}>"
        )
