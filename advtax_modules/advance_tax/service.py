"""
Advance Tax Service -- Orchestrates the assessment lifecycle via engines.

Responsibility:
    Thin glue layer that connects the pure advance tax engines (projection,
    reconciliation, liability, schedule, interest, scenario, MAT) to
    persistence and the external collaborators.  All arithmetic is
    delegated to engines.  This service owns the transaction boundary, the
    lifecycle guards and per-assessment serialization.

Architecture:
    advtax_modules -- module layer.
    1. Resolves statutory parameters through ``advtax_config.get_active_policy``
       and ``advtax_config.bridges``.
    2. Calls the pure engines for every derived figure.
    3. Persists the results through the ORM models in ``orm.py``.
    4. Requests journal postings from the ``JournalPoster`` collaborator
       AFTER the payment transaction has committed.

Invariants:
    - This service owns the transaction boundary: commit on success,
      rollback on failure, exception re-raised.
    - Mutations of one assessment are serialized by the process-local
      ``AssessmentLockRegistry``; across processes the assessment row's
      version counter turns a stale write into ``OptimisticLockError``.
    - Every derived assessment field and every schedule row is recomputed
      from inputs plus payment history; nothing derived is set directly.
    - A finalized assessment rejects every mutation with
      ``AssessmentFinalizedError`` and stored data is left unchanged.
    - Payments are append-only; a failed journal posting never rolls back
      the payment.

Failure modes:
    - Validation errors (``ValidationError`` and subclasses) are raised
      before any mutation.
    - State conflicts (finalized, not active, invalid transition, lock
      timeout, stale version) roll the session back and propagate.
    - Journal posting failures are logged, recorded on the payment
      (attempt count and last error) and surfaced by
      ``list_unposted_payments``.

Audit relevance:
    - Every mutation emits a structured log with assessment id, amounts and
      the acting user.
    - ``policy_checksum`` on each assessment identifies the exact statutory
      parameters used.
    - Revisions keep the previous and revised figures.
    - MAT credit utilizations are append-only and name the drawing
      assessment.

Usage:
    service = AdvanceTaxService(session, clock, journal_poster=poster)
    assessment = service.create_assessment(
        AssessmentCreate(
            company_id=company_id,
            financial_year="2024-25",
            projected_revenue=Decimal("12000000"),
            projected_expenses=Decimal("8000000"),
        ),
        actor_id=actor_id,
    )
    service.activate_assessment(assessment.id, actor_id)
    service.record_payment(assessment.id, date(2024, 6, 10), Decimal("150000"), actor_id)
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import date
from decimal import Decimal
from pathlib import Path
from uuid import UUID, uuid4

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from advtax_config import get_active_policy
from advtax_config.bridges import (
    build_interest_calculator,
    build_mat_policy,
    build_schedule_generator,
    resolve_regime,
)
from advtax_config.schema import AdvanceTaxPolicy
from advtax_engines.interest import InterestBreakdown
from advtax_engines.liability import LiabilityCalculator, LiabilityResult
from advtax_engines.mat import MatCalculator, MatComputation
from advtax_engines.projection import ProjectionInputs, project_from_trend, project_profit
from advtax_engines.reconciliation import ReconciliationCalculator, ReconciliationInputs
from advtax_engines.scenario import ScenarioAdjustments, ScenarioBase, ScenarioEngine
from advtax_engines.schedule import InstallmentStatus, LedgerPayment, ScheduleResult
from advtax_kernel.domain.clock import Clock, SystemClock
from advtax_kernel.domain.values import ZERO, FinancialYear, round_money, round_rate
from advtax_kernel.exceptions import (
    AssessmentFinalizedError,
    AssessmentNotActiveError,
    AssessmentNotFoundError,
    CollaboratorUnavailableError,
    DuplicateAssessmentError,
    ImmutabilityViolationError,
    InvalidAmountError,
    InvalidTransitionError,
    JournalPostingError,
    MatCreditNotFoundError,
    OptimisticLockError,
    PaymentNotFoundError,
    ScenarioNotFoundError,
    ScheduleLinkError,
    ValidationError,
)
from advtax_kernel.logging_config import LogContext, get_logger
from advtax_modules.advance_tax.collaborators import (
    CompanyDirectory,
    JournalPoster,
    TaxCreditSource,
    YtdFinancials,
    YtdFinancialsSource,
)
from advtax_modules.advance_tax.config import AdvanceTaxConfig
from advtax_modules.advance_tax.helpers import (
    check_revision,
    current_quarter,
    next_due,
    payment_percentage,
)
from advtax_modules.advance_tax.immutability import register_immutability_listeners
from advtax_modules.advance_tax.locking import AssessmentLockRegistry, default_lock_registry
from advtax_modules.advance_tax.models import (
    TRACKER_NOT_CREATED,
    Assessment,
    AssessmentCreate,
    AssessmentStatus,
    AssessmentUpdate,
    CreditPreview,
    MatCredit,
    MatCreditSummary,
    MatCreditUtilization,
    Payment,
    PaymentTracker,
    Revision,
    RevisionStatus,
    Scenario,
    ScenarioRequest,
    ScheduleEntry,
    TaxComputation,
    YtdPreview,
)
from advtax_modules.advance_tax.orm import (
    AdvanceTaxAssessmentModel,
    AdvanceTaxMatCreditModel,
    AdvanceTaxMatCreditUtilizationModel,
    AdvanceTaxPaymentModel,
    AdvanceTaxRevisionModel,
    AdvanceTaxScenarioModel,
    AdvanceTaxScheduleModel,
)
from advtax_modules.advance_tax.workflows import (
    ASSESSMENT_WORKFLOW,
    EDITABLE_STATES,
    PAYABLE_STATES,
)

logger = get_logger("modules.advance_tax.service")

_FINALIZED = AssessmentStatus.FINALIZED.value
_ACTIVE = AssessmentStatus.ACTIVE.value
_DRAFT = AssessmentStatus.DRAFT.value


class AdvanceTaxService:
    """
    Orchestrates advance tax assessments through the engines.

    Contract:
        Callers supply a ``Session`` and optionally a ``Clock``, a module
        config and the collaborators.  Each mutating method owns the
        commit/rollback boundary.  Read methods never write.

    Guarantees:
        - Mutating methods commit on success and roll back on any failure.
        - Recomputation is idempotent: the same inputs and payment history
          always produce the same stored figures.
        - Schedule rows keep their ids across recomputes.

    Non-goals:
        - Tax-form filing or export.
        - Payment reversal or deletion.

    Engine composition:
        - ``project_profit`` / ``project_from_trend``: full-year projection.
        - ``ReconciliationCalculator``: book profit to taxable income.
        - ``LiabilityCalculator``: regime-aware liability and net payable.
        - ``ScheduleGenerator`` / ``InterestCalculator``: built per policy.
        - ``ScenarioEngine`` and ``MatCalculator``: read-only what-ifs.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: AdvanceTaxConfig | None = None,
        *,
        journal_poster: JournalPoster | None = None,
        ytd_source: YtdFinancialsSource | None = None,
        credit_source: TaxCreditSource | None = None,
        company_directory: CompanyDirectory | None = None,
        lock_registry: AssessmentLockRegistry | None = None,
        policy_path: Path | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._config = config or AdvanceTaxConfig.with_defaults()
        self._journal_poster = journal_poster
        self._ytd_source = ytd_source
        self._credit_source = credit_source
        self._company_directory = company_directory
        self._locks = lock_registry or default_lock_registry()
        self._policy_path = policy_path

        # Stateless engines
        self._reconciler = ReconciliationCalculator()
        self._liability = LiabilityCalculator()
        self._scenario_engine = ScenarioEngine(self._reconciler, self._liability)

        register_immutability_listeners()

    # =========================================================================
    # Internals
    # =========================================================================

    def _policy_for(self, fy: FinancialYear) -> AdvanceTaxPolicy:
        return get_active_policy(fy.start_date, path=self._policy_path)

    @contextmanager
    def _mutation(self, assessment_id: UUID, operation: str, actor_id: UUID) -> Iterator[None]:
        """Per-assessment lock plus the commit/rollback boundary."""
        with LogContext.bind(
            assessment_id=assessment_id, operation=operation, actor_id=actor_id,
        ):
            with self._locks.hold(
                assessment_id, operation, self._config.lock_timeout_seconds,
            ):
                try:
                    yield
                    self._session.commit()
                except StaleDataError as exc:
                    self._session.rollback()
                    logger.warning("advance_tax_stale_write", extra={
                        "assessment_id": str(assessment_id),
                        "operation": operation,
                    })
                    raise OptimisticLockError("AdvanceTaxAssessment", str(assessment_id)) from exc
                except Exception:
                    self._session.rollback()
                    raise

    def _get_model(self, assessment_id: UUID) -> AdvanceTaxAssessmentModel:
        model = self._session.get(AdvanceTaxAssessmentModel, assessment_id)
        if model is None:
            raise AssessmentNotFoundError(str(assessment_id))
        return model

    def _load_for_update(self, assessment_id: UUID) -> AdvanceTaxAssessmentModel:
        stmt = (
            select(AdvanceTaxAssessmentModel)
            .where(AdvanceTaxAssessmentModel.id == assessment_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        model = self._session.execute(stmt).scalar_one_or_none()
        if model is None:
            raise AssessmentNotFoundError(str(assessment_id))
        return model

    def _find_model(self, company_id: UUID, financial_year: str) -> AdvanceTaxAssessmentModel | None:
        stmt = select(AdvanceTaxAssessmentModel).where(
            AdvanceTaxAssessmentModel.company_id == company_id,
            AdvanceTaxAssessmentModel.financial_year == financial_year,
        )
        return self._session.execute(stmt).scalar_one_or_none()

    def _schedule_rows(self, assessment_id: UUID) -> list[AdvanceTaxScheduleModel]:
        stmt = (
            select(AdvanceTaxScheduleModel)
            .where(AdvanceTaxScheduleModel.assessment_id == assessment_id)
            .order_by(AdvanceTaxScheduleModel.quarter)
        )
        return list(self._session.execute(stmt).scalars())

    def _payment_rows(self, assessment_id: UUID) -> list[AdvanceTaxPaymentModel]:
        stmt = (
            select(AdvanceTaxPaymentModel)
            .where(AdvanceTaxPaymentModel.assessment_id == assessment_id)
            .order_by(AdvanceTaxPaymentModel.payment_date, AdvanceTaxPaymentModel.created_at)
        )
        return list(self._session.execute(stmt).scalars())

    def _ledger(self, assessment_id: UUID) -> list[LedgerPayment]:
        quarter_of_schedule = {row.id: row.quarter for row in self._schedule_rows(assessment_id)}
        return [
            LedgerPayment(
                payment_date=p.payment_date,
                amount=p.amount,
                linked_quarter=quarter_of_schedule.get(p.schedule_id),
                payment_id=p.id,
            )
            for p in self._payment_rows(assessment_id)
        ]

    @staticmethod
    def _ensure_editable(model: AdvanceTaxAssessmentModel, operation: str) -> None:
        if model.status == _FINALIZED:
            logger.warning("advance_tax_finalized_mutation_rejected", extra={
                "assessment_id": str(model.id),
                "operation": operation,
            })
            raise AssessmentFinalizedError(str(model.id), operation)
        if model.status not in EDITABLE_STATES:
            raise InvalidTransitionError(str(model.id), model.status, operation)

    @staticmethod
    def _require_money(field: str, value) -> None:
        if not isinstance(value, Decimal) or not value.is_finite():
            raise InvalidAmountError(field, value, reason="must be a finite Decimal")

    @classmethod
    def _require_non_negative(cls, field: str, value: Decimal | None) -> None:
        if value is None:
            return
        cls._require_money(field, value)
        if value < ZERO:
            raise InvalidAmountError(field, value, reason="cannot be negative")

    @staticmethod
    def _projection_inputs(model: AdvanceTaxAssessmentModel) -> ProjectionInputs:
        return ProjectionInputs(
            ytd_revenue=model.ytd_revenue,
            ytd_expenses=model.ytd_expenses,
            projected_additional_revenue=model.projected_additional_revenue,
            projected_additional_expenses=model.projected_additional_expenses,
            projected_depreciation=model.projected_depreciation,
            projected_other_income=model.projected_other_income,
        )

    def _recompute_liability(
        self,
        model: AdvanceTaxAssessmentModel,
        policy: AdvanceTaxPolicy,
    ) -> LiabilityResult:
        """Rerun projection, reconciliation and liability into the model."""
        regime = resolve_regime(policy, model.tax_regime)
        projection = project_profit(inputs=self._projection_inputs(model))
        reconciliation = self._reconciler.reconcile(
            book_profit=projection.profit_before_tax,
            inputs=model.adjustments_dto(),
        )
        liability = self._liability.calculate(
            taxable_income=reconciliation.taxable_income,
            regime=regime,
            tds_receivable=model.tds_receivable,
            tcs_credit=model.tcs_credit,
            mat_credit=model.mat_credit,
        )

        model.projected_revenue = projection.projected_revenue
        model.projected_expenses = projection.projected_expenses
        model.profit_before_tax = projection.profit_before_tax
        model.book_profit = projection.profit_before_tax
        model.total_additions = reconciliation.total_additions
        model.total_deductions = reconciliation.total_deductions
        model.taxable_income = reconciliation.taxable_income
        model.base_rate = liability.base_rate
        model.surcharge_rate = liability.surcharge_rate
        model.cess_rate = liability.cess_rate
        model.base_tax = liability.base_tax
        model.surcharge = liability.surcharge
        model.cess = liability.cess
        model.total_tax_liability = liability.total_tax_liability
        model.net_tax_payable = liability.net_tax_payable
        model.policy_checksum = policy.checksum
        return liability

    def _regenerate_schedule(
        self,
        model: AdvanceTaxAssessmentModel,
        policy: AdvanceTaxPolicy,
        actor_id: UUID,
    ) -> ScheduleResult:
        """Rewrite the schedule rows in place from net payable and payments."""
        fy = FinancialYear.parse(model.financial_year)
        generator = build_schedule_generator(policy)
        result = generator.generate(
            net_tax_payable=model.net_tax_payable,
            financial_year=fy,
            payments=self._ledger(model.id),
        )

        rows = {row.quarter: row for row in self._schedule_rows(model.id)}
        for line in result.lines:
            row = rows.get(line.quarter)
            if row is None:
                row = AdvanceTaxScheduleModel(
                    assessment_id=model.id,
                    quarter=line.quarter,
                    created_by_id=actor_id,
                )
                self._session.add(row)
            else:
                row.updated_by_id = actor_id
            row.apply_line(line)

        logger.info("advance_tax_schedule_regenerated", extra={
            "assessment_id": str(model.id),
            "net_tax_payable": str(result.net_tax_payable),
            "total_attributed": str(result.total_attributed),
            "total_interest_234c": str(result.total_interest_234c),
        })
        return result

    def _recompute_all(
        self,
        model: AdvanceTaxAssessmentModel,
        actor_id: UUID,
    ) -> ScheduleResult:
        policy = self._policy_for(FinancialYear.parse(model.financial_year))
        self._recompute_liability(model, policy)
        model.updated_by_id = actor_id
        self._session.flush()
        return self._regenerate_schedule(model, policy, actor_id)

    def _ytd_cutoff(self, fy: FinancialYear) -> date | None:
        """YTD runs to today, capped at year end; None before the year starts."""
        through = fy.clamp(self._clock.today())
        if through < fy.start_date:
            return None
        return through

    def _fetch_ytd(self, company_id: UUID, fy: FinancialYear, through: date) -> YtdFinancials:
        if self._ytd_source is None:
            raise CollaboratorUnavailableError("YtdFinancialsSource", "ytd refresh")
        ytd = self._ytd_source.get_ytd_financials(company_id, fy.start_date, through)
        logger.info("advance_tax_ytd_fetched", extra={
            "company_id": str(company_id),
            "financial_year": fy.label,
            "through": through.isoformat(),
            "revenue": str(ytd.revenue),
            "expenses": str(ytd.expenses),
        })
        return YtdFinancials(revenue=round_money(ytd.revenue), expenses=round_money(ytd.expenses))

    def _fetch_credits(self, company_id: UUID, fy: FinancialYear) -> tuple[Decimal, Decimal]:
        if self._credit_source is None:
            raise CollaboratorUnavailableError("TaxCreditSource", "tds/tcs refresh")
        tds = round_money(self._credit_source.get_tds_receivable(company_id, fy.label))
        tcs = round_money(self._credit_source.get_tcs_credit(company_id, fy.label))
        return tds, tcs

    def _schedule_dtos(self, model: AdvanceTaxAssessmentModel) -> list[ScheduleEntry]:
        today = self._clock.today()
        enforce = model.status in (_ACTIVE, _FINALIZED)
        entries = []
        for row in self._schedule_rows(model.id):
            overdue = (
                enforce
                and today > row.due_date
                and row.payment_status != InstallmentStatus.PAID.value
            )
            entries.append(row.to_dto(is_overdue=overdue))
        return entries

    def _interest_breakdown(
        self,
        model: AdvanceTaxAssessmentModel,
        as_of: date,
        assessed_tax: Decimal | None = None,
        final_payment_date: date | None = None,
    ) -> InterestBreakdown:
        fy = FinancialYear.parse(model.financial_year)
        calculator = build_interest_calculator(self._policy_for(fy))
        return calculator.breakdown(
            lines=[row.to_dto() for row in self._schedule_rows(model.id)],
            assessed_tax=model.net_tax_payable if assessed_tax is None else assessed_tax,
            payments=self._ledger(model.id),
            financial_year=fy,
            as_of=as_of,
            final_payment_date=final_payment_date,
        )

    def _apply_update(self, model: AdvanceTaxAssessmentModel, update: AssessmentUpdate) -> None:
        for field in (
            "projected_additional_revenue",
            "projected_additional_expenses",
            "projected_depreciation",
            "projected_other_income",
            "tds_receivable",
            "tcs_credit",
            "mat_credit",
        ):
            value = getattr(update, field)
            self._require_non_negative(field, value)
            if value is not None:
                setattr(model, field, round_money(value))
        if update.tax_regime is not None:
            policy = self._policy_for(FinancialYear.parse(model.financial_year))
            resolve_regime(policy, update.tax_regime)
            model.tax_regime = update.tax_regime
        if update.adjustments is not None:
            model.apply_adjustments(update.adjustments)
        if update.notes is not None:
            model.notes = update.notes

    # =========================================================================
    # Reads
    # =========================================================================

    def get_assessment(self, assessment_id: UUID) -> Assessment:
        return self._get_model(assessment_id).to_dto()

    def find_assessment(self, company_id: UUID, financial_year: str) -> Assessment | None:
        label = FinancialYear.parse(financial_year).label
        model = self._find_model(company_id, label)
        return model.to_dto() if model is not None else None

    def list_assessments(
        self,
        company_id: UUID | None = None,
        status: AssessmentStatus | None = None,
    ) -> list[Assessment]:
        stmt = select(AdvanceTaxAssessmentModel).order_by(
            AdvanceTaxAssessmentModel.financial_year.desc(),
        )
        if company_id is not None:
            stmt = stmt.where(AdvanceTaxAssessmentModel.company_id == company_id)
        if status is not None:
            stmt = stmt.where(AdvanceTaxAssessmentModel.status == status.value)
        return [m.to_dto() for m in self._session.execute(stmt).scalars()]

    def get_schedule(self, assessment_id: UUID) -> list[ScheduleEntry]:
        """Schedule entries by quarter; ``is_overdue`` evaluated against today."""
        return self._schedule_dtos(self._get_model(assessment_id))

    def list_payments(self, assessment_id: UUID) -> list[Payment]:
        self._get_model(assessment_id)
        return [p.to_dto() for p in self._payment_rows(assessment_id)]

    def list_unposted_payments(self, assessment_id: UUID | None = None) -> list[Payment]:
        """Payments still waiting for a journal number (follow-up items)."""
        stmt = (
            select(AdvanceTaxPaymentModel)
            .where(AdvanceTaxPaymentModel.journal_number.is_(None))
            .order_by(AdvanceTaxPaymentModel.payment_date)
        )
        if assessment_id is not None:
            stmt = stmt.where(AdvanceTaxPaymentModel.assessment_id == assessment_id)
        return [p.to_dto() for p in self._session.execute(stmt).scalars()]

    def get_interest_breakdown(
        self,
        assessment_id: UUID,
        as_of: date | None = None,
        assessed_tax: Decimal | None = None,
        final_payment_date: date | None = None,
    ) -> InterestBreakdown:
        """
        Per-quarter 234C from the stored schedule plus 234B as of ``as_of``.

        ``assessed_tax`` defaults to net tax payable; pass the final
        assessed liability when known.  A finalized assessment called
        without overrides reports the figures frozen at finalization.
        """
        model = self._get_model(assessment_id)
        if (
            model.status == _FINALIZED
            and as_of is None
            and assessed_tax is None
            and final_payment_date is None
        ):
            return self._interest_breakdown(model, as_of=model.interest_as_of)
        return self._interest_breakdown(
            model,
            as_of=as_of or self._clock.today(),
            assessed_tax=assessed_tax,
            final_payment_date=final_payment_date,
        )

    def list_scenarios(self, assessment_id: UUID) -> list[Scenario]:
        self._get_model(assessment_id)
        stmt = (
            select(AdvanceTaxScenarioModel)
            .where(AdvanceTaxScenarioModel.assessment_id == assessment_id)
            .order_by(AdvanceTaxScenarioModel.created_at, AdvanceTaxScenarioModel.name)
        )
        return [s.to_dto() for s in self._session.execute(stmt).scalars()]

    def list_revisions(self, assessment_id: UUID) -> list[Revision]:
        self._get_model(assessment_id)
        stmt = (
            select(AdvanceTaxRevisionModel)
            .where(AdvanceTaxRevisionModel.assessment_id == assessment_id)
            .order_by(AdvanceTaxRevisionModel.revision_number)
        )
        return [r.to_dto() for r in self._session.execute(stmt).scalars()]

    def get_revision_status(self, assessment_id: UUID) -> RevisionStatus:
        model = self._get_model(assessment_id)
        today = self._clock.today()
        check = check_revision(
            ytd_revenue=model.ytd_revenue,
            ytd_expenses=model.ytd_expenses,
            profit_before_tax=model.profit_before_tax,
            financial_year=FinancialYear.parse(model.financial_year),
            today=today,
            last_revision_quarter=model.last_revision_quarter,
            threshold_pct=self._config.revision_variance_threshold_pct,
        )
        return RevisionStatus(
            assessment_id=model.id,
            current_quarter=current_quarter(today),
            months_elapsed=check.months_elapsed,
            actual_ytd_profit=check.actual_ytd_profit,
            prorated_projected_profit=check.prorated_projected_profit,
            variance_amount=check.variance_amount,
            variance_percentage=check.variance_percentage,
            revision_recommended=check.revision_recommended,
            recommendation_reason=check.reason,
            revision_count=model.revision_count,
            last_revision_quarter=model.last_revision_quarter,
        )

    def get_tracker(self, company_id: UUID, financial_year: str) -> PaymentTracker:
        """Payment position of a company for a year, even without an assessment."""
        fy = FinancialYear.parse(financial_year)
        today = self._clock.today()
        model = self._find_model(company_id, fy.label)
        if model is None:
            return PaymentTracker(
                company_id=company_id,
                financial_year=fy.label,
                status=TRACKER_NOT_CREATED,
                current_quarter=current_quarter(today),
                company_name=self._company_name(company_id),
            )

        schedule = self._schedule_dtos(model)
        total_paid = round_money(sum((p.amount for p in self._payment_rows(model.id)), ZERO))
        upcoming = next_due(schedule, today)
        if model.status == _FINALIZED:
            interest_234b, interest_234c = model.interest_234b, model.interest_234c
        else:
            breakdown = self._interest_breakdown(model, as_of=today)
            interest_234b = breakdown.interest_234b.interest
            interest_234c = breakdown.total_interest_234c

        return PaymentTracker(
            company_id=company_id,
            financial_year=fy.label,
            status=model.status,
            current_quarter=current_quarter(today),
            assessment_id=model.id,
            company_name=self._company_name(company_id),
            total_tax_liability=model.total_tax_liability,
            net_tax_payable=model.net_tax_payable,
            total_paid=total_paid,
            remaining=round_money(max(ZERO, model.net_tax_payable - total_paid)),
            payment_percentage=payment_percentage(total_paid, model.net_tax_payable),
            next_due_date=upcoming.due_date if upcoming else None,
            next_due_amount=upcoming.amount if upcoming else None,
            days_until_next_due=upcoming.days_until if upcoming else None,
            interest_234b=interest_234b,
            interest_234c=interest_234c,
            total_interest=interest_234b + interest_234c,
            schedule=tuple(schedule),
        )

    def _company_name(self, company_id: UUID) -> str | None:
        if self._company_directory is None:
            return None
        return self._company_directory.get_company_name(company_id)

    def get_tax_computation(self, assessment_id: UUID) -> TaxComputation:
        model = self._get_model(assessment_id)
        policy = self._policy_for(FinancialYear.parse(model.financial_year))
        regime = resolve_regime(policy, model.tax_regime)
        reconciliation = self._reconciler.reconcile(
            book_profit=model.book_profit,
            inputs=model.adjustments_dto(),
        )
        total_credits = model.tds_receivable + model.tcs_credit + model.mat_credit
        effective_rate = (
            ZERO if model.taxable_income == ZERO
            else round_rate(model.total_tax_liability / model.taxable_income)
        )
        return TaxComputation(
            assessment_id=model.id,
            tax_regime=model.tax_regime,
            regime_description=regime.description,
            book_profit=model.book_profit,
            additions=reconciliation.additions,
            deductions=reconciliation.deductions,
            taxable_income=model.taxable_income,
            base_rate=model.base_rate,
            surcharge_rate=model.surcharge_rate,
            cess_rate=model.cess_rate,
            effective_rate=effective_rate,
            base_tax=model.base_tax,
            surcharge=model.surcharge,
            cess=model.cess,
            total_tax_liability=model.total_tax_liability,
            tds_receivable=model.tds_receivable,
            tcs_credit=model.tcs_credit,
            mat_credit=model.mat_credit,
            total_credits=total_credits,
            net_tax_payable=model.net_tax_payable,
        )

    def get_mat_computation(
        self,
        assessment_id: UUID,
        mat_credit_available: Decimal | None = None,
    ) -> MatComputation:
        """
        MAT comparison; nothing is stored.

        Available credit defaults to the register balance usable in the
        assessment's year.
        """
        model = self._get_model(assessment_id)
        fy = FinancialYear.parse(model.financial_year)
        if mat_credit_available is None:
            mat_credit_available = self._total_balance(
                self._usable_mat_credits(model.company_id, fy),
            )
        return MatCalculator(build_mat_policy(self._policy_for(fy))).compute(
            book_profit=model.book_profit,
            normal_tax=model.total_tax_liability,
            regime=model.tax_regime,
            mat_credit_available=mat_credit_available,
        )

    def preview_ytd(self, assessment_id: UUID) -> YtdPreview:
        """Ledger YTD and trend suggestions, without persisting anything."""
        model = self._get_model(assessment_id)
        fy = FinancialYear.parse(model.financial_year)
        through = self._ytd_cutoff(fy)
        if through is None:
            raise ValidationError("ytd_through_date", f"financial year {fy.label} has not started")
        ytd = self._fetch_ytd(model.company_id, fy, through)
        return YtdPreview(
            assessment_id=model.id,
            through_date=through,
            ytd_revenue=ytd.revenue,
            ytd_expenses=ytd.expenses,
            stored_ytd_revenue=model.ytd_revenue,
            stored_ytd_expenses=model.ytd_expenses,
            trend=project_from_trend(ytd.revenue, ytd.expenses, fy.start_date, through),
        )

    def preview_tds_tcs(self, assessment_id: UUID) -> CreditPreview:
        model = self._get_model(assessment_id)
        tds, tcs = self._fetch_credits(model.company_id, FinancialYear.parse(model.financial_year))
        return CreditPreview(
            assessment_id=model.id,
            source_tds_receivable=tds,
            source_tcs_credit=tcs,
            stored_tds_receivable=model.tds_receivable,
            stored_tcs_credit=model.tcs_credit,
        )

    def list_pending_assessments(self, company_id: UUID | None = None) -> list[Assessment]:
        """Active assessments whose schedule is not fully paid."""
        unpaid = (
            select(AdvanceTaxScheduleModel.assessment_id)
            .where(AdvanceTaxScheduleModel.payment_status != InstallmentStatus.PAID.value)
        )
        stmt = (
            select(AdvanceTaxAssessmentModel)
            .where(
                AdvanceTaxAssessmentModel.status == _ACTIVE,
                AdvanceTaxAssessmentModel.id.in_(unpaid),
            )
            .order_by(AdvanceTaxAssessmentModel.financial_year)
        )
        if company_id is not None:
            stmt = stmt.where(AdvanceTaxAssessmentModel.company_id == company_id)
        return [m.to_dto() for m in self._session.execute(stmt).scalars()]

    # =========================================================================
    # Assessment lifecycle
    # =========================================================================

    def create_assessment(self, request: AssessmentCreate, actor_id: UUID) -> Assessment:
        """
        Create a draft assessment and its schedule.

        YTD actuals are pulled up to ``min(today, year end)`` when a YTD
        source is configured.  Full-year projections, when given, become
        "projected additional" as their excess over YTD; otherwise the
        remainder is projected from the monthly trend.

        Raises:
            InvalidFinancialYearError, UnknownTaxRegimeError,
            InvalidAmountError: On invalid input.
            DuplicateAssessmentError: If the company already has one for
                the year.
        """
        fy = FinancialYear.parse(request.financial_year)
        policy = self._policy_for(fy)
        regime_code = request.tax_regime or self._config.default_tax_regime
        resolve_regime(policy, regime_code)
        for field in (
            "projected_revenue",
            "projected_expenses",
            "projected_depreciation",
            "projected_other_income",
            "tds_receivable",
            "tcs_credit",
            "mat_credit",
        ):
            self._require_non_negative(field, getattr(request, field))

        existing = self._find_model(request.company_id, fy.label)
        if existing is not None:
            raise DuplicateAssessmentError(str(request.company_id), fy.label, str(existing.id))

        with LogContext.bind(
            company_id=request.company_id, operation="create_assessment", actor_id=actor_id,
        ):
            try:
                ytd = YtdFinancials(revenue=round_money(ZERO), expenses=round_money(ZERO))
                through = self._ytd_cutoff(fy)
                if through is not None and self._ytd_source is not None:
                    ytd = self._fetch_ytd(request.company_id, fy, through)
                else:
                    through = None

                trend = None
                if through is not None and self._config.auto_project_from_trend:
                    trend = project_from_trend(ytd.revenue, ytd.expenses, fy.start_date, through)

                def additional(full_year: Decimal | None, actual: Decimal, suggested) -> Decimal:
                    if full_year is not None:
                        return round_money(max(ZERO, full_year - actual))
                    if trend is not None:
                        return suggested
                    return round_money(ZERO)

                tds, tcs = request.tds_receivable, request.tcs_credit
                if (tds is None or tcs is None) and self._credit_source is not None:
                    source_tds, source_tcs = self._fetch_credits(request.company_id, fy)
                    tds = source_tds if tds is None else tds
                    tcs = source_tcs if tcs is None else tcs

                model = AdvanceTaxAssessmentModel(
                    id=uuid4(),
                    company_id=request.company_id,
                    financial_year=fy.label,
                    assessment_year=fy.assessment_year.label,
                    tax_regime=regime_code,
                    status=ASSESSMENT_WORKFLOW.initial_state,
                    ytd_revenue=ytd.revenue,
                    ytd_expenses=ytd.expenses,
                    ytd_through_date=through,
                    projected_additional_revenue=additional(
                        request.projected_revenue, ytd.revenue,
                        trend.suggested_additional_revenue if trend else None,
                    ),
                    projected_additional_expenses=additional(
                        request.projected_expenses, ytd.expenses,
                        trend.suggested_additional_expenses if trend else None,
                    ),
                    projected_depreciation=round_money(request.projected_depreciation),
                    projected_other_income=round_money(request.projected_other_income),
                    tds_receivable=round_money(tds if tds is not None else ZERO),
                    tcs_credit=round_money(tcs if tcs is not None else ZERO),
                    mat_credit=round_money(request.mat_credit),
                    notes=request.notes,
                    created_by_id=actor_id,
                )
                model.apply_adjustments(request.adjustments)
                self._recompute_liability(model, policy)
                self._session.add(model)
                self._session.flush()
                self._regenerate_schedule(model, policy, actor_id)
                self._session.commit()
            except IntegrityError as exc:
                self._session.rollback()
                existing = self._find_model(request.company_id, fy.label)
                if existing is not None:
                    raise DuplicateAssessmentError(
                        str(request.company_id), fy.label, str(existing.id),
                    ) from exc
                raise
            except Exception:
                self._session.rollback()
                raise

        logger.info("advance_tax_assessment_created", extra={
            "assessment_id": str(model.id),
            "company_id": str(model.company_id),
            "financial_year": model.financial_year,
            "tax_regime": model.tax_regime,
            "taxable_income": str(model.taxable_income),
            "total_tax_liability": str(model.total_tax_liability),
            "net_tax_payable": str(model.net_tax_payable),
        })
        return model.to_dto()

    def update_assessment(
        self,
        assessment_id: UUID,
        update: AssessmentUpdate,
        actor_id: UUID,
    ) -> Assessment:
        """Edit inputs and recompute derived figures and the schedule."""
        with self._mutation(assessment_id, "update_assessment", actor_id):
            model = self._load_for_update(assessment_id)
            self._ensure_editable(model, "update_assessment")
            self._apply_update(model, update)
            self._recompute_all(model, actor_id)

        logger.info("advance_tax_assessment_updated", extra={
            "assessment_id": str(assessment_id),
            "taxable_income": str(model.taxable_income),
            "net_tax_payable": str(model.net_tax_payable),
        })
        return model.to_dto()

    def delete_assessment(self, assessment_id: UUID, actor_id: UUID) -> None:
        """Delete a draft assessment with its schedule, scenarios and revisions."""
        with self._mutation(assessment_id, "delete_assessment", actor_id):
            model = self._load_for_update(assessment_id)
            if model.status == _FINALIZED:
                raise AssessmentFinalizedError(str(assessment_id), "delete_assessment")
            if model.status != _DRAFT:
                raise InvalidTransitionError(str(assessment_id), model.status, "delete")
            for child in (
                AdvanceTaxScenarioModel,
                AdvanceTaxRevisionModel,
                AdvanceTaxScheduleModel,
            ):
                self._session.execute(delete(child).where(child.assessment_id == assessment_id))
            self._session.delete(model)

        logger.info("advance_tax_assessment_deleted", extra={
            "assessment_id": str(assessment_id),
            "actor_id": str(actor_id),
        })

    def _transition(self, model: AdvanceTaxAssessmentModel, action: str) -> str:
        transition = ASSESSMENT_WORKFLOW.transition_for(model.status, action)
        if transition is None:
            if model.status == _FINALIZED:
                raise AssessmentFinalizedError(str(model.id), action)
            raise InvalidTransitionError(str(model.id), model.status, action)
        return transition.to_state

    def activate_assessment(self, assessment_id: UUID, actor_id: UUID) -> Assessment:
        """draft -> active: the schedule becomes authoritative."""
        with self._mutation(assessment_id, "activate_assessment", actor_id):
            model = self._load_for_update(assessment_id)
            to_state = self._transition(model, "activate")
            self._recompute_all(model, actor_id)
            model.status = to_state

        logger.info("advance_tax_assessment_activated", extra={
            "assessment_id": str(assessment_id),
            "net_tax_payable": str(model.net_tax_payable),
        })
        return model.to_dto()

    def finalize_assessment(
        self,
        assessment_id: UUID,
        actor_id: UUID,
        final_payment_date: date | None = None,
    ) -> Assessment:
        """
        active -> finalized: recompute once more and snapshot interest.

        After this the assessment, its schedule and its payments are frozen.
        MAT credit created in a MAT year is entered in the register; otherwise
        credit of earlier years is drawn oldest first, up to what the MAT
        comparison allows.
        """
        with self._mutation(assessment_id, "finalize_assessment", actor_id):
            model = self._load_for_update(assessment_id)
            to_state = self._transition(model, "finalize")
            self._recompute_all(model, actor_id)
            self._session.flush()
            breakdown = self._interest_breakdown(
                model,
                as_of=self._clock.today(),
                final_payment_date=final_payment_date,
            )
            model.interest_234b = breakdown.interest_234b.interest
            model.interest_234c = breakdown.total_interest_234c
            model.total_interest = breakdown.total_interest
            model.interest_as_of = breakdown.interest_234b.period_end

            fy = FinancialYear.parse(model.financial_year)
            mat_policy = build_mat_policy(self._policy_for(fy))
            credits = self._usable_mat_credits(model.company_id, fy, for_update=True)
            mat = MatCalculator(mat_policy).compute(
                book_profit=model.book_profit,
                normal_tax=model.total_tax_liability,
                regime=model.tax_regime,
                mat_credit_available=self._total_balance(credits),
            )
            self._record_mat_credit(
                model, fy, mat, mat_policy.credit_carry_forward_years, actor_id,
            )
            self._utilize_mat_credit(model, fy, mat.mat_credit_to_utilize, credits, actor_id)
            model.status = to_state

        logger.info("advance_tax_assessment_finalized", extra={
            "assessment_id": str(assessment_id),
            "net_tax_payable": str(model.net_tax_payable),
            "interest_234b": str(model.interest_234b),
            "interest_234c": str(model.interest_234c),
            "total_interest": str(model.total_interest),
        })
        return model.to_dto()

    # =========================================================================
    # MAT credit register
    # =========================================================================

    def _usable_mat_credits(
        self,
        company_id: UUID,
        fy: FinancialYear,
        for_update: bool = False,
    ) -> list[AdvanceTaxMatCreditModel]:
        """Credits of earlier years with a balance and not yet expired in ``fy``, oldest first."""
        stmt = select(AdvanceTaxMatCreditModel).where(
            AdvanceTaxMatCreditModel.company_id == company_id,
            AdvanceTaxMatCreditModel.credit_balance > ZERO,
        )
        if for_update:
            stmt = stmt.with_for_update()
        usable = [
            row for row in self._session.scalars(stmt)
            if FinancialYear.parse(row.financial_year).start_year
            < fy.start_year
            <= FinancialYear.parse(row.expiry_year).start_year
        ]
        return sorted(usable, key=lambda row: FinancialYear.parse(row.financial_year).start_year)

    @staticmethod
    def _total_balance(credits) -> Decimal:
        return round_money(sum((c.credit_balance for c in credits), ZERO))

    def _record_mat_credit(
        self,
        model: AdvanceTaxAssessmentModel,
        fy: FinancialYear,
        mat: MatComputation,
        carry_forward_years: int,
        actor_id: UUID,
    ) -> None:
        if not mat.is_mat_applicable or mat.mat_credit_created <= ZERO:
            return
        credit = AdvanceTaxMatCreditModel(
            company_id=model.company_id,
            assessment_id=model.id,
            financial_year=fy.label,
            assessment_year=fy.assessment_year.label,
            expiry_year=fy.shifted(carry_forward_years).label,
            book_profit=mat.book_profit,
            mat_rate=mat.mat_rate,
            total_mat=mat.total_mat,
            normal_tax=mat.normal_tax,
            credit_created=mat.mat_credit_created,
            credit_utilized=round_money(ZERO),
            credit_balance=mat.mat_credit_created,
            status="active",
            created_by_id=actor_id,
        )
        self._session.add(credit)
        logger.info("advance_tax_mat_credit_created", extra={
            "assessment_id": str(model.id),
            "company_id": str(model.company_id),
            "financial_year": fy.label,
            "credit_created": str(credit.credit_created),
            "expiry_year": credit.expiry_year,
        })

    def _utilize_mat_credit(
        self,
        model: AdvanceTaxAssessmentModel,
        fy: FinancialYear,
        amount: Decimal,
        credits: list[AdvanceTaxMatCreditModel],
        actor_id: UUID,
    ) -> None:
        """Draw ``amount`` from ``credits`` oldest first, one utilization row per draw."""
        remaining = amount
        for credit in credits:
            if remaining <= ZERO:
                break
            taken = credit.draw(remaining)
            credit.updated_by_id = actor_id
            remaining -= taken
            self._session.add(AdvanceTaxMatCreditUtilizationModel(
                mat_credit_id=credit.id,
                assessment_id=model.id,
                utilization_year=fy.label,
                amount_utilized=taken,
                balance_after=credit.credit_balance,
                created_by_id=actor_id,
            ))
            logger.info("advance_tax_mat_credit_utilized", extra={
                "assessment_id": str(model.id),
                "mat_credit_id": str(credit.id),
                "credit_year": credit.financial_year,
                "amount_utilized": str(taken),
                "balance_after": str(credit.credit_balance),
            })

    def get_mat_credit_summary(self, company_id: UUID, financial_year: str) -> MatCreditSummary:
        """
        MAT credit usable in ``financial_year``.

        Credits whose expiry year is within ``mat_credit_expiry_warning_years``
        of the requested year are counted as expiring soon.
        """
        fy = FinancialYear.parse(financial_year)
        credits = [row.to_dto() for row in self._usable_mat_credits(company_id, fy)]
        horizon = fy.start_year + self._config.mat_credit_expiry_warning_years
        expiring = [
            c for c in credits if FinancialYear.parse(c.expiry_year).start_year <= horizon
        ]
        return MatCreditSummary(
            company_id=company_id,
            financial_year=fy.label,
            total_credit_available=self._total_balance(credits),
            credits=tuple(credits),
            expiring_soon_amount=self._total_balance(expiring),
            expiring_soon_count=len(expiring),
        )

    def list_mat_credits(self, company_id: UUID) -> list[MatCredit]:
        """Every register entry of a company, oldest year first."""
        rows = self._session.scalars(
            select(AdvanceTaxMatCreditModel)
            .where(AdvanceTaxMatCreditModel.company_id == company_id)
            .order_by(AdvanceTaxMatCreditModel.financial_year)
        )
        return [row.to_dto() for row in rows]

    def list_mat_credit_utilizations(self, mat_credit_id: UUID) -> list[MatCreditUtilization]:
        if self._session.get(AdvanceTaxMatCreditModel, mat_credit_id) is None:
            raise MatCreditNotFoundError(str(mat_credit_id))
        rows = self._session.scalars(
            select(AdvanceTaxMatCreditUtilizationModel)
            .where(AdvanceTaxMatCreditUtilizationModel.mat_credit_id == mat_credit_id)
            .order_by(
                AdvanceTaxMatCreditUtilizationModel.utilization_year,
                AdvanceTaxMatCreditUtilizationModel.created_at,
            )
        )
        return [row.to_dto() for row in rows]

    # =========================================================================
    # Recomputation
    # =========================================================================

    def recalculate_schedules(self, assessment_id: UUID, actor_id: UUID) -> list[ScheduleEntry]:
        """Rerun the full pipeline and rewrite the schedule."""
        with self._mutation(assessment_id, "recalculate_schedules", actor_id):
            model = self._load_for_update(assessment_id)
            self._ensure_editable(model, "recalculate_schedules")
            self._recompute_all(model, actor_id)

        logger.info("advance_tax_schedules_recalculated", extra={
            "assessment_id": str(assessment_id),
            "net_tax_payable": str(model.net_tax_payable),
        })
        return self._schedule_dtos(model)

    def refresh_ytd(
        self,
        assessment_id: UUID,
        actor_id: UUID,
        auto_project_from_trend: bool = False,
    ) -> Assessment:
        """
        Re-pull YTD actuals and recompute.

        With ``auto_project_from_trend`` the projected additional revenue
        and expenses are replaced by the trend extrapolation.
        """
        with self._mutation(assessment_id, "refresh_ytd", actor_id):
            model = self._load_for_update(assessment_id)
            self._ensure_editable(model, "refresh_ytd")
            fy = FinancialYear.parse(model.financial_year)
            through = self._ytd_cutoff(fy)
            if through is None:
                raise ValidationError(
                    "ytd_through_date", f"financial year {fy.label} has not started",
                )
            ytd = self._fetch_ytd(model.company_id, fy, through)
            model.ytd_revenue = ytd.revenue
            model.ytd_expenses = ytd.expenses
            model.ytd_through_date = through
            if auto_project_from_trend:
                trend = project_from_trend(ytd.revenue, ytd.expenses, fy.start_date, through)
                model.projected_additional_revenue = trend.suggested_additional_revenue
                model.projected_additional_expenses = trend.suggested_additional_expenses
            self._recompute_all(model, actor_id)

        logger.info("advance_tax_ytd_refreshed", extra={
            "assessment_id": str(assessment_id),
            "ytd_revenue": str(model.ytd_revenue),
            "ytd_expenses": str(model.ytd_expenses),
            "auto_project_from_trend": auto_project_from_trend,
            "net_tax_payable": str(model.net_tax_payable),
        })
        return model.to_dto()

    def refresh_tds_tcs(self, assessment_id: UUID, actor_id: UUID) -> Assessment:
        """Re-pull TDS/TCS credits and recompute."""
        with self._mutation(assessment_id, "refresh_tds_tcs", actor_id):
            model = self._load_for_update(assessment_id)
            self._ensure_editable(model, "refresh_tds_tcs")
            tds, tcs = self._fetch_credits(
                model.company_id, FinancialYear.parse(model.financial_year),
            )
            model.tds_receivable = tds
            model.tcs_credit = tcs
            self._recompute_all(model, actor_id)

        logger.info("advance_tax_credits_refreshed", extra={
            "assessment_id": str(assessment_id),
            "tds_receivable": str(model.tds_receivable),
            "tcs_credit": str(model.tcs_credit),
            "net_tax_payable": str(model.net_tax_payable),
        })
        return model.to_dto()

    def revise_assessment(
        self,
        assessment_id: UUID,
        update: AssessmentUpdate,
        actor_id: UUID,
        revision_quarter: int | None = None,
        reason: str | None = None,
        notes: str | None = None,
    ) -> Revision:
        """Apply a mid-year revision and keep the before/after figures."""
        today = self._clock.today()
        quarter = current_quarter(today) if revision_quarter is None else revision_quarter
        if not 1 <= quarter <= 4:
            raise ValidationError("revision_quarter", f"must be 1..4, got {quarter}")

        with self._mutation(assessment_id, "revise_assessment", actor_id):
            model = self._load_for_update(assessment_id)
            self._ensure_editable(model, "revise_assessment")
            before = model.to_dto()

            self._apply_update(model, update)
            self._recompute_all(model, actor_id)

            model.revision_count += 1
            model.last_revision_date = today
            model.last_revision_quarter = quarter
            revision = AdvanceTaxRevisionModel(
                id=uuid4(),
                assessment_id=model.id,
                revision_number=model.revision_count,
                revision_quarter=quarter,
                revision_date=today,
                previous_projected_revenue=before.projected_revenue,
                revised_projected_revenue=model.projected_revenue,
                previous_projected_expenses=before.projected_expenses,
                revised_projected_expenses=model.projected_expenses,
                previous_taxable_income=before.taxable_income,
                revised_taxable_income=model.taxable_income,
                previous_tax_liability=before.total_tax_liability,
                revised_tax_liability=model.total_tax_liability,
                previous_net_payable=before.net_tax_payable,
                revised_net_payable=model.net_tax_payable,
                reason=reason,
                notes=notes,
                created_by_id=actor_id,
            )
            self._session.add(revision)

        logger.info("advance_tax_assessment_revised", extra={
            "assessment_id": str(assessment_id),
            "revision_number": revision.revision_number,
            "revision_quarter": quarter,
            "previous_tax_liability": str(revision.previous_tax_liability),
            "revised_tax_liability": str(revision.revised_tax_liability),
        })
        return revision.to_dto()

    # =========================================================================
    # Payment ledger
    # =========================================================================

    def record_payment(
        self,
        assessment_id: UUID,
        payment_date: date,
        amount: Decimal,
        actor_id: UUID,
        *,
        challan_number: str | None = None,
        bsr_code: str | None = None,
        schedule_id: UUID | None = None,
        notes: str | None = None,
        post_journal: bool | None = None,
    ) -> Payment:
        """
        Append a payment, recompute the schedule, then request a journal.

        The payment and the schedule recompute commit together.  The
        journal posting runs afterwards; its failure leaves the payment in
        place without a journal number.

        Raises:
            InvalidAmountError: If ``amount`` is not a positive Decimal.
            ValidationError: If the payment predates the financial year.
            ScheduleLinkError: If ``schedule_id`` belongs elsewhere.
            AssessmentFinalizedError / AssessmentNotActiveError: By state.
        """
        self._require_money("amount", amount)
        if amount <= ZERO:
            raise InvalidAmountError("amount", amount)

        with self._mutation(assessment_id, "record_payment", actor_id):
            model = self._load_for_update(assessment_id)
            if model.status == _FINALIZED:
                raise AssessmentFinalizedError(str(assessment_id), "record_payment")
            if model.status not in PAYABLE_STATES:
                raise AssessmentNotActiveError(str(assessment_id), model.status, "record_payment")

            fy = FinancialYear.parse(model.financial_year)
            if payment_date < fy.start_date:
                raise ValidationError(
                    "payment_date",
                    f"{payment_date.isoformat()} is before the start of FY {fy.label}",
                )
            if schedule_id is not None:
                row = self._session.get(AdvanceTaxScheduleModel, schedule_id)
                if row is None or row.assessment_id != model.id:
                    raise ScheduleLinkError(str(schedule_id), str(assessment_id))

            payment = AdvanceTaxPaymentModel(
                id=uuid4(),
                assessment_id=model.id,
                schedule_id=schedule_id,
                payment_date=payment_date,
                amount=round_money(amount),
                challan_number=challan_number,
                bsr_code=bsr_code,
                notes=notes,
                journal_attempts=0,
                created_by_id=actor_id,
            )
            self._session.add(payment)
            self._session.flush()
            policy = self._policy_for(fy)
            self._regenerate_schedule(model, policy, actor_id)
            model.updated_by_id = actor_id

        logger.info("advance_tax_payment_recorded", extra={
            "assessment_id": str(assessment_id),
            "payment_id": str(payment.id),
            "payment_date": payment_date.isoformat(),
            "amount": str(payment.amount),
            "challan_number": challan_number,
        })

        should_post = self._config.post_journal_by_default if post_journal is None else post_journal
        if should_post:
            if self._journal_poster is None:
                logger.warning("advance_tax_journal_poster_not_configured", extra={
                    "payment_id": str(payment.id),
                })
            else:
                self._post_journal(payment)
        return payment.to_dto()

    def _post_journal(self, payment: AdvanceTaxPaymentModel) -> bool:
        """Request a journal number with retries; record the outcome."""
        attempts = self._config.journal_retry_attempts
        last_error: str | None = None
        journal_number: str | None = None
        used = 0

        for attempt in range(1, attempts + 1):
            used = attempt
            try:
                journal_number = self._journal_poster.post_advance_tax_payment(
                    assessment_id=payment.assessment_id,
                    payment_id=payment.id,
                    amount=payment.amount,
                    payment_date=payment.payment_date,
                )
            except Exception as exc:
                last_error = f"{type(exc).__name__}: {exc}"
                logger.warning("advance_tax_journal_attempt_failed", extra={
                    "payment_id": str(payment.id),
                    "attempt": attempt,
                    "error": last_error,
                })
                continue
            if journal_number:
                break
            last_error = "ledger returned no journal number"

        try:
            payment.journal_attempts = payment.journal_attempts + used
            if journal_number:
                payment.journal_number = journal_number
                payment.journal_last_error = None
            else:
                payment.journal_last_error = last_error
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        if journal_number:
            logger.info("advance_tax_journal_posted", extra={
                "payment_id": str(payment.id),
                "journal_number": journal_number,
                "attempts": used,
            })
            return True
        logger.warning("advance_tax_journal_posting_failed", extra={
            "payment_id": str(payment.id),
            "assessment_id": str(payment.assessment_id),
            "attempts": used,
            "error": last_error,
        })
        return False

    def retry_journal_posting(self, payment_id: UUID, actor_id: UUID) -> Payment:
        """
        Retry the journal posting of an unposted payment.

        Raises:
            PaymentNotFoundError: Unknown payment.
            ImmutabilityViolationError: The payment already has a journal.
            CollaboratorUnavailableError: No journal poster configured.
            JournalPostingError: Every attempt failed (the attempts are
                still recorded on the payment).
        """
        payment = self._session.get(AdvanceTaxPaymentModel, payment_id)
        if payment is None:
            raise PaymentNotFoundError(str(payment_id))
        if payment.journal_number is not None:
            raise ImmutabilityViolationError(
                entity_type="AdvanceTaxPayment",
                entity_id=str(payment_id),
                reason=f"already posted as journal {payment.journal_number}",
            )
        if self._journal_poster is None:
            raise CollaboratorUnavailableError("JournalPoster", "retry_journal_posting")

        with LogContext.bind(
            assessment_id=payment.assessment_id,
            operation="retry_journal_posting",
            actor_id=actor_id,
        ):
            posted = self._post_journal(payment)
        if not posted:
            raise JournalPostingError(
                str(payment_id), payment.journal_attempts, payment.journal_last_error or "",
            )
        return payment.to_dto()

    # =========================================================================
    # Scenarios
    # =========================================================================

    def run_scenario(
        self,
        assessment_id: UUID,
        request: ScenarioRequest,
        actor_id: UUID,
    ) -> Scenario:
        """
        Evaluate and persist a what-if scenario.

        Takes no lock and never touches the assessment or its schedule.
        """
        if not request.name or not request.name.strip():
            raise ValidationError("name", "scenario name is required")
        for field in (
            "revenue_adjustment",
            "expense_adjustment",
            "capex_impact",
            "payroll_change",
            "other_adjustments",
        ):
            self._require_money(field, getattr(request, field))

        model = self._get_model(assessment_id)
        policy = self._policy_for(FinancialYear.parse(model.financial_year))
        base = ScenarioBase(
            projection=self._projection_inputs(model),
            reconciliation=model.adjustments_dto(),
            regime=resolve_regime(policy, model.tax_regime),
            total_tax_liability=model.total_tax_liability,
            tds_receivable=model.tds_receivable,
            tcs_credit=model.tcs_credit,
            mat_credit=model.mat_credit,
        )
        adjustments = ScenarioAdjustments(
            revenue_adjustment=request.revenue_adjustment,
            expense_adjustment=request.expense_adjustment,
            capex_impact=request.capex_impact,
            payroll_change=request.payroll_change,
            other_adjustments=request.other_adjustments,
        )
        result = self._scenario_engine.evaluate(base, adjustments)

        scenario = AdvanceTaxScenarioModel(
            id=uuid4(),
            assessment_id=model.id,
            name=request.name.strip(),
            description=request.description,
            revenue_adjustment=round_money(request.revenue_adjustment),
            expense_adjustment=round_money(request.expense_adjustment),
            capex_impact=round_money(request.capex_impact),
            payroll_change=round_money(request.payroll_change),
            other_adjustments=round_money(request.other_adjustments),
            adjusted_taxable_income=result.adjusted_taxable_income,
            adjusted_tax_liability=result.adjusted_tax_liability,
            variance_from_base=result.variance_from_base,
            created_by_id=actor_id,
        )
        try:
            self._session.add(scenario)
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info("advance_tax_scenario_created", extra={
            "assessment_id": str(assessment_id),
            "scenario_id": str(scenario.id),
            "adjusted_taxable_income": str(scenario.adjusted_taxable_income),
            "adjusted_tax_liability": str(scenario.adjusted_tax_liability),
            "variance_from_base": str(scenario.variance_from_base),
        })
        return scenario.to_dto()

    def delete_scenario(self, scenario_id: UUID, actor_id: UUID) -> None:
        scenario = self._session.get(AdvanceTaxScenarioModel, scenario_id)
        if scenario is None:
            raise ScenarioNotFoundError(str(scenario_id))
        try:
            self._session.delete(scenario)
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info("advance_tax_scenario_deleted", extra={
            "scenario_id": str(scenario_id),
            "assessment_id": str(scenario.assessment_id),
            "actor_id": str(actor_id),
        })
