"""
Tests for the advance tax read-side views and collaborator refreshes.

Validates:
- YTD pull at creation, trend projection, refresh_ytd and preview_ytd
- TDS/TCS pull, refresh_tds_tcs and preview_tds_tcs
- Scenarios, revisions and the revision recommendation
- Tracker, tax computation, MAT, pending list and overdue flags
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from advtax_kernel.exceptions import (
    CollaboratorUnavailableError,
    InvalidAmountError,
    ScenarioNotFoundError,
    ValidationError,
)
from advtax_modules.advance_tax.config import AdvanceTaxConfig
from advtax_modules.advance_tax.models import (
    TRACKER_NOT_CREATED,
    AssessmentCreate,
    AssessmentStatus,
    AssessmentUpdate,
    ScenarioRequest,
)


# =============================================================================
# YTD actuals
# =============================================================================


class TestYtdActuals:
    def test_explicit_projection_becomes_excess_over_ytd(
        self, make_service, make_ytd_source, assessment_request, test_actor_id, company_id,
    ):
        source = make_ytd_source(revenue=Decimal("3000000"), expenses=Decimal("2000000"))
        svc = make_service(ytd_source=source)
        a = svc.create_assessment(assessment_request, test_actor_id)

        assert source.calls == [(company_id, date(2024, 4, 1), date(2024, 5, 1))]
        assert a.ytd_through_date == date(2024, 5, 1)
        assert a.projected_additional_revenue == Decimal("9000000")
        assert a.projected_additional_expenses == Decimal("6000000")
        assert a.projected_revenue == Decimal("12000000")
        assert a.total_tax_liability == Decimal("1040000")

    def test_trend_fills_missing_projection(
        self, make_service, make_ytd_source, company_id, test_actor_id,
    ):
        svc = make_service(
            ytd_source=make_ytd_source(revenue=Decimal("3000000"), expenses=Decimal("2000000")),
        )
        a = svc.create_assessment(
            AssessmentCreate(company_id=company_id, financial_year="2024-25"), test_actor_id,
        )
        # two months covered, ten remaining
        assert a.projected_additional_revenue == Decimal("15000000")
        assert a.projected_additional_expenses == Decimal("10000000")
        assert a.profit_before_tax == Decimal("6000000")
        assert a.total_tax_liability == Decimal("1560000")

    def test_trend_disabled(self, make_service, make_ytd_source, company_id, test_actor_id):
        svc = make_service(
            config=AdvanceTaxConfig(auto_project_from_trend=False),
            ytd_source=make_ytd_source(revenue=Decimal("3000000"), expenses=Decimal("2000000")),
        )
        a = svc.create_assessment(
            AssessmentCreate(company_id=company_id, financial_year="2024-25"), test_actor_id,
        )
        assert a.projected_additional_revenue == Decimal("0")
        assert a.profit_before_tax == Decimal("1000000")

    def test_no_pull_before_year_starts(
        self, make_service, make_ytd_source, assessment_request, test_actor_id, deterministic_clock,
    ):
        deterministic_clock.set_date(date(2024, 3, 15))
        source = make_ytd_source(revenue=Decimal("1"))
        a = make_service(ytd_source=source).create_assessment(assessment_request, test_actor_id)
        assert source.calls == []
        assert a.ytd_through_date is None
        assert a.ytd_revenue == Decimal("0")

    def test_refresh_keeps_projection(
        self, make_service, make_ytd_source, assessment_request, test_actor_id,
    ):
        source = make_ytd_source(revenue=Decimal("3000000"), expenses=Decimal("2000000"))
        svc = make_service(ytd_source=source)
        a = svc.create_assessment(assessment_request, test_actor_id)

        source.revenue = Decimal("4000000")
        refreshed = svc.refresh_ytd(a.id, test_actor_id)
        assert refreshed.ytd_revenue == Decimal("4000000")
        assert refreshed.projected_additional_revenue == Decimal("9000000")
        assert refreshed.profit_before_tax == Decimal("5000000")
        assert refreshed.total_tax_liability == Decimal("1300000")

    def test_refresh_with_trend(
        self, make_service, make_ytd_source, assessment_request, test_actor_id,
    ):
        source = make_ytd_source(revenue=Decimal("3000000"), expenses=Decimal("2000000"))
        svc = make_service(ytd_source=source)
        a = svc.create_assessment(assessment_request, test_actor_id)

        source.revenue = Decimal("4000000")
        refreshed = svc.refresh_ytd(a.id, test_actor_id, auto_project_from_trend=True)
        assert refreshed.projected_revenue == Decimal("24000000")
        assert refreshed.projected_expenses == Decimal("12000000")
        assert refreshed.surcharge_rate == Decimal("0.07")
        assert refreshed.total_tax_liability == Decimal("3338400")

    def test_preview_does_not_persist(
        self, make_service, make_ytd_source, assessment_request, test_actor_id,
    ):
        source = make_ytd_source(revenue=Decimal("3000000"), expenses=Decimal("2000000"))
        svc = make_service(ytd_source=source)
        a = svc.create_assessment(assessment_request, test_actor_id)

        source.revenue = Decimal("5000000")
        preview = svc.preview_ytd(a.id)
        assert preview.ytd_revenue == Decimal("5000000")
        assert preview.stored_ytd_revenue == Decimal("3000000")
        assert preview.trend.months_covered == 2
        assert svc.get_assessment(a.id) == a

    def test_refresh_without_source(self, service, draft_assessment, test_actor_id):
        with pytest.raises(CollaboratorUnavailableError):
            service.refresh_ytd(draft_assessment.id, test_actor_id)
        assert service.get_assessment(draft_assessment.id) == draft_assessment

    def test_refresh_before_year_starts(
        self, make_service, make_ytd_source, assessment_request, test_actor_id, deterministic_clock,
    ):
        deterministic_clock.set_date(date(2024, 3, 15))
        svc = make_service(ytd_source=make_ytd_source())
        a = svc.create_assessment(assessment_request, test_actor_id)
        with pytest.raises(ValidationError):
            svc.refresh_ytd(a.id, test_actor_id)


# =============================================================================
# TDS / TCS credits
# =============================================================================


class TestCredits:
    def test_pulled_at_creation(
        self, make_service, make_credit_source, assessment_request, test_actor_id,
    ):
        svc = make_service(
            credit_source=make_credit_source(tds=Decimal("100000"), tcs=Decimal("20000")),
        )
        a = svc.create_assessment(assessment_request, test_actor_id)
        assert a.tds_receivable == Decimal("100000")
        assert a.tcs_credit == Decimal("20000")
        assert a.net_tax_payable == Decimal("920000")

    def test_explicit_credit_wins(
        self, make_service, make_credit_source, company_id, test_actor_id,
    ):
        svc = make_service(
            credit_source=make_credit_source(tds=Decimal("100000"), tcs=Decimal("20000")),
        )
        a = svc.create_assessment(AssessmentCreate(
            company_id=company_id,
            financial_year="2024-25",
            projected_revenue=Decimal("12000000"),
            projected_expenses=Decimal("8000000"),
            tds_receivable=Decimal("50000"),
        ), test_actor_id)
        assert a.tds_receivable == Decimal("50000")
        assert a.tcs_credit == Decimal("20000")

    def test_refresh_and_preview(
        self, make_service, make_credit_source, assessment_request, test_actor_id,
    ):
        source = make_credit_source(tds=Decimal("100000"), tcs=Decimal("20000"))
        svc = make_service(credit_source=source)
        a = svc.create_assessment(assessment_request, test_actor_id)

        source.tds = Decimal("200000")
        preview = svc.preview_tds_tcs(a.id)
        assert preview.has_changes
        assert preview.tds_difference == Decimal("100000")
        assert preview.tcs_difference == Decimal("0")

        refreshed = svc.refresh_tds_tcs(a.id, test_actor_id)
        assert refreshed.net_tax_payable == Decimal("820000")
        assert not svc.preview_tds_tcs(a.id).has_changes

    def test_preview_without_source(self, service, draft_assessment):
        with pytest.raises(CollaboratorUnavailableError):
            service.preview_tds_tcs(draft_assessment.id)


# =============================================================================
# Scenarios
# =============================================================================


class TestScenarios:
    def test_run_and_list(self, service, active_assessment, test_actor_id):
        scenario = service.run_scenario(
            active_assessment.id,
            ScenarioRequest(name=" Upside ", revenue_adjustment=Decimal("1000000")),
            test_actor_id,
        )
        assert scenario.name == "Upside"
        assert scenario.adjusted_taxable_income == Decimal("5000000")
        assert scenario.adjusted_tax_liability == Decimal("1300000")
        assert scenario.variance_from_base == Decimal("260000")
        assert service.list_scenarios(active_assessment.id) == [scenario]

    def test_assessment_untouched(self, service, active_assessment, test_actor_id):
        schedule = service.get_schedule(active_assessment.id)
        service.run_scenario(
            active_assessment.id,
            ScenarioRequest(name="cost cut", expense_adjustment=Decimal("-500000")),
            test_actor_id,
        )
        assert service.get_assessment(active_assessment.id) == active_assessment
        assert service.get_schedule(active_assessment.id) == schedule

    def test_name_required(self, service, active_assessment, test_actor_id):
        with pytest.raises(ValidationError):
            service.run_scenario(active_assessment.id, ScenarioRequest(name="  "), test_actor_id)

    def test_non_decimal_adjustment(self, service, active_assessment, test_actor_id):
        with pytest.raises(InvalidAmountError) as exc_info:
            service.run_scenario(
                active_assessment.id,
                ScenarioRequest(name="upside", revenue_adjustment=250000),
                test_actor_id,
            )
        assert exc_info.value.field == "revenue_adjustment"
        assert service.list_scenarios(active_assessment.id) == []

    def test_delete(self, service, active_assessment, test_actor_id, random_uuid):
        scenario = service.run_scenario(
            active_assessment.id, ScenarioRequest(name="flat"), test_actor_id,
        )
        assert scenario.variance_from_base == Decimal("0")
        service.delete_scenario(scenario.id, test_actor_id)
        assert service.list_scenarios(active_assessment.id) == []
        with pytest.raises(ScenarioNotFoundError):
            service.delete_scenario(random_uuid, test_actor_id)

    def test_delete_leaves_base_assessment_and_schedule(
        self, service, active_assessment, test_actor_id,
    ):
        service.record_payment(
            active_assessment.id, date(2024, 6, 10), Decimal("100000"), test_actor_id,
        )
        assessment_before = service.get_assessment(active_assessment.id)
        schedule_before = service.get_schedule(active_assessment.id)
        downside = service.run_scenario(
            active_assessment.id,
            ScenarioRequest(name="downside", revenue_adjustment=Decimal("-2000000")),
            test_actor_id,
        )
        kept = service.run_scenario(
            active_assessment.id,
            ScenarioRequest(name="upside", revenue_adjustment=Decimal("500000")),
            test_actor_id,
        )

        service.delete_scenario(downside.id, test_actor_id)

        assert service.get_assessment(active_assessment.id) == assessment_before
        assert service.get_schedule(active_assessment.id) == schedule_before
        assert service.list_scenarios(active_assessment.id) == [kept]


# =============================================================================
# Revisions
# =============================================================================


class TestRevisions:
    def test_revision_keeps_before_and_after(
        self, service, active_assessment, test_actor_id, deterministic_clock,
    ):
        deterministic_clock.set_date(date(2024, 8, 1))
        revision = service.revise_assessment(
            active_assessment.id,
            AssessmentUpdate(projected_additional_revenue=Decimal("13000000")),
            test_actor_id,
            reason="new contract",
        )
        assert revision.revision_number == 1
        assert revision.revision_quarter == 2
        assert revision.revision_date == date(2024, 8, 1)
        assert revision.previous_tax_liability == Decimal("1040000")
        assert revision.revised_tax_liability == Decimal("1300000")
        assert revision.liability_change == Decimal("260000")
        assert revision.reason == "new contract"

        assessment = service.get_assessment(active_assessment.id)
        assert assessment.revision_count == 1
        assert assessment.last_revision_quarter == 2
        assert service.get_schedule(active_assessment.id)[3].cumulative_tax_due == Decimal("1300000")
        assert service.list_revisions(active_assessment.id) == [revision]

    def test_revision_numbers_increase(self, service, active_assessment, test_actor_id):
        service.revise_assessment(active_assessment.id, AssessmentUpdate(), test_actor_id)
        second = service.revise_assessment(
            active_assessment.id, AssessmentUpdate(), test_actor_id, revision_quarter=3,
        )
        assert second.revision_number == 2
        assert [r.revision_quarter for r in service.list_revisions(active_assessment.id)] == [1, 3]

    def test_invalid_quarter(self, service, active_assessment, test_actor_id):
        with pytest.raises(ValidationError):
            service.revise_assessment(
                active_assessment.id, AssessmentUpdate(), test_actor_id, revision_quarter=5,
            )
        assert service.list_revisions(active_assessment.id) == []


class TestRevisionStatus:
    @pytest.fixture
    def on_track(self, make_service, make_ytd_source, assessment_request, test_actor_id):
        """YTD profit exactly two twelfths of the 4,000,000 projection."""
        svc = make_service(
            config=AdvanceTaxConfig(revision_variance_threshold_pct=Decimal("100")),
            ytd_source=make_ytd_source(
                revenue=Decimal("2000000"), expenses=Decimal("1333333.33"),
            ),
        )
        return svc, svc.create_assessment(assessment_request, test_actor_id)

    def test_no_revision_needed_in_first_quarter(self, on_track):
        svc, a = on_track
        status = svc.get_revision_status(a.id)
        assert status.current_quarter == 1
        assert status.months_elapsed == 2
        assert status.variance_amount == Decimal("0")
        assert not status.revision_recommended
        assert status.recommendation_reason is None

    def test_quarter_without_revision(self, on_track, test_actor_id, deterministic_clock):
        svc, a = on_track
        deterministic_clock.set_date(date(2024, 8, 1))
        status = svc.get_revision_status(a.id)
        assert status.revision_recommended
        assert status.recommendation_reason == "No revision recorded in Q2"

        svc.revise_assessment(a.id, AssessmentUpdate(notes="reviewed"), test_actor_id)
        assert not svc.get_revision_status(a.id).revision_recommended

    def test_large_variance(self, service, draft_assessment, deterministic_clock):
        deterministic_clock.set_date(date(2024, 8, 1))
        status = service.get_revision_status(draft_assessment.id)
        assert status.months_elapsed == 5
        assert status.prorated_projected_profit == Decimal("1666666.67")
        assert status.variance_percentage == Decimal("-100")
        assert status.revision_recommended
        assert status.recommendation_reason.startswith("Actual profit deviates")


# =============================================================================
# Tracker and computations
# =============================================================================


class TestTracker:
    def test_not_created(self, service, company_id):
        tracker = service.get_tracker(company_id, "2024-25")
        assert tracker.status == TRACKER_NOT_CREATED
        assert tracker.assessment_id is None
        assert tracker.current_quarter == 1
        assert tracker.schedule == ()

    def test_position(self, service, active_assessment, company_id, test_actor_id):
        service.record_payment(
            active_assessment.id, date(2024, 4, 20), Decimal("104000"), test_actor_id,
        )
        tracker = service.get_tracker(company_id, "2024-25")
        assert tracker.status == AssessmentStatus.ACTIVE.value
        assert tracker.total_paid == Decimal("104000")
        assert tracker.remaining == Decimal("936000")
        assert tracker.payment_percentage == Decimal("10.00")
        assert tracker.next_due_date == date(2024, 6, 15)
        assert tracker.next_due_amount == Decimal("52000")
        assert tracker.days_until_next_due == 45
        assert tracker.interest_234b == Decimal("0")
        assert tracker.total_interest == tracker.interest_234c
        assert len(tracker.schedule) == 4

    def test_company_name_from_directory(self, make_service, company_id):
        class Directory:
            def get_company_name(self, cid):
                return "Acme Industries Pvt Ltd" if cid == company_id else None

        svc = make_service(company_directory=Directory())
        assert svc.get_tracker(company_id, "2024-25").company_name == "Acme Industries Pvt Ltd"

    def test_company_name_absent_without_directory(self, service, company_id):
        assert service.get_tracker(company_id, "2024-25").company_name is None

    def test_finalized_uses_snapshot(
        self, service, active_assessment, company_id, test_actor_id, deterministic_clock,
    ):
        deterministic_clock.set_date(date(2025, 7, 31))
        finalized = service.finalize_assessment(active_assessment.id, test_actor_id)
        deterministic_clock.set_date(date(2025, 12, 31))
        tracker = service.get_tracker(company_id, "2024-25")
        assert tracker.interest_234b == finalized.interest_234b
        assert tracker.total_interest == finalized.total_interest
        assert tracker.next_due_date is None


class TestOverdueAndPending:
    def test_draft_never_overdue(self, service, draft_assessment, deterministic_clock):
        deterministic_clock.set_date(date(2024, 7, 1))
        assert not any(e.is_overdue for e in service.get_schedule(draft_assessment.id))

    def test_active_overdue_after_due_date(
        self, service, active_assessment, deterministic_clock,
    ):
        deterministic_clock.set_date(date(2024, 6, 20))
        schedule = service.get_schedule(active_assessment.id)
        assert [e.is_overdue for e in schedule] == [True, False, False, False]

    def test_paid_installment_not_overdue(
        self, service, active_assessment, test_actor_id, deterministic_clock,
    ):
        service.record_payment(
            active_assessment.id, date(2024, 6, 10), Decimal("156000"), test_actor_id,
        )
        deterministic_clock.set_date(date(2024, 6, 20))
        assert not service.get_schedule(active_assessment.id)[0].is_overdue

    def test_pending_lists_active_only(
        self, service, draft_assessment, test_actor_id, company_id,
    ):
        assert service.list_pending_assessments() == []
        service.activate_assessment(draft_assessment.id, test_actor_id)
        pending = service.list_pending_assessments(company_id)
        assert [a.id for a in pending] == [draft_assessment.id]

    def test_list_by_status(self, service, active_assessment, company_id):
        assert service.list_assessments(company_id, AssessmentStatus.ACTIVE) == [active_assessment]
        assert service.list_assessments(company_id, AssessmentStatus.DRAFT) == []


class TestComputations:
    def test_tax_computation(self, service, draft_assessment):
        computation = service.get_tax_computation(draft_assessment.id)
        assert computation.regime_description == "Normal provisions"
        assert computation.base_rate == Decimal("0.25")
        assert computation.effective_rate == Decimal("0.26")
        assert computation.total_credits == Decimal("0")
        assert len(computation.additions) == 5
        assert computation.net_tax_payable == Decimal("1040000")

    def test_mat_not_applicable(self, service, draft_assessment):
        mat = service.get_mat_computation(draft_assessment.id)
        assert mat.total_mat == Decimal("624000")
        assert not mat.is_mat_applicable
        assert mat.final_tax_payable == Decimal("1040000")

    def test_mat_credit_override(self, service, draft_assessment):
        mat = service.get_mat_computation(
            draft_assessment.id, mat_credit_available=Decimal("100000"),
        )
        assert mat.mat_credit_to_utilize == Decimal("100000")
        assert mat.final_tax_payable == Decimal("940000")

    def test_interest_breakdown_234b(self, service, draft_assessment):
        breakdown = service.get_interest_breakdown(
            draft_assessment.id,
            as_of=date(2025, 5, 31),
            assessed_tax=Decimal("1200000"),
        )
        assert breakdown.interest_234b.months == 2
        assert breakdown.interest_234b.interest == Decimal("24000")
        assert breakdown.total_interest_234c == Decimal("26000")
