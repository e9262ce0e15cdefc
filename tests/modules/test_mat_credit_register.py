"""
Tests for the MAT credit register.

Validates:
- A finalized MAT year enters its excess of MAT over normal tax as credit
- Later years draw usable credit oldest first, one utilization per draw
- Same-year and expired credit is never usable
- The summary flags credit close to expiry
- get_mat_computation reads available credit from the register
- Utilization rows are append-only

Figures: book profit 4,000,000 gives MAT of 624,000.  With 3,000,000 of tax
depreciation normal tax is 260,000, so the year creates 364,000 of credit.
Without deductions normal tax is 1,040,000 and up to 416,000 can be set off.
"""

from __future__ import annotations

from decimal import Decimal

import pytest

from advtax_engines.reconciliation import ReconciliationInputs
from advtax_kernel.exceptions import ImmutabilityViolationError, MatCreditNotFoundError
from advtax_modules.advance_tax.config import AdvanceTaxConfig
from advtax_modules.advance_tax.models import AssessmentCreate, MatCreditStatus
from advtax_modules.advance_tax.orm import AdvanceTaxMatCreditUtilizationModel

CREDIT_PER_MAT_YEAR = Decimal("364000")


@pytest.fixture
def finalize_year(service, company_id, test_actor_id):
    """Create, activate and finalize one year of the standard projection."""

    def _finalize(financial_year: str, tax_depreciation: Decimal = Decimal("0")):
        a = service.create_assessment(AssessmentCreate(
            company_id=company_id,
            financial_year=financial_year,
            projected_revenue=Decimal("12000000"),
            projected_expenses=Decimal("8000000"),
            adjustments=ReconciliationInputs(tax_depreciation=tax_depreciation),
        ), test_actor_id)
        service.activate_assessment(a.id, test_actor_id)
        return service.finalize_assessment(a.id, test_actor_id)

    return _finalize


def _mat_year(finalize_year, financial_year: str):
    return finalize_year(financial_year, tax_depreciation=Decimal("3000000"))


# =============================================================================
# Credit creation
# =============================================================================


class TestCreditCreation:
    def test_mat_year_creates_credit(self, service, finalize_year, company_id):
        assessment = _mat_year(finalize_year, "2024-25")

        [credit] = service.list_mat_credits(company_id)
        assert credit.assessment_id == assessment.id
        assert credit.financial_year == "2024-25"
        assert credit.assessment_year == "2025-26"
        assert credit.expiry_year == "2039-40"
        assert credit.book_profit == Decimal("4000000")
        assert credit.total_mat == Decimal("624000")
        assert credit.normal_tax == Decimal("260000")
        assert credit.credit_created == CREDIT_PER_MAT_YEAR
        assert credit.credit_utilized == Decimal("0")
        assert credit.credit_balance == CREDIT_PER_MAT_YEAR
        assert credit.status == MatCreditStatus.ACTIVE

    def test_normal_year_creates_nothing(self, service, finalize_year, company_id):
        finalize_year("2024-25")
        assert service.list_mat_credits(company_id) == []

    def test_draft_mat_year_creates_nothing(self, service, company_id, test_actor_id):
        service.create_assessment(AssessmentCreate(
            company_id=company_id,
            financial_year="2024-25",
            projected_revenue=Decimal("12000000"),
            projected_expenses=Decimal("8000000"),
            adjustments=ReconciliationInputs(tax_depreciation=Decimal("3000000")),
        ), test_actor_id)
        assert service.list_mat_credits(company_id) == []

    def test_creation_logged(self, finalize_year, captured_logs):
        _mat_year(finalize_year, "2024-25")
        created = [
            r for r in captured_logs() if r["message"] == "advance_tax_mat_credit_created"
        ]
        assert created[0]["credit_created"] == "364000.00"
        assert created[0]["expiry_year"] == "2039-40"


# =============================================================================
# Utilization
# =============================================================================


class TestUtilization:
    def test_later_year_uses_credit(self, service, finalize_year, company_id):
        _mat_year(finalize_year, "2024-25")
        later = finalize_year("2025-26")

        [credit] = service.list_mat_credits(company_id)
        assert credit.credit_utilized == CREDIT_PER_MAT_YEAR
        assert credit.credit_balance == Decimal("0")
        assert credit.status == MatCreditStatus.FULLY_UTILIZED

        [use] = service.list_mat_credit_utilizations(credit.id)
        assert use.assessment_id == later.id
        assert use.utilization_year == "2025-26"
        assert use.amount_utilized == CREDIT_PER_MAT_YEAR
        assert use.balance_after == Decimal("0")

    def test_use_capped_at_normal_tax_over_mat(self, service, finalize_year, company_id):
        _mat_year(finalize_year, "2024-25")
        # normal tax 936,000 against MAT 624,000
        finalize_year("2025-26", tax_depreciation=Decimal("400000"))

        [credit] = service.list_mat_credits(company_id)
        assert credit.credit_utilized == Decimal("312000")
        assert credit.credit_balance == Decimal("52000")
        assert credit.status == MatCreditStatus.ACTIVE

    def test_oldest_credit_drawn_first(self, service, finalize_year, company_id):
        _mat_year(finalize_year, "2024-25")
        _mat_year(finalize_year, "2025-26")
        later = finalize_year("2026-27")

        oldest, newer = service.list_mat_credits(company_id)
        assert oldest.financial_year == "2024-25"
        assert oldest.credit_balance == Decimal("0")
        assert newer.credit_utilized == Decimal("52000")
        assert newer.credit_balance == Decimal("312000")

        [from_newer] = service.list_mat_credit_utilizations(newer.id)
        assert from_newer.assessment_id == later.id
        assert from_newer.amount_utilized == Decimal("52000")

    def test_mat_year_draws_nothing(self, service, finalize_year, company_id):
        _mat_year(finalize_year, "2024-25")
        _mat_year(finalize_year, "2025-26")

        oldest, _ = service.list_mat_credits(company_id)
        assert oldest.credit_balance == CREDIT_PER_MAT_YEAR
        assert service.list_mat_credit_utilizations(oldest.id) == []

    def test_other_company_credit_not_used(
        self, service, finalize_year, company_id, test_actor_id, random_uuid,
    ):
        _mat_year(finalize_year, "2024-25")
        other = service.create_assessment(AssessmentCreate(
            company_id=random_uuid,
            financial_year="2025-26",
            projected_revenue=Decimal("12000000"),
            projected_expenses=Decimal("8000000"),
        ), test_actor_id)
        service.activate_assessment(other.id, test_actor_id)
        service.finalize_assessment(other.id, test_actor_id)

        [credit] = service.list_mat_credits(company_id)
        assert credit.credit_balance == CREDIT_PER_MAT_YEAR

    def test_unknown_credit(self, service, random_uuid):
        with pytest.raises(MatCreditNotFoundError) as exc_info:
            service.list_mat_credit_utilizations(random_uuid)
        assert exc_info.value.code == "MAT_CREDIT_NOT_FOUND"

    def test_utilization_rows_append_only(self, service, session, finalize_year, company_id):
        _mat_year(finalize_year, "2024-25")
        finalize_year("2025-26")
        [credit] = service.list_mat_credits(company_id)
        [use] = service.list_mat_credit_utilizations(credit.id)

        row = session.get(AdvanceTaxMatCreditUtilizationModel, use.id)
        row.amount_utilized = Decimal("1")
        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        session.rollback()

        row = session.get(AdvanceTaxMatCreditUtilizationModel, use.id)
        session.delete(row)
        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        session.rollback()


# =============================================================================
# Summary and MAT computation
# =============================================================================


class TestSummary:
    def test_available_in_later_year(self, service, finalize_year, company_id):
        _mat_year(finalize_year, "2024-25")
        _mat_year(finalize_year, "2025-26")

        summary = service.get_mat_credit_summary(company_id, "2026-27")
        assert summary.total_credit_available == Decimal("728000")
        assert summary.years_with_credit == 2
        assert [c.financial_year for c in summary.credits] == ["2024-25", "2025-26"]
        assert summary.expiring_soon_amount == Decimal("0")
        assert summary.expiring_soon_count == 0

    def test_same_year_credit_not_available(self, service, finalize_year, company_id):
        _mat_year(finalize_year, "2024-25")
        summary = service.get_mat_credit_summary(company_id, "2024-25")
        assert summary.total_credit_available == Decimal("0")
        assert summary.credits == ()

    def test_expiring_soon(self, service, finalize_year, company_id):
        _mat_year(finalize_year, "2024-25")
        _mat_year(finalize_year, "2025-26")

        # expiry years 2039-40 and 2040-41
        summary = service.get_mat_credit_summary(company_id, "2037-38")
        assert summary.expiring_soon_count == 1
        assert summary.expiring_soon_amount == CREDIT_PER_MAT_YEAR

        summary = service.get_mat_credit_summary(company_id, "2038-39")
        assert summary.expiring_soon_count == 2
        assert summary.expiring_soon_amount == Decimal("728000")

    def test_expired_credit_dropped(self, service, finalize_year, company_id):
        _mat_year(finalize_year, "2024-25")
        _mat_year(finalize_year, "2025-26")

        summary = service.get_mat_credit_summary(company_id, "2040-41")
        assert [c.financial_year for c in summary.credits] == ["2025-26"]
        assert summary.total_credit_available == CREDIT_PER_MAT_YEAR

    def test_warning_window_from_config(
        self, make_service, finalize_year, company_id,
    ):
        _mat_year(finalize_year, "2024-25")
        svc = make_service(config=AdvanceTaxConfig(mat_credit_expiry_warning_years=0))
        assert svc.get_mat_credit_summary(company_id, "2038-39").expiring_soon_count == 0
        assert svc.get_mat_credit_summary(company_id, "2039-40").expiring_soon_count == 1

    def test_mat_computation_reads_register(
        self, service, finalize_year, company_id, test_actor_id,
    ):
        _mat_year(finalize_year, "2024-25")
        draft = service.create_assessment(AssessmentCreate(
            company_id=company_id,
            financial_year="2025-26",
            projected_revenue=Decimal("12000000"),
            projected_expenses=Decimal("8000000"),
        ), test_actor_id)

        mat = service.get_mat_computation(draft.id)
        assert mat.mat_credit_available == CREDIT_PER_MAT_YEAR
        assert mat.mat_credit_to_utilize == CREDIT_PER_MAT_YEAR
        assert mat.final_tax_payable == Decimal("676000")
        # reading does not draw
        [credit] = service.list_mat_credits(company_id)
        assert credit.credit_balance == CREDIT_PER_MAT_YEAR
