"""
Shared fixtures for advance tax module tests.

The standard assessment used throughout is FY 2024-25, normal regime,
projected revenue 12,000,000 against expenses 8,000,000: taxable income
4,000,000, total liability 1,040,000 and cumulative targets of
156,000 / 468,000 / 780,000 / 1,040,000.

Every fixture is opt-in.  No autouse.
"""

from decimal import Decimal

import pytest

from advtax_modules.advance_tax.models import AssessmentCreate

STANDARD_NET_PAYABLE = Decimal("1040000")
STANDARD_TARGETS = (
    Decimal("156000"),
    Decimal("468000"),
    Decimal("780000"),
    Decimal("1040000"),
)


@pytest.fixture
def assessment_request(company_id) -> AssessmentCreate:
    return AssessmentCreate(
        company_id=company_id,
        financial_year="2024-25",
        tax_regime="normal",
        projected_revenue=Decimal("12000000"),
        projected_expenses=Decimal("8000000"),
    )


@pytest.fixture
def draft_assessment(service, assessment_request, test_actor_id):
    """A draft assessment for the standard projection."""
    return service.create_assessment(assessment_request, test_actor_id)


@pytest.fixture
def active_assessment(service, draft_assessment, test_actor_id):
    """The standard assessment, activated and ready for payments."""
    return service.activate_assessment(draft_assessment.id, test_actor_id)
