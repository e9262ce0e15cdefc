"""
Tests for kernel value objects, the workflow definition and the clock.
"""

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from advtax_kernel.domain.clock import DeterministicClock
from advtax_kernel.domain.values import FinancialYear, months_spanned, round_money, round_rate
from advtax_kernel.domain.workflow import Transition, Workflow
from advtax_kernel.exceptions import InvalidFinancialYearError
from advtax_modules.advance_tax.workflows import (
    ASSESSMENT_WORKFLOW,
    EDITABLE_STATES,
    PAYABLE_STATES,
)


class TestFinancialYear:
    def test_parse_short_label(self):
        fy = FinancialYear.parse("2024-25")
        assert fy.start_year == 2024
        assert fy.label == "2024-25"

    def test_parse_long_label(self):
        assert FinancialYear.parse("2024-2025") == FinancialYear(2024)

    def test_century_rollover(self):
        assert FinancialYear.parse("2099-00").label == "2099-00"

    @pytest.mark.parametrize("label", ["2024", "2024-26", "24-25", "2024-2026", "abcd-ef", ""])
    def test_invalid_labels(self, label):
        with pytest.raises(InvalidFinancialYearError) as exc_info:
            FinancialYear.parse(label)
        assert exc_info.value.code == "INVALID_FINANCIAL_YEAR"

    def test_boundaries(self):
        fy = FinancialYear(2024)
        assert fy.start_date == date(2024, 4, 1)
        assert fy.end_date == date(2025, 3, 31)
        assert fy.assessment_year == FinancialYear(2025)
        assert fy.contains(date(2025, 3, 31))
        assert not fy.contains(date(2025, 4, 1))

    def test_shifted(self):
        assert FinancialYear(2024).shifted(15).label == "2039-40"
        assert FinancialYear(2024).shifted(-1) == FinancialYear(2023)

    def test_containing(self):
        assert FinancialYear.containing(date(2025, 2, 1)) == FinancialYear(2024)
        assert FinancialYear.containing(date(2025, 4, 1)) == FinancialYear(2025)

    def test_quarter_of(self):
        fy = FinancialYear(2024)
        assert fy.quarter_of(date(2024, 4, 1)) == 1
        assert fy.quarter_of(date(2024, 9, 30)) == 2
        assert fy.quarter_of(date(2024, 12, 15)) == 3
        assert fy.quarter_of(date(2025, 3, 31)) == 4

    def test_clamp(self):
        fy = FinancialYear(2024)
        assert fy.clamp(date(2025, 6, 1)) == date(2025, 3, 31)
        assert fy.clamp(date(2024, 6, 1)) == date(2024, 6, 1)


class TestMonthsSpanned:
    def test_same_month(self):
        assert months_spanned(date(2025, 4, 1), date(2025, 4, 10)) == 1

    def test_both_endpoints_counted(self):
        assert months_spanned(date(2025, 4, 1), date(2025, 5, 1)) == 2

    def test_across_year_end(self):
        assert months_spanned(date(2024, 11, 1), date(2025, 2, 1)) == 4

    def test_end_before_start(self):
        assert months_spanned(date(2025, 4, 1), date(2025, 3, 31)) == 0


class TestRounding:
    def test_money_half_up(self):
        assert round_money(Decimal("1.005")) == Decimal("1.01")
        assert round_money(Decimal("-1.005")) == Decimal("-1.01")

    def test_rate_six_places(self):
        assert round_rate(Decimal("0.2600004")) == Decimal("0.260000")

    def test_float_rejected(self):
        with pytest.raises(TypeError):
            round_money(1.5)
        with pytest.raises(TypeError):
            round_rate(0.25)


class TestAssessmentWorkflow:
    def test_lifecycle(self):
        assert ASSESSMENT_WORKFLOW.initial_state == "draft"
        assert ASSESSMENT_WORKFLOW.transition_for("draft", "activate").to_state == "active"
        assert ASSESSMENT_WORKFLOW.transition_for("active", "finalize").to_state == "finalized"

    def test_no_shortcuts(self):
        assert ASSESSMENT_WORKFLOW.transition_for("draft", "finalize") is None
        assert ASSESSMENT_WORKFLOW.allowed_actions("finalized") == ()
        assert ASSESSMENT_WORKFLOW.is_terminal("finalized")

    def test_state_sets(self):
        assert EDITABLE_STATES == {"draft", "active"}
        assert PAYABLE_STATES == {"active"}

    def test_undeclared_state_rejected(self):
        with pytest.raises(ValueError):
            Workflow(
                name="bad",
                description="",
                initial_state="a",
                states=("a",),
                transitions=(Transition("a", "b", action="go"),),
            )

    def test_terminal_state_cannot_transition(self):
        with pytest.raises(ValueError):
            Workflow(
                name="bad",
                description="",
                initial_state="a",
                states=("a", "b"),
                transitions=(Transition("b", "a", action="reopen"),),
                terminal_states=("b",),
            )


class TestDeterministicClock:
    def test_on_day(self):
        clock = DeterministicClock.on(date(2024, 5, 1))
        assert clock.today() == date(2024, 5, 1)

    def test_advance_days(self):
        clock = DeterministicClock.on(date(2024, 5, 1))
        clock.advance_days(45)
        assert clock.today() == date(2024, 6, 15)

    def test_set_time(self):
        clock = DeterministicClock()
        moment = datetime(2025, 1, 1, 9, 30, tzinfo=timezone.utc)
        clock.set_time(moment)
        assert clock.now() == moment
