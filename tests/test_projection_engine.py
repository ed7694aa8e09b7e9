"""
Tests for the monthly projection engine.

This module tests the month-by-month recurrence: salary growth and
adjustments, bonuses, contributions, loan amortization, scheduled expenses,
investment return, milestones, the partial current month, validation, and
trajectory continuity.
"""

from datetime import date

import numpy as np
import pytest
from pydantic import ValidationError

from projector.models.errors import (
    InvalidNegativeValue,
    MissingRequiredField,
    ProjectionCancelled,
    ProjectionError,
)
from projector.models.profile import (
    Bonus,
    ExpenseItem,
    FinancialProfile,
    ProjectionSettings,
    RetirementBalances,
    SalaryAdjustment,
    UpcomingSpending,
    YearlyExpense,
)
from projector.models.projection_engine import (
    LOAN_PAID_OFF,
    SAVINGS_GOAL_REACHED,
    ProjectionEngine,
    ProjectionResult,
    growth_multipliers,
    project,
    validate_inputs,
)
from projector.models.time_grid import annual_to_monthly_rate

# Outside every projection start used here, so month one is a full month.
OUTSIDE_TODAY = date(2020, 6, 15)


def _settings(flat_settings, **updates):
    return flat_settings.model_copy(update=updates)


def _profile(profile, **updates):
    return profile.model_copy(update=updates)


class TestBasicScenario:
    """Salary 6000 at 20%/17%, expenses 2000, loan of 10000 at 1000/month."""

    def test_months_length_matches_horizon(self, simple_profile, flat_settings):
        """Test that one month is emitted per month of the horizon."""
        result = project(simple_profile, flat_settings, today=OUTSIDE_TODAY)

        assert len(result.months) == flat_settings.years * 12
        assert [m.index for m in result.months] == list(range(1, 25))

    def test_first_month_take_home_and_savings(self, simple_profile, flat_settings):
        """Test take-home of 4800 and net savings of 1800 in month one."""
        result = project(simple_profile, flat_settings, today=OUTSIDE_TODAY)
        first = result.months[0]

        assert abs(first.gross_salary - 6000.0) < 1e-9
        assert abs(first.take_home - 4800.0) < 1e-9
        assert abs(first.net_cash_flow - 1800.0) < 1e-9
        assert abs(first.liquid_cash - 6800.0) < 1e-9

    def test_loan_paid_off_at_month_ten(self, simple_profile, flat_settings):
        """Test that the loan is paid off in exactly the tenth month."""
        result = project(simple_profile, flat_settings, today=OUTSIDE_TODAY)

        marker = result.milestones.loan_paid_off
        assert marker is not None
        assert marker.index == 10
        assert marker.label == "Oct 2025"
        assert result.months[8].loan_balance == 1000.0
        assert result.months[9].loan_balance == 0.0
        assert LOAN_PAID_OFF in result.months[9].milestone

    def test_loan_payment_stops_after_payoff(self, simple_profile, flat_settings):
        """Test that no payment is made once the balance reaches zero."""
        result = project(simple_profile, flat_settings, today=OUTSIDE_TODAY)

        for month in result.months[10:]:
            assert month.loan_payment == 0.0
            assert month.loan_balance == 0.0
            assert abs(month.net_cash_flow - 2800.0) < 1e-9

    def test_loan_balance_non_increasing(self, simple_profile, flat_settings):
        """Test that the loan balance never increases and never goes negative."""
        result = project(simple_profile, flat_settings, today=OUTSIDE_TODAY)
        balances = result.series("loan_balance")

        assert np.all(np.diff(balances) <= 0)
        assert np.all(balances >= 0)

    def test_allocation_sums_to_total_contribution(self, simple_profile, flat_settings):
        """Test that sub-account credits sum to each month's total contribution."""
        result = project(simple_profile, flat_settings, today=OUTSIDE_TODAY)

        for month in result.months:
            assert abs(month.allocation.total - month.total_contribution) < 1e-6

    def test_retirement_credits(self, simple_profile, flat_settings):
        """Test that month-one credits land in the sub-accounts."""
        result = project(simple_profile, flat_settings, today=OUTSIDE_TODAY)
        first = result.months[0]

        assert abs(first.total_contribution - 2220.0) < 1e-9
        assert abs(first.retirement_balances.primary - 11380.0) < 1e-6
        assert abs(first.retirement_balances.secondary - 5360.0) < 1e-6
        assert abs(first.retirement_balances.medical - 3480.0) < 1e-6

    def test_net_worth(self, simple_profile, flat_settings):
        """Test net worth as liquid cash plus retirement minus loan."""
        result = project(simple_profile, flat_settings, today=OUTSIDE_TODAY)

        for month in result.months:
            expected = month.liquid_cash + month.retirement_total - month.loan_balance
            assert abs(month.net_worth - expected) < 1e-9

    def test_balances_follow_net_change(self, simple_profile, flat_settings):
        """Test that each closing balance is the previous one plus the month's change."""
        result = project(simple_profile, flat_settings, today=OUTSIDE_TODAY)

        previous = simple_profile.liquid_cash
        for month in result.months:
            assert abs(month.opening_liquid_cash - previous) < 1e-9
            expected = previous + month.investment_return + month.net_cash_flow
            assert abs(month.liquid_cash - expected) < 1e-9
            previous = month.liquid_cash

    def test_metadata(self, simple_profile, flat_settings):
        """Test run summary metadata."""
        result = project(simple_profile, flat_settings, today=OUTSIDE_TODAY)

        assert result.metadata.start_label == "Jan 2025"
        assert result.metadata.months_projected == 24
        assert result.metadata.final_liquid_cash == result.months[-1].liquid_cash
        assert not result.metadata.salary_already_received
        assert not result.metadata.loan_non_convergent
        assert not result.metadata.early_exit


class TestSavingsGoal:
    """Test cases for savings goal detection."""

    def test_goal_reached_within_four_months(self, simple_profile, flat_settings):
        """Test that 90000 saving about 2800 a month reaches 100000 by month four."""
        profile = _profile(simple_profile, liquid_cash=90000.0, loan_balance=0.0, loan_payment=0.0)
        result = project(profile, flat_settings, today=OUTSIDE_TODAY)

        marker = result.milestones.savings_goal_reached
        assert marker is not None
        assert marker.index <= 4
        assert result.months[marker.index - 1].liquid_cash >= 100000.0
        assert result.months[marker.index - 2].liquid_cash < 100000.0

    def test_goal_recorded_once(self, simple_profile, flat_settings):
        """Test that only the first crossing month carries the milestone tag."""
        profile = _profile(simple_profile, liquid_cash=90000.0, loan_balance=0.0, loan_payment=0.0)
        result = project(profile, flat_settings, today=OUTSIDE_TODAY)

        tagged = [m for m in result.months if m.milestone and SAVINGS_GOAL_REACHED in m.milestone]
        assert len(tagged) == 1

    def test_detection_is_stable_across_runs(self, simple_profile, flat_settings):
        """Test that re-running the same inputs never moves a milestone."""
        first = project(simple_profile, flat_settings, today=OUTSIDE_TODAY)
        second = project(simple_profile, flat_settings, today=OUTSIDE_TODAY)

        assert first.milestones == second.milestones
        assert first.model_dump() == second.model_dump()

    def test_both_milestones_in_same_month(self, simple_profile, flat_settings):
        """Test that simultaneous milestones are joined in one tag."""
        profile = _profile(simple_profile, liquid_cash=98500.0, loan_balance=1000.0)
        result = project(profile, flat_settings, today=OUTSIDE_TODAY)

        assert result.months[0].milestone == f"{LOAN_PAID_OFF}, {SAVINGS_GOAL_REACHED}"

    def test_no_loan_milestone_without_loan(self, simple_profile, flat_settings):
        """Test that a profile without a loan never records a payoff."""
        profile = _profile(simple_profile, loan_balance=0.0, loan_payment=0.0)
        result = project(profile, flat_settings, today=OUTSIDE_TODAY)

        assert result.milestones.loan_paid_off is None


class TestGrowthAndAdjustments:
    """Test cases for geometric growth and salary adjustments."""

    def test_growth_multipliers_are_geometric(self):
        """Test that twelve months of growth compound to the annual rate."""
        multipliers = growth_multipliers(0.12, 25)

        assert multipliers[0] == 1.0
        assert abs(multipliers[12] - 1.12) < 1e-9
        assert abs(multipliers[24] - 1.12 ** 2) < 1e-9

    def test_first_month_keeps_current_values(self, simple_profile, flat_settings):
        """Test that growth is not applied in the first month."""
        settings = _settings(flat_settings, salary_growth=0.12, expense_growth=0.06)
        result = project(simple_profile, settings, today=OUTSIDE_TODAY)

        assert result.months[0].gross_salary == 6000.0
        assert result.months[0].recurring_expenses == 2000.0
        assert abs(result.months[12].gross_salary - 6720.0) < 1e-6
        assert abs(result.months[12].recurring_expenses - 2120.0) < 1e-6

    def test_salary_adjustment_overrides_growth(self, simple_profile, flat_settings):
        """Test that an adjustment replaces the grown salary from its month on."""
        profile = _profile(
            simple_profile,
            salary_adjustments=[SalaryAdjustment(year=2025, month=7, new_salary=8000.0)],
        )
        settings = _settings(flat_settings, salary_growth=0.03)
        result = project(profile, settings, today=OUTSIDE_TODAY)

        assert result.months[5].gross_salary < 8000.0
        assert result.months[6].gross_salary == 8000.0
        monthly = annual_to_monthly_rate(0.03)
        assert abs(result.months[7].gross_salary - 8000.0 * (1 + monthly)) < 1e-6

    def test_adjustment_before_start_applies_immediately(self, simple_profile, flat_settings):
        """Test that an adjustment already in effect sets the starting salary."""
        profile = _profile(
            simple_profile,
            salary_adjustments=[SalaryAdjustment(year=2024, month=9, new_salary=7000.0)],
        )
        result = project(profile, flat_settings, today=OUTSIDE_TODAY)

        assert result.months[0].gross_salary == 7000.0

    def test_later_adjustment_wins(self, simple_profile, flat_settings):
        """Test that the latest applicable adjustment is used."""
        profile = FinancialProfile(
            **{
                **simple_profile.model_dump(),
                "salary_adjustments": [
                    {"year": 2025, "month": 9, "new_salary": 9000.0},
                    {"year": 2025, "month": 3, "new_salary": 7000.0},
                ],
            }
        )
        result = project(profile, flat_settings, today=OUTSIDE_TODAY)

        assert result.months[1].gross_salary == 6000.0
        assert result.months[2].gross_salary == 7000.0
        assert result.months[8].gross_salary == 9000.0

    def test_age_bracket_change_lowers_rates(self, flat_settings):
        """Test that contribution rates follow the age computed for each month."""
        profile = FinancialProfile(
            birth_year=1970,
            birth_month=3,
            liquid_cash=1000.0,
            salary=6000.0,
        )
        result = project(profile, flat_settings, today=OUTSIDE_TODAY)

        # Born March 1970: 55 until February 2026, 56 from March 2026
        assert result.months[13].age == 55
        assert abs(result.months[13].employee_contribution - 1200.0) < 1e-9
        assert result.months[14].age == 56
        assert abs(result.months[14].employee_contribution - 900.0) < 1e-9


class TestScheduledCashEvents:
    """Test cases for bonuses and scheduled expenses."""

    def test_explicit_bonus(self, simple_profile, flat_settings):
        """Test that an explicit bonus is paid in its month with its description."""
        profile = _profile(
            simple_profile,
            bonuses=[Bonus(year=2025, month=3, amount=5000.0, description="Performance bonus")],
        )
        result = project(profile, flat_settings, today=OUTSIDE_TODAY)

        march = result.months[2]
        assert march.bonus == 5000.0
        assert march.bonus_source == "Performance bonus"
        assert abs(march.net_cash_flow - 6800.0) < 1e-9

    def test_bonus_not_subject_to_contribution(self, simple_profile, flat_settings):
        """Test that bonuses do not change the contribution."""
        profile = _profile(
            simple_profile, bonuses=[Bonus(year=2025, month=3, amount=5000.0)]
        )
        result = project(profile, flat_settings, today=OUTSIDE_TODAY)

        assert result.months[2].total_contribution == result.months[1].total_contribution

    def test_traditional_bonus_defaults_to_salary(self, simple_profile, flat_settings):
        """Test that one traditional bonus pays a month of salary in December."""
        settings = _settings(flat_settings, traditional_bonus_count=1)
        result = project(simple_profile, settings, today=OUTSIDE_TODAY)

        bonuses = {m.label: m.bonus for m in result.months if m.bonus > 0}
        assert bonuses == {"Dec 2025": 6000.0, "Dec 2026": 6000.0}

    def test_traditional_bonus_months_in_order(self, simple_profile, flat_settings):
        """Test that two traditional bonuses use December then February."""
        settings = _settings(flat_settings, traditional_bonus_count=2, bonus_amount=2500.0)
        result = project(simple_profile, settings, today=OUTSIDE_TODAY)

        paid = [m.label for m in result.months if m.bonus > 0]
        assert paid == ["Feb 2025", "Dec 2025", "Feb 2026", "Dec 2026"]
        assert all(m.bonus == 2500.0 for m in result.months if m.bonus > 0)

    def test_explicit_bonus_keeps_traditional_bonus(self, simple_profile, flat_settings):
        """Test that an explicit bonus in another month leaves December's bonus in place."""
        profile = _profile(
            simple_profile, bonuses=[Bonus(year=2025, month=6, amount=3000.0)]
        )
        settings = _settings(flat_settings, traditional_bonus_count=1)
        result = project(profile, settings, today=OUTSIDE_TODAY)

        paid = {m.label: m.bonus for m in result.months if m.bonus > 0}
        assert paid == {"Jun 2025": 3000.0, "Dec 2025": 6000.0, "Dec 2026": 6000.0}

    def test_explicit_bonus_replaces_traditional_in_same_month(self, simple_profile, flat_settings):
        """Test that an explicit December bonus replaces the traditional one."""
        profile = _profile(
            simple_profile,
            bonuses=[Bonus(year=2025, month=12, amount=4000.0, description="Year-end")],
        )
        settings = _settings(flat_settings, traditional_bonus_count=1)
        result = project(profile, settings, today=OUTSIDE_TODAY)

        december = {m.label: m for m in result.months}["Dec 2025"]
        assert december.bonus == 4000.0
        assert december.bonus_source == "Year-end"

    def test_yearly_expense_bounded_by_years(self, simple_profile, flat_settings):
        """Test that a yearly expense applies only between its start and end year."""
        profile = _profile(
            simple_profile,
            yearly_expenses=[
                YearlyExpense(name="Insurance", month=4, amount=1200.0, start_year=2025, end_year=2025)
            ],
        )
        result = project(profile, flat_settings, today=OUTSIDE_TODAY)

        assert result.months[3].yearly_expenses == 1200.0
        assert result.months[15].yearly_expenses == 0.0

    def test_upcoming_spending(self, simple_profile, flat_settings):
        """Test that one-off spending reduces cash in its month only."""
        profile = _profile(
            simple_profile,
            upcoming_spending=[UpcomingSpending(name="Laptop", year=2025, month=5, amount=3000.0)],
        )
        result = project(profile, flat_settings, today=OUTSIDE_TODAY)

        assert result.months[4].one_off_spending == 3000.0
        assert abs(result.months[4].net_cash_flow - (1800.0 - 3000.0)) < 1e-9
        assert result.months[5].one_off_spending == 0.0


class TestReturnsAndInterest:
    """Test cases for investment return and retirement interest."""

    def test_investment_return_on_opening_balance(self, simple_profile, flat_settings):
        """Test that the return is earned on the opening cash, not the closing cash."""
        settings = _settings(flat_settings, investment_return=0.12)
        result = project(simple_profile, settings, today=OUTSIDE_TODAY)

        monthly = annual_to_monthly_rate(0.12)
        first = result.months[0]
        assert abs(first.investment_return - 5000.0 * monthly) < 1e-9
        second = result.months[1]
        assert abs(second.investment_return - first.liquid_cash * monthly) < 1e-9

    def test_retirement_interest_before_credits(self, simple_profile, flat_settings):
        """Test that interest accrues on opening sub-account balances."""
        settings = _settings(flat_settings, retirement_interest=0.04)
        result = project(simple_profile, settings, today=OUTSIDE_TODAY)

        monthly = annual_to_monthly_rate(0.04)
        first = result.months[0]
        assert abs(first.retirement_interest - 18000.0 * monthly) < 1e-9
        assert abs(first.retirement_balances.primary - (10000.0 * (1 + monthly) + 1380.0)) < 1e-6


class TestPartialCurrentMonth:
    """Test cases for a projection starting in the current month."""

    def test_salary_already_received(self, simple_profile, flat_settings):
        """Test that no salary is credited when the salary day has passed."""
        result = project(simple_profile, flat_settings, today=date(2025, 1, 28))
        first = result.months[0]

        assert first.salary_already_received
        assert first.gross_salary == 0.0
        assert first.total_contribution == 0.0
        assert first.loan_payment == 0.0
        assert first.loan_balance == 10000.0
        assert first.liquid_cash == simple_profile.liquid_cash
        assert result.metadata.salary_already_received

    def test_only_returns_accrue(self, simple_profile, flat_settings):
        """Test that the investment return still accrues in the partial month."""
        settings = _settings(flat_settings, investment_return=0.05)
        result = project(simple_profile, settings, today=date(2025, 1, 28))
        first = result.months[0]

        assert first.investment_return > 0
        assert abs(first.liquid_cash - (5000.0 + first.investment_return)) < 1e-9

    def test_salary_day_not_yet_passed(self, simple_profile, flat_settings):
        """Test that the full month runs when salary is still to come."""
        result = project(simple_profile, flat_settings, today=date(2025, 1, 20))

        assert not result.months[0].salary_already_received
        assert result.months[0].gross_salary == 6000.0

    def test_no_today_means_full_month(self, simple_profile, flat_settings):
        """Test that without a reference date the first month is a full month."""
        result = project(simple_profile, flat_settings)

        assert result.months[0].gross_salary == 6000.0

    def test_loan_payoff_shifts_by_one_month(self, simple_profile, flat_settings):
        """Test that skipping the first payment delays payoff by a month."""
        result = project(simple_profile, flat_settings, today=date(2025, 1, 28))

        assert result.milestones.loan_paid_off.index == 11


class TestNonConvergentLoan:
    """Test cases for a loan whose payment does not cover interest."""

    def test_flagged_not_fatal(self, simple_profile, flat_settings):
        """Test that the projection completes with the loan flagged."""
        profile = _profile(
            simple_profile, loan_balance=100000.0, loan_annual_rate=0.06, loan_payment=300.0
        )
        result = project(profile, flat_settings, today=OUTSIDE_TODAY)

        assert len(result.months) == 24
        assert result.metadata.loan_non_convergent
        assert result.milestones.loan_paid_off is None
        assert all(m.loan_balance == 100000.0 for m in result.months)
        assert all(m.loan_payment == 300.0 for m in result.months)


class TestValidation:
    """Test cases for input validation."""

    def test_negative_salary(self, simple_profile, flat_settings):
        """Test that a negative salary aborts before any month is produced."""
        profile = _profile(simple_profile, salary=-1.0)

        with pytest.raises(InvalidNegativeValue, match="profile.salary"):
            project(profile, flat_settings)

    def test_negative_expense_item(self, simple_profile, flat_settings):
        """Test that a negative expense item is rejected with its field path."""
        profile = _profile(
            simple_profile, expenses=[ExpenseItem(name="Refund", amount=-50.0)]
        )

        with pytest.raises(InvalidNegativeValue) as exc_info:
            project(profile, flat_settings)
        assert exc_info.value.field == "profile.expenses.0.amount"

    def test_negative_retirement_balance(self, simple_profile, flat_settings):
        """Test that negative balances are rejected."""
        profile = _profile(
            simple_profile, retirement_balances=RetirementBalances(primary=-5.0)
        )

        with pytest.raises(InvalidNegativeValue):
            project(profile, flat_settings)

    def test_missing_field_in_dict(self, simple_profile, flat_settings):
        """Test that a missing attribute in a raw dict is reported by name."""
        raw = simple_profile.model_dump()
        del raw["salary"]

        with pytest.raises(MissingRequiredField) as exc_info:
            validate_inputs(raw, flat_settings.model_dump())
        assert exc_info.value.field == "profile.salary"

    def test_missing_settings_field(self, simple_profile):
        """Test that settings without a horizon are rejected."""
        with pytest.raises(MissingRequiredField, match="settings.years"):
            project(simple_profile, {"start_year": 2025, "start_month": 1})

    def test_missing_profile(self, flat_settings):
        """Test that no profile at all is reported."""
        with pytest.raises(MissingRequiredField, match="profile"):
            project(None, flat_settings)

    def test_invalid_value_is_projection_error(self, simple_profile, flat_settings):
        """Test that other invalid attributes surface as projection errors."""
        raw = flat_settings.model_dump()
        raw["start_month"] = 13

        with pytest.raises(ProjectionError, match="settings.start_month"):
            project(simple_profile, raw)

    def test_errors_are_value_errors(self, simple_profile, flat_settings):
        """Test that callers catching ValueError still catch engine errors."""
        profile = _profile(simple_profile, liquid_cash=-10.0)

        with pytest.raises(ValueError):
            project(profile, flat_settings)


class TestEngineControls:
    """Test cases for cancellation, early exit and immutability."""

    def test_cooperative_cancellation(self, simple_profile, flat_settings):
        """Test that the cancel callback stops the run between months."""
        calls = []

        def should_cancel():
            calls.append(1)
            return len(calls) > 5

        with pytest.raises(ProjectionCancelled) as exc_info:
            project(simple_profile, flat_settings, should_cancel=should_cancel)
        assert exc_info.value.completed_months == 5

    def test_full_horizon_by_default(self, simple_profile, flat_settings):
        """Test that reaching every milestone does not shorten the run."""
        profile = _profile(simple_profile, liquid_cash=99000.0)
        result = project(profile, flat_settings, today=OUTSIDE_TODAY)

        assert len(result.months) == 24

    def test_early_exit_when_configured(self, simple_profile, flat_settings):
        """Test stopping a fixed window after the last milestone."""
        profile = _profile(simple_profile, liquid_cash=90000.0, loan_balance=0.0, loan_payment=0.0)
        settings = _settings(flat_settings, stop_after_milestones_months=2)
        result = project(profile, settings, today=OUTSIDE_TODAY)

        reached = result.milestones.savings_goal_reached.index
        assert len(result.months) == reached + 2
        assert len(result.months) <= settings.total_months
        assert result.metadata.early_exit

    def test_early_exit_waits_for_loan(self, simple_profile, flat_settings):
        """Test that the early exit waits until the loan is also paid off."""
        profile = _profile(simple_profile, liquid_cash=99000.0)
        settings = _settings(flat_settings, stop_after_milestones_months=0)
        result = project(profile, settings, today=OUTSIDE_TODAY)

        assert len(result.months) == 10

    def test_emitted_months_are_immutable(self, simple_profile, flat_settings):
        """Test that a produced month cannot be modified."""
        result = project(simple_profile, flat_settings, today=OUTSIDE_TODAY)

        with pytest.raises(ValidationError):
            result.months[0].liquid_cash = 0.0

    def test_empty_result(self):
        """Test the empty fallback projection."""
        empty = ProjectionResult.empty()

        assert empty.is_empty
        assert empty.months == []
        assert empty.milestones.loan_paid_off is None
        assert empty.first_crossing("liquid_cash", 0) is None

    def test_engine_instance_reusable(self, simple_profile, flat_settings, contribution_config):
        """Test that one engine gives independent, identical results."""
        engine = ProjectionEngine(contribution_config)
        first = engine.project(simple_profile, flat_settings, today=OUTSIDE_TODAY)
        second = engine.project(simple_profile, flat_settings, today=OUTSIDE_TODAY)

        assert first is not second
        assert first.months == second.months


class TestContinuity:
    """Test cases for resuming a projection from its own output."""

    def test_split_run_matches_continuous_run(self, simple_profile):
        """Test that 24 months then 12 months equals a single 36-month run."""
        profile = _profile(
            simple_profile, loan_balance=30000.0, loan_annual_rate=0.03, loan_payment=1000.0
        )
        base = dict(
            salary_growth=0.0,
            expense_growth=0.0,
            investment_return=0.04,
            retirement_interest=0.025,
            start_month=1,
        )
        continuous = project(
            profile, ProjectionSettings(years=3, start_year=2025, **base), today=OUTSIDE_TODAY
        )
        first_leg = project(
            profile, ProjectionSettings(years=2, start_year=2025, **base), today=OUTSIDE_TODAY
        )

        month_24 = first_leg.months[-1]
        resumed_profile = _profile(
            profile,
            liquid_cash=month_24.liquid_cash,
            retirement_balances=month_24.retirement_balances,
            loan_balance=month_24.loan_balance,
        )
        second_leg = project(
            resumed_profile,
            ProjectionSettings(years=1, start_year=2027, **base),
            today=OUTSIDE_TODAY,
        )

        for split, whole in zip(second_leg.months, continuous.months[24:]):
            assert split.label == whole.label
            assert abs(split.liquid_cash - whole.liquid_cash) < 1e-6
            assert abs(split.retirement_total - whole.retirement_total) < 1e-6
            assert abs(split.loan_balance - whole.loan_balance) < 1e-6
            assert abs(split.net_worth - whole.net_worth) < 1e-6
