"""
Monthly projection engine.

This module runs the deterministic month-by-month simulation of a personal
financial profile: salary growth and adjustments, bonuses, contributions into
retirement sub-accounts, loan amortization, recurring and scheduled expenses,
investment return on liquid cash, and first-crossing milestone detection.

The engine is a pure function of its inputs. "Today" is an explicit parameter
so runs are reproducible; no wall-clock time is read inside the loop.
"""

import logging
from datetime import date
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, ValidationError, computed_field

from .contributions import (
    ContributionCalculator,
    ContributionConfig,
    ContributionResult,
    SubAccountAllocation,
)
from .errors import (
    InvalidNegativeValue,
    MissingRequiredField,
    ProjectionCancelled,
    translate_validation_error,
)
from .loan_amortization import LoanCalculator, LoanMonth
from .profile import FinancialProfile, ProjectionSettings, RetirementBalances
from .time_grid import MonthGrid, age_at, annual_to_monthly_rate, is_same_month

logger = logging.getLogger(__name__)

# Months that receive a "traditional" bonus, in the order they are enabled.
TRADITIONAL_BONUS_MONTHS = (12, 2, 5, 8)
TRADITIONAL_BONUS_SOURCE = "Traditional bonus"

LOAN_PAID_OFF = "Loan Paid Off"
SAVINGS_GOAL_REACHED = "Savings Goal Reached"


class ProjectionMonth(BaseModel):
    """One emitted month of a projection. Immutable once produced."""

    model_config = ConfigDict(frozen=True)

    index: int = Field(..., ge=1, description="Sequence index (1-based)")
    year: int = Field(..., description="Calendar year")
    month: int = Field(..., ge=1, le=12, description="Calendar month")
    label: str = Field(..., description="Display label, e.g. 'Mar 2025'")
    age: int = Field(..., description="Age in whole years this month")

    gross_salary: float = Field(..., description="Gross salary credited this month")
    take_home: float = Field(..., description="Salary net of employee contribution")
    employee_contribution: float = Field(...)
    employer_contribution: float = Field(...)
    allocation: SubAccountAllocation = Field(
        ..., description="Combined contribution split by sub-account"
    )

    recurring_expenses: float = Field(..., description="Grown recurring expenses")
    yearly_expenses: float = Field(..., description="Yearly expenses due this month")
    one_off_spending: float = Field(..., description="Scheduled one-off spending")
    bonus: float = Field(..., description="Bonus received this month")
    bonus_source: Optional[str] = Field(default=None, description="Bonus description")

    loan_payment: float = Field(...)
    loan_interest: float = Field(...)
    loan_principal: float = Field(...)
    loan_balance: float = Field(..., description="Loan balance after this month")

    investment_return: float = Field(..., description="Return earned on opening cash")
    retirement_interest: float = Field(
        ..., description="Interest earned on opening retirement balances"
    )
    net_cash_flow: float = Field(..., description="Net cash change before return")

    opening_liquid_cash: float = Field(...)
    liquid_cash: float = Field(..., description="Closing liquid cash")
    retirement_balances: RetirementBalances = Field(...)
    net_worth: float = Field(...)

    milestone: Optional[str] = Field(
        default=None, description="Milestones first reached this month"
    )
    salary_already_received: bool = Field(
        default=False,
        description="Salary for this month was already in the opening balance",
    )

    @computed_field
    @property
    def total_expenses(self) -> float:
        return self.recurring_expenses + self.yearly_expenses + self.one_off_spending

    @computed_field
    @property
    def total_contribution(self) -> float:
        return self.employee_contribution + self.employer_contribution

    @computed_field
    @property
    def retirement_total(self) -> float:
        return self.retirement_balances.total


class MilestoneMarker(BaseModel):
    """Month in which an engine milestone was first reached."""

    model_config = ConfigDict(frozen=True)

    index: int = Field(..., ge=1, description="Projection month index (1-based)")
    year: int
    month: int
    label: str


class EngineMilestones(BaseModel):
    """First-crossing milestones detected by the engine."""

    loan_paid_off: Optional[MilestoneMarker] = None
    savings_goal_reached: Optional[MilestoneMarker] = None


class ProjectionMetadata(BaseModel):
    """Summary of a projection run."""

    start_label: Optional[str] = None
    months_projected: int = 0
    average_monthly_net: float = 0.0
    final_liquid_cash: float = 0.0
    final_net_worth: float = 0.0
    total_investment_return: float = 0.0
    total_retirement_interest: float = 0.0
    salary_already_received: bool = False
    loan_non_convergent: bool = False
    early_exit: bool = False


class ProjectionResult(BaseModel):
    """Complete output of a projection run."""

    months: List[ProjectionMonth] = Field(default_factory=list)
    milestones: EngineMilestones = Field(default_factory=EngineMilestones)
    metadata: ProjectionMetadata = Field(default_factory=ProjectionMetadata)

    @classmethod
    def empty(cls) -> "ProjectionResult":
        """Empty projection used as the fallback when a run fails."""
        return cls()

    @property
    def is_empty(self) -> bool:
        return not self.months

    def series(self, attribute: str) -> np.ndarray:
        """
        Get one attribute of every month as an array.

        Args:
            attribute: ProjectionMonth attribute or property name

        Returns:
            Array with one value per month
        """
        return np.array([getattr(m, attribute) for m in self.months], dtype=float)

    def month_at(self, index: int) -> ProjectionMonth:
        """Get the month with the given 1-based index."""
        return self.months[index - 1]

    def first_crossing(self, attribute: str, threshold: float) -> Optional[ProjectionMonth]:
        """Get the first month whose attribute is at or above a threshold."""
        if self.is_empty:
            return None
        values = self.series(attribute)
        hits = np.nonzero(values >= threshold)[0]
        if hits.size == 0:
            return None
        return self.months[int(hits[0])]


ProfileInput = Union[FinancialProfile, Dict[str, Any]]
SettingsInput = Union[ProjectionSettings, Dict[str, Any]]


def _monetary_fields(
    profile: FinancialProfile, settings: ProjectionSettings
) -> List[Tuple[str, Optional[float]]]:
    fields = [
        ("profile.liquid_cash", profile.liquid_cash),
        ("profile.salary", profile.salary),
        ("profile.loan_balance", profile.loan_balance),
        ("profile.loan_payment", profile.loan_payment),
        ("profile.loan_original_amount", profile.loan_original_amount),
        ("profile.retirement_balances.primary", profile.retirement_balances.primary),
        ("profile.retirement_balances.secondary", profile.retirement_balances.secondary),
        ("profile.retirement_balances.medical", profile.retirement_balances.medical),
        ("settings.bonus_amount", settings.bonus_amount),
        ("settings.savings_goal", settings.savings_goal),
    ]
    for i, adjustment in enumerate(profile.salary_adjustments):
        fields.append((f"profile.salary_adjustments.{i}.new_salary", adjustment.new_salary))
    for i, item in enumerate(profile.expenses):
        fields.append((f"profile.expenses.{i}.amount", item.amount))
    for i, bonus in enumerate(profile.bonuses):
        fields.append((f"profile.bonuses.{i}.amount", bonus.amount))
    for i, item in enumerate(profile.yearly_expenses):
        fields.append((f"profile.yearly_expenses.{i}.amount", item.amount))
    for i, item in enumerate(profile.upcoming_spending):
        fields.append((f"profile.upcoming_spending.{i}.amount", item.amount))
    return fields


def validate_inputs(
    profile: ProfileInput, settings: SettingsInput
) -> Tuple[FinancialProfile, ProjectionSettings]:
    """
    Validate projection inputs before any month is computed.

    Accepts canonical models or plain dicts. pydantic validation errors are
    translated into the projection error taxonomy.

    Returns:
        Tuple of (profile, settings) as canonical models

    Raises:
        MissingRequiredField: If a required attribute is absent
        InvalidNegativeValue: If a monetary input is negative
        ProjectionError: For any other invalid attribute
    """
    if profile is None:
        raise MissingRequiredField("profile")
    if settings is None:
        raise MissingRequiredField("settings")

    if not isinstance(profile, FinancialProfile):
        try:
            profile = FinancialProfile.model_validate(profile)
        except ValidationError as e:
            raise translate_validation_error(e, "profile") from e
    if not isinstance(settings, ProjectionSettings):
        try:
            settings = ProjectionSettings.model_validate(settings)
        except ValidationError as e:
            raise translate_validation_error(e, "settings") from e

    for field, value in _monetary_fields(profile, settings):
        if value is not None and value < 0:
            raise InvalidNegativeValue(field, value)

    return profile, settings


def growth_multipliers(annual_rate: float, num_months: int) -> np.ndarray:
    """
    Closed-form compounded growth factor for each month offset.

    Offset 0 is 1.0, so the first month keeps the supplied current values.
    """
    monthly_rate = annual_to_monthly_rate(annual_rate)
    return (1 + monthly_rate) ** np.arange(num_months, dtype=float)


def salary_schedule(
    profile: FinancialProfile, settings: ProjectionSettings, grid: MonthGrid
) -> np.ndarray:
    """
    Resolve the gross salary for every month of the grid.

    Salary grows geometrically from the current salary. The latest salary
    adjustment effective on or before a month overrides the grown baseline;
    growth then compounds from the adjusted salary.
    """
    growth = growth_multipliers(settings.salary_growth, grid.num_months)
    salaries = np.empty(grid.num_months, dtype=float)

    anchor_offset = 0
    anchor_salary = profile.salary
    adjustments = list(profile.salary_adjustments)
    next_adjustment = 0

    for offset in range(grid.num_months):
        year, month = grid.calendar_at(offset)
        while (
            next_adjustment < len(adjustments)
            and (adjustments[next_adjustment].year, adjustments[next_adjustment].month)
            <= (year, month)
        ):
            anchor_offset = offset
            anchor_salary = adjustments[next_adjustment].new_salary
            next_adjustment += 1
        salaries[offset] = anchor_salary * growth[offset - anchor_offset]

    return salaries


class ProjectionEngine:
    """Runs month-by-month projections against injected contribution rules."""

    def __init__(self, config: Optional[ContributionConfig] = None):
        """Initialize the engine.

        Args:
            config: Contribution rules (defaults to the built-in tables)
        """
        self.calculator = ContributionCalculator(config)

    def project(
        self,
        profile: ProfileInput,
        settings: SettingsInput,
        today: Optional[date] = None,
        should_cancel: Optional[Callable[[], bool]] = None,
    ) -> ProjectionResult:
        """
        Project a financial profile forward month by month.

        Args:
            profile: Canonical financial profile (model or dict)
            settings: Projection settings (model or dict)
            today: Reference date for the partial current month; None means
                the first month is treated as a full month
            should_cancel: Optional callback checked before each month

        Returns:
            Months, engine milestones and run metadata

        Raises:
            MissingRequiredField: If a required input attribute is absent
            InvalidNegativeValue: If a monetary input is negative
            ConfigurationGap: If the contribution tables do not cover an age
            ProjectionCancelled: If ``should_cancel`` returns True
        """
        profile, settings = validate_inputs(profile, settings)

        grid = MonthGrid(
            start_year=settings.start_year,
            start_month=settings.start_month,
            num_months=settings.total_months,
        )
        logger.info(
            f"Starting projection from {grid.label_at(0)} for {grid.num_months} months"
        )

        salaries = salary_schedule(profile, settings, grid)
        expense_growth = growth_multipliers(settings.expense_growth, grid.num_months)
        investment_rate = annual_to_monthly_rate(settings.investment_return)
        retirement_rate = annual_to_monthly_rate(settings.retirement_interest)
        active_bonus_months = TRADITIONAL_BONUS_MONTHS[: settings.traditional_bonus_count]

        salary_already_received = (
            is_same_month(today, settings.start_year, settings.start_month)
            and today.day > profile.salary_day
        )
        if salary_already_received:
            logger.info(
                "Salary for the current month already received; "
                "first month accrues returns only"
            )

        liquid = profile.liquid_cash
        retirement = profile.retirement_balances.model_copy()
        loan_balance = profile.loan_balance
        track_loan = profile.loan_balance > 0
        loan_non_convergent = False

        bonus_year = None
        bonuses_this_year = 0
        milestones: Dict[str, MilestoneMarker] = {}
        months: List[ProjectionMonth] = []
        early_exit = False

        for offset in range(grid.num_months):
            if should_cancel is not None and should_cancel():
                logger.info(f"Projection cancelled after {offset} months")
                raise ProjectionCancelled(offset)

            year, month = grid.calendar_at(offset)
            age = age_at(profile.birth_year, profile.birth_month, year, month)
            if year != bonus_year:
                bonus_year = year
                bonuses_this_year = 0

            partial = salary_already_received and offset == 0

            if partial:
                gross = 0.0
                bonus, bonus_source = 0.0, None
                recurring = yearly = one_off = 0.0
                contribution = ContributionResult.zero()
                loan = LoanMonth(
                    payment=0.0, interest=0.0, principal=0.0, new_balance=max(loan_balance, 0.0)
                )
            else:
                gross = float(salaries[offset])
                bonus, bonus_source = self._resolve_bonus(
                    profile, settings, year, month, gross, active_bonus_months, bonuses_this_year
                )
                if bonus_source == TRADITIONAL_BONUS_SOURCE:
                    bonuses_this_year += 1
                recurring = profile.monthly_expense_total * float(expense_growth[offset])
                yearly = sum(
                    item.amount
                    for item in profile.yearly_expenses
                    if item.applies_to(year, month)
                )
                one_off = sum(
                    item.amount
                    for item in profile.upcoming_spending
                    if item.year == year and item.month == month
                )
                contribution = self.calculator.compute(
                    gross,
                    age,
                    profile.contribution_category,
                    employee_rate=profile.employee_rate,
                    employer_rate=profile.employer_rate,
                )
                loan = LoanCalculator.amortize_month(
                    loan_balance, profile.loan_payment, profile.loan_annual_rate
                )
                if loan.non_convergent and not loan_non_convergent:
                    loan_non_convergent = True
                    logger.warning(
                        f"Loan payment does not cover interest in {grid.label_at(offset)}; "
                        "balance will not decrease"
                    )

            take_home = gross - contribution.employee_amount
            net_cash_flow = (
                take_home - recurring + bonus - one_off - yearly - loan.payment
            )

            opening_liquid = liquid
            investment_return = max(opening_liquid, 0.0) * investment_rate
            liquid = opening_liquid + investment_return + net_cash_flow

            retirement_interest = retirement.total * retirement_rate
            retirement = RetirementBalances(
                primary=retirement.primary * (1 + retirement_rate)
                + contribution.allocation.primary,
                secondary=retirement.secondary * (1 + retirement_rate)
                + contribution.allocation.secondary,
                medical=retirement.medical * (1 + retirement_rate)
                + contribution.allocation.medical,
            )
            loan_balance = loan.new_balance

            tags = []
            marker = MilestoneMarker(
                index=offset + 1, year=year, month=month, label=grid.label_at(offset)
            )
            if track_loan and "loan_paid_off" not in milestones and loan_balance <= 0:
                milestones["loan_paid_off"] = marker
                tags.append(LOAN_PAID_OFF)
            if "savings_goal_reached" not in milestones and liquid >= settings.savings_goal:
                milestones["savings_goal_reached"] = marker
                tags.append(SAVINGS_GOAL_REACHED)

            months.append(
                ProjectionMonth(
                    index=offset + 1,
                    year=year,
                    month=month,
                    label=marker.label,
                    age=age,
                    gross_salary=gross,
                    take_home=take_home,
                    employee_contribution=contribution.employee_amount,
                    employer_contribution=contribution.employer_amount,
                    allocation=contribution.allocation,
                    recurring_expenses=recurring,
                    yearly_expenses=yearly,
                    one_off_spending=one_off,
                    bonus=bonus,
                    bonus_source=bonus_source,
                    loan_payment=loan.payment,
                    loan_interest=loan.interest,
                    loan_principal=loan.principal,
                    loan_balance=loan_balance,
                    investment_return=investment_return,
                    retirement_interest=retirement_interest,
                    net_cash_flow=net_cash_flow,
                    opening_liquid_cash=opening_liquid,
                    liquid_cash=liquid,
                    retirement_balances=retirement,
                    net_worth=liquid + retirement.total - loan_balance,
                    milestone=", ".join(tags) if tags else None,
                    salary_already_received=partial,
                )
            )
            logger.debug(
                f"{marker.label}: net {net_cash_flow:.2f}, liquid {liquid:.2f}, "
                f"loan {loan_balance:.2f}"
            )

            if self._should_stop_early(settings, milestones, track_loan, offset + 1):
                early_exit = offset + 1 < grid.num_months
                if early_exit:
                    logger.info(f"Stopping projection early after {offset + 1} months")
                break

        result = ProjectionResult(
            months=months,
            milestones=EngineMilestones(**milestones),
            metadata=self._build_metadata(
                months, grid, salary_already_received, loan_non_convergent, early_exit
            ),
        )
        logger.info(
            f"Projection finished: {len(months)} months, "
            f"milestones reached: {sorted(milestones)}"
        )
        return result

    @staticmethod
    def _resolve_bonus(
        profile: FinancialProfile,
        settings: ProjectionSettings,
        year: int,
        month: int,
        salary: float,
        active_bonus_months: Tuple[int, ...],
        bonuses_this_year: int,
    ) -> Tuple[float, Optional[str]]:
        """Explicit bonuses for the month win; otherwise a traditional bonus may apply."""
        explicit = [b for b in profile.bonuses if b.year == year and b.month == month]
        if explicit:
            return (
                sum(b.amount for b in explicit),
                ", ".join(b.description for b in explicit),
            )

        if month in active_bonus_months and bonuses_this_year < settings.traditional_bonus_count:
            amount = settings.bonus_amount if settings.bonus_amount is not None else salary
            if amount > 0:
                return amount, TRADITIONAL_BONUS_SOURCE

        return 0.0, None

    @staticmethod
    def _should_stop_early(
        settings: ProjectionSettings,
        milestones: Dict[str, MilestoneMarker],
        track_loan: bool,
        months_done: int,
    ) -> bool:
        """Early exit only when configured and every tracked milestone was reached."""
        window = settings.stop_after_milestones_months
        if window is None:
            return False
        required = ["savings_goal_reached"] + (["loan_paid_off"] if track_loan else [])
        if not all(key in milestones for key in required):
            return False
        last_reached = max(milestones[key].index for key in required)
        return months_done >= last_reached + window

    @staticmethod
    def _build_metadata(
        months: List[ProjectionMonth],
        grid: MonthGrid,
        salary_already_received: bool,
        loan_non_convergent: bool,
        early_exit: bool,
    ) -> ProjectionMetadata:
        if not months:
            return ProjectionMetadata(start_label=grid.label_at(0) if len(grid) else None)

        net = np.array([m.net_cash_flow for m in months], dtype=float)
        last = months[-1]
        return ProjectionMetadata(
            start_label=months[0].label,
            months_projected=len(months),
            average_monthly_net=float(net.mean()),
            final_liquid_cash=last.liquid_cash,
            final_net_worth=last.net_worth,
            total_investment_return=float(sum(m.investment_return for m in months)),
            total_retirement_interest=float(sum(m.retirement_interest for m in months)),
            salary_already_received=salary_already_received,
            loan_non_convergent=loan_non_convergent,
            early_exit=early_exit,
        )


def project(
    profile: ProfileInput,
    settings: SettingsInput,
    config: Optional[ContributionConfig] = None,
    today: Optional[date] = None,
    should_cancel: Optional[Callable[[], bool]] = None,
) -> ProjectionResult:
    """Run a projection with a fresh engine. See ``ProjectionEngine.project``."""
    return ProjectionEngine(config).project(
        profile, settings, today=today, should_cancel=should_cancel
    )
