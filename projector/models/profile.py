"""
Canonical input models for the projection engine.

``FinancialProfile`` and ``ProjectionSettings`` are owned by the application
layer; the engine only reads them. Legacy shapes are converted into these
models by ``projector.models.migrations`` before they reach the engine.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class RetirementBalances(BaseModel):
    """Retirement-account balances split by sub-account."""

    primary: float = Field(default=0.0, description="General-purpose sub-account")
    secondary: float = Field(default=0.0, description="Long-term retirement sub-account")
    medical: float = Field(default=0.0, description="Medical sub-account")

    @property
    def total(self) -> float:
        return self.primary + self.secondary + self.medical


class SalaryAdjustment(BaseModel):
    """A fixed new salary taking effect from (year, month)."""

    year: int = Field(..., ge=1900, le=2200, description="Effective year")
    month: int = Field(..., ge=1, le=12, description="Effective month")
    new_salary: float = Field(..., description="Monthly salary from this month on")


class ExpenseItem(BaseModel):
    """Recurring monthly expense line item."""

    name: str = Field(..., min_length=1, description="Expense name")
    amount: float = Field(..., description="Monthly amount")
    due_day: int = Field(default=15, ge=1, le=31, description="Due day of month")


class Bonus(BaseModel):
    """An explicitly scheduled bonus."""

    year: int = Field(..., ge=1900, le=2200, description="Year paid")
    month: int = Field(..., ge=1, le=12, description="Month paid")
    amount: float = Field(..., description="Bonus amount")
    description: str = Field(default="Bonus", description="Bonus description")


class YearlyExpense(BaseModel):
    """An expense recurring every year in one month, optionally bounded."""

    name: str = Field(..., min_length=1, description="Expense name")
    month: int = Field(..., ge=1, le=12, description="Month the expense falls in")
    amount: float = Field(..., description="Amount charged each year")
    start_year: int = Field(..., ge=1900, le=2200, description="First year charged")
    end_year: Optional[int] = Field(
        default=None, ge=1900, le=2200, description="Last year charged (None = open)"
    )

    @model_validator(mode="after")
    def validate_end_year(self):
        if self.end_year is not None and self.end_year < self.start_year:
            raise ValueError("End year must be >= start year")
        return self

    def applies_to(self, year: int, month: int) -> bool:
        """Check whether this expense is charged in (year, month)."""
        if month != self.month or year < self.start_year:
            return False
        return self.end_year is None or year <= self.end_year


class UpcomingSpending(BaseModel):
    """A one-off scheduled spending item."""

    name: str = Field(default="Planned spending", description="Item name")
    year: int = Field(..., ge=1900, le=2200, description="Year of spending")
    month: int = Field(..., ge=1, le=12, description="Month of spending")
    day: int = Field(default=15, ge=1, le=31, description="Day of month")
    amount: float = Field(..., description="Amount spent")


class FinancialProfile(BaseModel):
    """Canonical, normalized personal financial profile."""

    model_config = ConfigDict(extra="forbid")

    # Personal attributes
    birth_year: int = Field(..., ge=1900, le=2200, description="Birth year")
    birth_month: int = Field(..., ge=1, le=12, description="Birth month")
    liquid_cash: float = Field(..., description="Current liquid cash")
    retirement_balances: RetirementBalances = Field(
        default_factory=RetirementBalances,
        description="Current retirement-account balances",
    )
    loan_balance: float = Field(default=0.0, description="Outstanding loan balance")
    loan_annual_rate: float = Field(
        default=0.0, ge=0, le=1, description="Loan annual interest rate (0-1)"
    )
    loan_payment: float = Field(default=0.0, description="Scheduled monthly payment")
    loan_original_amount: Optional[float] = Field(
        default=None, description="Original loan principal (for progress display)"
    )

    # Income attributes
    salary: float = Field(..., description="Current gross monthly salary")
    contribution_category: str = Field(
        default="citizen", min_length=1, description="Contribution rate category"
    )
    employee_rate: Optional[float] = Field(
        default=None, ge=0, le=1, description="Explicit employee contribution rate"
    )
    employer_rate: Optional[float] = Field(
        default=None, ge=0, le=1, description="Explicit employer contribution rate"
    )
    salary_day: int = Field(default=25, ge=1, le=31, description="Salary receipt day")
    salary_adjustments: List[SalaryAdjustment] = Field(
        default_factory=list, description="Future salary adjustments"
    )

    # Outgoings and events
    expenses: List[ExpenseItem] = Field(
        default_factory=list, description="Recurring monthly expense items"
    )
    bonuses: List[Bonus] = Field(
        default_factory=list, description="Explicitly scheduled bonuses"
    )
    yearly_expenses: List[YearlyExpense] = Field(
        default_factory=list, description="Yearly recurring-or-bounded expenses"
    )
    upcoming_spending: List[UpcomingSpending] = Field(
        default_factory=list, description="One-off scheduled spending"
    )

    @field_validator("salary_adjustments")
    @classmethod
    def sort_adjustments(cls, v: List[SalaryAdjustment]) -> List[SalaryAdjustment]:
        return sorted(v, key=lambda a: (a.year, a.month))

    @field_validator("bonuses")
    @classmethod
    def sort_bonuses(cls, v: List[Bonus]) -> List[Bonus]:
        return sorted(v, key=lambda b: (b.year, b.month))

    @model_validator(mode="after")
    def validate_explicit_rates(self):
        if (self.employee_rate is None) != (self.employer_rate is None):
            raise ValueError(
                "employee_rate and employer_rate must be given together or not at all"
            )
        return self

    @property
    def monthly_expense_total(self) -> float:
        """Sum of recurring monthly expense items."""
        return sum(item.amount for item in self.expenses)

    @property
    def has_explicit_rates(self) -> bool:
        return self.employee_rate is not None and self.employer_rate is not None


class ProjectionSettings(BaseModel):
    """Growth assumptions, horizon and bonus policy for a projection run."""

    model_config = ConfigDict(extra="forbid")

    salary_growth: float = Field(
        default=0.03, ge=-1, le=1, description="Annual salary growth (0-1)"
    )
    expense_growth: float = Field(
        default=0.02, ge=-1, le=1, description="Annual expense growth (0-1)"
    )
    investment_return: float = Field(
        default=0.04, ge=-1, le=1, description="Annual return on liquid cash (0-1)"
    )
    retirement_interest: float = Field(
        default=0.025, ge=-1, le=1, description="Annual retirement-account interest"
    )
    years: int = Field(..., ge=1, description="Projection horizon in years")
    traditional_bonus_count: int = Field(
        default=0, ge=0, le=4, description="Traditional bonuses paid per year"
    )
    bonus_amount: Optional[float] = Field(
        default=None, description="Traditional bonus amount (None = one month's salary)"
    )
    start_year: int = Field(..., ge=1900, le=2200, description="Projection start year")
    start_month: int = Field(..., ge=1, le=12, description="Projection start month")
    savings_goal: float = Field(
        default=100000.0, description="Liquid-cash savings goal threshold"
    )
    stop_after_milestones_months: Optional[int] = Field(
        default=None,
        ge=0,
        description="Stop this many months after every milestone is reached "
        "(None = always honor the full horizon)",
    )

    @property
    def total_months(self) -> int:
        return self.years * 12
