"""
Mandatory retirement contribution calculations.

This module computes employee and employer contributions from a monthly wage
using age-bracketed rate tables, applies the ordinary wage ceiling, and splits
the combined contribution across the primary, secondary and medical
sub-accounts. All rate tables are injected configuration; the defaults follow
the shape of the Singapore CPF scheme but are not a statement of current law.
"""

import json
from pathlib import Path
from typing import Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from .errors import ConfigurationGap, safe_divide

ALLOCATION_TOLERANCE = 1e-6


class RateBracket(BaseModel):
    """Employee/employer contribution rates for an inclusive age range."""

    min_age: int = Field(..., ge=0, description="Lowest age in the bracket")
    max_age: Optional[int] = Field(
        default=None, ge=0, description="Highest age in the bracket (None = no limit)"
    )
    employee_rate: float = Field(..., ge=0, le=1, description="Employee rate (0-1)")
    employer_rate: float = Field(..., ge=0, le=1, description="Employer rate (0-1)")

    def covers(self, age: int) -> bool:
        return age >= self.min_age and (self.max_age is None or age <= self.max_age)


class AllocationBracket(BaseModel):
    """Sub-account proportions of the combined contribution for an age range."""

    min_age: int = Field(..., ge=0, description="Lowest age in the bracket")
    max_age: Optional[int] = Field(
        default=None, ge=0, description="Highest age in the bracket (None = no limit)"
    )
    primary: float = Field(..., ge=0, le=1, description="Primary account share")
    secondary: float = Field(..., ge=0, le=1, description="Secondary account share")
    medical: float = Field(..., ge=0, le=1, description="Medical account share")

    @model_validator(mode="after")
    def validate_proportions(self):
        total = self.primary + self.secondary + self.medical
        if abs(total - 1.0) > ALLOCATION_TOLERANCE:
            raise ValueError(
                f"Allocation for ages {self.min_age}-{self.max_age} must sum to 1.0, "
                f"got {total:.8f}"
            )
        return self

    def covers(self, age: int) -> bool:
        return age >= self.min_age and (self.max_age is None or age <= self.max_age)


class RetirementSums(BaseModel):
    """Retirement sum targets used for adequacy assessment."""

    basic: float = Field(default=106500.0, ge=0, description="Basic retirement sum")
    full: float = Field(default=213000.0, ge=0, description="Full retirement sum")
    enhanced: float = Field(default=319500.0, ge=0, description="Enhanced retirement sum")

    @model_validator(mode="after")
    def validate_order(self):
        if not self.basic <= self.full <= self.enhanced:
            raise ValueError("Retirement sums must satisfy basic <= full <= enhanced")
        return self


def _validate_contiguous(brackets: list, table_name: str) -> None:
    """Brackets must start at age 0, be contiguous, and end open-ended."""
    if not brackets:
        raise ValueError(f"{table_name} must define at least one age bracket")
    if brackets[0].min_age != 0:
        raise ValueError(f"{table_name} must start at age 0, starts at {brackets[0].min_age}")
    for previous, current in zip(brackets, brackets[1:]):
        if previous.max_age is None:
            raise ValueError(f"{table_name} has an open-ended bracket before age {current.min_age}")
        if previous.max_age < previous.min_age:
            raise ValueError(f"{table_name} bracket {previous.min_age}-{previous.max_age} is empty")
        if current.min_age != previous.max_age + 1:
            raise ValueError(
                f"{table_name} has a gap or overlap between ages "
                f"{previous.max_age} and {current.min_age}"
            )
    if brackets[-1].max_age is not None:
        raise ValueError(f"{table_name} does not cover ages above {brackets[-1].max_age}")


class ContributionConfig(BaseModel):
    """Injected contribution rules: wage ceiling, rate tables and allocation table."""

    wage_ceiling: float = Field(
        default=6000.0, gt=0, description="Monthly wage ceiling for contributions"
    )
    rate_tables: Dict[str, List[RateBracket]] = Field(
        ..., description="Rate brackets keyed by contribution category"
    )
    allocation_table: List[AllocationBracket] = Field(
        ..., description="Sub-account allocation brackets"
    )
    retirement_sums: RetirementSums = Field(
        default_factory=RetirementSums, description="Retirement adequacy targets"
    )

    @field_validator("rate_tables")
    @classmethod
    def validate_rate_tables(
        cls, v: Dict[str, List[RateBracket]]
    ) -> Dict[str, List[RateBracket]]:
        if not v:
            raise ValueError("rate_tables must define at least one category")
        ordered = {}
        for category, brackets in v.items():
            brackets = sorted(brackets, key=lambda b: b.min_age)
            _validate_contiguous(brackets, f"Rate table '{category}'")
            ordered[category] = brackets
        return ordered

    @field_validator("allocation_table")
    @classmethod
    def validate_allocation_table(
        cls, v: List[AllocationBracket]
    ) -> List[AllocationBracket]:
        brackets = sorted(v, key=lambda b: b.min_age)
        _validate_contiguous(brackets, "Allocation table")
        return brackets

    def get_categories(self) -> List[str]:
        return list(self.rate_tables.keys())


class SubAccountAllocation(BaseModel):
    """Combined contribution credited to each sub-account."""

    primary: float = Field(default=0.0, description="Primary account credit")
    secondary: float = Field(default=0.0, description="Secondary account credit")
    medical: float = Field(default=0.0, description="Medical account credit")

    @property
    def total(self) -> float:
        return self.primary + self.secondary + self.medical


class ContributionResult(BaseModel):
    """Contribution split for one month of wages."""

    capped_salary: float = Field(..., description="Wage subject to contribution")
    employee_rate: float = Field(..., description="Employee rate applied")
    employer_rate: float = Field(..., description="Employer rate applied")
    employee_amount: float = Field(..., description="Employee contribution")
    employer_amount: float = Field(..., description="Employer contribution")
    allocation: SubAccountAllocation = Field(
        ..., description="Sub-account allocation of the combined contribution"
    )

    @property
    def total(self) -> float:
        return self.employee_amount + self.employer_amount

    @classmethod
    def zero(cls) -> "ContributionResult":
        return cls(
            capped_salary=0.0,
            employee_rate=0.0,
            employer_rate=0.0,
            employee_amount=0.0,
            employer_amount=0.0,
            allocation=SubAccountAllocation(),
        )


class RetirementAdequacy(BaseModel):
    """Retirement balance measured against the configured retirement sums."""

    current_total: float
    adequacy_ratio: float = Field(..., description="Percent of the full retirement sum")
    shortfall: float = Field(..., ge=0, description="Amount short of the full sum")
    level: Literal["below_basic", "basic", "full", "enhanced"]
    years_to_retirement: int = Field(..., ge=0)
    on_track: bool


class ContributionCalculator:
    """Calculator for age- and wage-tiered contributions."""

    def __init__(self, config: Optional[ContributionConfig] = None):
        """Initialize the calculator.

        Args:
            config: Contribution rules (defaults to the built-in tables)
        """
        self.config = config or create_default_contribution_config()

    def get_rates(self, category: str, age: int) -> RateBracket:
        """
        Look up the rate bracket for a category and age.

        Raises:
            ConfigurationGap: If the category is unknown or no bracket covers the age
        """
        brackets = self.config.rate_tables.get(category)
        if brackets is None:
            raise ConfigurationGap(
                f"No contribution rate table for category '{category}'. "
                f"Known categories: {self.config.get_categories()}"
            )
        for bracket in brackets:
            if bracket.covers(age):
                return bracket
        raise ConfigurationGap(
            f"Rate table '{category}' has no bracket covering age {age}"
        )

    def get_allocation(self, age: int) -> AllocationBracket:
        """
        Look up the sub-account allocation bracket for an age.

        Raises:
            ConfigurationGap: If no bracket covers the age
        """
        for bracket in self.config.allocation_table:
            if bracket.covers(age):
                return bracket
        raise ConfigurationGap(f"Allocation table has no bracket covering age {age}")

    def allocate(self, total_contribution: float, age: int) -> SubAccountAllocation:
        """
        Split a combined contribution across sub-accounts.

        The medical share is taken as the remainder so the three credits sum
        to the total.
        """
        bracket = self.get_allocation(age)
        primary = total_contribution * bracket.primary
        secondary = total_contribution * bracket.secondary
        return SubAccountAllocation(
            primary=primary,
            secondary=secondary,
            medical=total_contribution - primary - secondary,
        )

    def compute(
        self,
        monthly_salary: float,
        age: int,
        category: str,
        employee_rate: Optional[float] = None,
        employer_rate: Optional[float] = None,
    ) -> ContributionResult:
        """
        Compute the contribution split for one month of wages.

        Args:
            monthly_salary: Gross monthly wage
            age: Age in whole years
            category: Contribution rate category
            employee_rate: Explicit employee rate overriding the table
            employer_rate: Explicit employer rate overriding the table

        Returns:
            Contribution amounts and sub-account allocation
        """
        if monthly_salary <= 0:
            return ContributionResult.zero()

        if employee_rate is None or employer_rate is None:
            bracket = self.get_rates(category, age)
            employee_rate = bracket.employee_rate
            employer_rate = bracket.employer_rate

        capped_salary = min(monthly_salary, self.config.wage_ceiling)
        employee_amount = capped_salary * employee_rate
        employer_amount = capped_salary * employer_rate

        return ContributionResult(
            capped_salary=capped_salary,
            employee_rate=employee_rate,
            employer_rate=employer_rate,
            employee_amount=employee_amount,
            employer_amount=employer_amount,
            allocation=self.allocate(employee_amount + employer_amount, age),
        )

    def estimate_yearly_contributions(
        self, monthly_salary: float, age: int, category: str
    ) -> Dict[str, float]:
        """Estimate twelve months of contributions at a constant wage and age."""
        monthly = self.compute(monthly_salary, age, category)
        return {
            "yearly_employee_contribution": monthly.employee_amount * 12,
            "yearly_employer_contribution": monthly.employer_amount * 12,
            "yearly_total_contribution": monthly.total * 12,
        }

    def assess_retirement_adequacy(
        self, total_balance: float, age: int, target_age: int = 65
    ) -> RetirementAdequacy:
        """Measure a retirement balance against the configured retirement sums."""
        sums = self.config.retirement_sums
        years_to_retirement = max(0, target_age - age)

        if total_balance >= sums.enhanced:
            level = "enhanced"
        elif total_balance >= sums.full:
            level = "full"
        elif total_balance >= sums.basic:
            level = "basic"
        else:
            level = "below_basic"

        return RetirementAdequacy(
            current_total=total_balance,
            adequacy_ratio=safe_divide(total_balance, sums.full) * 100,
            shortfall=max(0.0, sums.full - total_balance),
            level=level,
            years_to_retirement=years_to_retirement,
            on_track=total_balance >= sums.basic or years_to_retirement > 10,
        )


def _rate_table(rows: List[tuple]) -> List[RateBracket]:
    return [
        RateBracket(min_age=lo, max_age=hi, employee_rate=ee, employer_rate=er)
        for lo, hi, ee, er in rows
    ]


def _allocation_from_points(
    min_age: int, max_age: Optional[int], primary: float, secondary: float, medical: float
) -> AllocationBracket:
    """Build an allocation bracket from percentage points of the wage."""
    total = primary + secondary + medical
    return AllocationBracket(
        min_age=min_age,
        max_age=max_age,
        primary=primary / total,
        secondary=secondary / total,
        medical=medical / total,
    )


def create_default_contribution_config() -> ContributionConfig:
    """Create the built-in contribution tables (CPF-shaped defaults)."""
    return ContributionConfig(
        wage_ceiling=6000.0,
        rate_tables={
            "citizen": _rate_table(
                [
                    (0, 55, 0.20, 0.17),
                    (56, 60, 0.15, 0.15),
                    (61, 65, 0.105, 0.095),
                    (66, 70, 0.075, 0.075),
                    (71, None, 0.05, 0.05),
                ]
            ),
            "pr_first_year": _rate_table(
                [
                    (0, 55, 0.05, 0.15),
                    (56, 60, 0.05, 0.15),
                    (61, 65, 0.05, 0.085),
                    (66, 70, 0.05, 0.065),
                    (71, None, 0.05, 0.045),
                ]
            ),
            "pr_second_year": _rate_table(
                [
                    (0, 55, 0.15, 0.15),
                    (56, 60, 0.15, 0.15),
                    (61, 65, 0.085, 0.085),
                    (66, 70, 0.06, 0.065),
                    (71, None, 0.05, 0.045),
                ]
            ),
            "pr_third_year_onwards": _rate_table(
                [
                    (0, 55, 0.20, 0.17),
                    (56, 60, 0.15, 0.15),
                    (61, 65, 0.095, 0.095),
                    (66, 70, 0.075, 0.075),
                    (71, None, 0.05, 0.05),
                ]
            ),
        },
        allocation_table=[
            _allocation_from_points(0, 35, 23, 6, 8),
            _allocation_from_points(36, 45, 21, 6, 10),
            _allocation_from_points(46, 50, 19, 6, 12),
            _allocation_from_points(51, 55, 15, 8, 14),
            _allocation_from_points(56, 60, 12, 3.5, 14.5),
            _allocation_from_points(61, 65, 6, 3.5, 10.5),
            _allocation_from_points(66, 70, 4, 3.5, 7.5),
            _allocation_from_points(71, None, 4, 1, 5),
        ],
    )


def load_contribution_config(source: Union[str, Path, dict]) -> ContributionConfig:
    """
    Load and validate contribution tables from a JSON file or a dict.

    Raises:
        ConfigurationGap: If the tables fail validation
    """
    if isinstance(source, dict):
        data = source
    else:
        with open(source) as f:
            data = json.load(f)

    try:
        return ContributionConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigurationGap(f"Invalid contribution configuration: {e}") from e


def compute_contribution(
    monthly_salary: float,
    age: int,
    category: str,
    wage_ceiling: Optional[float] = None,
    config: Optional[ContributionConfig] = None,
) -> ContributionResult:
    """
    Compute a contribution split with an optional wage ceiling override.

    Args:
        monthly_salary: Gross monthly wage
        age: Age in whole years
        category: Contribution rate category
        wage_ceiling: Ceiling overriding the configured one
        config: Contribution rules (defaults to the built-in tables)
    """
    config = config or create_default_contribution_config()
    if wage_ceiling is not None:
        config = config.model_copy(update={"wage_ceiling": wage_ceiling})
    return ContributionCalculator(config).compute(monthly_salary, age, category)
