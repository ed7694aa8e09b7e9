"""
Milestone and goal tracking.

System milestones (loan paid off, savings goal reached, retirement age) are
derived from the latest projection on every recomputation. User-authored
goals live in a ``MilestoneBook`` that survives recomputation and are merged
with the system milestones at read time.
"""

import uuid
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field, model_validator

from .errors import safe_divide
from .profile import FinancialProfile, ProjectionSettings
from .projection_engine import MilestoneMarker, ProjectionResult
from .time_grid import CurrencyFormatter, MonthGrid, age_at

MilestoneCategory = Literal["loan", "savings", "retirement", "custom"]
GoalMetric = Literal["liquid_cash", "net_worth", "retirement_total"]

FILTER_CATEGORIES = ["all", "loan", "savings", "retirement", "custom"]
NOT_WITHIN_PROJECTION = "Not within projection"


class Milestone(BaseModel):
    """A system-derived or user-authored milestone."""

    id: str = Field(..., description="Stable identifier")
    title: str = Field(..., min_length=1)
    category: MilestoneCategory = Field(...)
    description: str = Field(default="", description="Target description")
    reached_label: Optional[str] = Field(
        default=None, description="Month reached (None = not within projection)"
    )
    months_remaining: Optional[int] = Field(
        default=None, ge=0, description="Months until reached (None = never)"
    )
    time_remaining: str = Field(default=NOT_WITHIN_PROJECTION)
    complete: bool = Field(default=False)
    progress: float = Field(default=0.0, ge=0, le=100, description="Percent complete")
    system: bool = Field(default=False, description="Derived from the projection")


class UserGoal(BaseModel):
    """A user-authored goal tracked against the projection."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    title: str = Field(..., min_length=1)
    description: str = Field(default="")
    category: MilestoneCategory = Field(default="custom")
    metric: Optional[GoalMetric] = Field(
        default=None, description="Projection value the goal tracks"
    )
    target_amount: Optional[float] = Field(default=None, ge=0)
    target_year: Optional[int] = Field(default=None, ge=1900, le=2200)
    target_month: Optional[int] = Field(default=None, ge=1, le=12)

    @model_validator(mode="after")
    def validate_target(self):
        if (self.metric is None) != (self.target_amount is None):
            raise ValueError("metric and target_amount must be given together")
        if (self.target_year is None) != (self.target_month is None):
            raise ValueError("target_year and target_month must be given together")
        return self


def format_time_remaining(months: Optional[int]) -> str:
    """
    Format a month count as 'Y year(s) M month(s)'.

    Zero clauses are omitted. ``None`` means the milestone is not reached
    within the projection horizon.
    """
    if months is None:
        return NOT_WITHIN_PROJECTION
    if months <= 0:
        return "Less than a month"

    years, remainder = divmod(months, 12)
    parts = []
    if years:
        parts.append(f"{years} year{'s' if years != 1 else ''}")
    if remainder:
        parts.append(f"{remainder} month{'s' if remainder != 1 else ''}")
    return " ".join(parts)


def _progress(value: float) -> float:
    return min(100.0, max(0.0, value))


def _milestone_from_marker(
    milestone_id: str,
    title: str,
    category: MilestoneCategory,
    description: str,
    marker: Optional[MilestoneMarker],
    complete: bool,
    progress: float,
    system: bool = True,
) -> Milestone:
    months_remaining = 0 if complete else (marker.index if marker else None)
    return Milestone(
        id=milestone_id,
        title=title,
        category=category,
        description=description,
        reached_label=marker.label if marker else None,
        months_remaining=months_remaining,
        time_remaining=format_time_remaining(months_remaining),
        complete=complete,
        progress=_progress(progress),
        system=system,
    )


def system_milestones(
    result: ProjectionResult,
    profile: FinancialProfile,
    settings: ProjectionSettings,
    retirement_age: int = 65,
    formatter: Optional[CurrencyFormatter] = None,
) -> List[Milestone]:
    """
    Derive the loan, savings and retirement milestones from a projection.

    Args:
        result: Latest projection output
        profile: Profile the projection was run for
        settings: Settings the projection was run with
        retirement_age: Target retirement age
        formatter: Currency formatter for descriptions

    Returns:
        System milestones, regenerated from scratch
    """
    formatter = formatter or CurrencyFormatter(decimal_places=0)
    milestones = []

    if profile.loan_balance > 0:
        if profile.loan_original_amount:
            repaid = profile.loan_original_amount - profile.loan_balance
            progress = safe_divide(repaid, profile.loan_original_amount) * 100
        else:
            progress = 0.0
        milestones.append(
            _milestone_from_marker(
                "system-loan-payoff",
                "Loan Paid Off",
                "loan",
                "Complete payment of your outstanding loan",
                result.milestones.loan_paid_off,
                complete=False,
                progress=progress,
            )
        )

    goal = settings.savings_goal
    milestones.append(
        _milestone_from_marker(
            "system-savings-goal",
            "Savings Goal Reached",
            "savings",
            f"Reach your liquid cash savings goal of {formatter.format_currency(goal)}",
            result.milestones.savings_goal_reached,
            complete=profile.liquid_cash >= goal,
            progress=safe_divide(profile.liquid_cash, goal, default=1.0) * 100,
        )
    )

    current_age = age_at(
        profile.birth_year, profile.birth_month, settings.start_year, settings.start_month
    )
    retirement_marker = None
    for month in result.months:
        if month.age >= retirement_age:
            retirement_marker = MilestoneMarker(
                index=month.index, year=month.year, month=month.month, label=month.label
            )
            break
    milestones.append(
        _milestone_from_marker(
            "system-retirement",
            "Retirement",
            "retirement",
            f"Target retirement age: {retirement_age}",
            retirement_marker,
            complete=current_age >= retirement_age,
            progress=safe_divide(current_age, retirement_age) * 100,
        )
    )

    return milestones


def evaluate_goal(
    goal: UserGoal,
    result: ProjectionResult,
    settings: ProjectionSettings,
) -> Milestone:
    """Evaluate a user goal against a projection."""
    marker = None
    complete = False
    progress = 0.0

    if goal.metric is not None:
        crossing = result.first_crossing(goal.metric, goal.target_amount)
        if crossing is not None:
            marker = MilestoneMarker(
                index=crossing.index, year=crossing.year, month=crossing.month, label=crossing.label
            )
        if result.months:
            current = result.months[0].opening_liquid_cash
            if goal.metric != "liquid_cash":
                current = getattr(result.months[0], goal.metric)
            complete = current >= goal.target_amount
            progress = safe_divide(current, goal.target_amount, default=1.0) * 100
    elif goal.target_year is not None:
        grid = MonthGrid(
            start_year=settings.start_year,
            start_month=settings.start_month,
            num_months=len(result.months),
        )
        offset = grid.offset_of(goal.target_year, goal.target_month)
        if offset < 0:
            complete = True
            progress = 100.0
        elif grid.contains(goal.target_year, goal.target_month):
            month = result.months[offset]
            marker = MilestoneMarker(
                index=month.index, year=month.year, month=month.month, label=month.label
            )

    return _milestone_from_marker(
        goal.id,
        goal.title,
        goal.category,
        goal.description,
        marker,
        complete=complete,
        progress=progress,
        system=False,
    )


def derive_milestones(
    result: ProjectionResult,
    user_goals: Optional[List[UserGoal]],
    profile: FinancialProfile,
    settings: ProjectionSettings,
    retirement_age: int = 65,
) -> List[Milestone]:
    """
    Derive system milestones and merge user goals into one list.

    System milestones come first, followed by user goals in their given order.
    """
    milestones = system_milestones(result, profile, settings, retirement_age)
    for goal in user_goals or []:
        milestones.append(evaluate_goal(goal, result, settings))
    return milestones


class MilestoneBook:
    """User-authored goals, independent of projection recomputation."""

    def __init__(self, goals: Optional[List[UserGoal]] = None):
        self._goals: Dict[str, UserGoal] = {}
        for goal in goals or []:
            self._goals[goal.id] = goal

    def add(self, **data) -> UserGoal:
        """Create a goal and return it with its generated id."""
        goal = UserGoal(**data)
        self._goals[goal.id] = goal
        return goal

    def edit(self, goal_id: str, **updates) -> UserGoal:
        """
        Update fields of an existing goal.

        Raises:
            KeyError: If no goal has the given id
        """
        if goal_id not in self._goals:
            raise KeyError(f"Unknown milestone id: {goal_id}")
        current = self._goals[goal_id].model_dump()
        current.update(updates)
        current["id"] = goal_id
        goal = UserGoal(**current)
        self._goals[goal_id] = goal
        return goal

    def delete(self, goal_id: str) -> None:
        """Remove a goal. Unknown ids raise KeyError."""
        del self._goals[goal_id]

    def goals(self) -> List[UserGoal]:
        return list(self._goals.values())

    def merged(
        self,
        result: ProjectionResult,
        profile: FinancialProfile,
        settings: ProjectionSettings,
        retirement_age: int = 65,
    ) -> List[Milestone]:
        """Fresh system milestones merged with the stored goals."""
        return derive_milestones(result, self.goals(), profile, settings, retirement_age)

    def __len__(self) -> int:
        return len(self._goals)


class MilestoneFilter:
    """
    Category filter over a milestone list.

    Selecting "all" clears every other filter; selecting a category clears
    "all". When no category remains active, "all" is re-activated.
    """

    def __init__(self):
        self._active = {"all"}

    @property
    def active(self) -> List[str]:
        return [c for c in FILTER_CATEGORIES if c in self._active]

    def toggle(self, category: str) -> List[str]:
        """Toggle a category and return the active filters."""
        if category not in FILTER_CATEGORIES:
            raise ValueError(f"Unknown milestone category: {category}")

        if category == "all":
            self._active = {"all"}
        else:
            self._active.discard("all")
            if category in self._active:
                self._active.remove(category)
            else:
                self._active.add(category)
            if not self._active:
                self._active = {"all"}
        return self.active

    def apply(self, milestones: List[Milestone]) -> List[Milestone]:
        """Filter a milestone list without modifying it."""
        if "all" in self._active:
            return list(milestones)
        return [m for m in milestones if m.category in self._active]
