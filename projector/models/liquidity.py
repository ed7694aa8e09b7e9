"""
Intra-month liquidity analysis.

A projection month only reports month-end balances. This module replays a
single month day by day from its opening balance (salary on the salary day,
each expense on its due day, the loan payment on day 1) and flags every point
where cash falls below a minimum buffer.
"""

import logging
import math
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, computed_field

from .errors import safe_divide
from .profile import FinancialProfile
from .projection_engine import ProjectionMonth, ProjectionResult

logger = logging.getLogger(__name__)

LOAN_PAYMENT_DAY = 1
BUFFER_MARGIN = 500.0


class LiquidityEvent(BaseModel):
    """A single cash movement inside one month."""

    day: int = Field(..., ge=1, le=31, description="Day of month")
    amount: float = Field(..., description="Signed amount (positive = inflow)")
    category: Literal["salary", "expense", "loan"] = Field(...)
    description: str = Field(...)


class DailyBalance(BaseModel):
    """Running balance after an event."""

    day: int
    balance: float
    description: str


class LiquidityWarning(BaseModel):
    """Balance below the minimum buffer after an event."""

    day: int
    balance: float
    shortfall: float = Field(..., description="Amount below the buffer")
    severity: Literal["warning", "critical"]
    description: str


class Recommendation(BaseModel):
    """Advice derived from a liquidity analysis."""

    type: Literal["critical", "warning", "optimization"]
    title: str
    description: str
    action_items: List[str] = Field(default_factory=list)


class LiquidityAnalysis(BaseModel):
    """Day-by-day cash trace of one month."""

    label: str
    opening_balance: float
    minimum_buffer: float
    events: List[LiquidityEvent] = Field(default_factory=list)
    daily_balances: List[DailyBalance] = Field(default_factory=list)
    min_balance: float
    min_balance_day: int = Field(..., description="Day of the minimum (0 = opening)")
    closing_balance: float
    warnings: List[LiquidityWarning] = Field(default_factory=list)

    @computed_field
    @property
    def cash_flow_stress(self) -> bool:
        return self.min_balance < self.minimum_buffer

    @computed_field
    @property
    def recommended_buffer(self) -> float:
        return max(self.minimum_buffer, abs(self.min_balance) + BUFFER_MARGIN)

    @computed_field
    @property
    def risk_level(self) -> str:
        if self.warnings:
            return "high"
        if self.min_balance < BUFFER_MARGIN:
            return "medium"
        return "low"

    @computed_field
    @property
    def days_at_risk(self) -> int:
        return len(self.warnings)


def build_events(
    month_snapshot: ProjectionMonth, profile: FinancialProfile
) -> List[LiquidityEvent]:
    """
    Build the month's cash events in declaration order.

    Recurring items are scaled so they add up to the month's grown expense
    total. Zero-amount events are omitted.
    """
    events = []

    salary_amount = month_snapshot.take_home + month_snapshot.bonus
    if salary_amount != 0:
        description = "Salary"
        if month_snapshot.bonus > 0:
            description = f"Salary + {month_snapshot.bonus_source or 'Bonus'}"
        events.append(
            LiquidityEvent(
                day=profile.salary_day,
                amount=salary_amount,
                category="salary",
                description=description,
            )
        )

    scale = safe_divide(month_snapshot.recurring_expenses, profile.monthly_expense_total)
    for item in profile.expenses:
        amount = item.amount * scale
        if amount != 0:
            events.append(
                LiquidityEvent(
                    day=item.due_day, amount=-amount, category="expense", description=item.name
                )
            )

    if month_snapshot.one_off_spending > 0:
        for item in profile.upcoming_spending:
            if item.year == month_snapshot.year and item.month == month_snapshot.month:
                events.append(
                    LiquidityEvent(
                        day=item.day,
                        amount=-item.amount,
                        category="expense",
                        description=item.name,
                    )
                )

    if month_snapshot.loan_payment > 0:
        events.append(
            LiquidityEvent(
                day=LOAN_PAYMENT_DAY,
                amount=-month_snapshot.loan_payment,
                category="loan",
                description="Loan payment",
            )
        )

    return events


def analyze_liquidity(
    month_snapshot: ProjectionMonth,
    profile: FinancialProfile,
    minimum_buffer: float = 1000.0,
) -> LiquidityAnalysis:
    """
    Trace one month's cash position event by event.

    Events are ordered by day; same-day events keep their declaration order.
    Every event that leaves the balance below ``minimum_buffer`` produces a
    warning, critical when the balance is negative.

    Args:
        month_snapshot: Projection month to analyse
        profile: Profile providing the salary day and expense due days
        minimum_buffer: Cash level below which a warning is raised

    Returns:
        Liquidity analysis for the month
    """
    events = sorted(build_events(month_snapshot, profile), key=lambda e: e.day)

    balance = month_snapshot.opening_liquid_cash
    min_balance = balance
    min_balance_day = 0
    daily_balances = []
    warnings = []

    for event in events:
        balance += event.amount
        daily_balances.append(
            DailyBalance(day=event.day, balance=balance, description=event.description)
        )
        if balance < min_balance:
            min_balance = balance
            min_balance_day = event.day
        if balance < minimum_buffer:
            warnings.append(
                LiquidityWarning(
                    day=event.day,
                    balance=balance,
                    shortfall=minimum_buffer - balance,
                    severity="critical" if balance < 0 else "warning",
                    description=f"Balance below buffer after {event.description}",
                )
            )

    if warnings:
        logger.debug(f"{month_snapshot.label}: {len(warnings)} liquidity warnings")

    return LiquidityAnalysis(
        label=month_snapshot.label,
        opening_balance=month_snapshot.opening_liquid_cash,
        minimum_buffer=minimum_buffer,
        events=events,
        daily_balances=daily_balances,
        min_balance=min_balance,
        min_balance_day=min_balance_day,
        closing_balance=balance,
        warnings=warnings,
    )


def recommendations(
    analysis: LiquidityAnalysis, salary_day: int
) -> List[Recommendation]:
    """Generate cash-timing recommendations for an analysed month."""
    result = []

    critical = [w for w in analysis.warnings if w.severity == "critical"]
    if critical:
        result.append(
            Recommendation(
                type="critical",
                title="Cash Flow Risk Detected",
                description=f"You may run out of cash on day {critical[0].day} of the month.",
                action_items=[
                    f"Increase emergency fund by ${math.ceil(abs(analysis.min_balance) + BUFFER_MARGIN)}",
                    "Move some expenses to after salary day",
                    "Set up overdraft protection",
                ],
            )
        )
    elif analysis.warnings:
        result.append(
            Recommendation(
                type="warning",
                title="Low Cash Buffer Warning",
                description=(
                    f"Your cash drops below the buffer on day {analysis.warnings[0].day}."
                ),
                action_items=[
                    f"Increase the minimum cash buffer to ${analysis.recommended_buffer:,.0f}",
                    "Monitor cash flow more closely",
                ],
            )
        )

    if salary_day > 20:
        result.append(
            Recommendation(
                type="optimization",
                title="Optimize Expense Timing",
                description=f"Salary arrives on day {salary_day}, late in the month.",
                action_items=[
                    "Pay rent after salary day to reduce cash requirements",
                    "Schedule variable expenses after salary day",
                ],
            )
        )

    return result


def scan_projection_liquidity(
    result: ProjectionResult,
    profile: FinancialProfile,
    minimum_buffer: float = 1000.0,
    limit: Optional[int] = None,
) -> List[LiquidityAnalysis]:
    """
    Analyse every month of a projection independently.

    Args:
        result: Projection to scan
        profile: Profile the projection was run for
        minimum_buffer: Cash level below which a warning is raised
        limit: Only analyse the first ``limit`` months

    Returns:
        One analysis per month, in projection order
    """
    months = result.months if limit is None else result.months[:limit]
    analyses = [analyze_liquidity(m, profile, minimum_buffer) for m in months]
    at_risk = sum(1 for a in analyses if a.warnings)
    if at_risk:
        logger.info(f"{at_risk} of {len(analyses)} months fall below the cash buffer")
    return analyses
