"""
Loan amortization calculations for the projection engine.

This module provides the reducing-balance monthly amortization step used by
the engine, plus loan planning helpers: level payment sizing, months to
payoff, full schedules, and early payoff comparisons.
"""

import logging
from typing import List, Optional

from pydantic import BaseModel, Field

from .errors import NonConvergentAmortization
from .time_grid import MonthGrid, format_month_label

logger = logging.getLogger(__name__)

NEVER_PAID_OFF = "Never (payment insufficient)"
DEFAULT_MAX_MONTHS = 1200


class LoanMonth(BaseModel):
    """Result of amortizing one month of a loan."""

    payment: float = Field(..., ge=0, description="Amount actually paid this month")
    interest: float = Field(..., ge=0, description="Interest portion of payment")
    principal: float = Field(..., ge=0, description="Principal portion of payment")
    new_balance: float = Field(..., ge=0, description="Balance after the payment")
    non_convergent: bool = Field(
        default=False,
        description="True when the payment does not reduce a positive balance",
    )


class PayoffTerm(BaseModel):
    """Number of months until a loan is paid off."""

    months: Optional[int] = Field(
        default=None, ge=0, description="Months to payoff (None = never)"
    )
    formatted: str = Field(..., description="Human-readable payoff term")

    @property
    def converges(self) -> bool:
        return self.months is not None


class ScheduleEntry(BaseModel):
    """One row of a loan amortization schedule."""

    payment_number: int = Field(..., ge=1, description="Payment number (1-based)")
    label: str = Field(..., description="Calendar label of the payment month")
    beginning_balance: float = Field(..., ge=0)
    payment: float = Field(..., ge=0)
    interest: float = Field(..., ge=0)
    principal: float = Field(..., ge=0)
    ending_balance: float = Field(..., ge=0)
    cumulative_interest: float = Field(..., ge=0)


class LoanSchedule(BaseModel):
    """Amortization schedule until payoff or the month limit."""

    entries: List[ScheduleEntry] = Field(default_factory=list)
    total_interest: float = Field(default=0.0, ge=0)
    total_paid: float = Field(default=0.0, ge=0)
    paid_off: bool = Field(default=False)
    payoff_label: Optional[str] = Field(
        default=None, description="Calendar label of the final payment"
    )


class LoanCalculator:
    """Calculator for reducing-balance loan amortization."""

    @staticmethod
    def amortize_month(
        remaining_balance: float, scheduled_payment: float, annual_rate: float
    ) -> LoanMonth:
        """
        Amortize a single month using the reducing balance method.

        Interest is charged on the outstanding balance only. The principal
        portion is clamped to [0, remaining_balance], so the final payment
        of a loan is smaller than the scheduled one.

        Args:
            remaining_balance: Balance at the start of the month
            scheduled_payment: Scheduled monthly payment
            annual_rate: Annual interest rate (as decimal, e.g., 0.035 for 3.5%)

        Returns:
            Payment breakdown and new balance
        """
        if remaining_balance <= 0:
            return LoanMonth(payment=0.0, interest=0.0, principal=0.0, new_balance=0.0)

        interest = remaining_balance * (annual_rate / 12)
        principal = min(max(scheduled_payment - interest, 0.0), remaining_balance)

        return LoanMonth(
            payment=min(max(scheduled_payment, 0.0), interest + principal),
            interest=interest,
            principal=principal,
            new_balance=remaining_balance - principal,
            non_convergent=principal == 0,
        )

    @staticmethod
    def calculate_monthly_payment(
        principal: float, annual_rate: float, term_years: int
    ) -> float:
        """
        Calculate the level monthly payment that clears a loan over a term.

        Args:
            principal: Loan principal amount
            annual_rate: Annual interest rate (as decimal)
            term_years: Loan term in years

        Returns:
            Monthly payment amount
        """
        if principal <= 0:
            return 0.0

        num_payments = term_years * 12
        monthly_rate = annual_rate / 12
        if monthly_rate == 0:
            return principal / num_payments

        growth = (1 + monthly_rate) ** num_payments
        return principal * monthly_rate * growth / (growth - 1)

    @staticmethod
    def months_to_payoff(
        balance: float,
        payment: float,
        annual_rate: float,
        max_months: int = DEFAULT_MAX_MONTHS,
    ) -> PayoffTerm:
        """
        Count the months needed to pay a loan off at a fixed payment.

        A payment that does not exceed the monthly interest never pays the
        loan off; that case is reported as ``months=None`` rather than a huge
        number.

        Args:
            balance: Outstanding balance
            payment: Monthly payment
            annual_rate: Annual interest rate (as decimal)
            max_months: Iteration limit

        Returns:
            Payoff term with a formatted description
        """
        if balance <= 0:
            return PayoffTerm(months=0, formatted=format_payoff_months(0))

        months = 0
        while balance > 0 and months < max_months:
            step = LoanCalculator.amortize_month(balance, payment, annual_rate)
            if step.non_convergent:
                logger.debug(
                    f"Loan does not converge: payment {payment} vs interest {step.interest}"
                )
                return PayoffTerm(months=None, formatted=NEVER_PAID_OFF)
            balance = step.new_balance
            months += 1

        if balance > 0:
            return PayoffTerm(months=None, formatted=NEVER_PAID_OFF)
        return PayoffTerm(months=months, formatted=format_payoff_months(months))

    @staticmethod
    def ensure_convergent(balance: float, payment: float, annual_rate: float) -> None:
        """
        Check that a payment actually reduces a positive balance.

        Raises:
            NonConvergentAmortization: If the payment does not exceed the interest
        """
        if balance <= 0:
            return
        interest = balance * (annual_rate / 12)
        if payment <= interest:
            raise NonConvergentAmortization(balance, payment, interest)

    @staticmethod
    def generate_schedule(
        balance: float,
        payment: float,
        annual_rate: float,
        start_year: int,
        start_month: int,
        max_months: int = DEFAULT_MAX_MONTHS,
    ) -> LoanSchedule:
        """
        Generate an amortization schedule until payoff.

        Raises:
            NonConvergentAmortization: If the payment never pays the loan off
        """
        LoanCalculator.ensure_convergent(balance, payment, annual_rate)

        grid = MonthGrid(start_year=start_year, start_month=start_month, num_months=max_months)
        entries = []
        cumulative_interest = 0.0
        total_paid = 0.0

        for offset in range(max_months):
            if balance <= 0:
                break
            step = LoanCalculator.amortize_month(balance, payment, annual_rate)
            cumulative_interest += step.interest
            total_paid += step.payment
            entries.append(
                ScheduleEntry(
                    payment_number=offset + 1,
                    label=grid.label_at(offset),
                    beginning_balance=balance,
                    payment=step.payment,
                    interest=step.interest,
                    principal=step.principal,
                    ending_balance=step.new_balance,
                    cumulative_interest=cumulative_interest,
                )
            )
            balance = step.new_balance

        return LoanSchedule(
            entries=entries,
            total_interest=cumulative_interest,
            total_paid=total_paid,
            paid_off=balance <= 0,
            payoff_label=entries[-1].label if entries and balance <= 0 else None,
        )

    @staticmethod
    def compare_early_payoff(
        balance: float, payment: float, annual_rate: float, extra_payment: float
    ) -> dict:
        """
        Compare paying a loan at the scheduled payment against paying extra.

        Args:
            balance: Outstanding balance
            payment: Scheduled monthly payment
            annual_rate: Annual interest rate (as decimal)
            extra_payment: Additional amount paid every month

        Returns:
            Dictionary with payoff terms, interest totals and savings
        """
        baseline = LoanCalculator.months_to_payoff(balance, payment, annual_rate)
        accelerated = LoanCalculator.months_to_payoff(
            balance, payment + extra_payment, annual_rate
        )

        baseline_interest = _total_interest(balance, payment, annual_rate, baseline)
        accelerated_interest = _total_interest(
            balance, payment + extra_payment, annual_rate, accelerated
        )

        months_saved = None
        if baseline.months is not None and accelerated.months is not None:
            months_saved = baseline.months - accelerated.months

        interest_saved = None
        if baseline_interest is not None and accelerated_interest is not None:
            interest_saved = baseline_interest - accelerated_interest

        return {
            "baseline": baseline,
            "accelerated": accelerated,
            "baseline_interest": baseline_interest,
            "accelerated_interest": accelerated_interest,
            "months_saved": months_saved,
            "interest_saved": interest_saved,
        }


def _total_interest(
    balance: float, payment: float, annual_rate: float, term: PayoffTerm
) -> Optional[float]:
    if term.months is None:
        return None
    total = 0.0
    for _ in range(term.months):
        step = LoanCalculator.amortize_month(balance, payment, annual_rate)
        total += step.interest
        balance = step.new_balance
    return total


def format_payoff_months(months: int) -> str:
    """Format a payoff term as 'N months (Y years M months)'."""
    if months == 0:
        return "Paid off"
    years, remainder = divmod(months, 12)
    if years == 0:
        return f"{months} month{'s' if months != 1 else ''}"
    return (
        f"{months} months ({years} year{'s' if years != 1 else ''} "
        f"{remainder} month{'s' if remainder != 1 else ''})"
    )


def describe_payoff(term: PayoffTerm, start_year: int, start_month: int) -> str:
    """Describe the calendar month a loan is paid off, counting the first payment as month one."""
    if term.months is None:
        return NEVER_PAID_OFF
    if term.months == 0:
        return "Already paid off"
    grid = MonthGrid(start_year=start_year, start_month=start_month, num_months=term.months)
    year, month = grid.calendar_at(term.months - 1)
    return format_month_label(year, month)
