"""
Month grid and unit utilities for the projection engine.

This module provides integer month arithmetic for the projection calendar,
annual-to-monthly rate conversion, age calculation, and the formatting
boundary where currency and percentage values are rounded for display.
"""

from datetime import date
from typing import List, Optional, Tuple

from pydantic import BaseModel, Field, field_validator

MONTH_ABBREVIATIONS = [
    "Jan",
    "Feb",
    "Mar",
    "Apr",
    "May",
    "Jun",
    "Jul",
    "Aug",
    "Sep",
    "Oct",
    "Nov",
    "Dec",
]

MONTH_NAMES = [
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
]


class MonthGrid(BaseModel):
    """Calendar grid of consecutive months starting at (start_year, start_month)."""

    start_year: int = Field(..., ge=1900, le=2200, description="First projected year")
    start_month: int = Field(..., ge=1, le=12, description="First projected month")
    num_months: int = Field(..., ge=0, description="Number of months in the grid")

    def calendar_at(self, offset: int) -> Tuple[int, int]:
        """
        Get the (year, month) for a zero-based month offset.

        Uses integer arithmetic only so there is no calendar drift over
        long horizons.
        """
        if offset < 0:
            raise ValueError(f"Month offset must be >= 0, got {offset}")
        total = self.start_month - 1 + offset
        return self.start_year + total // 12, total % 12 + 1

    def offset_of(self, year: int, month: int) -> int:
        """Get the zero-based offset of (year, month), negative if before the start."""
        return (year - self.start_year) * 12 + (month - self.start_month)

    def contains(self, year: int, month: int) -> bool:
        """Check whether (year, month) falls inside the grid."""
        return 0 <= self.offset_of(year, month) < self.num_months

    def label_at(self, offset: int) -> str:
        """Get the display label (e.g. 'Mar 2025') for a month offset."""
        year, month = self.calendar_at(offset)
        return format_month_label(year, month)

    def get_calendar(self) -> List[Tuple[int, int]]:
        """Get every (year, month) in the grid in order."""
        return [self.calendar_at(offset) for offset in range(self.num_months)]

    def __len__(self) -> int:
        return self.num_months


def annual_to_monthly_rate(annual_rate: float) -> float:
    """
    Convert an annual rate to the equivalent geometric monthly rate.

    Args:
        annual_rate: Annual rate as a fraction (0.05 = 5%)

    Returns:
        Monthly rate such that compounding it 12 times yields the annual rate
    """
    if annual_rate == 0:
        return 0.0
    return (1 + annual_rate) ** (1 / 12) - 1


def age_at(birth_year: int, birth_month: int, year: int, month: int) -> int:
    """
    Age in whole years at (year, month).

    The birthday is counted as reached from the birth month onwards.
    """
    age = year - birth_year
    if month < birth_month:
        age -= 1
    return age


def format_month_label(year: int, month: int) -> str:
    """Format (year, month) as 'Mon YYYY'."""
    return f"{MONTH_ABBREVIATIONS[month - 1]} {year}"


def is_same_month(today: Optional[date], year: int, month: int) -> bool:
    """Check whether ``today`` falls in (year, month)."""
    return today is not None and today.year == year and today.month == month


class CurrencyFormatter(BaseModel):
    """
    Formats currency and percentage values for display.

    This is the only place values are rounded; the engine carries full
    floating precision.
    """

    currency_symbol: str = Field(default="$", description="Currency symbol")
    decimal_places: int = Field(
        default=2, ge=0, le=10, description="Number of decimal places"
    )
    show_currency_symbol: bool = Field(
        default=True, description="Whether to show currency symbol"
    )

    @field_validator("currency_symbol")
    @classmethod
    def validate_symbol(cls, v: str) -> str:
        if len(v) > 4:
            raise ValueError("Currency symbol must be at most 4 characters")
        return v

    def round_amount(self, amount: float) -> float:
        """Round an amount to the configured number of decimal places."""
        return round(amount, self.decimal_places)

    def format_currency(self, amount: float, show_symbol: Optional[bool] = None) -> str:
        """
        Format a currency amount for display.

        Negative amounts are rendered with a leading minus before the symbol.

        Args:
            amount: The amount to format
            show_symbol: Override the default symbol display setting

        Returns:
            Formatted currency string
        """
        show_symbol = (
            show_symbol if show_symbol is not None else self.show_currency_symbol
        )
        rounded = self.round_amount(amount)
        sign = "-" if rounded < 0 else ""
        magnitude = abs(rounded)

        if self.decimal_places > 0:
            formatted = f"{magnitude:,.{self.decimal_places}f}"
        else:
            formatted = f"{int(magnitude):,}"

        symbol = self.currency_symbol if show_symbol else ""
        return f"{sign}{symbol}{formatted}"

    def format_percentage(self, rate: float, decimal_places: int = 2) -> str:
        """
        Format a fraction as a percentage.

        Args:
            rate: The rate as a fraction (0.05 = 5%)
            decimal_places: Number of decimal places to show

        Returns:
            Formatted percentage string
        """
        return f"{rate * 100:.{decimal_places}f}%"


def parse_month_name(name: str) -> int:
    """
    Get the month number (1-12) for a month name or abbreviation.

    Raises:
        ValueError: If the name does not match any month
    """
    lowered = name.strip().lower()
    for index, full_name in enumerate(MONTH_NAMES):
        if lowered and full_name.lower().startswith(lowered[:3]):
            return index + 1
    raise ValueError(f"Unknown month name: {name!r}")
