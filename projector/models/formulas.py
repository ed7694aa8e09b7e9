"""
Standalone financial formulas.

Closed-form time-value-of-money helpers used by the planning screens:
compound growth with contributions, the contribution needed to reach a goal,
retirement corpus sizing, withdrawal sustainability, and portfolio
aggregation across asset classes.
"""

from typing import Callable, Dict, List, Optional

import numpy as np
from pydantic import BaseModel, ConfigDict, Field

from .cache import BoundedCache
from .errors import ConfigurationGap, InvalidNegativeValue, ProjectionError
from .time_grid import annual_to_monthly_rate

COMPOUND_GROWTH_CACHE_SIZE = 100
DEFAULT_RISK_FREE_RATE = 0.025

_compound_growth_cache = BoundedCache(COMPOUND_GROWTH_CACHE_SIZE)


class AssetClass(BaseModel):
    """Expected return and volatility assumptions for an asset class."""

    name: str
    expected_return: float = Field(..., description="Expected annual return (0-1)")
    volatility: float = Field(..., ge=0, description="Annual standard deviation (0-1)")
    liquidity: str = Field(default="Medium")


ASSET_CLASSES: Dict[str, AssetClass] = {
    "CASH": AssetClass(name="Cash/Savings", expected_return=0.015, volatility=0.0, liquidity="High"),
    "SINGAPORE_BONDS": AssetClass(
        name="Singapore Government Bonds", expected_return=0.03, volatility=0.03, liquidity="High"
    ),
    "CPF_OA": AssetClass(
        name="Retirement Primary Account", expected_return=0.025, volatility=0.0, liquidity="Low"
    ),
    "CPF_SA": AssetClass(
        name="Retirement Secondary Account", expected_return=0.04, volatility=0.0, liquidity="Low"
    ),
    "SINGAPORE_EQUITIES": AssetClass(
        name="Singapore Stocks", expected_return=0.07, volatility=0.18, liquidity="High"
    ),
    "GLOBAL_EQUITIES": AssetClass(
        name="Global Stocks", expected_return=0.08, volatility=0.20, liquidity="High"
    ),
    "SINGAPORE_REITS": AssetClass(
        name="Singapore REITs", expected_return=0.06, volatility=0.15, liquidity="Medium"
    ),
    "ROBO_ADVISOR": AssetClass(
        name="Robo-Advisor Portfolio", expected_return=0.055, volatility=0.10, liquidity="Medium"
    ),
}


class CompoundGrowthResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    final_value: float
    principal_growth: float
    contributions_growth: float
    total_contributions: float
    total_returns: float
    years: float


class GoalContributionResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    required_monthly: float = Field(..., ge=0)
    total_contributions: float = Field(..., ge=0)
    current_future_value: float
    expected_growth: float
    achievable_with_current: bool


class RetirementCorpusResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    annual_income: float
    corpus_by_withdrawal_rate: float
    corpus_by_present_value: float
    recommended_corpus: float
    real_rate: float


class WithdrawalSustainability(BaseModel):
    model_config = ConfigDict(frozen=True)

    final_balance: float
    total_withdrawn: float
    total_returns: float
    months_until_depletion: Optional[int] = None
    sustainable: bool
    balances: List[float] = Field(default_factory=list)


class PortfolioMetrics(BaseModel):
    model_config = ConfigDict(frozen=True)

    expected_return: float = Field(..., description="Weighted annual return (0-1)")
    volatility: float = Field(..., description="Annual volatility (0-1)")
    sharpe_ratio: float
    risk_level: str


def _require_non_negative(**values: float) -> None:
    for name, value in values.items():
        if value < 0:
            raise InvalidNegativeValue(name, value)


def compound_growth(
    principal: float,
    monthly_contribution: float,
    annual_rate: float,
    years: float,
    periods_per_year: int = 12,
) -> CompoundGrowthResult:
    """
    Future value of a principal plus a level contribution stream.

    Results are memoized in a bounded cache.

    Args:
        principal: Initial amount
        monthly_contribution: Contribution added every period
        annual_rate: Annual rate (as decimal), compounded ``periods_per_year`` times
        years: Duration in years
        periods_per_year: Compounding periods per year

    Returns:
        Principal growth, contribution growth and totals
    """
    _require_non_negative(
        principal=principal, monthly_contribution=monthly_contribution, years=years
    )

    key = (principal, monthly_contribution, annual_rate, years, periods_per_year)
    cached = _compound_growth_cache.get(key)
    if cached is not None:
        return cached

    periods = years * periods_per_year
    rate = annual_rate / periods_per_year

    if rate == 0:
        principal_growth = principal
        contributions_growth = monthly_contribution * periods
    else:
        growth = (1 + rate) ** periods
        principal_growth = principal * growth
        contributions_growth = monthly_contribution * (growth - 1) / rate

    total_contributions = principal + monthly_contribution * periods
    final_value = principal_growth + contributions_growth
    result = CompoundGrowthResult(
        final_value=final_value,
        principal_growth=principal_growth,
        contributions_growth=contributions_growth,
        total_contributions=total_contributions,
        total_returns=final_value - total_contributions,
        years=years,
    )
    _compound_growth_cache.put(key, result)
    return result


def goal_contribution(
    target_amount: float, current_amount: float, years: float, annual_rate: float
) -> GoalContributionResult:
    """
    Level monthly contribution needed to reach a target amount.

    Uses the geometric monthly equivalent of ``annual_rate``. If the current
    amount alone grows past the target, the required contribution is 0.

    Raises:
        InvalidNegativeValue: If an amount or the horizon is negative
        ProjectionError: If the horizon is zero
    """
    _require_non_negative(
        target_amount=target_amount, current_amount=current_amount, years=years
    )
    if years == 0:
        raise ProjectionError("Goal horizon must be greater than zero", field="years")

    periods = years * 12
    monthly_rate = annual_to_monthly_rate(annual_rate)
    current_fv = current_amount * (1 + monthly_rate) ** periods
    remaining = target_amount - current_fv

    if remaining <= 0:
        required = 0.0
    elif monthly_rate == 0:
        required = remaining / periods
    else:
        required = remaining * monthly_rate / ((1 + monthly_rate) ** periods - 1)

    total_contributions = required * periods
    return GoalContributionResult(
        required_monthly=required,
        total_contributions=total_contributions,
        current_future_value=current_fv,
        expected_growth=max(0.0, target_amount - current_amount - total_contributions),
        achievable_with_current=remaining <= 0,
    )


def retirement_corpus(
    desired_monthly_income: float,
    years_in_retirement: int = 30,
    inflation_rate: float = 0.02,
    withdrawal_rate: float = 0.04,
    expected_return: Optional[float] = None,
) -> RetirementCorpusResult:
    """
    Size the savings needed to fund a retirement income.

    Takes the larger of a flat safe-withdrawal-rate estimate and the present
    value of an inflation-adjusted annuity over the retirement horizon.

    Args:
        desired_monthly_income: Target monthly income in retirement
        years_in_retirement: Retirement horizon
        inflation_rate: Annual inflation (as decimal)
        withdrawal_rate: Safe withdrawal rate (as decimal)
        expected_return: Nominal return in retirement (defaults to the withdrawal rate)

    Returns:
        Both estimates and the conservative recommendation
    """
    _require_non_negative(
        desired_monthly_income=desired_monthly_income,
        years_in_retirement=years_in_retirement,
    )
    if withdrawal_rate <= 0:
        raise ProjectionError(
            "Withdrawal rate must be greater than zero", field="withdrawal_rate"
        )

    annual_income = desired_monthly_income * 12
    by_withdrawal_rate = annual_income / withdrawal_rate

    nominal = withdrawal_rate if expected_return is None else expected_return
    real_rate = (1 + nominal) / (1 + inflation_rate) - 1
    if real_rate == 0:
        by_present_value = annual_income * years_in_retirement
    else:
        by_present_value = (
            annual_income * (1 - (1 + real_rate) ** -years_in_retirement) / real_rate
        )

    return RetirementCorpusResult(
        annual_income=annual_income,
        corpus_by_withdrawal_rate=by_withdrawal_rate,
        corpus_by_present_value=by_present_value,
        recommended_corpus=max(by_withdrawal_rate, by_present_value),
        real_rate=real_rate,
    )


def withdrawal_sustainability(
    principal: float, monthly_withdrawal: float, annual_return: float, years: int
) -> WithdrawalSustainability:
    """
    Simulate monthly withdrawals from a balance earning a return.

    The balance is floored at 0 in the month it is depleted, and the
    simulation stops there.
    """
    _require_non_negative(
        principal=principal, monthly_withdrawal=monthly_withdrawal, years=years
    )

    monthly_rate = annual_to_monthly_rate(annual_return)
    balance = principal
    total_withdrawn = 0.0
    total_returns = 0.0
    depleted_at = None
    balances = []

    for month in range(1, years * 12 + 1):
        returns = balance * monthly_rate
        balance = balance + returns - monthly_withdrawal
        total_withdrawn += monthly_withdrawal
        total_returns += returns
        if balance <= 0:
            depleted_at = month
            balance = 0.0
            balances.append(balance)
            break
        balances.append(balance)

    return WithdrawalSustainability(
        final_balance=balance,
        total_withdrawn=total_withdrawn,
        total_returns=total_returns,
        months_until_depletion=depleted_at,
        sustainable=depleted_at is None,
        balances=balances,
    )


def classify_risk(volatility: float) -> str:
    """Map an annual volatility to a risk band."""
    if volatility < 0.05:
        return "Very Low"
    if volatility < 0.10:
        return "Low"
    if volatility < 0.15:
        return "Medium"
    if volatility < 0.20:
        return "High"
    return "Very High"


def portfolio_metrics(
    allocations: Dict[str, float],
    risk_free_rate: float = DEFAULT_RISK_FREE_RATE,
    asset_classes: Optional[Dict[str, AssetClass]] = None,
) -> PortfolioMetrics:
    """
    Aggregate expected return and volatility across asset classes.

    Volatility assumes zero correlation between asset classes, so portfolio
    variance is the sum of squared weighted volatilities. This is a
    simplifying assumption and understates risk for correlated assets.

    Args:
        allocations: Percentage weight (0-100) keyed by asset class id
        risk_free_rate: Annual risk-free rate for the Sharpe ratio
        asset_classes: Asset class assumptions (defaults to ASSET_CLASSES)

    Returns:
        Portfolio expected return, volatility, Sharpe ratio and risk band

    Raises:
        ConfigurationGap: If an allocation names an unknown asset class
    """
    asset_classes = asset_classes or ASSET_CLASSES
    if not allocations:
        return PortfolioMetrics(
            expected_return=0.0, volatility=0.0, sharpe_ratio=0.0, risk_level="N/A"
        )

    unknown = [name for name in allocations if name not in asset_classes]
    if unknown:
        raise ConfigurationGap(f"Unknown asset classes: {unknown}")

    names = list(allocations)
    weights = np.array([allocations[n] for n in names], dtype=float) / 100
    returns = np.array([asset_classes[n].expected_return for n in names])
    vols = np.array([asset_classes[n].volatility for n in names])

    expected_return = float(np.dot(weights, returns))
    volatility = float(np.sqrt(np.sum((weights * vols) ** 2)))
    sharpe = (expected_return - risk_free_rate) / volatility if volatility > 0 else 0.0

    return PortfolioMetrics(
        expected_return=expected_return,
        volatility=volatility,
        sharpe_ratio=sharpe,
        risk_level=classify_risk(volatility),
    )


def clear_formula_cache() -> None:
    _compound_growth_cache.clear()


def get_formula_cache() -> BoundedCache:
    return _compound_growth_cache


FORMULAS: Dict[str, Callable[..., BaseModel]] = {
    "compound_growth": compound_growth,
    "goal_contribution": goal_contribution,
    "retirement_corpus": retirement_corpus,
    "withdrawal_sustainability": withdrawal_sustainability,
    "portfolio_metrics": portfolio_metrics,
}
