"""Data models and calculators for personal finance projections."""

from .errors import (
    ConfigurationGap,
    InvalidNegativeValue,
    MissingRequiredField,
    NonConvergentAmortization,
    ProjectionCancelled,
    ProjectionError,
    safe_divide,
)
from .profile import (
    Bonus,
    ExpenseItem,
    FinancialProfile,
    ProjectionSettings,
    RetirementBalances,
    SalaryAdjustment,
    UpcomingSpending,
    YearlyExpense,
)
from .contributions import (
    ContributionCalculator,
    ContributionConfig,
    ContributionResult,
    SubAccountAllocation,
    compute_contribution,
    create_default_contribution_config,
    load_contribution_config,
)
from .loan_amortization import LoanCalculator, LoanMonth, PayoffTerm
from .projection_engine import (
    ProjectionEngine,
    ProjectionMonth,
    ProjectionResult,
    project,
    validate_inputs,
)
from .liquidity import LiquidityAnalysis, analyze_liquidity, scan_projection_liquidity
from .milestones import (
    Milestone,
    MilestoneBook,
    MilestoneFilter,
    UserGoal,
    derive_milestones,
    format_time_remaining,
)
from .migrations import migrate_profile

__all__ = [
    "ConfigurationGap",
    "InvalidNegativeValue",
    "MissingRequiredField",
    "NonConvergentAmortization",
    "ProjectionCancelled",
    "ProjectionError",
    "safe_divide",
    "Bonus",
    "ExpenseItem",
    "FinancialProfile",
    "ProjectionSettings",
    "RetirementBalances",
    "SalaryAdjustment",
    "UpcomingSpending",
    "YearlyExpense",
    "ContributionCalculator",
    "ContributionConfig",
    "ContributionResult",
    "SubAccountAllocation",
    "compute_contribution",
    "create_default_contribution_config",
    "load_contribution_config",
    "LoanCalculator",
    "LoanMonth",
    "PayoffTerm",
    "ProjectionEngine",
    "ProjectionMonth",
    "ProjectionResult",
    "project",
    "validate_inputs",
    "LiquidityAnalysis",
    "analyze_liquidity",
    "scan_projection_liquidity",
    "Milestone",
    "MilestoneBook",
    "MilestoneFilter",
    "UserGoal",
    "derive_milestones",
    "format_time_remaining",
    "migrate_profile",
]
