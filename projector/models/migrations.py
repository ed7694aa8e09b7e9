"""
Versioned migration of stored profile shapes into ``FinancialProfile``.

Stored profiles exist in three shapes:

- Version 1: the original flat shape. Birthday and projection start are
  strings such as "September 1996", expenses are a name-to-amount dict, a
  single future salary is given by ``futureSalary`` and its month/year, and
  rates are percentages.
- Version 2: birthday is ``{"month", "year"}``, expenses are a list of items,
  salary adjustments are a list, and rates are still percentages.
- Version 3: the canonical ``FinancialProfile`` field layout.

Each step is a pure function from one version's dict to the next. The chain
runs once, at the boundary, before anything reaches the engine.
"""

import copy
import logging
from typing import Any, Callable, Dict

from pydantic import ValidationError

from .errors import MissingRequiredField, ProjectionError, translate_validation_error
from .profile import FinancialProfile
from .time_grid import parse_month_name

logger = logging.getLogger(__name__)

CURRENT_SCHEMA_VERSION = 3
DEFAULT_DUE_DAY = 15

# Split applied to a single legacy retirement balance.
LEGACY_BALANCE_SPLIT = {"primary": 0.6, "secondary": 0.2, "medical": 0.2}


def detect_schema_version(raw: Dict[str, Any]) -> int:
    """
    Determine the schema version of a stored profile.

    An explicit ``schema_version`` key wins; otherwise the version is
    inferred from the shape.

    Raises:
        ProjectionError: If the shape is not recognised
    """
    if "schema_version" in raw:
        version = raw["schema_version"]
        if version not in UPGRADES and version != CURRENT_SCHEMA_VERSION:
            raise ProjectionError(
                f"Unsupported profile schema version: {version}", field="schema_version"
            )
        return version

    if "personalInfo" in raw:
        personal = raw.get("personalInfo") or {}
        if isinstance(personal.get("birthday"), str) or isinstance(raw.get("expenses"), dict):
            return 1
        return 2

    if "birth_year" in raw:
        return CURRENT_SCHEMA_VERSION

    raise ProjectionError("Unrecognised profile shape", field="schema_version")


def _parse_month_year(value: str, field: str) -> Dict[str, int]:
    """Parse 'September 1996' into {'month': 9, 'year': 1996}."""
    try:
        month_name, year = value.strip().rsplit(" ", 1)
        return {"month": parse_month_name(month_name), "year": int(year)}
    except ValueError as e:
        raise ProjectionError(f"Cannot parse {field}: {value!r}", field=field) from e


def upgrade_v1_to_v2(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Structure the birthday, expense dict and single future salary."""
    data = copy.deepcopy(raw)
    personal = data.setdefault("personalInfo", {})
    income = data.setdefault("income", {})

    birthday = personal.get("birthday")
    if birthday is None:
        raise MissingRequiredField("personalInfo.birthday")
    if isinstance(birthday, str):
        personal["birthday"] = _parse_month_year(birthday, "personalInfo.birthday")

    projection_start = personal.pop("projectionStart", None)
    if isinstance(projection_start, str):
        data["projectionStart"] = _parse_month_year(
            projection_start, "personalInfo.projectionStart"
        )

    for derived in ("currentAge", "employmentStart"):
        personal.pop(derived, None)

    expenses = data.get("expenses") or {}
    if isinstance(expenses, dict):
        data["expenses"] = [
            {"name": name, "amount": amount, "dueDay": DEFAULT_DUE_DAY}
            for name, amount in expenses.items()
        ]

    adjustments = income.setdefault("salaryAdjustments", [])
    future_salary = income.pop("futureSalary", None)
    adjustment_month = income.pop("salaryAdjustmentMonth", None)
    adjustment_year = income.pop("salaryAdjustmentYear", None)
    if future_salary is not None and adjustment_month and adjustment_year:
        adjustments.append(
            {"month": adjustment_month, "year": adjustment_year, "newSalary": future_salary}
        )

    data["schema_version"] = 2
    return data


def _as_number(value: Any, field: str) -> float:
    """Read a legacy numeric value that may have been stored as a string."""
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise ProjectionError(f"Invalid number for {field}: {value!r}", field=field) from e


def _percent_to_fraction(value: Any, field: str) -> float:
    return _as_number(value, field) / 100


def _retirement_balances_v2(personal: Dict[str, Any]) -> Dict[str, float]:
    balances = personal.get("cpfBalances")
    if balances:
        return {
            "primary": balances.get("ordinary", 0),
            "secondary": balances.get("special", 0),
            "medical": balances.get("medisave", 0),
        }
    total = _as_number(
        personal.get("currentCpfBalance") or 0, "personalInfo.currentCpfBalance"
    )
    return {name: total * share for name, share in LEGACY_BALANCE_SPLIT.items()}


def upgrade_v2_to_v3(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Flatten into canonical field names and convert percentage rates to fractions."""
    personal = raw.get("personalInfo") or {}
    income = raw.get("income") or {}
    birthday = personal.get("birthday") or {}

    data: Dict[str, Any] = {
        "schema_version": CURRENT_SCHEMA_VERSION,
        "birth_year": birthday.get("year"),
        "birth_month": birthday.get("month"),
        "liquid_cash": personal.get("currentSavings"),
        "retirement_balances": _retirement_balances_v2(personal),
        "loan_balance": personal.get("remainingLoan", 0),
        "loan_annual_rate": _percent_to_fraction(
            personal.get("interestRate") or 0, "personalInfo.interestRate"
        ),
        "loan_payment": personal.get("monthlyRepayment", 0),
        "salary": income.get("currentSalary"),
        "contribution_category": income.get("cpfCategory", "citizen"),
        "salary_adjustments": [
            {"year": a.get("year"), "month": a.get("month"), "new_salary": a.get("newSalary")}
            for a in income.get("salaryAdjustments", [])
        ],
        "expenses": [
            {
                "name": item.get("name"),
                "amount": item.get("amount"),
                "due_day": item.get("dueDay", DEFAULT_DUE_DAY),
            }
            for item in raw.get("expenses", [])
        ],
        "bonuses": [
            {
                "year": b.get("year"),
                "month": b.get("month"),
                "amount": b.get("amount"),
                "description": b.get("description", "Bonus"),
            }
            for b in raw.get("yearlyBonuses", [])
        ],
        "yearly_expenses": [
            {
                "name": item.get("name"),
                "month": item.get("month"),
                "amount": item.get("amount"),
                "start_year": item.get("startYear"),
                "end_year": item.get("endYear"),
            }
            for item in raw.get("yearlyExpenses", [])
        ],
        "upcoming_spending": [
            {
                "name": item.get("name", "Planned spending"),
                "year": item.get("year"),
                "month": item.get("month"),
                "day": item.get("day", DEFAULT_DUE_DAY),
                "amount": item.get("amount"),
            }
            for item in raw.get("upcomingSpending", [])
        ],
    }

    if personal.get("originalLoanAmount") is not None:
        data["loan_original_amount"] = personal["originalLoanAmount"]
    if income.get("salaryDay") is not None:
        data["salary_day"] = income["salaryDay"]
    if income.get("cpfRate") is not None and income.get("employerCpfRate") is not None:
        data["employee_rate"] = _percent_to_fraction(income["cpfRate"], "income.cpfRate")
        data["employer_rate"] = _percent_to_fraction(
            income["employerCpfRate"], "income.employerCpfRate"
        )

    # pydantic reports None for a required field as a type error, not as missing
    return {key: value for key, value in data.items() if value is not None}


UPGRADES: Dict[int, Callable[[Dict[str, Any]], Dict[str, Any]]] = {
    1: upgrade_v1_to_v2,
    2: upgrade_v2_to_v3,
}


def upgrade_to_current(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Run every upgrade step from the detected version to the current one."""
    version = detect_schema_version(raw)
    data = raw
    while version < CURRENT_SCHEMA_VERSION:
        logger.debug(f"Upgrading profile from schema version {version}")
        data = UPGRADES[version](data)
        version = data["schema_version"]
    return data


def migrate_profile(raw: Dict[str, Any]) -> FinancialProfile:
    """
    Convert a stored profile of any supported version into a FinancialProfile.

    Raises:
        MissingRequiredField: If a required attribute is absent
        InvalidNegativeValue: If a constrained value is negative
        ProjectionError: If the shape or a value is invalid
    """
    if raw is None:
        raise MissingRequiredField("profile")

    version = detect_schema_version(raw)
    data = dict(upgrade_to_current(raw))
    data.pop("schema_version", None)
    if version != CURRENT_SCHEMA_VERSION:
        logger.info(f"Migrated profile from schema version {version}")

    try:
        return FinancialProfile.model_validate(data)
    except ValidationError as e:
        raise translate_validation_error(e, "profile") from e
