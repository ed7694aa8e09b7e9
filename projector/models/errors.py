"""
Error taxonomy for the projection engine.

All errors derive from ValueError so existing callers that guard engine calls
with ``except ValueError`` keep working. Each error carries a stable ``code``
for JSON responses.
"""

from typing import Any, Dict, Optional

from pydantic import ValidationError


class ProjectionError(ValueError):
    """Base class for all projection engine errors."""

    code = "projection_error"

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.field = field

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the error for API responses."""
        payload: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.field is not None:
            payload["field"] = self.field
        return payload


class MissingRequiredField(ProjectionError):
    """A required profile or settings attribute is absent."""

    code = "missing_field"

    def __init__(self, field: str) -> None:
        super().__init__(f"Missing required field: {field}", field=field)


class InvalidNegativeValue(ProjectionError):
    """A salary, expense or balance was supplied as a negative number."""

    code = "negative_value"

    def __init__(self, field: str, value: Any) -> None:
        super().__init__(f"Negative value not allowed for {field}: {value}", field=field)
        self.value = value


class ConfigurationGap(ProjectionError):
    """A rate or allocation table does not cover a requested value."""

    code = "configuration_gap"


class NonConvergentAmortization(ProjectionError):
    """Loan payment does not exceed the monthly interest charge."""

    code = "non_convergent"

    def __init__(self, balance: float, payment: float, interest: float) -> None:
        super().__init__(
            f"Loan payment {payment:.2f} does not cover monthly interest "
            f"{interest:.2f} on balance {balance:.2f}; the loan never pays off",
            field="loan_payment",
        )
        self.balance = balance
        self.payment = payment
        self.interest = interest


class ProjectionCancelled(ProjectionError):
    """The caller cancelled a running projection between month iterations."""

    code = "cancelled"

    def __init__(self, completed_months: int) -> None:
        super().__init__(f"Projection cancelled after {completed_months} months")
        self.completed_months = completed_months


def safe_divide(numerator: float, denominator: float, default: float = 0.0) -> float:
    """Divide for display purposes, returning ``default`` when the denominator is 0."""
    if denominator == 0:
        return default
    return numerator / denominator


def translate_validation_error(exc: ValidationError, prefix: str) -> ProjectionError:
    """
    Map a pydantic ValidationError onto the projection error taxonomy.

    Missing attributes become ``MissingRequiredField``; a negative number
    rejected by a constraint becomes ``InvalidNegativeValue``; anything else
    is reported as a generic ``ProjectionError`` naming the field.
    """
    errors = exc.errors()
    for error in errors:
        if error["type"] == "missing":
            field = ".".join(str(part) for part in (prefix, *error["loc"]))
            return MissingRequiredField(field)

    first = errors[0]
    field = ".".join(str(part) for part in (prefix, *first["loc"]))
    value = first.get("input")
    if isinstance(value, (int, float)) and not isinstance(value, bool) and value < 0:
        return InvalidNegativeValue(field, value)
    return ProjectionError(f"Invalid value for {field}: {first['msg']}", field=field)
