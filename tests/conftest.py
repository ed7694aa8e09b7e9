"""
Pytest configuration and shared fixtures for the projector tests.
"""

import os
from unittest.mock import patch

import pytest

from projector import create_app
from projector.config import Settings, reset_global_settings
from projector.models.contributions import create_default_contribution_config
from projector.models.profile import (
    ExpenseItem,
    FinancialProfile,
    ProjectionSettings,
    RetirementBalances,
)


@pytest.fixture
def contribution_config():
    """Built-in contribution tables."""
    return create_default_contribution_config()


@pytest.fixture
def simple_profile():
    """Salary 6000 at 20%/17%, expenses 2000, interest-free loan of 10000 at 1000/month."""
    return FinancialProfile(
        birth_year=1990,
        birth_month=6,
        liquid_cash=5000.0,
        retirement_balances=RetirementBalances(primary=10000.0, secondary=5000.0, medical=3000.0),
        loan_balance=10000.0,
        loan_annual_rate=0.0,
        loan_payment=1000.0,
        salary=6000.0,
        employee_rate=0.20,
        employer_rate=0.17,
        expenses=[
            ExpenseItem(name="Rent", amount=1500.0, due_day=1),
            ExpenseItem(name="Food", amount=500.0, due_day=10),
        ],
    )


@pytest.fixture
def flat_settings():
    """Two years from January 2025 with no growth of any kind."""
    return ProjectionSettings(
        salary_growth=0.0,
        expense_growth=0.0,
        investment_return=0.0,
        retirement_interest=0.0,
        years=2,
        start_year=2025,
        start_month=1,
        savings_goal=100000.0,
    )


@pytest.fixture
def raw_profile():
    """Canonical (schema version 3) stored profile."""
    return {
        "schema_version": 3,
        "birth_year": 1990,
        "birth_month": 6,
        "liquid_cash": 20000,
        "retirement_balances": {"primary": 30000, "secondary": 10000, "medical": 8000},
        "loan_balance": 20000,
        "loan_annual_rate": 0.03,
        "loan_payment": 800,
        "salary": 5000,
        "salary_day": 25,
        "expenses": [
            {"name": "Rent", "amount": 1200, "due_day": 1},
            {"name": "Food", "amount": 600, "due_day": 15},
        ],
    }


@pytest.fixture
def raw_settings():
    """Projection settings as sent by a client."""
    return {
        "years": 3,
        "start_year": 2025,
        "start_month": 3,
        "salary_growth": 0.03,
        "expense_growth": 0.02,
        "investment_return": 0.04,
        "retirement_interest": 0.025,
    }


@pytest.fixture
def app_settings():
    """Application settings for the testing environment."""
    with patch.dict(
        os.environ, {"SECRET_KEY": "test-secret-key", "APP_ENV": "testing"}, clear=True
    ):
        yield Settings(_env_file=None)


@pytest.fixture
def app(app_settings):
    """Flask application configured for testing."""
    reset_global_settings()
    application = create_app(app_settings)
    yield application
    reset_global_settings()


@pytest.fixture
def client(app):
    """Flask test client."""
    return app.test_client()
