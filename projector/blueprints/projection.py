"""
Projection blueprint for personal finance projections.

This module provides API endpoints for running projections, analysing
intra-month liquidity, deriving milestones, evaluating standalone formulas,
and publishing the canonical profile schema.
"""

from datetime import date
from typing import Any, Optional

from flask import Blueprint, current_app, jsonify, request

from projector.models.errors import ProjectionError
from projector.models.formulas import FORMULAS
from projector.models.milestones import FILTER_CATEGORIES, MilestoneFilter
from projector.models.projection_engine import ProjectionResult
from projector.models.schema_generator import (
    generate_profile_schema,
    generate_settings_schema,
)
from projector.services.projection_service import ProjectionService

projection_bp = Blueprint("projection", __name__, url_prefix="/api")


def _service() -> ProjectionService:
    return current_app.extensions["projection_service"]


def _parse_today(value: Optional[str]) -> Optional[date]:
    """Parse an ISO date; raises ValueError for malformed input."""
    if value is None:
        return None
    return date.fromisoformat(value)


def _error_response(error: ProjectionError) -> Any:
    """Engine errors degrade to an empty projection plus the structured error."""
    return (
        jsonify(
            {
                "projection": ProjectionResult.empty().model_dump(mode="json"),
                "error": error.to_dict(),
            }
        ),
        422,
    )


@projection_bp.route("/projections", methods=["POST"])
def run_projection() -> Any:
    """Run a projection for a stored profile.

    Request JSON:
        profile: Stored profile (any supported schema version)
        settings: Projection settings
        goals: Optional user goals
        today: Optional ISO reference date

    Returns:
        JSON response with months, milestones and metadata
    """
    try:
        data = request.get_json(silent=True) or {}
        try:
            today = _parse_today(data.get("today"))
        except ValueError:
            return jsonify({"error": "today must be an ISO date (YYYY-MM-DD)"}), 400

        outcome = _service().run(
            data.get("profile"),
            data.get("settings"),
            today=today,
            user_goals=data.get("goals"),
        )
        status = 200 if outcome.ok else 422
        return jsonify(outcome.model_dump(mode="json")), status

    except Exception as e:
        current_app.logger.error(f"Error running projection: {str(e)}")
        return jsonify({"error": "Internal server error"}), 500


@projection_bp.route("/liquidity", methods=["POST"])
def analyze_month_liquidity() -> Any:
    """Analyse the intra-month cash position of one projected month.

    Request JSON:
        profile, settings, today: As for /projections
        month_index: 1-based projection month (default 1)
        minimum_buffer: Optional cash buffer override

    Returns:
        JSON response with the liquidity analysis and recommendations
    """
    try:
        data = request.get_json(silent=True) or {}
        month_index = data.get("month_index", 1)
        if not isinstance(month_index, int) or month_index < 1:
            return jsonify({"error": "month_index must be a positive integer"}), 400
        try:
            today = _parse_today(data.get("today"))
        except ValueError:
            return jsonify({"error": "today must be an ISO date (YYYY-MM-DD)"}), 400

        try:
            outcome = _service().analyze_month(
                data.get("profile"),
                data.get("settings"),
                month_index=month_index,
                minimum_buffer=data.get("minimum_buffer"),
                today=today,
            )
        except ProjectionError as e:
            current_app.logger.error(f"Liquidity analysis failed: {e.message}")
            return _error_response(e)
        except IndexError as e:
            return jsonify({"error": str(e)}), 400

        return jsonify(outcome.model_dump(mode="json"))

    except Exception as e:
        current_app.logger.error(f"Error analysing liquidity: {str(e)}")
        return jsonify({"error": "Internal server error"}), 500


@projection_bp.route("/milestones", methods=["POST"])
def list_milestones() -> Any:
    """Derive system milestones, merge user goals and apply category filters.

    Request JSON:
        profile, settings, goals, today: As for /projections
        filters: Categories to toggle on, in order (default: all)

    Returns:
        JSON response with the filtered milestones and active filters
    """
    try:
        data = request.get_json(silent=True) or {}
        filters = data.get("filters") or []
        unknown = [f for f in filters if f not in FILTER_CATEGORIES]
        if unknown:
            return jsonify({"error": f"Unknown milestone categories: {unknown}"}), 400
        try:
            today = _parse_today(data.get("today"))
        except ValueError:
            return jsonify({"error": "today must be an ISO date (YYYY-MM-DD)"}), 400

        outcome = _service().run(
            data.get("profile"),
            data.get("settings"),
            today=today,
            user_goals=data.get("goals"),
        )
        if not outcome.ok:
            return jsonify({"milestones": [], "error": outcome.error}), 422

        milestone_filter = MilestoneFilter()
        for category in filters:
            milestone_filter.toggle(category)
        visible = milestone_filter.apply(outcome.milestones)

        return jsonify(
            {
                "milestones": [m.model_dump(mode="json") for m in visible],
                "active_filters": milestone_filter.active,
            }
        )

    except Exception as e:
        current_app.logger.error(f"Error deriving milestones: {str(e)}")
        return jsonify({"error": "Internal server error"}), 500


@projection_bp.route("/formulas/<name>", methods=["POST"])
def evaluate_formula(name: str) -> Any:
    """Evaluate a standalone financial formula.

    Args:
        name: Formula name (e.g. compound_growth)

    Returns:
        JSON response with the formula result
    """
    formula = FORMULAS.get(name)
    if formula is None:
        return jsonify({"error": f"Unknown formula: {name}"}), 404

    data = request.get_json(silent=True) or {}
    try:
        result = formula(**data)
    except ProjectionError as e:
        return jsonify({"error": e.to_dict()}), 422
    except OverflowError:
        error = ProjectionError(f"Result of {name} is too large to represent")
        return jsonify({"error": error.to_dict()}), 422
    except TypeError as e:
        return jsonify({"error": f"Invalid arguments for {name}: {str(e)}"}), 400
    except Exception as e:
        current_app.logger.error(f"Error evaluating formula {name}: {str(e)}")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"formula": name, "result": result.model_dump(mode="json")})


@projection_bp.route("/schema/profile", methods=["GET"])
def profile_schema() -> Any:
    """Get the JSON schemas for profiles and projection settings."""
    return jsonify(
        {"profile": generate_profile_schema(), "settings": generate_settings_schema()}
    )
