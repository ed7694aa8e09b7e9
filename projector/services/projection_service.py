"""
Projection service for coordinating profile migration, projection runs and
milestone derivation.

This service is the boundary between stored (possibly legacy) profiles and
the pure projection engine. Engine errors are caught here, logged, and
reported alongside an empty projection so callers can degrade gracefully.
"""

import logging
import threading
from datetime import date
from typing import Any, Callable, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field, ValidationError

from projector.config import Settings
from projector.models.contributions import (
    ContributionConfig,
    create_default_contribution_config,
    load_contribution_config,
)
from projector.models.errors import (
    MissingRequiredField,
    ProjectionError,
    translate_validation_error,
)
from projector.models.liquidity import (
    LiquidityAnalysis,
    Recommendation,
    analyze_liquidity,
    recommendations,
)
from projector.models.migrations import migrate_profile
from projector.models.milestones import Milestone, UserGoal, derive_milestones
from projector.models.profile import FinancialProfile, ProjectionSettings
from projector.models.projection_engine import ProjectionEngine, ProjectionResult

logger = logging.getLogger(__name__)


class ProjectionOutcome(BaseModel):
    """Result of a service run: projection, milestones and any error."""

    projection: ProjectionResult = Field(default_factory=ProjectionResult.empty)
    milestones: List[Milestone] = Field(default_factory=list)
    error: Optional[Dict[str, Any]] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class LiquidityOutcome(BaseModel):
    """Liquidity analysis of one projection month."""

    analysis: LiquidityAnalysis
    recommendations: List[Recommendation] = Field(default_factory=list)


class ProjectionService:
    """Service for running projections from stored profiles."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        config: Optional[ContributionConfig] = None,
    ) -> None:
        """Initialize the projection service.

        Args:
            settings: Application settings (defaults apply when None)
            config: Contribution rules; when None they are loaded from
                ``settings.contribution_table_path`` or the built-in tables

        Raises:
            ConfigurationGap: If the configured contribution tables are invalid
        """
        self.settings = settings
        if config is None:
            table_path = settings.contribution_table_path if settings else None
            if table_path:
                logger.info(f"Loading contribution tables from {table_path}")
                config = load_contribution_config(table_path)
            else:
                config = create_default_contribution_config()
        self.engine = ProjectionEngine(config)

    @property
    def retirement_age(self) -> int:
        return self.settings.retirement_age if self.settings else 65

    @property
    def minimum_cash_buffer(self) -> float:
        return self.settings.minimum_cash_buffer if self.settings else 1000.0

    def prepare(
        self, raw_profile: Optional[Dict[str, Any]], raw_settings: Optional[Dict[str, Any]]
    ) -> Tuple[FinancialProfile, ProjectionSettings]:
        """
        Migrate a stored profile and validate projection settings.

        Raises:
            ProjectionError: If either input is invalid
        """
        profile = migrate_profile(raw_profile)

        if raw_settings is None:
            raise MissingRequiredField("settings")
        data = dict(raw_settings)
        if "savings_goal" not in data and self.settings is not None:
            data["savings_goal"] = self.settings.default_savings_goal
        try:
            settings = ProjectionSettings.model_validate(data)
        except ValidationError as e:
            raise translate_validation_error(e, "settings") from e

        max_years = self.settings.max_projection_years if self.settings else 100
        if settings.years > max_years:
            raise ProjectionError(
                f"Projection horizon of {settings.years} years exceeds the "
                f"maximum of {max_years}",
                field="settings.years",
            )
        return profile, settings

    def run(
        self,
        raw_profile: Optional[Dict[str, Any]],
        raw_settings: Optional[Dict[str, Any]],
        today: Optional[date] = None,
        user_goals: Optional[List[Dict[str, Any]]] = None,
        should_cancel: Optional[Callable[[], bool]] = None,
    ) -> ProjectionOutcome:
        """Run a projection, falling back to an empty one on engine errors.

        Args:
            raw_profile: Stored profile of any supported schema version
            raw_settings: Projection settings
            today: Reference date (defaults to the current date)
            user_goals: User-authored goals to merge with system milestones
            should_cancel: Optional cancellation callback

        Returns:
            Projection outcome; ``error`` is set when the run failed
        """
        today = today or date.today()
        try:
            profile, settings = self.prepare(raw_profile, raw_settings)
            goals = [self._parse_goal(g) for g in user_goals or []]
            result = self.engine.project(
                profile, settings, today=today, should_cancel=should_cancel
            )
            milestones = derive_milestones(
                result, goals, profile, settings, self.retirement_age
            )
            return ProjectionOutcome(projection=result, milestones=milestones)
        except ProjectionError as e:
            logger.error(f"Projection failed ({e.code}): {e.message}")
            return ProjectionOutcome(projection=ProjectionResult.empty(), error=e.to_dict())

    def analyze_month(
        self,
        raw_profile: Optional[Dict[str, Any]],
        raw_settings: Optional[Dict[str, Any]],
        month_index: int = 1,
        minimum_buffer: Optional[float] = None,
        today: Optional[date] = None,
    ) -> LiquidityOutcome:
        """
        Project a profile and analyse the liquidity of one month.

        Raises:
            ProjectionError: If the inputs are invalid
            IndexError: If ``month_index`` is outside the projection
        """
        profile, settings = self.prepare(raw_profile, raw_settings)
        result = self.engine.project(profile, settings, today=today or date.today())
        if not 1 <= month_index <= len(result.months):
            raise IndexError(
                f"Month index {month_index} is outside the projection (1-{len(result.months)})"
            )

        buffer = self.minimum_cash_buffer if minimum_buffer is None else minimum_buffer
        analysis = analyze_liquidity(result.month_at(month_index), profile, buffer)
        return LiquidityOutcome(
            analysis=analysis,
            recommendations=recommendations(analysis, profile.salary_day),
        )

    @staticmethod
    def _parse_goal(raw_goal: Dict[str, Any]) -> UserGoal:
        try:
            return UserGoal.model_validate(raw_goal)
        except ValidationError as e:
            raise translate_validation_error(e, "goals") from e


class ProjectionSubscription:
    """
    Caller-owned observer that recomputes a projection when inputs change.

    Each update bumps a generation counter. A result is published only if no
    newer update started while it was computing, so the latest inputs win.
    """

    def __init__(
        self,
        service: ProjectionService,
        today: Optional[Callable[[], date]] = None,
    ) -> None:
        self.service = service
        self._today = today or date.today
        self._lock = threading.Lock()
        self._generation = 0
        self._subscribers: List[Callable[[ProjectionOutcome], None]] = []
        self.raw_profile: Optional[Dict[str, Any]] = None
        self.raw_settings: Optional[Dict[str, Any]] = None
        self.user_goals: List[Dict[str, Any]] = []
        self.latest: Optional[ProjectionOutcome] = None

    @property
    def generation(self) -> int:
        return self._generation

    def subscribe(
        self, callback: Callable[[ProjectionOutcome], None]
    ) -> Callable[[], None]:
        """Register a callback; returns a function that unsubscribes it."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def update(
        self,
        raw_profile: Optional[Dict[str, Any]] = None,
        raw_settings: Optional[Dict[str, Any]] = None,
        user_goals: Optional[List[Dict[str, Any]]] = None,
    ) -> Optional[ProjectionOutcome]:
        """
        Replace any of the inputs and recompute.

        Returns:
            The new outcome, or None if a newer update superseded this one
        """
        with self._lock:
            if raw_profile is not None:
                self.raw_profile = raw_profile
            if raw_settings is not None:
                self.raw_settings = raw_settings
            if user_goals is not None:
                self.user_goals = user_goals
            self._generation += 1
            generation = self._generation
            inputs = (self.raw_profile, self.raw_settings, list(self.user_goals))

        outcome = self.service.run(
            inputs[0], inputs[1], today=self._today(), user_goals=inputs[2]
        )

        with self._lock:
            if generation != self._generation:
                logger.debug(f"Discarding superseded projection generation {generation}")
                return None
            self.latest = outcome

        for callback in list(self._subscribers):
            callback(outcome)
        return outcome
