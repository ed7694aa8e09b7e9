"""Personal Finance Projector Flask Application Factory."""

import logging
from typing import Optional

from flask import Flask

from projector.config import Settings, get_global_settings
from projector.services.projection_service import ProjectionService


def create_app(settings: Optional[Settings] = None) -> Flask:
    """Create and configure the Flask application.

    Args:
        settings: Application settings (defaults to the global settings)

    Returns:
        Flask: Configured Flask application instance
    """
    app = Flask(__name__)

    # Configuration from Pydantic Settings
    settings = settings or get_global_settings()
    app.config["SECRET_KEY"] = settings.secret_key
    app.config["ENV"] = settings.app_env
    app.config["DEBUG"] = settings.app_env == "development"
    app.config["TESTING"] = settings.app_env == "testing"

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger("projector").setLevel(settings.log_level)

    app.extensions["projection_service"] = ProjectionService(settings)

    # Register blueprints
    from projector.blueprints.health import health_bp
    from projector.blueprints.projection import projection_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(projection_bp)

    return app
