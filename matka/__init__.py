"""Matka result declaration and settlement service."""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any

from flask import Flask

try:
    from dotenv import load_dotenv
except Exception:  # pragma: no cover
    load_dotenv = None  # type: ignore[assignment]


def create_app(overrides: Mapping[str, Any] | None = None) -> Flask:
    """Application factory.

    Args:
        overrides: config values applied on top of the environment's config
            class (tests use this to point at a throwaway database).

    Returns:
        Configured Flask application.
    """
    if load_dotenv is not None:
        load_dotenv()
        env_local = Path.cwd() / ".env.local"
        if env_local.exists():
            load_dotenv(dotenv_path=env_local, override=True)

    from matka.config import load_config
    from matka.db import init_db
    from matka.error_handlers import register_error_handlers
    from matka.logging_config import configure_logging
    from matka.routes.auto_result import auto_result_bp
    from matka.routes.bets import bets_bp
    from matka.routes.health import health_bp
    from matka.routes.results import results_bp
    from matka.services.recovery_scheduler import RecoveryScheduler

    app = Flask(__name__)
    app.config.from_mapping(load_config())
    if overrides:
        app.config.update(overrides)

    configure_logging(app)
    init_db(app)
    register_error_handlers(app)

    app.register_blueprint(health_bp)
    app.register_blueprint(results_bp, url_prefix="/api")
    app.register_blueprint(bets_bp, url_prefix="/api")
    app.register_blueprint(auto_result_bp, url_prefix="/api")

    scheduler = RecoveryScheduler.from_config(app.config, app.extensions["session_factory"])
    app.extensions["recovery_scheduler"] = scheduler
    if app.config.get("AUTO_RESULT_ENABLED"):
        scheduler.start()

    return app
