"""Health check routes."""

from __future__ import annotations

from flask import Blueprint, current_app

from matka.utils.responses import ok

health_bp = Blueprint("health", __name__)


@health_bp.get("/health")
def health_check():
    """Health check endpoint."""

    scheduler = current_app.extensions.get("recovery_scheduler")
    return ok({"status": "ok", "auto_result_running": bool(scheduler and scheduler.is_running)})
