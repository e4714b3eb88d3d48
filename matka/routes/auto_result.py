"""Operator control of the auto-result scheduler."""

from __future__ import annotations

from flask import Blueprint, current_app

from matka.errors import AppError
from matka.services.recovery_scheduler import RecoveryScheduler
from matka.utils.responses import ok

auto_result_bp = Blueprint("auto_result", __name__)


def _scheduler() -> RecoveryScheduler:
    scheduler = current_app.extensions.get("recovery_scheduler")
    if scheduler is None:
        raise AppError(code="unavailable", message="Auto result service is not configured", status_code=503)
    return scheduler


@auto_result_bp.get("/auto-result/status")
def status():
    return ok(_scheduler().status())


@auto_result_bp.post("/auto-result/start")
def start():
    scheduler = _scheduler()
    started = scheduler.start()
    return ok({"started": started, **scheduler.status()})


@auto_result_bp.post("/auto-result/stop")
def stop():
    scheduler = _scheduler()
    stopped = scheduler.stop()
    return ok({"stopped": stopped, **scheduler.status()})


@auto_result_bp.post("/auto-result/restart")
def restart():
    scheduler = _scheduler()
    scheduler.restart()
    return ok(scheduler.status())


@auto_result_bp.post("/auto-result/run")
def run_once():
    """Run one tick synchronously and return its report."""

    return ok(_scheduler().run_once().as_dict())
