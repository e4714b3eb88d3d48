"""Centralized error handlers."""

from __future__ import annotations

import logging

from flask import Flask, g
from marshmallow import ValidationError as MarshmallowValidationError
from sqlalchemy.exc import IntegrityError
from werkzeug.exceptions import HTTPException

from matka.errors import AppError, ConflictError, ValidationError
from matka.utils.responses import fail

logger = logging.getLogger(__name__)


def _discard_request_writes() -> None:
    # Handled errors reach teardown with exc=None, which would commit.
    session = getattr(g, "db", None)
    if session is not None:
        session.rollback()


def _first_message(messages: object) -> str | None:
    """Surface the first field message so clients get an actionable error."""

    if isinstance(messages, dict):
        for value in messages.values():
            found = _first_message(value)
            if found:
                return found
    elif isinstance(messages, list) and messages:
        return _first_message(messages[0])
    elif isinstance(messages, str):
        return messages
    return None


def register_error_handlers(app: Flask) -> None:
    """Register error handlers for the Flask app."""

    @app.errorhandler(AppError)
    def _handle_app_error(exc: AppError):
        _discard_request_writes()
        return fail(exc.code, exc.message, exc.status_code, exc.details)

    @app.errorhandler(MarshmallowValidationError)
    def _handle_schema_error(exc: MarshmallowValidationError):
        _discard_request_writes()
        wrapped = ValidationError(message=_first_message(exc.messages) or "Validation error", details=exc.messages)
        return fail(wrapped.code, wrapped.message, wrapped.status_code, wrapped.details)

    @app.errorhandler(IntegrityError)
    def _handle_integrity_error(exc: IntegrityError):
        _discard_request_writes()
        logger.info("Integrity error", exc_info=exc)
        wrapped = ConflictError(details=str(exc.orig) if exc.orig else str(exc))
        return fail(wrapped.code, wrapped.message, wrapped.status_code, wrapped.details)

    @app.errorhandler(HTTPException)
    def _handle_http_exception(exc: HTTPException):
        status = int(getattr(exc, "code", 500) or 500)
        if status == 404:
            return fail("not_found", "Not found", 404)

        return fail(
            "http_error",
            getattr(exc, "description", "HTTP error"),
            status,
            details={"name": getattr(exc, "name", "HTTPException")},
        )

    @app.errorhandler(Exception)
    def _handle_unexpected(exc: Exception):
        _discard_request_writes()
        logger.exception("Unhandled exception")
        return fail("internal_error", "Internal server error", 500)
