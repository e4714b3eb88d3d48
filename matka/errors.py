"""Custom exceptions for centralized error handling."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass
class AppError(Exception):
    """Base application error."""

    code: str
    message: str
    status_code: int
    details: Any | None = None


class NotFoundError(AppError):
    """Resource not found."""

    def __init__(self, message: str = "Not found", details: Any | None = None) -> None:
        super().__init__(code="not_found", message=message, status_code=404, details=details)


class ValidationError(AppError):
    """Input validation error."""

    def __init__(self, message: str = "Validation error", details: Any | None = None) -> None:
        super().__init__(code="validation_error", message=message, status_code=400, details=details)


class ConflictError(AppError):
    """Conflict (e.g., unique constraint)."""

    def __init__(self, message: str = "Conflict", details: Any | None = None) -> None:
        super().__init__(code="conflict", message=message, status_code=409, details=details)


class PreconditionError(AppError):
    """Operation rejected because the result state does not allow it yet."""

    def __init__(self, message: str = "Precondition failed", details: Any | None = None) -> None:
        super().__init__(code="precondition_failed", message=message, status_code=400, details=details)


class FeedFormatError(ValueError):
    """A raw feed entry is malformed, out of range or not for the requested day."""


class BetSelectionError(ValueError):
    """A bet selection key cannot be turned into a known bet kind."""
