"""
Error taxonomy and shared error-handling helpers.

Row-local failures (validation, constraint) are skipped by the importer;
schema failures are fatal at startup; transient store failures abort one row
during import and propagate unchanged from single-record operations.
"""

from __future__ import annotations

import logging

from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError


class PlatelogError(Exception):
    """Base exception for all platelog errors."""

    pass


class ValidationError(PlatelogError):
    """A required input field is missing or malformed."""

    def __init__(self, message: str, *, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class ConstraintViolation(PlatelogError):
    """A unique or foreign-key constraint was violated."""

    reason = "constraint"


class DuplicateError(ConstraintViolation):
    """A unique value (external id, name) is already taken."""

    reason = "duplicate"

    def __init__(self, message: str, *, field: str | None = None, value: str | None = None) -> None:
        super().__init__(message)
        self.field = field
        self.value = value


class MissingParentError(ConstraintViolation):
    """A child record references a plate (or trip) that does not exist."""

    reason = "missing_parent"


class NotFoundError(PlatelogError):
    """The requested record does not exist."""

    pass


class SchemaError(PlatelogError):
    """Schema initialization or a migration step failed; the store is unusable."""

    pass


class TransientStoreError(PlatelogError):
    """I/O or locking failure while talking to the store."""

    pass


def _format_extra(extra: dict | None) -> str:
    if not extra:
        return ""
    parts: list[str] = []
    for key, value in extra.items():
        if value is None:
            continue
        parts.append(f"{key}={value}")
    return f" {' '.join(parts)}" if parts else ""


def log_exception(logger: logging.Logger, msg: str, *, extra: dict | None = None, exc: Exception | None = None) -> None:
    """
    Log an exception with context. Uses logger.exception for stack traces.
    """
    suffix = _format_extra(extra)
    if exc is not None:
        logger.error(f"{msg}{suffix}: {exc}", exc_info=exc)
        return
    logger.exception(f"{msg}{suffix}")


def _unique_field(message: str) -> str | None:
    # sqlite: "UNIQUE constraint failed: plates.external_id"
    marker = "UNIQUE constraint failed:"
    if marker not in message:
        return None
    target = message.split(marker, 1)[1].strip().split(",")[0].strip()
    return target.split(".")[-1] or None


def translate_store_error(exc: Exception) -> PlatelogError:
    """Map a SQLAlchemy/DBAPI exception onto the platelog error taxonomy."""
    if isinstance(exc, PlatelogError):
        return exc
    message = str(getattr(exc, "orig", None) or exc)
    if isinstance(exc, IntegrityError):
        lowered = message.lower()
        if "foreign key" in lowered:
            return MissingParentError(f"Referenced record does not exist: {message}")
        if "unique" in lowered:
            field = _unique_field(message)
            label = f"duplicate {field.replace('_', ' ')}" if field else "duplicate value"
            return DuplicateError(label, field=field)
        if "not null" in lowered:
            return ValidationError(f"Required field missing: {message}")
        return ConstraintViolation(message)
    if isinstance(exc, (OperationalError, DBAPIError)):
        return TransientStoreError(f"Store operation failed: {message}")
    return TransientStoreError(f"Unexpected store failure: {message}")
