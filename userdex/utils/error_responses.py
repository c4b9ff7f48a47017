"""Helper functions for constructing structured API error responses.

Every payload gets the active request ID and a timezone-aware timestamp so the
exception handlers in :mod:`userdex.main` stay one-liners.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import UTC, datetime

from userdex.schemas.error import (
    ErrorResponse,
    ErrorType,
    RecordNotFoundResponse,
    ValidationErrorDetail,
    ValidationErrorResponse,
)
from userdex.utils.request_context import get_request_id

__all__ = [
    "build_error_response",
    "build_record_not_found_response",
    "build_validation_error_response",
]


def _current_timestamp() -> datetime:
    return datetime.now(UTC)


def build_validation_error_response(
    *,
    errors: Sequence[ValidationErrorDetail],
    message: str,
    detail: str,
    status_code: int,
    path: str,
) -> ValidationErrorResponse:
    return ValidationErrorResponse(
        error_type=ErrorType.VALIDATION_ERROR,
        message=message,
        detail=detail,
        status_code=status_code,
        timestamp=_current_timestamp(),
        request_id=get_request_id() or None,
        path=path,
        errors=list(errors),
    )


def build_error_response(
    *,
    error_type: ErrorType,
    message: str,
    detail: str,
    status_code: int,
    path: str,
    retry_after: int | None = None,
) -> ErrorResponse:
    """Construct an ``ErrorResponse``; ``retry_after`` only for retryable failures."""

    return ErrorResponse(
        error_type=error_type,
        message=message,
        detail=detail,
        status_code=status_code,
        timestamp=_current_timestamp(),
        request_id=get_request_id() or None,
        path=path,
        retry_after=retry_after,
    )


def build_record_not_found_response(
    *,
    identifier: str,
    detail: str,
    path: str,
) -> RecordNotFoundResponse:
    return RecordNotFoundResponse(
        message=f"User '{identifier}' not found",
        detail=detail,
        status_code=404,
        timestamp=_current_timestamp(),
        request_id=get_request_id() or None,
        path=path,
        identifier=identifier,
    )
