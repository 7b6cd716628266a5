import logging
from datetime import datetime

from fastapi import HTTPException, status
from sqlalchemy.exc import SQLAlchemyError

from backend.core.errors import (
    AccessDenied,
    BookingServiceError,
    NotFound,
    StateConflict,
    ValidationFailure,
)
from backend.database import ensure_booking_schema

logger = logging.getLogger(__name__)

DATABASE_UNAVAILABLE_DETAIL = 'Database unavailable. Verify DATABASE_URL and database credentials.'

_STATUS_BY_FAILURE = (
    (NotFound, status.HTTP_404_NOT_FOUND),
    (StateConflict, status.HTTP_409_CONFLICT),
    (AccessDenied, status.HTTP_403_FORBIDDEN),
    (ValidationFailure, status.HTTP_400_BAD_REQUEST),
)


def to_http_exception(exc: BookingServiceError) -> HTTPException:
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    for failure_type, mapped_status in _STATUS_BY_FAILURE:
        if isinstance(exc, failure_type):
            status_code = mapped_status
            break
    return HTTPException(status_code=status_code, detail={'code': exc.code, 'message': exc.message})


def database_unavailable(exc: SQLAlchemyError) -> HTTPException:
    logger.error('Database operation failed: %s', exc)
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=DATABASE_UNAVAILABLE_DETAIL,
    )


def ensure_database_ready() -> None:
    try:
        ensure_booking_schema()
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc


def to_server_time(value: datetime) -> datetime:
    """Convert an aware datetime to naive server-local time."""
    if value.tzinfo is not None:
        return value.astimezone().replace(tzinfo=None)
    return value
