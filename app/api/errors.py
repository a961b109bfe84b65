from __future__ import annotations

from fastapi import HTTPException, status

from app.domain.errors import (
    AssetLifecycleError,
    ConflictError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)

_STATUS_CODES: tuple[tuple[type[AssetLifecycleError], int], ...] = (
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (ConflictError, status.HTTP_409_CONFLICT),
    (InvalidStateError, status.HTTP_409_CONFLICT),
)


def to_http_exception(exc: AssetLifecycleError) -> HTTPException:
    status_code = status.HTTP_400_BAD_REQUEST
    for error_type, code in _STATUS_CODES:
        if isinstance(exc, error_type):
            status_code = code
            break
    return HTTPException(
        status_code=status_code,
        detail={"code": exc.code, "message": exc.message},
    )
