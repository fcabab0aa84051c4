import logging

from fastapi import HTTPException

from member_trust_service.app.service.exceptions import (
    BaseTrustServiceError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    StorageFailure,
    ValidationError,
)

logger = logging.getLogger(__name__)

# Most specific first; the detail is always the error's user_message, never internal ids.
STATUS_BY_ERROR = (
    (ValidationError, 400),
    (ForbiddenError, 403),
    (NotFoundError, 404),
    (ConflictError, 409),
    (StorageFailure, 503),
)


def to_http_exception(error: BaseTrustServiceError) -> HTTPException:
    for error_type, status_code in STATUS_BY_ERROR:
        if isinstance(error, error_type):
            logger.warning(f"{type(error).__name__} mapped to HTTP {status_code}: {error.user_message}")
            return HTTPException(status_code=status_code, detail=error.user_message)
    logger.error(f"Unmapped service error {type(error).__name__}: {error.user_message}", exc_info=error)
    return HTTPException(status_code=500, detail="An unexpected error occurred.")
