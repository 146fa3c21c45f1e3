"""Translate domain exceptions into HTTP responses"""

import logging

from fastapi import HTTPException

from vedi_payments.domain.exceptions import (
    DomainException,
    ExternalServiceError,
    IntentStateError,
    NotFoundError,
    PermissionDeniedError,
    SplitIntegrityError,
    ValidationError,
)

logger = logging.getLogger(__name__)

# Most specific first: IntentStateError is a ValidationError
STATUS_CODES = (
    (IntentStateError, 409),
    (ValidationError, 422),
    (NotFoundError, 404),
    (PermissionDeniedError, 403),
    (ExternalServiceError, 503),
    (SplitIntegrityError, 500),
)


def status_for(error: DomainException) -> int:
    for error_type, status_code in STATUS_CODES:
        if isinstance(error, error_type):
            return status_code
    return 500


def to_http_exception(error: DomainException, request_id: str) -> HTTPException:
    """
    Log the full error with its context and return the caller-facing version.

    Validation and state errors keep their message (it describes the caller's
    own input); everything else answers with the generic public message.
    """
    status_code = status_for(error)
    extra = {"request_id": request_id, "error_type": type(error).__name__, **error.context}

    if status_code >= 500:
        logger.error(f"{type(error).__name__}: {error}", extra=extra)
    else:
        logger.warning(f"{type(error).__name__}: {error}", extra=extra)

    detail = str(error) if isinstance(error, ValidationError) else error.public_message
    return HTTPException(status_code=status_code, detail=detail)
