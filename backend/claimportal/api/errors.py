"""
Translate claim workflow errors into HTTP responses.
"""
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from claimportal.core.exceptions import (
    ClaimValidationError,
    ClaimWorkflowError,
    FileRejectedError,
    IneligibleClaimTypeError,
    PersistenceError,
    PolicyNotFoundError,
    SessionClosedError,
    SessionNotFoundError,
    StorageError,
    UploadError,
)
from claimportal.core.logging import logger


STATUS_BY_ERROR = [
    (ClaimValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (IneligibleClaimTypeError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (PolicyNotFoundError, status.HTTP_404_NOT_FOUND),
    (SessionNotFoundError, status.HTTP_404_NOT_FOUND),
    (SessionClosedError, status.HTTP_409_CONFLICT),
    (UploadError, status.HTTP_502_BAD_GATEWAY),
    (StorageError, status.HTTP_502_BAD_GATEWAY),
    (PersistenceError, status.HTTP_500_INTERNAL_SERVER_ERROR),
]


def status_for(exc: ClaimWorkflowError) -> int:
    if isinstance(exc, FileRejectedError):
        if exc.reason == "size":
            return status.HTTP_413_CONTENT_TOO_LARGE
        return status.HTTP_415_UNSUPPORTED_MEDIA_TYPE
    for error_class, code in STATUS_BY_ERROR:
        if isinstance(exc, error_class):
            return code
    return status.HTTP_400_BAD_REQUEST


async def workflow_error_handler(request: Request, exc: ClaimWorkflowError) -> JSONResponse:
    code = status_for(exc)
    if code >= 500:
        logger.error(f"{type(exc).__name__} on {request.url.path}: {exc.message}")
    else:
        logger.info(f"{type(exc).__name__} on {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=code,
        content={
            "detail": exc.message,
            "error": type(exc).__name__,
            **exc.details,
        },
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ClaimWorkflowError, workflow_error_handler)
