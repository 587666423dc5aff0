"""
Core module exports
"""
from claimportal.core.config import settings, get_settings
from claimportal.core.logging import logger, log_audit_event
from claimportal.core.exceptions import (
    ClaimWorkflowError,
    ClaimValidationError,
    IneligibleClaimTypeError,
    PolicyNotFoundError,
    SessionNotFoundError,
    SessionClosedError,
    FileRejectedError,
    UploadError,
    StorageError,
    AdvisoryServiceError,
    PersistenceError,
    NotificationError,
)

__all__ = [
    "settings",
    "get_settings",
    "logger",
    "log_audit_event",
    "ClaimWorkflowError",
    "ClaimValidationError",
    "IneligibleClaimTypeError",
    "PolicyNotFoundError",
    "SessionNotFoundError",
    "SessionClosedError",
    "FileRejectedError",
    "UploadError",
    "StorageError",
    "AdvisoryServiceError",
    "PersistenceError",
    "NotificationError",
]
