"""
Claim workflow error taxonomy.

Every error raised by the wizard, the evidence rules and the submission
pipeline derives from ClaimWorkflowError so the API layer can translate
them into HTTP responses in one place.
"""
from typing import Any, Dict, List, Optional


class ClaimWorkflowError(Exception):
    """Base class for claim workflow errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ClaimValidationError(ClaimWorkflowError):
    """Required field or attachment missing or malformed."""

    def __init__(self, message: str, errors: Optional[List[str]] = None, stage_id: Optional[str] = None):
        self.errors = errors or []
        self.stage_id = stage_id
        super().__init__(message, {"errors": self.errors, "stage_id": stage_id})


class IneligibleClaimTypeError(ClaimWorkflowError):
    """Claim type not permitted by the policy's perils or product tier."""

    def __init__(self, claim_type: str, policy_number: Optional[str] = None):
        self.claim_type = claim_type
        super().__init__(
            f"Claim type '{claim_type}' is not covered by this policy",
            {"claim_type": claim_type, "policy_number": policy_number},
        )


class PolicyNotFoundError(ClaimWorkflowError):
    """Policy does not exist or does not belong to the claimant."""


class SessionNotFoundError(ClaimWorkflowError):
    """Wizard session expired or never existed."""


class SessionClosedError(ClaimWorkflowError):
    """Wizard session already reached its decision stage."""


class FileRejectedError(ClaimWorkflowError):
    """A single file violates the type or size constraints."""

    def __init__(self, message: str, reason: str, filename: Optional[str] = None):
        self.reason = reason  # "content_type" or "size"
        self.filename = filename
        super().__init__(message, {"reason": reason, "filename": filename})


class UploadError(ClaimWorkflowError):
    """Blob storage failed or not every file could be uploaded."""

    def __init__(self, message: str, attempted: int = 0, uploaded: int = 0):
        self.attempted = attempted
        self.uploaded = uploaded
        super().__init__(message, {"attempted": attempted, "uploaded": uploaded})


class StorageError(ClaimWorkflowError):
    """Raised by a storage backend for a single failed write or read."""


class AdvisoryServiceError(ClaimWorkflowError):
    """AI analysis unavailable. Logged, never surfaced as blocking."""


class PersistenceError(ClaimWorkflowError):
    """Claim insert failed after uploads succeeded."""

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        self.original_error = original_error
        super().__init__(message)


class NotificationError(ClaimWorkflowError):
    """Outbound notification could not be dispatched. Logged only."""
