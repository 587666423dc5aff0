"""
Claim wizard: draft state, stage table, evidence rules and navigator.
"""
from claimportal.orchestration.claim_wizard.state import (
    ClaimDraft,
    DeviceConfirmation,
    EvidenceRole,
    WizardSession,
    create_wizard_session,
)

__all__ = [
    "ClaimDraft",
    "DeviceConfirmation",
    "EvidenceRole",
    "WizardSession",
    "create_wizard_session",
]
