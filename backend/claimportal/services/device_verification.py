"""
Device Identity Verifier
Compares the claimed device against the device insured on the policy.
"""
from dataclasses import dataclass, field
from typing import List, Optional

from claimportal.orchestration.claim_wizard.state import DeviceClaimInfo
from claimportal.services.policy_context import InsuredDeviceInfo


NO_INSURED_DEVICE_REASON = "No insured device found on policy"
VERIFIED_REASON = "Device verified successfully"


@dataclass(frozen=True)
class VerificationResult:
    """Outcome of the identity check, never persisted on its own."""
    matches: bool
    reason: str
    mismatches: List[str] = field(default_factory=list)


def _norm(value: Optional[str]) -> str:
    return (value or "").strip().lower()


def identity_fields_match(claimed: Optional[str], insured: Optional[str]) -> bool:
    """Trimmed, case-insensitive equality."""
    return _norm(claimed) == _norm(insured)


def verify_device(
    claimed: DeviceClaimInfo,
    insured: Optional[InsuredDeviceInfo],
) -> VerificationResult:
    """
    Verify the claimed device identity.

    Name and model must match. Serial numbers are only compared when both
    sides carry one.
    """
    if insured is None:
        return VerificationResult(matches=False, reason=NO_INSURED_DEVICE_REASON)

    mismatches: List[str] = []

    claimed_name = claimed.device_name or claimed.category
    if not identity_fields_match(claimed_name, insured.product_name):
        mismatches.append("Device name mismatch")

    if not identity_fields_match(claimed.model, insured.model):
        mismatches.append("Model mismatch")

    if (
        _norm(claimed.serial_number)
        and _norm(insured.serial_number)
        and not identity_fields_match(claimed.serial_number, insured.serial_number)
    ):
        mismatches.append("Serial number mismatch")

    if mismatches:
        return VerificationResult(
            matches=False,
            reason=(
                f"Device verification failed: {', '.join(mismatches)}. "
                "Claimed device does not match insured device on policy."
            ),
            mismatches=mismatches,
        )

    return VerificationResult(matches=True, reason=VERIFIED_REASON)
