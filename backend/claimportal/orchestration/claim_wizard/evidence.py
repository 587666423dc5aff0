"""
Evidence Collector rules.

Shape and completion rules for each wizard stage, plus the per-file
constraints applied before an attachment is accepted into the draft.
Every check returns a list of human-readable problems; an empty list
means the stage is complete.
"""
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Optional, Tuple

from claimportal.core.config import settings
from claimportal.core.exceptions import FileRejectedError
from claimportal.db.models import ClaimType
from claimportal.orchestration.claim_wizard.state import (
    ClaimDraft,
    DeviceConfirmation,
    EvidenceRole,
)
from claimportal.orchestration.claim_wizard.vocabulary import FAULT_CATEGORIES, ISSUE_FREQUENCIES
from claimportal.services.coverage_gate import get_coverage_gate
from claimportal.services.policy_context import PolicyContext
from claimportal.services.warranty import WarrantyResult


MIN_INCIDENT_DESCRIPTION = 20
MIN_RECOVERY_EFFORTS = 50

IMAGE_OR_PDF = frozenset({"image/jpeg", "image/jpg", "image/png", "application/pdf"})
PDF_ONLY = frozenset({"application/pdf"})

# Upload order per claim type; roles not listed are ignored at submission
EVIDENCE_ROLES_BY_TYPE: Dict[ClaimType, Tuple[EvidenceRole, ...]] = {
    ClaimType.BREAKDOWN: (
        EvidenceRole.DEFECT_PHOTO,
        EvidenceRole.PROOF_OF_OWNERSHIP,
        EvidenceRole.SUPPORTING_DOCUMENT,
    ),
    ClaimType.DAMAGE: (
        EvidenceRole.DAMAGE_PHOTO,
        EvidenceRole.PROOF_OF_OWNERSHIP,
    ),
    ClaimType.THEFT: (
        EvidenceRole.ITEM_PHOTO,
        EvidenceRole.ITEM_OWNERSHIP,
        EvidenceRole.POLICE_REPORT,
        EvidenceRole.THEFT_PHOTO,
        EvidenceRole.THEFT_OWNERSHIP,
        EvidenceRole.OTHER_EVIDENCE,
    ),
}

OWNERSHIP_ROLES = (EvidenceRole.ITEM_OWNERSHIP, EvidenceRole.THEFT_OWNERSHIP)


@dataclass(frozen=True)
class StageContext:
    """Read-only facts the stage rules need besides the draft."""
    policy: Optional[PolicyContext] = None
    warranty: Optional[WarrantyResult] = None
    allowed_claim_types: List[ClaimType] = field(default_factory=list)
    today: date = field(default_factory=date.today)

    @property
    def insured_device(self):
        return self.policy.insured_device if self.policy else None


# ============================================================================
# File constraints
# ============================================================================

def allowed_content_types(role: EvidenceRole) -> frozenset:
    return PDF_ONLY if role == EvidenceRole.POLICE_REPORT else IMAGE_OR_PDF


def check_file(
    role: EvidenceRole,
    content_type: Optional[str],
    size: int,
    filename: Optional[str] = None,
) -> None:
    """
    Reject a single file that breaks the type or size rules.

    Raises:
        FileRejectedError: wrong MIME type for the role, or over the size limit
    """
    content_type = (content_type or "").lower()
    if content_type not in allowed_content_types(role):
        if role == EvidenceRole.POLICE_REPORT:
            message = "Police report must be in PDF format."
        else:
            message = "Invalid file type. Please upload JPG, PNG, or PDF files only."
        raise FileRejectedError(message, reason="content_type", filename=filename)

    if size > settings.max_upload_size_bytes:
        raise FileRejectedError(
            f"File too large. Maximum size is {settings.MAX_UPLOAD_SIZE_MB}MB.",
            reason="size",
            filename=filename,
        )


def role_allowed_for(role: EvidenceRole, claim_type: Optional[ClaimType]) -> bool:
    if claim_type is None:
        return False
    return role in EVIDENCE_ROLES_BY_TYPE[ClaimType(claim_type)]


# ============================================================================
# Shared sub-flows
# ============================================================================

def _blank(value: Optional[str]) -> bool:
    return not (value or "").strip()


def _text_length(value: Optional[str]) -> int:
    return len((value or "").strip())


def _require_photo(draft: ClaimDraft, role: EvidenceRole, label: str) -> List[str]:
    return [] if draft.count(role) >= 1 else [f"Upload at least one {label}"]


def _date_problems(value: Optional[date], label: str, today: date) -> List[str]:
    if value is None:
        return [f"{label} is required"]
    if value > today:
        return [f"{label} cannot be in the future"]
    return []


def device_confirmation_problems(draft: ClaimDraft, ctx: StageContext) -> List[str]:
    """
    Device confirmation sub-flow.

    With an insured device the claimant must answer correct or incorrect.
    Category, make and color are always entered by hand; without an insured
    device, or after answering incorrect, model and purchase price are too.
    """
    device = draft.device
    problems: List[str] = []

    if ctx.insured_device is not None and device.confirmation == DeviceConfirmation.UNCONFIRMED:
        return ["Confirm whether the insured device details are correct"]

    required = {"category": "Device category", "make": "Make/brand", "color": "Color"}
    manual_entry = ctx.insured_device is None or device.confirmation == DeviceConfirmation.INCORRECT
    if manual_entry:
        required["model"] = "Model"

    for name, label in required.items():
        if _blank(getattr(device, name)):
            problems.append(f"{label} is required")

    if manual_entry and device.purchase_price is None:
        problems.append("Purchase price is required")
    elif device.purchase_price is not None and device.purchase_price < 0:
        problems.append("Purchase price cannot be negative")

    return problems


def declaration_problems(draft: ClaimDraft, ctx: StageContext) -> List[str]:
    problems = []
    if not draft.declaration.terms_agreed:
        problems.append("You must agree to the terms")
    if _blank(draft.declaration.signature_name):
        problems.append("Please provide your signature")
    return problems


# ============================================================================
# Stage rules
# ============================================================================

def policy_selected(draft: ClaimDraft, ctx: StageContext) -> List[str]:
    return [] if ctx.policy is not None else ["Select a policy"]


def claim_type_chosen(draft: ClaimDraft, ctx: StageContext) -> List[str]:
    if draft.claim_type is None:
        return ["Select a claim type"]
    if not get_coverage_gate().is_claim_type_allowed(draft.claim_type, ctx.policy):
        return [f"Claim type '{draft.claim_type.value}' is not covered by this policy"]
    return []


def policy_and_claim_type(draft: ClaimDraft, ctx: StageContext) -> List[str]:
    return policy_selected(draft, ctx) + claim_type_chosen(draft, ctx)


def breakdown_device(draft: ClaimDraft, ctx: StageContext) -> List[str]:
    return device_confirmation_problems(draft, ctx)


def breakdown_photos(draft: ClaimDraft, ctx: StageContext) -> List[str]:
    return _require_photo(draft, EvidenceRole.DEFECT_PHOTO, "photo of the defect")


def breakdown_fault(draft: ClaimDraft, ctx: StageContext) -> List[str]:
    fault = draft.fault
    problems: List[str] = []

    if _blank(fault.fault_category):
        problems.append("Fault category is required")
    elif fault.fault_category not in FAULT_CATEGORIES:
        problems.append(f"Unknown fault category: {fault.fault_category}")

    if _blank(fault.specific_issue):
        problems.append("Specific issue is required")

    problems.extend(_date_problems(fault.problem_date, "Problem date", ctx.today))

    if _blank(fault.frequency):
        problems.append("Issue frequency is required")
    elif fault.frequency not in ISSUE_FREQUENCIES:
        problems.append(f"Unknown issue frequency: {fault.frequency}")

    if ctx.warranty is not None and ctx.warranty.within_warranty and not fault.warranty_notice_acknowledged:
        problems.append("Acknowledge the manufacturer warranty notice to continue")

    return problems


def breakdown_fault_advisories(draft: ClaimDraft, ctx: StageContext) -> List[str]:
    if ctx.warranty is not None and ctx.warranty.within_warranty:
        return [ctx.warranty.advisory()]
    return []


def breakdown_documents(draft: ClaimDraft, ctx: StageContext) -> List[str]:
    # Ownership proof and supporting documents are optional for breakdowns
    return []


def damage_photos(draft: ClaimDraft, ctx: StageContext) -> List[str]:
    return _require_photo(draft, EvidenceRole.DAMAGE_PHOTO, "photo showing the damage")


def damage_incident(draft: ClaimDraft, ctx: StageContext) -> List[str]:
    incident = draft.incident
    problems = device_confirmation_problems(draft, ctx)
    problems.extend(_date_problems(incident.incident_date, "Incident date", ctx.today))
    if _blank(incident.incident_time):
        problems.append("Incident time is required")
    if _text_length(incident.description) < MIN_INCIDENT_DESCRIPTION:
        problems.append(
            f"Incident description must be at least {MIN_INCIDENT_DESCRIPTION} characters"
        )
    return problems


def damage_details(draft: ClaimDraft, ctx: StageContext) -> List[str]:
    problems = []
    if _blank(draft.incident.damage_type):
        problems.append("Damage type is required")
    if _blank(draft.incident.damage_area):
        problems.append("Affected area is required")
    return problems


def damage_documents(draft: ClaimDraft, ctx: StageContext) -> List[str]:
    if draft.count(EvidenceRole.PROOF_OF_OWNERSHIP) >= 1:
        return []
    return ["Please upload proof of ownership (receipt or invoice)"]


def theft_item(draft: ClaimDraft, ctx: StageContext) -> List[str]:
    problems = device_confirmation_problems(draft, ctx)
    problems.extend(_require_photo(draft, EvidenceRole.ITEM_PHOTO, "photo of the stolen/lost item"))
    if draft.count(EvidenceRole.ITEM_OWNERSHIP) == 0:
        problems.append("Please upload proof of ownership")
    return problems


def theft_incident(draft: ClaimDraft, ctx: StageContext) -> List[str]:
    theft = draft.theft
    problems = _date_problems(theft.theft_date, "Theft date", ctx.today)
    if _blank(theft.theft_time):
        problems.append("Theft time is required")
    if _blank(theft.location):
        problems.append("Theft location is required")
    if _text_length(theft.description) < MIN_INCIDENT_DESCRIPTION:
        problems.append(
            f"Incident description must be at least {MIN_INCIDENT_DESCRIPTION} characters"
        )
    problems.extend(_require_photo(draft, EvidenceRole.THEFT_PHOTO, "photo of the theft scene"))

    if theft.police_notified:
        if _blank(theft.police_report_number):
            problems.append("Police report number is required")
        if _blank(theft.police_authority):
            problems.append("Police authority is required")
        if draft.count(EvidenceRole.POLICE_REPORT) == 0:
            problems.append("Upload the police report (PDF)")

    if _text_length(theft.recovery_efforts) < MIN_RECOVERY_EFFORTS:
        problems.append(
            f"Recovery efforts description must be at least {MIN_RECOVERY_EFFORTS} characters"
        )
    return problems
