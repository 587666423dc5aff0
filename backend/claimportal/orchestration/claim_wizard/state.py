"""
Claim Wizard State Definition

Defines the ClaimDraft aggregate collected by the wizard and the session that
wraps it. Every model is frozen: the draft only changes through the reducer
functions at the bottom of this module, each of which returns a new value.
Sessions are serialised with model_dump(mode="json") into the session store.
"""
from typing import Any, Dict, List, Optional, Tuple
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
import uuid

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from claimportal.core.exceptions import ClaimValidationError
from claimportal.db.models import ClaimType


class DeviceConfirmation(str, Enum):
    """Does the insured device on the policy match the claimed one."""
    UNCONFIRMED = "unconfirmed"
    CORRECT = "correct"
    INCORRECT = "incorrect"


class EvidenceRole(str, Enum):
    """Attachment buckets, keyed by what the file proves."""
    DEFECT_PHOTO = "defect_photo"
    SUPPORTING_DOCUMENT = "supporting_document"
    PROOF_OF_OWNERSHIP = "proof_of_ownership"
    DAMAGE_PHOTO = "damage_photo"
    ITEM_PHOTO = "item_photo"
    ITEM_OWNERSHIP = "item_ownership"
    THEFT_PHOTO = "theft_photo"  # scene of the theft
    THEFT_OWNERSHIP = "theft_ownership"
    POLICE_REPORT = "police_report"
    OTHER_EVIDENCE = "other_evidence"


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class DeviceClaimInfo(_Frozen):
    """Device the claimant says the claim is about."""
    confirmation: DeviceConfirmation = DeviceConfirmation.UNCONFIRMED
    device_name: str = ""
    category: str = ""
    make: str = ""
    model: str = ""
    serial_number: str = ""
    color: str = ""
    purchase_price: Optional[Decimal] = None
    features: str = ""


class FaultDetails(_Frozen):
    """Breakdown narrative."""
    fault_category: str = ""
    specific_issue: str = ""
    severity: str = ""
    problem_date: Optional[date] = None
    frequency: str = ""  # intermittent, constant
    additional_comments: str = ""
    previous_repairs: str = ""
    warranty_notice_acknowledged: bool = False


class IncidentDetails(_Frozen):
    """Accidental damage narrative."""
    incident_date: Optional[date] = None
    incident_time: str = ""  # HH:MM
    description: str = ""
    damage_type: str = ""
    damage_area: str = ""
    severity: str = ""
    comments: str = ""


class TheftDetails(_Frozen):
    """Theft or loss narrative."""
    theft_date: Optional[date] = None
    theft_time: str = ""
    location: str = ""
    description: str = ""
    police_notified: bool = False
    police_report_number: str = ""
    police_authority: str = ""
    recovery_efforts: str = ""


class Declaration(_Frozen):
    terms_agreed: bool = False
    signature_name: str = ""


class Attachment(_Frozen):
    """A file accepted into the draft and held in the staging area."""
    attachment_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    role: EvidenceRole
    file_name: str
    content_type: str
    size: int
    staged_path: str
    added_at: datetime = Field(default_factory=datetime.utcnow)


class AIAnalysisSnapshot(_Frozen):
    """Advisory output kept for the first photo's document metadata."""
    attachment_id: str
    assessment: str = ""
    severity_level: Optional[str] = None
    device_category: Optional[str] = None
    damage_type: Optional[str] = None
    device_mismatch: bool = False
    mismatch_warning: Optional[str] = None
    has_visible_physical_damage: bool = False
    physical_damage_description: Optional[str] = None
    analyzed_at: datetime = Field(default_factory=datetime.utcnow)


class ClaimDraft(_Frozen):
    """The single aggregate a wizard session collects."""
    claim_type: Optional[ClaimType] = None
    device: DeviceClaimInfo = DeviceClaimInfo()
    fault: FaultDetails = FaultDetails()
    incident: IncidentDetails = IncidentDetails()
    theft: TheftDetails = TheftDetails()
    declaration: Declaration = Declaration()
    attachments: Tuple[Attachment, ...] = ()
    ai_analysis: Optional[AIAnalysisSnapshot] = None

    def attachments_for(self, *roles: EvidenceRole) -> List[Attachment]:
        return [a for a in self.attachments if a.role in roles]

    def count(self, *roles: EvidenceRole) -> int:
        return len(self.attachments_for(*roles))

    def user_severity(self) -> str:
        if self.claim_type == ClaimType.DAMAGE:
            return self.incident.severity
        return self.fault.severity


class WizardSession(_Frozen):
    """Position pointer plus draft for one claimant's wizard."""
    session_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    owner_id: str
    policy_id: Optional[str] = None
    policy_preselected: bool = False
    position: int = 0
    draft: ClaimDraft = ClaimDraft()

    # Issued when the submission stage is first reached, reused on retries
    idempotency_key: Optional[str] = None

    # Filled once the submission pipeline has produced a claim
    claim_id: Optional[str] = None
    claim_number: Optional[str] = None
    decision: Optional[str] = None
    decision_reason: Optional[str] = None

    history: Tuple[Dict[str, Any], ...] = ()
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def is_closed(self) -> bool:
        return self.claim_id is not None

    def to_store(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")

    @classmethod
    def from_store(cls, data: Dict[str, Any]) -> "WizardSession":
        return cls.model_validate(data)


def create_wizard_session(owner_id: str, policy_id: Optional[str] = None) -> WizardSession:
    """
    Create a new wizard session.

    A policy chosen outside the wizard skips the policy stage.
    """
    return WizardSession(
        owner_id=owner_id,
        policy_id=policy_id,
        policy_preselected=policy_id is not None,
        position=1 if policy_id is not None else 0,
    )


# ============================================================================
# Reducers
# ============================================================================

# Draft sections, by attribute name, and the model that validates them
SECTION_MODELS = {
    "device": DeviceClaimInfo,
    "fault": FaultDetails,
    "incident": IncidentDetails,
    "theft": TheftDetails,
    "declaration": Declaration,
}

# Device fields the claimant may edit by hand. Confirmation goes through confirm_device.
MANUAL_DEVICE_FIELDS = frozenset(
    {"device_name", "category", "make", "model", "serial_number", "color", "purchase_price", "features"}
)


def _error_messages(exc: ValidationError) -> List[str]:
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()))
        messages.append(f"{location}: {error.get('msg')}" if location else error.get("msg", ""))
    return messages


def update_section(
    draft: ClaimDraft,
    section: str,
    changes: Dict[str, Any],
) -> ClaimDraft:
    """
    Merge field changes into one draft section.

    Raises:
        ClaimValidationError: unknown section, unknown field or bad value
    """
    model = SECTION_MODELS.get(section)
    if model is None:
        raise ClaimValidationError(f"Unknown draft section: {section}", [f"{section}: unknown section"])

    if section == "device":
        forbidden = set(changes) - MANUAL_DEVICE_FIELDS
        if forbidden:
            raise ClaimValidationError(
                "Device fields cannot be changed this way",
                [f"device.{name}: not editable" for name in sorted(forbidden)],
            )

    current = getattr(draft, section)
    try:
        updated = model.model_validate({**current.model_dump(), **changes})
    except ValidationError as exc:
        raise ClaimValidationError(
            f"Invalid {section} details",
            [f"{section}.{message}" for message in _error_messages(exc)],
        )
    return draft.model_copy(update={section: updated})


def select_claim_type(draft: ClaimDraft, claim_type: ClaimType) -> ClaimDraft:
    return draft.model_copy(update={"claim_type": ClaimType(claim_type)})


def confirm_device(
    draft: ClaimDraft,
    confirmation: DeviceConfirmation,
    insured_device: Optional[Any],
) -> ClaimDraft:
    """
    Record whether the insured device is the claimed one.

    correct copies name, model and serial from the insured record; category,
    make and color still have to be entered. incorrect wipes every device
    field so the claimant re-enters the device from scratch.
    """
    confirmation = DeviceConfirmation(confirmation)
    if confirmation == DeviceConfirmation.UNCONFIRMED:
        raise ClaimValidationError("Choose whether the device details are correct", ["device.confirmation: required"])

    if confirmation == DeviceConfirmation.CORRECT:
        if insured_device is None:
            raise ClaimValidationError(
                "There is no insured device to confirm",
                ["device.confirmation: no insured device on policy"],
            )
        device = draft.device.model_copy(update={
            "confirmation": confirmation,
            "device_name": insured_device.product_name or "",
            "model": insured_device.model or "",
            "serial_number": insured_device.serial_number or "",
        })
    else:
        device = DeviceClaimInfo(confirmation=confirmation)

    return draft.model_copy(update={"device": device})


def add_attachment(draft: ClaimDraft, attachment: Attachment) -> ClaimDraft:
    return draft.model_copy(update={"attachments": draft.attachments + (attachment,)})


def remove_attachment(draft: ClaimDraft, attachment_id: str) -> Tuple[ClaimDraft, Optional[Attachment]]:
    """Drop an attachment. Returns the new draft and the removed entry (or None)."""
    removed = next((a for a in draft.attachments if a.attachment_id == attachment_id), None)
    if removed is None:
        return draft, None
    remaining = tuple(a for a in draft.attachments if a.attachment_id != attachment_id)
    updates: Dict[str, Any] = {"attachments": remaining}
    if draft.ai_analysis and draft.ai_analysis.attachment_id == attachment_id:
        updates["ai_analysis"] = None
    return draft.model_copy(update=updates), removed


def record_ai_analysis(draft: ClaimDraft, snapshot: AIAnalysisSnapshot) -> ClaimDraft:
    return draft.model_copy(update={"ai_analysis": snapshot})
