"""
Claim Wizard Stage Table

One ordered stage sequence per claim type. Each stage names the draft
sections and evidence roles it collects, and the predicates the navigator
evaluates on entry and exit. The last stage of every sequence is the
decision display, which is only reachable through submission.
"""
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

from claimportal.db.models import ClaimType
from claimportal.orchestration.claim_wizard import evidence
from claimportal.orchestration.claim_wizard.evidence import StageContext
from claimportal.orchestration.claim_wizard.state import ClaimDraft, EvidenceRole


Predicate = Callable[[ClaimDraft, StageContext], List[str]]


def _always(draft: ClaimDraft, ctx: StageContext) -> List[str]:
    return []


@dataclass(frozen=True)
class Stage:
    """A single wizard stage."""
    stage_id: str
    title: str
    entry: Predicate = _always
    exit: Predicate = _always
    sections: Tuple[str, ...] = ()
    evidence_roles: Tuple[EvidenceRole, ...] = ()
    device_confirmation: bool = False
    advisories: Optional[Predicate] = None
    is_terminal: bool = False


POLICY = Stage(
    stage_id="policy",
    title="Select Policy",
    exit=evidence.policy_selected,
)

CLAIM_TYPE = Stage(
    stage_id="claim_type",
    title="Claim Type",
    entry=evidence.policy_selected,
    exit=evidence.claim_type_chosen,
)

DECISION = Stage(
    stage_id="decision",
    title="Decision",
    entry=evidence.policy_and_claim_type,
    is_terminal=True,
)

_BREAKDOWN = (
    POLICY,
    CLAIM_TYPE,
    Stage(
        stage_id="device",
        title="Device Details",
        entry=evidence.policy_and_claim_type,
        exit=evidence.breakdown_device,
        sections=("device",),
        device_confirmation=True,
    ),
    Stage(
        stage_id="defect_photos",
        title="Photos of the Defect",
        entry=evidence.policy_and_claim_type,
        exit=evidence.breakdown_photos,
        evidence_roles=(EvidenceRole.DEFECT_PHOTO,),
    ),
    Stage(
        stage_id="fault_details",
        title="Fault Details",
        entry=evidence.policy_and_claim_type,
        exit=evidence.breakdown_fault,
        sections=("fault",),
        advisories=evidence.breakdown_fault_advisories,
    ),
    Stage(
        stage_id="documents",
        title="Supporting Documents",
        entry=evidence.policy_and_claim_type,
        exit=evidence.breakdown_documents,
        evidence_roles=(EvidenceRole.PROOF_OF_OWNERSHIP, EvidenceRole.SUPPORTING_DOCUMENT),
    ),
    DECISION,
)

_DAMAGE = (
    POLICY,
    CLAIM_TYPE,
    Stage(
        stage_id="damage_photos",
        title="Photos of the Damage",
        entry=evidence.policy_and_claim_type,
        exit=evidence.damage_photos,
        evidence_roles=(EvidenceRole.DAMAGE_PHOTO,),
    ),
    Stage(
        stage_id="incident",
        title="Incident Details",
        entry=evidence.policy_and_claim_type,
        exit=evidence.damage_incident,
        sections=("device", "incident"),
        device_confirmation=True,
    ),
    Stage(
        stage_id="damage_details",
        title="Damage Details",
        entry=evidence.policy_and_claim_type,
        exit=evidence.damage_details,
        sections=("incident",),
    ),
    Stage(
        stage_id="ownership",
        title="Proof of Ownership",
        entry=evidence.policy_and_claim_type,
        exit=evidence.damage_documents,
        evidence_roles=(EvidenceRole.PROOF_OF_OWNERSHIP,),
    ),
    Stage(
        stage_id="declaration",
        title="Declaration",
        entry=evidence.policy_and_claim_type,
        exit=evidence.declaration_problems,
        sections=("declaration",),
    ),
    DECISION,
)

_THEFT = (
    POLICY,
    CLAIM_TYPE,
    Stage(
        stage_id="item",
        title="Stolen or Lost Item",
        entry=evidence.policy_and_claim_type,
        exit=evidence.theft_item,
        sections=("device",),
        evidence_roles=(EvidenceRole.ITEM_PHOTO, EvidenceRole.ITEM_OWNERSHIP),
        device_confirmation=True,
    ),
    Stage(
        stage_id="theft_incident",
        title="Theft Details",
        entry=evidence.policy_and_claim_type,
        exit=evidence.theft_incident,
        sections=("theft",),
        evidence_roles=(
            EvidenceRole.THEFT_PHOTO,
            EvidenceRole.THEFT_OWNERSHIP,
            EvidenceRole.POLICE_REPORT,
            EvidenceRole.OTHER_EVIDENCE,
        ),
    ),
    Stage(
        stage_id="declaration",
        title="Declaration",
        entry=evidence.policy_and_claim_type,
        exit=evidence.declaration_problems,
        sections=("declaration",),
    ),
    DECISION,
)

STAGE_TABLE: Dict[ClaimType, Tuple[Stage, ...]] = {
    ClaimType.BREAKDOWN: _BREAKDOWN,
    ClaimType.DAMAGE: _DAMAGE,
    ClaimType.THEFT: _THEFT,
}

# Before a claim type is chosen only the shared prefix is known
COMMON_STAGES: Tuple[Stage, ...] = (POLICY, CLAIM_TYPE)


def stages_for(claim_type: Optional[ClaimType]) -> Tuple[Stage, ...]:
    if claim_type is None:
        return COMMON_STAGES
    return STAGE_TABLE[ClaimType(claim_type)]


def describe_stages(claim_type: Optional[ClaimType]) -> List[Dict[str, object]]:
    """Stage list for clients to render a progress bar."""
    return [
        {
            "stage_id": stage.stage_id,
            "title": stage.title,
            "sections": list(stage.sections),
            "evidence_roles": [role.value for role in stage.evidence_roles],
            "device_confirmation": stage.device_confirmation,
            "is_terminal": stage.is_terminal,
        }
        for stage in stages_for(claim_type)
    ]
