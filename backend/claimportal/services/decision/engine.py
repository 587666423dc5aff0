"""
Decision Engine

Computes the automatic adjudication outcome for a submitted device claim.
Rules are evaluated in priority order and the first one that applies wins:
- ACCEPTED: every check passed, the claim is notified to the back office
- REJECTED: the fault is still covered by the manufacturer warranty
- REFERRED: manual review, either a verification mismatch or missing evidence

The engine re-derives evidence completeness from the draft instead of
trusting the stage navigator.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from claimportal.db.models import ClaimDecision, ClaimType
from claimportal.orchestration.claim_wizard.evidence import OWNERSHIP_ROLES
from claimportal.orchestration.claim_wizard.state import ClaimDraft, EvidenceRole
from claimportal.services.device_verification import VerificationResult
from claimportal.services.warranty import WarrantyResult


@dataclass(frozen=True)
class DecisionContext:
    """Facts the rules look at."""
    claim_type: ClaimType
    draft: ClaimDraft
    verification: VerificationResult
    warranty: Optional[WarrantyResult] = None


@dataclass(frozen=True)
class Decision:
    """Outcome plus the reason persisted verbatim on the claim."""
    outcome: ClaimDecision
    reason: str
    rule_id: str
    rule_version: str
    evaluated_at: str = field(default_factory=lambda: datetime.utcnow().isoformat())


@dataclass
class DecisionRule:
    """A single decision rule."""
    rule_id: str
    description: str
    outcome: ClaimDecision
    claim_types: Tuple[ClaimType, ...] = (ClaimType.BREAKDOWN, ClaimType.DAMAGE, ClaimType.THEFT)

    def applies_to(self, claim_type: ClaimType) -> bool:
        return claim_type in self.claim_types

    def evaluate(self, ctx: DecisionContext) -> Tuple[bool, str]:
        """Evaluate if this rule applies. Returns (applies, reason)."""
        raise NotImplementedError


class VerificationMismatchRule(DecisionRule):
    """A device that does not match the insured one goes to manual review."""

    def __init__(self):
        super().__init__(
            rule_id="device_verification",
            description="Claimed device does not match the insured device",
            outcome=ClaimDecision.REFERRED,
        )

    def evaluate(self, ctx: DecisionContext) -> Tuple[bool, str]:
        if not ctx.verification.matches:
            return True, ctx.verification.reason
        return False, ""


class ManufacturerWarrantyRule(DecisionRule):
    """Breakdowns inside the manufacturer warranty go to the manufacturer."""

    def __init__(self):
        super().__init__(
            rule_id="manufacturer_warranty",
            description="Fault date within the manufacturer warranty",
            outcome=ClaimDecision.REJECTED,
            claim_types=(ClaimType.BREAKDOWN,),
        )

    def evaluate(self, ctx: DecisionContext) -> Tuple[bool, str]:
        if ctx.warranty is not None and ctx.warranty.within_warranty:
            return True, (
                f"Device is still within the manufacturer's {ctx.warranty.warranty_months}-month "
                "warranty period. Please contact the manufacturer for warranty support before "
                "submitting an extended warranty claim."
            )
        return False, ""


class DefectPhotoRule(DecisionRule):
    """Breakdown without a photo of the defect."""

    def __init__(self):
        super().__init__(
            rule_id="defect_photo_missing",
            description="No photo of the defect",
            outcome=ClaimDecision.REFERRED,
            claim_types=(ClaimType.BREAKDOWN,),
        )

    def evaluate(self, ctx: DecisionContext) -> Tuple[bool, str]:
        if ctx.draft.count(EvidenceRole.DEFECT_PHOTO) == 0:
            return True, "Claim requires supporting documentation - photos of defect needed"
        return False, ""


class DamageEvidenceRule(DecisionRule):
    """Damage claims need a damage photo and proof of ownership."""

    def __init__(self):
        super().__init__(
            rule_id="damage_evidence_missing",
            description="Damage photo or proof of ownership missing",
            outcome=ClaimDecision.REFERRED,
            claim_types=(ClaimType.DAMAGE,),
        )

    def evaluate(self, ctx: DecisionContext) -> Tuple[bool, str]:
        draft = ctx.draft
        if draft.count(EvidenceRole.DAMAGE_PHOTO) == 0 or draft.count(EvidenceRole.PROOF_OF_OWNERSHIP) == 0:
            return True, "Claim requires complete documentation"
        return False, ""


class PoliceNotificationRule(DecisionRule):
    """Thefts must have been reported to the police."""

    def __init__(self):
        super().__init__(
            rule_id="police_not_notified",
            description="Theft not reported to the police",
            outcome=ClaimDecision.REFERRED,
            claim_types=(ClaimType.THEFT,),
        )

    def evaluate(self, ctx: DecisionContext) -> Tuple[bool, str]:
        if not ctx.draft.theft.police_notified:
            return True, "Theft claims require police notification and report"
        return False, ""


class TheftEvidenceRule(DecisionRule):
    """Thefts need the police report, photos and proof of ownership."""

    def __init__(self):
        super().__init__(
            rule_id="theft_evidence_missing",
            description="Police report, item photo, scene photo or ownership proof missing",
            outcome=ClaimDecision.REFERRED,
            claim_types=(ClaimType.THEFT,),
        )

    def evaluate(self, ctx: DecisionContext) -> Tuple[bool, str]:
        draft = ctx.draft
        missing = (
            draft.count(EvidenceRole.POLICE_REPORT) == 0
            or draft.count(EvidenceRole.ITEM_PHOTO) == 0
            or draft.count(EvidenceRole.THEFT_PHOTO) == 0
            or draft.count(*OWNERSHIP_ROLES) == 0
        )
        if missing:
            return True, "Claim requires complete documentation"
        return False, ""


class AcceptanceRule(DecisionRule):
    """Fallback: everything checked out."""

    def __init__(self):
        super().__init__(
            rule_id="accepted",
            description="All checks passed",
            outcome=ClaimDecision.ACCEPTED,
        )

    def evaluate(self, ctx: DecisionContext) -> Tuple[bool, str]:
        draft = ctx.draft
        if ctx.claim_type == ClaimType.BREAKDOWN:
            fault = draft.fault
            return True, (
                f"Fault: {fault.fault_category} - {fault.specific_issue} ({fault.severity}). "
                "All documentation provided and verified, device verified"
            )
        if ctx.claim_type == ClaimType.DAMAGE:
            incident = draft.incident
            return True, (
                f"Damage: {incident.damage_type} affecting {incident.damage_area} ({incident.severity}). "
                "All required documentation provided and verified, device verified"
            )
        return True, "All documentation provided and verified, device verified"


class DecisionEngine:
    """
    Claim Decision Engine

    Evaluates a submitted claim against the ordered rule set and returns
    the first matching outcome.
    """

    RULE_VERSION = "v1.0"

    def __init__(self):
        """Initialize with default rule set, highest priority first."""
        self.rules: List[DecisionRule] = [
            VerificationMismatchRule(),
            ManufacturerWarrantyRule(),
            DefectPhotoRule(),
            DamageEvidenceRule(),
            PoliceNotificationRule(),
            TheftEvidenceRule(),
            AcceptanceRule(),
        ]

    def evaluate(self, ctx: DecisionContext) -> Decision:
        """
        Evaluate a claim and determine the outcome.

        Args:
            ctx: Verification, warranty and draft for the claim

        Returns:
            Decision from the first rule that applies
        """
        claim_type = ClaimType(ctx.claim_type)
        for rule in self.rules:
            if not rule.applies_to(claim_type):
                continue
            applies, reason = rule.evaluate(ctx)
            if applies:
                return Decision(
                    outcome=rule.outcome,
                    reason=reason,
                    rule_id=rule.rule_id,
                    rule_version=self.RULE_VERSION,
                )

        # AcceptanceRule always applies
        raise RuntimeError(f"No decision rule matched claim type {claim_type.value}")

    def get_rule_descriptions(self) -> List[Dict[str, Any]]:
        """Get descriptions of all rules for documentation."""
        return [
            {
                "rule_id": rule.rule_id,
                "description": rule.description,
                "outcome": rule.outcome.value,
                "claim_types": [ct.value for ct in rule.claim_types],
            }
            for rule in self.rules
        ]


# Singleton instance
_decision_engine: Optional[DecisionEngine] = None


def get_decision_engine() -> DecisionEngine:
    """Get or create the decision engine singleton."""
    global _decision_engine
    if _decision_engine is None:
        _decision_engine = DecisionEngine()
    return _decision_engine
