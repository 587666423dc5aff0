"""
Tests for the claim decision engine.
"""
from datetime import date

import pytest

from claimportal.db.models import ClaimDecision, ClaimType
from claimportal.orchestration.claim_wizard.state import (
    Attachment,
    ClaimDraft,
    EvidenceRole,
    FaultDetails,
    IncidentDetails,
    TheftDetails,
)
from claimportal.services.decision import DecisionContext, DecisionEngine, get_decision_engine
from claimportal.services.device_verification import VerificationResult
from claimportal.services.warranty import evaluate_warranty


VERIFIED = VerificationResult(matches=True, reason="Device verified successfully")
MISMATCH = VerificationResult(
    matches=False,
    reason="Device verification failed: Model mismatch. Claimed device does not match insured device on policy.",
    mismatches=["Model mismatch"],
)


def attachment(role: EvidenceRole, name: str = "file.jpg") -> Attachment:
    content_type = "application/pdf" if name.endswith(".pdf") else "image/jpeg"
    return Attachment(role=role, file_name=name, content_type=content_type, size=100, staged_path=f"/tmp/{name}")


def breakdown_draft(*roles: EvidenceRole) -> ClaimDraft:
    return ClaimDraft(
        claim_type=ClaimType.BREAKDOWN,
        fault=FaultDetails(
            fault_category="Screen/Display",
            specific_issue="Screen flickering",
            severity="High - Major functionality affected",
            problem_date=date(2025, 6, 1),
            frequency="constant",
        ),
        attachments=tuple(attachment(role) for role in roles),
    )


def damage_draft(*roles: EvidenceRole) -> ClaimDraft:
    return ClaimDraft(
        claim_type=ClaimType.DAMAGE,
        incident=IncidentDetails(
            incident_date=date(2025, 6, 1),
            incident_time="14:30",
            description="Dropped the phone on the pavement",
            damage_type="Screen Damage",
            damage_area="Screen/Display",
            severity="Medium - Some features not working",
        ),
        attachments=tuple(attachment(role) for role in roles),
    )


def theft_draft(police_notified: bool, *roles: EvidenceRole) -> ClaimDraft:
    return ClaimDraft(
        claim_type=ClaimType.THEFT,
        theft=TheftDetails(police_notified=police_notified),
        attachments=tuple(attachment(role) for role in roles),
    )


FULL_THEFT_EVIDENCE = (
    EvidenceRole.POLICE_REPORT,
    EvidenceRole.ITEM_PHOTO,
    EvidenceRole.THEFT_PHOTO,
    EvidenceRole.ITEM_OWNERSHIP,
)


@pytest.fixture
def engine() -> DecisionEngine:
    return DecisionEngine()


class TestBreakdownDecisions:
    """Breakdown claims: warranty, photos, acceptance."""

    def test_accepted_outside_warranty(self, engine):
        draft = breakdown_draft(EvidenceRole.DEFECT_PHOTO)
        warranty = evaluate_warranty(date(2025, 6, 1), date(2024, 3, 1), 12)
        decision = engine.evaluate(DecisionContext(ClaimType.BREAKDOWN, draft, VERIFIED, warranty))

        assert decision.outcome == ClaimDecision.ACCEPTED
        assert decision.reason == (
            "Fault: Screen/Display - Screen flickering (High - Major functionality affected). "
            "All documentation provided and verified, device verified"
        )
        assert decision.rule_version == DecisionEngine.RULE_VERSION

    def test_rejected_inside_warranty(self, engine):
        draft = breakdown_draft(EvidenceRole.DEFECT_PHOTO)
        warranty = evaluate_warranty(date(2024, 5, 1), date(2024, 3, 1), 12)
        decision = engine.evaluate(DecisionContext(ClaimType.BREAKDOWN, draft, VERIFIED, warranty))

        assert decision.outcome == ClaimDecision.REJECTED
        assert "12-month warranty period" in decision.reason
        assert decision.rule_id == "manufacturer_warranty"

    def test_referred_without_defect_photo(self, engine):
        draft = breakdown_draft()
        decision = engine.evaluate(DecisionContext(ClaimType.BREAKDOWN, draft, VERIFIED, None))

        assert decision.outcome == ClaimDecision.REFERRED
        assert decision.reason == "Claim requires supporting documentation - photos of defect needed"

    def test_warranty_beats_missing_photo(self, engine):
        draft = breakdown_draft()
        warranty = evaluate_warranty(date(2024, 5, 1), date(2024, 3, 1), 12)
        decision = engine.evaluate(DecisionContext(ClaimType.BREAKDOWN, draft, VERIFIED, warranty))
        assert decision.outcome == ClaimDecision.REJECTED


class TestVerificationPriority:
    """A device mismatch is checked before anything else."""

    def test_mismatch_refers_even_inside_warranty(self, engine):
        draft = breakdown_draft(EvidenceRole.DEFECT_PHOTO)
        warranty = evaluate_warranty(date(2024, 5, 1), date(2024, 3, 1), 12)
        decision = engine.evaluate(DecisionContext(ClaimType.BREAKDOWN, draft, MISMATCH, warranty))

        assert decision.outcome == ClaimDecision.REFERRED
        assert decision.reason == MISMATCH.reason
        assert decision.rule_id == "device_verification"

    @pytest.mark.parametrize("claim_type,draft", [
        (ClaimType.DAMAGE, damage_draft(EvidenceRole.DAMAGE_PHOTO, EvidenceRole.PROOF_OF_OWNERSHIP)),
        (ClaimType.THEFT, theft_draft(True, *FULL_THEFT_EVIDENCE)),
    ])
    def test_mismatch_refers_other_types(self, engine, claim_type, draft):
        decision = engine.evaluate(DecisionContext(claim_type, draft, MISMATCH))
        assert decision.outcome == ClaimDecision.REFERRED


class TestDamageDecisions:

    def test_accepted_with_full_evidence(self, engine):
        draft = damage_draft(EvidenceRole.DAMAGE_PHOTO, EvidenceRole.PROOF_OF_OWNERSHIP)
        decision = engine.evaluate(DecisionContext(ClaimType.DAMAGE, draft, VERIFIED))

        assert decision.outcome == ClaimDecision.ACCEPTED
        assert decision.reason == (
            "Damage: Screen Damage affecting Screen/Display (Medium - Some features not working). "
            "All required documentation provided and verified, device verified"
        )

    @pytest.mark.parametrize("roles", [
        (EvidenceRole.DAMAGE_PHOTO,),
        (EvidenceRole.PROOF_OF_OWNERSHIP,),
        (),
    ])
    def test_referred_when_evidence_missing(self, engine, roles):
        decision = engine.evaluate(DecisionContext(ClaimType.DAMAGE, damage_draft(*roles), VERIFIED))
        assert decision.outcome == ClaimDecision.REFERRED
        assert decision.reason == "Claim requires complete documentation"

    def test_warranty_ignored_for_damage(self, engine):
        draft = damage_draft(EvidenceRole.DAMAGE_PHOTO, EvidenceRole.PROOF_OF_OWNERSHIP)
        warranty = evaluate_warranty(date(2024, 5, 1), date(2024, 3, 1), 12)
        decision = engine.evaluate(DecisionContext(ClaimType.DAMAGE, draft, VERIFIED, warranty))
        assert decision.outcome == ClaimDecision.ACCEPTED


class TestTheftDecisions:

    def test_accepted_with_police_report_and_evidence(self, engine):
        decision = engine.evaluate(DecisionContext(ClaimType.THEFT, theft_draft(True, *FULL_THEFT_EVIDENCE), VERIFIED))
        assert decision.outcome == ClaimDecision.ACCEPTED
        assert decision.reason == "All documentation provided and verified, device verified"

    def test_theft_ownership_counts_as_proof(self, engine):
        roles = (
            EvidenceRole.POLICE_REPORT,
            EvidenceRole.ITEM_PHOTO,
            EvidenceRole.THEFT_PHOTO,
            EvidenceRole.THEFT_OWNERSHIP,
        )
        decision = engine.evaluate(DecisionContext(ClaimType.THEFT, theft_draft(True, *roles), VERIFIED))
        assert decision.outcome == ClaimDecision.ACCEPTED

    def test_referred_without_police(self, engine):
        decision = engine.evaluate(DecisionContext(ClaimType.THEFT, theft_draft(False, *FULL_THEFT_EVIDENCE), VERIFIED))
        assert decision.outcome == ClaimDecision.REFERRED
        assert decision.reason == "Theft claims require police notification and report"

    def test_referred_without_police_report_file(self, engine):
        roles = (EvidenceRole.ITEM_PHOTO, EvidenceRole.THEFT_PHOTO, EvidenceRole.ITEM_OWNERSHIP)
        decision = engine.evaluate(DecisionContext(ClaimType.THEFT, theft_draft(True, *roles), VERIFIED))
        assert decision.outcome == ClaimDecision.REFERRED
        assert decision.reason == "Claim requires complete documentation"


class TestRuleDescriptions:

    def test_rules_listed_in_priority_order(self):
        rules = get_decision_engine().get_rule_descriptions()
        assert rules[0]["rule_id"] == "device_verification"
        assert rules[1]["rule_id"] == "manufacturer_warranty"
        assert rules[-1]["outcome"] == "accepted"

    def test_singleton(self):
        assert get_decision_engine() is get_decision_engine()
