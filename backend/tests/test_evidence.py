"""
Tests for evidence rules: per-file constraints and stage completion checks.
"""
from datetime import date, timedelta
from decimal import Decimal

import pytest

from claimportal.core.exceptions import FileRejectedError
from claimportal.core.config import settings
from claimportal.db.models import ClaimType
from claimportal.orchestration.claim_wizard import evidence
from claimportal.orchestration.claim_wizard.evidence import StageContext, check_file, role_allowed_for
from claimportal.orchestration.claim_wizard.state import (
    Attachment,
    ClaimDraft,
    Declaration,
    DeviceClaimInfo,
    DeviceConfirmation,
    EvidenceRole,
    FaultDetails,
    IncidentDetails,
    TheftDetails,
)
from claimportal.services.policy_context import InsuredDeviceInfo, PolicyContext
from claimportal.services.warranty import evaluate_warranty


TODAY = date(2025, 6, 15)

POLICY = PolicyContext(
    policy_id="00000000-0000-0000-0000-000000000001",
    policy_number="POL-1",
    owner_id="owner",
    start_date=date(2024, 1, 1),
    product_name="Device Protect Max",
    product_type="insurance_max",
    perils=["Breakdown", "Accidental Damage", "Theft"],
    insured_device=InsuredDeviceInfo(product_name="Apple Smartphone", model="iPhone 14"),
)

POLICY_WITHOUT_DEVICE = PolicyContext(
    policy_id="00000000-0000-0000-0000-000000000002",
    policy_number="POL-2",
    owner_id="owner",
    start_date=date(2024, 1, 1),
    product_name="Device Protect Max",
    product_type="insurance_max",
)


def ctx(policy=POLICY, warranty=None) -> StageContext:
    return StageContext(policy=policy, warranty=warranty, today=TODAY)


def attachment(role: EvidenceRole) -> Attachment:
    return Attachment(role=role, file_name="f.jpg", content_type="image/jpeg", size=10, staged_path="/tmp/f")


class TestCheckFile:
    """Per-file type and size constraints."""

    @pytest.mark.parametrize("content_type", ["image/jpeg", "image/png", "application/pdf", "IMAGE/JPG"])
    def test_photo_roles_accept_images_and_pdf(self, content_type):
        check_file(EvidenceRole.DEFECT_PHOTO, content_type, 1024)

    def test_wrong_type_rejected(self):
        with pytest.raises(FileRejectedError) as exc_info:
            check_file(EvidenceRole.DAMAGE_PHOTO, "image/gif", 1024, "anim.gif")
        assert exc_info.value.reason == "content_type"
        assert exc_info.value.message == "Invalid file type. Please upload JPG, PNG, or PDF files only."

    def test_police_report_must_be_pdf(self):
        with pytest.raises(FileRejectedError) as exc_info:
            check_file(EvidenceRole.POLICE_REPORT, "image/jpeg", 1024)
        assert exc_info.value.message == "Police report must be in PDF format."
        check_file(EvidenceRole.POLICE_REPORT, "application/pdf", 1024)

    def test_size_limit(self):
        check_file(EvidenceRole.ITEM_PHOTO, "image/png", settings.max_upload_size_bytes)
        with pytest.raises(FileRejectedError) as exc_info:
            check_file(EvidenceRole.ITEM_PHOTO, "image/png", settings.max_upload_size_bytes + 1)
        assert exc_info.value.reason == "size"

    def test_missing_content_type(self):
        with pytest.raises(FileRejectedError):
            check_file(EvidenceRole.DEFECT_PHOTO, None, 10)


class TestRolesByClaimType:

    def test_roles(self):
        assert role_allowed_for(EvidenceRole.DEFECT_PHOTO, ClaimType.BREAKDOWN)
        assert not role_allowed_for(EvidenceRole.DEFECT_PHOTO, ClaimType.DAMAGE)
        assert role_allowed_for(EvidenceRole.POLICE_REPORT, ClaimType.THEFT)
        assert not role_allowed_for(EvidenceRole.POLICE_REPORT, None)


class TestDeviceConfirmation:

    def test_unconfirmed_blocks_when_policy_has_device(self):
        problems = evidence.device_confirmation_problems(ClaimDraft(), ctx())
        assert problems == ["Confirm whether the insured device details are correct"]

    def test_correct_needs_category_make_color(self):
        draft = ClaimDraft(device=DeviceClaimInfo(
            confirmation=DeviceConfirmation.CORRECT, device_name="Apple Smartphone", model="iPhone 14",
        ))
        problems = evidence.device_confirmation_problems(draft, ctx())
        assert problems == ["Device category is required", "Make/brand is required", "Color is required"]

    def test_incorrect_needs_model_and_price(self):
        draft = ClaimDraft(device=DeviceClaimInfo(
            confirmation=DeviceConfirmation.INCORRECT, category="Laptop", make="Dell", color="Grey",
        ))
        problems = evidence.device_confirmation_problems(draft, ctx())
        assert "Model is required" in problems
        assert "Purchase price is required" in problems

    def test_no_insured_device_is_manual_entry(self):
        draft = ClaimDraft(device=DeviceClaimInfo(
            category="Laptop", make="Dell", color="Grey", model="XPS 13", purchase_price=Decimal("1200"),
        ))
        assert evidence.device_confirmation_problems(draft, ctx(POLICY_WITHOUT_DEVICE)) == []


class TestBreakdownFault:

    def _fault(self, **overrides) -> ClaimDraft:
        values = dict(
            fault_category="Battery/Power",
            specific_issue="Battery drains quickly",
            problem_date=date(2025, 6, 1),
            frequency="intermittent",
        )
        values.update(overrides)
        return ClaimDraft(claim_type=ClaimType.BREAKDOWN, fault=FaultDetails(**values))

    def test_complete(self):
        assert evidence.breakdown_fault(self._fault(), ctx()) == []

    def test_future_problem_date(self):
        problems = evidence.breakdown_fault(self._fault(problem_date=TODAY + timedelta(days=1)), ctx())
        assert problems == ["Problem date cannot be in the future"]

    def test_unknown_category_and_frequency(self):
        problems = evidence.breakdown_fault(self._fault(fault_category="Wobbly", frequency="sometimes"), ctx())
        assert "Unknown fault category: Wobbly" in problems
        assert "Unknown issue frequency: sometimes" in problems

    def test_warranty_notice_needs_acknowledgement(self):
        warranty = evaluate_warranty(date(2025, 6, 1), date(2025, 1, 1), 12)
        problems = evidence.breakdown_fault(self._fault(), ctx(warranty=warranty))
        assert problems == ["Acknowledge the manufacturer warranty notice to continue"]

        acknowledged = self._fault(warranty_notice_acknowledged=True)
        assert evidence.breakdown_fault(acknowledged, ctx(warranty=warranty)) == []
        assert evidence.breakdown_fault_advisories(acknowledged, ctx(warranty=warranty))


class TestDamageStages:

    def test_short_description(self):
        draft = ClaimDraft(
            claim_type=ClaimType.DAMAGE,
            device=DeviceClaimInfo(
                confirmation=DeviceConfirmation.CORRECT, device_name="Apple Smartphone",
                model="iPhone 14", category="Smartphone", make="Apple", color="Black",
            ),
            incident=IncidentDetails(incident_date=date(2025, 6, 1), incident_time="10:00", description="Dropped it"),
        )
        problems = evidence.damage_incident(draft, ctx())
        assert problems == ["Incident description must be at least 20 characters"]

    def test_ownership_required(self):
        draft = ClaimDraft(claim_type=ClaimType.DAMAGE)
        assert evidence.damage_documents(draft, ctx()) == [
            "Please upload proof of ownership (receipt or invoice)"
        ]
        with_proof = draft.model_copy(update={"attachments": (attachment(EvidenceRole.PROOF_OF_OWNERSHIP),)})
        assert evidence.damage_documents(with_proof, ctx()) == []


class TestTheftStages:

    def _theft(self, **overrides) -> ClaimDraft:
        values = dict(
            theft_date=date(2025, 6, 10),
            theft_time="21:15",
            location="Central Station, Platform 4",
            description="Bag taken while waiting for the train",
            police_notified=True,
            police_report_number="PR-2025-0042",
            police_authority="City Police",
            recovery_efforts="Checked lost and found, called the station office and tracked the phone online",
        )
        values.update(overrides)
        return ClaimDraft(
            claim_type=ClaimType.THEFT,
            theft=TheftDetails(**values),
            attachments=(attachment(EvidenceRole.THEFT_PHOTO), attachment(EvidenceRole.POLICE_REPORT)),
        )

    def test_complete(self):
        assert evidence.theft_incident(self._theft(), ctx()) == []

    def test_police_fields_required_when_notified(self):
        draft = self._theft(police_report_number="", police_authority="")
        draft = draft.model_copy(update={"attachments": (attachment(EvidenceRole.THEFT_PHOTO),)})
        problems = evidence.theft_incident(draft, ctx())
        assert problems == [
            "Police report number is required",
            "Police authority is required",
            "Upload the police report (PDF)",
        ]

    def test_police_fields_optional_when_not_notified(self):
        draft = self._theft(police_notified=False, police_report_number="", police_authority="")
        draft = draft.model_copy(update={"attachments": (attachment(EvidenceRole.THEFT_PHOTO),)})
        assert evidence.theft_incident(draft, ctx()) == []

    def test_recovery_efforts_length(self):
        problems = evidence.theft_incident(self._theft(recovery_efforts="Looked around"), ctx())
        assert problems == ["Recovery efforts description must be at least 50 characters"]

    def test_item_stage_needs_photo_and_ownership(self):
        draft = ClaimDraft(
            claim_type=ClaimType.THEFT,
            device=DeviceClaimInfo(
                confirmation=DeviceConfirmation.CORRECT, device_name="Apple Smartphone",
                model="iPhone 14", category="Smartphone", make="Apple", color="Black",
            ),
        )
        assert evidence.theft_item(draft, ctx()) == [
            "Upload at least one photo of the stolen/lost item",
            "Please upload proof of ownership",
        ]


class TestDeclaration:

    def test_terms_and_signature(self):
        assert evidence.declaration_problems(ClaimDraft(), ctx()) == [
            "You must agree to the terms",
            "Please provide your signature",
        ]
        signed = ClaimDraft(declaration=Declaration(terms_agreed=True, signature_name="Jane Doe"))
        assert evidence.declaration_problems(signed, ctx()) == []
