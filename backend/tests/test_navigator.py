"""
Tests for the stage navigator and the wizard session lifecycle.
"""
from datetime import date, timedelta

import pytest

from claimportal.core.exceptions import (
    ClaimValidationError,
    IneligibleClaimTypeError,
    SessionClosedError,
    SessionNotFoundError,
)
from claimportal.db.models import ClaimType
from claimportal.orchestration.claim_wizard.evidence import StageContext
from claimportal.orchestration.claim_wizard.navigator import StageNavigator, build_stage_context
from claimportal.orchestration.claim_wizard.state import (
    Attachment,
    DeviceConfirmation,
    EvidenceRole,
    create_wizard_session,
)
from claimportal.services.coverage_gate import get_coverage_gate
from claimportal.services.policy_context import InsuredDeviceInfo, PolicyContext
from claimportal.services.session_store import InMemorySessionStore
from claimportal.services.warranty import add_months, evaluate_warranty


TODAY = date(2025, 6, 15)

MAX_POLICY = PolicyContext(
    policy_id="00000000-0000-0000-0000-0000000000aa",
    policy_number="POL-MAX",
    owner_id="owner",
    start_date=date(2023, 1, 1),
    product_name="Device Protect Max",
    product_type="insurance_max",
    perils=["Breakdown", "Accidental Damage", "Theft and Loss"],
    insured_device=InsuredDeviceInfo(product_name="Apple Smartphone", model="iPhone 14", serial_number="SN-1"),
)

LITE_POLICY = PolicyContext(
    policy_id="00000000-0000-0000-0000-0000000000bb",
    policy_number="POL-LITE",
    owner_id="owner",
    start_date=date(2023, 1, 1),
    product_name="Device Protect Lite",
    product_type="insurance_lite",
    perils=["Accidental Damage"],
)


def make_ctx(policy=MAX_POLICY, warranty=None) -> StageContext:
    return StageContext(
        policy=policy,
        warranty=warranty,
        allowed_claim_types=get_coverage_gate().allowed_claim_types(policy),
        today=TODAY,
    )


def photo(role: EvidenceRole) -> Attachment:
    return Attachment(role=role, file_name="photo.jpg", content_type="image/jpeg", size=512, staged_path="/tmp/p")


@pytest.fixture
def navigator() -> StageNavigator:
    return StageNavigator()


@pytest.fixture
def ctx() -> StageContext:
    return make_ctx()


def advance_ok(navigator, session, ctx):
    session, result = navigator.advance(session, ctx)
    assert result.moved, result.errors
    return session


def breakdown_at_documents(navigator, ctx):
    """Walk a breakdown claim up to its last collection stage."""
    session = create_wizard_session("owner", MAX_POLICY.policy_id)
    session = navigator.choose_claim_type(session, ClaimType.BREAKDOWN, ctx)
    session = advance_ok(navigator, session, ctx)

    session = navigator.confirm_device(session, DeviceConfirmation.CORRECT, ctx)
    session = navigator.patch_stage(session, "device", {
        "device": {"category": "Smartphone", "make": "Apple", "color": "Black"},
    })
    session = advance_ok(navigator, session, ctx)

    session = navigator.attach(session, photo(EvidenceRole.DEFECT_PHOTO))
    session = advance_ok(navigator, session, ctx)

    session = navigator.patch_stage(session, "fault_details", {
        "fault": {
            "fault_category": "Screen/Display",
            "specific_issue": "Screen flickering",
            "severity": "High - Major functionality affected",
            "problem_date": "2025-06-01",
            "frequency": "constant",
        },
    })
    return advance_ok(navigator, session, ctx)


class TestSessionCreation:

    def test_preselected_policy_skips_policy_stage(self, navigator):
        session = create_wizard_session("owner", MAX_POLICY.policy_id)
        assert session.policy_preselected
        assert navigator.current_stage(session).stage_id == "claim_type"

    def test_policy_stage_requires_selection(self, navigator):
        session = create_wizard_session("owner")
        session, result = navigator.advance(session, StageContext(today=TODAY))
        assert not result.moved
        assert result.errors == ["Select a policy"]

    def test_select_policy_then_advance(self, navigator):
        session = create_wizard_session("owner")
        session = navigator.select_policy(session, MAX_POLICY)
        assert session.policy_id == MAX_POLICY.policy_id
        session = advance_ok(navigator, session, make_ctx())
        assert navigator.current_stage(session).stage_id == "claim_type"

    def test_select_policy_outside_policy_stage(self, navigator):
        session = create_wizard_session("owner", MAX_POLICY.policy_id)
        with pytest.raises(ClaimValidationError):
            navigator.select_policy(session, LITE_POLICY)


class TestClaimType:

    def test_claim_type_required(self, navigator, ctx):
        session = create_wizard_session("owner", MAX_POLICY.policy_id)
        session, result = navigator.advance(session, ctx)
        assert not result.moved
        assert result.errors == ["Select a claim type"]

    def test_ineligible_claim_type(self, navigator):
        session = create_wizard_session("owner", LITE_POLICY.policy_id)
        with pytest.raises(IneligibleClaimTypeError):
            navigator.choose_claim_type(session, ClaimType.THEFT, make_ctx(LITE_POLICY))

    def test_changing_type_drops_foreign_attachments(self, navigator, ctx):
        session = create_wizard_session("owner", MAX_POLICY.policy_id)
        session = navigator.choose_claim_type(session, ClaimType.BREAKDOWN, ctx)
        session = advance_ok(navigator, session, ctx)
        session = navigator.confirm_device(session, DeviceConfirmation.CORRECT, ctx)
        session = navigator.patch_stage(session, "device", {
            "device": {"category": "Smartphone", "make": "Apple", "color": "Black"},
        })
        session = advance_ok(navigator, session, ctx)
        session = navigator.attach(session, photo(EvidenceRole.DEFECT_PHOTO))

        session, _ = navigator.retreat(session)
        session, _ = navigator.retreat(session)
        session = navigator.choose_claim_type(session, ClaimType.DAMAGE, ctx)

        assert session.draft.attachments == ()
        assert session.draft.device.confirmation == DeviceConfirmation.CORRECT


class TestAdvanceAndRetreat:

    def test_walk_to_submission_stage(self, navigator, ctx):
        session = breakdown_at_documents(navigator, ctx)
        assert navigator.current_stage(session).stage_id == "documents"
        assert session.position == navigator.submission_stage_index(session)

    def test_idempotency_key_issued_once(self, navigator, ctx):
        session = breakdown_at_documents(navigator, ctx)
        key = session.idempotency_key
        assert key

        session, result = navigator.retreat(session)
        assert result.stage_id == "fault_details"
        session = advance_ok(navigator, session, ctx)
        assert session.idempotency_key == key

    def test_no_key_before_submission_stage(self, navigator, ctx):
        session = create_wizard_session("owner", MAX_POLICY.policy_id)
        session = navigator.choose_claim_type(session, ClaimType.BREAKDOWN, ctx)
        session = advance_ok(navigator, session, ctx)
        assert session.idempotency_key is None

    def test_decision_stage_not_reachable_by_advance(self, navigator, ctx):
        session = breakdown_at_documents(navigator, ctx)
        unchanged, result = navigator.advance(session, ctx)
        assert not result.moved
        assert result.errors == ["Submit the claim to receive a decision"]
        assert unchanged.position == session.position

    def test_incomplete_device_stage_blocks(self, navigator, ctx):
        session = create_wizard_session("owner", MAX_POLICY.policy_id)
        session = navigator.choose_claim_type(session, ClaimType.BREAKDOWN, ctx)
        session = advance_ok(navigator, session, ctx)
        _, result = navigator.advance(session, ctx)
        assert result.errors == ["Confirm whether the insured device details are correct"]

    def test_retreat_keeps_draft(self, navigator, ctx):
        session = breakdown_at_documents(navigator, ctx)
        session, _ = navigator.retreat(session)
        session, _ = navigator.retreat(session)
        assert navigator.current_stage(session).stage_id == "defect_photos"
        assert session.draft.count(EvidenceRole.DEFECT_PHOTO) == 1
        assert session.draft.fault.specific_issue == "Screen flickering"

    def test_retreat_at_start(self, navigator):
        session = create_wizard_session("owner")
        same, result = navigator.retreat(session)
        assert not result.moved
        assert same.position == 0

    def test_history_records_moves(self, navigator, ctx):
        session = breakdown_at_documents(navigator, ctx)
        actions = [event["action"] for event in session.history]
        assert "claim_type_selected" in actions
        assert "advance_to_documents" in actions

    def test_warranty_advisory_on_fault_stage(self, navigator):
        warranty = evaluate_warranty(date(2025, 6, 1), date(2025, 1, 1), 12)
        ctx = make_ctx(warranty=warranty)
        session = breakdown_at_documents(navigator, make_ctx())
        session, _ = navigator.retreat(session)

        _, result = navigator.advance(session, ctx)
        assert not result.moved
        assert result.errors == ["Acknowledge the manufacturer warranty notice to continue"]
        assert "Manufacturer Warranty Notice" in result.advisories[0]

        session = navigator.patch_stage(session, "fault_details", {"fault": {"warranty_notice_acknowledged": True}})
        session = advance_ok(navigator, session, ctx)
        assert navigator.current_stage(session).stage_id == "documents"


class TestDamageFlow:

    def test_ownership_stage_blocks_without_proof(self, navigator, ctx):
        session = create_wizard_session("owner", MAX_POLICY.policy_id)
        session = navigator.choose_claim_type(session, ClaimType.DAMAGE, ctx)
        session = advance_ok(navigator, session, ctx)

        session = navigator.attach(session, photo(EvidenceRole.DAMAGE_PHOTO))
        session = advance_ok(navigator, session, ctx)

        session = navigator.confirm_device(session, DeviceConfirmation.CORRECT, ctx)
        session = navigator.patch_stage(session, "incident", {
            "device": {"category": "Smartphone", "make": "Apple", "color": "Black"},
            "incident": {
                "incident_date": "2025-06-10",
                "incident_time": "18:45",
                "description": "Phone slipped out of my hand onto tiles",
            },
        })
        session = advance_ok(navigator, session, ctx)

        session = navigator.patch_stage(session, "damage_details", {
            "incident": {"damage_type": "Screen Damage", "damage_area": "Screen/Display"},
        })
        session = advance_ok(navigator, session, ctx)
        assert navigator.current_stage(session).stage_id == "ownership"

        _, result = navigator.advance(session, ctx)
        assert not result.moved
        assert result.errors == ["Please upload proof of ownership (receipt or invoice)"]

        session = navigator.attach(session, photo(EvidenceRole.PROOF_OF_OWNERSHIP))
        session = advance_ok(navigator, session, ctx)
        assert navigator.current_stage(session).stage_id == "declaration"
        assert session.idempotency_key


class TestStageRestrictions:

    def test_patch_other_stage(self, navigator, ctx):
        session = create_wizard_session("owner", MAX_POLICY.policy_id)
        session = navigator.choose_claim_type(session, ClaimType.BREAKDOWN, ctx)
        session = advance_ok(navigator, session, ctx)
        with pytest.raises(ClaimValidationError) as exc_info:
            navigator.patch_stage(session, "fault_details", {"fault": {"severity": "x"}})
        assert exc_info.value.errors == ["current stage is 'device'"]

    def test_patch_foreign_section(self, navigator, ctx):
        session = create_wizard_session("owner", MAX_POLICY.policy_id)
        session = navigator.choose_claim_type(session, ClaimType.BREAKDOWN, ctx)
        session = advance_ok(navigator, session, ctx)
        with pytest.raises(ClaimValidationError):
            navigator.patch_stage(session, "device", {"theft": {"location": "Park"}})

    def test_confirmation_not_patchable(self, navigator, ctx):
        session = create_wizard_session("owner", MAX_POLICY.policy_id)
        session = navigator.choose_claim_type(session, ClaimType.BREAKDOWN, ctx)
        session = advance_ok(navigator, session, ctx)
        with pytest.raises(ClaimValidationError):
            navigator.patch_stage(session, "device", {"device": {"confirmation": "correct"}})

    def test_attach_role_of_other_stage(self, navigator, ctx):
        session = create_wizard_session("owner", MAX_POLICY.policy_id)
        session = navigator.choose_claim_type(session, ClaimType.BREAKDOWN, ctx)
        session = advance_ok(navigator, session, ctx)
        with pytest.raises(ClaimValidationError):
            navigator.attach(session, photo(EvidenceRole.DEFECT_PHOTO))

    def test_incorrect_confirmation_clears_device(self, navigator, ctx):
        session = create_wizard_session("owner", MAX_POLICY.policy_id)
        session = navigator.choose_claim_type(session, ClaimType.BREAKDOWN, ctx)
        session = advance_ok(navigator, session, ctx)
        session = navigator.confirm_device(session, DeviceConfirmation.CORRECT, ctx)
        assert session.draft.device.model == "iPhone 14"

        session = navigator.confirm_device(session, DeviceConfirmation.INCORRECT, ctx)
        assert session.draft.device.model == ""
        assert session.draft.device.device_name == ""


class TestSubmissionChecks:

    def test_not_at_submission_stage(self, navigator, ctx):
        session = create_wizard_session("owner", MAX_POLICY.policy_id)
        session = navigator.choose_claim_type(session, ClaimType.BREAKDOWN, ctx)
        assert navigator.submission_problems(session, ctx) == ["Complete every stage before submitting"]

    def test_complete_claim_has_no_problems(self, navigator, ctx):
        session = breakdown_at_documents(navigator, ctx)
        assert navigator.submission_problems(session, ctx) == []

    def test_earlier_stages_rechecked(self, navigator, ctx):
        session = breakdown_at_documents(navigator, ctx)
        # The warranty window only becomes known after the stage was passed
        warranty = evaluate_warranty(date(2025, 6, 1), date(2025, 1, 1), 12)
        problems = navigator.submission_problems(session, make_ctx(warranty=warranty))
        assert problems == ["Acknowledge the manufacturer warranty notice to continue"]

    def test_closed_session_refuses_changes(self, navigator, ctx):
        session = breakdown_at_documents(navigator, ctx)
        closed = navigator.enter_decision(session, "claim-1", "CLM-1", "accepted", "ok")
        assert closed.is_closed
        assert navigator.current_stage(closed).stage_id == "decision"
        with pytest.raises(SessionClosedError):
            navigator.advance(closed, ctx)
        with pytest.raises(SessionClosedError):
            navigator.retreat(closed)


class TestSessionStore:

    def test_round_trip(self, navigator, ctx):
        store = InMemorySessionStore()
        session = breakdown_at_documents(navigator, ctx)
        store.save(session)
        loaded = store.load(session.session_id)
        assert loaded.to_store() == session.to_store()

    def test_unknown_session(self):
        with pytest.raises(SessionNotFoundError):
            InMemorySessionStore().load("missing")


class TestBuildStageContext:

    def test_without_policy(self, db):
        assert build_stage_context(db, create_wizard_session("owner-123")).policy is None

    def test_warranty_for_breakdown(self, db, max_policy, purchase_date):
        ctx = make_ctx()
        session = create_wizard_session("owner-123", str(max_policy.policy_id))
        session = StageNavigator().choose_claim_type(session, ClaimType.BREAKDOWN, ctx)
        session = session.model_copy(update={
            "draft": session.draft.model_copy(update={
                "fault": session.draft.fault.model_copy(update={"problem_date": add_months(purchase_date, 2)}),
            }),
        })

        stage_ctx = build_stage_context(db, session)
        assert stage_ctx.policy.policy_number == "POL-MAX-0001"
        assert stage_ctx.warranty.within_warranty
        assert stage_ctx.warranty.warranty_months == 12
        assert stage_ctx.warranty.purchase_date_source == "purchase_date"

    def test_no_warranty_without_problem_date(self, db, max_policy):
        session = create_wizard_session("owner-123", str(max_policy.policy_id))
        assert build_stage_context(db, session).warranty is None

    def test_allowed_types(self, db, warranty_policy):
        session = create_wizard_session("owner-123", str(warranty_policy.policy_id))
        assert build_stage_context(db, session).allowed_claim_types == [ClaimType.BREAKDOWN]


def test_today_boundary_allows_same_day():
    # A problem reported on the day it happened is not in the future
    navigator = StageNavigator()
    ctx = make_ctx()
    session = breakdown_at_documents(navigator, ctx)
    session, _ = navigator.retreat(session)
    session = navigator.patch_stage(session, "fault_details", {"fault": {"problem_date": TODAY.isoformat()}})
    session = advance_ok(navigator, session, ctx)

    session, _ = navigator.retreat(session)
    tomorrow = (TODAY + timedelta(days=1)).isoformat()
    session = navigator.patch_stage(session, "fault_details", {"fault": {"problem_date": tomorrow}})
    _, result = navigator.advance(session, ctx)
    assert result.errors == ["Problem date cannot be in the future"]
