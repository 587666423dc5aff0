"""
Claim Wizard Stage Navigator

A position pointer over the stage table for the session's claim type.
advance() is guarded by the current stage's exit predicate and the next
stage's entry predicate; retreat() is never guarded and keeps the draft
as it is. The decision stage is terminal and is only entered through
enter_decision() once the claim has been submitted.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
import uuid

from sqlalchemy.orm import Session

from claimportal.core.exceptions import (
    ClaimValidationError,
    IneligibleClaimTypeError,
    SessionClosedError,
)
from claimportal.core.logging import log_audit_event
from claimportal.db.models import ClaimType
from claimportal.orchestration.claim_wizard.evidence import StageContext, role_allowed_for
from claimportal.orchestration.claim_wizard.stages import Stage, stages_for
from claimportal.orchestration.claim_wizard.state import (
    Attachment,
    DeviceClaimInfo,
    DeviceConfirmation,
    EvidenceRole,
    WizardSession,
    add_attachment,
    confirm_device as reduce_confirm_device,
    remove_attachment,
    select_claim_type,
    update_section,
)
from claimportal.services.coverage_gate import get_coverage_gate
from claimportal.services.policy_context import PolicyContext, PolicyContextLoader
from claimportal.services.warranty import (
    WarrantyLookup,
    evaluate_warranty,
    resolve_purchase_date,
)


@dataclass
class NavigationResult:
    """What happened on an advance/retreat request."""
    moved: bool
    stage_id: str
    position: int
    errors: List[str] = field(default_factory=list)
    advisories: List[str] = field(default_factory=list)


def build_stage_context(db: Session, session: WizardSession) -> StageContext:
    """
    Load the policy and, for breakdowns with a problem date, the warranty window.

    Raises:
        PolicyNotFoundError: the session's policy is gone or inactive
    """
    if session.policy_id is None:
        return StageContext()

    policy = PolicyContextLoader(db).load(session.policy_id, owner_id=session.owner_id)
    allowed = get_coverage_gate().allowed_claim_types(policy)

    warranty = None
    draft = session.draft
    if draft.claim_type == ClaimType.BREAKDOWN and draft.fault.problem_date is not None:
        insured = policy.insured_device
        device_model = draft.device.model or (insured.model if insured else None)
        device_category = draft.device.category or None
        months = WarrantyLookup(db).months_for(device_model, device_category)
        purchase_date, source = resolve_purchase_date(policy)
        warranty = evaluate_warranty(draft.fault.problem_date, purchase_date, months, source)

    return StageContext(policy=policy, warranty=warranty, allowed_claim_types=allowed)


def add_history_event(
    session: WizardSession,
    action: str,
    data_before: Any = None,
    data_after: Any = None,
) -> WizardSession:
    """Append an audit event to the session history."""
    stages = stages_for(session.draft.claim_type)
    position = min(session.position, len(stages) - 1)
    event = {
        "timestamp": datetime.utcnow().isoformat(),
        "stage": stages[position].stage_id,
        "action": action,
        "data_before": data_before,
        "data_after": data_after,
    }
    log_audit_event(action, session.owner_id, "claimant", {"session_id": session.session_id, **event})
    return session.model_copy(update={
        "history": session.history + (event,),
        "updated_at": datetime.utcnow(),
    })


class StageNavigator:
    """Generic navigator over the declarative stage table."""

    def stages(self, session: WizardSession) -> Tuple[Stage, ...]:
        return stages_for(session.draft.claim_type)

    def current_stage(self, session: WizardSession) -> Stage:
        stages = self.stages(session)
        return stages[min(session.position, len(stages) - 1)]

    def submission_stage_index(self, session: WizardSession) -> Optional[int]:
        """Index of the last collection stage, None until a claim type is chosen."""
        if session.draft.claim_type is None:
            return None
        return len(self.stages(session)) - 2

    def pending_problems(self, session: WizardSession, ctx: StageContext) -> List[str]:
        stage = self.current_stage(session)
        return stage.exit(session.draft, ctx)

    def advisories(self, session: WizardSession, ctx: StageContext) -> List[str]:
        stage = self.current_stage(session)
        return stage.advisories(session.draft, ctx) if stage.advisories else []

    def require_open(self, session: WizardSession) -> None:
        if session.is_closed:
            raise SessionClosedError(
                "This claim has already been submitted",
                {"claim_id": session.claim_id},
            )

    def require_current(self, session: WizardSession, stage_id: str) -> Stage:
        """The stage being edited must be the one on screen."""
        stage = self.current_stage(session)
        if stage.stage_id != stage_id:
            raise ClaimValidationError(
                f"Stage '{stage_id}' is not the current stage",
                [f"current stage is '{stage.stage_id}'"],
                stage_id=stage_id,
            )
        return stage

    def advance(self, session: WizardSession, ctx: StageContext) -> Tuple[WizardSession, NavigationResult]:
        """Move forward one stage if the current stage is complete."""
        self.require_open(session)
        stages = self.stages(session)
        current = self.current_stage(session)

        problems = current.exit(session.draft, ctx)
        advisories = current.advisories(session.draft, ctx) if current.advisories else []
        if problems:
            return session, NavigationResult(
                moved=False,
                stage_id=current.stage_id,
                position=session.position,
                errors=problems,
                advisories=advisories,
            )

        next_index = session.position + 1
        if next_index >= len(stages):
            # Only reachable before a claim type exists, on the claim type stage
            return session, NavigationResult(
                moved=False,
                stage_id=current.stage_id,
                position=session.position,
                errors=["Select a claim type"],
            )

        target = stages[next_index]
        if target.is_terminal:
            return session, NavigationResult(
                moved=False,
                stage_id=current.stage_id,
                position=session.position,
                errors=["Submit the claim to receive a decision"],
            )

        entry_problems = target.entry(session.draft, ctx)
        if entry_problems:
            return session, NavigationResult(
                moved=False,
                stage_id=current.stage_id,
                position=session.position,
                errors=entry_problems,
            )

        updates: Dict[str, Any] = {"position": next_index}
        if next_index == self.submission_stage_index(session) and session.idempotency_key is None:
            updates["idempotency_key"] = uuid.uuid4().hex
        moved = session.model_copy(update=updates)
        moved = add_history_event(moved, f"advance_to_{target.stage_id}", current.stage_id, target.stage_id)

        return moved, NavigationResult(
            moved=True,
            stage_id=target.stage_id,
            position=next_index,
            advisories=target.advisories(moved.draft, ctx) if target.advisories else [],
        )

    def retreat(self, session: WizardSession) -> Tuple[WizardSession, NavigationResult]:
        """Move back one stage. Nothing collected is discarded."""
        self.require_open(session)
        current = self.current_stage(session)
        if session.position == 0:
            return session, NavigationResult(moved=False, stage_id=current.stage_id, position=0)

        previous_index = session.position - 1
        target = self.stages(session)[previous_index]
        moved = session.model_copy(update={"position": previous_index})
        moved = add_history_event(moved, f"retreat_to_{target.stage_id}", current.stage_id, target.stage_id)
        return moved, NavigationResult(moved=True, stage_id=target.stage_id, position=previous_index)

    # ========================================================================
    # Draft transitions
    # ========================================================================

    def select_policy(self, session: WizardSession, policy: PolicyContext) -> WizardSession:
        """Pick the policy on the policy stage. A claim type it no longer allows is cleared."""
        self.require_open(session)
        self.require_current(session, "policy")
        if session.policy_id == policy.policy_id:
            return session

        draft = session.draft.model_copy(update={"device": DeviceClaimInfo()})
        if draft.claim_type is not None and not get_coverage_gate().is_claim_type_allowed(
            draft.claim_type, policy
        ):
            draft = draft.model_copy(update={"claim_type": None})

        updated = session.model_copy(update={"policy_id": policy.policy_id, "draft": draft})
        return add_history_event(updated, "policy_selected", session.policy_id, policy.policy_id)

    def choose_claim_type(
        self,
        session: WizardSession,
        claim_type: ClaimType,
        ctx: StageContext,
    ) -> WizardSession:
        """
        Set the claim type on the claim type stage.

        Attachments whose role the new type does not collect are dropped.

        Raises:
            IneligibleClaimTypeError: the policy's perils or tier do not allow it
        """
        self.require_open(session)
        self.require_current(session, "claim_type")
        if not get_coverage_gate().is_claim_type_allowed(claim_type, ctx.policy):
            raise IneligibleClaimTypeError(
                getattr(claim_type, "value", str(claim_type)),
                ctx.policy.policy_number if ctx.policy else None,
            )

        claim_type = ClaimType(claim_type)
        draft = select_claim_type(session.draft, claim_type)
        for attachment in draft.attachments:
            if not role_allowed_for(attachment.role, claim_type):
                draft, _ = remove_attachment(draft, attachment.attachment_id)

        updated = session.model_copy(update={"draft": draft})
        before = session.draft.claim_type.value if session.draft.claim_type else None
        return add_history_event(updated, "claim_type_selected", before, claim_type.value)

    def patch_stage(
        self,
        session: WizardSession,
        stage_id: str,
        changes: Dict[str, Dict[str, Any]],
    ) -> WizardSession:
        """
        Apply field changes to the sections the current stage collects.

        Raises:
            ClaimValidationError: wrong stage, foreign section or invalid value
        """
        self.require_open(session)
        stage = self.require_current(session, stage_id)
        foreign = [name for name in changes if name not in stage.sections]
        if foreign:
            raise ClaimValidationError(
                f"Stage '{stage_id}' does not collect these sections",
                [f"{name}: not part of this stage" for name in foreign],
                stage_id=stage_id,
            )

        draft = session.draft
        for section, fields in changes.items():
            draft = update_section(draft, section, fields)
        return session.model_copy(update={"draft": draft, "updated_at": datetime.utcnow()})

    def confirm_device(
        self,
        session: WizardSession,
        confirmation: DeviceConfirmation,
        ctx: StageContext,
    ) -> WizardSession:
        self.require_open(session)
        stage = self.current_stage(session)
        if not stage.device_confirmation:
            raise ClaimValidationError(
                "The device is not confirmed on this stage",
                [f"current stage is '{stage.stage_id}'"],
                stage_id=stage.stage_id,
            )
        draft = reduce_confirm_device(session.draft, confirmation, ctx.insured_device)
        updated = session.model_copy(update={"draft": draft})
        return add_history_event(updated, "device_confirmation", None, draft.device.confirmation.value)

    def attach(self, session: WizardSession, attachment: Attachment) -> WizardSession:
        """Accept a staged file into the draft under the current stage's roles."""
        self.require_open(session)
        self.require_role(session, attachment.role)
        draft = add_attachment(session.draft, attachment)
        return session.model_copy(update={"draft": draft, "updated_at": datetime.utcnow()})

    def detach(self, session: WizardSession, attachment_id: str) -> Tuple[WizardSession, Optional[Attachment]]:
        self.require_open(session)
        draft, removed = remove_attachment(session.draft, attachment_id)
        if removed is None:
            return session, None
        self.require_role(session, removed.role)
        return session.model_copy(update={"draft": draft, "updated_at": datetime.utcnow()}), removed

    def require_role(self, session: WizardSession, role: EvidenceRole) -> None:
        stage = self.current_stage(session)
        if EvidenceRole(role) not in stage.evidence_roles:
            raise ClaimValidationError(
                f"'{EvidenceRole(role).value}' files are not collected on this stage",
                [f"current stage is '{stage.stage_id}'"],
                stage_id=stage.stage_id,
            )

    # ========================================================================
    # Submission
    # ========================================================================

    def submission_problems(self, session: WizardSession, ctx: StageContext) -> List[str]:
        """
        Re-check every collection stage before submitting.

        Earlier stages may have been edited after they were passed, so each
        exit predicate is evaluated again against the final draft.
        """
        if session.draft.claim_type is None:
            return ["Select a claim type"]

        if session.position != self.submission_stage_index(session):
            return ["Complete every stage before submitting"]

        problems: List[str] = []
        for stage in self.stages(session):
            if stage.is_terminal:
                continue
            for problem in stage.exit(session.draft, ctx):
                if problem not in problems:
                    problems.append(problem)
        return problems

    def enter_decision(
        self,
        session: WizardSession,
        claim_id: str,
        claim_number: str,
        decision: str,
        decision_reason: str,
    ) -> WizardSession:
        """Close the session on the terminal decision stage."""
        closed = session.model_copy(update={
            "position": len(self.stages(session)) - 1,
            "claim_id": claim_id,
            "claim_number": claim_number,
            "decision": decision,
            "decision_reason": decision_reason,
        })
        return add_history_event(closed, "decision_reached", None, decision)


# Singleton instance
_navigator: Optional[StageNavigator] = None


def get_stage_navigator() -> StageNavigator:
    """Get or create the navigator singleton."""
    global _navigator
    if _navigator is None:
        _navigator = StageNavigator()
    return _navigator
