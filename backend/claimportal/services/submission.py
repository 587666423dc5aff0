"""
Submission Finalizer

Turns a completed wizard session into a persisted claim. The steps run as a
LangGraph pipeline, each one finishing before the next begins:

    check_replay -> check_eligibility -> upload_evidence -> decide
        -> sync_device -> persist -> notify

Any exception raised by a node aborts the pipeline and reaches the caller.
Only the device sync and the notification are best-effort.
"""
import random
import string
import time
from uuid import UUID
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple, TypedDict

from langgraph.graph import StateGraph, END
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from claimportal.core.config import settings
from claimportal.core.exceptions import (
    IneligibleClaimTypeError,
    NotificationError,
    PersistenceError,
    StorageError,
    UploadError,
)
from claimportal.core.logging import logger, log_audit_event
from claimportal.db.models import (
    Claim,
    ClaimDocument,
    ClaimType,
    DECISION_STATUS,
    DocumentSubtype,
    DocumentType,
    InsuredDevice,
    ProductCondition,
)
from claimportal.orchestration.claim_wizard.evidence import EVIDENCE_ROLES_BY_TYPE
from claimportal.orchestration.claim_wizard.state import (
    Attachment,
    ClaimDraft,
    DeviceConfirmation,
    EvidenceRole,
    WizardSession,
)
from claimportal.services.coverage_gate import get_coverage_gate
from claimportal.services.decision import Decision, DecisionContext, get_decision_engine
from claimportal.services.device_verification import verify_device
from claimportal.services.notifications import (
    ClaimNotification,
    NotificationDispatcher,
    find_template,
)
from claimportal.services.policy_context import PolicyContext
from claimportal.services.storage import FileStorage, StagingArea
from claimportal.services.warranty import WarrantyResult


_BASE36 = string.digits + string.ascii_uppercase

# Evidence role -> (document type, subtype)
DOCUMENT_MAPPING: Dict[EvidenceRole, Tuple[DocumentType, DocumentSubtype]] = {
    EvidenceRole.DEFECT_PHOTO: (DocumentType.PHOTO, DocumentSubtype.OTHER),
    EvidenceRole.DAMAGE_PHOTO: (DocumentType.PHOTO, DocumentSubtype.OTHER),
    EvidenceRole.ITEM_PHOTO: (DocumentType.PHOTO, DocumentSubtype.OTHER),
    EvidenceRole.THEFT_PHOTO: (DocumentType.PHOTO, DocumentSubtype.OTHER),
    EvidenceRole.PROOF_OF_OWNERSHIP: (DocumentType.RECEIPT, DocumentSubtype.RECEIPT),
    EvidenceRole.SUPPORTING_DOCUMENT: (DocumentType.RECEIPT, DocumentSubtype.RECEIPT),
    EvidenceRole.ITEM_OWNERSHIP: (DocumentType.RECEIPT, DocumentSubtype.RECEIPT),
    EvidenceRole.THEFT_OWNERSHIP: (DocumentType.RECEIPT, DocumentSubtype.RECEIPT),
    EvidenceRole.POLICE_REPORT: (DocumentType.RECEIPT, DocumentSubtype.RECEIPT),
    EvidenceRole.OTHER_EVIDENCE: (DocumentType.OTHER, DocumentSubtype.OTHER),
}

RECEIPT_ROLES = frozenset(
    role for role, (doc_type, _) in DOCUMENT_MAPPING.items() if doc_type == DocumentType.RECEIPT
)

# The photo whose document carries the AI analysis
ANALYZED_PHOTO_ROLE = {
    ClaimType.BREAKDOWN: EvidenceRole.DEFECT_PHOTO,
    ClaimType.DAMAGE: EvidenceRole.DAMAGE_PHOTO,
}


def generate_claim_number(prefix: Optional[str] = None) -> str:
    """CLM-{epoch ms}-{9 upper-case base-36 characters}."""
    suffix = "".join(random.choices(_BASE36, k=9))
    return f"{prefix or settings.CLAIM_NUMBER_PREFIX}-{int(time.time() * 1000)}-{suffix}"


def _price(value: Optional[Decimal]) -> str:
    return f"€{value}" if value is not None else "Not provided"


def build_description(draft: ClaimDraft, policy: Optional[PolicyContext] = None) -> str:
    """Human-readable claim description, one 'Label: value' per line."""
    device = draft.device
    insured = policy.insured_device if policy else None

    lines = [
        f"Device Category: {device.category or device.device_name}",
        f"Make/Brand: {device.make}",
        f"Model: {device.model or (insured.model if insured and insured.model else '')}",
        f"Color: {device.color}",
        f"Serial Number: {device.serial_number or 'Not provided'}",
        f"Purchase Price: {_price(device.purchase_price)}",
    ]

    if draft.claim_type == ClaimType.BREAKDOWN:
        fault = draft.fault
        lines += [
            f"Problem Date: {fault.problem_date.isoformat() if fault.problem_date else ''}",
            f"Frequency: {fault.frequency}",
            f"Fault Category: {fault.fault_category}",
            f"Specific Issue: {fault.specific_issue}",
            f"Severity: {fault.severity}",
        ]
        if fault.additional_comments:
            lines.append(f"Additional Comments: {fault.additional_comments}")
        lines.append(f"Previous Repairs: {fault.previous_repairs or 'None'}")

    elif draft.claim_type == ClaimType.DAMAGE:
        incident = draft.incident
        incident_date = incident.incident_date.isoformat() if incident.incident_date else ""
        lines += [
            f"Incident Date: {incident_date} {incident.incident_time}".rstrip(),
            f"Damage Type: {incident.damage_type}",
            f"Affected Area: {incident.damage_area}",
            f"Severity: {incident.severity}",
        ]
        if incident.comments:
            lines.append(f"Additional Comments: {incident.comments}")

    elif draft.claim_type == ClaimType.THEFT:
        theft = draft.theft
        theft_date = theft.theft_date.isoformat() if theft.theft_date else ""
        lines += [
            f"Features: {device.features or 'None specified'}",
            f"Theft Date: {theft_date} {theft.theft_time}".rstrip(),
            f"Location: {theft.location}",
            f"Incident: {theft.description}",
            f"Police Notified: {'Yes' if theft.police_notified else 'No'}",
            f"Police Report: {theft.police_report_number or 'N/A'}",
            f"Recovery Efforts: {theft.recovery_efforts}",
        ]

    ai = draft.ai_analysis
    user_severity = draft.user_severity()
    if ai and ai.severity_level and user_severity and ai.severity_level != user_severity:
        lines.append(f"AI Suggested Severity: {ai.severity_level}")

    return "\n".join(lines)


def product_condition_for(draft: ClaimDraft) -> ProductCondition:
    if draft.claim_type == ClaimType.BREAKDOWN and draft.fault.frequency == "constant":
        return ProductCondition.SEVERE
    return ProductCondition.MODERATE


def ordered_attachments(draft: ClaimDraft) -> List[Attachment]:
    """Attachments in upload order for the claim type."""
    roles = EVIDENCE_ROLES_BY_TYPE[ClaimType(draft.claim_type)]
    ordered: List[Attachment] = []
    for role in roles:
        ordered.extend(draft.attachments_for(role))
    return ordered


def ai_metadata(draft: ClaimDraft) -> Dict[str, Any]:
    """AI analysis block stored on the first analyzed photo."""
    ai = draft.ai_analysis
    metadata: Dict[str, Any] = {
        "assessment": ai.assessment,
        "severityLevel": ai.severity_level,
        "deviceCategory": ai.device_category,
        "deviceMismatch": ai.device_mismatch,
        "mismatchWarning": ai.mismatch_warning,
        "hasVisiblePhysicalDamage": ai.has_visible_physical_damage,
        "physicalDamageDescription": ai.physical_damage_description,
        "timestamp": ai.analyzed_at.isoformat(),
    }
    if draft.claim_type == ClaimType.DAMAGE:
        metadata["damageType"] = ai.damage_type
    return metadata


@dataclass
class SubmissionResult:
    """Outcome handed back to the API layer."""
    claim_id: str
    claim_number: str
    decision: str
    decision_reason: str
    status: str
    replayed: bool = False
    device_updated: bool = False
    notified: bool = False


class SubmissionState(TypedDict, total=False):
    """State flowing through the submission pipeline."""
    session: WizardSession
    policy: PolicyContext
    warranty: Optional[WarrantyResult]
    uploaded: List[Tuple[Attachment, str]]
    decision: Decision
    claim: Claim
    replayed: bool
    device_updated: bool
    notified: bool


class SubmissionPipeline:
    """Runs the finalizer steps for one database session."""

    def __init__(
        self,
        db: Session,
        storage: FileStorage,
        staging: StagingArea,
        dispatcher: NotificationDispatcher,
    ):
        self.db = db
        self.storage = storage
        self.staging = staging
        self.dispatcher = dispatcher
        self.graph = self._build_graph()

    # ========================================================================
    # Nodes
    # ========================================================================

    async def check_replay(self, state: SubmissionState) -> SubmissionState:
        """A submission token already used returns the stored claim."""
        key = state["session"].idempotency_key
        if not key:
            return {"replayed": False}
        existing = self.db.query(Claim).filter(Claim.idempotency_key == key).first()
        if existing is None:
            return {"replayed": False}
        logger.info(f"Replayed submission for claim {existing.claim_number}")
        return {"replayed": True, "claim": existing}

    async def check_eligibility(self, state: SubmissionState) -> SubmissionState:
        policy = state["policy"]
        claim_type = state["session"].draft.claim_type
        if not get_coverage_gate().is_claim_type_allowed(claim_type, policy):
            raise IneligibleClaimTypeError(getattr(claim_type, "value", str(claim_type)), policy.policy_number)
        return {"replayed": False}

    async def upload_evidence(self, state: SubmissionState) -> SubmissionState:
        """
        Upload every attachment, one at a time.

        The first failure stops the loop; a partial upload aborts the
        submission before anything is written to the database.
        """
        session = state["session"]
        attachments = ordered_attachments(session.draft)
        uploaded: List[Tuple[Attachment, str]] = []

        for attachment in attachments:
            try:
                content = self.staging.read(attachment.staged_path)
                path = await self.storage.upload(
                    session.owner_id, content, attachment.content_type, attachment.file_name
                )
            except StorageError as exc:
                logger.error(f"Upload failed for {attachment.file_name}: {exc.message}")
                break
            uploaded.append((attachment, path))

        if len(uploaded) != len(attachments):
            raise UploadError(
                f"Only {len(uploaded)} of {len(attachments)} files were uploaded. Please try again.",
                attempted=len(attachments),
                uploaded=len(uploaded),
            )

        return {"uploaded": uploaded}

    async def decide(self, state: SubmissionState) -> SubmissionState:
        session = state["session"]
        policy = state["policy"]
        draft = session.draft
        verification = verify_device(draft.device, policy.insured_device)
        decision = get_decision_engine().evaluate(DecisionContext(
            claim_type=draft.claim_type,
            draft=draft,
            verification=verification,
            warranty=state.get("warranty") if draft.claim_type == ClaimType.BREAKDOWN else None,
        ))
        log_audit_event(
            "claim_decided",
            session.owner_id,
            "system",
            {"session_id": session.session_id, "decision": decision.outcome.value, "rule": decision.rule_id},
        )
        return {"decision": decision}

    async def sync_device(self, state: SubmissionState) -> SubmissionState:
        """Write corrected device details back to the insured device. Best-effort."""
        session = state["session"]
        device = session.draft.device
        if device.confirmation != DeviceConfirmation.INCORRECT:
            return {"device_updated": False}
        if not any([device.category, device.make, device.model, device.purchase_price, device.serial_number]):
            return {"device_updated": False}

        policy = state["policy"]
        insured = policy.insured_device
        try:
            record = (
                self.db.query(InsuredDevice)
                .filter(InsuredDevice.policy_id == UUID(policy.policy_id))
                .first()
            )
            if record is None:
                logger.warning(f"No insured device row to update for policy {policy.policy_id}")
                return {"device_updated": False}

            if device.category:
                record.product_name = f"{device.make} {device.category}".strip()
            else:
                record.product_name = device.make or (insured.product_name if insured else record.product_name)
            record.model = device.model or (insured.model if insured else record.model)
            record.serial_number = device.serial_number or ""
            record.purchase_price = device.purchase_price
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error(f"Failed to update insured device for policy {policy.policy_id}: {exc}")
            return {"device_updated": False}

        log_audit_event(
            "insured_device_updated",
            session.owner_id,
            "claimant",
            {"policy_id": policy.policy_id, "product_name": record.product_name},
        )
        return {"device_updated": True}

    async def persist(self, state: SubmissionState) -> SubmissionState:
        """
        Write the claim and its documents in one transaction.

        Raises:
            PersistenceError: the insert failed; uploaded blobs are left in place
        """
        session = state["session"]
        policy = state["policy"]
        draft = session.draft
        decision = state["decision"]
        status = DECISION_STATUS[decision.outcome]
        uploaded = state.get("uploaded", [])

        claim = Claim(
            claim_number=generate_claim_number(),
            policy_id=UUID(policy.policy_id),
            owner_id=session.owner_id,
            claim_type=draft.claim_type,
            description=build_description(draft, policy),
            decision=decision.outcome,
            decision_reason=decision.reason,
            status=status,
            product_condition=product_condition_for(draft),
            has_receipt=any(attachment.role in RECEIPT_ROLES for attachment, _ in uploaded),
            idempotency_key=session.idempotency_key,
        )
        claim.add_timeline_event(status.value, "system", decision.reason)

        analyzed_role = ANALYZED_PHOTO_ROLE.get(draft.claim_type)
        analysis_attached = False
        for position, (attachment, path) in enumerate(uploaded):
            doc_type, subtype = DOCUMENT_MAPPING[attachment.role]
            metadata: Dict[str, Any] = {"evidence_role": attachment.role.value}
            if draft.ai_analysis and attachment.role == analyzed_role and not analysis_attached:
                metadata["ai_analysis"] = ai_metadata(draft)
                analysis_attached = True
            claim.documents.append(ClaimDocument(
                owner_id=session.owner_id,
                document_type=doc_type,
                document_subtype=subtype,
                file_name=attachment.file_name,
                file_path=path,
                file_size=attachment.size,
                content_type=attachment.content_type,
                position=position,
                document_metadata=metadata,
            ))

        try:
            self.db.add(claim)
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            existing = None
            if session.idempotency_key:
                existing = (
                    self.db.query(Claim)
                    .filter(Claim.idempotency_key == session.idempotency_key)
                    .first()
                )
            if existing is None:
                logger.error(f"Claim insert failed: {exc}")
                raise PersistenceError("Failed to save the claim. Please try again.", exc)
            logger.info(f"Concurrent submission resolved to claim {existing.claim_number}")
            return {"claim": existing, "replayed": True}
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error(f"Claim insert failed: {exc}")
            raise PersistenceError("Failed to save the claim. Please try again.", exc)

        self.db.refresh(claim)
        log_audit_event(
            "claim_submitted",
            session.owner_id,
            "claimant",
            {"claim_number": claim.claim_number, "status": status.value, "documents": len(uploaded)},
        )
        return {"claim": claim}

    async def notify(self, state: SubmissionState) -> SubmissionState:
        """Dispatch the status notification. Failures are logged only."""
        claim = state["claim"]
        status = claim.status.value
        try:
            template = find_template(self.db, status)
            if template is None:
                logger.info(f"No active claim template for status '{status}', nothing sent")
                return {"notified": False}

            notification = ClaimNotification(
                policy_id=str(claim.policy_id),
                claim_id=str(claim.claim_id),
                template_id=str(template.template_id),
                status=status,
            )
            await self.dispatcher.dispatch(notification)
        except NotificationError as exc:
            logger.error(f"Notification for claim {claim.claim_number} failed: {exc.message}")
            return {"notified": False}
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error(f"Template lookup for claim {claim.claim_number} failed: {exc}")
            return {"notified": False}
        except Exception as exc:
            # The claim is already committed
            logger.exception(f"Notification for claim {claim.claim_number} failed unexpectedly: {exc}")
            return {"notified": False}
        return {"notified": True}

    # ========================================================================
    # Graph
    # ========================================================================

    def _route_after_replay(self, state: SubmissionState) -> str:
        return "done" if state.get("replayed") else "check_eligibility"

    def _route_after_persist(self, state: SubmissionState) -> str:
        return "done" if state.get("replayed") else "notify"

    def _build_graph(self):
        workflow = StateGraph(SubmissionState)

        workflow.add_node("check_replay", self.check_replay)
        workflow.add_node("check_eligibility", self.check_eligibility)
        workflow.add_node("upload_evidence", self.upload_evidence)
        workflow.add_node("decide", self.decide)
        workflow.add_node("sync_device", self.sync_device)
        workflow.add_node("persist", self.persist)
        workflow.add_node("notify", self.notify)

        workflow.set_entry_point("check_replay")

        workflow.add_conditional_edges(
            "check_replay",
            self._route_after_replay,
            {
                "check_eligibility": "check_eligibility",
                "done": END,
            }
        )
        workflow.add_edge("check_eligibility", "upload_evidence")
        workflow.add_edge("upload_evidence", "decide")
        workflow.add_edge("decide", "sync_device")
        workflow.add_edge("sync_device", "persist")
        workflow.add_conditional_edges(
            "persist",
            self._route_after_persist,
            {
                "notify": "notify",
                "done": END,
            }
        )
        workflow.add_edge("notify", END)

        return workflow.compile()

    async def run(
        self,
        session: WizardSession,
        policy: PolicyContext,
        warranty: Optional[WarrantyResult] = None,
    ) -> SubmissionResult:
        """Run the pipeline for a validated session."""
        final = await self.graph.ainvoke({
            "session": session,
            "policy": policy,
            "warranty": warranty,
        })
        claim: Claim = final["claim"]
        return SubmissionResult(
            claim_id=str(claim.claim_id),
            claim_number=claim.claim_number,
            decision=claim.decision.value,
            decision_reason=claim.decision_reason or "",
            status=claim.status.value,
            replayed=bool(final.get("replayed")),
            device_updated=bool(final.get("device_updated")),
            notified=bool(final.get("notified")),
        )
