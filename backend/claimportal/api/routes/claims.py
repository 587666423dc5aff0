"""
Claims API routes

Drives the claim wizard: one session per claimant draft, stored in the
session store, moved through the stage table by the navigator and finally
handed to the submission pipeline.
"""
from typing import Any, Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from claimportal.api.deps import (
    get_ai_analysis_service,
    get_db,
    get_file_storage,
    get_notification_dispatcher,
    get_owner_id,
    get_session_store,
    get_staging_area,
)
from claimportal.core import ClaimValidationError, SessionNotFoundError, StorageError, logger
from claimportal.db.models import Claim, ClaimType
from claimportal.orchestration.claim_wizard.evidence import StageContext, check_file
from claimportal.orchestration.claim_wizard.navigator import (
    NavigationResult,
    build_stage_context,
    get_stage_navigator,
)
from claimportal.orchestration.claim_wizard.stages import describe_stages
from claimportal.orchestration.claim_wizard.state import (
    Attachment,
    DeviceConfirmation,
    EvidenceRole,
    WizardSession,
    create_wizard_session,
    record_ai_analysis,
    update_section,
)
from claimportal.orchestration.claim_wizard.vocabulary import (
    DAMAGE_AREAS,
    DAMAGE_TYPES,
    DEFAULT_SEVERITY,
    DEVICE_CATEGORIES,
    FAULT_CATEGORIES,
    ISSUE_FREQUENCIES,
    SEVERITY_LEVELS,
    SPECIFIC_ISSUES,
    match_device_category,
)
from claimportal.services.ai_analysis import AIAnalysisService, propose_draft_patch
from claimportal.services.decision import get_decision_engine
from claimportal.services.notifications import NotificationDispatcher
from claimportal.services.policy_context import PolicyContextLoader
from claimportal.services.session_store import SessionStore
from claimportal.services.storage import FileStorage, StagingArea
from claimportal.services.submission import SubmissionPipeline

router = APIRouter()


# ============================================================================
# Schemas
# ============================================================================

class CreateSessionRequest(BaseModel):
    policy_id: Optional[str] = None


class SelectPolicyRequest(BaseModel):
    policy_id: str


class ClaimTypeRequest(BaseModel):
    claim_type: ClaimType


class DeviceConfirmationRequest(BaseModel):
    confirmation: DeviceConfirmation


class SessionResponse(BaseModel):
    session_id: str
    policy_id: Optional[str]
    policy_preselected: bool
    claim_type: Optional[str]
    position: int
    stage_id: str
    stages: List[Dict[str, Any]]
    allowed_claim_types: List[str]
    draft: Dict[str, Any]
    pending_errors: List[str]
    advisories: List[str]
    idempotency_key: Optional[str]
    claim_id: Optional[str]
    claim_number: Optional[str]
    decision: Optional[str]
    decision_reason: Optional[str]
    is_closed: bool


class NavigationResponse(BaseModel):
    moved: bool
    stage_id: str
    advisories: List[str]
    session: SessionResponse


class AttachmentResponse(BaseModel):
    attachment_id: str
    role: str
    file_name: str
    content_type: str
    size: int
    session: SessionResponse


class AIAnalysisResponse(BaseModel):
    available: bool
    applied: bool = False
    analysis: Optional[Dict[str, Any]] = None
    warnings: List[str] = []
    proposed_patch: Dict[str, Dict[str, Any]] = {}
    session: SessionResponse


class SubmissionResponse(BaseModel):
    claim_id: str
    claim_number: str
    decision: str
    decision_reason: str
    status: str
    replayed: bool
    session: SessionResponse


class DocumentResponse(BaseModel):
    document_id: str
    document_type: str
    document_subtype: str
    file_name: str
    file_path: str
    file_size: int
    content_type: Optional[str]
    metadata: Dict[str, Any]
    uploaded_at: str


class ClaimResponse(BaseModel):
    claim_id: str
    claim_number: str
    policy_id: str
    claim_type: str
    description: str
    decision: str
    decision_reason: Optional[str]
    status: str
    product_condition: Optional[str]
    has_receipt: bool
    timeline: List[Dict[str, Any]]
    documents: List[DocumentResponse]
    created_at: str


# ============================================================================
# Helpers
# ============================================================================

def _load_session(store: SessionStore, session_id: str, owner_id: str) -> WizardSession:
    session = store.load(session_id)
    if session.owner_id != owner_id:
        raise SessionNotFoundError(f"Claim session {session_id} not found or expired")
    return session


def _context(db: Session, session: WizardSession) -> StageContext:
    return build_stage_context(db, session)


def _session_view(session: WizardSession, ctx: StageContext) -> SessionResponse:
    navigator = get_stage_navigator()
    stage = navigator.current_stage(session)
    closed = session.is_closed
    return SessionResponse(
        session_id=session.session_id,
        policy_id=session.policy_id,
        policy_preselected=session.policy_preselected,
        claim_type=session.draft.claim_type.value if session.draft.claim_type else None,
        position=session.position,
        stage_id=stage.stage_id,
        stages=describe_stages(session.draft.claim_type),
        allowed_claim_types=[ct.value for ct in ctx.allowed_claim_types],
        draft=session.draft.model_dump(mode="json"),
        pending_errors=[] if closed or stage.is_terminal else navigator.pending_problems(session, ctx),
        advisories=[] if closed else navigator.advisories(session, ctx),
        idempotency_key=session.idempotency_key,
        claim_id=session.claim_id,
        claim_number=session.claim_number,
        decision=session.decision,
        decision_reason=session.decision_reason,
        is_closed=closed,
    )


def _navigation_response(
    session: WizardSession,
    result: NavigationResult,
    ctx: StageContext,
) -> NavigationResponse:
    return NavigationResponse(
        moved=result.moved,
        stage_id=result.stage_id,
        advisories=result.advisories,
        session=_session_view(session, ctx),
    )


def _claim_response(claim: Claim) -> ClaimResponse:
    return ClaimResponse(
        claim_id=str(claim.claim_id),
        claim_number=claim.claim_number,
        policy_id=str(claim.policy_id),
        claim_type=claim.claim_type.value,
        description=claim.description,
        decision=claim.decision.value,
        decision_reason=claim.decision_reason,
        status=claim.status.value,
        product_condition=claim.product_condition.value if claim.product_condition else None,
        has_receipt=claim.has_receipt,
        timeline=claim.timeline or [],
        documents=[
            DocumentResponse(
                document_id=str(doc.document_id),
                document_type=doc.document_type.value,
                document_subtype=doc.document_subtype.value,
                file_name=doc.file_name,
                file_path=doc.file_path,
                file_size=doc.file_size,
                content_type=doc.content_type,
                metadata=doc.document_metadata or {},
                uploaded_at=doc.uploaded_at.isoformat(),
            )
            for doc in claim.documents
        ],
        created_at=claim.created_at.isoformat(),
    )


# ============================================================================
# Reference data
# ============================================================================

@router.get("/vocabulary")
async def get_vocabulary():
    """Option lists the wizard forms offer."""
    return {
        "device_categories": DEVICE_CATEGORIES,
        "fault_categories": FAULT_CATEGORIES,
        "specific_issues": SPECIFIC_ISSUES,
        "severity_levels": SEVERITY_LEVELS,
        "default_severity": DEFAULT_SEVERITY,
        "issue_frequencies": ISSUE_FREQUENCIES,
        "damage_types": DAMAGE_TYPES,
        "damage_areas": DAMAGE_AREAS,
    }


@router.get("/decision-rules")
async def get_decision_rules():
    """Automatic decision rules, highest priority first."""
    engine = get_decision_engine()
    return {"rule_version": engine.RULE_VERSION, "rules": engine.get_rule_descriptions()}


# ============================================================================
# Wizard sessions
# ============================================================================

@router.post("/sessions", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
async def create_session(
    request: CreateSessionRequest,
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
    store: SessionStore = Depends(get_session_store),
):
    """Start a claim. A policy chosen up front skips the policy stage."""
    if request.policy_id:
        PolicyContextLoader(db).load(request.policy_id, owner_id=owner_id)

    session = create_wizard_session(owner_id, request.policy_id)
    store.save(session)
    logger.info(f"Claim session {session.session_id} started")
    return _session_view(session, _context(db, session))


@router.get("/sessions/{session_id}", response_model=SessionResponse)
async def get_session(
    session_id: str,
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
    store: SessionStore = Depends(get_session_store),
):
    """Current stage, draft and outstanding problems."""
    session = _load_session(store, session_id, owner_id)
    return _session_view(session, _context(db, session))


@router.post("/sessions/{session_id}/policy", response_model=SessionResponse)
async def select_policy(
    session_id: str,
    request: SelectPolicyRequest,
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
    store: SessionStore = Depends(get_session_store),
):
    session = _load_session(store, session_id, owner_id)
    policy = PolicyContextLoader(db).load(request.policy_id, owner_id=owner_id)
    session = store.save(get_stage_navigator().select_policy(session, policy))
    return _session_view(session, _context(db, session))


@router.post("/sessions/{session_id}/claim-type", response_model=SessionResponse)
async def choose_claim_type(
    session_id: str,
    request: ClaimTypeRequest,
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
    store: SessionStore = Depends(get_session_store),
    staging: StagingArea = Depends(get_staging_area),
):
    """Pick breakdown, damage or theft. Refused when the policy does not cover it."""
    session = _load_session(store, session_id, owner_id)
    ctx = _context(db, session)
    updated = get_stage_navigator().choose_claim_type(session, request.claim_type, ctx)

    kept = {a.attachment_id for a in updated.draft.attachments}
    for attachment in session.draft.attachments:
        if attachment.attachment_id not in kept:
            staging.discard(attachment.staged_path)

    session = store.save(updated)
    return _session_view(session, _context(db, session))


@router.patch("/sessions/{session_id}/stages/{stage_id}", response_model=SessionResponse)
async def patch_stage(
    session_id: str,
    stage_id: str,
    changes: Dict[str, Dict[str, Any]],
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
    store: SessionStore = Depends(get_session_store),
):
    """Update fields of the current stage, e.g. {"fault": {"severity": "..."}}."""
    session = _load_session(store, session_id, owner_id)
    session = store.save(get_stage_navigator().patch_stage(session, stage_id, changes))
    return _session_view(session, _context(db, session))


@router.post("/sessions/{session_id}/device-confirmation", response_model=SessionResponse)
async def confirm_device(
    session_id: str,
    request: DeviceConfirmationRequest,
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
    store: SessionStore = Depends(get_session_store),
):
    session = _load_session(store, session_id, owner_id)
    ctx = _context(db, session)
    session = store.save(get_stage_navigator().confirm_device(session, request.confirmation, ctx))
    return _session_view(session, _context(db, session))


# ============================================================================
# Attachments
# ============================================================================

@router.post("/sessions/{session_id}/attachments/{role}", response_model=AttachmentResponse)
async def add_attachment(
    session_id: str,
    role: EvidenceRole,
    file: UploadFile = File(...),
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
    store: SessionStore = Depends(get_session_store),
    staging: StagingArea = Depends(get_staging_area),
):
    """Accept one evidence file for the current stage and hold it until submission."""
    session = _load_session(store, session_id, owner_id)
    navigator = get_stage_navigator()
    navigator.require_open(session)
    navigator.require_role(session, role)

    content = await file.read()
    check_file(role, file.content_type, len(content), file.filename)

    attachment = Attachment(
        role=role,
        file_name=file.filename or "upload",
        content_type=(file.content_type or "").lower(),
        size=len(content),
        staged_path="",
    )
    staged_path = staging.stage(session.session_id, attachment.attachment_id, content)
    attachment = attachment.model_copy(update={"staged_path": staged_path})

    session = store.save(navigator.attach(session, attachment))
    logger.info(f"Attachment {attachment.attachment_id} ({role.value}) added to session {session_id}")
    return AttachmentResponse(
        attachment_id=attachment.attachment_id,
        role=role.value,
        file_name=attachment.file_name,
        content_type=attachment.content_type,
        size=attachment.size,
        session=_session_view(session, _context(db, session)),
    )


@router.delete("/sessions/{session_id}/attachments/{attachment_id}", response_model=SessionResponse)
async def remove_attachment(
    session_id: str,
    attachment_id: str,
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
    store: SessionStore = Depends(get_session_store),
    staging: StagingArea = Depends(get_staging_area),
):
    session = _load_session(store, session_id, owner_id)
    session, removed = get_stage_navigator().detach(session, attachment_id)
    if removed is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Attachment not found",
        )
    staging.discard(removed.staged_path)
    store.save(session)
    return _session_view(session, _context(db, session))


# ============================================================================
# Navigation
# ============================================================================

@router.post("/sessions/{session_id}/advance", response_model=NavigationResponse)
async def advance(
    session_id: str,
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
    store: SessionStore = Depends(get_session_store),
):
    """Move to the next stage. Refused with the stage's problems when incomplete."""
    session = _load_session(store, session_id, owner_id)
    ctx = _context(db, session)
    session, result = get_stage_navigator().advance(session, ctx)
    if not result.moved:
        raise ClaimValidationError(
            "This step is not complete yet",
            result.errors,
            stage_id=result.stage_id,
        )
    store.save(session)
    return _navigation_response(session, result, _context(db, session))


@router.post("/sessions/{session_id}/retreat", response_model=NavigationResponse)
async def retreat(
    session_id: str,
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
    store: SessionStore = Depends(get_session_store),
):
    """Go back one stage. Always allowed, nothing is discarded."""
    session = _load_session(store, session_id, owner_id)
    session, result = get_stage_navigator().retreat(session)
    if result.moved:
        store.save(session)
    return _navigation_response(session, result, _context(db, session))


# ============================================================================
# AI analysis (advisory)
# ============================================================================

@router.post("/sessions/{session_id}/ai-analysis/{attachment_id}", response_model=AIAnalysisResponse)
async def analyze_attachment(
    session_id: str,
    attachment_id: str,
    apply: bool = Query(False),
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
    store: SessionStore = Depends(get_session_store),
    staging: StagingArea = Depends(get_staging_area),
    ai_service: AIAnalysisService = Depends(get_ai_analysis_service),
):
    """
    Ask the vision model about a staged photo.

    The result is a hint. With apply=true the proposed values fill empty
    draft fields; otherwise the draft is left alone apart from keeping the
    analysis for the claim documents.
    """
    session = _load_session(store, session_id, owner_id)
    get_stage_navigator().require_open(session)
    attachment = next((a for a in session.draft.attachments if a.attachment_id == attachment_id), None)
    if attachment is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Attachment not found",
        )

    ctx = _context(db, session)
    insured = ctx.insured_device
    insured_category = None
    if insured is not None:
        insured_category = match_device_category(insured.product_name) or insured.product_name

    try:
        content = staging.read(attachment.staged_path)
    except StorageError as exc:
        logger.warning(f"AI analysis skipped for attachment {attachment_id}: {exc.message}")
        return AIAnalysisResponse(available=False, session=_session_view(session, ctx))

    result = await ai_service.analyze(
        content,
        attachment.content_type,
        insured_category=insured_category,
        claim_type=session.draft.claim_type,
        product_type=ctx.policy.product_type if ctx.policy else None,
    )
    if result is None:
        return AIAnalysisResponse(available=False, session=_session_view(session, ctx))

    draft = record_ai_analysis(session.draft, result.to_snapshot(attachment_id))
    patch = propose_draft_patch(result, draft)
    if apply:
        for section, fields in patch.items():
            draft = update_section(draft, section, fields)

    session = store.save(session.model_copy(update={"draft": draft}))
    warnings = [w for w in (result.mismatch_warning, result.physical_damage_warning) if w]
    return AIAnalysisResponse(
        available=True,
        applied=apply and bool(patch),
        analysis={
            "device_category": result.device_category,
            "brand": result.brand,
            "model": result.model,
            "color": result.color,
            "damage_type": result.damage_type,
            "severity_level": result.severity_level,
            "explanation": result.explanation,
            "device_mismatch": result.device_mismatch,
            "has_visible_physical_damage": result.has_visible_physical_damage,
        },
        warnings=warnings,
        proposed_patch=patch,
        session=_session_view(session, _context(db, session)),
    )


# ============================================================================
# Submission
# ============================================================================

@router.post("/sessions/{session_id}/submit", response_model=SubmissionResponse)
async def submit_claim(
    session_id: str,
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
    store: SessionStore = Depends(get_session_store),
    storage: FileStorage = Depends(get_file_storage),
    staging: StagingArea = Depends(get_staging_area),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
):
    """
    Submit the claim and return the automatic decision.

    Repeating the call for a submitted session returns the same claim.
    """
    session = _load_session(store, session_id, owner_id)
    navigator = get_stage_navigator()

    if session.is_closed:
        return SubmissionResponse(
            claim_id=session.claim_id,
            claim_number=session.claim_number,
            decision=session.decision,
            decision_reason=session.decision_reason or "",
            status=_claim_status(db, session.claim_id),
            replayed=True,
            session=_session_view(session, StageContext()),
        )

    ctx = _context(db, session)
    problems = navigator.submission_problems(session, ctx)
    if problems:
        raise ClaimValidationError(
            "The claim cannot be submitted yet",
            problems,
            stage_id=navigator.current_stage(session).stage_id,
        )

    pipeline = SubmissionPipeline(db, storage, staging, dispatcher)
    result = await pipeline.run(session, ctx.policy, ctx.warranty)

    session = navigator.enter_decision(
        session,
        claim_id=result.claim_id,
        claim_number=result.claim_number,
        decision=result.decision,
        decision_reason=result.decision_reason,
    )
    store.save(session)
    staging.discard_session(session.session_id)

    return SubmissionResponse(
        claim_id=result.claim_id,
        claim_number=result.claim_number,
        decision=result.decision,
        decision_reason=result.decision_reason,
        status=result.status,
        replayed=result.replayed,
        session=_session_view(session, StageContext()),
    )


def _claim_status(db: Session, claim_id: str) -> str:
    claim = db.query(Claim).filter(Claim.claim_id == UUID(claim_id)).first()
    return claim.status.value if claim else ""


# ============================================================================
# Submitted claims
# ============================================================================

@router.get("/{claim_id}", response_model=ClaimResponse)
async def get_claim(
    claim_id: UUID,
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
):
    """Get a submitted claim with its documents."""
    claim = db.query(Claim).filter(
        Claim.claim_id == claim_id,
        Claim.owner_id == owner_id,
    ).first()

    if not claim:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Claim not found",
        )

    return _claim_response(claim)
