"""
Policies API routes
"""
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from claimportal.api.deps import get_db, get_owner_id
from claimportal.services.coverage_gate import get_coverage_gate
from claimportal.services.policy_context import PolicyContext, PolicyContextLoader

router = APIRouter()


# Response schemas
class InsuredDeviceResponse(BaseModel):
    product_name: str
    model: Optional[str]
    serial_number: Optional[str]
    purchase_price: Optional[float]
    purchase_date: Optional[str]
    added_date: Optional[str]


class PolicyResponse(BaseModel):
    policy_id: str
    policy_number: str
    start_date: str
    product_name: str
    product_type: str
    coverage: List[str]
    perils: List[str]
    allowed_claim_types: List[str]
    insured_device: Optional[InsuredDeviceResponse] = None


def _policy_response(policy: PolicyContext) -> PolicyResponse:
    device = policy.insured_device
    return PolicyResponse(
        policy_id=policy.policy_id,
        policy_number=policy.policy_number,
        start_date=policy.start_date.isoformat(),
        product_name=policy.product_name,
        product_type=policy.product_type,
        coverage=policy.coverage,
        perils=policy.perils,
        allowed_claim_types=[ct.value for ct in get_coverage_gate().allowed_claim_types(policy)],
        insured_device=InsuredDeviceResponse(
            product_name=device.product_name,
            model=device.model,
            serial_number=device.serial_number,
            purchase_price=float(device.purchase_price) if device.purchase_price is not None else None,
            purchase_date=device.purchase_date.isoformat() if device.purchase_date else None,
            added_date=device.added_date.isoformat() if device.added_date else None,
        ) if device else None,
    )


@router.get("/", response_model=List[PolicyResponse])
async def list_policies(
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
):
    """Active policies of the claimant, newest first."""
    return [_policy_response(p) for p in PolicyContextLoader(db).list_for_owner(owner_id)]


@router.get("/{policy_id}/context", response_model=PolicyResponse)
async def get_policy_context(
    policy_id: str,
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
):
    """Policy, insured device and the claim types it allows."""
    return _policy_response(PolicyContextLoader(db).load(policy_id, owner_id=owner_id))
