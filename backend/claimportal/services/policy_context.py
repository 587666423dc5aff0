"""
Policy Context Loader
Fetches the active policy, its product perils and the insured device for a claimant.
"""
from typing import Optional, List
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session, joinedload

from claimportal.db.models import Policy, PolicyStatus
from claimportal.core.exceptions import PolicyNotFoundError
from claimportal.core.logging import logger


@dataclass(frozen=True)
class InsuredDeviceInfo:
    """Read-only snapshot of the device registered on a policy."""
    product_name: str
    model: Optional[str] = None
    serial_number: Optional[str] = None
    purchase_price: Optional[Decimal] = None
    purchase_date: Optional[date] = None
    added_date: Optional[date] = None


@dataclass(frozen=True)
class PolicyContext:
    """Everything the claim wizard needs to know about a policy."""
    policy_id: str
    policy_number: str
    owner_id: str
    start_date: date
    product_name: str
    product_type: str
    coverage: List[str] = field(default_factory=list)
    perils: List[str] = field(default_factory=list)
    insured_device: Optional[InsuredDeviceInfo] = None


class PolicyContextLoader:
    """Loads PolicyContext snapshots. No business rules live here."""

    def __init__(self, db: Session):
        self.db = db

    def _query(self):
        return self.db.query(Policy).options(
            joinedload(Policy.product),
            joinedload(Policy.insured_device),
        )

    def load(self, policy_id: str, owner_id: Optional[str] = None) -> PolicyContext:
        """
        Load the context for one policy.

        Args:
            policy_id: Policy UUID
            owner_id: When given, the policy must belong to this claimant

        Raises:
            PolicyNotFoundError: unknown policy, foreign policy or not active
        """
        try:
            policy_uuid = UUID(str(policy_id))
        except ValueError:
            raise PolicyNotFoundError(f"Invalid policy id: {policy_id}")

        query = self._query().filter(Policy.policy_id == policy_uuid)
        if owner_id is not None:
            query = query.filter(Policy.owner_id == owner_id)
        policy = query.first()

        if not policy:
            logger.info(f"Policy {policy_id} not found for owner {owner_id}")
            raise PolicyNotFoundError("Policy not found", {"policy_id": str(policy_id)})

        if policy.status != PolicyStatus.ACTIVE:
            logger.info(f"Policy {policy.policy_number} is not active: {policy.status}")
            raise PolicyNotFoundError(
                f"Policy {policy.policy_number} is {policy.status.value}",
                {"policy_id": str(policy_id), "status": policy.status.value},
            )

        return self._to_context(policy)

    def list_for_owner(self, owner_id: str) -> List[PolicyContext]:
        """Active policies a claimant can file against."""
        policies = (
            self._query()
            .filter(Policy.owner_id == owner_id, Policy.status == PolicyStatus.ACTIVE)
            .order_by(Policy.start_date.desc())
            .all()
        )
        return [self._to_context(p) for p in policies]

    @staticmethod
    def _to_context(policy: Policy) -> PolicyContext:
        device = policy.insured_device
        insured = None
        if device is not None:
            insured = InsuredDeviceInfo(
                product_name=device.product_name,
                model=device.model,
                serial_number=device.serial_number,
                purchase_price=device.purchase_price,
                purchase_date=device.purchase_date,
                added_date=device.added_date,
            )

        product = policy.product
        return PolicyContext(
            policy_id=str(policy.policy_id),
            policy_number=policy.policy_number,
            owner_id=policy.owner_id,
            start_date=policy.start_date,
            product_name=product.name,
            product_type=product.product_type.value,
            coverage=list(product.coverage or []),
            perils=list(product.perils or []),
            insured_device=insured,
        )
