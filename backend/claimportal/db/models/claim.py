"""
Claim database model
"""
import uuid
from datetime import datetime
from enum import Enum as PyEnum

from sqlalchemy import Column, String, Text, DateTime, Enum, ForeignKey, Boolean
from sqlalchemy.dialects.postgresql import UUID, JSON
from sqlalchemy.orm import relationship

from claimportal.db.base import Base


class ClaimType(str, PyEnum):
    BREAKDOWN = "breakdown"
    DAMAGE = "damage"
    THEFT = "theft"


class ClaimDecision(str, PyEnum):
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    REFERRED = "referred"  # manual review required


class ClaimStatus(str, PyEnum):
    NOTIFIED = "notified"
    REFERRED = "referred"
    REJECTED = "rejected"


class ProductCondition(str, PyEnum):
    SEVERE = "severe"
    MODERATE = "moderate"


# Decision -> persisted status, one to one
DECISION_STATUS = {
    ClaimDecision.ACCEPTED: ClaimStatus.NOTIFIED,
    ClaimDecision.REFERRED: ClaimStatus.REFERRED,
    ClaimDecision.REJECTED: ClaimStatus.REJECTED,
}


class Claim(Base):
    """Submitted device claim. Written once by the submission pipeline."""

    __tablename__ = "claims"

    claim_id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    claim_number = Column(String(50), unique=True, nullable=False, index=True)
    policy_id = Column(UUID(as_uuid=True), ForeignKey("policies.policy_id"), nullable=False)
    owner_id = Column(String(64), nullable=False, index=True)
    claim_type = Column(Enum(ClaimType), nullable=False)
    description = Column(Text, nullable=False)
    decision = Column(Enum(ClaimDecision), nullable=False)
    decision_reason = Column(Text)
    status = Column(Enum(ClaimStatus), nullable=False)
    product_condition = Column(Enum(ProductCondition), default=ProductCondition.MODERATE)
    has_receipt = Column(Boolean, default=False, nullable=False)

    # Submission token from the wizard session; a replayed submit returns this claim
    idempotency_key = Column(String(64), unique=True, index=True)

    # Timeline: list of {status, timestamp, actor, notes}
    timeline = Column(JSON, default=list)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    policy = relationship("Policy", back_populates="claims")
    documents = relationship(
        "ClaimDocument", back_populates="claim", cascade="all, delete-orphan",
        order_by="ClaimDocument.position",
    )

    def __repr__(self) -> str:
        return f"<Claim {self.claim_number} ({self.status.value})>"

    def add_timeline_event(self, status: str, actor: str, notes: str = "") -> None:
        """Add an event to the claim timeline."""
        if self.timeline is None:
            self.timeline = []
        self.timeline = self.timeline + [{
            "status": status,
            "timestamp": datetime.utcnow().isoformat(),
            "actor": actor,
            "notes": notes,
        }]
