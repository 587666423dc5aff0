"""
Product, Policy and InsuredDevice database models
"""
import uuid
from datetime import datetime
from enum import Enum as PyEnum

from sqlalchemy import Column, String, Date, DateTime, Enum, ForeignKey, Numeric
from sqlalchemy.dialects.postgresql import UUID, JSON
from sqlalchemy.orm import relationship

from claimportal.db.base import Base


class ProductType(str, PyEnum):
    EXTENDED_WARRANTY = "extended_warranty"  # basic tier
    INSURANCE_LITE = "insurance_lite"
    INSURANCE_MAX = "insurance_max"


class PolicyStatus(str, PyEnum):
    ACTIVE = "active"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


class Product(Base):
    """Insurance product a policy is sold against."""

    __tablename__ = "products"

    product_id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(200), nullable=False)
    product_type = Column(Enum(ProductType), nullable=False)

    # Ordered lists of strings, e.g. ["Accidental Damage", "Theft"]
    coverage = Column(JSON, default=list)
    perils = Column(JSON, default=list)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    policies = relationship("Policy", back_populates="product")

    def __repr__(self) -> str:
        return f"<Product {self.name} ({self.product_type.value})>"


class Policy(Base):
    """Device insurance policy."""

    __tablename__ = "policies"

    policy_id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    policy_number = Column(String(50), unique=True, nullable=False, index=True)
    owner_id = Column(String(64), nullable=False, index=True)
    product_id = Column(UUID(as_uuid=True), ForeignKey("products.product_id"), nullable=False)
    start_date = Column(Date, nullable=False)
    status = Column(Enum(PolicyStatus), default=PolicyStatus.ACTIVE, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    product = relationship("Product", back_populates="policies")
    insured_device = relationship(
        "InsuredDevice", back_populates="policy", uselist=False, cascade="all, delete-orphan"
    )
    claims = relationship("Claim", back_populates="policy")

    def __repr__(self) -> str:
        return f"<Policy {self.policy_number} ({self.status.value})>"


class InsuredDevice(Base):
    """The single device registered against a policy."""

    __tablename__ = "insured_devices"

    device_id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    policy_id = Column(
        UUID(as_uuid=True), ForeignKey("policies.policy_id"), nullable=False, unique=True
    )
    product_name = Column(String(200), nullable=False)
    model = Column(String(200))
    serial_number = Column(String(100))
    purchase_price = Column(Numeric(10, 2))
    purchase_date = Column(Date)
    added_date = Column(Date)  # enrollment date on the policy
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    policy = relationship("Policy", back_populates="insured_device")

    def __repr__(self) -> str:
        return f"<InsuredDevice {self.product_name} {self.model or ''}>"

