"""
Database models package
"""
from claimportal.db.models.policy import (
    Product, Policy, InsuredDevice, ProductType, PolicyStatus
)
from claimportal.db.models.claim import (
    Claim, ClaimType, ClaimDecision, ClaimStatus, ProductCondition, DECISION_STATUS
)
from claimportal.db.models.document import ClaimDocument, DocumentType, DocumentSubtype
from claimportal.db.models.device_catalog import DeviceCategory, DeviceModel
from claimportal.db.models.communication import CommunicationTemplate

__all__ = [
    # Policy
    "Product",
    "Policy",
    "InsuredDevice",
    "ProductType",
    "PolicyStatus",
    # Claim
    "Claim",
    "ClaimType",
    "ClaimDecision",
    "ClaimStatus",
    "ProductCondition",
    "DECISION_STATUS",
    # Document
    "ClaimDocument",
    "DocumentType",
    "DocumentSubtype",
    # Device catalog
    "DeviceCategory",
    "DeviceModel",
    # Communication
    "CommunicationTemplate",
]
