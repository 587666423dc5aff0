"""
Claim document database model
"""
import uuid
from datetime import datetime
from enum import Enum as PyEnum

from sqlalchemy import Column, String, Integer, DateTime, Enum, ForeignKey
from sqlalchemy.dialects.postgresql import UUID, JSON
from sqlalchemy.orm import relationship

from claimportal.db.base import Base


class DocumentType(str, PyEnum):
    PHOTO = "photo"
    RECEIPT = "receipt"
    OTHER = "other"


class DocumentSubtype(str, PyEnum):
    RECEIPT = "receipt"
    OTHER = "other"


class ClaimDocument(Base):
    """File uploaded as evidence for a claim."""

    __tablename__ = "claim_documents"

    document_id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    claim_id = Column(UUID(as_uuid=True), ForeignKey("claims.claim_id"), nullable=False)
    owner_id = Column(String(64), nullable=False)
    document_type = Column(Enum(DocumentType), nullable=False)
    document_subtype = Column(Enum(DocumentSubtype), nullable=False)
    file_name = Column(String(255), nullable=False)
    file_path = Column(String(500), nullable=False)
    file_size = Column(Integer, nullable=False)
    content_type = Column(String(100))
    position = Column(Integer, default=0, nullable=False)  # upload order

    # {"evidence_role": ..., "ai_analysis": {...}}
    document_metadata = Column("metadata", JSON, default=dict)

    uploaded_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    claim = relationship("Claim", back_populates="documents")

    def __repr__(self) -> str:
        return f"<ClaimDocument {self.file_name} ({self.document_type.value})>"
