"""
Communication template model used to pick claim notifications
"""
import uuid
from datetime import datetime

from sqlalchemy import Column, String, Text, Boolean, DateTime
from sqlalchemy.dialects.postgresql import UUID

from claimportal.db.base import Base


class CommunicationTemplate(Base):
    """Outbound message template keyed by type and claim status."""

    __tablename__ = "communication_templates"

    template_id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(200), nullable=False)
    template_type = Column(String(50), nullable=False, default="claim")
    status = Column(String(50), nullable=False)  # claim status it is sent for
    subject = Column(String(255))
    body = Column(Text)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<CommunicationTemplate {self.name} ({self.status})>"
