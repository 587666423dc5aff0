"""
Device catalog models carrying manufacturer warranty periods
"""
import uuid

from sqlalchemy import Column, String, Integer
from sqlalchemy.dialects.postgresql import UUID

from claimportal.db.base import Base


class DeviceCategory(Base):
    """Device category with its default manufacturer warranty."""

    __tablename__ = "device_categories"

    category_id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(100), unique=True, nullable=False)
    manufacturer_warranty_months = Column(Integer)

    def __repr__(self) -> str:
        return f"<DeviceCategory {self.name}>"


class DeviceModel(Base):
    """Specific device model, overrides the category warranty."""

    __tablename__ = "device_models"

    model_id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    model_name = Column(String(200), nullable=False, index=True)
    device_category = Column(String(100))
    manufacturer_warranty_months = Column(Integer)

    def __repr__(self) -> str:
        return f"<DeviceModel {self.model_name}>"
