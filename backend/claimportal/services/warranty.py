"""
Warranty Overlap Evaluator

Works out whether a breakdown falls inside the manufacturer warranty, in
which case the manufacturer has to handle it before the extended warranty
applies.
"""
import calendar
from dataclasses import dataclass
from datetime import date
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from claimportal.core.config import settings
from claimportal.core.logging import logger
from claimportal.db.models import DeviceCategory, DeviceModel
from claimportal.services.policy_context import PolicyContext


@dataclass(frozen=True)
class WarrantyResult:
    """Manufacturer warranty window for a reported fault."""
    within_warranty: bool
    warranty_months: int
    purchase_date: Optional[date] = None
    purchase_date_source: Optional[str] = None  # purchase_date, added_date, policy_start_date
    warranty_end: Optional[date] = None
    fault_date: Optional[date] = None

    def advisory(self) -> str:
        return (
            "Manufacturer Warranty Notice: The problem date falls within the manufacturer's "
            f"{self.warranty_months}-month warranty period from your device purchase date. "
            "Please contact the manufacturer first for warranty support before submitting "
            "an extended warranty claim."
        )


def add_months(start: date, months: int) -> date:
    """Calendar month addition, clamped to the last day of the target month."""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def resolve_purchase_date(policy: Optional[PolicyContext]) -> tuple[Optional[date], Optional[str]]:
    """Device purchase date, then enrollment date, then policy start date."""
    if policy is None:
        return None, None
    device = policy.insured_device
    if device is not None and device.purchase_date:
        return device.purchase_date, "purchase_date"
    if device is not None and device.added_date:
        return device.added_date, "added_date"
    if policy.start_date:
        return policy.start_date, "policy_start_date"
    return None, None


def is_within_warranty(fault_date: date, purchase_date: date, warranty_months: int) -> bool:
    """A fault on the exact expiry day is already outside the warranty."""
    return fault_date < add_months(purchase_date, warranty_months)


def evaluate_warranty(
    fault_date: Optional[date],
    purchase_date: Optional[date],
    warranty_months: int,
    purchase_date_source: Optional[str] = None,
) -> WarrantyResult:
    if fault_date is None or purchase_date is None:
        return WarrantyResult(
            within_warranty=False,
            warranty_months=warranty_months,
            purchase_date=purchase_date,
            purchase_date_source=purchase_date_source,
            fault_date=fault_date,
        )

    return WarrantyResult(
        within_warranty=is_within_warranty(fault_date, purchase_date, warranty_months),
        warranty_months=warranty_months,
        purchase_date=purchase_date,
        purchase_date_source=purchase_date_source,
        warranty_end=add_months(purchase_date, warranty_months),
        fault_date=fault_date,
    )


class WarrantyLookup:
    """Manufacturer warranty months from the device catalog."""

    def __init__(self, db: Session, default_months: Optional[int] = None):
        self.db = db
        self.default_months = default_months or settings.DEFAULT_WARRANTY_MONTHS

    def months_for(self, device_model: Optional[str] = None, device_category: Optional[str] = None) -> int:
        """Model match first, then category, then the configured default."""
        if device_model and device_model.strip():
            pattern = f"%{device_model.strip().lower()}%"
            model_row = (
                self.db.query(DeviceModel)
                .filter(func.lower(DeviceModel.model_name).like(pattern))
                .filter(DeviceModel.manufacturer_warranty_months.isnot(None))
                .first()
            )
            if model_row:
                return model_row.manufacturer_warranty_months

        if device_category and device_category.strip():
            category_row = (
                self.db.query(DeviceCategory)
                .filter(func.lower(DeviceCategory.name) == device_category.strip().lower())
                .first()
            )
            if category_row and category_row.manufacturer_warranty_months:
                return category_row.manufacturer_warranty_months

        logger.debug(
            f"No warranty entry for model={device_model!r} category={device_category!r}, "
            f"using default {self.default_months} months"
        )
        return self.default_months
