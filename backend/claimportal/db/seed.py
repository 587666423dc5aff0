"""
Seed the database with demo products, policies, the device warranty catalog
and claim notification templates.
Run with: python -m claimportal.db.seed
"""
from datetime import date
from decimal import Decimal
from typing import Dict, List

from sqlalchemy.orm import Session

from claimportal.core.logging import logger
from claimportal.db.models import (
    ClaimStatus,
    CommunicationTemplate,
    DeviceCategory,
    DeviceModel,
    InsuredDevice,
    Policy,
    PolicyStatus,
    Product,
    ProductType,
)


DEMO_OWNER_ID = "demo-claimant"

PRODUCTS: List[Dict] = [
    {
        "name": "Extended Warranty",
        "product_type": ProductType.EXTENDED_WARRANTY,
        "coverage": ["Mechanical and electrical breakdown after the manufacturer warranty"],
        "perils": [],
    },
    {
        "name": "Device Protect Lite",
        "product_type": ProductType.INSURANCE_LITE,
        "coverage": ["Accidental damage", "Liquid damage"],
        "perils": ["Accidental Damage", "Liquid Damage"],
    },
    {
        "name": "Device Protect Max",
        "product_type": ProductType.INSURANCE_MAX,
        "coverage": ["Breakdown", "Accidental damage", "Theft and loss"],
        "perils": ["Breakdown", "Accidental Damage", "Theft and Loss"],
    },
]

POLICIES: List[Dict] = [
    {
        "policy_number": "POL-EW-100001",
        "product": "Extended Warranty",
        "start_date": date(2024, 2, 1),
        "device": {
            "product_name": "Samsung Laptop",
            "model": "Galaxy Book3",
            "serial_number": "SGB3-55120",
            "purchase_price": Decimal("1099.00"),
            "purchase_date": date(2024, 1, 20),
        },
    },
    {
        "policy_number": "POL-LT-200001",
        "product": "Device Protect Lite",
        "start_date": date(2024, 9, 1),
        "device": {
            "product_name": "Apple Tablet",
            "model": "iPad Air",
            "serial_number": "DMPX-88213",
            "purchase_price": Decimal("699.00"),
            "purchase_date": date(2024, 8, 28),
        },
    },
    {
        "policy_number": "POL-MX-300001",
        "product": "Device Protect Max",
        "start_date": date(2025, 1, 10),
        "device": {
            "product_name": "Apple Smartphone",
            "model": "iPhone 15",
            "serial_number": "F2LX-40917",
            "purchase_price": Decimal("999.00"),
            "purchase_date": date(2025, 1, 5),
        },
    },
]

WARRANTY_CATEGORIES = {
    "Smartphone": 12,
    "Tablet": 12,
    "Laptop": 24,
    "Desktop Computer": 24,
    "Television": 24,
    "Home Appliance": 24,
}

WARRANTY_MODELS = [
    ("iPhone 15", "Smartphone", 12),
    ("iPad Air", "Tablet", 12),
    ("Galaxy Book3", "Laptop", 24),
]

TEMPLATE_STATUSES = [status.value for status in ClaimStatus]


def seed_demo_data(db: Session, owner_id: str = DEMO_OWNER_ID) -> int:
    """
    Insert demo records that are not there yet.

    Returns:
        Number of policies created
    """
    products: Dict[str, Product] = {}
    for data in PRODUCTS:
        product = db.query(Product).filter(Product.name == data["name"]).first()
        if product is None:
            product = Product(**data)
            db.add(product)
            db.flush()
        products[data["name"]] = product

    for name, months in WARRANTY_CATEGORIES.items():
        if db.query(DeviceCategory).filter(DeviceCategory.name == name).first() is None:
            db.add(DeviceCategory(name=name, manufacturer_warranty_months=months))

    for model_name, category, months in WARRANTY_MODELS:
        if db.query(DeviceModel).filter(DeviceModel.model_name == model_name).first() is None:
            db.add(DeviceModel(
                model_name=model_name,
                device_category=category,
                manufacturer_warranty_months=months,
            ))

    for status in TEMPLATE_STATUSES:
        exists = db.query(CommunicationTemplate).filter(
            CommunicationTemplate.template_type == "claim",
            CommunicationTemplate.status == status,
        ).first()
        if exists is None:
            db.add(CommunicationTemplate(
                name=f"Claim {status}",
                template_type="claim",
                status=status,
                subject=f"Update on your device claim: {status}",
                body="Your claim {claim_number} is now " + status + ".",
            ))

    created = 0
    for data in POLICIES:
        if db.query(Policy).filter(Policy.policy_number == data["policy_number"]).first():
            logger.info(f"Skipping {data['policy_number']} (already exists)")
            continue

        policy = Policy(
            policy_number=data["policy_number"],
            owner_id=owner_id,
            product_id=products[data["product"]].product_id,
            start_date=data["start_date"],
            status=PolicyStatus.ACTIVE,
        )
        db.add(policy)
        db.flush()
        db.add(InsuredDevice(
            policy_id=policy.policy_id,
            added_date=data["start_date"],
            **data["device"],
        ))
        created += 1

    db.commit()
    logger.info(f"Seeded {created} demo policies for owner {owner_id}")
    return created


if __name__ == "__main__":
    from claimportal.db import Base, SessionLocal, engine

    print("\n" + "=" * 60)
    print("SEEDING DATABASE WITH DEMO POLICIES")
    print("=" * 60 + "\n")

    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        count = seed_demo_data(session)
        print(f"Created {count} policies for owner '{DEMO_OWNER_ID}'")
    finally:
        session.close()
