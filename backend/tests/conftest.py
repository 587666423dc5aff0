"""
Test configuration and fixtures for ClaimPortal backend tests.
"""
import os

# Keep the app's own engine off the filesystem
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("APP_ENV", "development")

import pytest
from datetime import date
from decimal import Decimal
from typing import Dict, Generator, List, Optional, Tuple
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from main import app
from claimportal.api import deps
from claimportal.core.exceptions import NotificationError, StorageError
from claimportal.db.base import Base
from claimportal.db.session import get_db
from claimportal.services.ai_analysis import AIAnalysisService
from claimportal.services.notifications import ClaimNotification, NotificationDispatcher
from claimportal.services.session_store import InMemorySessionStore
from claimportal.services.storage import FileStorage, StagingArea
from claimportal.services.warranty import add_months


# Use in-memory SQLite for testing
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

OWNER_ID = "owner-123"


class FakeStorage(FileStorage):
    """Blob storage that keeps files in memory and can fail on demand."""

    def __init__(self, fail_after: Optional[int] = None):
        self.fail_after = fail_after
        self.files: List[Tuple[str, bytes, str]] = []

    async def upload(self, owner_id, content, content_type, filename=None) -> str:
        if self.fail_after is not None and len(self.files) >= self.fail_after:
            raise StorageError(f"storage unavailable for {filename}")
        path = f"{owner_id}/{len(self.files) + 1}-{filename}"
        self.files.append((path, content, content_type))
        return path


class RecordingDispatcher(NotificationDispatcher):
    """Collects notifications instead of sending them."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent: List[ClaimNotification] = []

    async def dispatch(self, notification: ClaimNotification) -> None:
        if self.fail:
            raise NotificationError("webhook down")
        self.sent.append(notification)


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Create a fresh database for each test."""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def session_store() -> InMemorySessionStore:
    return InMemorySessionStore()


@pytest.fixture
def staging(tmp_path) -> StagingArea:
    return StagingArea(str(tmp_path / "staging"))


@pytest.fixture
def storage() -> FakeStorage:
    return FakeStorage()


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture
def ai_service() -> AIAnalysisService:
    """Disabled AI service; tests that need one build their own."""
    return AIAnalysisService(base_url="", api_key="", model="test-model")


@pytest.fixture(scope="function")
def client(
    db: Session,
    session_store,
    staging,
    storage,
    dispatcher,
    ai_service,
) -> Generator[TestClient, None, None]:
    """Create a test client with database and collaborator overrides."""
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[deps.get_session_store] = lambda: session_store
    app.dependency_overrides[deps.get_staging_area] = lambda: staging
    app.dependency_overrides[deps.get_file_storage] = lambda: storage
    app.dependency_overrides[deps.get_notification_dispatcher] = lambda: dispatcher
    app.dependency_overrides[deps.get_ai_analysis_service] = lambda: ai_service
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def owner_headers() -> Dict[str, str]:
    return {"X-Owner-Id": OWNER_ID}


def _product(db: Session, name: str, product_type: str, perils: List[str]):
    from claimportal.db.models import Product, ProductType

    product = Product(
        name=name,
        product_type=ProductType(product_type),
        coverage=perils,
        perils=perils,
    )
    db.add(product)
    db.flush()
    return product


def _policy(db: Session, product, number: str, purchase_date: date, with_device: bool = True):
    from claimportal.db.models import InsuredDevice, Policy, PolicyStatus

    policy = Policy(
        policy_number=number,
        owner_id=OWNER_ID,
        product_id=product.product_id,
        start_date=purchase_date,
        status=PolicyStatus.ACTIVE,
    )
    db.add(policy)
    db.flush()
    if with_device:
        db.add(InsuredDevice(
            policy_id=policy.policy_id,
            product_name="Apple Smartphone",
            model="iPhone 14",
            serial_number="SN-0001",
            purchase_price=Decimal("899.00"),
            purchase_date=purchase_date,
            added_date=purchase_date,
        ))
    db.commit()
    db.refresh(policy)
    return policy


@pytest.fixture
def purchase_date() -> date:
    """Device bought two years ago, so recent faults are out of warranty."""
    return add_months(date.today(), -24)


@pytest.fixture
def device_catalog(db: Session):
    from claimportal.db.models import DeviceCategory, DeviceModel

    db.add(DeviceCategory(name="Smartphone", manufacturer_warranty_months=12))
    db.add(DeviceCategory(name="Laptop", manufacturer_warranty_months=24))
    db.add(DeviceModel(model_name="iPhone 14", device_category="Smartphone", manufacturer_warranty_months=12))
    db.commit()


@pytest.fixture
def max_policy(db: Session, purchase_date, device_catalog):
    """Insurance Max policy covering breakdown, damage and theft."""
    product = _product(db, "Device Protect Max", "insurance_max", ["Breakdown", "Accidental Damage", "Theft and Loss"])
    return _policy(db, product, "POL-MAX-0001", purchase_date)


@pytest.fixture
def warranty_policy(db: Session, purchase_date, device_catalog):
    """Extended warranty policy without perils: breakdown only via tier fallback."""
    product = _product(db, "Extended Warranty", "extended_warranty", [])
    return _policy(db, product, "POL-EW-0001", purchase_date)


@pytest.fixture
def lite_policy(db: Session, purchase_date, device_catalog):
    product = _product(db, "Device Protect Lite", "insurance_lite", ["Accidental Damage"])
    return _policy(db, product, "POL-LITE-0001", purchase_date)


@pytest.fixture
def claim_templates(db: Session):
    from claimportal.db.models import CommunicationTemplate

    for status in ("notified", "referred", "rejected"):
        db.add(CommunicationTemplate(
            name=f"Claim {status}",
            template_type="claim",
            status=status,
            subject=f"Your claim was {status}",
            body="...",
        ))
    db.commit()
