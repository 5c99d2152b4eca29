# backend/tests/conftest.py
"""
Pytest configuration for the studio booking backend.

Every test gets its own SQLite database file under tmp_path, so tests never
touch a configured DATABASE_URL and concurrent-session tests see real
database locking.
"""

import os
import sys
import tempfile

# CRITICAL: Set testing mode BEFORE any app imports!
os.environ["is_testing"] = "true"
os.environ.setdefault("SITE_MODE", "test")
os.environ["DATABASE_URL"] = "sqlite:///" + os.path.join(
    tempfile.gettempdir(), "studio_booking_import_only.db"
)

# Add the backend directory to Python path so imports work
backend_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, backend_dir)

from datetime import datetime, timedelta, timezone
from typing import Callable, Iterator

import pytest
from fastapi.testclient import TestClient
from pydantic import SecretStr
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from app.api.dependencies.database import get_db
from app.api.dependencies.services import get_settings
from app.core.config import Settings, settings
from app.database import Base, build_engine
from app.main import app
from app.models.booking import Booking, BookingPaymentStatus, BookingStatus
from app.models.robokassa_payment import RobokassaPayment, RobokassaPaymentStatus
from app.services.robokassa_signature import RobokassaCredentials

settings.is_testing = True

MERCHANT_LOGIN = "studio-test"
PASSWORD1 = "pass-one"
PASSWORD2 = "pass-two"


@pytest.fixture
def credentials() -> RobokassaCredentials:
    return RobokassaCredentials(
        merchant_login=MERCHANT_LOGIN, password1=PASSWORD1, password2=PASSWORD2
    )


@pytest.fixture(scope="function")
def db_engine(tmp_path) -> Iterator[Engine]:
    engine = build_engine(f"sqlite:///{tmp_path / 'test.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(db_engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine, expire_on_commit=False)


@pytest.fixture(scope="function")
def db(session_factory: sessionmaker) -> Iterator[Session]:
    """Create a new database session for each test."""
    session = session_factory()
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def booking(db: Session) -> Booking:
    start = datetime(2026, 11, 2, 10, 0, tzinfo=timezone.utc)
    row = Booking(
        room_id=7,
        user_id=42,
        start_time=start,
        end_time=start + timedelta(hours=2),
        status=BookingStatus.CONFIRMED.value,
        payment_status=BookingPaymentStatus.UNPAID.value,
    )
    db.add(row)
    db.commit()
    return row


@pytest.fixture
def make_payment(db: Session, booking: Booking) -> Callable[..., RobokassaPayment]:
    """Insert a payment attempt for ``booking`` and commit it."""

    def _make(
        inv_id: int,
        out_sum: str = "1500.00",
        status: RobokassaPaymentStatus = RobokassaPaymentStatus.PENDING,
        **extra,
    ) -> RobokassaPayment:
        payment = RobokassaPayment(
            booking_id=booking.id,
            inv_id=inv_id,
            out_sum=out_sum,
            status=status.value,
            **extra,
        )
        db.add(payment)
        db.commit()
        return payment

    return _make


@pytest.fixture
def robokassa_settings() -> Settings:
    return settings.model_copy(
        update={
            "robokassa_merchant_login": MERCHANT_LOGIN,
            "robokassa_password1": SecretStr(PASSWORD1),
            "robokassa_password2": SecretStr(PASSWORD2),
            "robokassa_base_url": "https://auth.robokassa.ru/Merchant/Index.aspx",
            "robokassa_result_url": "",
            "robokassa_success_url": "",
            "robokassa_is_test": "1",
            "robokassa_trust_success_redirect": True,
            "frontend_payment_success_url": "",
            "frontend_payment_fail_url": "",
        }
    )


@pytest.fixture
def client(db: Session, robokassa_settings: Settings) -> Iterator[TestClient]:
    """Create a test client bound to the test database and Robokassa settings."""

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = lambda: robokassa_settings

    # Don't use context manager - create directly
    test_client = TestClient(app)

    yield test_client

    # Cleanup
    app.dependency_overrides.clear()
    test_client.close()
