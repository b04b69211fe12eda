import os
import tempfile
import time

# Settings are read once, so the environment must be in place before the app is imported
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["DB_URL"] = "sqlite://"
os.environ["USE_REDIS"] = "false"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["SESSION_SWEEPER_ENABLED"] = "false"
os.environ["FLUTTERWAVE_WEBHOOK_HASH"] = "test-webhook-hash"
os.environ["FLUTTERWAVE_PUBLIC_KEY"] = "FLWPUBK_TEST-public"
os.environ["LOGS_DIR"] = tempfile.mkdtemp(prefix="hireveno-logs-")

from datetime import timedelta
import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from hireveno.main import app
from hireveno.database.database import (
    Base, get_db, init_db, Department, User, UserRole, UserStatus, TutoringSession, SessionStatus, utcnow,
    PAYMENT_COMPLETED
)
from hireveno.services.content_filter import seed_default_keywords
from hireveno.services.flutterwave import FlutterwaveError, get_payment_gateway
from hireveno.services.notifications import notification_relay

# Create a test database
engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
TestingSessionLocal = sessionmaker(bind=engine)

class FakeGateway:
    """Stands in for FlutterwaveClient and records every call."""
    def __init__(self):
        self.escrow_calls = []
        self.transfers = []
        self.fail_escrow = False
        self.fail_transfer = False

    def settle_escrow(self, reference):
        self.escrow_calls.append(reference)
        if self.fail_escrow:
            raise FlutterwaveError("Escrow release failed", status_code=400)
        return {"status": "success", "message": "Escrow settled", "data": {}}

    def create_transfer(self, **kwargs):
        self.transfers.append(kwargs)
        if self.fail_transfer:
            raise FlutterwaveError("Insufficient balance in payout account", status_code=400)
        return {"status": "success", "message": "Transfer Queued", "data": {"id": 4242, "reference": kwargs["reference"]}}

@pytest.fixture
def db():
    Base.metadata.drop_all(bind=engine)
    init_db(engine)
    session = TestingSessionLocal()
    seed_default_keywords(session)
    yield session
    session.close()

@pytest.fixture
def gateway():
    return FakeGateway()

@pytest.fixture
def client(db, gateway):
    # Override the get_db dependency to use the test database
    def override_get_db():
        session = TestingSessionLocal()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    yield TestClient(app)
    app.dependency_overrides.clear()

@pytest.fixture(autouse=True)
def empty_inboxes():
    notification_relay._inboxes.clear()
    yield

def make_token(user_id, email, expires_in=3600):
    payload = {"sub": user_id, "email": email, "exp": int(time.time()) + expires_in}
    return jwt.encode(payload, os.environ["SECRET_KEY"], algorithm="HS256")

def auth_headers(user):
    return {"Authorization": f"Bearer {make_token(user.id, user.email)}"}

def make_user(db, role, name="User", **fields):
    user = User(role=role, name=name, email=fields.pop("email", f"{name.lower().replace(' ', '.')}@uniosun.edu.ng"),
                status=fields.pop("status", UserStatus.ACTIVE), **fields)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user

def make_session(db, client_user, tutor, duration=60, scheduled_at=None, status=SessionStatus.CONFIRMED,
                 payment_status=PAYMENT_COMPLETED, payment_reference="FLW-MOCK-123", amount=None):
    session = TutoringSession(
        client_id=client_user.id,
        student_id=tutor.id,
        duration=duration,
        scheduled_at=scheduled_at or utcnow() - timedelta(minutes=5),
        amount=amount or 150000,
        status=status,
        payment_status=payment_status,
        payment_reference=payment_reference,
        description=f"{duration} minute tutoring session",
    )
    db.add(session)
    db.commit()
    db.refresh(session)
    return session

@pytest.fixture
def department(db):
    department = Department(name="Biology")
    db.add(department)
    db.commit()
    db.refresh(department)
    return department

@pytest.fixture
def aspirant(db):
    return make_user(db, UserRole.ASPIRANT, name="Ada Learner", wallet_balance=150000)

@pytest.fixture
def tutor(db, department):
    return make_user(db, UserRole.STUDENT, name="Tunde Tutor", is_verified=True, badge=True,
                     department_id=department.id)

@pytest.fixture
def banked_tutor(db, department):
    return make_user(db, UserRole.STUDENT, name="Bisi Banked", is_verified=True, badge=True,
                     department_id=department.id, bank_name="Access Bank", bank_code="044",
                     account_number="0690000031", account_name="Bisi Banked")

@pytest.fixture
def admin(db):
    return make_user(db, UserRole.ADMIN, name="Root Admin")
