import pytest
import os
import tempfile
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from fastapi.testclient import TestClient

from citydash.models.base import Base
from citydash.models.one_time_code import CodePurpose
from citydash.main import app
from citydash.database import get_db
from citydash.config import auth_config
from citydash.auth.service import AuthService
from citydash.auth.schemas import SignupRequest
from citydash.services.otp_service import get_code_delivery
from citydash.services.rate_limiting_service import get_rate_limiting_service, RateLimitResult

TEST_EMAIL = "a@x.com"
TEST_PASSWORD = "Secret1"
HOME_IP = "1.1.1.1"
NEW_IP = "2.2.2.2"


class RecordingCodeDelivery:
    """Captures one-time codes instead of sending them"""

    def __init__(self):
        self.sent = []

    def deliver(self, user, purpose, code):
        self.sent.append((user.email, purpose, code))

    def last_code(self, purpose: CodePurpose) -> str:
        codes = [code for _, sent_purpose, code in self.sent if sent_purpose == purpose]
        assert codes, f"no {purpose.value} code was delivered"
        return codes[-1]


class StaticRateLimiter:
    """Rate limiter stand-in with a fixed answer"""

    def __init__(self, allowed: bool = True, retry_after: int = None):
        self.allowed = allowed
        self.retry_after = retry_after
        self.hits = []

    async def hit(self, limit_type, identifier):
        self.hits.append((limit_type, identifier))
        return RateLimitResult(allowed=self.allowed, remaining=0, retry_after=self.retry_after)


def signup_payload(**overrides) -> dict:
    payload = {
        "name": "Ada Lovelace",
        "email": TEST_EMAIL,
        "password": TEST_PASSWORD,
        "confirmPassword": TEST_PASSWORD,
        "phoneNumber": "+15550100",
        "isOrganizationCreator": True,
        "organizationName": "Metro Transit",
    }
    payload.update(overrides)
    return payload


@pytest.fixture(scope="function")
def test_engine():
    """Create a temporary database for testing"""
    db_fd, db_path = tempfile.mkstemp(suffix=".db")
    engine = create_engine(f"sqlite:///{db_path}", connect_args={"check_same_thread": False})

    Base.metadata.create_all(bind=engine)

    yield engine

    # Cleanup
    engine.dispose()
    os.close(db_fd)
    os.unlink(db_path)


@pytest.fixture
def session_factory(test_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


@pytest.fixture
def test_db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def code_delivery():
    return RecordingCodeDelivery()


@pytest.fixture
def rate_limiter():
    return StaticRateLimiter()


@pytest.fixture
def auth_service(test_db, code_delivery):
    return AuthService(test_db, code_delivery)


@pytest.fixture
def signed_up_user(auth_service):
    """User a@x.com / Secret1 registered from 1.1.1.1"""
    result = auth_service.signup(SignupRequest(**signup_payload()), HOME_IP, "pytest")
    return auth_service.get_user_by_id(result["user"]["id"])


@pytest.fixture
def client(session_factory, code_delivery, rate_limiter, monkeypatch):
    """TestClient wired to the temporary database; X-Forwarded-For picks the source IP"""
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    monkeypatch.setattr(auth_config, "TRUST_FORWARDED_HEADERS", True)
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_code_delivery] = lambda: code_delivery
    app.dependency_overrides[get_rate_limiting_service] = lambda: rate_limiter

    yield TestClient(app)

    app.dependency_overrides.clear()


def from_ip(ip: str, token: str = None) -> dict:
    headers = {"X-Forwarded-For": ip, "User-Agent": "pytest-browser"}
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return headers
