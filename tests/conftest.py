from __future__ import annotations

import os
import tempfile
from decimal import Decimal
from pathlib import Path

# Settings are read at import time: point the app at a throwaway database first.
_TMP_DIR = Path(tempfile.mkdtemp(prefix="lunara-tests-"))
os.environ["DATABASE_URL"] = f"sqlite:///{_TMP_DIR / 'test.sqlite'}"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["SEED_DEMO_DATA"] = "false"
os.environ["ENVIRONMENT"] = "development"
for _key in ("EMAILJS_SERVICE_ID", "EMAILJS_PUBLIC_KEY", "EMAILJS_PRIVATE_KEY"):
    os.environ[_key] = ""

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from lunara import email_service  # noqa: E402
from lunara.api_main import create_app  # noqa: E402
from lunara.auth_service import CurrentUser, issue_token, register_user  # noqa: E402
from lunara.db import Base, db_session, engine  # noqa: E402
from lunara.models import Affiliate, Service, Therapist, UserRole  # noqa: E402


@pytest.fixture(autouse=True)
def fresh_db():
    from lunara import models  # noqa: F401

    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture(autouse=True)
def sent_emails(monkeypatch):
    """Captures outbound emails instead of calling EmailJS."""
    sent: list[tuple[str, dict]] = []

    def fake_send(template, params):
        sent.append((template, params))
        return {"success": True, "status": 200}

    monkeypatch.setattr(email_service, "send_email", fake_send)
    return sent


@pytest.fixture
def app():
    return create_app()


@pytest.fixture
def client(app):
    return TestClient(app)


def auth_headers(user: CurrentUser) -> dict[str, str]:
    return {"Authorization": f"Bearer {issue_token(user)}"}


def make_user(role: UserRole, email: str, name: str = "Test User", password: str = "secret123") -> CurrentUser:
    return register_user(name, email, password, role)


def make_therapist(user: CurrentUser, specialty: str = "Massoterapia") -> str:
    with db_session() as s:
        t = Therapist(user_id=user.id, specialty=specialty, commission_rate=Decimal("30.00"))
        s.add(t)
        s.flush()
        return t.id


def make_service(therapist_id: str, price: str = "150.00", duration: int = 60, name: str = "Massagem") -> str:
    with db_session() as s:
        svc = Service(therapist_id=therapist_id, name=name, price=Decimal(price), duration_minutes=duration)
        s.add(svc)
        s.flush()
        return svc.id


def make_affiliate(user: CurrentUser, code: str = "AFIL1234", rate: str = "15.00", active: bool = True) -> str:
    with db_session() as s:
        a = Affiliate(user_id=user.id, referral_code=code, commission_rate=Decimal(rate), is_active=active)
        s.add(a)
        s.flush()
        return a.id


@pytest.fixture
def admin() -> CurrentUser:
    return make_user(UserRole.ADMIN, "admin@example.com", "Admin")


@pytest.fixture
def admin_headers(admin) -> dict[str, str]:
    return auth_headers(admin)


@pytest.fixture
def therapist_user() -> CurrentUser:
    return make_user(UserRole.THERAPIST, "therapist@example.com", "Ana Terapeuta")


@pytest.fixture
def therapist_id(therapist_user) -> str:
    return make_therapist(therapist_user)


@pytest.fixture
def service_id(therapist_id) -> str:
    return make_service(therapist_id)


@pytest.fixture
def affiliate_user() -> CurrentUser:
    return make_user(UserRole.AFFILIATE, "affiliate@example.com", "Bruno Afiliado")


@pytest.fixture
def affiliate_id(affiliate_user) -> str:
    return make_affiliate(affiliate_user)
