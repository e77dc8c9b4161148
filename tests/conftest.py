"""Shared fixtures: one throwaway SQLite database and upload root per test."""

import os
import re
import uuid

# Settings are read at import time; configure before importing the app
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./stajkontrol-test.db"
os.environ["EMAIL_ENABLED"] = "false"
os.environ["CACHE_ENABLED"] = "false"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["CELERY_ENABLED"] = "false"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["LOG_FORMAT"] = "console"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["SECRET_KEY"] = "test-secret-key"

import httpx
import pytest

from stajkontrol.api.v1.endpoints import basvuru, sirket
from stajkontrol.config import Settings
from stajkontrol.core.security import Role, create_access_token, hash_password
from stajkontrol.main import create_app
from stajkontrol.models import User

PASSWORD = "Secret123"
PDF_BYTES = b"%PDF-1.4\n" + b"0" * 2048 + b"\n%%EOF\n"

APPLICATION_PAYLOAD = {
    "company_name": "Acme Yazilim A.S.",
    "company_address": "Teknopark Istanbul, Pendik",
    "company_phone": "0216 555 1234",
    "company_email": "HR@Acme.com.tr",
    "authorized_person_name": "Ayse Yilmaz",
    "authorized_person_title": "Insan Kaynaklari Muduru",
    "internship_type": "ZORUNLU_STAJ",
    "start_date": "2024-03-01",
    "end_date": "2024-06-01",
    "total_days": 65,
}


@pytest.fixture
def config(tmp_path) -> Settings:
    return Settings(
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        UPLOAD_DIR=str(tmp_path / "uploads"),
        IMPORT_DIR=str(tmp_path / "imports"),
    )


@pytest.fixture
async def app(config):
    application = create_app(config)
    async with application.router.lifespan_context(application):
        yield application


@pytest.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest.fixture
async def db(app):
    async with app.state.db.session() as session:
        yield session


@pytest.fixture
def outbox(monkeypatch):
    """Capture e-mails instead of sending them."""
    sent = []

    async def fake_dispatch(to, subject, body):
        sent.append({"to": to, "subject": subject, "body": body})
        return True

    monkeypatch.setattr(sirket, "dispatch_email", fake_dispatch)
    monkeypatch.setattr(basvuru, "dispatch_email", fake_dispatch)
    return sent


async def make_user(db, role: Role = Role.STUDENT, **fields) -> User:
    suffix = uuid.uuid4().hex[:8]
    defaults = {
        "username": f"{role.value}-{suffix}",
        "email": f"{role.value}-{suffix}@uni.edu.tr",
        "full_name": f"{role.value.title()} {suffix}",
        "password_hash": hash_password(PASSWORD),
    }
    if role == Role.STUDENT:
        defaults["student_number"] = str(uuid.uuid4().int)[:10]
    defaults.update(fields)
    user = User(role=role, **defaults)
    db.add(user)
    await db.commit()
    return user


def auth_headers(user: User) -> dict:
    token = create_access_token({"sub": str(user.id), "role": user.role.value})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def advisor(db):
    return await make_user(db, Role.ADVISOR, full_name="Mehmet Hoca")


@pytest.fixture
async def student(db, advisor):
    return await make_user(db, Role.STUDENT, advisor_id=advisor.id, full_name="Ali Veli")


@pytest.fixture
async def admin(db):
    return await make_user(db, Role.ADMIN)


@pytest.fixture
async def career_center(db):
    return await make_user(db, Role.CAREER_CENTER)


async def create_application(client, student: User, **overrides) -> dict:
    response = await client.post(
        "/api/v1/basvuru", json={**APPLICATION_PAYLOAD, **overrides}, headers=auth_headers(student)
    )
    assert response.status_code == 201, response.text
    return response.json()


def otp_code(outbox) -> str:
    body = outbox[-1]["body"]
    return re.search(r"kodunuz: (\d+)", body).group(1)


async def company_login(client, outbox, email: str = "hr@acme.com.tr") -> dict:
    response = await client.post("/api/v1/sirket/sirketgiris", json={"email": email})
    assert response.status_code == 200, response.text
    handle = response.json()["handle"]

    response = await client.post(
        "/api/v1/sirket/sirketgiris/dogrula", json={"handle": handle, "code": otp_code(outbox)}
    )
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


async def upload_logbook(client, student: User, application_id: str, data: bytes = PDF_BYTES):
    return await client.post(
        f"/api/v1/defter/{application_id}/upload-pdf",
        files={"file": ("defter.pdf", data, "application/pdf")},
        headers=auth_headers(student),
    )
