"""Lost-update protection on concurrent decisions."""

import asyncio
import uuid
from datetime import timedelta

import pytest
from sqlalchemy import select

from stajkontrol.core.exceptions import ConflictError
from stajkontrol.models import Application, ApplicationStatus, AuditLog, Logbook
from stajkontrol.services.application_service import ApplicationService
from stajkontrol.services.otp_service import CompanySession
from stajkontrol.utils.helpers import utcnow

from tests.conftest import company_login, create_application, otp_code


def _company(email="hr@acme.com.tr") -> CompanySession:
    return CompanySession(
        session_id=uuid.uuid4(), company_email=email, expires_at=utcnow() + timedelta(hours=1)
    )


async def test_second_writer_on_stale_version_gets_conflict(app, client, student):
    created = await create_application(client, student)
    application_id = uuid.UUID(created["id"])
    database = app.state.db

    async with database.session() as first, database.session() as second:
        winner = ApplicationService(first)
        loser = ApplicationService(second)

        # both requests read the application while it is still pending
        await winner.get(application_id)
        await loser.get(application_id)

        approved = await winner.approve(_company(), application_id)
        assert approved.status == ApplicationStatus.APPROVED

        with pytest.raises(ConflictError):
            await loser.reject(_company(), application_id, "Kontenjan doldu")

    async with database.session() as check:
        application = (await check.execute(select(Application))).scalar_one()
        assert application.status == ApplicationStatus.APPROVED
        assert application.rejection_reason is None

        logbooks = (await check.execute(select(Logbook))).scalars().all()
        assert len(logbooks) == 1

        actions = (await check.execute(select(AuditLog.action))).scalars().all()
        assert "application.rejected" not in actions


async def test_version_increments_on_each_change(app, client, student):
    created = await create_application(client, student)
    application_id = uuid.UUID(created["id"])

    async with app.state.db.session() as session:
        service = ApplicationService(session)
        application = await service.get(application_id)
        assert application.version == 1

        approved = await service.approve(_company(), application_id)
        assert approved.version == 2


async def test_simultaneous_approve_and_reject_requests(client, student, outbox):
    created = await create_application(client, student)
    headers = await company_login(client, outbox)

    approve, reject = await asyncio.gather(
        client.post(
            "/api/v1/sirket/sirketonay", json={"id": created["id"], "decision": "onay"}, headers=headers
        ),
        client.post(
            "/api/v1/sirket/sirketonay",
            json={"id": created["id"], "decision": "red", "reason": "Kontenjan doldu"},
            headers=headers,
        ),
    )

    codes = sorted([approve.status_code, reject.status_code])
    assert codes == [200, 409]
    loser = approve if approve.status_code == 409 else reject
    assert loser.json()["code"] == "conflict"

    winner = approve if approve.status_code == 200 else reject
    assert winner.json()["status"] in ("approved", "rejected")


async def test_simultaneous_otp_verifications(client, student, outbox):
    await create_application(client, student)
    response = await client.post("/api/v1/sirket/sirketgiris", json={"email": "hr@acme.com.tr"})
    handle = response.json()["handle"]
    payload = {"handle": handle, "code": otp_code(outbox)}

    responses = await asyncio.gather(
        *[client.post("/api/v1/sirket/sirketgiris/dogrula", json=payload) for _ in range(4)]
    )

    codes = [r.status_code for r in responses]
    assert codes.count(200) == 1
    assert codes.count(409) == 3
    assert all(r.json()["code"] == "otp_already_used" for r in responses if r.status_code == 409)
