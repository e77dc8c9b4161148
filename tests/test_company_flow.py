"""Company OTP login and decisions."""

from datetime import timedelta

from sqlalchemy import select

from stajkontrol.models import AuditLog, CompanyOtpSession
from stajkontrol.utils.helpers import utcnow

from tests.conftest import auth_headers, company_login, create_application, otp_code


async def _request_code(client, email="hr@acme.com.tr"):
    response = await client.post("/api/v1/sirket/sirketgiris", json={"email": email})
    assert response.status_code == 200, response.text
    return response.json()["handle"]


async def test_otp_requires_pending_work(client, outbox):
    response = await client.post("/api/v1/sirket/sirketgiris", json={"email": "nobody@acme.com.tr"})
    assert response.status_code == 404
    assert outbox == []


async def test_otp_is_emailed_and_stored_hashed(client, db, student, outbox):
    await create_application(client, student)
    handle = await _request_code(client, "HR@ACME.com.tr")

    assert outbox[-1]["to"] == "hr@acme.com.tr"
    code = otp_code(outbox)
    assert len(code) == 8

    row = (await db.execute(select(CompanyOtpSession))).scalar_one()
    assert str(row.id) == handle
    assert row.code_hash != code
    assert row.consumed_at is None


async def test_verify_issues_company_token_once(client, student, outbox):
    await create_application(client, student)
    handle = await _request_code(client)
    code = otp_code(outbox)

    response = await client.post("/api/v1/sirket/sirketgiris/dogrula", json={"handle": handle, "code": code})
    assert response.status_code == 200
    assert response.json()["company_email"] == "hr@acme.com.tr"

    response = await client.post("/api/v1/sirket/sirketgiris/dogrula", json={"handle": handle, "code": code})
    assert response.status_code == 409
    assert response.json()["code"] == "otp_already_used"


async def test_wrong_code_then_lockout(client, student, outbox):
    await create_application(client, student)
    handle = await _request_code(client)
    code = otp_code(outbox)
    wrong = "00000000" if code != "00000000" else "11111111"

    for _ in range(5):
        response = await client.post(
            "/api/v1/sirket/sirketgiris/dogrula", json={"handle": handle, "code": wrong}
        )
        assert response.status_code == 401
        assert response.json()["code"] == "invalid_credential"

    response = await client.post("/api/v1/sirket/sirketgiris/dogrula", json={"handle": handle, "code": code})
    assert response.status_code == 401
    assert response.json()["code"] == "otp_expired"


async def test_expired_code_is_refused(client, db, student, outbox):
    await create_application(client, student)
    handle = await _request_code(client)

    row = (await db.execute(select(CompanyOtpSession))).scalar_one()
    row.expires_at = utcnow() - timedelta(seconds=1)
    await db.commit()

    response = await client.post(
        "/api/v1/sirket/sirketgiris/dogrula", json={"handle": handle, "code": otp_code(outbox)}
    )
    assert response.status_code == 401
    assert response.json()["code"] == "otp_expired"


async def test_company_sees_only_its_applications(client, student, outbox):
    mine = await create_application(client, student)
    await create_application(
        client,
        student,
        company_email="ik@baska.com.tr",
        start_date="2024-07-01",
        end_date="2024-08-01",
        total_days=20,
    )
    headers = await company_login(client, outbox)

    response = await client.get("/api/v1/sirket/basvurular", headers=headers)
    assert response.status_code == 200
    assert [a["id"] for a in response.json()] == [mine["id"]]
    assert response.json()[0]["student"]["full_name"] == "Ali Veli"


async def test_company_approval_creates_waiting_logbook(client, db, student, outbox):
    application = await create_application(client, student)
    headers = await company_login(client, outbox)

    response = await client.post(
        "/api/v1/sirket/sirketonay", json={"id": application["id"], "decision": "onay"}, headers=headers
    )
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "approved"
    assert body["logbook"]["status"] == "waiting"
    assert body["logbook"]["has_file"] is False
    assert outbox[-1]["to"] == student.email

    entries = (await db.execute(select(AuditLog).where(AuditLog.action == "application.approved"))).scalars().all()
    assert len(entries) == 1
    assert entries[0].actor_role == "company"
    assert entries[0].actor_email == "hr@acme.com.tr"
    assert (entries[0].previous_status, entries[0].new_status) == ("pending", "approved")


async def test_rejection_needs_a_reason(client, student, outbox):
    application = await create_application(client, student)
    headers = await company_login(client, outbox)

    response = await client.post(
        "/api/v1/sirket/sirketonay", json={"id": application["id"], "decision": "red"}, headers=headers
    )
    assert response.status_code == 422
    assert response.json()["code"] == "validation_error"

    response = await client.post(
        "/api/v1/sirket/sirketonay",
        json={"id": application["id"], "decision": "red", "reason": "Kontenjan doldu"},
        headers=headers,
    )
    assert response.status_code == 200
    assert response.json()["status"] == "rejected"
    assert response.json()["rejection_reason"] == "Kontenjan doldu"
    assert response.json()["logbook"] is None


async def test_second_decision_conflicts(client, student, outbox):
    application = await create_application(client, student)
    headers = await company_login(client, outbox)
    url = "/api/v1/sirket/sirketonay"

    await client.post(url, json={"id": application["id"], "decision": "onay"}, headers=headers)
    response = await client.post(
        url, json={"id": application["id"], "decision": "red", "reason": "x"}, headers=headers
    )
    assert response.status_code == 409
    assert response.json()["detail"] == "Application is approved, required pending"


async def test_company_cannot_decide_other_companies_applications(client, student, outbox):
    await create_application(client, student)
    other = await create_application(
        client,
        student,
        company_email="ik@baska.com.tr",
        start_date="2024-07-01",
        end_date="2024-08-01",
        total_days=20,
    )
    headers = await company_login(client, outbox)

    response = await client.post(
        "/api/v1/sirket/sirketonay", json={"id": other["id"], "decision": "onay"}, headers=headers
    )
    assert response.status_code == 403


async def test_token_kinds_are_not_interchangeable(client, student, outbox):
    await create_application(client, student)
    company_headers = await company_login(client, outbox)

    response = await client.get("/api/v1/basvurular", headers=company_headers)
    assert response.status_code == 403

    response = await client.get("/api/v1/sirket/basvurular", headers=auth_headers(student))
    assert response.status_code == 403

    response = await client.get("/api/v1/sirket/basvurular", headers={"Authorization": "Bearer garbage"})
    assert response.status_code == 401


async def test_logout_revokes_company_session(client, student, outbox):
    await create_application(client, student)
    headers = await company_login(client, outbox)

    assert (await client.post("/api/v1/sirket/cikis", headers=headers)).status_code == 200
    response = await client.get("/api/v1/sirket/basvurular", headers=headers)
    assert response.status_code == 401
