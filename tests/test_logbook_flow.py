"""Logbook upload, review and the end-to-end internship scenario."""

from tests.conftest import (
    PDF_BYTES,
    auth_headers,
    company_login,
    create_application,
    upload_logbook,
)


async def _approved_application(client, student, outbox):
    application = await create_application(client, student)
    company = await company_login(client, outbox)
    response = await client.post(
        "/api/v1/sirket/sirketonay", json={"id": application["id"], "decision": "onay"}, headers=company
    )
    assert response.status_code == 200
    return response.json(), company


async def test_upload_requires_approved_application(client, student):
    application = await create_application(client, student)
    response = await upload_logbook(client, student, application["id"])
    assert response.status_code == 409
    assert response.json()["detail"] == "Application is pending, required approved"


async def test_upload_moves_logbook_to_uploaded(client, student, outbox):
    application, _ = await _approved_application(client, student, outbox)

    response = await upload_logbook(client, student, application["id"])
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "uploaded"
    assert body["file"]["size"] == len(PDF_BYTES)
    assert body["file"]["kind"] == "defter"
    assert body["application"]["id"] == application["id"]


async def test_reupload_replaces_file(client, student, outbox, app):
    application, _ = await _approved_application(client, student, outbox)
    first = (await upload_logbook(client, student, application["id"])).json()

    response = await upload_logbook(client, student, application["id"], PDF_BYTES + b"v2")
    assert response.status_code == 200
    assert response.json()["status"] == "uploaded"
    assert response.json()["file"]["size"] == len(PDF_BYTES) + 2

    response = await client.get(f"/api/v1/defter/{first['id']}/download-pdf", headers=auth_headers(student))
    assert response.content == PDF_BYTES + b"v2"
    assert len(list(app.state.storage.root.rglob("*.pdf"))) == 1


async def test_upload_rejects_non_pdf(client, student, outbox):
    application, _ = await _approved_application(client, student, outbox)
    response = await client.post(
        f"/api/v1/defter/{application['id']}/upload-pdf",
        files={"file": ("defter.docx", b"PK\x03\x04", "application/msword")},
        headers=auth_headers(student),
    )
    assert response.status_code == 422


async def test_company_rejection_keeps_file_and_returns_to_waiting(client, student, outbox):
    application, company = await _approved_application(client, student, outbox)
    logbook = (await upload_logbook(client, student, application["id"])).json()

    response = await client.post(
        "/api/v1/sirket/defteronay",
        json={"id": logbook["id"], "decision": "red", "reason": "Imza eksik"},
        headers=company,
    )
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "waiting"
    assert body["rejection_reason"] == "Imza eksik"
    assert body["file"] is not None

    # a new upload clears the rejection
    response = await upload_logbook(client, student, application["id"])
    assert response.json()["status"] == "uploaded"
    assert response.json()["rejection_reason"] is None


async def test_company_cannot_approve_waiting_logbook(client, student, outbox):
    application, company = await _approved_application(client, student, outbox)
    response = await client.post(
        "/api/v1/sirket/defteronay",
        json={"id": application["logbook"]["id"], "decision": "onay"},
        headers=company,
    )
    assert response.status_code == 409
    assert response.json()["detail"] == "Logbook is waiting, required uploaded"


async def test_delete_pdf_returns_to_waiting(client, student, outbox, app):
    application, _ = await _approved_application(client, student, outbox)
    logbook = (await upload_logbook(client, student, application["id"])).json()

    response = await client.delete(f"/api/v1/defter/{logbook['id']}/pdf", headers=auth_headers(student))
    assert response.status_code == 200
    assert response.json()["status"] == "waiting"
    assert response.json()["file"] is None
    assert list(app.state.storage.root.rglob("*.pdf")) == []

    response = await client.delete(f"/api/v1/defter/{logbook['id']}/pdf", headers=auth_headers(student))
    assert response.status_code == 404


async def test_student_withdraw_and_resubmit(client, student, outbox):
    application, _ = await _approved_application(client, student, outbox)
    logbook = (await upload_logbook(client, student, application["id"])).json()
    url = f"/api/v1/defter/{logbook['id']}/durum"

    response = await client.put(url, json={"status": "waiting"}, headers=auth_headers(student))
    assert response.status_code == 200
    assert response.json()["status"] == "waiting"
    assert response.json()["file"] is not None

    response = await client.put(url, json={"status": "uploaded"}, headers=auth_headers(student))
    assert response.json()["status"] == "uploaded"

    response = await client.put(url, json={"status": "approved"}, headers=auth_headers(student))
    assert response.status_code == 403


async def test_student_lists_logbooks(client, student, outbox):
    application, _ = await _approved_application(client, student, outbox)
    response = await client.get("/api/v1/defterler", headers=auth_headers(student))
    assert response.status_code == 200
    assert [item["application_id"] for item in response.json()] == [application["id"]]


async def test_internship_scenario_ends_in_cannot_cancel(client, student, outbox):
    application = await create_application(client, student)
    assert application["status"] == "pending"

    company = await company_login(client, outbox)
    response = await client.post(
        "/api/v1/sirket/sirketonay", json={"id": application["id"], "decision": "onay"}, headers=company
    )
    assert response.json()["status"] == "approved"

    five_mb = b"%PDF-1.4\n" + b"0" * (5 * 1024 * 1024)
    response = await upload_logbook(client, student, application["id"], five_mb)
    assert response.status_code == 200
    logbook = response.json()
    assert logbook["status"] == "uploaded"

    response = await client.post(
        "/api/v1/sirket/defteronay", json={"id": logbook["id"], "decision": "onay"}, headers=company
    )
    assert response.status_code == 200
    assert response.json()["status"] == "approved"

    response = await client.post(f"/api/v1/basvuru/{application['id']}/iptal", headers=auth_headers(student))
    assert response.status_code == 409
    assert response.json()["code"] == "conflict"
    assert response.json()["detail"] == "cannot cancel, Application is Approved and Logbook is past Waiting"

    # and the approved logbook's file can no longer be removed
    response = await client.delete(f"/api/v1/defter/{logbook['id']}/pdf", headers=auth_headers(student))
    assert response.status_code == 409
