"""Student application endpoints."""

from datetime import date

import pytest
from sqlalchemy.exc import IntegrityError

from stajkontrol.core.security import Role
from stajkontrol.models import Application, ApplicationStatus, InternshipType

from tests.conftest import (
    APPLICATION_PAYLOAD,
    PDF_BYTES,
    auth_headers,
    create_application,
    make_user,
)


async def test_create_application_is_pending_and_notifies_company(client, student, outbox):
    body = await create_application(client, student)

    assert body["status"] == "pending"
    assert body["company_email"] == "hr@acme.com.tr"
    assert body["logbook"] is None
    assert outbox[-1]["to"] == "hr@acme.com.tr"


async def test_create_requires_student_role(client, advisor):
    response = await client.post("/api/v1/basvuru", json=APPLICATION_PAYLOAD, headers=auth_headers(advisor))
    assert response.status_code == 403
    assert response.json()["code"] == "forbidden"


async def test_create_requires_authentication(client):
    response = await client.post("/api/v1/basvuru", json=APPLICATION_PAYLOAD)
    assert response.status_code == 401
    assert response.headers["www-authenticate"] == "Bearer"


async def test_start_must_precede_end(client, student):
    payload = {**APPLICATION_PAYLOAD, "start_date": "2024-06-01", "end_date": "2024-06-01"}
    response = await client.post("/api/v1/basvuru", json=payload, headers=auth_headers(student))
    assert response.status_code == 422
    body = response.json()
    assert body["code"] == "validation_error"
    assert "start_date must be before end_date" in body["errors"]["body"]


async def test_invalid_phone_rejected(client, student):
    payload = {**APPLICATION_PAYLOAD, "company_phone": "12ab"}
    response = await client.post("/api/v1/basvuru", json=payload, headers=auth_headers(student))
    assert response.status_code == 422


async def test_imu_404_must_be_seventy_days(client, student):
    payload = {**APPLICATION_PAYLOAD, "internship_type": "IMU_404", "total_days": 60}
    response = await client.post("/api/v1/basvuru", json=payload, headers=auth_headers(student))
    assert response.status_code == 422
    assert response.json()["errors"] == {"total_days": "must be 70"}

    payload["total_days"] = 70
    response = await client.post("/api/v1/basvuru", json=payload, headers=auth_headers(student))
    assert response.status_code == 201


async def test_overlapping_active_application_conflicts(client, student):
    await create_application(client, student)

    payload = {**APPLICATION_PAYLOAD, "start_date": "2024-05-15", "end_date": "2024-07-01"}
    response = await client.post("/api/v1/basvuru", json=payload, headers=auth_headers(student))
    assert response.status_code == 409


async def test_adjacent_periods_do_not_overlap(client, student):
    await create_application(client, student)
    await create_application(client, student, start_date="2024-06-01", end_date="2024-07-01", total_days=20)


async def test_cancelled_application_frees_the_period(client, student):
    first = await create_application(client, student)
    response = await client.post(
        f"/api/v1/basvuru/{first['id']}/iptal", json={"reason": "vazgectim"}, headers=auth_headers(student)
    )
    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"
    assert response.json()["cancellation_reason"] == "vazgectim"

    await create_application(client, student)


async def test_cancel_twice_conflicts(client, student):
    application = await create_application(client, student)
    url = f"/api/v1/basvuru/{application['id']}/iptal"
    assert (await client.post(url, headers=auth_headers(student))).status_code == 200

    response = await client.post(url, headers=auth_headers(student))
    assert response.status_code == 409
    assert response.json()["detail"] == "Application is cancelled, required pending"


async def test_students_see_only_their_own_applications(client, db, student):
    application = await create_application(client, student)
    other = await make_user(db, Role.STUDENT)

    response = await client.get(f"/api/v1/basvuru/{application['id']}", headers=auth_headers(other))
    assert response.status_code == 403

    response = await client.get("/api/v1/basvurular", headers=auth_headers(other))
    assert response.json() == []

    response = await client.get("/api/v1/basvurular", headers=auth_headers(student))
    assert [a["id"] for a in response.json()] == [application["id"]]


async def test_update_dates_while_pending(client, student):
    application = await create_application(client, student)
    response = await client.put(
        f"/api/v1/basvuru/{application['id']}/tarih",
        json={"start_date": "2024-04-01", "end_date": "2024-07-01", "total_days": 60},
        headers=auth_headers(student),
    )
    assert response.status_code == 200
    body = response.json()
    assert (body["start_date"], body["end_date"], body["total_days"]) == ("2024-04-01", "2024-07-01", 60)


async def test_stats_counts_by_status(client, student):
    first = await create_application(client, student)
    await create_application(client, student, start_date="2024-07-01", end_date="2024-08-01", total_days=20)
    await client.post(f"/api/v1/basvuru/{first['id']}/iptal", headers=auth_headers(student))

    response = await client.get("/api/v1/basvuru/stats", headers=auth_headers(student))
    assert response.status_code == 200
    stats = response.json()
    assert stats["total"] == 2
    assert stats["pending"] == 1
    assert stats["cancelled"] == 1
    assert stats["logbooks_waiting"] == 0


async def test_upload_and_replace_supporting_document(client, student, app):
    application = await create_application(client, student)
    url = f"/api/v1/basvuru/{application['id']}/belge/transkript"

    response = await client.post(
        url, files={"file": ("transkript.pdf", PDF_BYTES, "application/pdf")}, headers=auth_headers(student)
    )
    assert response.status_code == 200
    documents = response.json()["documents"]
    assert [d["kind"] for d in documents] == ["transkript"]
    first_id = documents[0]["id"]

    replacement = PDF_BYTES + b"v2"
    response = await client.post(
        url, files={"file": ("yeni.pdf", replacement, "application/pdf")}, headers=auth_headers(student)
    )
    documents = response.json()["documents"]
    assert len(documents) == 1
    assert documents[0]["id"] == first_id
    assert documents[0]["original_filename"] == "yeni.pdf"

    response = await client.get(url, headers=auth_headers(student))
    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert response.content == replacement

    # only the replacement remains on disk
    stored = list(app.state.storage.root.rglob("*.pdf"))
    assert len(stored) == 1


async def test_document_upload_rejects_wrong_type(client, student):
    application = await create_application(client, student)
    response = await client.post(
        f"/api/v1/basvuru/{application['id']}/belge/sigorta",
        files={"file": ("photo.png", b"\x89PNG", "image/png")},
        headers=auth_headers(student),
    )
    assert response.status_code == 422
    assert "file" in response.json()["errors"]


async def test_defter_is_not_an_application_document(client, student):
    application = await create_application(client, student)
    response = await client.post(
        f"/api/v1/basvuru/{application['id']}/belge/defter",
        files={"file": ("defter.pdf", PDF_BYTES, "application/pdf")},
        headers=auth_headers(student),
    )
    assert response.status_code == 422


async def test_missing_document_is_not_found(client, student):
    application = await create_application(client, student)
    response = await client.get(
        f"/api/v1/basvuru/{application['id']}/belge/hizmet_dokumu", headers=auth_headers(student)
    )
    assert response.status_code == 404


async def test_missing_field_reports_validation_error_body(client, student):
    payload = {key: value for key, value in APPLICATION_PAYLOAD.items() if key != "company_name"}
    response = await client.post("/api/v1/basvuru", json=payload, headers=auth_headers(student))
    assert response.status_code == 422
    body = response.json()
    assert body["code"] == "validation_error"
    assert body["detail"] == "Invalid input"
    assert "company_name" in body["errors"]


def _stored_application(student, status, reason=None) -> Application:
    return Application(
        student_id=student.id,
        company_name="Acme",
        company_address="Teknopark Istanbul",
        company_phone="02165551234",
        company_email="hr@acme.com.tr",
        authorized_person_name="Ayse Yilmaz",
        internship_type=InternshipType.ZORUNLU_STAJ,
        start_date=date(2024, 3, 1),
        end_date=date(2024, 6, 1),
        total_days=65,
        status=status,
        rejection_reason=reason,
    )


@pytest.mark.parametrize(
    "status, reason",
    [(ApplicationStatus.REJECTED, None), (ApplicationStatus.PENDING, "Kontenjan doldu")],
)
async def test_rejection_reason_matches_status_in_database(db, student, status, reason):
    db.add(_stored_application(student, status, reason))
    with pytest.raises(IntegrityError):
        await db.commit()
    await db.rollback()


async def test_rejected_application_with_reason_is_stored(db, student):
    db.add(_stored_application(student, ApplicationStatus.REJECTED, "Kontenjan doldu"))
    await db.commit()
