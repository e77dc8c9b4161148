"""PDF size and type limits with the stock upload settings."""

import pytest

from stajkontrol.config import Settings

from tests.conftest import auth_headers, company_login, create_application, upload_logbook

MIB = 1024 * 1024


def _pdf(size: int) -> bytes:
    header = b"%PDF-1.4\n"
    return header + b"0" * (size - len(header))


@pytest.fixture
async def approved(client, student, outbox):
    application = await create_application(client, student)
    headers = await company_login(client, outbox)
    response = await client.post(
        "/api/v1/sirket/sirketonay", json={"id": application["id"], "decision": "onay"}, headers=headers
    )
    assert response.status_code == 200
    return application


def test_default_limit_is_fifty_mib(config):
    assert Settings().MAX_UPLOAD_SIZE == 50 * MIB
    assert config.MAX_UPLOAD_SIZE == 50 * MIB
    assert Settings().ALLOWED_UPLOAD_MIME_TYPES == ["application/pdf"]


@pytest.mark.parametrize("size", [5_000_000, 10 * MIB, 50 * MIB])
async def test_pdf_within_limit_is_accepted(client, student, approved, size):
    response = await upload_logbook(client, student, approved["id"], _pdf(size))
    assert response.status_code == 200, response.text
    assert response.json()["status"] == "uploaded"
    assert response.json()["file"]["size"] == size


async def test_pdf_over_limit_is_rejected(client, student, approved):
    response = await upload_logbook(client, student, approved["id"], _pdf(51 * MIB))
    assert response.status_code == 422
    body = response.json()
    assert body["code"] == "validation_error"
    assert "file" in body["errors"]

    # nothing was attached
    response = await client.get("/api/v1/defterler", headers=auth_headers(student))
    assert response.json()[0]["status"] == "waiting"
    assert response.json()[0]["file"] is None


@pytest.mark.parametrize("content_type", ["image/png", "APPLICATION/PDF", "application/pdf; x=y"])
async def test_content_type_must_be_exactly_pdf(client, student, approved, content_type):
    response = await client.post(
        f"/api/v1/defter/{approved['id']}/upload-pdf",
        files={"file": ("defter.pdf", _pdf(4096), content_type)},
        headers=auth_headers(student),
    )
    assert response.status_code == 422
    assert response.json()["code"] == "validation_error"
    assert "file" in response.json()["errors"]
