"""Bulk Excel import of advisors and students."""

import pytest
from openpyxl import Workbook
from sqlalchemy import create_engine, event, select
from sqlalchemy.orm import sessionmaker

import stajkontrol.models  # noqa: F401  registers every model
from stajkontrol.core.security import Role, verify_password
from stajkontrol.db.base import Base
from stajkontrol.models import BulkImportJob, BulkImportRow, BulkImportStatus, BulkImportType, User
from stajkontrol.services.excel_import import column_index, normalize_cell, process_import

from tests.conftest import auth_headers


def _row(**cells) -> list:
    """A worksheet row from ``{column_letter: value}``."""
    width = max(column_index(letter) for letter in cells) + 1
    row = [None] * width
    for letter, value in cells.items():
        row[column_index(letter)] = value
    return row


def write_workbook(path, rows) -> str:
    workbook = Workbook()
    sheet = workbook.active
    sheet.append(["Baslik"] * 5)
    for row in rows:
        sheet.append(row)
    workbook.save(path)
    return str(path)


def advisor_row(first, last, national_id, email, faculty="Muhendislik", department="Bilgisayar"):
    return _row(D=first, E=last, F=national_id, G=email, H=faculty, I=department)


def student_row(national_id, number, first, last, advisor="", class_year="3. Sinif"):
    return _row(
        A=national_id, B=number, C=first, D=last, E=advisor, N="Muhendislik", O="Bilgisayar", R=class_year
    )


@pytest.fixture
def session(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'import.db'}")

    @event.listens_for(engine, "connect")
    def _fk_on(dbapi_connection, connection_record):
        dbapi_connection.execute("PRAGMA foreign_keys=ON")

    Base.metadata.create_all(engine)
    factory = sessionmaker(engine, expire_on_commit=False)
    with factory() as s:
        yield s
    engine.dispose()


def _job(session, job_type, path, **fields) -> BulkImportJob:
    job = BulkImportJob(
        job_type=job_type, status=BulkImportStatus.PROCESSING, filename="liste.xlsx", file_path=path, **fields
    )
    session.add(job)
    session.commit()
    return job


def _users(session, role):
    return {u.email: u for u in session.execute(select(User).where(User.role == role)).scalars()}


def test_column_index():
    assert (column_index("A"), column_index("R"), column_index("U"), column_index("AA")) == (0, 17, 20, 26)


def test_normalize_cell_drops_float_suffix():
    assert normalize_cell(12345678901.0) == "12345678901"
    assert normalize_cell(float("nan")) == ""
    assert normalize_cell("  Ali ") == "Ali"
    assert normalize_cell(None) == ""


def test_advisor_import(session, tmp_path):
    path = write_workbook(
        tmp_path / "hoca.xlsx",
        [
            advisor_row("Mehmet", "Hoca", "12345678901", "Mehmet.Hoca@uni.edu.tr"),
            advisor_row("Eksik", "Mail", "12345678902", ""),
            advisor_row("Bozuk", "Kimlik", "123", "bozuk@uni.edu.tr"),
        ],
    )
    job = process_import(session, _job(session, BulkImportType.ADVISOR, path).id)

    assert job.status == BulkImportStatus.COMPLETED
    assert (job.total_rows, job.processed_rows) == (3, 3)
    assert (job.success_count, job.skipped_count, job.failure_count) == (1, 1, 1)
    assert "Row 4: Invalid national id: 123" in job.error_message

    advisors = _users(session, Role.ADVISOR)
    advisor = advisors["mehmet.hoca@uni.edu.tr"]
    assert advisor.full_name == "Mehmet Hoca"
    assert advisor.must_change_password is True
    assert verify_password("12345678901", advisor.password_hash)

    rows = session.execute(select(BulkImportRow).order_by(BulkImportRow.row_number)).scalars().all()
    assert [(r.row_number, r.success) for r in rows] == [(2, True), (4, False)]


def test_student_import_links_advisor_by_name(session, tmp_path):
    advisor_path = write_workbook(
        tmp_path / "hoca.xlsx", [advisor_row("Mehmet", "Hoca", "12345678901", "mehmet@uni.edu.tr")]
    )
    process_import(session, _job(session, BulkImportType.ADVISOR, advisor_path).id)

    path = write_workbook(
        tmp_path / "ogrenci.xlsx",
        [
            student_row("11111111111", "20201001", "Ali", "Veli", advisor="MEHMET HOCA"),
            student_row("22222222222", "20201002", "Ayse", "Kaya", advisor="Bilinmeyen Hoca"),
            student_row("", "20201003", "Kimliksiz", "Ogrenci"),
        ],
    )
    job = process_import(session, _job(session, BulkImportType.STUDENT, path).id)

    assert (job.success_count, job.skipped_count, job.failure_count) == (2, 1, 0)
    students = _users(session, Role.STUDENT)
    advisor = _users(session, Role.ADVISOR)["mehmet@uni.edu.tr"]

    ali = students["20201001@std.uni.edu.tr"]
    assert ali.username == "20201001"
    assert ali.advisor_id == advisor.id
    assert ali.class_year == 3

    ayse = students["20201002@std.uni.edu.tr"]
    assert ayse.advisor_id is None
    note = session.execute(
        select(BulkImportRow.message).where(
            BulkImportRow.identifier == "20201002"
        )
    ).scalar_one()
    assert "not found" in note


def test_reimport_updates_without_resetting_password(session, tmp_path):
    path = write_workbook(tmp_path / "ogrenci.xlsx", [student_row("11111111111", "20201001", "Ali", "Veli")])
    process_import(session, _job(session, BulkImportType.STUDENT, path).id)

    user = session.execute(select(User)).scalar_one()
    original_hash = user.password_hash

    path = write_workbook(
        tmp_path / "ogrenci2.xlsx", [student_row("11111111111", "20201001", "Ali", "Veli Yilmaz")]
    )
    job = process_import(session, _job(session, BulkImportType.STUDENT, path).id)

    assert job.success_count == 1
    users = session.execute(select(User).execution_options(populate_existing=True)).scalars().all()
    assert len(users) == 1
    assert users[0].full_name == "Ali Veli Yilmaz"
    assert users[0].password_hash == original_hash


def test_dual_major_import(session, tmp_path):
    advisor_path = write_workbook(
        tmp_path / "hoca.xlsx", [advisor_row("Zehra", "Hoca", "12345678901", "zehra@uni.edu.tr")]
    )
    process_import(session, _job(session, BulkImportType.ADVISOR, advisor_path).id)

    path = write_workbook(
        tmp_path / "cap.xlsx",
        [
            _row(A="Fen", B="Fen Fakultesi", C="Matematik", D="20201000101", E="33333333333", F="Can", G="Demir", H="2", U="Zehra Hoca"),
            _row(A="Fen", B="Fen Fakultesi", C="Matematik", D="20201000102", E="", F="Eksik", G="Kimlik"),
        ],
    )
    job = process_import(session, _job(session, BulkImportType.DUAL_MAJOR_STUDENT, path).id)

    assert (job.success_count, job.failure_count) == (1, 1)
    assert "E (national id)" in job.error_message

    can = _users(session, Role.STUDENT)["20201000101@std.uni.edu.tr"]
    advisor = _users(session, Role.ADVISOR)["zehra@uni.edu.tr"]
    assert can.is_dual_major is True
    assert can.dual_major_department == "Matematik"
    assert can.dual_major_advisor_id == advisor.id


def test_cancel_requested_stops_import(session, tmp_path):
    path = write_workbook(
        tmp_path / "hoca.xlsx",
        [advisor_row("A", f"Hoca{i}", f"1234567890{i}", f"hoca{i}@uni.edu.tr") for i in range(3)],
    )
    job = process_import(session, _job(session, BulkImportType.ADVISOR, path, cancel_requested=True).id)

    assert job.status == BulkImportStatus.CANCELLED
    assert job.processed_rows == 0
    assert job.total_rows == 3
    assert _users(session, Role.ADVISOR) == {}


def test_unreadable_workbook_fails_job(session, tmp_path):
    path = tmp_path / "bozuk.xlsx"
    path.write_bytes(b"not a workbook")
    job = process_import(session, _job(session, BulkImportType.ADVISOR, str(path)).id)

    assert job.status == BulkImportStatus.FAILED
    assert job.error_message.startswith("Could not read workbook")
    assert job.finished_at is not None


async def test_import_endpoint_runs_job_in_background(client, admin, tmp_path):
    path = write_workbook(
        tmp_path / "hoca.xlsx", [advisor_row("Mehmet", "Hoca", "12345678901", "mehmet@uni.edu.tr")]
    )
    with open(path, "rb") as fh:
        response = await client.post(
            "/api/v1/admin/excel/hoca",
            files={"file": ("hoca.xlsx", fh.read(), "application/octet-stream")},
            headers=auth_headers(admin),
        )
    assert response.status_code == 202, response.text
    job_id = response.json()["id"]

    response = await client.get(f"/api/v1/admin/excel/{job_id}", headers=auth_headers(admin))
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "completed"
    assert body["success_count"] == 1
    assert body["rows"][0]["identifier"] == "mehmet@uni.edu.tr"

    response = await client.post(f"/api/v1/admin/excel/{job_id}/iptal", headers=auth_headers(admin))
    assert response.status_code == 409

    response = await client.get("/api/v1/admin/excel", headers=auth_headers(admin))
    assert response.json()["total"] == 1

    response = await client.post(
        "/api/v1/auth/login", json={"username": "mehmet@uni.edu.tr", "password": "12345678901"}
    )
    assert response.status_code == 200
    assert response.json()["must_change_password"] is True


async def test_import_endpoint_rejects_other_formats(client, admin):
    response = await client.post(
        "/api/v1/admin/excel/ogrenci",
        files={"file": ("liste.csv", b"a,b,c", "text/csv")},
        headers=auth_headers(admin),
    )
    assert response.status_code == 422
