"""
Bulk user import from registrar Excel exports.

Runs synchronously (Celery worker or a Starlette threadpool task) on its
own ``Session``. Columns are addressed by Excel letter the way the
registrar exports lay them out; the first row is a header.
"""

import logging
import re
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple
from uuid import UUID

import pandas as pd
from openpyxl.utils.exceptions import InvalidFileException
from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from stajkontrol.config import settings
from stajkontrol.core.security import Role, hash_password
from stajkontrol.models import BulkImportJob, BulkImportRow, BulkImportStatus, BulkImportType, User
from stajkontrol.utils.helpers import utcnow

logger = logging.getLogger(__name__)

NATIONAL_ID_PATTERN = re.compile(r"^\d{11}$")
DUAL_MAJOR_NUMBER_PATTERN = re.compile(r"^\d{11,12}$")

COLUMNS: Dict[BulkImportType, Dict[str, str]] = {
    BulkImportType.ADVISOR: {
        "first_name": "D",
        "last_name": "E",
        "national_id": "F",
        "email": "G",
        "faculty": "H",
        "department": "I",
    },
    BulkImportType.STUDENT: {
        "national_id": "A",
        "student_number": "B",
        "first_name": "C",
        "last_name": "D",
        "advisor_name": "E",
        "faculty": "N",
        "department": "O",
        "class_year": "R",
    },
    BulkImportType.DUAL_MAJOR_STUDENT: {
        "parent_unit": "A",
        "faculty": "B",
        "program": "C",
        "student_number": "D",
        "national_id": "E",
        "first_name": "F",
        "last_name": "G",
        "class_year": "H",
        "advisor_name": "U",
    },
}


class RowError(Exception):
    """A row that cannot be imported; recorded and the import continues."""


@dataclass
class RowOutcome:
    identifier: str
    message: str


def column_index(letter: str) -> int:
    """Zero-based index of an Excel column letter (A -> 0, AA -> 26)."""
    index = 0
    for char in letter.upper():
        index = index * 26 + (ord(char) - ord("A") + 1)
    return index - 1


def normalize_cell(value: Any) -> str:
    """Cell value as a trimmed string; integral floats lose their ``.0``."""
    if value is None:
        return ""
    if isinstance(value, float):
        if pd.isna(value):
            return ""
        if value.is_integer():
            return str(int(value))
    return str(value).strip()


def read_rows(path: str, job_type: BulkImportType) -> List[Tuple[int, Dict[str, str]]]:
    """
    Read the data rows of a workbook.

    Returns:
        ``(excel_row_number, {field: value})`` pairs, header row excluded.
    """
    frame = pd.read_excel(path, header=None, dtype=object, engine="openpyxl")
    columns = COLUMNS[job_type]
    rows = []
    for position, record in enumerate(frame.itertuples(index=False, name=None)):
        if position == 0:
            continue  # header
        values = {}
        for field, letter in columns.items():
            idx = column_index(letter)
            values[field] = normalize_cell(record[idx]) if idx < len(record) else ""
        if not any(values.values()):
            continue
        rows.append((position + 1, values))
    return rows


def _full_name(values: Dict[str, str]) -> str:
    return " ".join(part for part in (values.get("first_name"), values.get("last_name")) if part)


def _class_year(raw: str) -> Optional[int]:
    match = re.search(r"\d+", raw or "")
    return int(match.group()) if match else None


def _find_advisor(session: Session, name: str) -> Optional[User]:
    if not name:
        return None
    return session.execute(
        select(User)
        .where(User.role == Role.ADVISOR, func.lower(User.full_name) == name.lower())
        .limit(1)
    ).scalar_one_or_none()


def import_advisor(session: Session, values: Dict[str, str]) -> Optional[RowOutcome]:
    email = values["email"].lower()
    national_id = values["national_id"]
    if not email or not national_id:
        return None
    if not NATIONAL_ID_PATTERN.match(national_id):
        raise RowError(f"Invalid national id: {national_id}")
    name = _full_name(values)
    if not name:
        raise RowError("Missing name")

    user = session.execute(
        select(User).where(or_(User.email == email, User.national_id == national_id))
    ).scalar_one_or_none()
    if user is not None and user.role != Role.ADVISOR:
        raise RowError(f"{email} belongs to a {user.role.value} account")

    fields = {
        "full_name": name,
        "email": email,
        "national_id": national_id,
        "faculty": values["faculty"] or None,
        "department": values["department"] or None,
    }
    if user is None:
        session.add(
            User(
                username=email,
                role=Role.ADVISOR,
                password_hash=hash_password(national_id),
                must_change_password=True,
                **fields,
            )
        )
        return RowOutcome(email, "created")

    for key, value in fields.items():
        setattr(user, key, value)
    return RowOutcome(email, "updated")


def import_student(session: Session, values: Dict[str, str]) -> Optional[RowOutcome]:
    student_number = values["student_number"]
    national_id = values["national_id"]
    if not student_number or not national_id:
        return None
    if not NATIONAL_ID_PATTERN.match(national_id):
        raise RowError(f"Invalid national id: {national_id}")
    name = _full_name(values)
    if not name:
        raise RowError("Missing name")

    email = f"{student_number}@{settings.STUDENT_EMAIL_DOMAIN}"
    advisor = _find_advisor(session, values["advisor_name"])

    user = session.execute(
        select(User).where(or_(User.student_number == student_number, User.email == email))
    ).scalar_one_or_none()
    if user is not None and user.role != Role.STUDENT:
        raise RowError(f"{student_number} belongs to a {user.role.value} account")

    fields = {
        "full_name": name,
        "email": email,
        "student_number": student_number,
        "national_id": national_id,
        "faculty": values["faculty"] or None,
        "department": values["department"] or None,
        "class_year": _class_year(values["class_year"]),
        "advisor_id": advisor.id if advisor else None,
    }
    note = "" if advisor or not values["advisor_name"] else f" (advisor '{values['advisor_name']}' not found)"

    if user is None:
        session.add(
            User(
                username=student_number,
                role=Role.STUDENT,
                password_hash=hash_password(national_id),
                must_change_password=True,
                **fields,
            )
        )
        return RowOutcome(student_number, "created" + note)

    for key, value in fields.items():
        setattr(user, key, value)
    return RowOutcome(student_number, "updated" + note)


def import_dual_major_student(session: Session, values: Dict[str, str]) -> Optional[RowOutcome]:
    student_number = values["student_number"]
    national_id = values["national_id"]

    missing = [
        label
        for label, value in (("D (student number)", student_number), ("E (national id)", national_id), ("F (first name)", values["first_name"]))
        if not value
    ]
    if missing:
        raise RowError(f"Missing required field(s): {', '.join(missing)}")
    if not DUAL_MAJOR_NUMBER_PATTERN.match(student_number):
        raise RowError(f"Invalid student number: {student_number}")
    if not NATIONAL_ID_PATTERN.match(national_id):
        raise RowError(f"Invalid national id: {national_id}")

    program = values["program"]
    advisor = _find_advisor(session, values["advisor_name"])
    user = session.execute(
        select(User).where(User.student_number == student_number)
    ).scalar_one_or_none()

    if user is None:
        user = User(
            username=student_number,
            email=f"{student_number}@{settings.STUDENT_EMAIL_DOMAIN}",
            role=Role.STUDENT,
            full_name=_full_name(values),
            national_id=national_id,
            student_number=student_number,
            faculty=values["faculty"] or "CAP-YAP OGRENCISI",
            department=program or "CAP-YAP",
            class_year=_class_year(values["class_year"]),
            password_hash=hash_password(national_id),
            must_change_password=True,
        )
        session.add(user)
        message = "created"
    elif user.role != Role.STUDENT:
        raise RowError(f"{student_number} belongs to a {user.role.value} account")
    else:
        message = "updated"

    user.is_dual_major = True
    user.dual_major_department = program or None
    user.dual_major_advisor_id = advisor.id if advisor else None
    return RowOutcome(student_number, message)


IMPORTERS: Dict[BulkImportType, Callable[[Session, Dict[str, str]], Optional[RowOutcome]]] = {
    BulkImportType.ADVISOR: import_advisor,
    BulkImportType.STUDENT: import_student,
    BulkImportType.DUAL_MAJOR_STUDENT: import_dual_major_student,
}


def _finish(session: Session, job: BulkImportJob, status: BulkImportStatus, message: Optional[str] = None) -> None:
    job.status = status
    job.finished_at = utcnow()
    if message:
        job.error_message = message
    session.commit()


def process_import(session: Session, job_id: UUID, path: Optional[str] = None) -> BulkImportJob:
    """
    Run one import job to completion, cancellation or failure.

    Every row is committed on its own, so a bad row is rolled back alone
    and progress is visible to ``GET /admin/excel/{job_id}`` while it runs.
    """
    job = session.get(BulkImportJob, job_id)
    if job is None:
        raise ValueError(f"Bulk import job {job_id} not found")

    path = path or job.file_path
    job_type = BulkImportType(job.job_type)
    job.started_at = utcnow()
    session.commit()

    try:
        rows = read_rows(path, job_type)
    except (OSError, ValueError, KeyError, zipfile.BadZipFile, InvalidFileException) as e:
        logger.error(f"Bulk import {job_id}: cannot read {path}: {e}")
        _finish(session, job, BulkImportStatus.FAILED, f"Could not read workbook: {e}")
        return job

    job.total_rows = len(rows)
    session.commit()
    logger.info(f"Bulk import {job_id} ({job_type.value}): {len(rows)} rows")

    importer = IMPORTERS[job_type]
    errors: List[str] = []
    try:
        for index, (row_number, values) in enumerate(rows):
            if index % settings.IMPORT_CANCEL_CHECK_EVERY == 0:
                session.refresh(job, ["cancel_requested"])
                if job.cancel_requested:
                    logger.info(f"Bulk import {job_id} cancelled at row {row_number}")
                    _finish(session, job, BulkImportStatus.CANCELLED, "Cancelled by user")
                    return job

            try:
                outcome = importer(session, values)
                session.flush()
            except (RowError, IntegrityError) as e:
                session.rollback()
                message = str(e) if isinstance(e, RowError) else "Duplicate or conflicting record"
                errors.append(f"Row {row_number}: {message}")
                job.failure_count += 1
                session.add(BulkImportRow(job_id=job.id, row_number=row_number, success=False, message=message[:500]))
            else:
                if outcome is None:
                    job.skipped_count += 1
                else:
                    job.success_count += 1
                    session.add(
                        BulkImportRow(
                            job_id=job.id,
                            row_number=row_number,
                            success=True,
                            identifier=outcome.identifier,
                            message=outcome.message,
                        )
                    )

            job.processed_rows += 1
            session.commit()

    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Bulk import {job_id} failed: {e}", exc_info=True)
        _finish(session, job, BulkImportStatus.FAILED, f"Database error: {e.__class__.__name__}")
        return job

    summary = "; ".join(errors[:10]) if errors else None
    if not summary and job.skipped_count:
        summary = f"Skipped rows: {job.skipped_count}"
    _finish(session, job, BulkImportStatus.COMPLETED, summary)
    logger.info(
        f"Bulk import {job_id} completed: {job.success_count} ok, "
        f"{job.failure_count} failed, {job.skipped_count} skipped"
    )
    return job


def run_import(sync_database_url: str, job_id: UUID, path: str) -> None:
    """Entry point for background execution: own session, file removed afterwards."""
    from stajkontrol.db.session import get_sync_session_factory

    session = get_sync_session_factory(sync_database_url)()
    try:
        process_import(session, job_id, path)
    finally:
        session.close()
        Path(path).unlink(missing_ok=True)
