"""
Student application (başvuru) endpoints.

**RBAC**: Student, own applications only.
"""

from typing import List, Optional
from uuid import UUID

import structlog
from fastapi import APIRouter, BackgroundTasks, Depends, File, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from stajkontrol.api.deps import get_db, get_storage, pdf_response, require_student
from stajkontrol.models import FileKind, User
from stajkontrol.schemas.application import (
    ApplicationCreate,
    ApplicationResponse,
    ApplicationStats,
    CancelRequest,
    DateUpdate,
)
from stajkontrol.services.application_service import ApplicationService
from stajkontrol.services.file_storage import FileStorage
from stajkontrol.services.mailer import application_submitted_email, dispatch_email

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.post("/basvuru", response_model=ApplicationResponse, status_code=status.HTTP_201_CREATED)
async def create_application(
    body: ApplicationCreate,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(require_student),
    db: AsyncSession = Depends(get_db),
):
    """Submit a new application; the company contact is e-mailed a review link."""
    application = await ApplicationService(db).create(current_user, body)

    subject, text = application_submitted_email(
        current_user.full_name, application.company_name, application.start_date, application.end_date
    )
    background_tasks.add_task(dispatch_email, application.company_email, subject, text)

    logger.info("application_created", application_id=str(application.id), student_id=str(current_user.id))
    return application


@router.get("/basvurular", response_model=List[ApplicationResponse])
async def list_my_applications(
    current_user: User = Depends(require_student),
    db: AsyncSession = Depends(get_db),
):
    return await ApplicationService(db).list_for_student(current_user)


@router.get("/basvuru/stats", response_model=ApplicationStats)
async def my_application_stats(
    current_user: User = Depends(require_student),
    db: AsyncSession = Depends(get_db),
):
    return await ApplicationService(db).stats_for_student(current_user)


@router.get("/basvuru/{application_id}", response_model=ApplicationResponse)
async def get_my_application(
    application_id: UUID,
    current_user: User = Depends(require_student),
    db: AsyncSession = Depends(get_db),
):
    return await ApplicationService(db).get_for_student(current_user, application_id)


@router.post("/basvuru/{application_id}/iptal", response_model=ApplicationResponse)
async def cancel_application(
    application_id: UUID,
    body: Optional[CancelRequest] = None,
    current_user: User = Depends(require_student),
    db: AsyncSession = Depends(get_db),
):
    """Cancel a pending application."""
    application = await ApplicationService(db).cancel(current_user, application_id, body.reason if body else None)
    logger.info("application_cancelled", application_id=str(application_id))
    return application


@router.put("/basvuru/{application_id}/tarih", response_model=ApplicationResponse)
async def update_application_dates(
    application_id: UUID,
    body: DateUpdate,
    current_user: User = Depends(require_student),
    db: AsyncSession = Depends(get_db),
):
    """Change the internship period while the application is pending."""
    return await ApplicationService(db).update_dates(current_user, application_id, body)


@router.post("/basvuru/{application_id}/belge/{kind}", response_model=ApplicationResponse)
async def upload_application_document(
    application_id: UUID,
    kind: FileKind,
    file: UploadFile = File(...),
    current_user: User = Depends(require_student),
    db: AsyncSession = Depends(get_db),
    storage: FileStorage = Depends(get_storage),
):
    """Attach a transcript, service record or insurance PDF (pending only)."""
    data = await storage.read_upload(file)
    application = await ApplicationService(db, storage).upload_document(
        current_user, application_id, kind, data, file.content_type, file.filename
    )
    logger.info("application_document_uploaded", application_id=str(application_id), kind=kind.value)
    return application


@router.get("/basvuru/{application_id}/belge/{kind}")
async def download_application_document(
    application_id: UUID,
    kind: FileKind,
    current_user: User = Depends(require_student),
    db: AsyncSession = Depends(get_db),
    storage: FileStorage = Depends(get_storage),
):
    service = ApplicationService(db, storage)
    application = await service.get_for_student(current_user, application_id)
    return pdf_response(storage, service.document_for(application, kind))
