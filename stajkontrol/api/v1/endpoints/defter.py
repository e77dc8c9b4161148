"""
Logbook (defter) endpoints.

**RBAC**: Student for uploads and status changes; downloads are also
open to staff (advisors for their advisees only).
"""

from typing import List
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, File, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from stajkontrol.api.deps import get_current_user, get_db, get_storage, pdf_response, require_student
from stajkontrol.core.exceptions import NotFound
from stajkontrol.models import User
from stajkontrol.schemas.logbook import LogbookResponse, LogbookStatusUpdate
from stajkontrol.services.file_storage import FileStorage
from stajkontrol.services.logbook_service import LogbookService

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.get("/defterler", response_model=List[LogbookResponse])
async def list_my_logbooks(
    current_user: User = Depends(require_student),
    db: AsyncSession = Depends(get_db),
):
    return await LogbookService(db).list_for_student(current_user)


@router.post("/defter/{application_id}/upload-pdf", response_model=LogbookResponse)
async def upload_logbook_pdf(
    application_id: UUID,
    file: UploadFile = File(...),
    current_user: User = Depends(require_student),
    db: AsyncSession = Depends(get_db),
    storage: FileStorage = Depends(get_storage),
):
    """Upload or replace the logbook PDF of an approved application (max 50 MB)."""
    data = await storage.read_upload(file)
    logbook = await LogbookService(db, storage).upload_pdf(
        current_user, application_id, data, file.content_type, file.filename
    )
    logger.info("logbook_uploaded", logbook_id=str(logbook.id), size=len(data))
    return logbook


@router.get("/defter/{logbook_id}/download-pdf")
async def download_logbook_pdf(
    logbook_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    storage: FileStorage = Depends(get_storage),
):
    logbook = await LogbookService(db).get_visible(current_user, logbook_id)
    if logbook.file is None:
        raise NotFound("Logbook has no file")
    return pdf_response(storage, logbook.file)


@router.delete("/defter/{logbook_id}/pdf", response_model=LogbookResponse)
async def delete_logbook_pdf(
    logbook_id: UUID,
    current_user: User = Depends(require_student),
    db: AsyncSession = Depends(get_db),
    storage: FileStorage = Depends(get_storage),
):
    logbook = await LogbookService(db, storage).delete_pdf(current_user, logbook_id)
    logger.info("logbook_file_deleted", logbook_id=str(logbook_id))
    return logbook


@router.put("/defter/{logbook_id}/durum", response_model=LogbookResponse)
async def update_logbook_status(
    logbook_id: UUID,
    body: LogbookStatusUpdate,
    current_user: User = Depends(require_student),
    db: AsyncSession = Depends(get_db),
):
    """Withdraw (uploaded -> waiting) or resubmit (waiting -> uploaded)."""
    return await LogbookService(db).update_status_by_student(current_user, logbook_id, body.status)
