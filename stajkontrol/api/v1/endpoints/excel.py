"""
Bulk Excel import of advisors, students and dual-major students.

**RBAC**: Admin only.

Uploading creates a Processing job and returns immediately; rows are
imported in the background (Celery when enabled, otherwise a FastAPI
background task) and progress is polled with ``GET /{job_id}``.
"""

from uuid import UUID

import structlog
from fastapi import APIRouter, BackgroundTasks, Depends, File, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from stajkontrol.api.deps import get_db, get_pagination, get_settings, require_admin
from stajkontrol.config import Settings
from stajkontrol.models import BulkImportType, User
from stajkontrol.schemas.bulk_import import (
    BulkImportJobDetail,
    BulkImportJobListResponse,
    BulkImportJobResponse,
)
from stajkontrol.services.bulk_import_service import BulkImportService
from stajkontrol.services.excel_import import run_import

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.post("/{job_type}", response_model=BulkImportJobResponse, status_code=status.HTTP_202_ACCEPTED)
async def start_import(
    job_type: BulkImportType,
    background_tasks: BackgroundTasks,
    file: UploadFile = File(...),
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    config: Settings = Depends(get_settings),
):
    data = await file.read()
    job = await BulkImportService(db, config.IMPORT_DIR).create_job(current_user, job_type, file.filename, data)

    if config.CELERY_ENABLED:
        from stajkontrol.workers.bulk_import import process_bulk_import

        process_bulk_import.delay(str(job.id), job.file_path)
    else:
        background_tasks.add_task(run_import, config.SYNC_DATABASE_URL, job.id, job.file_path)

    logger.info("bulk_import_started", job_id=str(job.id), job_type=job_type.value)
    return job


@router.get("", response_model=BulkImportJobListResponse)
async def list_imports(
    pagination: dict = Depends(get_pagination),
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    items, total = await BulkImportService(db).list(offset=pagination["offset"], limit=pagination["limit"])
    return {"items": items, "total": total, "page": pagination["page"], "page_size": pagination["page_size"]}


@router.get("/{job_id}", response_model=BulkImportJobDetail)
async def get_import(
    job_id: UUID,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Job progress and per-row results."""
    return await BulkImportService(db).get(job_id, with_rows=True)


@router.post("/{job_id}/iptal", response_model=BulkImportJobResponse)
async def cancel_import(
    job_id: UUID,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    job = await BulkImportService(db).cancel(job_id)
    logger.info("bulk_import_cancel_requested", job_id=str(job_id))
    return job
