"""Bulk import jobs as seen from the admin API."""

import asyncio
import logging
from pathlib import Path
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from stajkontrol.config import settings
from stajkontrol.core.exceptions import ConflictError, NotFound, ValidationError
from stajkontrol.models import BulkImportJob, BulkImportStatus, BulkImportType, User
from stajkontrol.utils.helpers import sanitize_filename
from stajkontrol.utils.validators import validate_file_extension

logger = logging.getLogger(__name__)


class BulkImportService:
    def __init__(self, db: AsyncSession, import_dir: str = settings.IMPORT_DIR):
        self.db = db
        self.import_dir = Path(import_dir)

    async def create_job(
        self, admin: User, job_type: BulkImportType, filename: Optional[str], data: bytes
    ) -> BulkImportJob:
        """Persist the workbook and a Processing job; the caller schedules the run."""
        filename = filename or ""
        if not validate_file_extension(filename, settings.ALLOWED_IMPORT_EXTENSIONS):
            raise ValidationError(
                "Unsupported file type",
                errors={"file": f"allowed extensions: {', '.join(settings.ALLOWED_IMPORT_EXTENSIONS)}"},
            )
        if not data:
            raise ValidationError("File is empty", errors={"file": "empty file"})
        if len(data) > settings.MAX_UPLOAD_SIZE:
            raise ValidationError("File is too large", errors={"file": "size limit exceeded"})

        job = BulkImportJob(
            job_type=job_type,
            status=BulkImportStatus.PROCESSING,
            filename=sanitize_filename(filename),
            created_by_id=admin.id,
        )
        self.db.add(job)
        await self.db.flush()

        path = self.import_dir / f"{job.id}.xlsx"
        await asyncio.to_thread(self._write, path, data)
        job.file_path = str(path)
        await self.db.commit()

        logger.info(f"Bulk import job {job.id} ({job_type.value}) created by {admin.id}")
        return job

    @staticmethod
    def _write(path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)

    async def get(self, job_id: UUID, with_rows: bool = False) -> BulkImportJob:
        stmt = select(BulkImportJob).where(BulkImportJob.id == job_id)
        if with_rows:
            stmt = stmt.options(selectinload(BulkImportJob.rows))
        stmt = stmt.execution_options(populate_existing=True)
        job = (await self.db.execute(stmt)).scalar_one_or_none()
        if job is None:
            raise NotFound("Import job not found")
        return job

    async def list(self, offset: int = 0, limit: int = 20) -> Tuple[List[BulkImportJob], int]:
        total = (await self.db.execute(select(func.count(BulkImportJob.id)))).scalar() or 0
        result = await self.db.execute(
            select(BulkImportJob).order_by(BulkImportJob.created_at.desc()).offset(offset).limit(limit)
        )
        return list(result.scalars().all()), total

    async def cancel(self, job_id: UUID) -> BulkImportJob:
        """Ask a running job to stop; the worker notices within a few rows."""
        job = await self.get(job_id)
        if job.is_finished:
            raise ConflictError.invalid_transition("Import job", job.status, BulkImportStatus.PROCESSING)
        job.cancel_requested = True
        await self.db.commit()
        return job
