"""Bulk import schemas."""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel

from stajkontrol.models import BulkImportStatus, BulkImportType


class BulkImportRowResponse(BaseModel):
    row_number: int
    success: bool
    identifier: Optional[str] = None
    message: Optional[str] = None

    class Config:
        from_attributes = True


class BulkImportJobResponse(BaseModel):
    id: UUID
    job_type: BulkImportType
    status: BulkImportStatus
    filename: str
    total_rows: int
    processed_rows: int
    success_count: int
    failure_count: int
    skipped_count: int
    cancel_requested: bool
    error_message: Optional[str] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class BulkImportJobDetail(BulkImportJobResponse):
    rows: List[BulkImportRowResponse] = []


class BulkImportJobListResponse(BaseModel):
    items: List[BulkImportJobResponse]
    total: int
    page: int
    page_size: int
