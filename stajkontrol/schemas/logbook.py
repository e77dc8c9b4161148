"""Logbook (defter) schemas."""

from datetime import date, datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from stajkontrol.models import ApplicationStatus, LogbookStatus
from stajkontrol.schemas.application import DocumentResponse


class LogbookApplication(BaseModel):
    id: UUID
    company_name: str
    start_date: date
    end_date: date
    status: ApplicationStatus

    class Config:
        from_attributes = True


class LogbookResponse(BaseModel):
    id: UUID
    application_id: UUID
    status: LogbookStatus
    rejection_reason: Optional[str] = None
    submitted_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None
    file: Optional[DocumentResponse] = None
    application: LogbookApplication
    created_at: datetime

    class Config:
        from_attributes = True


class LogbookStatusUpdate(BaseModel):
    status: LogbookStatus
    reason: Optional[str] = Field(None, max_length=1000, description="Recorded in the audit log")


class LogbookListResponse(BaseModel):
    items: List[LogbookResponse]
    total: int
    page: int
    page_size: int
