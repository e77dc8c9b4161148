"""Internship application (başvuru) schemas."""

from datetime import date, datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

from stajkontrol.models import ApplicationStatus, FileKind, InternshipType, LogbookStatus
from stajkontrol.utils.helpers import normalize_email
from stajkontrol.utils.validators import validate_phone


class DateRange(BaseModel):
    """Half-open period ``[start_date, end_date)``."""

    start_date: date = Field(..., description="First day of the internship")
    end_date: date = Field(..., description="Day after the last internship day")

    @model_validator(mode="after")
    def check_order(self):
        if self.start_date >= self.end_date:
            raise ValueError("start_date must be before end_date")
        return self


class ApplicationCreate(DateRange):
    company_name: str = Field(..., min_length=2, max_length=255)
    company_address: str = Field(..., min_length=5, max_length=500)
    company_phone: str = Field(..., description="10-15 characters of digits, spaces, + - ( )")
    company_email: EmailStr
    authorized_person_name: str = Field(..., min_length=2, max_length=255)
    authorized_person_title: Optional[str] = Field(None, max_length=255)
    internship_type: InternshipType
    total_days: int = Field(..., gt=0, le=365, description="Working days")

    @field_validator("company_phone")
    @classmethod
    def check_phone(cls, v):
        if not validate_phone(v):
            raise ValueError("Invalid phone number")
        return v.strip()

    @field_validator("company_email")
    @classmethod
    def lower_email(cls, v):
        return normalize_email(v)


class DateUpdate(DateRange):
    total_days: Optional[int] = Field(None, gt=0, le=365)


class CancelRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=1000)


class DocumentResponse(BaseModel):
    id: UUID
    kind: FileKind
    original_filename: str
    size: int
    content_type: str
    uploaded_at: datetime

    class Config:
        from_attributes = True


class LogbookSummary(BaseModel):
    id: UUID
    status: LogbookStatus
    has_file: bool
    rejection_reason: Optional[str] = None

    class Config:
        from_attributes = True


class StudentSummary(BaseModel):
    id: UUID
    full_name: str
    student_number: Optional[str] = None
    department: Optional[str] = None

    class Config:
        from_attributes = True


class ApplicationResponse(BaseModel):
    id: UUID
    student_id: UUID
    company_name: str
    company_address: str
    company_phone: str
    company_email: str
    authorized_person_name: str
    authorized_person_title: Optional[str] = None
    internship_type: InternshipType
    start_date: date
    end_date: date
    total_days: int
    status: ApplicationStatus
    rejection_reason: Optional[str] = None
    cancellation_reason: Optional[str] = None
    decided_at: Optional[datetime] = None
    created_at: datetime
    documents: List[DocumentResponse] = []
    logbook: Optional[LogbookSummary] = None

    class Config:
        from_attributes = True


class ApplicationDetail(ApplicationResponse):
    """Staff view with the student attached."""

    student: StudentSummary


class ApplicationListResponse(BaseModel):
    items: List[ApplicationDetail]
    total: int
    page: int
    page_size: int


class ApplicationStats(BaseModel):
    total: int
    pending: int
    approved: int
    rejected: int
    cancelled: int
    logbooks_waiting: int
    logbooks_uploaded: int
    logbooks_approved: int
