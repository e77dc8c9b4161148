"""Admin schemas."""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from stajkontrol.models import ApplicationStatus


class ApplicationStatusUpdate(BaseModel):
    status: ApplicationStatus
    reason: Optional[str] = Field(None, max_length=1000)


class StatisticsResponse(BaseModel):
    users: Dict[str, int]
    applications: Dict[str, int]
    logbooks: Dict[str, int]
    internship_types: Dict[str, int]
    generated_at: datetime


class AuditLogResponse(BaseModel):
    id: UUID
    actor_user_id: Optional[UUID] = None
    actor_email: Optional[str] = None
    actor_role: str
    action: str
    entity_type: str
    entity_id: UUID
    previous_status: Optional[str] = None
    new_status: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    created_at: datetime

    class Config:
        from_attributes = True


class AuditLogListResponse(BaseModel):
    items: List[AuditLogResponse]
    total: int
    page: int
    page_size: int
