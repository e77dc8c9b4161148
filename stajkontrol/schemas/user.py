"""User schemas."""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, model_validator

from stajkontrol.core.security import Role


class UserResponse(BaseModel):
    """User response schema."""

    id: UUID
    username: str
    email: str
    role: Role
    full_name: str
    is_active: bool
    must_change_password: bool
    student_number: Optional[str] = None
    faculty: Optional[str] = None
    department: Optional[str] = None
    class_year: Optional[int] = None
    advisor_id: Optional[UUID] = None
    is_dual_major: bool = False
    dual_major_department: Optional[str] = None
    dual_major_advisor_id: Optional[UUID] = None
    created_at: datetime

    class Config:
        from_attributes = True


class UserCreate(BaseModel):
    """Admin-created user."""

    username: str = Field(..., min_length=3, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=8)
    role: Role
    full_name: str = Field(..., min_length=1, max_length=255)
    national_id: Optional[str] = Field(None, pattern=r"^\d{11}$", description="T.C. kimlik no")
    student_number: Optional[str] = Field(None, max_length=20)
    faculty: Optional[str] = None
    department: Optional[str] = None
    class_year: Optional[int] = Field(None, ge=1, le=8)
    advisor_id: Optional[UUID] = None
    is_dual_major: bool = False
    dual_major_department: Optional[str] = None
    dual_major_advisor_id: Optional[UUID] = None
    must_change_password: bool = True

    @model_validator(mode="after")
    def student_fields(self):
        if self.role != Role.STUDENT and (self.advisor_id or self.is_dual_major):
            raise ValueError("Only students have advisors or a dual major")
        if self.is_dual_major and not self.dual_major_department:
            raise ValueError("dual_major_department is required for dual major students")
        return self


class UserUpdate(BaseModel):
    """Partial update; omitted fields are left unchanged."""

    email: Optional[EmailStr] = None
    password: Optional[str] = Field(None, min_length=8)
    role: Optional[Role] = None
    full_name: Optional[str] = Field(None, min_length=1, max_length=255)
    is_active: Optional[bool] = None
    must_change_password: Optional[bool] = None
    student_number: Optional[str] = Field(None, max_length=20)
    faculty: Optional[str] = None
    department: Optional[str] = None
    class_year: Optional[int] = Field(None, ge=1, le=8)
    advisor_id: Optional[UUID] = None
    is_dual_major: Optional[bool] = None
    dual_major_department: Optional[str] = None
    dual_major_advisor_id: Optional[UUID] = None


class UserListResponse(BaseModel):
    items: List[UserResponse]
    total: int
    page: int
    page_size: int
