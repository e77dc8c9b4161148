"""Company (şirket) OTP and decision schemas."""

from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

from stajkontrol.utils.helpers import normalize_email


class OtpRequest(BaseModel):
    email: EmailStr

    @field_validator("email")
    @classmethod
    def lower_email(cls, v):
        return normalize_email(v)


class OtpRequestResponse(BaseModel):
    message: str
    handle: UUID = Field(..., description="Pass back with the code to /sirketgiris/dogrula")
    expires_in: int = Field(..., description="Seconds until the code expires")


class OtpVerifyRequest(BaseModel):
    handle: UUID
    code: str = Field(..., pattern=r"^\d{4,10}$")


class CompanyTokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    company_email: str


class Decision(str, Enum):
    APPROVE = "onay"
    REJECT = "red"


class CompanyDecision(BaseModel):
    """Approve or reject an application / logbook owned by the company."""

    id: UUID = Field(..., description="Application id (sirketonay) or logbook id (defteronay)")
    decision: Decision
    reason: Optional[str] = Field(None, max_length=1000)

    @model_validator(mode="after")
    def reason_required_on_reject(self):
        if self.decision == Decision.REJECT and not (self.reason or "").strip():
            raise ValueError("reason is required when rejecting")
        return self
