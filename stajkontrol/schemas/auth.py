"""Authentication schemas."""

from pydantic import BaseModel, Field, field_validator

from stajkontrol.schemas.user import UserResponse
from stajkontrol.utils.validators import validate_password_strength


class LoginRequest(BaseModel):
    """Login by username or e-mail."""

    username: str = Field(..., min_length=1, description="Username or e-mail address")
    password: str = Field(..., min_length=1)


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    must_change_password: bool
    user: UserResponse


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str = Field(..., min_length=8, description="At least 8 characters, mixed case and a digit")

    @field_validator("new_password")
    @classmethod
    def check_strength(cls, v):
        ok, errors = validate_password_strength(v)
        if not ok:
            raise ValueError("; ".join(errors))
        return v


class MessageResponse(BaseModel):
    message: str
