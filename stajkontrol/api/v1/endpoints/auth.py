"""Authentication endpoints for university users."""

import structlog
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from stajkontrol.api.deps import get_current_user, get_db
from stajkontrol.core.security import create_access_token
from stajkontrol.models import User
from stajkontrol.schemas.auth import (
    ChangePasswordRequest,
    LoginRequest,
    LoginResponse,
    MessageResponse,
)
from stajkontrol.schemas.user import UserResponse
from stajkontrol.services.user_service import UserService

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.post("/login", response_model=LoginResponse)
async def login(credentials: LoginRequest, db: AsyncSession = Depends(get_db)):
    """
    Login with username (or e-mail) and password.

    Users created by the Excel import must change their initial password;
    ``must_change_password`` tells the client to redirect.
    """
    user = await UserService(db).authenticate(credentials.username, credentials.password)
    token = create_access_token({"sub": str(user.id), "role": user.role.value})
    logger.info("user_logged_in", user_id=str(user.id), role=user.role.value)
    return LoginResponse(
        access_token=token,
        must_change_password=user.must_change_password,
        user=UserResponse.model_validate(user),
    )


@router.get("/me", response_model=UserResponse)
async def me(current_user: User = Depends(get_current_user)):
    return current_user


@router.post("/change-password", response_model=MessageResponse)
async def change_password(
    body: ChangePasswordRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await UserService(db).change_password(current_user, body.current_password, body.new_password)
    logger.info("password_changed", user_id=str(current_user.id))
    return MessageResponse(message="Password changed")
