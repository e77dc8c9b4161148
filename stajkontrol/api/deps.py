"""API dependencies: database, authentication, role gates, pagination."""

from typing import Optional
from uuid import UUID

from fastapi import Depends, Query, Request
from fastapi.responses import FileResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from stajkontrol.config import Settings
from stajkontrol.core.cache import CacheManager
from stajkontrol.core.exceptions import Forbidden, Unauthenticated
from stajkontrol.core.security import TOKEN_TYPE_ACCESS, TOKEN_TYPE_COMPANY, Role, decode_token
from stajkontrol.db.session import get_db
from stajkontrol.models import User
from stajkontrol.services.file_storage import FileStorage
from stajkontrol.services.otp_service import CompanySession, OtpService
from stajkontrol.utils.helpers import paginate

# HTTPBearer for simple token authentication in Swagger (just paste the access token)
security = HTTPBearer(auto_error=False)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_storage(request: Request) -> FileStorage:
    return request.app.state.storage


def get_cache(request: Request) -> Optional[CacheManager]:
    return request.app.state.cache


def _token_payload(credentials: Optional[HTTPAuthorizationCredentials]) -> dict:
    if credentials is None or not credentials.credentials:
        raise Unauthenticated()
    return decode_token(credentials.credentials)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Get current authenticated user from Bearer token."""
    payload = _token_payload(credentials)
    if payload["type"] != TOKEN_TYPE_ACCESS:
        raise Forbidden("Company sessions cannot access this resource")

    try:
        user_id = UUID(payload["sub"])
    except ValueError:
        raise Unauthenticated()

    user = await db.get(User, user_id)
    if user is None:
        raise Unauthenticated("User not found")
    if not user.is_active:
        raise Forbidden("Inactive user")
    return user


def require_role(*allowed_roles: Role):
    """Dependency to check that the user has one of ``allowed_roles``."""

    async def role_checker(current_user: User = Depends(get_current_user)) -> User:
        if Role(current_user.role) not in allowed_roles:
            raise Forbidden(
                f"Insufficient permissions. Required: {[r.value for r in allowed_roles]}"
            )
        return current_user

    return role_checker


require_student = require_role(Role.STUDENT)
require_advisor = require_role(Role.ADVISOR)
require_career_center = require_role(Role.CAREER_CENTER)
require_admin = require_role(Role.ADMIN)


async def get_company_session(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> CompanySession:
    """Company session from a token issued by OTP verification."""
    payload = _token_payload(credentials)
    if payload["type"] != TOKEN_TYPE_COMPANY:
        raise Forbidden("A company session is required")

    try:
        session_id = UUID(payload.get("sid", ""))
    except ValueError:
        raise Unauthenticated()
    return await OtpService(db).resolve_session(session_id, payload["sub"])


def get_pagination(
    request: Request,
    page: int = Query(1, ge=1, description="Page number"),
    page_size: Optional[int] = Query(None, ge=1, description="Items per page"),
) -> dict:
    config: Settings = request.app.state.settings
    size = min(page_size or config.DEFAULT_PAGE_SIZE, config.MAX_PAGE_SIZE)
    return paginate(page, size)


def pdf_response(storage: FileStorage, uploaded_file) -> FileResponse:
    """Stream a stored PDF with its display filename."""
    path = storage.open_path(uploaded_file.storage_path)
    return FileResponse(
        path,
        media_type="application/pdf",
        filename=uploaded_file.original_filename,
    )
