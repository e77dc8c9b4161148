"""
Admin endpoints: user management, overrides, statistics and audit trail.

**RBAC**: Admin only.
"""

from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from stajkontrol.api.deps import get_cache, get_db, get_pagination, get_storage, require_admin
from stajkontrol.core.cache import CacheManager
from stajkontrol.core.exceptions import ConflictError
from stajkontrol.core.security import Role
from stajkontrol.models import ApplicationStatus, InternshipType, LogbookStatus, User
from stajkontrol.schemas.admin import (
    ApplicationStatusUpdate,
    AuditLogListResponse,
    StatisticsResponse,
)
from stajkontrol.schemas.application import ApplicationDetail, ApplicationListResponse
from stajkontrol.schemas.logbook import LogbookListResponse, LogbookResponse, LogbookStatusUpdate
from stajkontrol.schemas.user import UserCreate, UserListResponse, UserResponse, UserUpdate
from stajkontrol.services import audit_service
from stajkontrol.services.application_service import ApplicationService
from stajkontrol.services.file_storage import FileStorage
from stajkontrol.services.logbook_service import LogbookService
from stajkontrol.services.statistics_service import StatisticsService
from stajkontrol.services.user_service import UserService

logger = structlog.get_logger(__name__)
router = APIRouter()


def _page(items, total, pagination: dict) -> dict:
    return {
        "items": items,
        "total": total,
        "page": pagination["page"],
        "page_size": pagination["page_size"],
    }


# ---- Users ----


@router.get("/users", response_model=UserListResponse)
async def list_users(
    role: Role = Query(None),
    search: str = Query(None),
    pagination: dict = Depends(get_pagination),
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    items, total = await UserService(db).list(
        offset=pagination["offset"], limit=pagination["limit"], role=role, search=search
    )
    return _page(items, total, pagination)


@router.post("/users", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    body: UserCreate,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    user = await UserService(db).create(body)
    logger.info("user_created", user_id=str(user.id), role=body.role.value, admin_id=str(current_user.id))
    return user


@router.get("/users/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: UUID,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await UserService(db).get(user_id)


@router.put("/users/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: UUID,
    body: UserUpdate,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    user = await UserService(db).update(user_id, body)
    logger.info("user_updated", user_id=str(user_id), admin_id=str(current_user.id))
    return user


@router.delete("/users/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    user_id: UUID,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    storage: FileStorage = Depends(get_storage),
):
    """Delete a user. A student's applications, logbooks and files are removed too."""
    if user_id == current_user.id:
        raise ConflictError("Admins cannot delete their own account")
    await UserService(db, storage).delete(user_id)
    logger.info("user_deleted", user_id=str(user_id), admin_id=str(current_user.id))


# ---- Applications ----


@router.get("/basvurular", response_model=ApplicationListResponse)
async def list_applications(
    status: ApplicationStatus = Query(None),
    internship_type: InternshipType = Query(None),
    search: str = Query(None),
    pagination: dict = Depends(get_pagination),
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    items, total = await ApplicationService(db).list(
        offset=pagination["offset"],
        limit=pagination["limit"],
        status=status,
        internship_type=internship_type,
        search=search,
    )
    return _page(items, total, pagination)


@router.get("/basvurular/{application_id}", response_model=ApplicationDetail)
async def get_application(
    application_id: UUID,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await ApplicationService(db).get(application_id)


@router.put("/basvurular/{application_id}/durum", response_model=ApplicationDetail)
async def set_application_status(
    application_id: UUID,
    body: ApplicationStatusUpdate,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    application = await ApplicationService(db).admin_set_status(
        current_user, application_id, body.status, body.reason
    )
    logger.info(
        "application_status_overridden",
        application_id=str(application_id),
        status=body.status.value,
        admin_id=str(current_user.id),
    )
    return application


@router.delete("/basvurular/{application_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_application(
    application_id: UUID,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    storage: FileStorage = Depends(get_storage),
):
    await ApplicationService(db, storage).delete(current_user, application_id)
    logger.info("application_deleted", application_id=str(application_id), admin_id=str(current_user.id))


# ---- Logbooks ----


@router.get("/defterler", response_model=LogbookListResponse)
async def list_logbooks(
    status: LogbookStatus = Query(None),
    search: str = Query(None),
    pagination: dict = Depends(get_pagination),
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    items, total = await LogbookService(db).list(
        offset=pagination["offset"], limit=pagination["limit"], status=status, search=search
    )
    return _page(items, total, pagination)


@router.get("/defterler/{logbook_id}", response_model=LogbookResponse)
async def get_logbook(
    logbook_id: UUID,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await LogbookService(db).get(logbook_id)


@router.put("/defterler/{logbook_id}/durum", response_model=LogbookResponse)
async def set_logbook_status(
    logbook_id: UUID,
    body: LogbookStatusUpdate,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Override a logbook status. Approved still requires an uploaded file."""
    logbook = await LogbookService(db).admin_set_status(current_user, logbook_id, body.status, body.reason)
    logger.info(
        "logbook_status_overridden",
        logbook_id=str(logbook_id),
        status=body.status.value,
        admin_id=str(current_user.id),
    )
    return logbook


# ---- Reporting ----


@router.get("/statistics", response_model=StatisticsResponse)
async def get_statistics(
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    cache: CacheManager = Depends(get_cache),
):
    return await StatisticsService(db, cache).get_statistics()


@router.get("/audit-logs", response_model=AuditLogListResponse)
async def list_audit_logs(
    entity_type: str = Query(None, description="application or logbook"),
    entity_id: UUID = Query(None),
    action: str = Query(None),
    pagination: dict = Depends(get_pagination),
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    items, total = await audit_service.list_entries(
        db,
        offset=pagination["offset"],
        limit=pagination["limit"],
        entity_type=entity_type,
        entity_id=entity_id,
        action=action,
    )
    return _page(items, total, pagination)
