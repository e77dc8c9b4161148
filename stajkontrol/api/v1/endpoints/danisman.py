"""
Advisor (danışman) endpoints.

**RBAC**: Advisor; only applications and logbooks of their own advisees (including
dual-major advisees).
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from stajkontrol.api.deps import get_db, get_pagination, get_storage, pdf_response, require_advisor
from stajkontrol.core.security import Role
from stajkontrol.models import ApplicationStatus, FileKind, LogbookStatus, User
from stajkontrol.schemas.application import ApplicationDetail, ApplicationListResponse
from stajkontrol.schemas.logbook import LogbookListResponse, LogbookResponse
from stajkontrol.schemas.user import UserListResponse
from stajkontrol.services.application_service import ApplicationService
from stajkontrol.services.file_storage import FileStorage
from stajkontrol.services.logbook_service import LogbookService
from stajkontrol.services.user_service import UserService

router = APIRouter()


@router.get("/basvurular", response_model=ApplicationListResponse)
async def list_advisee_applications(
    status: ApplicationStatus = Query(None),
    search: str = Query(None, description="Student name, number or company"),
    pagination: dict = Depends(get_pagination),
    current_user: User = Depends(require_advisor),
    db: AsyncSession = Depends(get_db),
):
    items, total = await ApplicationService(db).list(
        offset=pagination["offset"],
        limit=pagination["limit"],
        status=status,
        search=search,
        advisor_id=current_user.id,
    )
    return {"items": items, "total": total, "page": pagination["page"], "page_size": pagination["page_size"]}


@router.get("/basvurular/{application_id}", response_model=ApplicationDetail)
async def get_advisee_application(
    application_id: UUID,
    current_user: User = Depends(require_advisor),
    db: AsyncSession = Depends(get_db),
):
    return await ApplicationService(db).get_visible(current_user, application_id)


@router.get("/ogrenciler", response_model=UserListResponse)
async def list_advisees(
    search: str = Query(None),
    pagination: dict = Depends(get_pagination),
    current_user: User = Depends(require_advisor),
    db: AsyncSession = Depends(get_db),
):
    items, total = await UserService(db).list(
        offset=pagination["offset"],
        limit=pagination["limit"],
        role=Role.STUDENT,
        search=search,
        advisor_id=current_user.id,
    )
    return {"items": items, "total": total, "page": pagination["page"], "page_size": pagination["page_size"]}


@router.get("/download/{application_id}/{file_type}")
async def download_advisee_file(
    application_id: UUID,
    file_type: FileKind,
    current_user: User = Depends(require_advisor),
    db: AsyncSession = Depends(get_db),
    storage: FileStorage = Depends(get_storage),
):
    service = ApplicationService(db, storage)
    application = await service.get_visible(current_user, application_id)
    return pdf_response(storage, service.document_for(application, file_type))


@router.get("/defterler", response_model=LogbookListResponse)
async def list_advisee_logbooks(
    status: LogbookStatus = Query(None),
    search: str = Query(None, description="Student name or company"),
    pagination: dict = Depends(get_pagination),
    current_user: User = Depends(require_advisor),
    db: AsyncSession = Depends(get_db),
):
    items, total = await LogbookService(db).list(
        offset=pagination["offset"],
        limit=pagination["limit"],
        status=status,
        search=search,
        advisor_id=current_user.id,
    )
    return {"items": items, "total": total, "page": pagination["page"], "page_size": pagination["page_size"]}


@router.get("/defterler/{logbook_id}", response_model=LogbookResponse)
async def get_advisee_logbook(
    logbook_id: UUID,
    current_user: User = Depends(require_advisor),
    db: AsyncSession = Depends(get_db),
):
    return await LogbookService(db).get_visible(current_user, logbook_id)
