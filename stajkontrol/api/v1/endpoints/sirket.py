"""
Company (şirket) endpoints.

Companies have no accounts: they request a one-time code at the e-mail
address students entered for them, verify it, and use the returned
company token for the remaining endpoints.
"""

from typing import List
from uuid import UUID

import structlog
from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from stajkontrol.api.deps import get_cache, get_company_session, get_db, get_storage, pdf_response
from stajkontrol.config import settings
from stajkontrol.core.cache import CacheManager
from stajkontrol.models import FileKind
from stajkontrol.schemas.application import ApplicationDetail, ApplicationResponse
from stajkontrol.schemas.auth import MessageResponse
from stajkontrol.schemas.company import (
    CompanyDecision,
    CompanyTokenResponse,
    Decision,
    OtpRequest,
    OtpRequestResponse,
    OtpVerifyRequest,
)
from stajkontrol.schemas.logbook import LogbookResponse
from stajkontrol.services.application_service import ApplicationService
from stajkontrol.services.file_storage import FileStorage
from stajkontrol.services.logbook_service import LogbookService
from stajkontrol.services.mailer import (
    application_decided_email,
    dispatch_email,
    logbook_decided_email,
    otp_email,
)
from stajkontrol.services.otp_service import CompanySession, OtpService

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.post("/sirketgiris", response_model=OtpRequestResponse)
async def request_otp(
    body: OtpRequest,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    cache: CacheManager = Depends(get_cache),
):
    """Send a one-time code to a company e-mail with work awaiting review."""
    otp, code = await OtpService(db, cache).request_otp(body.email)

    subject, text = otp_email(code, settings.OTP_EXPIRE_MINUTES)
    background_tasks.add_task(dispatch_email, otp.company_email, subject, text)

    logger.info("company_otp_requested", company_email=otp.company_email)
    return OtpRequestResponse(
        message="Doğrulama kodu e-posta adresinize gönderildi",
        handle=otp.id,
        expires_in=settings.OTP_EXPIRE_MINUTES * 60,
    )


@router.post("/sirketgiris/dogrula", response_model=CompanyTokenResponse)
async def verify_otp(body: OtpVerifyRequest, db: AsyncSession = Depends(get_db)):
    token, session = await OtpService(db).verify_otp(body.handle, body.code)
    logger.info("company_otp_verified", company_email=session.company_email)
    return CompanyTokenResponse(
        access_token=token,
        expires_in=settings.COMPANY_SESSION_EXPIRE_MINUTES * 60,
        company_email=session.company_email,
    )


@router.post("/cikis", response_model=MessageResponse)
async def logout(
    session: CompanySession = Depends(get_company_session),
    db: AsyncSession = Depends(get_db),
):
    await OtpService(db).revoke(session)
    return MessageResponse(message="Oturum kapatıldı")


@router.get("/basvurular", response_model=List[ApplicationDetail])
async def list_company_applications(
    session: CompanySession = Depends(get_company_session),
    db: AsyncSession = Depends(get_db),
):
    """Applications (with logbooks) addressed to the signed-in company."""
    return await ApplicationService(db).list_for_company(session)


@router.post("/sirketonay", response_model=ApplicationResponse)
async def decide_application(
    body: CompanyDecision,
    background_tasks: BackgroundTasks,
    session: CompanySession = Depends(get_company_session),
    db: AsyncSession = Depends(get_db),
):
    """Approve or reject a pending application."""
    service = ApplicationService(db)
    if body.decision == Decision.APPROVE:
        application = await service.approve(session, body.id)
    else:
        application = await service.reject(session, body.id, body.reason)

    approved = body.decision == Decision.APPROVE
    subject, text = application_decided_email(application.company_name, approved, body.reason)
    background_tasks.add_task(dispatch_email, application.student.email, subject, text)

    logger.info(
        "company_application_decision",
        application_id=str(application.id),
        decision=body.decision.value,
        company_email=session.company_email,
    )
    return application


@router.post("/defteronay", response_model=LogbookResponse)
async def decide_logbook(
    body: CompanyDecision,
    background_tasks: BackgroundTasks,
    session: CompanySession = Depends(get_company_session),
    db: AsyncSession = Depends(get_db),
):
    """Approve an uploaded logbook, or send it back to the student with a reason."""
    approved = body.decision == Decision.APPROVE
    logbook = await LogbookService(db).company_decide(session, body.id, approved, body.reason)

    subject, text = logbook_decided_email(logbook.application.company_name, approved, body.reason)
    background_tasks.add_task(dispatch_email, logbook.application.student.email, subject, text)

    logger.info(
        "company_logbook_decision",
        logbook_id=str(logbook.id),
        decision=body.decision.value,
        company_email=session.company_email,
    )
    return logbook


@router.get("/download/{application_id}/{file_type}")
async def download_file(
    application_id: UUID,
    file_type: FileKind,
    session: CompanySession = Depends(get_company_session),
    db: AsyncSession = Depends(get_db),
    storage: FileStorage = Depends(get_storage),
):
    service = ApplicationService(db, storage)
    application = await service.get_for_company(session, application_id)
    return pdf_response(storage, service.document_for(application, file_type))
