"""
Company one-time password sessions.

A company proves control of its contact e-mail with an 8-digit code and
receives a short-lived company token bound to the verified OTP row.
"""

import hmac
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional, Tuple
from uuid import UUID

from sqlalchemy import and_, delete, exists, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from stajkontrol.config import settings
from stajkontrol.core.cache import CacheManager
from stajkontrol.core.exceptions import (
    InvalidCredential,
    NotFound,
    OtpAlreadyUsed,
    OtpExpired,
    RateLimited,
    Unauthenticated,
)
from stajkontrol.core.security import create_company_token
from stajkontrol.models import (
    Application,
    ApplicationStatus,
    CompanyOtpSession,
    Logbook,
    LogbookStatus,
)
from stajkontrol.utils.helpers import generate_hash, normalize_email, utcnow

logger = logging.getLogger(__name__)

RATE_LIMIT_WINDOW_SECONDS = 3600


@dataclass(frozen=True)
class CompanySession:
    """An authenticated company, passed explicitly to the services."""

    session_id: UUID
    company_email: str
    expires_at: datetime

    def owns(self, application: Application) -> bool:
        return normalize_email(application.company_email) == self.company_email


def generate_code(length: int = settings.OTP_LENGTH) -> str:
    """Numeric code from the OS CSPRNG, zero padded."""
    return f"{secrets.randbelow(10 ** length):0{length}d}"


def hash_code(code: str) -> str:
    return generate_hash(code, settings.SECRET_KEY)


class OtpService:
    """Issues and verifies company OTPs."""

    def __init__(self, db: AsyncSession, cache_manager: Optional[CacheManager] = None):
        self.db = db
        self.cache_manager = cache_manager

    async def has_pending_work(self, company_email: str) -> bool:
        """True if the company has a pending application or an uploaded logbook."""
        pending_application = exists().where(
            Application.company_email == company_email,
            Application.status == ApplicationStatus.PENDING,
        )
        uploaded_logbook = (
            select(Logbook.id)
            .join(Application, Logbook.application_id == Application.id)
            .where(
                Application.company_email == company_email,
                Logbook.status == LogbookStatus.UPLOADED,
            )
            .exists()
        )
        result = await self.db.execute(select(or_(pending_application, uploaded_logbook)))
        return bool(result.scalar())

    def _check_rate_limit(self, company_email: str) -> None:
        if self.cache_manager is None:
            return
        count = self.cache_manager.incr_window(f"otp:rate:{company_email}", RATE_LIMIT_WINDOW_SECONDS)
        if count is not None and count > settings.OTP_RATE_LIMIT_PER_HOUR:
            logger.warning(f"OTP rate limit hit for {company_email}")
            raise RateLimited()

    async def request_otp(self, company_email: str) -> Tuple[CompanyOtpSession, str]:
        """
        Issue a code for ``company_email``.

        Returns:
            The stored session row (its id is the handle) and the plain
            code, which the caller e-mails and must not persist.
        """
        company_email = normalize_email(company_email)
        if not await self.has_pending_work(company_email):
            raise NotFound("No application or logbook awaits review for this e-mail")

        self._check_rate_limit(company_email)

        code = generate_code()
        otp = CompanyOtpSession(
            company_email=company_email,
            code_hash=hash_code(code),
            expires_at=utcnow() + timedelta(minutes=settings.OTP_EXPIRE_MINUTES),
            failed_attempts=0,
        )
        self.db.add(otp)
        await self.db.commit()

        logger.info(f"OTP issued for {company_email} (session {otp.id})")
        return otp, code

    async def verify_otp(self, handle: UUID, code: str) -> Tuple[str, CompanySession]:
        """Consume the code and return a company token plus its session."""
        otp = await self.db.get(CompanyOtpSession, handle)
        if otp is None:
            raise InvalidCredential("Invalid code")
        if otp.consumed_at is not None:
            raise OtpAlreadyUsed()

        now = utcnow()
        if now >= otp.expires_at:
            raise OtpExpired()
        if otp.failed_attempts >= settings.OTP_MAX_ATTEMPTS:
            raise OtpExpired("Too many failed attempts, request a new code")

        if not hmac.compare_digest(hash_code(code.strip()), otp.code_hash):
            await self.db.execute(
                update(CompanyOtpSession)
                .where(CompanyOtpSession.id == otp.id)
                .values(failed_attempts=CompanyOtpSession.failed_attempts + 1)
                .execution_options(synchronize_session=False)
            )
            await self.db.commit()
            logger.info(f"Wrong OTP for session {otp.id}")
            raise InvalidCredential("Invalid code")

        session_expires_at = now + timedelta(minutes=settings.COMPANY_SESSION_EXPIRE_MINUTES)
        result = await self.db.execute(
            update(CompanyOtpSession)
            .where(
                CompanyOtpSession.id == otp.id,
                CompanyOtpSession.consumed_at.is_(None),
                CompanyOtpSession.failed_attempts < settings.OTP_MAX_ATTEMPTS,
            )
            .values(consumed_at=now, session_expires_at=session_expires_at)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            await self.db.rollback()
            raise OtpAlreadyUsed()
        await self.db.commit()

        logger.info(f"OTP verified for {otp.company_email} (session {otp.id})")
        token = create_company_token(otp.company_email, str(otp.id))
        return token, CompanySession(
            session_id=otp.id,
            company_email=otp.company_email,
            expires_at=session_expires_at,
        )

    async def resolve_session(self, session_id: UUID, company_email: str) -> CompanySession:
        """Check that a company token's OTP row is still a live session."""
        otp = await self.db.get(CompanyOtpSession, session_id)
        now = utcnow()
        if (
            otp is None
            or otp.company_email != company_email
            or otp.consumed_at is None
            or otp.revoked_at is not None
            or otp.session_expires_at is None
            or otp.session_expires_at <= now
        ):
            raise Unauthenticated("Company session is not valid")
        return CompanySession(
            session_id=otp.id,
            company_email=otp.company_email,
            expires_at=otp.session_expires_at,
        )

    async def revoke(self, session: CompanySession) -> None:
        await self.db.execute(
            update(CompanyOtpSession)
            .where(CompanyOtpSession.id == session.session_id)
            .values(revoked_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()

    async def purge_expired(self) -> int:
        """Delete codes that can no longer be used or back a live session."""
        now = utcnow()
        result = await self.db.execute(
            delete(CompanyOtpSession)
            .where(
                CompanyOtpSession.expires_at < now,
                or_(
                    CompanyOtpSession.session_expires_at.is_(None),
                    and_(
                        CompanyOtpSession.session_expires_at.is_not(None),
                        CompanyOtpSession.session_expires_at < now,
                    ),
                ),
            )
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        return result.rowcount or 0
