"""Logbook (defter) workflow and PDF lifecycle."""

import logging
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from stajkontrol.core.exceptions import ConflictError, Forbidden, NotFound, ValidationError
from stajkontrol.core.security import Role
from stajkontrol.models import (
    Application,
    ApplicationStatus,
    FileKind,
    Logbook,
    LogbookStatus,
    UploadedFile,
    User,
)
from stajkontrol.services import audit_service
from stajkontrol.services.application_service import commit_or_conflict, scope_to_advisor
from stajkontrol.services.audit_service import Actor
from stajkontrol.services.file_storage import FileStorage
from stajkontrol.services.otp_service import CompanySession
from stajkontrol.services.transitions import (
    STUDENT_LOGBOOK_TRANSITIONS,
    check_logbook_file_rule,
    check_logbook_transition,
)
from stajkontrol.utils.helpers import utcnow

logger = logging.getLogger(__name__)


class LogbookService:
    """Logbook queries and transitions."""

    def __init__(self, db: AsyncSession, storage: Optional[FileStorage] = None):
        self.db = db
        self.storage = storage

    # Queries

    async def get(self, logbook_id: UUID, refresh: bool = False) -> Logbook:
        stmt = select(Logbook).where(Logbook.id == logbook_id)
        if refresh:
            stmt = stmt.execution_options(populate_existing=True)
        result = await self.db.execute(stmt)
        logbook = result.scalar_one_or_none()
        if logbook is None:
            raise NotFound("Logbook not found")
        return logbook

    async def get_for_student(self, student: User, logbook_id: UUID) -> Logbook:
        logbook = await self.get(logbook_id)
        if logbook.application.student_id != student.id:
            raise Forbidden("Logbook belongs to another student")
        return logbook

    async def get_visible(self, user: User, logbook_id: UUID) -> Logbook:
        logbook = await self.get(logbook_id)
        application = logbook.application
        if user.role == Role.STUDENT and application.student_id != user.id:
            raise Forbidden("Logbook belongs to another student")
        if user.role == Role.ADVISOR and not user.is_advisor_of(application.student):
            raise Forbidden("Student is not your advisee")
        return logbook

    async def list_for_student(self, student: User) -> List[Logbook]:
        result = await self.db.execute(
            select(Logbook)
            .join(Application, Logbook.application_id == Application.id)
            .where(Application.student_id == student.id)
            .order_by(Application.start_date.desc())
        )
        return list(result.scalars().all())

    async def list(
        self,
        offset: int = 0,
        limit: int = 20,
        status: Optional[LogbookStatus] = None,
        search: Optional[str] = None,
        advisor_id: Optional[UUID] = None,
    ) -> Tuple[List[Logbook], int]:
        stmt = (
            select(Logbook)
            .join(Application, Logbook.application_id == Application.id)
            .join(User, Application.student_id == User.id)
        )
        if status:
            stmt = stmt.where(Logbook.status == status)
        if search:
            pattern = f"%{search.strip()}%"
            stmt = stmt.where(
                or_(Application.company_name.ilike(pattern), User.full_name.ilike(pattern))
            )
        if advisor_id:
            stmt = scope_to_advisor(stmt, advisor_id)

        count_result = await self.db.execute(select(func.count()).select_from(stmt.subquery()))
        total = count_result.scalar() or 0
        result = await self.db.execute(
            stmt.order_by(Logbook.created_at.desc()).offset(offset).limit(limit)
        )
        return list(result.scalars().all()), total

    # File lifecycle

    async def upload_pdf(
        self,
        student: User,
        application_id: UUID,
        data: bytes,
        content_type: Optional[str],
        filename: Optional[str],
    ) -> Logbook:
        """
        Store a logbook PDF and move the logbook to Uploaded.

        The new bytes are written and committed before the previous file
        is removed, so the logbook never points at a missing file.
        """
        result = await self.db.execute(select(Application).where(Application.id == application_id))
        application = result.scalar_one_or_none()
        if application is None:
            raise NotFound("Application not found")
        if application.student_id != student.id:
            raise Forbidden("Application belongs to another student")
        if application.status != ApplicationStatus.APPROVED:
            raise ConflictError.invalid_transition(
                "Application", application.status, ApplicationStatus.APPROVED
            )

        logbook = application.logbook
        if logbook is None:
            raise NotFound("Logbook not found")
        check_logbook_transition(logbook, LogbookStatus.UPLOADED, require_file=False)

        stored = await self.storage.store(FileKind.DEFTER, logbook.id, data, content_type, filename)
        previous = logbook.status
        old_path = logbook.file.storage_path if logbook.file else None

        if logbook.file:
            logbook.file.storage_path = stored.storage_path
            logbook.file.original_filename = stored.original_filename
            logbook.file.size = stored.size
            logbook.file.content_type = stored.content_type
            logbook.file.uploaded_at = utcnow()
        else:
            logbook.file = UploadedFile(
                kind=FileKind.DEFTER,
                storage_path=stored.storage_path,
                original_filename=stored.original_filename,
                size=stored.size,
                content_type=stored.content_type,
                uploaded_at=utcnow(),
            )
        logbook.status = LogbookStatus.UPLOADED
        logbook.submitted_at = utcnow()
        logbook.rejection_reason = None

        audit_service.record(
            self.db,
            Actor.from_user(student),
            "logbook.upload",
            "logbook",
            logbook.id,
            previous_status=previous,
            new_status=LogbookStatus.UPLOADED,
            details={"size": stored.size, "replaced": old_path is not None},
        )
        try:
            await commit_or_conflict(self.db)
        except Exception:
            await self.storage.delete(stored.storage_path)
            raise

        if old_path:
            await self.storage.delete(old_path)
        logger.info(f"Logbook {logbook.id} uploaded ({stored.size} bytes)")
        return await self.get(logbook.id, refresh=True)

    async def delete_pdf(self, student: User, logbook_id: UUID) -> Logbook:
        """Remove the logbook PDF; the logbook goes back to Waiting."""
        logbook = await self.get_for_student(student, logbook_id)
        if logbook.status == LogbookStatus.APPROVED:
            raise ConflictError.invalid_transition(
                "Logbook", logbook.status, [LogbookStatus.WAITING, LogbookStatus.UPLOADED]
            )
        if logbook.file is None:
            raise NotFound("Logbook has no file")

        storage_path = logbook.file.storage_path
        previous = logbook.status
        staged = await self.storage.stage_delete(storage_path)

        logbook.file = None
        logbook.status = LogbookStatus.WAITING
        logbook.submitted_at = None
        audit_service.record(
            self.db,
            Actor.from_user(student),
            "logbook.delete_file",
            "logbook",
            logbook.id,
            previous_status=previous,
            new_status=LogbookStatus.WAITING,
        )
        try:
            await commit_or_conflict(self.db)
        except Exception:
            await self.storage.restore(staged, storage_path)
            raise

        await self.storage.discard(staged)
        logger.info(f"Logbook {logbook.id} file deleted")
        return await self.get(logbook.id, refresh=True)

    # Transitions

    async def _set_status(
        self,
        logbook: Logbook,
        target: LogbookStatus,
        actor: Actor,
        action: str,
        reason: Optional[str] = None,
    ) -> Logbook:
        previous = logbook.status
        logbook.status = target
        if target == LogbookStatus.APPROVED:
            logbook.approved_at = utcnow()
            logbook.approved_by = actor.email
            logbook.rejection_reason = None
        else:
            logbook.approved_at = None
            logbook.approved_by = None
        if action == "logbook.reject":
            logbook.rejection_reason = reason

        audit_service.record(
            self.db,
            actor,
            action,
            "logbook",
            logbook.id,
            previous_status=previous,
            new_status=target,
            details={"reason": reason} if reason else None,
        )
        await commit_or_conflict(self.db)
        logger.info(f"Logbook {logbook.id}: {previous} -> {target.value} ({action})")
        return await self.get(logbook.id, refresh=True)

    async def company_decide(
        self,
        session: CompanySession,
        logbook_id: UUID,
        approve: bool,
        reason: Optional[str] = None,
    ) -> Logbook:
        """Company approval (Uploaded -> Approved) or rejection (Uploaded -> Waiting, file kept)."""
        logbook = await self.get(logbook_id)
        if not session.owns(logbook.application):
            raise Forbidden("Logbook belongs to another company")
        if logbook.application.status != ApplicationStatus.APPROVED:
            raise ConflictError.invalid_transition(
                "Application", logbook.application.status, ApplicationStatus.APPROVED
            )

        actor = Actor.company(session.company_email)
        if approve:
            check_logbook_transition(logbook, LogbookStatus.APPROVED)
            return await self._set_status(logbook, LogbookStatus.APPROVED, actor, "logbook.approve")

        if not (reason or "").strip():
            raise ValidationError("A rejection reason is required", errors={"reason": "required"})
        # Rejection returns the logbook to Waiting, but only from Uploaded
        if logbook.status != LogbookStatus.UPLOADED:
            raise ConflictError.invalid_transition("Logbook", logbook.status, LogbookStatus.UPLOADED)
        return await self._set_status(
            logbook, LogbookStatus.WAITING, actor, "logbook.reject", reason.strip()
        )

    async def update_status_by_student(self, student: User, logbook_id: UUID, target: LogbookStatus) -> Logbook:
        """Withdraw (Uploaded -> Waiting) or resubmit (Waiting -> Uploaded) a logbook."""
        logbook = await self.get_for_student(student, logbook_id)
        if target == LogbookStatus.APPROVED:
            raise Forbidden("Students cannot approve logbooks")
        if logbook.application.status != ApplicationStatus.APPROVED:
            raise ConflictError.invalid_transition(
                "Application", logbook.application.status, ApplicationStatus.APPROVED
            )
        if (LogbookStatus(logbook.status), target) not in STUDENT_LOGBOOK_TRANSITIONS:
            raise ConflictError.invalid_transition(
                "Logbook",
                logbook.status,
                LogbookStatus.UPLOADED if target == LogbookStatus.WAITING else LogbookStatus.WAITING,
            )
        check_logbook_file_rule(logbook, target)
        return await self._set_status(logbook, target, Actor.from_user(student), "logbook.student_update")

    async def admin_set_status(
        self, admin: User, logbook_id: UUID, target: LogbookStatus, reason: Optional[str] = None
    ) -> Logbook:
        """Admin override: any status, but Approved still needs a file. Never deletes the file."""
        logbook = await self.get(logbook_id)
        check_logbook_file_rule(logbook, target)
        return await self._set_status(
            logbook, target, Actor.from_user(admin), "logbook.admin_override", reason
        )
