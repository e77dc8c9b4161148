"""
Internship application (başvuru) workflow.

Status changes are checked against the edge tables in ``transitions``
and committed with a version check; a concurrent loser gets a
ConflictError instead of overwriting the winner.
"""

import logging
from datetime import date
from typing import Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from stajkontrol.core.exceptions import ConflictError, Forbidden, NotFound, ValidationError
from stajkontrol.core.security import Role
from stajkontrol.models import (
    APPLICATION_DOCUMENT_KINDS,
    Application,
    ApplicationStatus,
    FileKind,
    InternshipType,
    Logbook,
    LogbookStatus,
    UploadedFile,
    User,
)
from stajkontrol.schemas.application import ApplicationCreate, DateUpdate
from stajkontrol.services import audit_service
from stajkontrol.services.audit_service import Actor
from stajkontrol.services.file_storage import FileStorage
from stajkontrol.services.otp_service import CompanySession
from stajkontrol.services.transitions import check_application_transition
from stajkontrol.utils.helpers import utcnow

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = (ApplicationStatus.PENDING, ApplicationStatus.APPROVED)

# Internship types with a fixed length in working days
FIXED_LENGTH_TYPES = {InternshipType.IMU_404: 70}


async def commit_or_conflict(db: AsyncSession) -> None:
    """Commit, mapping lost version races and constraint hits to ConflictError."""
    try:
        await db.commit()
    except StaleDataError as e:
        await db.rollback()
        raise ConflictError("The record was changed by another request, reload and retry") from e
    except IntegrityError as e:
        await db.rollback()
        raise ConflictError("The change conflicts with existing data") from e


def scope_to_advisor(stmt, advisor_id: UUID):
    """Restrict an Application query to students advised by ``advisor_id``."""
    return stmt.where(
        or_(User.advisor_id == advisor_id, User.dual_major_advisor_id == advisor_id)
    )


class ApplicationService:
    """Application queries and transitions."""

    def __init__(self, db: AsyncSession, storage: Optional[FileStorage] = None):
        self.db = db
        self.storage = storage

    # Queries

    async def get(self, application_id: UUID, refresh: bool = False) -> Application:
        stmt = select(Application).where(Application.id == application_id)
        if refresh:
            stmt = stmt.execution_options(populate_existing=True)
        result = await self.db.execute(stmt)
        application = result.scalar_one_or_none()
        if application is None:
            raise NotFound("Application not found")
        return application

    async def get_for_student(self, student: User, application_id: UUID) -> Application:
        application = await self.get(application_id)
        if application.student_id != student.id:
            raise Forbidden("Application belongs to another student")
        return application

    async def get_visible(self, user: User, application_id: UUID) -> Application:
        """Application readable by ``user``: owner, advisor of the owner, or staff."""
        application = await self.get(application_id)
        if user.role == Role.STUDENT:
            if application.student_id != user.id:
                raise Forbidden("Application belongs to another student")
        elif user.role == Role.ADVISOR:
            if not user.is_advisor_of(application.student):
                raise Forbidden("Student is not your advisee")
        return application

    async def get_for_company(self, session: CompanySession, application_id: UUID) -> Application:
        application = await self.get(application_id)
        if not session.owns(application):
            raise Forbidden("Application belongs to another company")
        return application

    async def list_for_student(self, student: User) -> List[Application]:
        result = await self.db.execute(
            select(Application)
            .where(Application.student_id == student.id)
            .order_by(Application.created_at.desc())
        )
        return list(result.scalars().all())

    async def list_for_company(self, session: CompanySession) -> List[Application]:
        result = await self.db.execute(
            select(Application)
            .where(Application.company_email == session.company_email)
            .order_by(Application.created_at.desc())
        )
        return list(result.scalars().all())

    async def list(
        self,
        offset: int = 0,
        limit: int = 20,
        status: Optional[ApplicationStatus] = None,
        internship_type: Optional[InternshipType] = None,
        search: Optional[str] = None,
        advisor_id: Optional[UUID] = None,
    ) -> Tuple[List[Application], int]:
        """Filtered, paginated staff listing with total count."""
        stmt = select(Application).join(User, Application.student_id == User.id)
        if status:
            stmt = stmt.where(Application.status == status)
        if internship_type:
            stmt = stmt.where(Application.internship_type == internship_type)
        if search:
            pattern = f"%{search.strip()}%"
            stmt = stmt.where(
                or_(
                    Application.company_name.ilike(pattern),
                    User.full_name.ilike(pattern),
                    User.student_number.ilike(pattern),
                )
            )
        if advisor_id:
            stmt = scope_to_advisor(stmt, advisor_id)

        count_result = await self.db.execute(select(func.count()).select_from(stmt.subquery()))
        total = count_result.scalar() or 0

        result = await self.db.execute(
            stmt.order_by(Application.created_at.desc()).offset(offset).limit(limit)
        )
        return list(result.scalars().all()), total

    async def stats_for_student(self, student: User) -> Dict[str, int]:
        counts = {status.value: 0 for status in ApplicationStatus}
        result = await self.db.execute(
            select(Application.status, func.count(Application.id))
            .where(Application.student_id == student.id)
            .group_by(Application.status)
        )
        for status, count in result.all():
            counts[ApplicationStatus(status).value] = count

        logbooks = {status.value: 0 for status in LogbookStatus}
        result = await self.db.execute(
            select(Logbook.status, func.count(Logbook.id))
            .join(Application, Logbook.application_id == Application.id)
            .where(Application.student_id == student.id)
            .group_by(Logbook.status)
        )
        for status, count in result.all():
            logbooks[LogbookStatus(status).value] = count

        return {
            "total": sum(counts.values()),
            **counts,
            "logbooks_waiting": logbooks[LogbookStatus.WAITING.value],
            "logbooks_uploaded": logbooks[LogbookStatus.UPLOADED.value],
            "logbooks_approved": logbooks[LogbookStatus.APPROVED.value],
        }

    # Validation

    async def _check_overlap(
        self, student_id: UUID, start: date, end: date, exclude_id: Optional[UUID] = None
    ) -> None:
        """Half-open ranges [start, end) may not overlap an active application."""
        stmt = select(Application.id).where(
            Application.student_id == student_id,
            Application.status.in_(ACTIVE_STATUSES),
            Application.start_date < end,
            Application.end_date > start,
        )
        if exclude_id is not None:
            stmt = stmt.where(Application.id != exclude_id)
        result = await self.db.execute(stmt.limit(1))
        clash = result.scalar_one_or_none()
        if clash is not None:
            raise ConflictError(
                "Another pending or approved application overlaps this period",
                errors={"overlaps": str(clash)},
            )

    @staticmethod
    def _check_length(internship_type: InternshipType, total_days: int) -> None:
        required = FIXED_LENGTH_TYPES.get(InternshipType(internship_type))
        if required is not None and total_days != required:
            raise ValidationError(
                f"{InternshipType(internship_type).value} internships must be exactly {required} days",
                errors={"total_days": f"must be {required}"},
            )

    # Transitions

    async def create(self, student: User, data: ApplicationCreate) -> Application:
        if student.role != Role.STUDENT:
            raise Forbidden("Only students can create applications")

        self._check_length(data.internship_type, data.total_days)
        await self._check_overlap(student.id, data.start_date, data.end_date)

        application = Application(
            student_id=student.id,
            status=ApplicationStatus.PENDING,
            **data.model_dump(),
        )
        self.db.add(application)
        await self.db.flush()
        audit_service.record(
            self.db,
            Actor.from_user(student),
            "application.create",
            "application",
            application.id,
            new_status=ApplicationStatus.PENDING,
        )
        await commit_or_conflict(self.db)

        logger.info(f"Application {application.id} created by student {student.id}")
        return await self.get(application.id, refresh=True)

    async def _decide(
        self,
        application: Application,
        target: ApplicationStatus,
        actor: Actor,
        reason: Optional[str] = None,
    ) -> Application:
        check_application_transition(application, target, actor.role)
        previous = application.status

        application.status = target
        if target in (ApplicationStatus.APPROVED, ApplicationStatus.REJECTED):
            application.decided_at = utcnow()
            application.decided_by = actor.email
        if target == ApplicationStatus.REJECTED:
            application.rejection_reason = reason
        if target == ApplicationStatus.CANCELLED:
            application.cancellation_reason = reason
        if target == ApplicationStatus.APPROVED and application.logbook is None:
            application.logbook = Logbook(status=LogbookStatus.WAITING)

        audit_service.record(
            self.db,
            actor,
            f"application.{target.value}",
            "application",
            application.id,
            previous_status=previous,
            new_status=target,
            details={"reason": reason} if reason else None,
        )
        await commit_or_conflict(self.db)

        logger.info(f"Application {application.id}: {previous} -> {target.value} by {actor.role}")
        return await self.get(application.id, refresh=True)

    async def approve(self, session: CompanySession, application_id: UUID) -> Application:
        application = await self.get_for_company(session, application_id)
        return await self._decide(
            application, ApplicationStatus.APPROVED, Actor.company(session.company_email)
        )

    async def reject(self, session: CompanySession, application_id: UUID, reason: str) -> Application:
        if not (reason or "").strip():
            raise ValidationError("A rejection reason is required", errors={"reason": "required"})
        application = await self.get_for_company(session, application_id)
        return await self._decide(
            application,
            ApplicationStatus.REJECTED,
            Actor.company(session.company_email),
            reason.strip(),
        )

    async def cancel(self, student: User, application_id: UUID, reason: Optional[str] = None) -> Application:
        application = await self.get_for_student(student, application_id)
        return await self._decide(
            application, ApplicationStatus.CANCELLED, Actor.from_user(student), reason
        )

    async def admin_set_status(
        self, admin: User, application_id: UUID, target: ApplicationStatus, reason: Optional[str] = None
    ) -> Application:
        """Admin decision on an application; follows the same edges as everyone else."""
        if target == ApplicationStatus.REJECTED and not (reason or "").strip():
            raise ValidationError("A rejection reason is required", errors={"reason": "required"})
        application = await self.get(application_id)
        return await self._decide(application, target, Actor.from_user(admin), reason)

    async def update_dates(self, student: User, application_id: UUID, data: DateUpdate) -> Application:
        application = await self.get_for_student(student, application_id)
        if application.status != ApplicationStatus.PENDING:
            raise ConflictError.invalid_transition(
                "Application", application.status, ApplicationStatus.PENDING
            )

        total_days = data.total_days or application.total_days
        self._check_length(application.internship_type, total_days)
        await self._check_overlap(student.id, data.start_date, data.end_date, exclude_id=application.id)

        previous = {"start_date": str(application.start_date), "end_date": str(application.end_date)}
        application.start_date = data.start_date
        application.end_date = data.end_date
        application.total_days = total_days

        audit_service.record(
            self.db,
            Actor.from_user(student),
            "application.update_dates",
            "application",
            application.id,
            previous_status=application.status,
            new_status=application.status,
            details={
                "previous": previous,
                "start_date": str(data.start_date),
                "end_date": str(data.end_date),
            },
        )
        await commit_or_conflict(self.db)
        return await self.get(application.id, refresh=True)

    # Documents

    def document_for(self, application: Application, kind: FileKind) -> UploadedFile:
        """The stored file of ``kind`` for an application (``defter`` is the logbook's)."""
        kind = FileKind(kind)
        if kind == FileKind.DEFTER:
            stored = application.logbook.file if application.logbook else None
        else:
            stored = application.document(kind)
        if stored is None:
            raise NotFound(f"No {kind.value} file for this application")
        return stored

    async def upload_document(
        self,
        student: User,
        application_id: UUID,
        kind: FileKind,
        data: bytes,
        content_type: Optional[str],
        filename: Optional[str],
    ) -> Application:
        """Attach or replace a supporting document while the application is pending."""
        kind = FileKind(kind)
        if kind not in APPLICATION_DOCUMENT_KINDS:
            raise ValidationError(
                "Unsupported document type",
                errors={"kind": f"must be one of {[k.value for k in APPLICATION_DOCUMENT_KINDS]}"},
            )
        application = await self.get_for_student(student, application_id)
        if application.status != ApplicationStatus.PENDING:
            raise ConflictError.invalid_transition(
                "Application", application.status, ApplicationStatus.PENDING
            )

        stored = await self.storage.store(kind, application.id, data, content_type, filename)
        existing = application.document(kind)
        old_path = existing.storage_path if existing else None

        if existing:
            existing.storage_path = stored.storage_path
            existing.original_filename = stored.original_filename
            existing.size = stored.size
            existing.content_type = stored.content_type
            existing.uploaded_at = utcnow()
        else:
            application.documents.append(
                UploadedFile(
                    kind=kind,
                    storage_path=stored.storage_path,
                    original_filename=stored.original_filename,
                    size=stored.size,
                    content_type=stored.content_type,
                    uploaded_at=utcnow(),
                )
            )

        audit_service.record(
            self.db,
            Actor.from_user(student),
            "application.upload_document",
            "application",
            application.id,
            details={"kind": kind.value, "size": stored.size, "replaced": old_path is not None},
        )
        try:
            await commit_or_conflict(self.db)
        except Exception:
            await self.storage.delete(stored.storage_path)
            raise

        if old_path:
            await self.storage.delete(old_path)
        return await self.get(application.id, refresh=True)

    async def delete(self, admin: User, application_id: UUID) -> None:
        """Delete an application with its logbook, files and bytes."""
        application = await self.get(application_id)
        paths = [doc.storage_path for doc in application.documents]
        if application.logbook and application.logbook.file:
            paths.append(application.logbook.file.storage_path)

        staged = [(await self.storage.stage_delete(path), path) for path in paths]
        audit_service.record(
            self.db,
            Actor.from_user(admin),
            "application.delete",
            "application",
            application.id,
            previous_status=application.status,
            details={"files": len(paths)},
        )
        await self.db.delete(application)
        try:
            await commit_or_conflict(self.db)
        except Exception:
            for staged_path, path in staged:
                await self.storage.restore(staged_path, path)
            raise

        for staged_path, _ in staged:
            await self.storage.discard(staged_path)
        logger.info(f"Application {application_id} deleted by admin {admin.id}")
