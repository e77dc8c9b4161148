"""User accounts: authentication and admin management."""

import logging
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from stajkontrol.core.exceptions import ConflictError, InvalidCredential, NotFound, ValidationError
from stajkontrol.core.security import Role, hash_password, verify_password
from stajkontrol.models import Application, Logbook, UploadedFile, User
from stajkontrol.schemas.user import UserCreate, UserUpdate
from stajkontrol.services.application_service import commit_or_conflict
from stajkontrol.services.file_storage import FileStorage
from stajkontrol.utils.helpers import normalize_email, utcnow
from stajkontrol.utils.validators import validate_password_strength

logger = logging.getLogger(__name__)


class UserService:
    def __init__(self, db: AsyncSession, storage: Optional[FileStorage] = None):
        self.db = db
        self.storage = storage

    async def get(self, user_id: UUID) -> User:
        user = await self.db.get(User, user_id)
        if user is None:
            raise NotFound("User not found")
        return user

    async def authenticate(self, login: str, password: str) -> User:
        """Match username or e-mail plus password; inactive users are refused."""
        login = login.strip()
        result = await self.db.execute(
            select(User).where(or_(User.username == login, User.email == normalize_email(login)))
        )
        user = result.scalar_one_or_none()
        if user is None or not verify_password(password, user.password_hash):
            raise InvalidCredential("Incorrect username or password")
        if not user.is_active:
            raise InvalidCredential("Account is disabled")

        user.last_login_at = utcnow()
        await self.db.commit()
        return user

    async def change_password(self, user: User, current_password: str, new_password: str) -> None:
        if not verify_password(current_password, user.password_hash):
            raise InvalidCredential("Current password is incorrect")
        if current_password == new_password:
            raise ValidationError(
                "New password must differ from the current one", errors={"new_password": "unchanged"}
            )
        user.password_hash = hash_password(new_password)
        user.must_change_password = False
        await self.db.commit()
        logger.info(f"User {user.id} changed password")

    async def list(
        self,
        offset: int = 0,
        limit: int = 20,
        role: Optional[Role] = None,
        search: Optional[str] = None,
        advisor_id: Optional[UUID] = None,
    ) -> Tuple[List[User], int]:
        stmt = select(User)
        if role:
            stmt = stmt.where(User.role == role)
        if advisor_id:
            stmt = stmt.where(
                or_(User.advisor_id == advisor_id, User.dual_major_advisor_id == advisor_id)
            )
        if search:
            pattern = f"%{search.strip()}%"
            stmt = stmt.where(
                or_(
                    User.full_name.ilike(pattern),
                    User.username.ilike(pattern),
                    User.email.ilike(pattern),
                    User.student_number.ilike(pattern),
                )
            )

        total = (await self.db.execute(select(func.count()).select_from(stmt.subquery()))).scalar() or 0
        result = await self.db.execute(stmt.order_by(User.full_name).offset(offset).limit(limit))
        return list(result.scalars().all()), total

    async def _check_advisor(self, advisor_id: Optional[UUID], field: str) -> None:
        if advisor_id is None:
            return
        advisor = await self.db.get(User, advisor_id)
        if advisor is None or advisor.role != Role.ADVISOR:
            raise ValidationError("Advisor not found", errors={field: "must reference an advisor"})

    async def _check_unique(self, user_id: Optional[UUID] = None, **fields) -> None:
        for name, value in fields.items():
            if not value:
                continue
            stmt = select(User.id).where(getattr(User, name) == value)
            if user_id is not None:
                stmt = stmt.where(User.id != user_id)
            if (await self.db.execute(stmt)).scalar_one_or_none() is not None:
                raise ConflictError(f"{name} already in use", errors={name: "duplicate"})

    async def create(self, data: UserCreate) -> User:
        ok, errors = validate_password_strength(data.password)
        if not ok:
            raise ValidationError("Weak password", errors={"password": errors})

        email = normalize_email(data.email)
        await self._check_unique(
            username=data.username,
            email=email,
            national_id=data.national_id,
            student_number=data.student_number,
        )
        await self._check_advisor(data.advisor_id, "advisor_id")
        await self._check_advisor(data.dual_major_advisor_id, "dual_major_advisor_id")

        values = data.model_dump(exclude={"password", "email"})
        user = User(**values, email=email, password_hash=hash_password(data.password))
        self.db.add(user)
        await commit_or_conflict(self.db)
        logger.info(f"User {user.username} created with role {data.role.value}")
        return user

    async def update(self, user_id: UUID, data: UserUpdate) -> User:
        user = await self.get(user_id)
        changes = data.model_dump(exclude_unset=True)

        if "email" in changes:
            changes["email"] = normalize_email(changes["email"])
        await self._check_unique(
            user_id=user.id,
            email=changes.get("email"),
            student_number=changes.get("student_number"),
        )
        await self._check_advisor(changes.get("advisor_id"), "advisor_id")
        await self._check_advisor(changes.get("dual_major_advisor_id"), "dual_major_advisor_id")

        password = changes.pop("password", None)
        if password:
            ok, errors = validate_password_strength(password)
            if not ok:
                raise ValidationError("Weak password", errors={"password": errors})
            user.password_hash = hash_password(password)

        for field, value in changes.items():
            setattr(user, field, value)
        await commit_or_conflict(self.db)
        return user

    async def delete(self, user_id: UUID) -> None:
        """Delete a user; a student's applications and stored files go with them."""
        user = await self.get(user_id)

        result = await self.db.execute(
            select(UploadedFile.storage_path)
            .outerjoin(Logbook, UploadedFile.logbook_id == Logbook.id)
            .join(
                Application,
                or_(
                    UploadedFile.application_id == Application.id,
                    Logbook.application_id == Application.id,
                ),
            )
            .where(Application.student_id == user.id)
        )
        paths = list(result.scalars().all())

        staged = [(await self.storage.stage_delete(path), path) for path in paths] if self.storage else []
        await self.db.delete(user)
        try:
            await commit_or_conflict(self.db)
        except Exception:
            for staged_path, path in staged:
                await self.storage.restore(staged_path, path)
            raise

        for staged_path, _ in staged:
            await self.storage.discard(staged_path)
        logger.info(f"User {user_id} deleted ({len(paths)} files removed)")
