"""Audit trail for state transitions."""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from stajkontrol.models import AuditLog, User

COMPANY_ROLE = "company"
SYSTEM_ROLE = "system"


@dataclass(frozen=True)
class Actor:
    """Who performed a transition."""

    role: str
    user_id: Optional[UUID] = None
    email: Optional[str] = None

    @classmethod
    def from_user(cls, user: User) -> "Actor":
        return cls(role=getattr(user.role, "value", user.role), user_id=user.id, email=user.email)

    @classmethod
    def company(cls, company_email: str) -> "Actor":
        return cls(role=COMPANY_ROLE, email=company_email)


def _value(status: Any) -> Optional[str]:
    if status is None:
        return None
    return getattr(status, "value", str(status))


def record(
    db: AsyncSession,
    actor: Actor,
    action: str,
    entity_type: str,
    entity_id: UUID,
    previous_status: Any = None,
    new_status: Any = None,
    details: Optional[Dict[str, Any]] = None,
) -> AuditLog:
    """Add an audit row to the caller's transaction (committed with it)."""
    entry = AuditLog(
        actor_user_id=actor.user_id,
        actor_email=actor.email,
        actor_role=actor.role,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        previous_status=_value(previous_status),
        new_status=_value(new_status),
        details=details or {},
    )
    db.add(entry)
    return entry


async def list_entries(
    db: AsyncSession,
    offset: int = 0,
    limit: int = 20,
    entity_type: Optional[str] = None,
    entity_id: Optional[UUID] = None,
    action: Optional[str] = None,
) -> Tuple[List[AuditLog], int]:
    """Newest-first audit rows with total count."""
    stmt = select(AuditLog)
    if entity_type:
        stmt = stmt.where(AuditLog.entity_type == entity_type)
    if entity_id:
        stmt = stmt.where(AuditLog.entity_id == entity_id)
    if action:
        stmt = stmt.where(AuditLog.action == action)

    total = (await db.execute(select(func.count()).select_from(stmt.subquery()))).scalar() or 0
    result = await db.execute(stmt.order_by(AuditLog.created_at.desc()).offset(offset).limit(limit))
    return list(result.scalars().all()), total
