"""Audit trail of state transitions."""

from sqlalchemy import JSON, Column, String, Uuid

from stajkontrol.db.base import Base


class AuditLog(Base):
    __tablename__ = "audit_logs"

    actor_user_id = Column(Uuid(as_uuid=True), index=True)
    actor_email = Column(String(255))  # company e-mail for company actions
    actor_role = Column(String(32), nullable=False)
    action = Column(String(64), nullable=False, index=True)
    entity_type = Column(String(32), nullable=False)
    entity_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    previous_status = Column(String(32))
    new_status = Column(String(32))
    details = Column(JSON, default=dict)

    def __repr__(self):
        return f"<AuditLog {self.action} {self.entity_type}:{self.entity_id}>"
