"""User model."""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Uuid
from sqlalchemy.orm import relationship

from stajkontrol.core.security import Role
from stajkontrol.db.base import Base, enum_column


class User(Base):
    """User model for authentication and authorization."""

    __tablename__ = "users"

    username = Column(String(100), unique=True, nullable=False, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    role = enum_column(Role, nullable=False, default=Role.STUDENT, index=True)
    full_name = Column(String(255), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    must_change_password = Column(Boolean, default=False, nullable=False)
    last_login_at = Column(DateTime)

    # Registrar identity (students and advisors)
    national_id = Column(String(11), unique=True, index=True)
    student_number = Column(String(20), unique=True, index=True)
    faculty = Column(String(255))
    department = Column(String(255))
    class_year = Column(Integer)
    advisor_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), index=True)

    # Dual major (ÇAP)
    is_dual_major = Column(Boolean, default=False, nullable=False)
    dual_major_department = Column(String(255))
    dual_major_advisor_id = Column(
        Uuid(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), index=True
    )

    advisor = relationship("User", remote_side="User.id", foreign_keys=[advisor_id])
    dual_major_advisor = relationship(
        "User", remote_side="User.id", foreign_keys=[dual_major_advisor_id]
    )
    applications = relationship(
        "Application", back_populates="student", cascade="all, delete-orphan", passive_deletes=True
    )

    def is_advisor_of(self, student: "User") -> bool:
        return student.advisor_id == self.id or student.dual_major_advisor_id == self.id

    def __repr__(self):
        return f"<User {self.username} ({self.role})>"
