"""Internship application (başvuru) model."""

from enum import Enum

from sqlalchemy import CheckConstraint, Column, Date, DateTime, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import relationship

from stajkontrol.db.base import Base, enum_column


class ApplicationStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class InternshipType(str, Enum):
    IMU_402 = "IMU_402"
    IMU_404 = "IMU_404"
    MESLEKI_EGITIM_UYGULAMALI_DERS = "MESLEKI_EGITIM_UYGULAMALI_DERS"
    ISTEGE_BAGLI_STAJ = "ISTEGE_BAGLI_STAJ"
    ZORUNLU_STAJ = "ZORUNLU_STAJ"


class Application(Base):
    """Internship application submitted by a student for one company."""

    __tablename__ = "applications"
    __table_args__ = (
        CheckConstraint("start_date < end_date", name="ck_application_date_range"),
        # a reason is stored exactly when the application is rejected
        CheckConstraint(
            "(status = 'rejected') = (rejection_reason IS NOT NULL)",
            name="ck_application_rejection_reason",
        ),
    )

    student_id = Column(
        Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )

    # Company
    company_name = Column(String(255), nullable=False)
    company_address = Column(String(500), nullable=False)
    company_phone = Column(String(20), nullable=False)
    company_email = Column(String(255), nullable=False, index=True)  # normalised, lower case
    authorized_person_name = Column(String(255), nullable=False)
    authorized_person_title = Column(String(255))

    internship_type = enum_column(InternshipType, nullable=False)
    start_date = Column(Date, nullable=False)  # inclusive
    end_date = Column(Date, nullable=False)  # exclusive
    total_days = Column(Integer, nullable=False)

    status = enum_column(ApplicationStatus, nullable=False, default=ApplicationStatus.PENDING, index=True)
    rejection_reason = Column(Text)
    cancellation_reason = Column(Text)
    decided_at = Column(DateTime)
    decided_by = Column(String(255))

    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    student = relationship("User", back_populates="applications", lazy="selectin")
    logbook = relationship(
        "Logbook",
        back_populates="application",
        uselist=False,
        lazy="selectin",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    documents = relationship(
        "UploadedFile",
        back_populates="application",
        lazy="selectin",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def document(self, kind):
        for doc in self.documents:
            if doc.kind == kind:
                return doc
        return None

    def __repr__(self):
        return f"<Application {self.id} {self.status}>"
