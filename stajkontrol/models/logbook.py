"""Logbook (defter) model."""

from enum import Enum

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import relationship

from stajkontrol.db.base import Base, enum_column


class LogbookStatus(str, Enum):
    WAITING = "waiting"
    UPLOADED = "uploaded"
    APPROVED = "approved"


class Logbook(Base):
    """Internship logbook, exactly one per approved application."""

    __tablename__ = "logbooks"

    application_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("applications.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    )
    status = enum_column(LogbookStatus, nullable=False, default=LogbookStatus.WAITING, index=True)
    rejection_reason = Column(Text)
    submitted_at = Column(DateTime)
    approved_at = Column(DateTime)
    approved_by = Column(String(255))

    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    application = relationship("Application", back_populates="logbook", lazy="selectin")
    file = relationship(
        "UploadedFile",
        back_populates="logbook",
        uselist=False,
        lazy="selectin",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def has_file(self) -> bool:
        return self.file is not None

    def __repr__(self):
        return f"<Logbook {self.id} {self.status}>"
