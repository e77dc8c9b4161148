"""Uploaded file metadata."""

from enum import Enum

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    String,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import relationship

from stajkontrol.db.base import Base, enum_column
from stajkontrol.utils.helpers import utcnow


class FileKind(str, Enum):
    DEFTER = "defter"
    TRANSKRIPT = "transkript"
    HIZMET_DOKUMU = "hizmet_dokumu"
    SIGORTA = "sigorta"


# Kinds attached to an application rather than its logbook
APPLICATION_DOCUMENT_KINDS = (FileKind.TRANSKRIPT, FileKind.HIZMET_DOKUMU, FileKind.SIGORTA)


class UploadedFile(Base):
    """A stored PDF owned by exactly one logbook or one application."""

    __tablename__ = "uploaded_files"
    __table_args__ = (
        UniqueConstraint("application_id", "kind", name="uq_uploaded_file_application_kind"),
        CheckConstraint(
            "(application_id IS NULL) <> (logbook_id IS NULL)", name="ck_uploaded_file_single_owner"
        ),
    )

    kind = enum_column(FileKind, nullable=False)
    storage_path = Column(String(500), nullable=False, unique=True)  # relative to UPLOAD_DIR
    original_filename = Column(String(255), nullable=False)  # display only
    size = Column(BigInteger, nullable=False)
    content_type = Column(String(100), nullable=False)
    uploaded_at = Column(DateTime, default=utcnow, nullable=False)

    application_id = Column(
        Uuid(as_uuid=True), ForeignKey("applications.id", ondelete="CASCADE"), index=True
    )
    logbook_id = Column(
        Uuid(as_uuid=True), ForeignKey("logbooks.id", ondelete="CASCADE"), unique=True, index=True
    )

    application = relationship("Application", back_populates="documents")
    logbook = relationship("Logbook", back_populates="file")

    def __repr__(self):
        return f"<UploadedFile {self.kind} {self.storage_path}>"
