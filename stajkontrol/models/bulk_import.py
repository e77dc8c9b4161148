"""Bulk Excel import job and per-row results."""

from enum import Enum

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import relationship

from stajkontrol.db.base import Base, enum_column


class BulkImportType(str, Enum):
    ADVISOR = "hoca"
    STUDENT = "ogrenci"
    DUAL_MAJOR_STUDENT = "cap-ogrenci"


class BulkImportStatus(str, Enum):
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class BulkImportJob(Base):
    """Asynchronous import of users from a registrar Excel export."""

    __tablename__ = "bulk_import_jobs"

    job_type = enum_column(BulkImportType, nullable=False)
    status = enum_column(BulkImportStatus, nullable=False, default=BulkImportStatus.PROCESSING, index=True)
    filename = Column(String(255), nullable=False)
    file_path = Column(String(500))

    total_rows = Column(Integer, default=0, nullable=False)
    processed_rows = Column(Integer, default=0, nullable=False)
    success_count = Column(Integer, default=0, nullable=False)
    failure_count = Column(Integer, default=0, nullable=False)
    skipped_count = Column(Integer, default=0, nullable=False)

    cancel_requested = Column(Boolean, default=False, nullable=False)
    error_message = Column(Text)
    started_at = Column(DateTime)
    finished_at = Column(DateTime)

    created_by_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"))

    rows = relationship(
        "BulkImportRow",
        back_populates="job",
        order_by="BulkImportRow.row_number",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def is_finished(self) -> bool:
        return self.status != BulkImportStatus.PROCESSING

    def __repr__(self):
        return f"<BulkImportJob {self.job_type} {self.status}>"


class BulkImportRow(Base):
    """Outcome of one spreadsheet row."""

    __tablename__ = "bulk_import_rows"

    job_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("bulk_import_jobs.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    row_number = Column(Integer, nullable=False)  # 1-based, as shown in Excel
    success = Column(Boolean, nullable=False)
    identifier = Column(String(255))
    message = Column(String(500))

    job = relationship("BulkImportJob", back_populates="rows")
