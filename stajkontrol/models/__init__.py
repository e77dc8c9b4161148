"""Database models."""

# Import order follows foreign key dependencies
from stajkontrol.models.user import User
from stajkontrol.models.application import Application, ApplicationStatus, InternshipType
from stajkontrol.models.logbook import Logbook, LogbookStatus
from stajkontrol.models.uploaded_file import APPLICATION_DOCUMENT_KINDS, FileKind, UploadedFile
from stajkontrol.models.otp_session import CompanyOtpSession
from stajkontrol.models.bulk_import import (
    BulkImportJob,
    BulkImportRow,
    BulkImportStatus,
    BulkImportType,
)
from stajkontrol.models.audit_log import AuditLog

__all__ = [
    "User",
    "Application",
    "ApplicationStatus",
    "InternshipType",
    "Logbook",
    "LogbookStatus",
    "UploadedFile",
    "FileKind",
    "APPLICATION_DOCUMENT_KINDS",
    "CompanyOtpSession",
    "BulkImportJob",
    "BulkImportRow",
    "BulkImportStatus",
    "BulkImportType",
    "AuditLog",
]
