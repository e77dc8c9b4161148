"""
Local file storage for uploaded PDFs.

Paths are derived only from ``(kind, owner_id, token)``; the uploaded
filename is kept as display metadata and never touches the filesystem.
Writes go to a temp file in the target directory and are fsynced and
renamed into place, so a stored path always points at complete bytes.
"""

import asyncio
import logging
import os
import secrets
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional
from uuid import UUID

from fastapi import UploadFile

from stajkontrol.core.exceptions import NotFound, StorageError, ValidationError
from stajkontrol.models import FileKind
from stajkontrol.utils.helpers import sanitize_filename

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024
TRASH_SUFFIX = ".deleting"


def build_storage_path(kind: FileKind, owner_id: UUID, token: str) -> str:
    """Canonical relative path for a stored file."""
    return f"{FileKind(kind).value}/{owner_id}/{token}.pdf"


@dataclass
class StoredFile:
    storage_path: str
    original_filename: str
    size: int
    content_type: str


class FileStorage:
    """Filesystem-backed store rooted at ``UPLOAD_DIR``."""

    def __init__(self, root: str, max_size: int, allowed_types: Iterable[str]):
        self.root = Path(root).resolve()
        self.max_size = max_size
        self.allowed_types = set(allowed_types)
        self.root.mkdir(parents=True, exist_ok=True)

    # Validation

    def validate(self, content_type: Optional[str], size: int) -> None:
        """Raise ValidationError unless the file is an allowed type within the size cap."""
        declared = content_type or ""
        if declared not in self.allowed_types:
            raise ValidationError(
                "Only PDF files are accepted",
                errors={"file": f"content type '{declared or 'unknown'}' is not allowed"},
            )
        if size <= 0:
            raise ValidationError("File is empty", errors={"file": "empty file"})
        if size > self.max_size:
            raise ValidationError(
                "File is too large",
                errors={"file": f"size {size} exceeds limit of {self.max_size} bytes"},
            )

    async def read_upload(self, upload: UploadFile) -> bytes:
        """Read an upload in chunks, stopping as soon as it exceeds the cap."""
        # Reject on declared type before reading any bytes
        self.validate(upload.content_type, 1)

        chunks = []
        total = 0
        while True:
            chunk = await upload.read(CHUNK_SIZE)
            if not chunk:
                break
            total += len(chunk)
            if total > self.max_size:
                self.validate(upload.content_type, total)
            chunks.append(chunk)

        data = b"".join(chunks)
        self.validate(upload.content_type, len(data))
        return data

    # Paths

    def resolve(self, storage_path: str) -> Path:
        """Absolute path for a stored relative path, refusing anything outside root."""
        path = (self.root / storage_path).resolve()
        if self.root not in path.parents:
            raise StorageError("Invalid storage path")
        return path

    def exists(self, storage_path: str) -> bool:
        return self.resolve(storage_path).is_file()

    # Write / delete

    def _write_atomic(self, target: Path, data: bytes) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=".upload-", suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(data)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, target)
        except OSError:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    async def store(
        self,
        kind: FileKind,
        owner_id: UUID,
        data: bytes,
        content_type: Optional[str],
        filename: Optional[str],
    ) -> StoredFile:
        """Validate and durably write ``data``; returns the metadata to persist."""
        self.validate(content_type, len(data))

        storage_path = build_storage_path(kind, owner_id, secrets.token_hex(16))
        target = self.resolve(storage_path)
        try:
            await asyncio.to_thread(self._write_atomic, target, data)
        except OSError as e:
            logger.error(f"Failed to store file {storage_path}: {e}")
            raise StorageError("Could not store file") from e

        logger.info(f"Stored {kind} file {storage_path} ({len(data)} bytes)")
        return StoredFile(
            storage_path=storage_path,
            original_filename=sanitize_filename(filename or ""),
            size=len(data),
            content_type="application/pdf",
        )

    async def delete(self, storage_path: str) -> None:
        """Remove stored bytes; missing files are ignored."""
        try:
            await asyncio.to_thread(self.resolve(storage_path).unlink, True)
        except OSError as e:
            # Orphaned bytes are harmless; a dangling DB row is not
            logger.error(f"Failed to delete stored file {storage_path}: {e}")

    async def stage_delete(self, storage_path: str) -> Optional[Path]:
        """Move a file aside before its metadata is removed.

        Returns the staged path, or None when the bytes were already gone.
        """
        source = self.resolve(storage_path)
        staged = source.with_name(source.name + TRASH_SUFFIX)
        try:
            await asyncio.to_thread(os.replace, source, staged)
        except FileNotFoundError:
            logger.warning(f"Stored file already missing: {storage_path}")
            return None
        except OSError as e:
            raise StorageError("Could not delete file") from e
        return staged

    async def restore(self, staged: Optional[Path], storage_path: str) -> None:
        """Undo ``stage_delete`` after a failed commit."""
        if staged is None:
            return
        try:
            await asyncio.to_thread(os.replace, staged, self.resolve(storage_path))
        except OSError as e:
            logger.error(f"Failed to restore staged file {staged}: {e}")

    async def discard(self, staged: Optional[Path]) -> None:
        """Unlink a staged file once the metadata removal is committed."""
        if staged is None:
            return
        try:
            await asyncio.to_thread(staged.unlink, True)
        except OSError as e:
            logger.error(f"Failed to remove staged file {staged}: {e}")

    def open_path(self, storage_path: str) -> Path:
        """Path for streaming; NotFound when the bytes are missing."""
        path = self.resolve(storage_path)
        if not path.is_file():
            raise NotFound("File not found")
        return path
