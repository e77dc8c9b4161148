"""Local PDF storage."""

import io
import uuid

import pytest
from fastapi import UploadFile
from starlette.datastructures import Headers

from stajkontrol.core.exceptions import NotFound, StorageError, ValidationError
from stajkontrol.models import FileKind
from stajkontrol.services.file_storage import FileStorage, build_storage_path

from tests.conftest import PDF_BYTES


@pytest.fixture
def storage(tmp_path):
    return FileStorage(str(tmp_path / "files"), max_size=4096, allowed_types=["application/pdf"])


def _upload(data: bytes, content_type: str = "application/pdf", filename: str = "defter.pdf") -> UploadFile:
    return UploadFile(
        file=io.BytesIO(data), filename=filename, headers=Headers({"content-type": content_type})
    )


def test_storage_path_ignores_client_filename():
    owner = uuid.uuid4()
    assert build_storage_path(FileKind.DEFTER, owner, "abc") == f"defter/{owner}/abc.pdf"


async def test_store_writes_bytes_under_root(storage):
    owner = uuid.uuid4()
    stored = await storage.store(FileKind.DEFTER, owner, PDF_BYTES, "application/pdf", "../../etc/passwd")

    assert stored.storage_path.startswith(f"defter/{owner}/")
    assert stored.original_filename == "passwd"
    assert stored.size == len(PDF_BYTES)
    assert storage.open_path(stored.storage_path).read_bytes() == PDF_BYTES


async def test_store_rejects_non_pdf(storage):
    with pytest.raises(ValidationError) as exc_info:
        await storage.store(FileKind.DEFTER, uuid.uuid4(), b"hello", "text/plain", "a.txt")
    assert "file" in exc_info.value.errors


async def test_store_rejects_oversized_and_empty(storage):
    with pytest.raises(ValidationError):
        await storage.store(FileKind.DEFTER, uuid.uuid4(), b"x" * 4097, "application/pdf", "big.pdf")
    with pytest.raises(ValidationError):
        await storage.store(FileKind.DEFTER, uuid.uuid4(), b"", "application/pdf", "empty.pdf")


async def test_read_upload_enforces_cap(storage):
    assert await storage.read_upload(_upload(PDF_BYTES)) == PDF_BYTES
    with pytest.raises(ValidationError):
        await storage.read_upload(_upload(b"x" * 5000))
    with pytest.raises(ValidationError):
        await storage.read_upload(_upload(PDF_BYTES, content_type="image/png"))


def test_resolve_refuses_paths_outside_root(storage):
    with pytest.raises(StorageError):
        storage.resolve("../outside.pdf")


async def test_stage_restore_and_discard(storage):
    stored = await storage.store(FileKind.SIGORTA, uuid.uuid4(), PDF_BYTES, "application/pdf", "s.pdf")

    staged = await storage.stage_delete(stored.storage_path)
    assert not storage.exists(stored.storage_path)
    await storage.restore(staged, stored.storage_path)
    assert storage.exists(stored.storage_path)

    staged = await storage.stage_delete(stored.storage_path)
    await storage.discard(staged)
    assert not storage.exists(stored.storage_path)
    assert not staged.exists()
    with pytest.raises(NotFound):
        storage.open_path(stored.storage_path)


async def test_stage_delete_of_missing_file_is_tolerated(storage):
    assert await storage.stage_delete(f"defter/{uuid.uuid4()}/missing.pdf") is None
