"""
Unit tests for blob storage
"""
import pytest

from medparse.services.storage_service import StorageService


@pytest.mark.asyncio
async def test_upload_writes_file_and_returns_public_url(tmp_path):
    storage = StorageService(str(tmp_path), "https://parser.example/")

    url = await storage.upload("scan page 1.jpg", b"jpeg-bytes", "image/jpeg")

    assert url.startswith("https://parser.example/uploads/documents/")
    assert url.endswith("-scan_page_1.jpg")
    stored_path = url.split("/uploads/", 1)[1]
    assert (tmp_path / stored_path).read_bytes() == b"jpeg-bytes"


@pytest.mark.asyncio
async def test_uploads_never_collide(tmp_path):
    storage = StorageService(str(tmp_path), "http://localhost:8000")

    first = await storage.upload("page.png", b"a", "image/png")
    second = await storage.upload("page.png", b"b", "image/png")

    assert first != second


def test_unsafe_characters_are_replaced():
    assert StorageService.safe_name("../etc/passwd") == ".._etc_passwd"
    assert StorageService.safe_name("") == "page"
