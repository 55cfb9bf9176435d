import httpx
import pytest
from app.services.upload_service import UploadError, UploadService

def encode_multipart(files):
    request = httpx.Request("POST", "http://testserver/api/upload", files=files)
    return request.headers["Content-Type"], request.read()

async def byte_chunks(body, size):
    for start in range(0, len(body), size):
        yield body[start:start + size]

@pytest.mark.asyncio
async def test_save_files_across_tiny_chunks(tmp_path):
    """Test that parts split across many small chunks are reassembled."""
    content_type, body = encode_multipart([
        ("files", ("notes.md", b"# title\r\n--not a boundary\r\n")),
        ("files", ("empty", b"")),
    ])
    service = UploadService(tmp_path)

    stored = await service.save_files(content_type, byte_chunks(body, 1))

    assert [item["original_name"] for item in stored] == ["notes.md", "empty"]
    assert (tmp_path / stored[0]["stored_name"]).read_bytes() == b"# title\r\n--not a boundary\r\n"
    assert (tmp_path / stored[1]["stored_name"]).read_bytes() == b""
    assert stored[1]["size_bytes"] == 0

@pytest.mark.asyncio
async def test_save_files_custom_field_name(tmp_path):
    content_type, body = encode_multipart([("documents", ("a.txt", b"hello"))])
    service = UploadService(tmp_path, field_name="documents")

    stored = await service.save_files(content_type, byte_chunks(body, 7))

    assert stored[0]["size_bytes"] == 5

@pytest.mark.asyncio
async def test_save_files_missing_boundary(tmp_path):
    service = UploadService(tmp_path)

    with pytest.raises(UploadError, match="boundary"):
        await service.save_files("multipart/form-data", byte_chunks(b"", 1))

@pytest.mark.asyncio
async def test_save_files_missing_content_type(tmp_path):
    service = UploadService(tmp_path)

    with pytest.raises(UploadError, match="multipart/form-data"):
        await service.save_files(None, byte_chunks(b"", 1))

@pytest.mark.asyncio
async def test_save_files_unusable_directory(tmp_path):
    blocker = tmp_path / "file"
    blocker.write_bytes(b"")
    content_type, body = encode_multipart([("files", ("a.txt", b"hello"))])
    service = UploadService(blocker / "uploads")

    with pytest.raises(UploadError, match="not usable") as excinfo:
        await service.save_files(content_type, byte_chunks(body, 1024))

    assert isinstance(excinfo.value.__cause__, OSError)
