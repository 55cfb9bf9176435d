import pytest
import httpx
from fastapi.testclient import TestClient
from main import app
from app.core.config import settings

@pytest.fixture
def upload_dir(tmp_path, monkeypatch):
    """Point the endpoint at a fresh upload directory for each test."""
    directory = tmp_path / "uploads"
    monkeypatch.setattr(settings, "UPLOAD_DIR", directory)
    return directory

@pytest.fixture
def unwritable_upload_dir(tmp_path, monkeypatch):
    """An upload directory that cannot be created because its parent is a file."""
    blocker = tmp_path / "not_a_directory"
    blocker.write_bytes(b"")
    directory = blocker / "uploads"
    monkeypatch.setattr(settings, "UPLOAD_DIR", directory)
    return directory

@pytest.fixture
def test_client(upload_dir):
    """Create a test client for the FastAPI app."""
    return TestClient(app)

@pytest.fixture
def asgi_client():
    """An httpx client that talks to the app in-process."""
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver")
