"""Shared pytest fixtures for Plant Report tests."""

from __future__ import annotations

import io
import shutil
import tempfile
from pathlib import Path
from typing import Generator

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from plantreport.api.main import create_app
from plantreport.core.analysis import AnalysisClient
from plantreport.core.config import PlantReportConfig
from plantreport.core.errors import FileNotFound, StorageError, UpstreamError
from plantreport.core.object_store import ObjectStore, StoredFile, parse_file_id

# ---------------------------------------------------------------------------
# In-memory collaborators.
# ---------------------------------------------------------------------------


class InMemoryObjectStore(ObjectStore):
    """Object store keeping blobs in a dict, with switchable failures."""

    def __init__(self) -> None:
        self.files: dict[str, StoredFile] = {}
        self.fail_writes = False
        self.fail_deletes = False
        self._counter = 0

    async def store(self, name: str, mime_type: str, data: bytes) -> str:
        if self.fail_writes:
            raise StorageError("write interrupted")
        self._counter += 1
        file_id = f"{self._counter:024x}"
        self.files[file_id] = StoredFile(file_id, name, mime_type, data)
        return file_id

    async def retrieve(self, file_id: str) -> StoredFile:
        parse_file_id(file_id)
        if file_id not in self.files:
            raise FileNotFound(f"No stored file with id {file_id}")
        return self.files[file_id]

    async def delete(self, file_id: str) -> None:
        if self.fail_deletes:
            raise StorageError("delete interrupted")
        if self.files.pop(file_id, None) is None:
            raise FileNotFound(f"No stored file with id {file_id}")


class FakeAnalysisClient(AnalysisClient):
    """Analysis client returning a canned answer and recording calls."""

    def __init__(self, result: str = "Rose (Rosa). Healthy.") -> None:
        self.result = result
        self.error: Exception | None = None
        self.calls: list[tuple[bytes, str, str]] = []

    async def analyze(self, image_bytes: bytes, mime_type: str, prompt: str) -> str:
        self.calls.append((image_bytes, mime_type, prompt))
        if self.error is not None:
            raise self.error
        return self.result


# ---------------------------------------------------------------------------
# Fixtures.
# ---------------------------------------------------------------------------


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files.

    Yields:
        Path to temporary directory

    Cleanup:
        Directory is removed after test completes
    """
    temp_path = Path(tempfile.mkdtemp())
    try:
        yield temp_path
    finally:
        shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def test_config(temp_dir: Path) -> PlantReportConfig:
    """Create a test configuration that ignores the environment's .env file.

    Args:
        temp_dir: Temporary directory from fixture

    Returns:
        PlantReportConfig instance for testing
    """
    return PlantReportConfig(
        _env_file=None,
        mongodb_uri="mongodb://localhost:27017/plant_test",
        gemini_api_key="test-key",
        analysis_prompt="Describe this plant.",
        static_dir=str(temp_dir / "public"),
    )


@pytest.fixture
def object_store() -> InMemoryObjectStore:
    return InMemoryObjectStore()


@pytest.fixture
def analysis_client() -> FakeAnalysisClient:
    return FakeAnalysisClient()


@pytest.fixture
def app(test_config, object_store, analysis_client):
    """FastAPI app with in-memory collaborators and a connected store.

    The lifespan is not run (the client is not used as a context manager),
    so the store is assigned directly, as the lifespan would.
    """
    application = create_app(test_config, analysis_client=analysis_client)
    application.state.object_store = object_store
    return application


@pytest.fixture
def test_client(app) -> TestClient:
    return TestClient(app)


def make_png(width: int = 40, height: int = 20, color=(34, 139, 34)) -> bytes:
    """Encode a solid-colour RGB image as PNG bytes."""
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color=color).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def png_bytes() -> bytes:
    """A small 40x20 PNG image."""
    return make_png()


@pytest.fixture
def png_factory():
    """Return the PNG encoder so tests can choose the image size."""
    return make_png


@pytest.fixture
def lenient_client(app) -> TestClient:
    """TestClient that returns 500 responses instead of re-raising server errors.

    Starlette re-raises exceptions handled by a catch-all ``Exception``
    handler after sending the response, so tests that exercise that handler
    need this client.
    """
    return TestClient(app, raise_server_exceptions=False)
