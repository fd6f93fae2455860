"""pytest fixtures for restyle tests.

Provides:
- utc_timezone: Autouse fixture enforcing UTC timezone
- test_env: Autouse fixture marking the process as a test environment
- engine / blobs / store: Function-scoped SQLite metadata store in tmp_path
- jpeg_bytes / png_bytes: Small real images built with Pillow
"""

import io
import os

import pytest
from PIL import Image

from restyle.core.database import setup_db_engine
from restyle.repositories.image_blob import ImageBlobStore
from restyle.services.change_feed import ChangeFeed
from restyle.services.design_store import DesignStore


@pytest.fixture(scope="session", autouse=True)
def utc_timezone():
    """Enforce UTC timezone for all tests."""
    os.environ["TZ"] = "UTC"
    yield


@pytest.fixture(autouse=True)
def test_env(monkeypatch):
    """Skip credential validation in Settings for every test."""
    monkeypatch.setenv("APP_ENV", "test")


@pytest.fixture
def engine(tmp_path):
    """Fresh metadata database per test."""
    engine = setup_db_engine(f"sqlite:///{tmp_path / 'designs.db'}")
    yield engine
    engine.dispose()


@pytest.fixture
def blobs(tmp_path) -> ImageBlobStore:
    return ImageBlobStore(tmp_path / "images")


@pytest.fixture
def store(engine, blobs) -> DesignStore:
    return DesignStore(engine, blobs, ChangeFeed())


def _encode(size: tuple[int, int], fmt: str, mode: str = "RGB") -> bytes:
    buffer = io.BytesIO()
    Image.new(mode, size, color=(200, 120, 40) if mode == "RGB" else (200, 120, 40, 128)).save(
        buffer, fmt
    )
    return buffer.getvalue()


@pytest.fixture
def jpeg_bytes() -> bytes:
    """64x48 JPEG room photo stand-in."""
    return _encode((64, 48), "JPEG")


@pytest.fixture
def png_bytes() -> bytes:
    """RGBA PNG larger than the default upload bound."""
    return _encode((2048, 1024), "PNG", mode="RGBA")
