import sys
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from tubeproxy.config.settings import config
from tubeproxy.main import app

FAKE_YTDLP = Path(__file__).parent / "fake_ytdlp.py"


@pytest.fixture
def anyio_backend():
    return 'asyncio'


@pytest_asyncio.fixture
async def client():
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture(autouse=True)
def reset_overrides():
    yield
    app.dependency_overrides.clear()


@pytest.fixture
def temp_dir(monkeypatch, tmp_path):
    downloads = tmp_path / "downloads"
    downloads.mkdir()
    monkeypatch.setattr(config.download, "temp_dir", str(downloads))
    return downloads


@pytest.fixture
def fake_ytdlp(monkeypatch, temp_dir):
    """Route the process backend to tests/fake_ytdlp.py"""
    monkeypatch.setattr(config.ytdlp, "command", [sys.executable, str(FAKE_YTDLP)])
    monkeypatch.setattr(config.ytdlp, "backend", "process")
    monkeypatch.setattr(config.download, "chunk_size", 64 * 1024)
    return temp_dir
