import sys
from pathlib import Path

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from typing import AsyncGenerator

import pytest
import pytest_asyncio
import httpx
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession

from main import app
from models import Base
from database import get_db
from config import settings
import file_registry

@pytest_asyncio.fixture(scope="function")
async def test_engine():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()

@pytest_asyncio.fixture(scope="function")
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    TestingSessionLocal = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)
    async with TestingSessionLocal() as session:
        yield session
        await session.rollback()

@pytest.fixture(scope="function")
def mock_settings(tmp_path, monkeypatch):
    upload_dir = tmp_path / "uploads_test"
    upload_dir.mkdir()
    monkeypatch.setattr(settings, 'UPLOAD_DIR', upload_dir)
    monkeypatch.setattr(settings, 'MAX_UPLOAD_SIZE_BYTES', 64 * 1024)
    monkeypatch.setattr(settings, 'ANONYMOUS_CREATOR', 'Anonymous')
    monkeypatch.setattr(settings, 'ENVIRONMENT', 'development')
    monkeypatch.setattr(file_registry, 'registry_store', {})
    return settings

@pytest.fixture(scope="function")
def registry(mock_settings) -> file_registry.FileRegistry:
    return file_registry.get_file_registry()

@pytest_asyncio.fixture(scope="function")
async def async_client(db_session: AsyncSession, mock_settings) -> AsyncGenerator[AsyncClient, None]:
    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = httpx.ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testdocs") as client:
        yield client

    app.dependency_overrides.clear()

@pytest.fixture(scope="function")
def stored_files(mock_settings):
    def _stored_files():
        upload_dir = mock_settings.UPLOAD_DIR
        return sorted(p.name for p in upload_dir.iterdir() if p.is_file() and not p.name.startswith("."))
    return _stored_files
