"""
Shared fixtures: in-memory blob store, per-test SQLite database, API client
"""
import asyncio
import os
import tempfile

# Settings are read at import time, so the environment must be complete first
os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{tempfile.gettempdir()}/portfolio-unused.db")
os.environ.setdefault("NEXTCLOUD_URL", "https://cloud.example.com/")
os.environ.setdefault("NEXTCLOUD_USERNAME", "photographer")
os.environ.setdefault("NEXTCLOUD_PASSWORD", "app-password")
os.environ.setdefault("SESSION_SECRET", "test-session-secret-that-is-long-enough-0123456789")
os.environ.setdefault("ADMIN_EMAIL", "admin@example.com")
os.environ.setdefault("ADMIN_PASSWORD", "correct-horse-battery")
os.environ.setdefault("LOG_TO_FILE", "false")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from portfolio.auth import create_access_token
from portfolio.database import Base, get_db
from portfolio.dependencies import get_blob_store
from portfolio.exceptions import BlobNotFound, TransportFailure
from portfolio.storage import BlobInfo, BlobStatus, PathNormalizer
from portfolio import models  # noqa: F401


class InMemoryBlobStore:
    """Dict-backed stand-in for NextcloudBlobStore"""

    def __init__(self, root: str = "Photos/Portfolio"):
        self.root = root
        self.files = {}
        self.unreachable = False
        self.unreachable_paths = set()
        self.fail_deletes = False
        self.downloads = []
        self.uploads = []

    def _check(self, path: str):
        if self.unreachable or path in self.unreachable_paths:
            raise TransportFailure(f"store unreachable: {path}", context={"path": path})

    async def download(self, path: str) -> bytes:
        self.downloads.append(path)
        self._check(path)
        if path not in self.files:
            raise BlobNotFound(path)
        return self.files[path]

    async def upload(self, path: str, data: bytes, overwrite: bool = True) -> None:
        self._check(path)
        self.uploads.append(path)
        self.files[path] = data

    async def delete(self, path: str) -> None:
        self._check(path)
        if self.fail_deletes:
            raise TransportFailure(f"delete failed: {path}", context={"path": path})
        self.files.pop(path, None)

    async def probe(self, path: str) -> BlobStatus:
        if self.unreachable or path in self.unreachable_paths:
            return BlobStatus.UNREACHABLE
        return BlobStatus.PRESENT if path in self.files else BlobStatus.MISSING

    async def exists(self, path: str) -> bool:
        return await self.probe(path) == BlobStatus.PRESENT

    async def list_files(self, directory=None):
        self._check(directory or self.root)
        directory = directory or self.root
        return [
            BlobInfo(name=path.rsplit("/", 1)[-1], size=len(data))
            for path, data in self.files.items()
            if path.rsplit("/", 1)[0] == directory
        ]

    async def test_connection(self):
        if self.unreachable:
            return {"success": False, "message": "unreachable", "root": self.root}
        return {"success": True, "message": "ok", "root": self.root, "files_in_root": len(self.files)}

    def close(self):
        pass


@pytest.fixture
def blob_store():
    return InMemoryBlobStore()


@pytest.fixture
def normalizer():
    return PathNormalizer(root="/Photos/Portfolio", api_prefix="/api/photos")


@pytest.fixture
def session_factory(tmp_path):
    """Fresh SQLite database per test; NullPool so no connection outlives its event loop"""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path}/portfolio.db", poolclass=NullPool)

    async def create_tables():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    asyncio.run(create_tables())
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    asyncio.run(engine.dispose())


@pytest.fixture
def run_db(session_factory):
    """Run ``fn(session)`` to completion in a fresh session"""
    def runner(fn):
        async def scenario():
            async with session_factory() as db:
                return await fn(db)
        return asyncio.run(scenario())
    return runner


@pytest.fixture
def client(session_factory, blob_store):
    from main import app

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_blob_store] = lambda: blob_store
    # Lifespan is not entered; the fakes above replace what it would build
    test_client = TestClient(app)
    yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers():
    token = create_access_token("admin-id", "admin@example.com", "admin", "Admin")
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def user_headers():
    token = create_access_token("user-id", "visitor@example.com", "user", "Visitor")
    return {"Authorization": f"Bearer {token}"}
