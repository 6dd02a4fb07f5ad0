"""Shared fixtures: a throwaway SQLite database, an in-memory blob store and
an httpx transport that serves that store's signed URLs."""
import secrets
import urllib.parse
import uuid
from datetime import timedelta

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from linksecure.core.blob_store import BlobStore, clean_blob_path
from linksecure.core.database import Base, get_db
from linksecure.core.errors import StorageError
from linksecure.core.security import create_access_token
from linksecure.dependencies import get_blob_proxy, get_blob_store
from linksecure.main import app as fastapi_app
from linksecure.models.file import File
from linksecure.models.user import User
from linksecure.services.blob_proxy import BlobProxy

BLOB_HOST = "https://blobs.test"


class InMemoryBlobStore(BlobStore):
    def __init__(self):
        self.objects: dict[str, tuple[bytes, str]] = {}
        self.signed: list[tuple[str, timedelta]] = []

    async def exists(self, path: str) -> bool:
        return clean_blob_path(path) in self.objects

    async def put(self, path: str, data: bytes, content_type: str) -> str:
        name = clean_blob_path(path)
        self.objects[name] = (data, content_type)
        return name

    async def get(self, path: str) -> bytes:
        try:
            return self.objects[clean_blob_path(path)][0]
        except KeyError:
            raise StorageError(f"missing {path}")

    async def delete(self, path: str) -> None:
        self.objects.pop(clean_blob_path(path), None)

    async def signed_url(self, path: str, ttl: timedelta, permissions: str = "r") -> str:
        name = clean_blob_path(path)
        self.signed.append((name, ttl))
        quoted = urllib.parse.quote(name, safe="/")
        return f"{BLOB_HOST}/{quoted}?ttl={int(ttl.total_seconds())}&sig={secrets.token_hex(8)}"

    async def ping(self) -> None:
        return None


def serve_blobs(store: InMemoryBlobStore):
    def handler(request: httpx.Request) -> httpx.Response:
        name = request.url.path.lstrip("/")
        if name not in store.objects:
            return httpx.Response(404)
        data, content_type = store.objects[name]
        headers = {"content-type": content_type, "accept-ranges": "bytes"}
        range_header = request.headers.get("range")
        if range_header:
            first, _, last = range_header.removeprefix("bytes=").partition("-")
            start = int(first)
            end = int(last) if last else len(data) - 1
            headers["content-range"] = f"bytes {start}-{end}/{len(data)}"
            return httpx.Response(206, content=data[start:end + 1], headers=headers)
        return httpx.Response(200, content=data, headers=headers)

    return handler


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", poolclass=NullPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def blob_store():
    return InMemoryBlobStore()


@pytest.fixture
async def blob_proxy(blob_store):
    proxy = BlobProxy(httpx.AsyncClient(transport=httpx.MockTransport(serve_blobs(blob_store))))
    yield proxy
    await proxy.aclose()


@pytest.fixture
async def client(session_factory, blob_store, blob_proxy):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    fastapi_app.dependency_overrides[get_db] = override_get_db
    fastapi_app.dependency_overrides[get_blob_store] = lambda: blob_store
    fastapi_app.dependency_overrides[get_blob_proxy] = lambda: blob_proxy
    transport = httpx.ASGITransport(app=fastapi_app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac
    fastapi_app.dependency_overrides.clear()


async def _make_user(db, email: str) -> User:
    user = User(id=str(uuid.uuid4()), email=email, is_active=True)
    db.add(user)
    await db.commit()
    return user


@pytest.fixture
async def owner(db):
    return await _make_user(db, "owner@example.com")


@pytest.fixture
async def other_user(db):
    return await _make_user(db, "other@example.com")


@pytest.fixture
async def third_user(db):
    return await _make_user(db, "third@example.com")


@pytest.fixture
def auth_headers():
    def _headers(user: User) -> dict:
        return {"Authorization": f"Bearer {create_access_token({'sub': user.id})}"}

    return _headers


@pytest.fixture
def make_file(db, blob_store):
    async def _make(
        owner: User,
        content: bytes = b"hello linksecure",
        filename: str = "report.txt",
        content_type: str = "text/plain",
        is_public: bool = False,
    ) -> File:
        path = await blob_store.put(f"{owner.id}/{uuid.uuid4()}_{filename}", content, content_type)
        f = File(
            id=str(uuid.uuid4()),
            filename=filename,
            content_type=content_type,
            size=len(content),
            owner_id=owner.id,
            storage_path=path,
            is_public=is_public,
            tags=[],
        )
        db.add(f)
        await db.commit()
        return f

    return _make
