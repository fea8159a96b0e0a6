"""
Shared fixtures: in-memory SQLite, a storage double, profiles and actors.
"""

from __future__ import annotations

import os

os.environ.setdefault("PT_DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("PT_SECRET_KEY", "test-secret-key-with-enough-length-for-hs256")

from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import event
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

import app.models  # noqa: F401  populate metadata
from app.core.auth import Actor
from app.core.storage import ObjectStorage, StorageError
from app.models.profile import Profile
from projtrack_shared.schemas.common import Role


# ---------------------------------------------------------------------------
# Storage double
# ---------------------------------------------------------------------------


class MemoryStorage(ObjectStorage):
    """Object storage kept in a dict. Set ``fail_put``/``fail_remove`` to
    make the next calls raise StorageError."""

    def __init__(self):
        self.objects: dict[str, bytes] = {}
        self.fail_put = False
        self.fail_remove = False
        self.removed: list[str] = []

    async def put(self, path: str, data: bytes, content_type: str) -> str:
        if self.fail_put:
            raise StorageError("bucket unavailable")
        if path in self.objects:
            raise StorageError(f"Object already exists: {path}")
        self.objects[path] = data
        return path

    async def remove(self, path: str) -> None:
        if self.fail_remove:
            raise StorageError("bucket unavailable")
        self.objects.pop(path, None)
        self.removed.append(path)

    async def exists(self, path: str) -> bool:
        return path in self.objects

    def public_url(self, path: str) -> str:
        return f"https://files.test/{path}"


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest.fixture
async def engine():
    eng = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # pysqlite needs explicit BEGIN for SAVEPOINT to behave.
    @event.listens_for(eng.sync_engine, "connect")
    def _connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(eng.sync_engine, "begin")
    def _begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with eng.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as s:
        yield s


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture(autouse=True)
def published():
    """Stub the Redis push; tests inspect the mock to see what was pushed."""
    with patch(
        "app.services.notifications.publish_notification",
        new=AsyncMock(return_value=True),
    ) as mock:
        yield mock


@pytest.fixture
def session_context(session):
    """Stand-in for app.core.database.get_session_context bound to the test DB."""

    @asynccontextmanager
    async def _ctx():
        yield session

    return _ctx


@pytest.fixture
def refuse_flush(session):
    """Make the database reject any flush that writes an instance of a model."""
    listeners = []

    def _refuse(model, message="disk I/O error"):
        def before_flush(sync_session, flush_context, instances):
            pending = list(sync_session.new) + list(sync_session.dirty)
            if any(isinstance(obj, model) for obj in pending):
                raise OperationalError("INSERT/UPDATE", {}, Exception(message))

        event.listen(session.sync_session, "before_flush", before_flush)
        listeners.append(before_flush)

    yield _refuse
    for listener in listeners:
        event.remove(session.sync_session, "before_flush", listener)


# ---------------------------------------------------------------------------
# Profiles and actors
# ---------------------------------------------------------------------------


async def make_profile(session: AsyncSession, email: str, name: str, role: Role) -> Profile:
    profile = Profile(email=email, name=name, role=role.value)
    session.add(profile)
    await session.commit()
    await session.refresh(profile)
    return profile


@pytest.fixture
async def student_profile(session):
    return await make_profile(session, "ada@campus.edu", "Ada Student", Role.STUDENT)


@pytest.fixture
async def other_student_profile(session):
    return await make_profile(session, "ben@campus.edu", "Ben Student", Role.STUDENT)


@pytest.fixture
async def faculty_profile(session):
    return await make_profile(session, "prof.curie@campus.edu", "Prof Curie", Role.FACULTY)


@pytest.fixture
async def admin_profile(session):
    return await make_profile(session, "admin@campus.edu", "Campus Admin", Role.ADMIN)


@pytest.fixture
def student(student_profile) -> Actor:
    return Actor.from_profile(student_profile)


@pytest.fixture
def other_student(other_student_profile) -> Actor:
    return Actor.from_profile(other_student_profile)


@pytest.fixture
def faculty(faculty_profile) -> Actor:
    return Actor.from_profile(faculty_profile)


@pytest.fixture
def admin(admin_profile) -> Actor:
    return Actor.from_profile(admin_profile)
