"""Shared fixtures."""

from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel

from depot.services.credentials import CredentialService
from depot.storage.artifacts import ArtifactStore
from depot.storage.metadata import MetadataSynchronizer
from depot.storage.paths import ArtifactPathResolver

# Low work factor keeps PBKDF2 fast in tests
TEST_HASH_ITERATIONS = 1000


@pytest.fixture
async def session_factory():
    """In-memory SQLite database; yields a sessionmaker bound to it."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    async_session_factory = sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    yield async_session_factory

    await engine.dispose()


@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def credentials(db_session: AsyncSession) -> CredentialService:
    return CredentialService(db_session, hash_iterations=TEST_HASH_ITERATIONS)


@pytest.fixture
def session_scope(session_factory):
    """``get_async_session``-shaped factory over the test database."""

    @asynccontextmanager
    async def scope():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    return scope


@pytest.fixture
def storage_root(tmp_path: Path) -> Path:
    root = tmp_path / "repos"
    (root / "releases").mkdir(parents=True)
    (root / "snapshots").mkdir()
    return root


@pytest.fixture
def resolver(storage_root: Path) -> ArtifactPathResolver:
    return ArtifactPathResolver(storage_root)


@pytest.fixture
def store(resolver: ArtifactPathResolver) -> ArtifactStore:
    return ArtifactStore(resolver, MetadataSynchronizer(resolver))
