"""Fixtures for HTTP tests: a real app over a temp database and storage root."""

from __future__ import annotations

import asyncio
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel

import depot.db.session as db_session_module
from depot.api.dependencies import get_artifact_store
from depot.config import get_settings
from depot.main import create_app
from depot.services.credentials import CredentialService


async def _seed(url: str) -> dict[str, str]:
    engine = create_async_engine(url)
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    factory = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        service = CredentialService(session, hash_iterations=1000)
        manager = await service.issue("admin", ["MANAGER"])
        writer = await service.issue("writer")
        await service.add_route("writer", "/releases", "w")
        reader = await service.issue("reader")
        await service.add_route("reader", "/releases", "r")
        nobody = await service.issue("nobody")

    await engine.dispose()
    return {
        "manager": manager.secret,
        "writer": writer.secret,
        "reader": reader.secret,
        "nobody": nobody.secret,
    }


def _reset_caches() -> None:
    get_settings.cache_clear()
    get_artifact_store.cache_clear()


@pytest.fixture
def public_read() -> bool:
    return True


@pytest.fixture
def api(tmp_path, monkeypatch, public_read):
    """TestClient plus seeded secrets."""
    monkeypatch.chdir(tmp_path)
    storage_root = tmp_path / "repos"
    (storage_root / "releases").mkdir(parents=True)
    (storage_root / "snapshots").mkdir()
    url = f"sqlite+aiosqlite:///{tmp_path / 'depot.db'}"

    monkeypatch.setenv("DEPOT_DATABASE__URL", url)
    monkeypatch.setenv("DEPOT_STORAGE__ROOT_PATH", str(storage_root))
    monkeypatch.setenv("DEPOT_SECURITY__HASH_ITERATIONS", "1000")
    monkeypatch.setenv("DEPOT_SECURITY__PUBLIC_READ", str(public_read).lower())
    monkeypatch.setattr(db_session_module, "_engine", None)
    monkeypatch.setattr(db_session_module, "_async_session_factory", None)
    _reset_caches()

    secrets = asyncio.run(_seed(url))

    with TestClient(create_app()) as client:
        yield SimpleNamespace(client=client, secrets=secrets, storage_root=storage_root)

    _reset_caches()