"""Repository endpoints: listing, trees, creation and removal.

Creating and removing repositories is reserved for MANAGER identities.
"""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import Response
from pydantic import BaseModel

from depot.api.dependencies import (
    ArtifactStoreDep,
    OptionalAuthDep,
    require_access,
    require_manager,
)
from depot.config import get_settings
from depot.errors import UnauthenticatedError
from depot.models.identity import RoutePermission
from depot.services.access import authorize
from depot.storage.tree import ArtifactNode, Repository

router = APIRouter()


class CreateRepositoryRequest(BaseModel):
    """Create repository request."""

    name: str


@router.get("", response_model=list[Repository])
async def list_repositories(
    identity: OptionalAuthDep,
    store: ArtifactStoreDep,
) -> list[Repository]:
    """List repositories with their full trees.

    With public reads disabled, only repositories whose root is readable by
    the caller are listed.
    """
    public_read = get_settings().security.public_read
    if not public_read and identity is None:
        raise UnauthenticatedError("Token required")

    repositories = await run_in_threadpool(store.list_repositories)
    if public_read:
        return repositories
    return [
        repo
        for repo in repositories
        if authorize(identity, repo.path, RoutePermission.READ)
    ]


@router.get("/{name}/tree", response_model=list[ArtifactNode])
async def repository_tree(
    name: str,
    identity: OptionalAuthDep,
    store: ArtifactStoreDep,
) -> list[ArtifactNode]:
    """Enumerate one repository."""
    if not get_settings().security.public_read:
        require_access(identity, f"/{name}", RoutePermission.READ)
    return await run_in_threadpool(store.tree, name)


@router.post("", response_model=Repository, status_code=201)
async def create_repository(
    request: CreateRepositoryRequest,
    identity: OptionalAuthDep,
    store: ArtifactStoreDep,
) -> Repository:
    """Create an empty repository."""
    require_manager(identity)
    return await run_in_threadpool(store.create_repository, request.name)


@router.delete("/{name}", status_code=204)
async def remove_repository(
    name: str,
    identity: OptionalAuthDep,
    store: ArtifactStoreDep,
) -> Response:
    """Remove a repository and all of its contents."""
    require_manager(identity)
    await run_in_threadpool(store.remove_repository, name)
    return Response(status_code=204)
