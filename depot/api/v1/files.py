"""Artifact file endpoints: upload, delete and view.

Writes require a WRITE grant covering the canonical ``/<repo>/<path>``.
Filesystem work runs in the threadpool.
"""

from __future__ import annotations

from fastapi import APIRouter, File, Form, Query, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import FileResponse, Response
from pydantic import BaseModel

from depot.api.dependencies import ArtifactStoreDep, OptionalAuthDep, require_access
from depot.config import get_settings
from depot.errors import NotFoundError, PathEscapeError
from depot.models.identity import RoutePermission
from depot.storage.artifacts import ArtifactCoordinate

router = APIRouter()


class FileUploadResponse(BaseModel):
    """File upload response."""

    status: str
    path: str
    size: int
    versions: list[str]
    pom_path: str | None = None


@router.post("/upload", response_model=FileUploadResponse, status_code=201)
async def upload_file(
    identity: OptionalAuthDep,
    store: ArtifactStoreDep,
    file: UploadFile = File(..., description="Artifact file"),
    repo: str = Form(..., description="Repository name"),
    path: str = Form(..., description="Target directory: <group path>/<artifactId>/<version>"),
    group_id: str = Form(..., alias="groupId"),
    artifact_id: str = Form(..., alias="artifactId"),
    version: str = Form(...),
    generate_pom: bool = Form(False, alias="generatePom"),
) -> FileUploadResponse:
    """Upload an artifact file and refresh its maven-metadata.xml."""
    logical = store.logical_path(repo, path)
    require_access(identity, logical, RoutePermission.WRITE)

    coordinate = ArtifactCoordinate(
        group_id=group_id,
        artifact_id=artifact_id,
        version=version,
    )
    stored = await run_in_threadpool(
        store.upload,
        repo,
        path,
        file.filename,
        file.file,
        coordinate,
        generate_pom=generate_pom,
    )

    return FileUploadResponse(
        status="ok",
        path=stored.path,
        size=stored.size,
        versions=stored.versions,
        pom_path=stored.pom_path,
    )


@router.delete("/delete", status_code=204)
async def delete_file(
    identity: OptionalAuthDep,
    store: ArtifactStoreDep,
    repo: str = Query(..., description="Repository name"),
    path: str = Query(..., description="File or directory inside the repository"),
) -> Response:
    """Delete a file or directory tree."""
    logical = store.logical_path(repo, path)
    require_access(identity, logical, RoutePermission.WRITE)

    await run_in_threadpool(store.delete, repo, path)
    return Response(status_code=204)


@router.get("/view/{file_path:path}")
async def view_file(
    file_path: str,
    identity: OptionalAuthDep,
    store: ArtifactStoreDep,
) -> FileResponse:
    """Stream a stored file. Directories and escapes look like missing files."""
    try:
        if not get_settings().security.public_read:
            repository, relative = store.resolver.split_view_path(file_path)
            logical = store.logical_path(repository, relative)
            require_access(identity, logical, RoutePermission.READ)
        artifact = await run_in_threadpool(store.open_file, file_path)
    except PathEscapeError as exc:
        raise NotFoundError("File not found") from exc

    return FileResponse(artifact.path, media_type=artifact.content_type)
