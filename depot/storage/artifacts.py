"""Artifact store - repositories, upload, delete, view and listing over the resolver.

All physical paths come from :class:`ArtifactPathResolver`. Every method is
blocking filesystem I/O; async callers should run them in a worker thread.
"""

from __future__ import annotations

import mimetypes
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO

import structlog

from depot.config import Settings
from depot.errors import (
    InvalidArgumentError,
    NameConflictError,
    NotFoundError,
    StorageFaultError,
)
from depot.storage.files import remove_tree, write_atomic
from depot.storage.metadata import MetadataSynchronizer, render_pom
from depot.storage.paths import ArtifactPathResolver, group_path, validate_segment
from depot.storage.tree import (
    DEFAULT_ARTIFACT_SUFFIXES,
    ArtifactNode,
    Repository,
    build_tree,
)

logger = structlog.get_logger()

_XML_SUFFIXES = (".pom", ".xml")


@dataclass(frozen=True)
class ArtifactCoordinate:
    """Maven coordinate of an uploaded file."""

    group_id: str
    artifact_id: str
    version: str

    def __post_init__(self) -> None:
        group_path(self.group_id)
        validate_segment(self.artifact_id, field_name="artifactId")
        validate_segment(self.version, field_name="version")

    @property
    def relative_dir(self) -> str:
        """``<group path>/<artifactId>/<version>`` inside a repository."""
        return f"{group_path(self.group_id)}/{self.artifact_id}/{self.version}"


@dataclass(frozen=True)
class StoredArtifact:
    """Result of an upload."""

    repository: str
    path: str
    size: int
    versions: list[str]
    pom_path: str | None = None


@dataclass(frozen=True)
class ArtifactFile:
    """A readable file located by :meth:`ArtifactStore.open_file`."""

    path: Path
    content_type: str
    size: int


class ArtifactStore:
    """Path-safe artifact placement and retrieval."""

    def __init__(
        self,
        resolver: ArtifactPathResolver,
        synchronizer: MetadataSynchronizer | None = None,
        *,
        artifact_suffixes: Iterable[str] = DEFAULT_ARTIFACT_SUFFIXES,
        metadata_filename: str | None = None,
    ) -> None:
        self._resolver = resolver
        self._synchronizer = synchronizer or MetadataSynchronizer(resolver)
        self._suffixes = tuple(artifact_suffixes)
        self._metadata_filename = metadata_filename or self._synchronizer.filename
        self._log = logger.bind(component="artifacts")

    @classmethod
    def from_settings(cls, settings: Settings) -> ArtifactStore:
        storage = settings.storage
        resolver = ArtifactPathResolver(storage.root_path)
        synchronizer = MetadataSynchronizer(
            resolver, metadata_filename=storage.metadata_filename
        )
        return cls(
            resolver,
            synchronizer,
            artifact_suffixes=storage.artifact_suffixes,
        )

    @property
    def resolver(self) -> ArtifactPathResolver:
        return self._resolver

    # -- Write ------------------------------------------------------------

    def upload(
        self,
        repository: str,
        path: str,
        filename: str,
        content: bytes | BinaryIO,
        coordinate: ArtifactCoordinate,
        *,
        generate_pom: bool = False,
    ) -> StoredArtifact:
        """Place an artifact file and refresh its coordinate metadata.

        Args:
            repository: Repository name (first path segment)
            path: Directory inside the repository; must be the coordinate's
                ``<group path>/<artifactId>/<version>``
            filename: File name (single segment)
            content: File bytes or a binary stream
            coordinate: Maven coordinate of the file
            generate_pom: Also write ``<artifactId>-<version>.pom``

        Raises:
            InvalidArgumentError: If path does not match the coordinate
            PathEscapeError: If any resolved path leaves the repository
            StorageFaultError: If the write fails
        """
        validate_segment(filename, field_name="filename")
        target_dir = self._resolver.resolve(repository, path)
        expected_dir = self._resolver.resolve(repository, coordinate.relative_dir)
        if target_dir != expected_dir:
            raise InvalidArgumentError(
                message="Path does not match maven coordinates",
                details={"path": path, "expected": coordinate.relative_dir},
            )

        target_file = self._resolver.resolve(
            repository, f"{coordinate.relative_dir}/{filename}"
        )
        size = self._write(target_file, content)

        pom_path = None
        if generate_pom:
            pom_name = f"{coordinate.artifact_id}-{coordinate.version}.pom"
            pom_file = self._resolver.resolve(
                repository, f"{coordinate.relative_dir}/{pom_name}"
            )
            self._write(
                pom_file,
                render_pom(coordinate.group_id, coordinate.artifact_id, coordinate.version),
            )
            pom_path = self._logical(repository, pom_file)

        versions = self._synchronizer.record_version(
            repository,
            coordinate.group_id,
            coordinate.artifact_id,
            coordinate.version,
        )

        stored = StoredArtifact(
            repository=repository,
            path=self._logical(repository, target_file),
            size=size,
            versions=versions,
            pom_path=pom_path,
        )
        self._log.info(
            "storage.upload",
            repository=repository,
            path=stored.path,
            size=size,
            generate_pom=generate_pom,
        )
        return stored

    def delete(self, repository: str, path: str) -> int:
        """Delete a file or directory tree inside a repository.

        Removing a version directory regenerates its coordinate metadata.

        Returns:
            Number of filesystem entries removed

        Raises:
            InvalidArgumentError: If path targets the repository root
            NotFoundError: If nothing exists at path
            PathEscapeError: If path leaves the repository
        """
        repo_root = self._resolver.repository_root(repository)
        target = self._resolver.resolve(repository, path)
        if target == repo_root:
            raise InvalidArgumentError(
                message="Refusing to delete a repository root",
                details={"repository": repository},
            )
        if not target.exists():
            raise NotFoundError(
                message=f"Artifact path not found: {path}",
                details={"repository": repository, "path": path},
            )

        removed = remove_tree(target)
        self._log.info(
            "storage.delete",
            repository=repository,
            path=self._logical(repository, target),
            removed=removed,
        )
        self._heal_metadata(repository, target.parent)
        return removed

    # -- Repositories -----------------------------------------------------

    def create_repository(self, name: str) -> Repository:
        """Create an empty top-level repository.

        Raises:
            InvalidArgumentError: If name is not a single path segment
            NameConflictError: If the repository already exists
            StorageFaultError: If the directory cannot be created
        """
        validate_segment(name, field_name="repository")
        root = self._resolver.repository_root(name)
        try:
            root.mkdir(parents=True)
        except FileExistsError as exc:
            raise NameConflictError(
                message=f"Repository already exists: {name}",
                details={"repository": name},
            ) from exc
        except OSError as exc:
            self._log.error(
                "storage.repository.create_failed", repository=name, error=str(exc)
            )
            raise StorageFaultError(
                message="Could not create repository",
                details={"repository": name},
            ) from exc

        self._log.info("storage.repository.create", repository=name)
        return Repository(name=name, path=f"/{name}", tree=[])

    def remove_repository(self, name: str) -> int:
        """Remove a repository and everything stored in it.

        Returns:
            Number of filesystem entries removed

        Raises:
            NotFoundError: If the repository does not exist
        """
        validate_segment(name, field_name="repository")
        root = self._resolver.repository_root(name)
        if not root.is_dir():
            raise NotFoundError(
                message=f"Repository not found: {name}",
                details={"repository": name},
            )

        removed = remove_tree(root)
        self._log.info("storage.repository.remove", repository=name, removed=removed)
        return removed

    # -- Read -------------------------------------------------------------

    def open_file(self, view_path: str) -> ArtifactFile:
        """Locate a file addressed as ``<repository>/<relative path>``.

        Raises:
            NotFoundError: If the path is missing or a directory
            PathEscapeError: If the path leaves its repository
        """
        repository, relative = self._resolver.split_view_path(view_path)
        target = self._resolver.resolve(repository, relative)
        if not target.is_file():
            raise NotFoundError(
                message="File not found",
                details={"path": view_path},
            )

        content_type, _ = mimetypes.guess_type(target.name)
        if target.name.endswith(_XML_SUFFIXES):
            content_type = "application/xml"
        return ArtifactFile(
            path=target,
            content_type=content_type or "application/octet-stream",
            size=target.stat().st_size,
        )

    def tree(self, repository: str) -> list[ArtifactNode]:
        """Enumerate one repository.

        Raises:
            NotFoundError: If the repository does not exist
        """
        root = self._resolver.repository_root(repository)
        if not root.is_dir():
            raise NotFoundError(
                message=f"Repository not found: {repository}",
                details={"repository": repository},
            )
        return build_tree(root, f"/{repository}", artifact_suffixes=self._suffixes)

    def list_repositories(self) -> list[Repository]:
        """Enumerate every repository under the storage root, ordered by name."""
        root = self._resolver.storage_root
        if not root.is_dir():
            return []
        names = sorted(
            entry.name
            for entry in root.iterdir()
            if entry.is_dir() and not entry.is_symlink()
        )
        return [
            Repository(name=name, path=f"/{name}", tree=self.tree(name))
            for name in names
        ]

    # -- Internals --------------------------------------------------------

    def _write(self, target: Path, content: bytes | BinaryIO) -> int:
        try:
            return write_atomic(target, content)
        except OSError as exc:
            self._log.error("storage.write_failed", path=str(target), error=str(exc))
            raise StorageFaultError(
                message="Could not write artifact",
                details={"file": target.name},
            ) from exc

    def logical_path(self, repository: str, path: str) -> str:
        """Canonical ``/<repository>/<relative>`` form of a requested path.

        Route grants are matched against this form, never the raw input.
        """
        return self._logical(repository, self._resolver.resolve(repository, path))

    def _logical(self, repository: str, physical: Path) -> str:
        relative = self._resolver.relative_to_repository(repository, physical)
        if relative == ".":
            return f"/{repository}"
        return f"/{repository}/{relative}"

    def _heal_metadata(self, repository: str, parent: Path) -> None:
        """Regenerate metadata if ``parent`` is a coordinate directory."""
        if not (parent / self._metadata_filename).is_file():
            return
        parts = self._resolver.relative_to_repository(repository, parent).split("/")
        if len(parts) < 2:
            return
        group_id = ".".join(parts[:-1])
        self._synchronizer.regenerate(repository, group_id, parts[-1])
