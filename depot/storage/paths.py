"""Artifact path resolution.

Every filesystem-touching operation maps its logical ``(repository, path)``
pair to a physical location through :class:`ArtifactPathResolver`; nothing
else joins path strings and touches disk.

Rules:
1. Repository and path must not contain null bytes
2. Repository must be non-empty and resolve to a direct child of the storage root
3. After canonicalization (``.``, ``..``, symlinks), the target must lie
   within the repository root
4. A canonicalization failure (symlink loop, OS error) is a hard error
"""

from __future__ import annotations

from pathlib import Path
from typing import NoReturn

import structlog

from depot.errors import InvalidArgumentError, PathEscapeError, StorageFaultError

logger = structlog.get_logger()


def _check_text(value: str, field_name: str, *, allow_empty: bool = False) -> None:
    if value is None or (not value and not allow_empty):
        raise InvalidArgumentError(
            message=f"{field_name} cannot be empty",
            details={"field": field_name, "reason": "empty_path"},
        )
    if "\x00" in value:
        raise InvalidArgumentError(
            message=f"{field_name} contains invalid characters",
            details={"field": field_name, "reason": "null_byte"},
        )


def validate_segment(value: str, *, field_name: str) -> str:
    """Validate a single path segment such as a file name or artifact id."""
    _check_text(value, field_name)
    if "/" in value or "\\" in value or value in (".", ".."):
        raise InvalidArgumentError(
            message=f"{field_name} must be a single path segment",
            details={"field": field_name, "reason": "not_a_segment"},
        )
    return value


def group_path(group_id: str) -> str:
    """``dev.dani.tools`` -> ``dev/dani/tools``."""
    _check_text(group_id, "groupId")
    segments = group_id.split(".")
    for segment in segments:
        validate_segment(segment, field_name="groupId")
    return "/".join(segments)


class ArtifactPathResolver:
    """Maps logical repository paths to canonical physical paths."""

    def __init__(self, storage_root: Path | str) -> None:
        self._root = Path(storage_root)

    @property
    def storage_root(self) -> Path:
        return self._canonical(self._root)

    def repository_root(self, repository: str) -> Path:
        """Canonical root directory of ``repository``.

        Raises:
            InvalidArgumentError: If the name is empty or malformed
            PathEscapeError: If it does not name a direct child of the storage root
        """
        _check_text(repository, "repository")
        root = self.storage_root
        repo_root = self._canonical(root / repository)
        if repo_root.parent != root:
            self._escape(repository, "", repo_root)
        return repo_root

    def resolve(self, repository: str, relative_path: str) -> Path:
        """Resolve ``relative_path`` inside ``repository``.

        An empty or ``.`` path resolves to the repository root itself.

        Raises:
            InvalidArgumentError: If an argument is malformed
            PathEscapeError: If the canonical target leaves the repository root
            StorageFaultError: If the path cannot be canonicalized
        """
        _check_text(relative_path, "path", allow_empty=True)
        repo_root = self.repository_root(repository)
        target = self._canonical(repo_root / relative_path)
        if target != repo_root and not target.is_relative_to(repo_root):
            self._escape(repository, relative_path, target)
        return target

    def coordinate_dir(self, repository: str, group_id: str, artifact_id: str) -> Path:
        """Directory owning the metadata document of an artifact coordinate."""
        validate_segment(artifact_id, field_name="artifactId")
        return self.resolve(repository, f"{group_path(group_id)}/{artifact_id}")

    def relative_to_repository(self, repository: str, physical: Path) -> str:
        """Inverse of :meth:`resolve` for an already-resolved path."""
        return physical.relative_to(self.repository_root(repository)).as_posix()

    @staticmethod
    def split_view_path(path: str) -> tuple[str, str]:
        """Split ``<repository>/<relative path>`` into its two parts."""
        _check_text(path, "path")
        repository, _, relative = path.lstrip("/").partition("/")
        return repository, relative

    @staticmethod
    def _canonical(path: Path) -> Path:
        try:
            return path.resolve()
        except (OSError, RuntimeError) as exc:
            logger.error("storage.path.canonicalize_failed", path=str(path), error=str(exc))
            raise StorageFaultError(
                message="Path could not be canonicalized",
                details={"reason": "canonicalize_failed"},
            ) from exc

    @staticmethod
    def _escape(repository: str, relative_path: str, resolved: Path) -> NoReturn:
        logger.warning(
            "security.path_escape",
            repository=repository,
            path=relative_path,
            resolved=str(resolved),
        )
        raise PathEscapeError(
            details={"repository": repository, "path": relative_path},
        )
