"""Repository tree enumeration.

Builds a depth-first, name-ordered view of a repository directory. Nodes are
recomputed on every call and never cached.

On-disk layout assumed for versions: ``<coordinate>/<version>/<file>``, so a
recognized artifact file reports its parent directory name as its version.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal

import structlog
from pydantic import BaseModel

logger = structlog.get_logger()

DEFAULT_ARTIFACT_SUFFIXES: tuple[str, ...] = (".jar", ".pom")


class ArtifactNode(BaseModel):
    """One file or directory in a repository tree."""

    type: Literal["file", "directory"]
    name: str
    path: str
    size: int | None = None
    version: str | None = None
    children: list[ArtifactNode] | None = None


class Repository(BaseModel):
    """A top-level repository under the storage root."""

    name: str
    path: str
    tree: list[ArtifactNode]


ArtifactNode.model_rebuild()


def _sorted_entries(directory: Path) -> list[os.DirEntry]:
    with os.scandir(directory) as it:
        return sorted(it, key=lambda entry: entry.name)


def build_tree(
    root: Path,
    base_path: str = "",
    *,
    artifact_suffixes: tuple[str, ...] = DEFAULT_ARTIFACT_SUFFIXES,
) -> list[ArtifactNode]:
    """Enumerate ``root`` into an ordered node tree.

    Args:
        root: Directory to enumerate (already resolved)
        base_path: Logical path prefix for node paths, e.g. ``/releases``
        artifact_suffixes: File suffixes that get a ``version``

    Returns:
        Nodes sorted by name; empty if root is missing or not a directory
    """
    if not root.is_dir():
        return []
    try:
        entries = _sorted_entries(root)
    except OSError as exc:
        logger.warning("storage.tree.unreadable", path=str(root), error=str(exc))
        return []

    nodes: list[ArtifactNode] = []
    for entry in entries:
        node_path = f"{base_path}/{entry.name}"
        try:
            if entry.is_dir():
                children: list[ArtifactNode] = []
                # Symlinked directories are listed but not descended into
                if not entry.is_symlink():
                    children = build_tree(
                        Path(entry.path),
                        node_path,
                        artifact_suffixes=artifact_suffixes,
                    )
                node = ArtifactNode(
                    type="directory",
                    name=entry.name,
                    path=node_path,
                    children=children,
                )
            else:
                version = None
                if entry.name.endswith(artifact_suffixes):
                    version = root.name
                node = ArtifactNode(
                    type="file",
                    name=entry.name,
                    path=node_path,
                    size=entry.stat().st_size,
                    version=version,
                )
        except FileNotFoundError:
            # Removed between listing and stat
            continue
        except OSError as exc:
            logger.warning("storage.tree.entry_skipped", path=entry.path, error=str(exc))
            continue
        nodes.append(node)

    return nodes
