"""Artifact storage layer."""

from depot.storage.artifacts import (
    ArtifactCoordinate,
    ArtifactFile,
    ArtifactStore,
    StoredArtifact,
)
from depot.storage.metadata import MetadataSynchronizer
from depot.storage.paths import ArtifactPathResolver
from depot.storage.tree import ArtifactNode, Repository, build_tree

__all__ = [
    "ArtifactCoordinate",
    "ArtifactFile",
    "ArtifactNode",
    "ArtifactPathResolver",
    "ArtifactStore",
    "MetadataSynchronizer",
    "Repository",
    "StoredArtifact",
    "build_tree",
]
