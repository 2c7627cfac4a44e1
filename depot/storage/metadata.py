"""Maven metadata synchronization.

Each artifact coordinate directory (``<repo>/<group path>/<artifactId>``)
owns one ``maven-metadata.xml`` listing every version subdirectory found
under it. The document is regenerated wholesale from disk on every write,
never patched, so a missed update heals on the next placement.
"""

from __future__ import annotations

import re
import xml.etree.ElementTree as ET
from collections.abc import Iterable
from pathlib import Path

import structlog

from depot.concurrency.locks import get_coordinate_lock
from depot.errors import StorageFaultError
from depot.storage.files import write_atomic
from depot.storage.paths import ArtifactPathResolver, validate_segment
from depot.utils.datetime import maven_timestamp

logger = structlog.get_logger()

DEFAULT_METADATA_FILENAME = "maven-metadata.xml"

_VERSION_TOKEN = re.compile(r"\d+|[A-Za-z]+")


def version_sort_key(version: str) -> tuple:
    """Natural ordering key: ``1.2.10`` sorts after ``1.2.9``.

    Numeric tokens compare numerically and sort before alphabetic tokens at
    the same position. Qualifier semantics (SNAPSHOT, rc, ...) are not
    modelled; the raw string breaks remaining ties.
    """
    key = []
    for token in _VERSION_TOKEN.findall(version):
        if token.isdigit():
            key.append((0, int(token), ""))
        else:
            key.append((1, 0, token.lower()))
    return (tuple(key), version)


def sort_versions(versions: Iterable[str]) -> list[str]:
    return sorted(set(versions), key=version_sort_key)


def _to_xml(root: ET.Element) -> bytes:
    ET.indent(root, space="  ")
    return ET.tostring(root, encoding="UTF-8", xml_declaration=True) + b"\n"


def render_metadata(
    group_id: str,
    artifact_id: str,
    versions: Iterable[str],
    *,
    last_updated: str | None = None,
) -> bytes:
    """Render a ``maven-metadata.xml`` document."""
    ordered = sort_versions(versions)

    metadata = ET.Element("metadata")
    ET.SubElement(metadata, "groupId").text = group_id
    ET.SubElement(metadata, "artifactId").text = artifact_id

    versioning = ET.SubElement(metadata, "versioning")
    if ordered:
        ET.SubElement(versioning, "latest").text = ordered[-1]
        ET.SubElement(versioning, "release").text = ordered[-1]
    versions_el = ET.SubElement(versioning, "versions")
    for version in ordered:
        ET.SubElement(versions_el, "version").text = version
    ET.SubElement(versioning, "lastUpdated").text = last_updated or maven_timestamp()

    return _to_xml(metadata)


def render_pom(group_id: str, artifact_id: str, version: str) -> bytes:
    """Render a minimal POM for an artifact uploaded without one."""
    project = ET.Element(
        "project",
        {
            "xmlns": "http://maven.apache.org/POM/4.0.0",
            "xmlns:xsi": "http://www.w3.org/2001/XMLSchema-instance",
            "xsi:schemaLocation": (
                "http://maven.apache.org/POM/4.0.0 "
                "http://maven.apache.org/xsd/maven-4.0.0.xsd"
            ),
        },
    )
    ET.SubElement(project, "modelVersion").text = "4.0.0"
    ET.SubElement(project, "groupId").text = group_id
    ET.SubElement(project, "artifactId").text = artifact_id
    ET.SubElement(project, "version").text = version
    ET.SubElement(project, "packaging").text = "jar"
    return _to_xml(project)


def parse_metadata_versions(document: bytes | str) -> list[str]:
    """Extract the version list from a metadata document."""
    root = ET.fromstring(document)
    return [el.text or "" for el in root.iterfind("versioning/versions/version")]


def list_version_dirs(coordinate_dir: Path) -> set[str]:
    """Names of the immediate subdirectories of a coordinate directory."""
    if not coordinate_dir.is_dir():
        return set()
    versions: set[str] = set()
    for entry in coordinate_dir.iterdir():
        try:
            if entry.is_dir():
                versions.add(entry.name)
        except OSError:
            continue
    return versions


class MetadataSynchronizer:
    """Keeps each coordinate's metadata document in sync with its version dirs."""

    def __init__(
        self,
        resolver: ArtifactPathResolver,
        *,
        metadata_filename: str = DEFAULT_METADATA_FILENAME,
    ) -> None:
        self._resolver = resolver
        self._filename = metadata_filename
        self._log = logger.bind(component="metadata")

    @property
    def filename(self) -> str:
        return self._filename

    def metadata_path(self, repository: str, group_id: str, artifact_id: str) -> Path:
        return self._resolver.coordinate_dir(repository, group_id, artifact_id) / self._filename

    def record_version(
        self,
        repository: str,
        group_id: str,
        artifact_id: str,
        version: str,
    ) -> list[str]:
        """Union ``version`` with the versions on disk and rewrite the document.

        Returns:
            The full ordered version list written
        """
        validate_segment(version, field_name="version")
        return self._rewrite(repository, group_id, artifact_id, version=version)

    def regenerate(self, repository: str, group_id: str, artifact_id: str) -> list[str]:
        """Rewrite the document from disk state alone."""
        return self._rewrite(repository, group_id, artifact_id)

    def _rewrite(
        self,
        repository: str,
        group_id: str,
        artifact_id: str,
        version: str | None = None,
    ) -> list[str]:
        coordinate_dir = self._resolver.coordinate_dir(repository, group_id, artifact_id)

        with get_coordinate_lock(coordinate_dir):
            try:
                coordinate_dir.mkdir(parents=True, exist_ok=True)
                if version is not None:
                    # The placed version always owns a directory, so a later
                    # rewrite from disk still lists it
                    (coordinate_dir / version).mkdir(exist_ok=True)
                versions = sort_versions(list_version_dirs(coordinate_dir))
                write_atomic(
                    coordinate_dir / self._filename,
                    render_metadata(group_id, artifact_id, versions),
                )
            except OSError as exc:
                self._log.error(
                    "storage.metadata.write_failed",
                    coordinate=str(coordinate_dir),
                    error=str(exc),
                )
                raise StorageFaultError(
                    message="Could not write artifact metadata",
                    details={"groupId": group_id, "artifactId": artifact_id},
                ) from exc

        self._log.info(
            "storage.metadata.write",
            repository=repository,
            group_id=group_id,
            artifact_id=artifact_id,
            versions=versions,
        )
        return versions
