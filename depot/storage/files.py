"""Low-level file helpers shared by the storage layer."""

from __future__ import annotations

import os
import shutil
import tempfile
from collections.abc import Iterable
from pathlib import Path
from typing import BinaryIO

import structlog

logger = structlog.get_logger()

_COPY_CHUNK = 1024 * 1024


def write_atomic(path: Path, content: bytes | BinaryIO | Iterable[bytes]) -> int:
    """Atomically replace ``path`` with ``content``.

    Writes to a temporary file in the same directory, fsyncs, then renames
    into place, so readers see either the old or the new file, never a
    partial one.

    Returns:
        Number of bytes written
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(
        "wb", dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp", delete=False
    ) as handle:
        temp_name = handle.name
        try:
            if isinstance(content, (bytes, bytearray)):
                handle.write(content)
            elif hasattr(content, "read"):
                shutil.copyfileobj(content, handle, _COPY_CHUNK)
            else:
                for chunk in content:
                    handle.write(chunk)
            handle.flush()
            try:
                os.fsync(handle.fileno())
            except OSError as exc:
                logger.warning("storage.fsync_failed", path=str(path), error=str(exc))
            written = handle.tell()
        except BaseException:
            handle.close()
            Path(temp_name).unlink(missing_ok=True)
            raise
    os.replace(temp_name, path)
    return written


def remove_tree(target: Path) -> int:
    """Remove ``target`` bottom-up, children before parents.

    Entries that disappear between listing and removal count as already
    deleted. Other per-entry failures are logged and skipped.

    Returns:
        Number of entries removed
    """
    if not target.is_dir() or target.is_symlink():
        try:
            target.unlink()
        except FileNotFoundError:
            return 0
        return 1

    removed = 0
    for dirpath, dirnames, filenames in os.walk(target, topdown=False):
        current = Path(dirpath)
        for name in filenames:
            removed += _remove_entry(current / name, is_dir=False)
        for name in dirnames:
            entry = current / name
            # os.walk lists directory symlinks in dirnames without descending
            removed += _remove_entry(entry, is_dir=not entry.is_symlink())
    removed += _remove_entry(target, is_dir=True)
    return removed


def _remove_entry(entry: Path, *, is_dir: bool) -> int:
    try:
        if is_dir:
            entry.rmdir()
        else:
            entry.unlink()
    except FileNotFoundError:
        return 0
    except OSError as exc:
        logger.warning("storage.delete.entry_skipped", path=str(entry), error=str(exc))
        return 0
    return 1
