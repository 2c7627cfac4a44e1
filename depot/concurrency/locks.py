"""Coordinate-level in-process locks for metadata rewrites.

Used by MetadataSynchronizer so two placements under the same artifact
coordinate cannot interleave their read-versions / write-document steps and
lose each other's version. Different coordinates never contend.

Filesystem work runs in worker threads, so these are ``threading`` locks.

Entries are never dropped, so a coordinate keeps one lock for the life of
the process even across deletion and re-creation of its directory.

Note: These locks only work within a single process.
"""

from __future__ import annotations

import threading
from pathlib import Path

# Key: canonical coordinate directory, Value: threading.Lock
_coordinate_locks: dict[str, threading.Lock] = {}
_coordinate_locks_lock = threading.Lock()


def get_coordinate_lock(coordinate_dir: Path | str) -> threading.Lock:
    """Get or create the lock guarding one coordinate directory.

    Args:
        coordinate_dir: Resolved coordinate directory

    Returns:
        threading.Lock for the coordinate
    """
    key = str(coordinate_dir)
    with _coordinate_locks_lock:
        lock = _coordinate_locks.get(key)
        if lock is None:
            lock = threading.Lock()
            _coordinate_locks[key] = lock
        return lock


def get_lock_count() -> int:
    """Get current number of locks (for testing/metrics)."""
    return len(_coordinate_locks)
