"""
In-memory index of files the manager has materialized.

The index maps an artifact name to its tracked files, at most one per medium.
It is not persisted: a new manager starts with an empty index.
"""

from __future__ import annotations

import threading

from .types import Medium, TrackedFile


def _medium_key(medium: Medium | str) -> str:
    return medium.value if isinstance(medium, Medium) else str(medium)


class FileIndex:
    """
    Thread-safe mapping of artifact name -> tracked files.

    The lock protects the mapping itself. It does not serialize multi-step
    operations on one artifact; ArtifactManager holds a per-name lock for that.
    """

    def __init__(self) -> None:
        self._files: dict[str, list[TrackedFile]] = {}
        self._lock = threading.Lock()

    def get(self, name: str, medium: Medium | str) -> TrackedFile | None:
        """Return the tracked file for (name, medium), or None."""
        key = _medium_key(medium)
        with self._lock:
            for tracked in self._files.get(name, ()):
                if _medium_key(tracked.medium) == key:
                    return tracked
        return None

    def files(self, name: str) -> list[TrackedFile]:
        """Snapshot of the tracked files for `name`, in insertion order."""
        with self._lock:
            return list(self._files.get(name, ()))

    def names(self) -> list[str]:
        with self._lock:
            return sorted(self._files)

    def put(self, name: str, tracked: TrackedFile) -> None:
        """
        Add or replace the entry for (name, tracked.medium).

        Replacing keeps the entry's position so RemoveAll order is stable.
        """
        key = _medium_key(tracked.medium)
        with self._lock:
            entries = self._files.setdefault(name, [])
            for i, existing in enumerate(entries):
                if _medium_key(existing.medium) == key:
                    entries[i] = tracked
                    return
            entries.append(tracked)

    def remove(self, name: str, medium: Medium | str) -> TrackedFile | None:
        """Drop the entry for (name, medium); returns the removed entry."""
        key = _medium_key(medium)
        with self._lock:
            entries = self._files.get(name)
            if not entries:
                return None
            for i, existing in enumerate(entries):
                if _medium_key(existing.medium) == key:
                    del entries[i]
                    if not entries:
                        del self._files[name]
                    return existing
        return None

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._files

    def __len__(self) -> int:
        with self._lock:
            return sum(len(entries) for entries in self._files.values())
