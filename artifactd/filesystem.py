"""
Filesystem capability used by the artifact manager.

The manager never touches `os` directly; it goes through a FileSystem so the
reconciliation logic can be exercised against an in-memory double.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import BinaryIO, Protocol

DEFAULT_FILE_MODE = 0o600


class FileSystem(Protocol):
    """Narrow filesystem contract: the only operations the engine needs."""

    def stat(self, path: str) -> os.stat_result: ...

    def read_file(self, path: str) -> bytes: ...

    def write_file(self, path: str, data: bytes, mode: int = DEFAULT_FILE_MODE) -> None: ...

    def remove(self, path: str) -> None: ...

    def rename(self, old_path: str, new_path: str) -> None: ...

    def open(self, path: str) -> BinaryIO: ...

    def exists(self, path: str) -> bool: ...


class OSFileSystem:
    """FileSystem backed by the local operating system."""

    def stat(self, path: str) -> os.stat_result:
        return os.stat(path)

    def read_file(self, path: str) -> bytes:
        return Path(path).read_bytes()

    def write_file(self, path: str, data: bytes, mode: int = DEFAULT_FILE_MODE) -> None:
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(target, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, mode)
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        # O_CREAT only applies the mode to new files
        os.chmod(target, mode)

    def remove(self, path: str) -> None:
        os.remove(path)

    def rename(self, old_path: str, new_path: str) -> None:
        os.replace(old_path, new_path)

    def open(self, path: str) -> BinaryIO:
        return open(path, "rb")

    def exists(self, path: str) -> bool:
        """
        Check whether `path` exists.

        Only "does not exist" maps to False; any other stat failure
        (e.g. permission denied) is raised.
        """
        try:
            os.stat(path)
        except FileNotFoundError:
            return False
        return True
