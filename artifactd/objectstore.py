"""
Object-store lookup for externally managed configuration objects.

An object is a namespaced key/value document. The manager only ever reads
one key of one object, but lookups return the whole mapping so callers can
tell "object missing" apart from "key missing".
"""

from __future__ import annotations

from pathlib import Path
from typing import Protocol

import yaml

from .cancel import CancelToken
from .errors import ObjectNotFoundError, ObjectStoreError


class ObjectStore(Protocol):
    def get(self, name: str, namespace: str, token: CancelToken | None = None) -> dict[str, str]:
        """
        Fetch an object's data mapping.

        Raises:
            ObjectNotFoundError: The object does not exist.
            ObjectStoreError: Any other lookup failure.
        """
        ...


class DirectoryObjectStore:
    """
    Objects stored as YAML documents on disk.

    Layout:

        <root>/<namespace>/<name>.yaml

    Each document carries its content under a top-level `data:` mapping:

        data:
          rules.yaml: |
            - rule: ...
    """

    SUFFIX = ".yaml"

    def __init__(self, root: Path):
        self.root = Path(root)

    def _object_path(self, name: str, namespace: str) -> Path:
        for part in (name, namespace):
            if not part or "/" in part or "\\" in part or part in {".", ".."}:
                raise ObjectStoreError(f"invalid object reference {namespace!r}/{name!r}")
        return self.root / namespace / f"{name}{self.SUFFIX}"

    def get(self, name: str, namespace: str, token: CancelToken | None = None) -> dict[str, str]:
        if token is not None:
            token.check()

        path = self._object_path(name, namespace)
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError as e:
            raise ObjectNotFoundError(name, namespace) from e
        except OSError as e:
            raise ObjectStoreError(f"unable to read object {namespace}/{name}: {e}") from e

        try:
            document = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise ObjectStoreError(f"malformed object {namespace}/{name}: {e}") from e

        if document is None:
            return {}
        if not isinstance(document, dict):
            raise ObjectStoreError(f"malformed object {namespace}/{name}: expected a mapping")

        data = document.get("data") or {}
        if not isinstance(data, dict):
            raise ObjectStoreError(f"malformed object {namespace}/{name}: 'data' must be a mapping")

        return {str(k): "" if v is None else str(v) for k, v in data.items()}
