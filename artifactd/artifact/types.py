"""
Core value types for artifact reconciliation.

An artifact is identified by (name, ArtifactType). Each artifact may be fed by
up to one source per Medium; the manager tracks at most one TrackedFile per
(name, medium).

Sources are passed to the manager as an explicit choice between a concrete
source value and ABSENT. ABSENT means "this medium no longer applies" and
triggers removal of whatever was materialized for it.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Final, Union


class ArtifactType(str, Enum):
    RULESFILE = "rulesfile"
    PLUGIN = "plugin"
    CONFIG = "config"


class Medium(str, Enum):
    OCI = "oci"
    OBJECT_REF = "configmap"
    INLINE = "inline"


@dataclass(frozen=True)
class ArtifactLayout:
    """Work-area directories, one per artifact type."""

    rulesfile_dir: str = "/etc/falco/rules.d"
    config_dir: str = "/etc/falco/config.d"
    plugin_dir: str = "/usr/share/falco/plugins"

    def directory_for(self, artifact_type: ArtifactType | str) -> str:
        """Destination directory for pulled archives; empty for unknown types."""
        if artifact_type == ArtifactType.RULESFILE:
            return self.rulesfile_dir
        if artifact_type == ArtifactType.PLUGIN:
            return self.plugin_dir
        if artifact_type == ArtifactType.CONFIG:
            return self.config_dir
        return ""


DEFAULT_LAYOUT: Final = ArtifactLayout()


@dataclass(frozen=True)
class TrackedFile:
    """Index entry for one materialized file."""

    path: str
    medium: Medium | str
    priority: int


class Absent:
    """Marker type for a medium whose source has been withdrawn."""

    _instance: Absent | None = None

    def __new__(cls) -> Absent:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "ABSENT"

    def __bool__(self) -> bool:
        return False


ABSENT: Final = Absent()


@dataclass(frozen=True)
class PullSecretRef:
    """Reference to a secret holding registry credentials."""

    secret_name: str
    username_key: str = "username"
    password_key: str = "password"


@dataclass(frozen=True)
class OCIArtifact:
    reference: str
    pull_secret: PullSecretRef | None = None


@dataclass(frozen=True)
class InlineContent:
    data: str | bytes

    def to_bytes(self) -> bytes:
        if isinstance(self.data, bytes):
            return self.data
        return self.data.encode("utf-8")


DEFAULT_OBJECT_KEY: Final = "rules.yaml"


@dataclass(frozen=True)
class ObjectRef:
    """Reference to a key inside a namespaced external object."""

    name: str
    key: str = DEFAULT_OBJECT_KEY


OCISource = Union[OCIArtifact, Absent]
InlineSource = Union[InlineContent, Absent]
ObjectRefSource = Union[ObjectRef, Absent]
