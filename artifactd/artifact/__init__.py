"""
Artifact model: types, priorities, file naming and the in-memory index.

The manager that drives filesystem changes lives in
`artifactd.artifact.manager` and is imported from there.
"""

from .index import FileIndex
from .naming import artifact_path
from .priority import (
    ANNOTATION_KEY,
    DEFAULT_PRIORITY,
    MAX_PRIORITY,
    MIN_PRIORITY,
    extract_priority,
    name_from_priority,
    name_from_priority_and_sub_priority,
    sub_priority,
    validate_priority,
)
from .types import (
    ABSENT,
    DEFAULT_LAYOUT,
    DEFAULT_OBJECT_KEY,
    Absent,
    ArtifactLayout,
    ArtifactType,
    InlineContent,
    Medium,
    OCIArtifact,
    ObjectRef,
    PullSecretRef,
    TrackedFile,
)

__all__ = [
    # Types
    "ABSENT",
    "Absent",
    "ArtifactLayout",
    "ArtifactType",
    "DEFAULT_LAYOUT",
    "DEFAULT_OBJECT_KEY",
    "InlineContent",
    "Medium",
    "OCIArtifact",
    "ObjectRef",
    "PullSecretRef",
    "TrackedFile",
    # Priority
    "ANNOTATION_KEY",
    "DEFAULT_PRIORITY",
    "MAX_PRIORITY",
    "MIN_PRIORITY",
    "extract_priority",
    "name_from_priority",
    "name_from_priority_and_sub_priority",
    "sub_priority",
    "validate_priority",
    # Naming / index
    "artifact_path",
    "FileIndex",
]
