"""
Priority handling.

Priorities are two-digit integers embedded at the front of file names so the
consumer, which loads files in name order, sees them in priority order. A
fixed per-medium sub-priority breaks ties between mediums of one artifact.
"""

from __future__ import annotations

from typing import Any, Mapping

from .types import Medium

ANNOTATION_KEY = "artifactd.io/priority"

MIN_PRIORITY = 0
MAX_PRIORITY = 99
DEFAULT_PRIORITY = 0

OCI_SUB_PRIORITY = 1
OBJECT_REF_SUB_PRIORITY = 2
INLINE_SUB_PRIORITY = 3

_SUB_PRIORITIES: dict[str, int] = {
    Medium.OCI.value: OCI_SUB_PRIORITY,
    Medium.OBJECT_REF.value: OBJECT_REF_SUB_PRIORITY,
    Medium.INLINE.value: INLINE_SUB_PRIORITY,
}


def sub_priority(medium: Medium | str) -> int:
    """Sub-priority for a medium; unknown mediums sort last."""
    key = medium.value if isinstance(medium, Medium) else str(medium)
    return _SUB_PRIORITIES.get(key, MAX_PRIORITY)


def validate_priority(value: Any) -> int:
    """
    Coerce and range-check a priority.

    Args:
        value: An int or a numeric string.

    Returns:
        The priority as an int in [MIN_PRIORITY, MAX_PRIORITY].

    Raises:
        ValueError: If the value is not an integer or is out of range.
    """
    if isinstance(value, bool):
        raise ValueError(f"invalid priority {value!r}: must be an integer")
    try:
        priority = int(str(value).strip()) if not isinstance(value, int) else value
    except ValueError as e:
        raise ValueError(f"invalid priority {value!r}: must be an integer") from e
    if not MIN_PRIORITY <= priority <= MAX_PRIORITY:
        raise ValueError(f"invalid priority {priority}: must be between {MIN_PRIORITY} and {MAX_PRIORITY}")
    return priority


def extract_priority(annotations: Mapping[str, str] | None) -> int:
    """Read the priority annotation, falling back to DEFAULT_PRIORITY."""
    if not annotations or ANNOTATION_KEY not in annotations:
        return DEFAULT_PRIORITY
    try:
        return validate_priority(annotations[ANNOTATION_KEY])
    except ValueError as e:
        raise ValueError(f"invalid priority annotation {ANNOTATION_KEY!r}: {e}") from e


def name_from_priority(priority: int, name: str) -> str:
    return f"{priority:02d}-{name}"


def name_from_priority_and_sub_priority(priority: int, sub: int, name: str) -> str:
    return f"{priority:02d}-{sub:02d}-{name}"
