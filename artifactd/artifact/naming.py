"""On-disk naming for materialized artifacts."""

from __future__ import annotations

import os

from .priority import name_from_priority, name_from_priority_and_sub_priority, sub_priority
from .types import DEFAULT_LAYOUT, ArtifactLayout, ArtifactType, Medium


def _medium_value(medium: Medium | str) -> str:
    return medium.value if isinstance(medium, Medium) else str(medium)


def artifact_path(
    name: str,
    priority: int,
    medium: Medium | str,
    artifact_type: ArtifactType | str,
    layout: ArtifactLayout | None = None,
) -> str:
    """
    Compute the file path an artifact is materialized at.

    Pure function of its inputs:

        rulesfile: <rulesfile_dir>/PP-SS-<name>-<medium>.yaml
        plugin:    <plugin_dir>/<name>.so
        config:    <config_dir>/PP-<name>.yaml
        other:     PP-<name>

    Args:
        name: Logical artifact name
        priority: Caller priority (0-99)
        medium: Source medium; only rulesfiles encode it
        artifact_type: Determines directory and naming scheme
        layout: Work-area directories (defaults to DEFAULT_LAYOUT)

    Returns:
        Normalized path string
    """
    layout = layout or DEFAULT_LAYOUT

    if artifact_type == ArtifactType.RULESFILE:
        medium_value = _medium_value(medium)
        file_name = name_from_priority_and_sub_priority(
            priority, sub_priority(medium), f"{name}-{medium_value}.yaml"
        )
        return os.path.normpath(os.path.join(layout.rulesfile_dir, file_name))

    if artifact_type == ArtifactType.PLUGIN:
        return os.path.normpath(os.path.join(layout.plugin_dir, f"{name}.so"))

    if artifact_type == ArtifactType.CONFIG:
        return os.path.normpath(os.path.join(layout.config_dir, name_from_priority(priority, f"{name}.yaml")))

    return name_from_priority(priority, name)
