"""Config controller: inline configuration fragments."""

from __future__ import annotations

from ..artifact.manager import ArtifactManager
from ..artifact.types import ABSENT, ArtifactType, InlineContent, Medium
from ..logger import get_logger
from ..resources import KIND_CONFIG, Config
from .base import (
    REASON_INLINE_CONFIG_STORE_FAILED,
    REASON_INLINE_CONFIG_STORED,
    MediumOutcome,
    ResourceOutcome,
    Step,
    remove_resource,
)


class ConfigController:
    def __init__(self, manager: ArtifactManager, *, timeout_s: float | None = None):
        self.manager = manager
        self.timeout_s = timeout_s

    def reconcile(self, config: Config) -> ResourceOutcome:
        meta = config.metadata
        log = get_logger().bind(artifact=meta.name)

        result = Step(log, self.timeout_s)(
            Medium.INLINE.value,
            lambda: self.manager.store_from_inline(
                meta.name,
                config.priority,
                InlineContent(config.config) if config.config is not None else ABSENT,
                ArtifactType.CONFIG,
            ),
            present=config.config is not None,
            ok_reason=REASON_INLINE_CONFIG_STORED,
            ok_message="Inline configuration stored successfully",
            fail_reason=REASON_INLINE_CONFIG_STORE_FAILED,
            fail_message="Failed to store config",
        )

        mediums = [result] if isinstance(result, MediumOutcome) else []
        return ResourceOutcome(KIND_CONFIG, meta.namespace, meta.name, mediums)

    def delete(self, config: Config) -> ResourceOutcome:
        meta = config.metadata
        return remove_resource(self.manager, KIND_CONFIG, meta.namespace, meta.name)
