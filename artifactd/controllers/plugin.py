"""
Plugin controller.

Each Plugin resource contributes a shared library pulled from a registry and
an entry in one aggregated configuration fragment, written at the highest
priority so it is loaded after every other config fragment:

    plugins:
      - name: k8smeta
        library_path: /usr/share/falco/plugins/k8smeta.so
        init_config: {...}
    load_plugins: [k8smeta]
"""

from __future__ import annotations

from typing import Any

import yaml

from ..artifact.manager import ArtifactManager
from ..artifact.priority import DEFAULT_PRIORITY, MAX_PRIORITY
from ..artifact.types import ABSENT, ArtifactType, InlineContent, Medium
from ..logger import get_logger
from ..resources import KIND_PLUGIN, Plugin
from .base import (
    REASON_INLINE_PLUGIN_CONFIG_STORE_FAILED,
    REASON_INLINE_PLUGIN_CONFIG_STORED,
    REASON_OCI_ARTIFACT_STORE_FAILED,
    REASON_OCI_ARTIFACT_STORED,
    MediumOutcome,
    ResourceOutcome,
    Step,
    remove_resource,
)

PLUGINS_CONFIG_NAME = "plugins-config"


class PluginsConfig:
    """Ordered plugin entries, keyed by the declaring resource's name."""

    def __init__(self) -> None:
        self._entries: dict[str, dict[str, Any]] = {}

    def add(self, plugin: Plugin, default_library_path: str) -> None:
        name = plugin.metadata.name
        entry: dict[str, Any] = {"name": name, "library_path": default_library_path}

        cfg = plugin.config
        if cfg is not None:
            if cfg.name:
                entry["name"] = cfg.name
            if cfg.library_path:
                entry["library_path"] = cfg.library_path
            if cfg.init_config:
                entry["init_config"] = dict(cfg.init_config)
            if cfg.open_params:
                entry["open_params"] = cfg.open_params

        self._entries[name] = entry

    def remove(self, name: str) -> None:
        self._entries.pop(name, None)

    def is_empty(self) -> bool:
        return not self._entries

    def render(self) -> str:
        entries = list(self._entries.values())
        doc = {
            "plugins": entries,
            "load_plugins": [e["name"] for e in entries],
        }
        return yaml.safe_dump(doc, sort_keys=False)


class PluginController:
    def __init__(self, manager: ArtifactManager, *, timeout_s: float | None = None):
        self.manager = manager
        self.timeout_s = timeout_s
        self.plugins_config = PluginsConfig()

    def reconcile(self, plugin: Plugin) -> ResourceOutcome:
        meta = plugin.metadata
        name = meta.name
        log = get_logger().bind(artifact=name)
        step = Step(log, self.timeout_s)
        outcome = ResourceOutcome(KIND_PLUGIN, meta.namespace, name)

        oci = plugin.oci_artifact
        stored = step(
            Medium.OCI.value,
            lambda: self.manager.store_from_oci(
                name, DEFAULT_PRIORITY, ArtifactType.PLUGIN, oci or ABSENT, token=step.token()
            ),
            present=oci is not None,
            ok_reason=REASON_OCI_ARTIFACT_STORED,
            ok_message="OCI artifact stored successfully",
            fail_reason=REASON_OCI_ARTIFACT_STORE_FAILED,
            fail_message="Failed to store OCI artifact",
        )
        if stored is not None:
            outcome.mediums.append(stored)
            if not stored.ok:
                return outcome

        default_path = self.manager.path(name, DEFAULT_PRIORITY, Medium.OCI, ArtifactType.PLUGIN)
        self.plugins_config.add(plugin, default_path)
        outcome.mediums.append(self._store_config(log))

        if outcome.ok:
            log.info("Plugin reconciled successfully")
        return outcome

    def delete(self, plugin: Plugin) -> ResourceOutcome:
        meta = plugin.metadata
        outcome = remove_resource(self.manager, KIND_PLUGIN, meta.namespace, meta.name)
        if not outcome.ok:
            return outcome

        log = get_logger().bind(artifact=meta.name)
        self.plugins_config.remove(meta.name)
        outcome.mediums.append(self._store_config(log))
        return outcome

    def _store_config(self, log) -> MediumOutcome:
        """Write the aggregated fragment, or remove it once no plugin is left."""
        if self.plugins_config.is_empty():
            log.info("Plugin configuration is empty, removing {}", PLUGINS_CONFIG_NAME)

            def action() -> None:
                self.manager.remove_all(PLUGINS_CONFIG_NAME)

        else:
            content = InlineContent(self.plugins_config.render())

            def action() -> None:
                self.manager.store_from_inline(PLUGINS_CONFIG_NAME, MAX_PRIORITY, content, ArtifactType.CONFIG)

        return Step(log).store(
            Medium.INLINE.value,
            action,
            ok_reason=REASON_INLINE_PLUGIN_CONFIG_STORED,
            ok_message="Inline plugin configuration stored successfully",
            fail_reason=REASON_INLINE_PLUGIN_CONFIG_STORE_FAILED,
            fail_message="Failed to store inline plugin config",
        )
