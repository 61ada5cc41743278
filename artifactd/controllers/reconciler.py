"""
One reconciliation pass over a manifest directory.

The reconciler remembers the resources it saw in the previous pass; any that
have disappeared from the manifests are deleted before the current ones are
reconciled. Failures are collected in the PassReport, never raised.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

from ..artifact.manager import ArtifactManager
from ..errors import ManifestError
from ..logger import get_logger
from ..resources import KIND_CONFIG, KIND_PLUGIN, KIND_RULESFILE, Resource, load_manifests, resource_key
from .base import ResourceOutcome
from .config import ConfigController
from .plugin import PluginController
from .rulesfile import RulesfileController


@dataclass
class PassReport:
    outcomes: list[ResourceOutcome] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors and all(o.ok for o in self.outcomes)

    @property
    def failed(self) -> list[ResourceOutcome]:
        return [o for o in self.outcomes if not o.ok]


class Reconciler:
    """
    Drives the controllers from manifests on disk.

    Args:
        manager_factory: Builds one ArtifactManager per controller, so artifacts
            of different kinds never share index entries
        namespace: Default namespace for manifests that omit one
        timeout_s: Per-call deadline handed to network-bound operations
    """

    def __init__(
        self,
        manager_factory: Callable[[], ArtifactManager],
        *,
        namespace: str = "default",
        timeout_s: float | None = None,
    ):
        self.namespace = namespace
        self.rulesfiles = RulesfileController(manager_factory(), timeout_s=timeout_s)
        self.plugins = PluginController(manager_factory(), timeout_s=timeout_s)
        self.configs = ConfigController(manager_factory(), timeout_s=timeout_s)
        self._known: dict[tuple[str, str, str], Resource] = {}
        self._log = get_logger()

    def _controller(self, kind: str):
        if kind == KIND_RULESFILE:
            return self.rulesfiles
        if kind == KIND_PLUGIN:
            return self.plugins
        if kind == KIND_CONFIG:
            return self.configs
        raise ValueError(f"unsupported kind {kind!r}")

    @property
    def known(self) -> list[tuple[str, str, str]]:
        return sorted(self._known)

    def run_once(self, manifest_dir: Path) -> PassReport:
        report = PassReport()

        try:
            resources = load_manifests(manifest_dir, self.namespace)
        except ManifestError as e:
            # Leave the work area untouched until the manifests are readable again.
            self._log.error("Unable to load manifests: {}", e)
            report.errors.append(str(e))
            return report

        current = {resource_key(r): r for r in resources}

        for key, previous in list(self._known.items()):
            if key in current:
                continue
            outcome = self._controller(previous.kind).delete(previous)
            report.outcomes.append(outcome)
            if outcome.ok:
                del self._known[key]

        for key, resource in current.items():
            outcome = self._controller(resource.kind).reconcile(resource)
            report.outcomes.append(outcome)
            self._known[key] = resource

        self._log.info(
            "Reconciliation pass finished: {} resource(s), {} failed",
            len(report.outcomes),
            len(report.failed),
        )
        return report
