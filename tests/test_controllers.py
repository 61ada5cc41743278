from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from artifactd.artifact.manager import ArtifactManager
from artifactd.artifact.types import OCIArtifact, ObjectRef
from artifactd.controllers import (
    PLUGINS_CONFIG_NAME,
    ConfigController,
    PluginController,
    Reconciler,
    RulesfileController,
)
from artifactd.errors import RegistryError
from artifactd.resources import Config, Metadata, Plugin, PluginConfig, Rulesfile

PLUGINS_CONFIG_PATH = "/etc/falco/config.d/99-plugins-config.yaml"


@pytest.fixture
def manager_factory(fake_fs, fake_puller, fake_extractor, fake_store, fake_credentials):
    def build() -> ArtifactManager:
        return ArtifactManager(
            "falco",
            fs=fake_fs,
            puller=fake_puller,
            credentials=fake_credentials,
            object_store=fake_store,
            extractor=fake_extractor,
            os_name="linux",
            arch="amd64",
        )

    return build


def _rulesfile(**spec) -> Rulesfile:
    return Rulesfile(metadata=Metadata("baseline", "falco"), priority=50, **spec)


def _plugin(name: str, **spec) -> Plugin:
    return Plugin(metadata=Metadata(name, "falco"), oci_artifact=OCIArtifact(f"ghcr.io/plugins/{name}:1"), **spec)


class TestRulesfileController:
    def test_reconciles_each_medium(self, manager, fake_fs, fake_store) -> None:
        fake_store.put("falco", "extra", {"rules.yaml": "cm"})
        rf = _rulesfile(
            oci_artifact=OCIArtifact("ghcr.io/rules:1"), inline_rules="inline", config_map_ref=ObjectRef("extra")
        )

        outcome = RulesfileController(manager).reconcile(rf)

        assert outcome.ok
        assert [m.reason for m in outcome.mediums] == ["OCIArtifactStored", "InlineRulesStored", "ConfigMapResolved"]
        assert len(fake_fs.files) == 3

    def test_one_failing_medium_does_not_skip_others(self, manager, fake_fs, fake_puller) -> None:
        fake_puller.error = RegistryError("unreachable")
        rf = _rulesfile(oci_artifact=OCIArtifact("ghcr.io/rules:1"), inline_rules="inline")

        outcome = RulesfileController(manager).reconcile(rf)

        assert not outcome.ok
        [failure] = outcome.failures
        assert failure.reason == "OCIArtifactStoreFailed"
        assert "unreachable" in failure.message
        assert list(fake_fs.files) == ["/etc/falco/rules.d/50-03-baseline-inline.yaml"]

    def test_dropped_medium_is_withdrawn(self, manager, fake_fs) -> None:
        controller = RulesfileController(manager)
        controller.reconcile(_rulesfile(inline_rules="inline"))

        outcome = controller.reconcile(_rulesfile())

        assert outcome.ok and outcome.mediums == []
        assert fake_fs.files == {}

    def test_delete(self, manager, fake_fs) -> None:
        controller = RulesfileController(manager)
        rf = _rulesfile(inline_rules="inline")
        controller.reconcile(rf)

        outcome = controller.delete(rf)

        assert outcome.deleted and outcome.ok
        assert fake_fs.files == {}


class TestPluginController:
    def test_stores_library_and_aggregated_config(self, manager, fake_fs) -> None:
        controller = PluginController(manager)

        assert controller.reconcile(_plugin("k8smeta")).ok
        assert controller.reconcile(_plugin("json", config=PluginConfig(init_config={"a": 1}))).ok

        assert "/usr/share/falco/plugins/k8smeta.so" in fake_fs.files
        doc = yaml.safe_load(fake_fs.files[PLUGINS_CONFIG_PATH])
        assert doc["load_plugins"] == ["k8smeta", "json"]
        assert doc["plugins"][0] == {"name": "k8smeta", "library_path": "/usr/share/falco/plugins/k8smeta.so"}
        assert doc["plugins"][1]["init_config"] == {"a": 1}

    def test_config_overrides(self, manager, fake_fs) -> None:
        plugin = _plugin("k8smeta", config=PluginConfig(name="k8s", library_path="/opt/k8s.so", open_params="x"))
        PluginController(manager).reconcile(plugin)

        doc = yaml.safe_load(fake_fs.files[PLUGINS_CONFIG_PATH])
        assert doc["plugins"] == [{"name": "k8s", "library_path": "/opt/k8s.so", "open_params": "x"}]
        assert doc["load_plugins"] == ["k8s"]

    def test_failed_pull_skips_config(self, manager, fake_fs, fake_puller) -> None:
        fake_puller.error = RegistryError("denied")

        outcome = PluginController(manager).reconcile(_plugin("k8smeta"))

        assert [m.reason for m in outcome.mediums] == ["OCIArtifactStoreFailed"]
        assert PLUGINS_CONFIG_PATH not in fake_fs.files

    def test_config_write_failure_is_reported(self, manager, fake_fs) -> None:
        fake_fs.errors["write_file"] = PermissionError("read-only")

        outcome = PluginController(manager).reconcile(_plugin("k8smeta"))

        assert not outcome.ok
        assert [m.reason for m in outcome.mediums] == ["OCIArtifactStored", "InlinePluginConfigStoreFailed"]
        assert "read-only" in outcome.mediums[-1].message

    def test_deleting_last_plugin_removes_config(self, manager, fake_fs) -> None:
        controller = PluginController(manager)
        a, b = _plugin("a"), _plugin("b")
        controller.reconcile(a)
        controller.reconcile(b)

        controller.delete(a)
        doc = yaml.safe_load(fake_fs.files[PLUGINS_CONFIG_PATH])
        assert doc["load_plugins"] == ["b"]

        outcome = controller.delete(b)
        assert outcome.ok
        assert fake_fs.files == {}


class TestConfigController:
    def test_stores_fragment(self, manager, fake_fs) -> None:
        config = Config(metadata=Metadata("engine", "falco"), priority=10, config="engine: {}\n")
        outcome = ConfigController(manager).reconcile(config)

        assert outcome.ok
        assert fake_fs.files == {"/etc/falco/config.d/10-engine.yaml": b"engine: {}\n"}


class TestReconciler:
    def _write(self, directory: Path, name: str, text: str) -> None:
        (directory / name).write_text(text, encoding="utf-8")

    def test_pass_reconciles_and_deletes_vanished(self, tmp_path: Path, manager_factory, fake_fs) -> None:
        self._write(
            tmp_path,
            "rules.yaml",
            "kind: Rulesfile\nmetadata: {name: baseline}\nspec: {priority: 50, inlineRules: 'r'}\n",
        )
        self._write(tmp_path, "config.yaml", "kind: Config\nmetadata: {name: baseline}\nspec: {config: 'c'}\n")
        reconciler = Reconciler(manager_factory, namespace="falco")

        report = reconciler.run_once(tmp_path)

        assert report.ok
        assert sorted(fake_fs.files) == [
            "/etc/falco/config.d/00-baseline.yaml",
            "/etc/falco/rules.d/50-03-baseline-inline.yaml",
        ]

        (tmp_path / "rules.yaml").unlink()
        report = reconciler.run_once(tmp_path)

        assert report.ok
        assert [o.deleted for o in report.outcomes] == [True, False]
        assert list(fake_fs.files) == ["/etc/falco/config.d/00-baseline.yaml"]
        assert reconciler.known == [("Config", "falco", "baseline")]

    def test_broken_manifests_leave_work_area_alone(self, tmp_path: Path, manager_factory, fake_fs) -> None:
        self._write(tmp_path, "config.yaml", "kind: Config\nmetadata: {name: engine}\nspec: {config: 'c'}\n")
        reconciler = Reconciler(manager_factory)
        reconciler.run_once(tmp_path)

        self._write(tmp_path, "config.yaml", "kind: [broken\n")
        report = reconciler.run_once(tmp_path)

        assert not report.ok
        assert report.errors and "config.yaml" in report.errors[0]
        assert list(fake_fs.files) == ["/etc/falco/config.d/00-engine.yaml"]

    def test_failures_are_reported_not_raised(self, tmp_path: Path, manager_factory, fake_puller) -> None:
        fake_puller.error = RegistryError("boom")
        self._write(
            tmp_path,
            "rules.yaml",
            "kind: Rulesfile\nmetadata: {name: baseline}\nspec: {ociArtifact: {reference: 'ghcr.io/r:1'}}\n",
        )

        report = Reconciler(manager_factory).run_once(tmp_path)

        assert not report.ok
        assert report.failed[0].name == "baseline"
