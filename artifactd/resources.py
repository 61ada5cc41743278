"""
Declarative resources read from YAML manifests.

A manifest file holds one or more documents, each describing one resource:

    kind: Rulesfile
    metadata:
      name: baseline
      annotations:
        artifactd.io/priority: "50"
    spec:
      ociArtifact:
        reference: ghcr.io/falcosecurity/rules/falco-rules:latest
      inlineRules: |
        - rule: ...
      configMapRef:
        name: extra-rules

Supported kinds are Rulesfile, Plugin and Config. Unknown kinds and malformed
fields raise ManifestError naming the offending file.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Union

import yaml

from .artifact.priority import DEFAULT_PRIORITY, extract_priority, validate_priority
from .artifact.types import DEFAULT_OBJECT_KEY, OCIArtifact, ObjectRef, PullSecretRef
from .errors import ManifestError

KIND_RULESFILE = "Rulesfile"
KIND_PLUGIN = "Plugin"
KIND_CONFIG = "Config"

MANIFEST_SUFFIXES = (".yaml", ".yml")


@dataclass(frozen=True)
class Metadata:
    name: str
    namespace: str
    annotations: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class Rulesfile:
    metadata: Metadata
    priority: int = DEFAULT_PRIORITY
    oci_artifact: OCIArtifact | None = None
    inline_rules: str | None = None
    config_map_ref: ObjectRef | None = None
    kind: str = KIND_RULESFILE


@dataclass(frozen=True)
class PluginConfig:
    """Overrides for the plugin's entry in the aggregated plugins config."""

    name: str = ""
    library_path: str = ""
    init_config: dict[str, Any] = field(default_factory=dict)
    open_params: str = ""


@dataclass(frozen=True)
class Plugin:
    metadata: Metadata
    oci_artifact: OCIArtifact | None = None
    config: PluginConfig | None = None
    kind: str = KIND_PLUGIN


@dataclass(frozen=True)
class Config:
    metadata: Metadata
    priority: int = DEFAULT_PRIORITY
    config: str | None = None
    kind: str = KIND_CONFIG


Resource = Union[Rulesfile, Plugin, Config]


def resource_key(resource: Resource) -> tuple[str, str, str]:
    """Identity of a resource across passes: (kind, namespace, name)."""
    return (resource.kind, resource.metadata.namespace, resource.metadata.name)


def _mapping(value: Any, what: str) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError(f"{what} must be a mapping")
    return value


def _string(value: Any, what: str, *, required: bool = False) -> str:
    if value is None or value == "":
        if required:
            raise ValueError(f"{what} is required")
        return ""
    if not isinstance(value, str):
        raise ValueError(f"{what} must be a string")
    return value


def _parse_metadata(doc: dict[str, Any], default_namespace: str) -> Metadata:
    meta = _mapping(doc.get("metadata"), "metadata")
    name = _string(meta.get("name"), "metadata.name", required=True)
    namespace = _string(meta.get("namespace"), "metadata.namespace") or default_namespace
    annotations = {str(k): str(v) for k, v in _mapping(meta.get("annotations"), "metadata.annotations").items()}
    return Metadata(name=name, namespace=namespace, annotations=annotations)


def _parse_priority(spec: dict[str, Any], metadata: Metadata) -> int:
    """spec.priority wins over the priority annotation."""
    if spec.get("priority") is not None:
        return validate_priority(spec["priority"])
    return extract_priority(metadata.annotations)


def _parse_oci(value: Any) -> OCIArtifact | None:
    if value is None:
        return None
    oci = _mapping(value, "spec.ociArtifact")
    reference = _string(oci.get("reference"), "spec.ociArtifact.reference", required=True)

    pull_secret = None
    if oci.get("pullSecret") is not None:
        secret = _mapping(oci["pullSecret"], "spec.ociArtifact.pullSecret")
        pull_secret = PullSecretRef(
            secret_name=_string(secret.get("secretName"), "spec.ociArtifact.pullSecret.secretName", required=True),
            username_key=_string(secret.get("usernameKey"), "usernameKey") or "username",
            password_key=_string(secret.get("passwordKey"), "passwordKey") or "password",
        )
    return OCIArtifact(reference=reference, pull_secret=pull_secret)


def _parse_object_ref(value: Any) -> ObjectRef | None:
    if value is None:
        return None
    ref = _mapping(value, "spec.configMapRef")
    return ObjectRef(
        name=_string(ref.get("name"), "spec.configMapRef.name", required=True),
        key=_string(ref.get("key"), "spec.configMapRef.key") or DEFAULT_OBJECT_KEY,
    )


def _parse_inline(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, str):
        return value
    # Structured YAML is accepted and re-serialized.
    return yaml.safe_dump(value, sort_keys=False)


def _parse_rulesfile(doc: dict[str, Any], metadata: Metadata) -> Rulesfile:
    spec = _mapping(doc.get("spec"), "spec")
    return Rulesfile(
        metadata=metadata,
        priority=_parse_priority(spec, metadata),
        oci_artifact=_parse_oci(spec.get("ociArtifact")),
        inline_rules=_parse_inline(spec.get("inlineRules")),
        config_map_ref=_parse_object_ref(spec.get("configMapRef")),
    )


def _parse_plugin(doc: dict[str, Any], metadata: Metadata) -> Plugin:
    spec = _mapping(doc.get("spec"), "spec")

    config = None
    if spec.get("config") is not None:
        raw = _mapping(spec["config"], "spec.config")
        config = PluginConfig(
            name=_string(raw.get("name"), "spec.config.name"),
            library_path=_string(raw.get("libraryPath"), "spec.config.libraryPath"),
            init_config=_mapping(raw.get("initConfig"), "spec.config.initConfig"),
            open_params=_string(raw.get("openParams"), "spec.config.openParams"),
        )

    return Plugin(metadata=metadata, oci_artifact=_parse_oci(spec.get("ociArtifact")), config=config)


def _parse_config(doc: dict[str, Any], metadata: Metadata) -> Config:
    spec = _mapping(doc.get("spec"), "spec")
    return Config(
        metadata=metadata,
        priority=_parse_priority(spec, metadata),
        config=_parse_inline(spec.get("config")),
    )


_PARSERS = {
    KIND_RULESFILE: _parse_rulesfile,
    KIND_PLUGIN: _parse_plugin,
    KIND_CONFIG: _parse_config,
}


def parse_resource(doc: Any, default_namespace: str = "default") -> Resource:
    """
    Build a resource from one decoded YAML document.

    Raises:
        ValueError: Unknown kind or malformed field
    """
    if not isinstance(doc, dict):
        raise ValueError("document must be a mapping")
    kind = doc.get("kind")
    parser = _PARSERS.get(kind) if isinstance(kind, str) else None
    if parser is None:
        raise ValueError(f"unsupported kind {kind!r}")
    return parser(doc, _parse_metadata(doc, default_namespace))


def load_manifest_file(path: Path, default_namespace: str = "default") -> list[Resource]:
    """Load every resource declared in one manifest file."""
    try:
        text = Path(path).read_text(encoding="utf-8")
        docs = list(yaml.safe_load_all(text))
    except (OSError, yaml.YAMLError) as e:
        raise ManifestError(f"{path}: {e}") from e

    resources: list[Resource] = []
    for i, doc in enumerate(docs):
        if doc is None:
            continue
        try:
            resources.append(parse_resource(doc, default_namespace))
        except ValueError as e:
            raise ManifestError(f"{path} (document {i + 1}): {e}") from e
    return resources


def load_manifests(directory: Path, default_namespace: str = "default") -> list[Resource]:
    """
    Load all manifests under `directory` (recursively, in path order).

    Raises:
        ManifestError: A file is malformed, or two documents declare the same resource.
    """
    directory = Path(directory)
    if not directory.is_dir():
        raise ManifestError(f"manifest directory not found: {directory}")

    seen: dict[tuple[str, str, str], Path] = {}
    resources: list[Resource] = []
    for path in sorted(p for p in directory.rglob("*") if p.is_file() and p.suffix in MANIFEST_SUFFIXES):
        for resource in load_manifest_file(path, default_namespace):
            key = resource_key(resource)
            if key in seen:
                raise ManifestError(f"{path}: duplicate {key[0]} {key[1]}/{key[2]} (first declared in {seen[key]})")
            seen[key] = path
            resources.append(resource)
    return resources
