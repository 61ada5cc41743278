"""
Remote-artifact puller.

Fetches a packaged artifact from an OCI registry into a local directory and
reports what was downloaded. The manager extracts and places the result.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import Any, Protocol
from urllib.request import OpenerDirector

from ..cancel import CancelToken
from ..credentials import Credentials
from ..errors import RegistryError
from .client import RegistryClient, RegistryClientConfig
from .reference import parse_reference

MEDIA_TYPE_OCI_MANIFEST = "application/vnd.oci.image.manifest.v1+json"
MEDIA_TYPE_OCI_INDEX = "application/vnd.oci.image.index.v1+json"
MEDIA_TYPE_DOCKER_MANIFEST = "application/vnd.docker.distribution.manifest.v2+json"
MEDIA_TYPE_DOCKER_LIST = "application/vnd.docker.distribution.manifest.list.v2+json"

RULESFILE_LAYER_MEDIA_TYPE = "application/vnd.cncf.falco.rulesfile.layer.v1+tar.gz"
PLUGIN_LAYER_MEDIA_TYPE = "application/vnd.cncf.falco.plugin.layer.v1+tar.gz"
ASSET_LAYER_MEDIA_TYPE = "application/vnd.cncf.falco.asset.layer.v1+tar.gz"

ANNOTATION_TITLE = "org.opencontainers.image.title"

_MANIFEST_ACCEPT = [
    MEDIA_TYPE_OCI_MANIFEST,
    MEDIA_TYPE_OCI_INDEX,
    MEDIA_TYPE_DOCKER_MANIFEST,
    MEDIA_TYPE_DOCKER_LIST,
]
_INDEX_TYPES = {MEDIA_TYPE_OCI_INDEX, MEDIA_TYPE_DOCKER_LIST}


class PulledType(str, Enum):
    RULESFILE = "rulesfile"
    PLUGIN = "plugin"
    ASSET = "asset"


_LAYER_TYPES: dict[str, PulledType] = {
    RULESFILE_LAYER_MEDIA_TYPE: PulledType.RULESFILE,
    PLUGIN_LAYER_MEDIA_TYPE: PulledType.PLUGIN,
    ASSET_LAYER_MEDIA_TYPE: PulledType.ASSET,
}


@dataclass(frozen=True)
class RegistryResult:
    """What a pull produced: `filename` is relative to the destination dir."""

    filename: str
    digest: str = ""
    root_digest: str = ""
    artifact_type: PulledType | None = None


class Puller(Protocol):
    def pull(
        self,
        reference: str,
        dest_dir: str,
        os_name: str,
        arch: str,
        credentials: Credentials,
        token: CancelToken | None = None,
    ) -> RegistryResult: ...


def _select_platform(index: dict[str, Any], os_name: str, arch: str) -> dict[str, Any]:
    manifests = index.get("manifests") or []
    for desc in manifests:
        platform = desc.get("platform") or {}
        if platform.get("os") == os_name and platform.get("architecture") == arch:
            return desc
    raise RegistryError(f"no manifest for platform {os_name}/{arch} in image index")


def _safe_filename(title: str) -> str:
    name = PurePosixPath(title).name
    if not name or name in {".", ".."} or name != title:
        raise RegistryError(f"refusing unsafe layer title {title!r}")
    return name


class OCIPuller:
    """Puller backed by the OCI distribution API."""

    def __init__(
        self,
        plain_http: bool = False,
        timeout_s: float = 60.0,
        *,
        opener: OpenerDirector | None = None,
    ) -> None:
        self._cfg = RegistryClientConfig(plain_http=plain_http, timeout_s=timeout_s)
        self._opener = opener

    def pull(
        self,
        reference: str,
        dest_dir: str,
        os_name: str,
        arch: str,
        credentials: Credentials,
        token: CancelToken | None = None,
    ) -> RegistryResult:
        ref = parse_reference(reference)
        client = RegistryClient(credentials, self._cfg, opener=self._opener)

        manifest, root_digest = client.get_manifest(
            ref.registry, ref.repository, ref.reference, _MANIFEST_ACCEPT, token
        )
        digest = root_digest

        if manifest.get("mediaType") in _INDEX_TYPES or (
            "manifests" in manifest and "layers" not in manifest
        ):
            desc = _select_platform(manifest, os_name, arch)
            manifest, digest = client.get_manifest(
                ref.registry, ref.repository, desc["digest"], _MANIFEST_ACCEPT, token
            )

        layers = manifest.get("layers") or []
        if not layers:
            raise RegistryError("no layers in manifest")
        layer = layers[0]

        media_type = layer.get("mediaType", "")
        pulled_type = _LAYER_TYPES.get(media_type)
        if pulled_type is None:
            raise RegistryError(f"unknown media type: {media_type!r}")

        title = (layer.get("annotations") or {}).get(ANNOTATION_TITLE)
        if not title:
            raise RegistryError(f"layer of {ref} has no {ANNOTATION_TITLE} annotation")
        filename = _safe_filename(title)

        client.download_blob(ref.registry, ref.repository, layer["digest"], Path(dest_dir) / filename, token)

        return RegistryResult(
            filename=filename,
            digest=digest,
            root_digest=root_digest,
            artifact_type=pulled_type,
        )
