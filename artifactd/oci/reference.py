"""Parsing of OCI artifact references (registry/repository[:tag][@digest])."""

from __future__ import annotations

import re
from dataclasses import dataclass

from ..errors import RegistryError

DEFAULT_TAG = "latest"
DOCKER_HUB = "docker.io"

_DIGEST_RE = re.compile(r"^[a-z0-9]+(?:[+._-][a-z0-9]+)*:[a-zA-Z0-9=_-]+$")
_TAG_RE = re.compile(r"^[\w][\w.-]{0,127}$")
_REPO_RE = re.compile(r"^[a-z0-9]+(?:(?:[._]|__|-+)[a-z0-9]+)*(?:/[a-z0-9]+(?:(?:[._]|__|-+)[a-z0-9]+)*)*$")


@dataclass(frozen=True)
class Reference:
    registry: str
    repository: str
    tag: str | None = None
    digest: str | None = None

    @property
    def reference(self) -> str:
        """The manifest reference to request: digest wins over tag."""
        return self.digest or self.tag or DEFAULT_TAG

    def __str__(self) -> str:
        out = f"{self.registry}/{self.repository}"
        if self.tag:
            out += f":{self.tag}"
        if self.digest:
            out += f"@{self.digest}"
        return out


def _looks_like_registry(component: str) -> bool:
    return "." in component or ":" in component or component == "localhost"


def parse_reference(ref: str) -> Reference:
    """
    Parse an artifact reference.

    A missing tag (and digest) resolves to `latest`. References without a
    registry host resolve against Docker Hub, with `library/` prepended to
    single-component repositories.

    Raises:
        RegistryError: If the reference is malformed.
    """
    raw = (ref or "").strip()
    if not raw:
        raise RegistryError("empty artifact reference")

    digest: str | None = None
    if "@" in raw:
        raw, digest = raw.split("@", 1)
        if not _DIGEST_RE.match(digest):
            raise RegistryError(f"invalid digest in reference {ref!r}")

    tag: str | None = None
    last_slash = raw.rfind("/")
    colon = raw.rfind(":")
    if colon > last_slash:
        raw, tag = raw[:colon], raw[colon + 1 :]
        if not _TAG_RE.match(tag):
            raise RegistryError(f"invalid tag in reference {ref!r}")

    parts = raw.split("/")
    if len(parts) > 1 and _looks_like_registry(parts[0]):
        registry, repository = parts[0], "/".join(parts[1:])
    else:
        registry, repository = DOCKER_HUB, raw
        if "/" not in repository:
            repository = f"library/{repository}"

    if not _REPO_RE.match(repository):
        raise RegistryError(f"invalid repository in reference {ref!r}")

    if tag is None and digest is None:
        tag = DEFAULT_TAG

    return Reference(registry=registry, repository=repository, tag=tag, digest=digest)
