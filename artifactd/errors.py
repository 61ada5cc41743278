"""
Exception types raised by the artifact engine and its collaborators.

Every type derives from a builtin so callers that only care about the broad
category (lookup failure, runtime failure, timeout) can catch the builtin.
Filesystem failures are not wrapped: they surface as the builtin OSError family.
"""

from __future__ import annotations


class ArtifactError(RuntimeError):
    """Base class for artifact engine failures."""


class ArtifactMissingError(ArtifactError):
    """A tracked OCI artifact is no longer present in the work area."""

    def __init__(self, path: str):
        super().__init__(f"artifact {path!r} not found on filesystem")
        self.path = path


class ObjectNotFoundError(LookupError):
    """The referenced external object does not exist (expected, recoverable)."""

    def __init__(self, name: str, namespace: str):
        super().__init__(f"object {namespace}/{name} not found")
        self.name = name
        self.namespace = namespace


class ObjectStoreError(RuntimeError):
    """Object lookup failed for a reason other than absence."""


class CredentialsError(RuntimeError):
    """Pull credentials could not be resolved."""


class RegistryError(RuntimeError):
    """Registry resolution, transport or manifest failure."""


class ArchiveError(ValueError):
    """The pulled archive is empty or contains unsafe entries."""


class ManifestError(ValueError):
    """A declarative resource manifest is malformed."""


class CancelledError(TimeoutError):
    """The caller cancelled the operation or its deadline passed."""
