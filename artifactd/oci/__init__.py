"""OCI registry access: reference parsing, HTTP client and artifact puller."""

from __future__ import annotations

from .puller import OCIPuller, PulledType, Puller, RegistryResult
from .reference import Reference, parse_reference

__all__ = [
    "OCIPuller",
    "PulledType",
    "Puller",
    "Reference",
    "RegistryResult",
    "parse_reference",
]
