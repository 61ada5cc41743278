"""Outcome records shared by the resource controllers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable

from ..cancel import CancelToken
from ..logger import get_logger

REASON_ARTIFACT_REMOVED = "ArtifactRemoved"
REASON_ARTIFACT_REMOVE_FAILED = "ArtifactRemoveFailed"
REASON_OBJECT_REF_RESOLVED = "ConfigMapResolved"
REASON_OBJECT_REF_RESOLUTION_FAILED = "ConfigMapResolutionFailed"
REASON_OCI_ARTIFACT_STORED = "OCIArtifactStored"
REASON_OCI_ARTIFACT_STORE_FAILED = "OCIArtifactStoreFailed"
REASON_INLINE_RULES_STORED = "InlineRulesStored"
REASON_INLINE_RULES_STORE_FAILED = "InlineRulesStoreFailed"
REASON_INLINE_CONFIG_STORED = "InlineConfigStored"
REASON_INLINE_CONFIG_STORE_FAILED = "InlineConfigStoreFailed"
REASON_INLINE_PLUGIN_CONFIG_STORED = "InlinePluginConfigStored"
REASON_INLINE_PLUGIN_CONFIG_STORE_FAILED = "InlinePluginConfigStoreFailed"


@dataclass(frozen=True)
class MediumOutcome:
    """Result of converging one medium of one resource."""

    medium: str
    ok: bool
    reason: str
    message: str


@dataclass
class ResourceOutcome:
    kind: str
    namespace: str
    name: str
    mediums: list[MediumOutcome] = field(default_factory=list)
    deleted: bool = False

    @property
    def ok(self) -> bool:
        return all(m.ok for m in self.mediums)

    @property
    def failures(self) -> list[MediumOutcome]:
        return [m for m in self.mediums if not m.ok]


class Step:
    """
    Run one manager call and turn its result into a MediumOutcome.

    Failures are recorded, not raised, so the caller can move on to the next
    medium. Withdrawals that succeed produce no outcome.
    """

    def __init__(self, log, timeout_s: float | None = None):
        self.log = log
        self.timeout_s = timeout_s

    def token(self) -> CancelToken:
        return CancelToken(self.timeout_s)

    def store(
        self,
        medium: str,
        action: Callable[[], None],
        *,
        ok_reason: str,
        ok_message: str,
        fail_reason: str,
        fail_message: str,
    ) -> MediumOutcome:
        """Run a store action; always yields an outcome."""
        try:
            action()
        except Exception as e:
            self.log.bind(medium=medium).error("{}: {}", fail_message, e)
            return MediumOutcome(medium, False, fail_reason, f"{fail_message}: {e}")
        return MediumOutcome(medium, True, ok_reason, ok_message)

    def __call__(
        self,
        medium: str,
        action: Callable[[], None],
        *,
        present: bool,
        ok_reason: str,
        ok_message: str,
        fail_reason: str,
        fail_message: str,
    ) -> MediumOutcome | None:
        if present:
            return self.store(
                medium,
                action,
                ok_reason=ok_reason,
                ok_message=ok_message,
                fail_reason=fail_reason,
                fail_message=fail_message,
            )

        try:
            action()
        except Exception as e:
            self.log.bind(medium=medium).error("Failed to remove artifact: {}", e)
            return MediumOutcome(medium, False, REASON_ARTIFACT_REMOVE_FAILED, f"Failed to remove artifact: {e}")
        return None


def remove_resource(manager, kind: str, namespace: str, name: str) -> ResourceOutcome:
    """Remove every file tracked for a resource that is no longer declared."""
    log = get_logger().bind(artifact=name)
    log.info("{} {}/{} no longer declared, cleaning up", kind, namespace, name)

    outcome = ResourceOutcome(kind, namespace, name, deleted=True)
    try:
        manager.remove_all(name)
    except OSError as e:
        log.error("Failed to remove artifacts: {}", e)
        outcome.mediums.append(
            MediumOutcome("all", False, REASON_ARTIFACT_REMOVE_FAILED, f"Failed to remove artifacts: {e}")
        )
        return outcome

    outcome.mediums.append(MediumOutcome("all", True, REASON_ARTIFACT_REMOVED, "Artifacts removed successfully"))
    return outcome
