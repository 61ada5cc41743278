"""Rulesfile controller: one rules file per medium, reconciled independently."""

from __future__ import annotations

from ..artifact.manager import ArtifactManager
from ..artifact.types import ABSENT, ArtifactType, InlineContent, Medium
from ..logger import get_logger
from ..resources import KIND_RULESFILE, Rulesfile
from .base import (
    REASON_INLINE_RULES_STORE_FAILED,
    REASON_INLINE_RULES_STORED,
    REASON_OBJECT_REF_RESOLUTION_FAILED,
    REASON_OBJECT_REF_RESOLVED,
    REASON_OCI_ARTIFACT_STORE_FAILED,
    REASON_OCI_ARTIFACT_STORED,
    MediumOutcome,
    ResourceOutcome,
    Step,
    remove_resource,
)


class RulesfileController:
    def __init__(self, manager: ArtifactManager, *, timeout_s: float | None = None):
        self.manager = manager
        self.timeout_s = timeout_s

    def reconcile(self, rulesfile: Rulesfile) -> ResourceOutcome:
        """
        Converge the OCI, inline and object-ref files of one Rulesfile.

        Mediums missing from the resource are withdrawn. A failing medium is
        recorded and the remaining mediums are still processed.
        """
        meta = rulesfile.metadata
        name, priority = meta.name, rulesfile.priority
        log = get_logger().bind(artifact=name)
        step = Step(log, self.timeout_s)

        oci = rulesfile.oci_artifact
        inline = rulesfile.inline_rules
        ref = rulesfile.config_map_ref

        results = [
            step(
                Medium.OCI.value,
                lambda: self.manager.store_from_oci(
                    name, priority, ArtifactType.RULESFILE, oci or ABSENT, token=step.token()
                ),
                present=oci is not None,
                ok_reason=REASON_OCI_ARTIFACT_STORED,
                ok_message="OCI artifact stored successfully",
                fail_reason=REASON_OCI_ARTIFACT_STORE_FAILED,
                fail_message="Failed to store OCI artifact",
            ),
            step(
                Medium.INLINE.value,
                lambda: self.manager.store_from_inline(
                    name,
                    priority,
                    InlineContent(inline) if inline is not None else ABSENT,
                    ArtifactType.RULESFILE,
                ),
                present=inline is not None,
                ok_reason=REASON_INLINE_RULES_STORED,
                ok_message="Inline rules stored successfully",
                fail_reason=REASON_INLINE_RULES_STORE_FAILED,
                fail_message="Failed to store inline rules",
            ),
            step(
                Medium.OBJECT_REF.value,
                lambda: self.manager.store_from_object_ref(
                    name, meta.namespace, priority, ref or ABSENT, ArtifactType.RULESFILE, token=step.token()
                ),
                present=ref is not None,
                ok_reason=REASON_OBJECT_REF_RESOLVED,
                ok_message=f"ConfigMap {ref.name!r} resolved successfully" if ref else "",
                fail_reason=REASON_OBJECT_REF_RESOLUTION_FAILED,
                fail_message="Failed to resolve ConfigMap",
            ),
        ]

        outcome = ResourceOutcome(
            KIND_RULESFILE, meta.namespace, name, [r for r in results if isinstance(r, MediumOutcome)]
        )
        if outcome.ok:
            log.info("Rulesfile reconciled successfully")
        return outcome

    def delete(self, rulesfile: Rulesfile) -> ResourceOutcome:
        meta = rulesfile.metadata
        return remove_resource(self.manager, KIND_RULESFILE, meta.namespace, meta.name)

