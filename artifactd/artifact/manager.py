"""
Artifact manager: materializes artifact sources as files in the work area.

One entry point per source medium, plus full removal. Each entry point is
called once per reconciliation pass with the currently desired source (or
ABSENT) and does the minimal filesystem/network work to converge:

    ABSENT, nothing tracked      -> no-op
    ABSENT, tracked              -> remove file, drop entry
    source, nothing tracked      -> materialize, add entry
    source, tracked, same prio   -> inline/object-ref: rewrite only if bytes differ
                                    oci: trust the file on disk (no re-pull)
    source, tracked, new prio    -> inline/object-ref: remove + write at new path
                                    oci: rename to new path

Calls for the same artifact name are serialized by a per-name lock; calls for
different names may run concurrently, except that OCI pulls into the same
directory take turns. The manager never retries and enforces
no timeout; the CancelToken is handed to network-bound collaborators.
"""

from __future__ import annotations

import os
import platform
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

from ..archive import Extractor, extract_tar_gz
from ..cancel import CancelToken
from ..credentials import AnonymousCredentialResolver, CredentialResolver, SecretCredentialResolver
from ..errors import ArchiveError, ArtifactMissingError, ObjectNotFoundError, ObjectStoreError
from ..filesystem import DEFAULT_FILE_MODE, FileSystem, OSFileSystem
from ..logger import get_logger
from ..objectstore import DirectoryObjectStore, ObjectStore
from ..oci.puller import OCIPuller, Puller
from ..settings import Settings
from .index import FileIndex
from .naming import artifact_path
from .types import (
    DEFAULT_LAYOUT,
    Absent,
    ArtifactLayout,
    ArtifactType,
    InlineContent,
    InlineSource,
    Medium,
    OCIArtifact,
    OCISource,
    ObjectRef,
    ObjectRefSource,
    TrackedFile,
)

_ARCH_ALIASES = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "aarch64": "arm64",
    "arm64": "arm64",
    "armv7l": "arm",
    "i386": "386",
    "i686": "386",
}


def host_platform() -> tuple[str, str]:
    """(os, architecture) of this host, in OCI platform vocabulary."""
    machine = platform.machine().lower()
    return platform.system().lower(), _ARCH_ALIASES.get(machine, machine)


def _require_source(source: Any, expected: type, operation: str) -> None:
    if source is None:
        raise TypeError(f"{operation}: pass ABSENT, not None, to withdraw a source")
    if not isinstance(source, (expected, Absent)):
        raise TypeError(f"{operation}: expected {expected.__name__} or ABSENT, got {type(source).__name__}")


class ArtifactManager:
    """
    Owns the work-area files for every artifact it has materialized.

    Args:
        namespace: Namespace used to resolve OCI pull secrets
        fs: Filesystem capability (defaults to the local OS)
        puller: Remote-artifact puller (defaults to OCIPuller)
        credentials: Pull-secret resolver (defaults to anonymous-only)
        object_store: Lookup for object-reference sources
        extractor: Archive extractor (defaults to extract_tar_gz)
        layout: Work-area directories
        os_name, arch: Target platform for pulls (defaults to this host)
    """

    def __init__(
        self,
        namespace: str = "default",
        *,
        fs: FileSystem | None = None,
        puller: Puller | None = None,
        credentials: CredentialResolver | None = None,
        object_store: ObjectStore | None = None,
        extractor: Extractor | None = None,
        layout: ArtifactLayout | None = None,
        os_name: str | None = None,
        arch: str | None = None,
    ) -> None:
        host_os, host_arch = host_platform()
        self.namespace = namespace
        self.fs: FileSystem = fs or OSFileSystem()
        self.puller: Puller = puller or OCIPuller()
        self.credentials: CredentialResolver = credentials or AnonymousCredentialResolver()
        self.object_store = object_store
        self.extractor: Extractor = extractor or extract_tar_gz
        self.layout = layout or DEFAULT_LAYOUT
        self.os_name = os_name or host_os
        self.arch = arch or host_arch
        self.index = FileIndex()
        self._log = get_logger()
        # name -> [lock, holders]; entries are dropped once idle and untracked
        self._locks: dict[str, list[Any]] = {}
        self._locks_guard = threading.Lock()
        # Pulls stage archives in the shared type directory under registry-chosen names
        self._pull_locks: dict[str, threading.Lock] = {}

    @classmethod
    def from_settings(cls, settings: Settings) -> ArtifactManager:
        """Manager wired to the production collaborators described by `settings`."""
        return cls(
            settings.namespace,
            fs=OSFileSystem(),
            puller=OCIPuller(plain_http=settings.plain_http, timeout_s=settings.pull_timeout_s),
            credentials=SecretCredentialResolver(DirectoryObjectStore(Path(settings.secret_store_root))),
            object_store=DirectoryObjectStore(Path(settings.object_store_root)),
            layout=settings.layout(),
        )

    @contextmanager
    def _locked(self, name: str) -> Iterator[None]:
        with self._locks_guard:
            entry = self._locks.setdefault(name, [threading.Lock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._locks_guard:
                entry[1] -= 1
                if entry[1] == 0 and name not in self.index:
                    del self._locks[name]

    def _pull_lock(self, dest_dir: str) -> threading.Lock:
        with self._locks_guard:
            return self._pull_locks.setdefault(os.path.normpath(dest_dir), threading.Lock())

    def path(self, name: str, priority: int, medium: Medium | str, artifact_type: ArtifactType | str) -> str:
        return artifact_path(name, priority, medium, artifact_type, self.layout)

    def tracked(self, name: str) -> list[TrackedFile]:
        """Tracked files for `name` across mediums."""
        return self.index.files(name)

    # -------------------------------------------------------------------------
    # Entry points
    # -------------------------------------------------------------------------

    def store_from_inline(
        self,
        name: str,
        priority: int,
        source: InlineSource,
        artifact_type: ArtifactType | str,
    ) -> None:
        """Materialize literal content supplied by the caller."""
        _require_source(source, InlineContent, "store_from_inline")
        log = self._log.bind(artifact=name, medium=Medium.INLINE.value)

        with self._locked(name):
            if isinstance(source, Absent):
                self._withdraw(name, Medium.INLINE, log)
                return
            self._store_bytes(name, priority, Medium.INLINE, artifact_type, source.to_bytes(), log)

    def store_from_object_ref(
        self,
        name: str,
        namespace: str,
        priority: int,
        source: ObjectRefSource,
        artifact_type: ArtifactType | str,
        *,
        token: CancelToken | None = None,
    ) -> None:
        """
        Materialize one key of an external object.

        A missing object or key is an expected state: any file previously
        materialized for this medium is removed and the call succeeds.
        """
        _require_source(source, ObjectRef, "store_from_object_ref")
        log = self._log.bind(artifact=name, medium=Medium.OBJECT_REF.value)

        with self._locked(name):
            if isinstance(source, Absent):
                self._withdraw(name, Medium.OBJECT_REF, log)
                return

            if self.object_store is None:
                raise ObjectStoreError("no object store configured")

            try:
                data = self.object_store.get(source.name, namespace, token)
            except ObjectNotFoundError:
                log.info("Referenced object {}/{} not found, waiting for it to appear", namespace, source.name)
                self._withdraw(name, Medium.OBJECT_REF, log)
                return
            except Exception as e:
                log.error("Unable to fetch object {}/{}: {}", namespace, source.name, e)
                raise

            if source.key not in data:
                log.info("Object {}/{} has no key {!r}, waiting for it to be fixed", namespace, source.name, source.key)
                self._withdraw(name, Medium.OBJECT_REF, log)
                return

            self._store_bytes(
                name, priority, Medium.OBJECT_REF, artifact_type, data[source.key].encode("utf-8"), log
            )

    def store_from_oci(
        self,
        name: str,
        priority: int,
        artifact_type: ArtifactType | str,
        source: OCISource,
        *,
        token: CancelToken | None = None,
    ) -> None:
        """
        Materialize an artifact pulled from an OCI registry.

        An already tracked file is never re-pulled: a priority change renames
        it, and a tracked file missing from disk is an error.
        """
        _require_source(source, OCIArtifact, "store_from_oci")
        log = self._log.bind(artifact=name, medium=Medium.OCI.value)

        with self._locked(name):
            if isinstance(source, Absent):
                self._withdraw(name, Medium.OCI, log)
                return

            desired = TrackedFile(
                path=self.path(name, priority, Medium.OCI, artifact_type),
                medium=Medium.OCI,
                priority=priority,
            )
            current = self.index.get(name, Medium.OCI)

            if current is not None:
                self._converge_tracked_oci(name, current, desired, log)
                return

            self._pull(name, desired, artifact_type, source, token, log)

    def remove_all(self, name: str) -> None:
        """
        Remove every tracked file for `name`, across mediums.

        Files already gone count as removed. The first other failure stops
        the sweep; entries not yet processed stay tracked for a retry.
        """
        log = self._log.bind(artifact=name)

        with self._locked(name):
            files = self.index.files(name)
            if not files:
                log.debug("No artifacts tracked for {}", name)
                return

            for tracked in files:
                log.info("Removing artifact {}", tracked.path)
                try:
                    self.fs.remove(tracked.path)
                except FileNotFoundError:
                    log.debug("Artifact {} already absent", tracked.path)
                except OSError as e:
                    log.error("Unable to remove artifact {}: {}", tracked.path, e)
                    raise
                self.index.remove(name, tracked.medium)

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _withdraw(self, name: str, medium: Medium, log) -> None:
        current = self.index.get(name, medium)
        if current is None:
            return

        log.info("Removing artifact from filesystem: {}", current.path)
        try:
            self.fs.remove(current.path)
        except FileNotFoundError:
            log.warning("Artifact {} was already absent from filesystem", current.path)
        except OSError as e:
            log.error("Failed to remove artifact {}: {}", current.path, e)
            raise
        self.index.remove(name, medium)

    def _store_bytes(
        self,
        name: str,
        priority: int,
        medium: Medium,
        artifact_type: ArtifactType | str,
        data: bytes,
        log,
    ) -> None:
        desired = TrackedFile(
            path=self.path(name, priority, medium, artifact_type),
            medium=medium,
            priority=priority,
        )
        current = self.index.get(name, medium)

        if current is not None:
            if self.fs.exists(current.path):
                if current.path == desired.path and current.priority == priority:
                    content = self.fs.read_file(current.path)
                    if content == data:
                        log.debug("File is up to date: {}", current.path)
                        return
                    log.info("File is outdated, updating: {}", current.path)
                else:
                    log.info(
                        "Updating artifact file due to priority change: {} -> {} ({} -> {})",
                        current.priority,
                        priority,
                        current.path,
                        desired.path,
                    )
                try:
                    self.fs.remove(current.path)
                except OSError as e:
                    log.error("Unable to remove outdated file {}: {}", current.path, e)
                    raise
            else:
                log.warning("Tracked file {} missing from filesystem, recreating", current.path)
            self.index.remove(name, medium)

        try:
            self.fs.write_file(desired.path, data, DEFAULT_FILE_MODE)
        except OSError as e:
            log.error("Unable to write file {}: {}", desired.path, e)
            raise

        self.index.put(name, desired)
        log.info("File correctly written to filesystem: {}", desired.path)

    def _converge_tracked_oci(self, name: str, current: TrackedFile, desired: TrackedFile, log) -> None:
        if not self.fs.exists(current.path):
            self.index.remove(name, Medium.OCI)
            err = ArtifactMissingError(current.path)
            log.error("{}", err)
            raise err

        if current.path != desired.path:
            log.info(
                "Renaming artifact file due to priority change: {} -> {} ({} -> {})",
                current.priority,
                desired.priority,
                current.path,
                desired.path,
            )
            try:
                self.fs.rename(current.path, desired.path)
            except OSError as e:
                log.error("Failed to rename {} to {}: {}", current.path, desired.path, e)
                raise
            self.index.put(name, desired)
        elif current.priority != desired.priority:
            self.index.put(name, desired)
        else:
            log.debug("Artifact already stored: {}", current.path)

    def _pull(
        self,
        name: str,
        desired: TrackedFile,
        artifact_type: ArtifactType | str,
        source: OCIArtifact,
        token: CancelToken | None,
        log,
    ) -> None:
        dest_dir = self.layout.directory_for(artifact_type)

        try:
            creds = self.credentials.resolve(source.pull_secret, self.namespace, token)
        except Exception as e:
            log.error("Unable to get credentials for {}: {}", source.reference, e)
            raise

        with self._pull_lock(dest_dir):
            self._pull_and_install(dest_dir, desired, source, creds, token, log)

        self.index.put(name, desired)
        log.info("OCI artifact downloaded and saved: {}", desired.path)

    def _pull_and_install(
        self,
        dest_dir: str,
        desired: TrackedFile,
        source: OCIArtifact,
        creds,
        token: CancelToken | None,
        log,
    ) -> None:
        log.info("Pulling OCI artifact {}", source.reference)
        try:
            result = self.puller.pull(source.reference, dest_dir, self.os_name, self.arch, creds, token)
        except Exception as e:
            log.error("Unable to pull artifact {}: {}", source.reference, e)
            raise

        archive = os.path.normpath(os.path.join(dest_dir, result.filename))
        extracted: list[str] = []
        try:
            log.debug("Extracting OCI artifact {}", archive)
            with self.fs.open(archive) as stream:
                extracted = self.extractor(stream, dest_dir, token=token)
            if not extracted:
                raise ArchiveError(f"archive {archive} contains no files")

            self.fs.remove(archive)
            self.fs.rename(extracted[0], desired.path)
        except Exception as e:
            # No rollback: whatever the pipeline left behind stays in place.
            log.error(
                "Unable to install OCI artifact {}: {} (left behind: archive={}, extracted={})",
                source.reference,
                e,
                archive,
                extracted,
            )
            raise
