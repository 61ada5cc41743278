"""Pytest configuration and fixtures."""

from __future__ import annotations

import io
import os
import posixpath
from collections import defaultdict
from typing import Any

import pytest

from artifactd.artifact.manager import ArtifactManager
from artifactd.credentials import Credentials
from artifactd.errors import ObjectNotFoundError
from artifactd.oci.puller import PulledType, RegistryResult


class FakeFileSystem:
    """
    In-memory FileSystem.

    Every call is recorded in `calls[op]`. Assigning an exception to
    `errors[op]` makes that operation raise it.
    """

    def __init__(self) -> None:
        self.files: dict[str, bytes] = {}
        self.calls: dict[str, list[tuple[Any, ...]]] = defaultdict(list)
        self.errors: dict[str, BaseException] = {}

    def _enter(self, op: str, *args: Any) -> None:
        self.calls[op].append(args)
        err = self.errors.get(op)
        if err is not None:
            raise err

    def count(self, op: str) -> int:
        return len(self.calls[op])

    def stat(self, path: str) -> os.stat_result:
        self._enter("stat", path)
        if path not in self.files:
            raise FileNotFoundError(path)
        return os.stat_result((0o100600, 0, 0, 1, 0, 0, len(self.files[path]), 0, 0, 0))

    def read_file(self, path: str) -> bytes:
        self._enter("read_file", path)
        if path not in self.files:
            raise FileNotFoundError(path)
        return self.files[path]

    def write_file(self, path: str, data: bytes, mode: int = 0o600) -> None:
        self._enter("write_file", path, data, mode)
        self.files[path] = data

    def remove(self, path: str) -> None:
        self._enter("remove", path)
        if path not in self.files:
            raise FileNotFoundError(path)
        del self.files[path]

    def rename(self, old_path: str, new_path: str) -> None:
        self._enter("rename", old_path, new_path)
        if old_path not in self.files:
            raise FileNotFoundError(old_path)
        self.files[new_path] = self.files.pop(old_path)

    def open(self, path: str) -> io.BytesIO:
        self._enter("open", path)
        if path not in self.files:
            raise FileNotFoundError(path)
        return io.BytesIO(self.files[path])

    def exists(self, path: str) -> bool:
        self._enter("exists", path)
        return path in self.files


class FakePuller:
    """Writes `archive_name` into the fake filesystem on every successful pull."""

    def __init__(self, fs: FakeFileSystem, archive_name: str = "artifact.tar.gz") -> None:
        self.fs = fs
        self.archive_name = archive_name
        self.error: BaseException | None = None
        self.calls: list[dict[str, Any]] = []

    def pull(self, reference, dest_dir, os_name, arch, credentials, token=None) -> RegistryResult:
        self.calls.append(
            {
                "reference": reference,
                "dest_dir": dest_dir,
                "os_name": os_name,
                "arch": arch,
                "credentials": credentials,
                "token": token,
            }
        )
        if self.error is not None:
            raise self.error
        self.fs.files[posixpath.join(dest_dir, self.archive_name)] = b"archive"
        return RegistryResult(filename=self.archive_name, digest="sha256:abc", artifact_type=PulledType.RULESFILE)


class FakeExtractor:
    """Materializes `members` in the fake filesystem instead of reading a real archive."""

    def __init__(self, fs: FakeFileSystem, members: list[str] | None = None) -> None:
        self.fs = fs
        self.members = ["falco_rules.yaml"] if members is None else members
        self.error: BaseException | None = None
        self.calls: list[str] = []

    def __call__(self, stream, dest_dir, strip_components=0, token=None) -> list[str]:
        self.calls.append(dest_dir)
        if self.error is not None:
            raise self.error
        out = []
        for member in self.members:
            path = posixpath.join(dest_dir, member)
            self.fs.files[path] = b"extracted:" + member.encode()
            out.append(path)
        return out


class FakeObjectStore:
    def __init__(self) -> None:
        self.objects: dict[tuple[str, str], dict[str, str]] = {}
        self.error: BaseException | None = None
        self.calls: list[tuple[str, str]] = []

    def put(self, namespace: str, name: str, data: dict[str, str]) -> None:
        self.objects[(namespace, name)] = dict(data)

    def get(self, name, namespace, token=None) -> dict[str, str]:
        self.calls.append((namespace, name))
        if self.error is not None:
            raise self.error
        if (namespace, name) not in self.objects:
            raise ObjectNotFoundError(name, namespace)
        return dict(self.objects[(namespace, name)])


class FakeCredentialResolver:
    def __init__(self, credentials: Credentials | None = None) -> None:
        self.credentials = credentials or Credentials.anonymous()
        self.error: BaseException | None = None
        self.calls: list[tuple[Any, str]] = []

    def resolve(self, pull_secret, namespace, token=None) -> Credentials:
        self.calls.append((pull_secret, namespace))
        if self.error is not None:
            raise self.error
        return self.credentials


@pytest.fixture
def fake_fs() -> FakeFileSystem:
    return FakeFileSystem()


@pytest.fixture
def fake_puller(fake_fs: FakeFileSystem) -> FakePuller:
    return FakePuller(fake_fs)


@pytest.fixture
def fake_extractor(fake_fs: FakeFileSystem) -> FakeExtractor:
    return FakeExtractor(fake_fs)


@pytest.fixture
def fake_store() -> FakeObjectStore:
    return FakeObjectStore()


@pytest.fixture
def fake_credentials() -> FakeCredentialResolver:
    return FakeCredentialResolver()


@pytest.fixture
def manager(
    fake_fs: FakeFileSystem,
    fake_puller: FakePuller,
    fake_extractor: FakeExtractor,
    fake_store: FakeObjectStore,
    fake_credentials: FakeCredentialResolver,
) -> ArtifactManager:
    """Manager wired entirely to in-memory doubles, using the default layout."""
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
