from __future__ import annotations

import pytest

from artifactd.artifact.manager import ArtifactManager
from artifactd.artifact.types import ABSENT, ArtifactType, InlineContent, Medium, TrackedFile

PATH_50 = "/etc/falco/rules.d/50-03-baseline-inline.yaml"
PATH_60 = "/etc/falco/rules.d/60-03-baseline-inline.yaml"


def _store(manager: ArtifactManager, text: str | None, priority: int = 50) -> None:
    source = InlineContent(text) if text is not None else ABSENT
    manager.store_from_inline("baseline", priority, source, ArtifactType.RULESFILE)


class TestInlineCreate:
    def test_first_call_writes_file_and_tracks_it(self, manager, fake_fs) -> None:
        _store(manager, "rule A")

        assert fake_fs.files == {PATH_50: b"rule A"}
        assert manager.tracked("baseline") == [TrackedFile(PATH_50, Medium.INLINE, 50)]
        assert fake_fs.calls["write_file"][0][2] == 0o600

    def test_identical_content_is_not_rewritten(self, manager, fake_fs) -> None:
        _store(manager, "rule A")
        _store(manager, "rule A")

        assert fake_fs.count("write_file") == 1
        assert fake_fs.count("remove") == 0

    def test_changed_content_rewrites_same_path(self, manager, fake_fs) -> None:
        _store(manager, "rule A")
        _store(manager, "rule A")
        _store(manager, "rule B")

        assert fake_fs.files == {PATH_50: b"rule B"}
        assert fake_fs.calls["remove"] == [(PATH_50,)]
        assert fake_fs.count("write_file") == 2

    def test_write_failure_leaves_no_entry(self, manager, fake_fs) -> None:
        fake_fs.errors["write_file"] = PermissionError("read-only")

        with pytest.raises(PermissionError):
            _store(manager, "rule A")

        assert manager.tracked("baseline") == []
        assert fake_fs.files == {}


class TestInlinePriority:
    def test_priority_change_moves_file(self, manager, fake_fs) -> None:
        _store(manager, "rule A", priority=50)
        _store(manager, "rule A", priority=60)

        assert fake_fs.files == {PATH_60: b"rule A"}
        assert fake_fs.count("remove") == 1
        assert fake_fs.count("write_file") == 2
        assert manager.tracked("baseline") == [TrackedFile(PATH_60, Medium.INLINE, 60)]

    def test_remove_failure_during_move_keeps_old_entry(self, manager, fake_fs) -> None:
        _store(manager, "rule A", priority=50)
        fake_fs.errors["remove"] = PermissionError("busy")

        with pytest.raises(PermissionError):
            _store(manager, "rule A", priority=60)

        assert manager.tracked("baseline") == [TrackedFile(PATH_50, Medium.INLINE, 50)]
        assert fake_fs.count("write_file") == 1


class TestInlineDrift:
    def test_tracked_file_deleted_externally_is_recreated(self, manager, fake_fs) -> None:
        _store(manager, "rule A")
        del fake_fs.files[PATH_50]

        _store(manager, "rule A")

        assert fake_fs.files == {PATH_50: b"rule A"}
        assert manager.tracked("baseline") == [TrackedFile(PATH_50, Medium.INLINE, 50)]

    def test_exists_error_propagates(self, manager, fake_fs) -> None:
        _store(manager, "rule A")
        fake_fs.errors["exists"] = PermissionError("denied")

        with pytest.raises(PermissionError):
            _store(manager, "rule B")

        assert fake_fs.files == {PATH_50: b"rule A"}

    def test_read_error_propagates(self, manager, fake_fs) -> None:
        _store(manager, "rule A")
        fake_fs.errors["read_file"] = OSError("io error")

        with pytest.raises(OSError, match="io error"):
            _store(manager, "rule A")


class TestInlineWithdraw:
    def test_absent_removes_tracked_file(self, manager, fake_fs) -> None:
        _store(manager, "rule A")
        _store(manager, None)

        assert fake_fs.files == {}
        assert manager.tracked("baseline") == []

    def test_absent_twice_is_a_noop(self, manager, fake_fs) -> None:
        _store(manager, "rule A")
        _store(manager, None)
        _store(manager, None)

        assert fake_fs.count("remove") == 1

    def test_absent_without_entry_touches_nothing(self, manager, fake_fs) -> None:
        _store(manager, None)
        assert sum(len(calls) for calls in fake_fs.calls.values()) == 0

    def test_remove_error_propagates_and_keeps_entry(self, manager, fake_fs) -> None:
        _store(manager, "rule A")
        fake_fs.errors["remove"] = PermissionError("denied")

        with pytest.raises(PermissionError):
            _store(manager, None)

        assert len(manager.tracked("baseline")) == 1

    def test_none_is_rejected(self, manager) -> None:
        with pytest.raises(TypeError, match="ABSENT"):
            manager.store_from_inline("baseline", 50, None, ArtifactType.RULESFILE)

    def test_wrong_source_type_is_rejected(self, manager) -> None:
        with pytest.raises(TypeError):
            manager.store_from_inline("baseline", 50, "rule A", ArtifactType.RULESFILE)


class TestInlineConfig:
    def test_config_fragment_path(self, manager, fake_fs) -> None:
        manager.store_from_inline("falco", 10, InlineContent(b"engine: {}\n"), ArtifactType.CONFIG)
        assert fake_fs.files == {"/etc/falco/config.d/10-falco.yaml": b"engine: {}\n"}
