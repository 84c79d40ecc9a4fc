"""Tests for the local mirror sink."""

import logging
import os
import stat

import pytest

from conftest import make_event
from sdfssync.config import MirrorConfig
from sdfssync.mirror import LocalMirrorSink, resolve_mode, resolve_ownership
from sdfssync.sinks import TransferError


@pytest.fixture
def chown_calls(monkeypatch):
    calls = []
    monkeypatch.setattr(os, "chown", lambda path, uid, gid: calls.append((str(path), uid, gid)))
    return calls


def mode_of(path):
    return stat.S_IMODE(path.stat().st_mode)


class TestResolveMode:
    @pytest.mark.parametrize("stored,expected", [(644, 0o644), (755, 0o755), (600, 0o600), (0, 0)])
    def test_decimal_digits_are_read_as_octal(self, stored, expected):
        assert resolve_mode(make_event("a", permissions=stored), None) == expected

    def test_override_is_used_verbatim(self):
        assert resolve_mode(make_event("a", permissions=755), 0o600) == 0o600

    def test_non_octal_digits_give_none(self, caplog):
        with caplog.at_level(logging.WARNING):
            assert resolve_mode(make_event("a", permissions=699), None) is None
        assert "not octal digits" in caplog.text


class TestResolveOwnership:
    def test_event_values_by_default(self):
        assert resolve_ownership(make_event("a", owner_id=10, group_id=20), 0, 0) == (10, 20)

    def test_overrides_apply_independently(self):
        event = make_event("a", owner_id=10, group_id=20)
        assert resolve_ownership(event, 1000, 0) == (1000, 20)
        assert resolve_ownership(event, 0, 2000) == (10, 2000)


class TestLocalMirrorSink:
    def make_sink(self, store, root, **kwargs):
        return LocalMirrorSink(store, MirrorConfig(enabled=True, base_path=root, **kwargs))

    def test_writes_file_below_base_path(self, store, mirror_root, chown_calls):
        sink = self.make_sink(store, mirror_root)

        sink.sync(make_event("docs/readme.txt", permissions=640))

        destination = mirror_root / "docs" / "readme.txt"
        assert destination.read_bytes() == b"hello from sdfs\n"
        assert mode_of(destination) == 0o640

    def test_leading_slash_is_store_relative(self, store, mirror_root, chown_calls):
        store.files["/abs/file"] = b"x"
        self.make_sink(store, mirror_root).sync(make_event("/abs/file"))
        assert (mirror_root / "abs" / "file").read_bytes() == b"x"

    def test_existing_file_is_overwritten(self, store, mirror_root, chown_calls):
        destination = mirror_root / "docs" / "readme.txt"
        destination.parent.mkdir()
        destination.write_bytes(b"stale")

        self.make_sink(store, mirror_root).sync(make_event("docs/readme.txt"))

        assert destination.read_bytes() == b"hello from sdfs\n"

    def test_permission_override(self, store, mirror_root, chown_calls):
        sink = self.make_sink(store, mirror_root, permissions=0o600)
        sink.sync(make_event("docs/readme.txt", permissions=755))
        assert mode_of(mirror_root / "docs" / "readme.txt") == 0o600

    def test_zero_permissions_leave_mode_alone(self, store, mirror_root, chown_calls, monkeypatch):
        chmod_calls = []
        monkeypatch.setattr(os, "chmod", lambda *args: chmod_calls.append(args))
        self.make_sink(store, mirror_root).sync(make_event("docs/readme.txt", permissions=0))
        assert chmod_calls == []

    def test_chown_uses_event_ids(self, store, mirror_root, chown_calls):
        self.make_sink(store, mirror_root).sync(make_event("docs/readme.txt", owner_id=10, group_id=20))
        assert chown_calls == [(str((mirror_root / "docs" / "readme.txt").resolve()), 10, 20)]

    def test_chown_overrides(self, store, mirror_root, chown_calls):
        sink = self.make_sink(store, mirror_root, owner=1000, group=1001)
        sink.sync(make_event("docs/readme.txt", owner_id=10, group_id=20))
        assert chown_calls[0][1:] == (1000, 1001)

    def test_chown_skipped_unless_both_ids_positive(self, store, mirror_root, chown_calls):
        sink = self.make_sink(store, mirror_root)
        sink.sync(make_event("docs/readme.txt", owner_id=10, group_id=0))
        sink.sync(make_event("docs/readme.txt", owner_id=0, group_id=20))
        assert chown_calls == []

    def test_chmod_failure_does_not_prevent_chown(self, store, mirror_root, chown_calls, monkeypatch, caplog):
        def failing_chmod(path, mode):
            raise PermissionError("read-only")

        monkeypatch.setattr(os, "chmod", failing_chmod)
        with caplog.at_level(logging.WARNING):
            self.make_sink(store, mirror_root).sync(
                make_event("docs/readme.txt", permissions=644, owner_id=10, group_id=20)
            )

        assert "Unable to chmod" in caplog.text
        assert len(chown_calls) == 1

    def test_chown_failure_is_logged(self, store, mirror_root, monkeypatch, caplog):
        def failing_chown(path, uid, gid):
            raise PermissionError("not root")

        monkeypatch.setattr(os, "chown", failing_chown)
        with caplog.at_level(logging.WARNING):
            self.make_sink(store, mirror_root).sync(
                make_event("docs/readme.txt", permissions=644, owner_id=10, group_id=20)
            )

        assert "Unable to chown" in caplog.text
        assert mode_of(mirror_root / "docs" / "readme.txt") == 0o644

    def test_download_failure_raises(self, store, mirror_root, chown_calls):
        with pytest.raises(TransferError) as excinfo:
            self.make_sink(store, mirror_root).sync(make_event("missing/file"))
        assert excinfo.value.stage == "download"

    @pytest.mark.parametrize("path", ["../escape.txt", "docs/../../escape.txt", "/", ""])
    def test_paths_outside_mirror_are_rejected(self, store, mirror_root, chown_calls, path):
        with pytest.raises(TransferError) as excinfo:
            self.make_sink(store, mirror_root).sync(make_event(path))
        assert excinfo.value.stage == "resolve"
        assert store.downloads == []

    def test_requires_base_path(self, store):
        with pytest.raises(ValueError):
            LocalMirrorSink(store, MirrorConfig(enabled=True))
