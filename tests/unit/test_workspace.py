"""Tests for scribe.core.workspace."""

from __future__ import annotations

from pathlib import Path

import pytest

from scribe.core.workspace import RunWorkspace


class TestRunWorkspace:
    def test_creates_private_directory(self, tmp_path: Path) -> None:
        workspace = RunWorkspace(base_dir=tmp_path)
        assert workspace.directory.is_dir()
        assert workspace.directory.parent == tmp_path
        workspace.release()

    def test_path_for_strips_directories(self, tmp_path: Path) -> None:
        with RunWorkspace(base_dir=tmp_path) as workspace:
            assert workspace.path_for("../escape.mp3") == workspace.directory / "escape.mp3"

    def test_release_removes_files(self, tmp_path: Path) -> None:
        workspace = RunWorkspace(base_dir=tmp_path)
        path = workspace.write_bytes("a.mp3", b"data")
        assert path.read_bytes() == b"data"
        workspace.release()
        assert not workspace.directory.exists()
        assert workspace.released is True

    def test_callbacks_run_once_newest_first(self, tmp_path: Path) -> None:
        order: list[str] = []
        workspace = RunWorkspace(base_dir=tmp_path)
        workspace.register("first", lambda: order.append("first"))
        workspace.register("second", lambda: order.append("second"))
        workspace.release()
        workspace.release()
        assert order == ["second", "first"]

    def test_failing_callback_does_not_stop_release(self, tmp_path: Path) -> None:
        ran: list[str] = []

        def broken() -> None:
            raise OSError("busy")

        workspace = RunWorkspace(base_dir=tmp_path)
        workspace.register("ok", lambda: ran.append("ok"))
        workspace.register("broken", broken)
        workspace.release()
        assert ran == ["ok"]
        assert workspace.cleanup_failures == 1
        assert not workspace.directory.exists()

    def test_context_manager_releases_on_error(self, tmp_path: Path) -> None:
        with pytest.raises(RuntimeError):
            with RunWorkspace(base_dir=tmp_path) as workspace:
                workspace.write_bytes("a.wav", b"x")
                raise RuntimeError("stage failed")
        assert workspace.released is True
        assert not workspace.directory.exists()

    def test_register_after_release_rejected(self, tmp_path: Path) -> None:
        workspace = RunWorkspace(base_dir=tmp_path)
        workspace.release()
        with pytest.raises(RuntimeError):
            workspace.register("late", lambda: None)
