"""
Unit tests for crash-safe filesystem operations.
"""

import os
import sys

import pytest

from rvmkit.core.filesystem import (
    FilesystemError,
    atomic_write,
    discard_directory,
    is_executable,
    make_executable,
    make_sibling_temp_dir,
    move_to_trash,
    publish_directory,
    safe_rmtree,
    sweep_transient_dirs,
)


class TestAtomicWrite:
    """Test atomic_write function."""

    def test_write_text(self, tmp_path):
        """Test writing a string creates the file."""
        target = tmp_path / "pointer"
        atomic_write(target, "0.1.0")
        assert target.read_text() == "0.1.0"

    def test_write_bytes(self, tmp_path):
        """Test writing bytes."""
        target = tmp_path / "data.bin"
        atomic_write(target, b"\x00\x01")
        assert target.read_bytes() == b"\x00\x01"

    def test_overwrite_leaves_no_temp_files(self, tmp_path):
        """Test overwriting replaces content and cleans up."""
        target = tmp_path / "pointer"
        atomic_write(target, "0.1.0")
        atomic_write(target, "0.2.0")

        assert target.read_text() == "0.2.0"
        assert sorted(p.name for p in tmp_path.iterdir()) == ["pointer"]

    def test_creates_parent_directories(self, tmp_path):
        """Test missing parents are created."""
        target = tmp_path / "a" / "b" / "file.json"
        atomic_write(target, "{}")
        assert target.exists()

    def test_failure_keeps_original(self, tmp_path, monkeypatch):
        """Test a failed replace leaves the original content intact."""
        target = tmp_path / "pointer"
        atomic_write(target, "0.1.0")

        def failing_replace(self, other):
            raise OSError("disk full")

        monkeypatch.setattr("pathlib.Path.replace", failing_replace)
        with pytest.raises(OSError, match="disk full"):
            atomic_write(target, "0.2.0")

        assert target.read_text() == "0.1.0"
        assert sorted(p.name for p in tmp_path.iterdir()) == ["pointer"]


class TestDirectoryPublication:
    """Test temp-dir + rename publication and rename-then-delete removal."""

    def test_sibling_temp_dir_is_hidden_and_adjacent(self, tmp_path):
        """Test temp dir is created next to the final path."""
        temp = make_sibling_temp_dir(tmp_path / "0.1.0")

        assert temp.parent == tmp_path
        assert temp.name.startswith(".tmp-0.1.0-")
        assert temp.is_dir()

    def test_publish_moves_directory(self, tmp_path):
        """Test publish renames the populated directory."""
        final = tmp_path / "0.1.0"
        temp = make_sibling_temp_dir(final)
        (temp / "resolc").write_text("binary")

        publish_directory(temp, final)

        assert (final / "resolc").read_text() == "binary"
        assert not temp.exists()

    def test_publish_refuses_existing_destination(self, tmp_path):
        """Test publish never overwrites a live directory."""
        final = tmp_path / "0.1.0"
        final.mkdir()
        (final / "resolc").write_text("old")
        temp = make_sibling_temp_dir(final)

        with pytest.raises(FilesystemError, match="already exists"):
            publish_directory(temp, final)

        assert (final / "resolc").read_text() == "old"

    def test_discard_directory(self, tmp_path):
        """Test discard removes the directory and leaves no trash behind."""
        victim = tmp_path / "0.1.0"
        victim.mkdir()
        (victim / "resolc").write_text("binary")

        discard_directory(victim)

        assert list(tmp_path.iterdir()) == []

    def test_move_to_trash(self, tmp_path):
        """Test the live name disappears and the contents survive in trash."""
        victim = tmp_path / "0.1.0"
        victim.mkdir()
        (victim / "resolc").write_text("binary")

        trash = move_to_trash(victim)

        assert not victim.exists()
        assert trash.parent == tmp_path
        assert trash.name.startswith(".trash-0.1.0-")
        assert (trash / "resolc").read_text() == "binary"

    def test_discard_missing_directory_fails(self, tmp_path):
        """Test discarding a missing directory raises."""
        with pytest.raises(FilesystemError):
            discard_directory(tmp_path / "missing")

    def test_sweep_transient_dirs(self, tmp_path):
        """Test sweep removes only temp and trash directories."""
        (tmp_path / ".tmp-0.1.0-abc").mkdir()
        (tmp_path / ".trash-0.2.0-def").mkdir()
        (tmp_path / "0.3.0").mkdir()
        (tmp_path / ".lock").mkdir()

        removed = sweep_transient_dirs(tmp_path)

        assert removed == 2
        assert sorted(p.name for p in tmp_path.iterdir()) == [".lock", "0.3.0"]

    def test_sweep_missing_root(self, tmp_path):
        """Test sweeping a missing directory is a no-op."""
        assert sweep_transient_dirs(tmp_path / "missing") == 0


class TestSafeRmtree:
    """Test safe_rmtree function."""

    def test_remove_directory(self, tmp_path):
        """Test removing a directory tree."""
        target = tmp_path / "tree"
        (target / "sub").mkdir(parents=True)
        (target / "sub" / "file").write_text("x")

        safe_rmtree(target)

        assert not target.exists()

    def test_prefix_violation(self, tmp_path):
        """Test refusing to delete outside the required prefix."""
        outside = tmp_path / "outside"
        outside.mkdir()

        with pytest.raises(ValueError, match="not under required prefix"):
            safe_rmtree(outside, require_prefix=tmp_path / "store")

        assert outside.exists()

    def test_missing_path_is_noop(self, tmp_path):
        """Test removing a missing path does nothing."""
        safe_rmtree(tmp_path / "missing")

    def test_file_is_rejected(self, tmp_path):
        """Test a regular file is not removed."""
        file = tmp_path / "file"
        file.write_text("x")

        with pytest.raises(FilesystemError, match="not a directory"):
            safe_rmtree(file)


@pytest.mark.skipif(sys.platform == "win32", reason="POSIX permissions")
class TestPermissions:
    """Test executable permission helpers."""

    def test_make_executable(self, tmp_path):
        """Test file becomes executable."""
        binary = tmp_path / "resolc"
        binary.write_text("#!/bin/sh\n")
        os.chmod(binary, 0o644)

        assert not is_executable(binary)
        make_executable(binary)
        assert is_executable(binary)
        assert binary.stat().st_mode & 0o755 == 0o755

    def test_missing_file_is_not_executable(self, tmp_path):
        """Test missing files are reported as not executable."""
        assert not is_executable(tmp_path / "missing")
