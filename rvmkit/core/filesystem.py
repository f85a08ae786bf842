"""
Crash-safe file system operations for the version store.

This module provides the primitives the store relies on to never expose a
partially written state:
- Atomic file writes (temp file + rename)
- Atomic directory publication (sibling temp directory + rename)
- Rename-then-delete directory removal
- Executable permission handling

All temporary names are created next to their final location so that every
rename stays within one filesystem.
"""

import os
import shutil
import stat
import tempfile
import uuid
from pathlib import Path
from typing import Optional, Union

from rvmkit.core.exceptions import StoreError

IS_WINDOWS = os.name == "nt"

TEMP_PREFIX = ".tmp-"
TRASH_PREFIX = ".trash-"


class FilesystemError(StoreError):
    """Base exception for filesystem operations."""

    pass


# ============================================================================
# Safe File Operations
# ============================================================================


def atomic_write(
    file_path: Union[str, Path], content: Union[str, bytes], encoding: str = "utf-8"
) -> None:
    """
    Write file atomically using temp file + rename.

    This ensures the file is never in a partially-written state.
    If the write fails, the original file (if any) remains unchanged.

    Args:
        file_path: Path to write to
        content: Content to write (string or bytes)
        encoding: Text encoding (used only for string content)

    Example:
        >>> atomic_write('.default_version', '0.1.0')
    """
    file_path = Path(file_path)
    file_path.parent.mkdir(parents=True, exist_ok=True)

    # Same directory keeps the rename on one filesystem
    temp_fd, temp_path_str = tempfile.mkstemp(
        dir=file_path.parent, prefix=f".{file_path.name}.", suffix=".tmp"
    )
    temp_path = Path(temp_path_str)

    try:
        if isinstance(content, str):
            content = content.encode(encoding)
        with open(temp_fd, "wb") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())

        temp_path.replace(file_path)

    except Exception:
        try:
            temp_path.unlink(missing_ok=True)
        except OSError:
            pass
        raise


def safe_rmtree(
    path: Union[str, Path], require_prefix: Optional[Union[str, Path]] = None
) -> None:
    """
    Safely remove a directory tree with safeguards.

    Args:
        path: Directory to remove
        require_prefix: If specified, path must be under this directory

    Raises:
        ValueError: If path is not under require_prefix
        FilesystemError: If deletion fails
    """
    path = Path(path).resolve()

    if require_prefix is not None:
        require_prefix = Path(require_prefix).resolve()
        if not path.is_relative_to(require_prefix):
            raise ValueError(
                f"Refusing to delete '{path}': not under required prefix '{require_prefix}'"
            )

    if not path.exists():
        return

    if not path.is_dir():
        raise FilesystemError(f"Path is not a directory: {path}")

    try:
        if IS_WINDOWS:

            def handle_remove_readonly(func, path, exc):
                """Error handler for Windows read-only files."""
                if not os.access(path, os.W_OK):
                    os.chmod(path, 0o777)
                    func(path)
                else:
                    raise

            shutil.rmtree(path, onerror=handle_remove_readonly)
        else:
            shutil.rmtree(path)

    except Exception as e:
        raise FilesystemError(f"Failed to remove directory '{path}': {e}")


# ============================================================================
# Atomic Directory Operations
# ============================================================================


def make_sibling_temp_dir(final_path: Union[str, Path]) -> Path:
    """
    Create an empty hidden directory next to ``final_path``.

    The directory is later published with :func:`publish_directory`.

    Args:
        final_path: Path the directory will eventually be renamed to

    Returns:
        Path to the new temporary directory
    """
    final_path = Path(final_path)
    final_path.parent.mkdir(parents=True, exist_ok=True)
    return Path(
        tempfile.mkdtemp(dir=final_path.parent, prefix=f"{TEMP_PREFIX}{final_path.name}-")
    )


def publish_directory(temp_dir: Union[str, Path], final_path: Union[str, Path]) -> None:
    """
    Atomically rename a fully populated directory to its final name.

    Args:
        temp_dir: Populated directory created by :func:`make_sibling_temp_dir`
        final_path: Destination path, which must not exist

    Raises:
        FilesystemError: If the destination exists or the rename fails
    """
    temp_dir = Path(temp_dir)
    final_path = Path(final_path)

    if final_path.exists():
        raise FilesystemError(f"Destination already exists: {final_path}")

    try:
        os.rename(temp_dir, final_path)
    except OSError as e:
        raise FilesystemError(
            f"Failed to publish '{temp_dir.name}' as '{final_path}': {e}"
        )


def move_to_trash(path: Union[str, Path]) -> Path:
    """
    Rename a directory to a hidden trash name next to it.

    The live name disappears in a single step. The returned trash directory
    is picked up by ``sweep_transient_dirs`` if it is never deleted.

    Args:
        path: Directory to move

    Returns:
        Path of the trash directory

    Raises:
        FilesystemError: If the rename fails
    """
    path = Path(path)
    trash = path.parent / f"{TRASH_PREFIX}{path.name}-{uuid.uuid4().hex[:8]}"

    try:
        os.rename(path, trash)
    except OSError as e:
        raise FilesystemError(f"Failed to move '{path}' to trash: {e}")
    return trash


def discard_directory(path: Union[str, Path]) -> None:
    """
    Remove a directory by renaming it to a trash name first, then deleting it.

    A crash after the rename leaves only a hidden trash directory behind.

    Args:
        path: Directory to remove

    Raises:
        FilesystemError: If the rename or deletion fails
    """
    path = Path(path)
    safe_rmtree(move_to_trash(path), require_prefix=path.parent)


def sweep_transient_dirs(root: Union[str, Path]) -> int:
    """
    Delete leftover temporary and trash directories under ``root``.

    Args:
        root: Directory to sweep

    Returns:
        Number of directories removed
    """
    root = Path(root)
    if not root.is_dir():
        return 0

    removed = 0
    for entry in root.iterdir():
        if entry.is_dir() and entry.name.startswith((TEMP_PREFIX, TRASH_PREFIX)):
            safe_rmtree(entry, require_prefix=root)
            removed += 1
    return removed


# ============================================================================
# Permissions
# ============================================================================


def make_executable(path: Union[str, Path]) -> None:
    """
    Mark a file as executable for user, group and others (no-op on Windows).

    Args:
        path: File to update
    """
    if IS_WINDOWS:
        return

    path = Path(path)
    mode = path.stat().st_mode
    path.chmod(mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH | stat.S_IRUSR)


def is_executable(path: Union[str, Path]) -> bool:
    """Check whether ``path`` is a file the current user may execute."""
    path = Path(path)
    if not path.is_file():
        return False
    if IS_WINDOWS:
        return True
    return os.access(path, os.X_OK)


__all__ = [
    "FilesystemError",
    "atomic_write",
    "safe_rmtree",
    "make_sibling_temp_dir",
    "publish_directory",
    "discard_directory",
    "move_to_trash",
    "sweep_transient_dirs",
    "make_executable",
    "is_executable",
    "TEMP_PREFIX",
    "TRASH_PREFIX",
]
