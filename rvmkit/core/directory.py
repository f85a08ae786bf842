"""
Directory structure management for rvmkit.

This module resolves the data directory that holds the version store and
creates its fixed layout. All rvmkit state lives under a single root so that
temporary install directories are always on the same filesystem as the
versions they are renamed into.

Directory Structure:
    Data directory (~/.rvm/ or <platform data dir>/rvm/):
        - <version>/            : One directory per installed version
        - .default_version      : Default version pointer
        - .lock/                : Store lock file and owner record
        - .cache/               : Cached release manifests
        - .staging/             : Verified downloads awaiting installation
        - config.yaml           : Optional configuration
"""

import os
import sys
from pathlib import Path
from typing import Optional

from rvmkit.core.exceptions import StoreError

HOME_ENV_VAR = "RVM_HOME"

LOCK_DIR = ".lock"
CACHE_DIR = ".cache"
STAGING_DIR = ".staging"
DEFAULT_POINTER = ".default_version"
CONFIG_FILE = "config.yaml"


class DirectoryCreationError(StoreError):
    """Raised when directory creation fails."""

    pass


def _platform_data_dir() -> Path:
    """Return the per-user application data directory for this platform."""
    if os.name == "nt":
        appdata = os.environ.get("APPDATA")
        if not appdata:
            raise DirectoryCreationError(
                "APPDATA environment variable is not set. "
                "Cannot determine data directory."
            )
        return Path(appdata)
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support"

    xdg = os.environ.get("XDG_DATA_HOME")
    if xdg:
        return Path(xdg)
    return Path.home() / ".local" / "share"


def get_data_dir() -> Path:
    """
    Get the data directory that holds the version store.

    Resolution order:
        1. ``RVM_HOME`` environment variable
        2. ``~/.rvm`` if it already exists
        3. ``<platform data dir>/rvm``

    Returns:
        Path: The data directory path (not created).

    Example:
        >>> get_data_dir()
        PosixPath('/home/user/.local/share/rvm')  # on Linux
    """
    override = os.environ.get(HOME_ENV_VAR)
    if override:
        return Path(override).expanduser()

    legacy = Path.home() / ".rvm"
    if legacy.exists():
        return legacy

    return _platform_data_dir() / "rvm"


def ensure_data_dir(root: Optional[Path] = None) -> Path:
    """
    Create the data directory and its fixed subdirectories if missing.

    Args:
        root: Data directory (default: :func:`get_data_dir`)

    Returns:
        Path: The data directory path.

    Raises:
        DirectoryCreationError: If the directory or a subdirectory cannot be
            created, or if the root exists but is not a directory.
    """
    root = Path(root) if root is not None else get_data_dir()

    if root.exists() and not root.is_dir():
        raise DirectoryCreationError(f"{root} is not a directory")

    for path in (root, root / LOCK_DIR, root / CACHE_DIR, root / STAGING_DIR):
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise DirectoryCreationError(f"Failed to create directory {path}: {e}")

    return root
