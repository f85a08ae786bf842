"""
Concurrent access control for the version store.

Every mutation of the store (install, remove, set-default) runs under a single
exclusive, cross-process advisory lock scoped to the store root. The lock is
implemented with the `filelock` library and is bounded by a timeout so that a
stuck holder is reported instead of hanging the caller.

Stale-lock recovery:
    After acquiring the lock the holder writes an owner record next to the
    lock file (pid, hostname, acquisition time). Kernel locks (fcntl on POSIX,
    msvcrt on Windows) are released by the OS when the holder exits, so a
    timeout on them always means a live holder and raises ``StoreLocked``.
    Only where ``filelock`` falls back to a soft lock (a plain marker file)
    is the owner record consulted: if it names a process on this host that
    is no longer running, the waiter removes the lock and owner files and
    retries once.

Usage:
    from rvmkit.core.locking import StoreLock

    with StoreLock(root, timeout=30):
        # Safely mutate the store
        pass
"""

import json
import logging
import os
import socket
import time
from pathlib import Path
from typing import Optional

from filelock import FileLock, SoftFileLock, Timeout as LockTimeout

from rvmkit.core.directory import LOCK_DIR
from rvmkit.core.exceptions import StoreLocked

logger = logging.getLogger(__name__)

LOCK_NAME = "store.lock"


def is_process_alive(pid: int) -> bool:
    """
    Check whether a process with ``pid`` is running on this host.

    Args:
        pid: Process identifier

    Returns:
        True if the process exists (or exists but belongs to another user)
    """
    if pid <= 0:
        return False

    if os.name == "nt":
        import ctypes

        PROCESS_QUERY_LIMITED_INFORMATION = 0x1000
        handle = ctypes.windll.kernel32.OpenProcess(  # type: ignore[attr-defined]
            PROCESS_QUERY_LIMITED_INFORMATION, False, pid
        )
        if not handle:
            return False
        ctypes.windll.kernel32.CloseHandle(handle)  # type: ignore[attr-defined]
        return True

    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    return True


class StoreLock:
    """
    Exclusive cross-process lock over a version store root.

    The lock is re-entrant within one process (``filelock`` counts nested
    acquisitions), which lets a store operation call another locked operation.

    Attributes:
        lock_path: Path to the lock file
        owner_path: Path to the owner record
        timeout: Maximum wait time in seconds
    """

    def __init__(self, root: Path, timeout: float = 30):
        """
        Initialize store lock.

        Args:
            root: Version store root directory
            timeout: Maximum wait time in seconds before raising StoreLocked
        """
        lock_dir = Path(root) / LOCK_DIR
        lock_dir.mkdir(parents=True, exist_ok=True)

        self.lock_path = lock_dir / LOCK_NAME
        self.owner_path = lock_dir / f"{LOCK_NAME}.owner"
        self.timeout = timeout
        self._lock = FileLock(self.lock_path, timeout=timeout)

    @property
    def is_locked(self) -> bool:
        """Whether this process currently holds the lock."""
        return self._lock.is_locked

    def read_owner(self) -> Optional[dict]:
        """
        Read the owner record of the current holder.

        Returns:
            Owner record dictionary, or None if absent or unreadable
        """
        try:
            data = json.loads(self.owner_path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return None
        return data if isinstance(data, dict) else None

    def _write_owner(self):
        record = {
            "pid": os.getpid(),
            "host": socket.gethostname(),
            "acquired_at": time.time(),
        }
        try:
            self.owner_path.write_text(json.dumps(record), encoding="utf-8")
        except OSError as e:
            logger.debug(f"Could not write lock owner record: {e}")

    def _clear_owner(self):
        try:
            self.owner_path.unlink(missing_ok=True)
        except OSError as e:
            logger.debug(f"Could not remove lock owner record: {e}")

    def is_stale(self) -> bool:
        """
        Check whether the lock is held by a dead process on this host.

        Returns:
            True only if the owner record names a local process that has exited
        """
        owner = self.read_owner()
        if not owner:
            return False
        if owner.get("host") != socket.gethostname():
            return False
        try:
            pid = int(owner.get("pid", 0))
        except (TypeError, ValueError):
            return False
        return not is_process_alive(pid)

    def can_break(self) -> bool:
        """
        Check whether a timed-out acquisition may break the current lock.

        Returns:
            True only for a soft lock whose owner is stale
        """
        return isinstance(self._lock, SoftFileLock) and self.is_stale()

    def _break_stale_lock(self):
        owner = self.read_owner() or {}
        logger.warning(
            f"Removing stale store lock held by exited process {owner.get('pid')}: "
            f"{self.lock_path}"
        )
        for path in (self.lock_path, self.owner_path):
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                logger.debug(f"Could not remove {path}: {e}")

    def acquire(self):
        """
        Acquire the lock, recovering once from a stale holder.

        Raises:
            StoreLocked: If the lock can't be acquired within timeout
        """
        nested = self._lock.is_locked
        try:
            self._lock.acquire()
        except LockTimeout:
            if not self.can_break():
                owner = self.read_owner() or {}
                pid = owner.get("pid")
                message = (
                    f"Could not acquire store lock after {self.timeout}s. "
                    f"Another rvm process may be running"
                )
                if pid:
                    message += f" (pid {pid})"
                logger.error(message)
                raise StoreLocked(message, owner_pid=pid)

            self._break_stale_lock()
            self._lock = type(self._lock)(self.lock_path, timeout=self.timeout)
            try:
                self._lock.acquire()
            except LockTimeout as e:
                raise StoreLocked(
                    f"Could not acquire store lock after {self.timeout}s, "
                    f"even after removing a stale lock"
                ) from e

        if not nested:
            self._write_owner()
        logger.debug(f"Acquired store lock: {self.lock_path}")

    def release(self):
        """Release one level of the lock."""
        if self._lock.lock_counter == 1:
            self._clear_owner()
        self._lock.release()
        logger.debug(f"Released store lock: {self.lock_path}")

    def __enter__(self):
        self.acquire()
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.release()
        return False


__all__ = [
    "StoreLock",
    "is_process_alive",
    "LockTimeout",
]
