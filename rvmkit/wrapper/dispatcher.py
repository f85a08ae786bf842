"""
Compiler wrapper dispatch.

The ``resolc`` wrapper forwards every invocation to one installed compiler.
Dispatch is a two-state machine:

    SELECT_VERSION  a leading ``+<version>`` argument selects the version
                    explicitly and is consumed; otherwise the default
                    pointer is used.
    EXEC            the selected binary is resolved through the store and
                    run with the remaining arguments.

Resolution never falls back to another installed version. Process
replacement is delegated to an :class:`Executor` so dispatch can be tested
without spawning anything.
"""

import logging
import os
import subprocess
from enum import Enum
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from rvmkit.releases.version import Version
from rvmkit.store.store import VersionStore

logger = logging.getLogger(__name__)

OVERRIDE_PREFIX = "+"


class DispatchState(Enum):
    """Dispatcher states."""

    SELECT_VERSION = "select_version"
    EXEC = "exec"


def normalize_returncode(returncode: int) -> int:
    """Map a child return code to a shell-style exit status (signal N -> 128 + N)."""
    if returncode < 0:
        return 128 - returncode
    return returncode


class Executor:
    """Runs a resolved compiler binary and reports its exit status."""

    def execute(self, binary: Path, args: List[str]) -> int:
        raise NotImplementedError


class ExecExecutor(Executor):
    """Replaces the current process with the compiler (POSIX)."""

    def execute(self, binary: Path, args: List[str]) -> int:
        os.execv(str(binary), [str(binary), *args])
        return 0  # unreachable: execv only returns by raising


class SubprocessExecutor(Executor):
    """
    Runs the compiler as a child process with inherited stdio.

    Used where ``exec`` does not replace the process (Windows). Ctrl-C is
    delivered to the child by the console, so the wrapper keeps waiting and
    reports the child's own exit status.
    """

    def execute(self, binary: Path, args: List[str]) -> int:
        process = subprocess.Popen([str(binary), *args])
        while True:
            try:
                return normalize_returncode(process.wait())
            except KeyboardInterrupt:
                continue


def default_executor() -> Executor:
    """Executor appropriate for the running platform."""
    if os.name == "nt":
        return SubprocessExecutor()
    return ExecExecutor()


class Dispatcher:
    """
    Selects a compiler version and hands control to it.

    Example:
        >>> dispatcher = Dispatcher(store, executor=FakeExecutor())
        >>> dispatcher.run(["+0.1.0", "--version"])
        0
    """

    def __init__(self, store: VersionStore, executor: Optional[Executor] = None):
        self.store = store
        self.executor = executor or default_executor()
        self.state = DispatchState.SELECT_VERSION

    def select_version(self, argv: Sequence[str]) -> Tuple[Optional[Version], List[str]]:
        """
        Split a leading ``+<version>`` override from the arguments.

        Returns:
            Tuple of (explicit version or None for the default, remaining args)

        Raises:
            InvalidVersionError: If the override is not a valid version
        """
        args = list(argv)
        if args and args[0].startswith(OVERRIDE_PREFIX):
            return Version(args[0][len(OVERRIDE_PREFIX):]), args[1:]
        return None, args

    def run(self, argv: Sequence[str]) -> int:
        """
        Dispatch one invocation.

        Returns:
            The compiler's exit status

        Raises:
            ResolutionError: If no binary can be selected
        """
        self.state = DispatchState.SELECT_VERSION
        version, args = self.select_version(argv)

        binary = self.store.resolve_binary(version)
        self.state = DispatchState.EXEC
        logger.debug(f"Dispatching to {binary} with {len(args)} argument(s)")
        return self.executor.execute(binary, args)
