"""
The ``resolc`` compiler wrapper.
"""

from .dispatcher import (
    DispatchState,
    Dispatcher,
    Executor,
    ExecExecutor,
    SubprocessExecutor,
    default_executor,
    normalize_returncode,
)

__all__ = [
    "DispatchState",
    "Dispatcher",
    "Executor",
    "ExecExecutor",
    "SubprocessExecutor",
    "default_executor",
    "normalize_returncode",
]
