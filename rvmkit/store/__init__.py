"""
Version store: installed versions and the default-version pointer.
"""

from .store import InstalledVersion, VersionStore, RECORD_FILE

__all__ = [
    "InstalledVersion",
    "VersionStore",
    "RECORD_FILE",
]
