"""
Platform detection for rvmkit.

Resolc binaries are published per operating system. This module maps the
running interpreter's OS and CPU architecture to the manifest platform key
and rejects combinations for which no binaries exist.

Supported combinations:
    linux   + x64
    macos   + x64 or arm64
    windows + x64

Usage:
    from rvmkit.core.platform import detect_platform

    platform_info = detect_platform()
    print(platform_info.manifest_key)   # 'linux'
"""

import functools
import platform
from dataclasses import dataclass

from rvmkit.core.exceptions import PlatformUnsupported

SUPPORTED = {
    ("linux", "x64"): "linux",
    ("macos", "x64"): "macos",
    ("macos", "arm64"): "macos",
    ("windows", "x64"): "windows",
}


@dataclass(frozen=True)
class PlatformInfo:
    """
    Detected platform.

    Attributes:
        os: Operating system ('windows', 'linux', 'macos')
        arch: CPU architecture ('x64', 'arm64', 'x86', 'arm')
    """

    os: str
    arch: str

    @property
    def manifest_key(self) -> str:
        """
        Key under which the release manifest publishes artifacts for this platform.

        Raises:
            PlatformUnsupported: If no artifacts are published for this platform
        """
        try:
            return SUPPORTED[(self.os, self.arch)]
        except KeyError:
            raise PlatformUnsupported(self.os, self.arch) from None

    def __str__(self) -> str:
        return f"{self.os}-{self.arch}"


def _detect_os() -> str:
    """
    Detect operating system.

    Returns:
        Normalized OS name: 'windows', 'linux', 'macos', or the raw lowercase name
    """
    system = platform.system().lower()

    if system == "windows":
        return "windows"
    elif system == "darwin":
        return "macos"
    return system


def _detect_architecture() -> str:
    """
    Detect CPU architecture.

    Returns:
        Normalized architecture: 'x64', 'arm64', 'x86', 'arm'
    """
    machine = platform.machine().lower()

    if machine in ("x86_64", "amd64", "x64"):
        return "x64"
    elif machine in ("aarch64", "arm64"):
        return "arm64"
    elif machine in ("i386", "i686", "x86"):
        return "x86"
    elif machine.startswith("arm"):
        return "arm"
    return machine


@functools.lru_cache(maxsize=1)
def detect_platform() -> PlatformInfo:
    """
    Detect current platform information.

    This function is cached - it only runs detection once per process.

    Returns:
        PlatformInfo for the running interpreter
    """
    return PlatformInfo(os=_detect_os(), arch=_detect_architecture())


def current_platform_key() -> str:
    """
    Manifest key of the running platform.

    Raises:
        PlatformUnsupported: If the platform has no published artifacts
    """
    return detect_platform().manifest_key


def clear_platform_cache():
    """Clear the platform detection cache."""
    detect_platform.cache_clear()


__all__ = [
    "PlatformInfo",
    "detect_platform",
    "current_platform_key",
    "clear_platform_cache",
]
