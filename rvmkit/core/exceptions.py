"""
Centralized exception hierarchy for rvmkit.

Every error carries a stable process exit code so that the ``rvm`` CLI and the
``resolc`` wrapper can map failures to distinct, scriptable statuses.
"""

from typing import Optional


# ============================================================================
# Exit Codes
# ============================================================================

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2
EXIT_RESOLUTION = 3
EXIT_INTEGRITY = 4
EXIT_TRANSFER = 5
EXIT_LOCKED = 6
EXIT_INTERRUPTED = 130


# ============================================================================
# Base Exceptions
# ============================================================================


class RvmError(Exception):
    """Base exception for all rvmkit errors."""

    exit_code = EXIT_FAILURE


class ConfigError(RvmError):
    """Raised when the configuration file or an override is invalid."""

    pass


class StoreError(RvmError):
    """Raised when the version store cannot be read or written."""

    pass


# ============================================================================
# Resolution Exceptions
# ============================================================================


class ResolutionError(RvmError):
    """Base exception for failures to resolve a version or binary."""

    exit_code = EXIT_RESOLUTION


class InvalidVersionError(ResolutionError):
    """Invalid version string."""

    pass


class PlatformUnsupported(ResolutionError):
    """Raised when no artifacts are published for the current platform."""

    def __init__(self, os_name: str, arch: str):
        self.os_name = os_name
        self.arch = arch
        super().__init__(f"Unsupported platform {os_name}_{arch}")


class ManifestUnavailable(ResolutionError):
    """Raised when the release manifest can be neither fetched nor read from cache."""

    def __init__(self, message: str, source: Optional[str] = None):
        self.source = source
        super().__init__(message)


class VersionNotFound(ResolutionError):
    """Raised when the manifest has no artifact for a version and platform."""

    def __init__(self, version: str, platform: str):
        self.version = version
        self.platform = platform
        super().__init__(f"Unknown version of Resolc v{version} for platform {platform}")


class VersionNotInstalled(ResolutionError):
    """Raised when an operation targets a version absent from the store."""

    def __init__(self, version, detail: str = ""):
        self.version = version
        msg = f"Version of Resolc v{version} is not installed"
        if detail:
            msg += f" ({detail})"
        super().__init__(msg)


class NoDefaultSet(ResolutionError):
    """Raised when no override is given and no default version is selected."""

    def __init__(self):
        super().__init__(
            "Default version of Resolc is not set. "
            "Run 'rvm use <version>' or pass '+<version>'"
        )


class OfflineInstallError(ResolutionError):
    """Raised when a new version is requested while running offline."""

    def __init__(self, version):
        self.version = version
        super().__init__(f"Can't install Resolc v{version} in offline mode")


class SolcVersionNotSupported(ResolutionError):
    """Raised when a Resolc build does not support the requested solc version."""

    def __init__(self, solc_version, resolc_version, supported_range: str):
        self.solc_version = solc_version
        self.resolc_version = resolc_version
        self.supported_range = supported_range
        super().__init__(
            f"Unsupported version of `solc` - v{solc_version} for Resolc "
            f"v{resolc_version}. Only versions \"{supported_range}\" are supported "
            f"by this version of Resolc"
        )


# ============================================================================
# Transfer and Integrity Exceptions
# ============================================================================


class IntegrityError(RvmError):
    """Raised when downloaded or installed bytes do not match the expected digest."""

    exit_code = EXIT_INTEGRITY


class TransferError(RvmError):
    """
    Raised when a network transfer fails.

    This is the only error class callers may retry.

    Attributes:
        url: URL that was being fetched
        offset: Number of bytes received before the failure
    """

    exit_code = EXIT_TRANSFER

    def __init__(self, message: str, url: str, offset: int = 0):
        self.url = url
        self.offset = offset
        super().__init__(f"{message} (url: {url}, at byte {offset})")


# ============================================================================
# Locking Exceptions
# ============================================================================


class StoreLocked(RvmError):
    """Raised when the store lock cannot be acquired within the timeout."""

    exit_code = EXIT_LOCKED

    def __init__(self, message: str, owner_pid: Optional[int] = None):
        self.owner_pid = owner_pid
        super().__init__(message)


def exit_code_for(error: BaseException) -> int:
    """Map an exception to the process exit code reported for it."""
    if isinstance(error, RvmError):
        return error.exit_code
    if isinstance(error, KeyboardInterrupt):
        return EXIT_INTERRUPTED
    return EXIT_FAILURE
