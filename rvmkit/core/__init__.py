"""
Core functionality for rvmkit.

This package contains the foundational modules that other components depend on.
"""

from .directory import (
    get_data_dir,
    ensure_data_dir,
    DirectoryCreationError,
)

from .config import (
    RvmConfig,
    load_config,
)

from .locking import (
    StoreLock,
)

from .platform import (
    PlatformInfo,
    detect_platform,
    current_platform_key,
    clear_platform_cache,
)

from .exceptions import (
    RvmError,
    ConfigError,
    StoreError,
    ResolutionError,
    InvalidVersionError,
    PlatformUnsupported,
    ManifestUnavailable,
    VersionNotFound,
    VersionNotInstalled,
    NoDefaultSet,
    OfflineInstallError,
    SolcVersionNotSupported,
    IntegrityError,
    TransferError,
    StoreLocked,
    exit_code_for,
)

__all__ = [
    # Directory
    "get_data_dir",
    "ensure_data_dir",
    "DirectoryCreationError",
    # Config
    "RvmConfig",
    "load_config",
    # Locking
    "StoreLock",
    # Platform
    "PlatformInfo",
    "detect_platform",
    "current_platform_key",
    "clear_platform_cache",
    # Exceptions
    "RvmError",
    "ConfigError",
    "StoreError",
    "ResolutionError",
    "InvalidVersionError",
    "PlatformUnsupported",
    "ManifestUnavailable",
    "VersionNotFound",
    "VersionNotInstalled",
    "NoDefaultSet",
    "OfflineInstallError",
    "SolcVersionNotSupported",
    "IntegrityError",
    "TransferError",
    "StoreLocked",
    "exit_code_for",
]
