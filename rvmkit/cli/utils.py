"""
Shared utilities for CLI commands.

Provides the per-invocation context (data directory, configuration, store,
resolver, fetcher) and the install flow used by both ``install`` and
``use --install``.
"""

import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from rvmkit.core.config import RvmConfig, load_config
from rvmkit.core.directory import ensure_data_dir, get_data_dir
from rvmkit.core.download import DownloadProgress, call_with_retries, format_progress
from rvmkit.core.exceptions import OfflineInstallError
from rvmkit.releases.fetcher import ArtifactFetcher
from rvmkit.releases.manifest import InstallTarget, ManifestResolver
from rvmkit.releases.version import Version
from rvmkit.store.store import InstalledVersion, VersionStore

logger = logging.getLogger(__name__)


# ============================================================================
# Command Context
# ============================================================================


@dataclass
class CommandContext:
    """Components shared by every command of one CLI invocation."""

    data_dir: Path
    config: RvmConfig
    store: VersionStore
    resolver: ManifestResolver
    fetcher: ArtifactFetcher


def build_context(args) -> CommandContext:
    """
    Build the command context from parsed global options.

    Args:
        args: Parsed arguments (``home``, ``config``, ``offline``)

    Returns:
        CommandContext instance

    Raises:
        ConfigError: If the configuration is invalid
        StoreError: If the data directory cannot be created
    """
    data_dir = ensure_data_dir(getattr(args, "home", None) or get_data_dir())
    config = load_config(data_dir, getattr(args, "config", None))
    if getattr(args, "offline", False):
        config.offline = True

    logger.debug(f"Using data directory {data_dir}")
    return CommandContext(
        data_dir=data_dir,
        config=config,
        store=VersionStore(data_dir, lock_timeout=config.lock_timeout),
        resolver=ManifestResolver(config, data_dir),
        fetcher=ArtifactFetcher(data_dir, timeout=config.download_timeout),
    )


# ============================================================================
# Install Flow
# ============================================================================


def progress_printer(quiet: bool = False) -> Optional[Callable[[DownloadProgress], None]]:
    """
    Create a download progress callback that renders to stderr.

    Returns None when output is suppressed or stderr is not a terminal.
    """
    if quiet or not sys.stderr.isatty():
        return None

    def show_progress(progress: DownloadProgress):
        print(f"\r{format_progress(progress)}", end="", file=sys.stderr, flush=True)
        if progress.total_bytes and progress.bytes_downloaded >= progress.total_bytes:
            print(file=sys.stderr)

    return show_progress


def install_target(
    ctx: CommandContext,
    target: InstallTarget,
    progress_callback: Optional[Callable[[DownloadProgress], None]] = None,
    solc_version: Optional[Version] = None,
) -> InstalledVersion:
    """
    Resolve, download, verify and install a version.

    A version that is already installed is returned without downloading.
    Transfer failures are retried with exponential backoff according to the
    configuration; every other error is raised immediately.

    Args:
        ctx: Command context
        target: Exact version or latest
        progress_callback: Optional download progress callback
        solc_version: If given, the build must support this solc version

    Returns:
        Record of the installed version

    Raises:
        OfflineInstallError: If running offline and the version is not installed
        ResolutionError: If the target cannot be resolved
        SolcVersionNotSupported: If the build does not support ``solc_version``
        IntegrityError: If the artifact fails verification
        TransferError: If the download keeps failing
        StoreLocked: If the store lock can't be acquired
    """
    if ctx.resolver.offline and not target.is_latest:
        if ctx.store.is_installed(target.version):
            existing = ctx.store.get(target.version)
            if solc_version is not None and existing.artifact is not None:
                existing.artifact.check_solc_compat(solc_version, existing.version)
            return existing
        raise OfflineInstallError(target.version)

    version, descriptor = ctx.resolver.resolve(target)
    if solc_version is not None:
        descriptor.check_solc_compat(solc_version, version)

    if ctx.store.is_installed(version):
        existing = ctx.store.get(version)
        if ctx.resolver.offline or existing.digest == descriptor.digest:
            logger.info(f"Resolc v{version} is already installed")
            return existing
    elif ctx.resolver.offline:
        raise OfflineInstallError(version)

    logger.info(f"Downloading Resolc v{version} ({descriptor.name})")
    staged = call_with_retries(
        lambda: ctx.fetcher.fetch(descriptor, progress_callback=progress_callback),
        attempts=ctx.config.max_retries,
        backoff=ctx.config.retry_backoff,
    )
    try:
        return ctx.store.install(version, staged)
    finally:
        staged.discard()
