"""
Use command implementation.

Sets the default version, optionally installing it first.
"""

import logging

from rvmkit.cli.utils import build_context, install_target, progress_printer
from rvmkit.releases.manifest import InstallTarget
from rvmkit.releases.version import Version

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the use command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success)
    """
    version = Version(args.version)
    ctx = build_context(args)

    if args.install and not ctx.store.is_installed(version):
        logger.info(f"Resolc v{version} is not installed, installing it")
        install_target(ctx, InstallTarget(version), progress_printer(args.quiet))

    ctx.store.set_default(version)
    return 0
