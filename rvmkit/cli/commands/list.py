"""
List command implementation.

Shows the default version, installed versions and versions available to
install for the current platform.
"""

import logging

from rvmkit.cli.utils import build_context
from rvmkit.core.exceptions import ManifestUnavailable
from rvmkit.releases.version import Version

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the list command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success)
    """
    solc = Version(args.solc) if args.solc else None
    ctx = build_context(args)

    default = ctx.store.get_default()
    installed = ctx.store.list()
    if solc is not None:
        installed = [
            record
            for record in installed
            if record.artifact is not None and record.artifact.supports_solc(solc)
        ]

    try:
        available = ctx.resolver.available()
    except ManifestUnavailable as e:
        logger.warning(f"Available versions unknown: {e}")
        available = []

    available = [
        (version, descriptor)
        for version, descriptor in available
        if not ctx.store.is_installed(version)
        and (solc is None or descriptor.supports_solc(solc))
    ]

    print(f"Default: {default if default is not None else 'not set'}")

    print("Installed:")
    for record in installed:
        marker = " (default)" if record.version == default else ""
        print(f"  {record.version}{marker}")
    if not installed:
        print("  (none)")

    print("Available:")
    for version, descriptor in available:
        print(f"  {version}  solc {descriptor.solc_range}")
    if not available:
        print("  (none)")

    return 0
