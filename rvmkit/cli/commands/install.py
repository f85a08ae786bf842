"""
Install command implementation.

Downloads, verifies and installs a version of Resolc.
"""

from rvmkit.cli.utils import build_context, install_target, progress_printer
from rvmkit.releases.manifest import parse_install_target
from rvmkit.releases.version import Version


def run(args) -> int:
    """
    Run the install command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success)
    """
    target = parse_install_target(args.version)
    solc = Version(args.solc) if args.solc else None
    ctx = build_context(args)

    record = install_target(
        ctx, target, progress_printer(args.quiet), solc_version=solc
    )

    if args.set_default:
        ctx.store.set_default(record.version)

    return 0
