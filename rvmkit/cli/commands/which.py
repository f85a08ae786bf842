"""
Which command implementation.

Prints the path of the binary the wrapper would run.
"""

from rvmkit.cli.utils import build_context
from rvmkit.releases.version import Version


def run(args) -> int:
    """
    Run the which command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success)
    """
    version = Version(args.version) if args.version else None
    ctx = build_context(args)
    print(ctx.store.resolve_binary(version))
    return 0
