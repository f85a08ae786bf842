"""
Remove command implementation.
"""

from rvmkit.cli.utils import build_context
from rvmkit.releases.version import Version


def run(args) -> int:
    """Remove an installed version; clears the default if it pointed there."""
    version = Version(args.version)
    ctx = build_context(args)
    ctx.store.remove(version)
    return 0
