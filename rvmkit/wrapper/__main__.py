"""
Entry point of the ``resolc`` wrapper executable.

Usage: resolc [+<version>] [compiler arguments...]
"""

import logging
import sys
from typing import List, Optional

from rvmkit.core.config import load_config
from rvmkit.core.directory import get_data_dir
from rvmkit.core.exceptions import EXIT_INTERRUPTED, exit_code_for
from rvmkit.store.store import VersionStore
from rvmkit.wrapper.dispatcher import Dispatcher, Executor


def run(argv: Optional[List[str]] = None, executor: Optional[Executor] = None) -> int:
    """
    Run the wrapper.

    Args:
        argv: Arguments after the program name (uses sys.argv if None)
        executor: Executor override

    Returns:
        Exit code: the compiler's own status, or the error's exit code
    """
    argv = sys.argv[1:] if argv is None else argv

    try:
        data_dir = get_data_dir()
        config = load_config(data_dir)
        store = VersionStore(data_dir, lock_timeout=config.lock_timeout)
        return Dispatcher(store, executor=executor).run(argv)
    except KeyboardInterrupt:
        return EXIT_INTERRUPTED
    except Exception as e:
        print(f"rvm: error: {e}", file=sys.stderr)
        return exit_code_for(e)


def main():
    """Main entry point for the wrapper."""
    logging.basicConfig(level=logging.ERROR, format="%(levelname)s: %(message)s")
    sys.exit(run())


if __name__ == "__main__":
    main()
