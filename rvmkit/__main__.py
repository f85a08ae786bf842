"""
Entry point for running the rvm CLI as a module.

Usage: python -m rvmkit [command] [options]
"""

from rvmkit.cli.parser import main

if __name__ == "__main__":
    main()
