"""
Entry point for running the rvm CLI as a module.

Usage: python -m rvmkit.cli [command] [options]
"""

from .parser import main

if __name__ == "__main__":
    main()
