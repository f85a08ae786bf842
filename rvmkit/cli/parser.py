"""
rvm CLI argument parser.

This module implements the command-line interface for rvmkit using argparse.
"""

import argparse
import importlib
import logging
import sys
from pathlib import Path
from typing import List, Optional

from rvmkit import __version__
from rvmkit.core.exceptions import (
    EXIT_FAILURE,
    EXIT_INTERRUPTED,
    EXIT_USAGE,
    RvmError,
)

logger = logging.getLogger(__name__)


class CLI:
    """rvm command-line interface."""

    def __init__(self):
        """Initialize CLI with argument parser."""
        self.parser = self._create_parser()

    def _create_parser(self) -> argparse.ArgumentParser:
        """
        Create argument parser with all subcommands.

        Returns:
            Configured ArgumentParser instance
        """
        parser = argparse.ArgumentParser(
            prog="rvm",
            description="rvm - Resolc version manager",
            epilog='Use "rvm COMMAND --help" for command-specific help',
            formatter_class=argparse.RawDescriptionHelpFormatter,
        )

        # Global options
        parser.add_argument(
            "--version", action="version", version=f"rvm {__version__}"
        )
        parser.add_argument(
            "--verbose", "-v", action="store_true", help="Enable verbose output"
        )
        parser.add_argument(
            "--quiet",
            "-q",
            action="store_true",
            help="Enable minimal output (errors only)",
        )
        parser.add_argument(
            "--offline",
            action="store_true",
            help="Use the cached release manifest and never download",
        )
        parser.add_argument(
            "--home",
            type=Path,
            metavar="PATH",
            help="Data directory (default: $RVM_HOME, ~/.rvm or the platform data dir)",
        )
        parser.add_argument(
            "--config",
            type=Path,
            metavar="PATH",
            help="Path to configuration file (default: <data dir>/config.yaml)",
        )

        # Subcommands
        subparsers = parser.add_subparsers(
            dest="command", help="Available commands", metavar="COMMAND"
        )

        self._add_install_command(subparsers)
        self._add_remove_command(subparsers)
        self._add_which_command(subparsers)
        self._add_use_command(subparsers)
        self._add_list_command(subparsers)

        return parser

    def _add_install_command(self, subparsers):
        """Add 'install' subcommand."""
        parser = subparsers.add_parser(
            "install",
            help="Install a version of Resolc",
            description="Download, verify and install a version of Resolc",
        )
        parser.add_argument(
            "version",
            metavar="VERSION",
            help='Version to install, or "latest" for the newest stable release',
        )
        parser.add_argument(
            "--set-default",
            action="store_true",
            help="Make the installed version the default",
        )
        parser.add_argument(
            "--solc",
            metavar="VERSION",
            help="Fail unless the build supports this solc version",
        )

    def _add_remove_command(self, subparsers):
        """Add 'remove' subcommand."""
        parser = subparsers.add_parser(
            "remove",
            help="Remove an installed version",
            description="Remove an installed version of Resolc",
        )
        parser.add_argument("version", metavar="VERSION", help="Version to remove")

    def _add_which_command(self, subparsers):
        """Add 'which' subcommand."""
        parser = subparsers.add_parser(
            "which",
            help="Show the path of a binary",
            description="Print the path of the default (or given) Resolc binary",
        )
        parser.add_argument(
            "version",
            nargs="?",
            metavar="VERSION",
            help="Installed version (default: the default version)",
        )

    def _add_use_command(self, subparsers):
        """Add 'use' subcommand."""
        parser = subparsers.add_parser(
            "use",
            help="Set the default version",
            description="Set the version used when no +<version> override is given",
        )
        parser.add_argument("version", metavar="VERSION", help="Version to use")
        parser.add_argument(
            "--install",
            action="store_true",
            help="Install the version first if it is missing",
        )

    def _add_list_command(self, subparsers):
        """Add 'list' subcommand."""
        parser = subparsers.add_parser(
            "list",
            help="List installed and available versions",
            description="Show the default, installed and available versions",
        )
        parser.add_argument(
            "--solc",
            metavar="VERSION",
            help="Only show versions that support this solc version",
        )

    def parse_args(self, args: Optional[List[str]] = None):
        """
        Parse command-line arguments.

        Args:
            args: Arguments to parse (uses sys.argv if None)

        Returns:
            Parsed arguments namespace
        """
        return self.parser.parse_args(args)

    def run(self, args: Optional[List[str]] = None) -> int:
        """
        Run CLI with given arguments.

        Args:
            args: Arguments to parse (uses sys.argv if None)

        Returns:
            Exit code (0 for success, non-zero for error)
        """
        parsed_args = self.parse_args(args)

        # Configure logging
        self._configure_logging(parsed_args)

        # Check if command specified
        if not parsed_args.command:
            self.parser.print_help()
            return EXIT_USAGE

        # Dispatch to command handler
        try:
            return self._dispatch_command(parsed_args)
        except KeyboardInterrupt:
            logger.info("Operation cancelled by user")
            return EXIT_INTERRUPTED
        except RvmError as e:
            logger.error(f"Error: {e}")
            return e.exit_code
        except Exception as e:
            logger.error(f"Error: {e}")
            if parsed_args.verbose:
                import traceback

                traceback.print_exc()
            return EXIT_FAILURE

    def _configure_logging(self, args):
        """
        Configure logging based on verbose/quiet flags.

        Args:
            args: Parsed arguments with verbose/quiet flags
        """
        if args.verbose:
            level = logging.DEBUG
            format_str = "%(levelname)s [%(name)s] %(message)s"
        elif args.quiet:
            level = logging.ERROR
            format_str = "%(levelname)s: %(message)s"
        else:
            level = logging.INFO
            format_str = "%(message)s"

        logging.basicConfig(
            level=level,
            format=format_str,
            force=True,  # Reconfigure if already configured
        )

    def _dispatch_command(self, args) -> int:
        """
        Dispatch to appropriate command handler.

        Args:
            args: Parsed arguments with command field

        Returns:
            Exit code from command handler
        """
        command_map = {
            "install": "rvmkit.cli.commands.install",
            "remove": "rvmkit.cli.commands.remove",
            "which": "rvmkit.cli.commands.which",
            "use": "rvmkit.cli.commands.use",
            "list": "rvmkit.cli.commands.list",
        }

        module_name = command_map.get(args.command)
        if not module_name:
            logger.error(f"Unknown command: {args.command}")
            return EXIT_USAGE

        module = importlib.import_module(module_name)
        return module.run(args)


def main():
    """Main entry point for CLI."""
    cli = CLI()
    sys.exit(cli.run())


if __name__ == "__main__":
    main()
