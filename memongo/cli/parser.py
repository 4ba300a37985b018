"""
memongo CLI argument parser.

This module implements the command-line interface for memongo using argparse.
"""

import argparse
import importlib
import logging
import sys
from pathlib import Path
from typing import List, Optional

from memongo import __version__
from memongo.core.exceptions import MemongoError

logger = logging.getLogger(__name__)

COMMAND_MAP = {
    "start": "memongo.cli.commands.start",
    "download": "memongo.cli.commands.download",
    "info": "memongo.cli.commands.info",
}


class CLI:
    """memongo command-line interface."""

    def __init__(self):
        self.parser = self._create_parser()

    def _create_parser(self) -> argparse.ArgumentParser:
        """
        Create argument parser with all subcommands.

        Returns:
            Configured ArgumentParser instance
        """
        parser = argparse.ArgumentParser(
            prog="memongo",
            description="memongo - throwaway MongoDB servers for tests",
            epilog='Use "memongo COMMAND --help" for command-specific help',
            formatter_class=argparse.RawDescriptionHelpFormatter,
        )

        # Global options
        parser.add_argument(
            "--version", action="version", version=f"memongo {__version__}"
        )
        parser.add_argument(
            "--verbose",
            "-v",
            action="store_true",
            help="Enable verbose output, including mongod's own log",
        )
        parser.add_argument(
            "--quiet",
            "-q",
            action="store_true",
            help="Enable minimal output (errors only)",
        )
        parser.add_argument(
            "--config",
            type=Path,
            metavar="PATH",
            help="YAML file with server options",
        )

        subparsers = parser.add_subparsers(
            dest="command", help="Available commands", metavar="COMMAND"
        )

        self._add_start_command(subparsers)
        self._add_download_command(subparsers)
        self._add_info_command(subparsers)

        return parser

    def _add_binary_arguments(self, parser):
        """Options shared by every command that locates a mongod."""
        parser.add_argument(
            "--mongo-version",
            metavar="VERSION",
            help="MongoDB version, e.g. 4.0.5 (default: $MEMONGO_MONGOD_VERSION)",
        )
        parser.add_argument(
            "--mongod-bin",
            type=Path,
            metavar="PATH",
            help="Use this mongod binary instead of downloading one",
        )
        parser.add_argument(
            "--download-url",
            metavar="URL",
            help="Download mongod from this archive URL",
        )
        parser.add_argument(
            "--cache-path",
            type=Path,
            metavar="PATH",
            help="Binary cache directory",
        )
        parser.add_argument(
            "--no-verify-checksum",
            dest="verify_checksum",
            action="store_false",
            default=None,
            help="Skip SHA-256 verification of downloaded archives",
        )
        parser.add_argument(
            "--verify-signature",
            dest="verify_signature",
            action=argparse.BooleanOptionalAction,
            default=None,
            help="Verify archives against MongoDB's GPG signature "
            "(default: on when a version is given)",
        )

    def _add_start_command(self, subparsers):
        """Add 'start' subcommand."""
        parser = subparsers.add_parser(
            "start",
            help="Start an ephemeral mongod and print its URI",
            description="Start an ephemeral mongod, print its connection URI, "
            "and run until interrupted",
        )
        self._add_binary_arguments(parser)
        parser.add_argument(
            "--port",
            type=int,
            metavar="PORT",
            help="Listen port (default: chosen automatically)",
        )
        parser.add_argument(
            "--startup-timeout",
            type=float,
            metavar="SECONDS",
            help="Seconds to wait for mongod to become ready (default: 10)",
        )
        parser.add_argument(
            "--log-format",
            choices=["auto", "text", "json"],
            help="Log grammar mongod emits (default: derived from version)",
        )
        parser.add_argument(
            "--random-db",
            action="store_true",
            help="Print a URI naming a freshly generated database",
        )

    def _add_download_command(self, subparsers):
        """Add 'download' subcommand."""
        parser = subparsers.add_parser(
            "download",
            help="Download mongod into the cache",
            description="Download, verify and cache a mongod binary, then print its path",
        )
        self._add_binary_arguments(parser)

    def _add_info_command(self, subparsers):
        """Add 'info' subcommand."""
        parser = subparsers.add_parser(
            "info",
            help="Show platform detection and download locations",
            description="Show the detected platform and, for a version, the "
            "download URLs and cache location memongo would use",
        )
        self._add_binary_arguments(parser)

    def parse_args(self, args: Optional[List[str]] = None):
        """Parse command-line arguments."""
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

        self._configure_logging(parsed_args)

        if not parsed_args.command:
            self.parser.print_help()
            return 1

        try:
            return self._dispatch_command(parsed_args)
        except KeyboardInterrupt:
            logger.info("Operation cancelled by user")
            return 130
        except MemongoError as e:
            logger.error(f"Error: {e}")
            if parsed_args.verbose:
                logger.debug("Traceback:", exc_info=True)
            return 1

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
        module_name = COMMAND_MAP.get(args.command)
        if not module_name:
            logger.error(f"Unknown command: {args.command}")
            return 1

        module = importlib.import_module(module_name)
        return module.run(args)


def main():
    """Main entry point for CLI."""
    cli = CLI()
    sys.exit(cli.run())


if __name__ == "__main__":
    main()
