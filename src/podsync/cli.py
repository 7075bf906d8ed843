"""
Command-line interface for podsync.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .errors import ConfigError
from .factory import create_managers_from_config
from .runner import sync_all


def build_parser() -> argparse.ArgumentParser:
    """Argument parser for the podsync command."""
    parser = argparse.ArgumentParser(
        description="Download new podcast episodes from configured feeds"
    )
    parser.add_argument(
        "--config-dir",
        type=Path,
        help="Directory holding config.yaml and podcasts.yaml",
    )
    parser.add_argument(
        "-p",
        "--print",
        action="store_true",
        help="Print the paths of downloaded files to stdout",
    )
    parser.add_argument(
        "--no-progress", action="store_true", help="Disable progress bars"
    )
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument(
        "-v", "--verbose", action="store_true", help="Log progress messages"
    )
    verbosity.add_argument(
        "--debug", action="store_true", help="Log debugging messages"
    )
    return parser


def configure_logging(verbose: bool, debug: bool) -> None:
    """Configure the root logger for command-line use."""
    level = logging.WARNING
    if verbose:
        level = logging.INFO
    if debug:
        level = logging.DEBUG
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def main(argv: Optional[List[str]] = None) -> None:
    """CLI entry point for podsync."""
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose, args.debug)

    try:
        managers = create_managers_from_config(args.config_dir)
        if not managers:
            print("Error: no podcasts configured", file=sys.stderr)
            sys.exit(1)

        print("Checking for new episodes...", file=sys.stderr)
        summary = sync_all(managers, show_progress=not args.no_progress)

        print("Syncing complete!", file=sys.stderr)
        print(f"{summary.downloaded} episodes downloaded.", file=sys.stderr)

        for result in summary.failed_feeds:
            print(f"Failed: {result.feed}: {result.error}", file=sys.stderr)

        if args.print:
            for path in summary.file_paths:
                print(f'"{path}"')

        if summary.failed_feeds:
            sys.exit(1)

    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nSync interrupted by user", file=sys.stderr)
        sys.exit(130)


if __name__ == "__main__":
    main()
