#!/usr/bin/env python3
"""
Command line interface for lazything.

Usage:
    # Store the GitHub token
    lazything -k ghp_xxx

    # Hunt proxies for a domain (3-month window)
    lazything example.com

    # Only keep files committed within the last 6 months
    lazything -f 6 example.com
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import List, Optional

from . import __version__
from .config import apply_overrides, load_config
from .core import HuntSummary, LazythingError
from .credentials import CredentialStore
from .export import EXPORTERS
from .hunter import hunt_domain, install_uvloop
from .logger import ProgressReporter, get_logger, setup_logger

# Left behind by -k or -f given without a value
NO_VALUE = object()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='lazything',
        description='Hunt Trojan/VMess proxy lists published on GitHub',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog='''
Examples:
  %(prog)s -k ghp_xxx                  Store the GitHub token
  %(prog)s example.com                 Search and save (last 3 months)
  %(prog)s -f 6 example.com            Search and save (last 6 months)
  %(prog)s example.com -o results/     Write the result file to results/
        '''
    )

    parser.add_argument('domain', nargs='?',
                        help='Domain to look for next to a proxies: key')
    parser.add_argument('-k', '--key', metavar='TOKEN', nargs='?', const=NO_VALUE,
                        help='Store the GitHub authentication token')
    parser.add_argument('-f', '--filter', dest='months', type=months_arg, metavar='MONTHS',
                        nargs='?', const=NO_VALUE,
                        help='Only keep files committed within MONTHS months (default: 3)')
    parser.add_argument('-o', '--output', dest='output_dir', metavar='DIR',
                        help='Output directory (default: current directory)')
    parser.add_argument('--format', dest='output_format', choices=sorted(EXPORTERS),
                        help='Output format (default: yaml)')
    parser.add_argument('--batch-size', type=positive_int, metavar='N',
                        help='Requests per batch (default: 50)')
    parser.add_argument('--keep-going', action='store_true',
                        help='Skip files that fail instead of aborting')
    parser.add_argument('--config', metavar='FILE',
                        help='YAML config file')

    # Output options
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Enable verbose output')
    parser.add_argument('--debug', action='store_true',
                        help='Enable debug logging')
    parser.add_argument('-q', '--quiet', action='store_true',
                        help='Minimal output (errors only)')
    parser.add_argument('--log-file', metavar='FILE',
                        help='Also write logs to FILE')
    parser.add_argument('--json-logs', action='store_true',
                        help='Log as JSON lines')
    parser.add_argument('--json', action='store_true',
                        help='Print the run summary as JSON')
    parser.add_argument('--version', action='version',
                        version=f'%(prog)s {__version__}')

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    # Setup logging
    if args.quiet:
        log_level = logging.WARNING
    elif args.debug:
        log_level = logging.DEBUG
    else:
        log_level = logging.INFO

    setup_logger(
        level=log_level,
        log_file=args.log_file,
        json_output=args.json_logs,
        compact=not (args.verbose or args.debug),
    )

    if args.key is NO_VALUE or args.months is NO_VALUE:
        parser.print_help()
        return 0

    store = CredentialStore()

    if args.key is not None:
        store.set(args.key)
        get_logger().info(f"Authentication key saved to {store.path}")
        if not args.domain:
            return 0

    if not args.domain:
        parser.print_help()
        return 0

    return cmd_hunt(args, store)


def main_entry():
    sys.exit(main())


# =============================================================================
# Commands
# =============================================================================

def cmd_hunt(args, store: CredentialStore) -> int:
    """Search, filter, fetch and save proxies for one domain."""
    logger = get_logger()

    try:
        token = store.require()
    except LazythingError as e:
        print(e, file=sys.stderr)
        return 1

    config = apply_overrides(load_config(args.config), {
        'months': args.months,
        'output_dir': args.output_dir,
        'output_format': args.output_format,
        'batch_size': args.batch_size,
        'keep_going': args.keep_going or None,
    })

    if config.output_format not in EXPORTERS:
        logger.error(f"Unknown output format: {config.output_format}")
        return 1

    show_progress = sys.stdout.isatty() and not (args.quiet or args.json_logs or args.json)

    install_uvloop()

    progress = StageProgress() if show_progress else None
    try:
        summary = asyncio.run(hunt_domain(
            args.domain,
            token,
            config=config,
            progress_callback=progress,
        ))
    except LazythingError as e:
        logger.error(str(e))
        return 1
    except KeyboardInterrupt:
        logger.warning("Interrupted")
        return 130
    finally:
        if progress:
            progress.close()

    if args.json:
        print(json.dumps(summary.to_dict(), indent=2))
    elif not args.quiet:
        print_summary(summary)

    return 0 if summary.output_path else 1


# =============================================================================
# Helper Functions
# =============================================================================

def months_arg(value: str) -> int:
    """argparse type for the recency window."""
    try:
        months = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid number of months: {value!r}")
    if months < 0:
        raise argparse.ArgumentTypeError("number of months must not be negative")
    return months


def positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid number: {value!r}")
    if number < 1:
        raise argparse.ArgumentTypeError("must be at least 1")
    return number


class StageProgress:
    """Progress callback drawing one bar per pipeline stage."""

    def __init__(self, stream=None):
        self.stream = stream
        self.stage = None
        self.reporter = None

    async def __call__(self, stage: str, done: int, total: int):
        if self.reporter is None or stage != self.stage:
            self.close()
            self.stage = stage
            self.reporter = ProgressReporter(total, stage, stream=self.stream)
            self.reporter.start()

        self.reporter.update(done)
        if done >= total:
            self.close()

    def close(self):
        if self.reporter:
            self.reporter.finish()
            self.reporter = None


def print_summary(summary: HuntSummary):
    """Print hunt summary."""
    print()
    print("=" * 50)
    print("HUNT SUMMARY")
    print("=" * 50)
    print(f"  Domain:         {summary.domain}")
    print(f"  Window:         {summary.months} months")
    print(f"  Search hits:    {summary.hits}")
    print(f"  Recent files:   {summary.fresh}")
    print(f"  With proxies:   {summary.with_proxies}")
    print(f"  Unique proxies: {summary.accepted}")
    print(f"  Duplicates:     {summary.duplicates}")
    print(f"  Ignored:        {summary.ignored}")
    if summary.failed:
        print(f"  Failed:         {summary.failed}")
    if summary.duration_seconds is not None:
        print(f"  Duration:       {summary.duration_seconds:.1f}s")
    print(f"  Output:         {summary.output_path}")
    print("=" * 50)


if __name__ == '__main__':
    sys.exit(main())
