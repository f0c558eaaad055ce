"""
Command line entry point.

Usage:
    discord-delete partial --dry-run              # Preview, nothing is deleted
    discord-delete partial                        # Delete everything
    discord-delete partial --skip 1234,5678       # Keep two channels
    discord-delete -v partial                     # Trace every request
"""

import argparse
import logging
import signal
import sys
import threading
from datetime import datetime
from typing import List, Optional

from . import __version__
from .config import Settings, load_token, parse_skip_channels
from .enumerator import Enumerator
from .errors import AuthenticationError, DeleteError
from .models import RunCounters

LOG_FILE = "discord-delete.log"

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_CANCELLED = 130


# Console colors (ANSI escape codes, works on most terminals)
class Colors:
    HEADER = '\033[95m'
    CYAN = '\033[96m'
    GREEN = '\033[92m'
    YELLOW = '\033[93m'
    RED = '\033[91m'
    ENDC = '\033[0m'
    BOLD = '\033[1m'


def setup_logging(verbose: bool = False, log_file: Optional[str] = LOG_FILE):
    """Configure logging to file and console"""
    log_format = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'
    date_format = '%Y-%m-%d %H:%M:%S'
    handlers = []

    if log_file:
        file_handler = logging.FileHandler(log_file, mode='a')
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(log_format, date_format))
        handlers.append(file_handler)

    # Console handler (less verbose unless asked)
    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    console_handler.setFormatter(logging.Formatter('%(levelname)s: %(message)s'))
    handlers.append(console_handler)

    # No-op once the root logger is configured
    logging.basicConfig(level=logging.DEBUG, handlers=handlers)
    # Connection pool chatter drowns out the request trace
    logging.getLogger('urllib3').setLevel(logging.WARNING)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='discord-delete',
        description='A tool to delete Discord message history',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Preview what would be deleted
  discord-delete partial --dry-run

  # Delete, keeping two channels untouched
  discord-delete partial --skip 123456789012345678,234567890123456789

The token is read from --token, the DISCORD_TOKEN environment variable, or a
DISCORD_TOKEN=... line in a .env file.
        """
    )
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    parser.add_argument('--verbose', '-v', action='store_true', help='enable verbose logging')
    parser.add_argument('--log-file', default=LOG_FILE, help=f'log file (default: {LOG_FILE})')

    subparsers = parser.add_subparsers(dest='command')
    partial = subparsers.add_parser('partial', help='delete messages found through search')
    partial.add_argument('--dry-run', '-d', action='store_true',
                         help='perform dry run without deleting anything')
    partial.add_argument('--skip', '-s', default='',
                         help='skip message deletion for specified channels (comma-separated IDs)')
    partial.add_argument('--token', '-t', help='Discord auth token (optional, can also use .env or env var)')
    partial.add_argument('--keep-going', action='store_true',
                         help='continue with the next channel or guild when one fails')
    return parser


def print_summary(counters: RunCounters, started: datetime, dry_run: bool):
    """Print execution summary"""
    duration = datetime.now() - started
    minutes, seconds = divmod(int(duration.total_seconds()), 60)
    hours, minutes = divmod(minutes, 60)

    print(f"\n{Colors.HEADER}{'='*60}{Colors.ENDC}")
    print(f"{Colors.HEADER}SUMMARY{' (DRY RUN)' if dry_run else ''}{Colors.ENDC}")
    print(f"{Colors.HEADER}{'='*60}{Colors.ENDC}\n")
    print(f"{Colors.BOLD}Duration:{Colors.ENDC} {hours}h {minutes}m {seconds}s")
    print(f"{Colors.GREEN}{'Would delete' if dry_run else 'Deleted'}:{Colors.ENDC} {counters.deleted}")
    print(f"{Colors.YELLOW}Skipped:{Colors.ENDC} {counters.skipped}")
    print(f"{Colors.CYAN}Requests:{Colors.ENDC} {counters.requests} "
          f"({counters.throttled} throttled)")
    if counters.failed_contexts:
        print(f"{Colors.RED}Failed:{Colors.ENDC} {', '.join(counters.failed_contexts)}")
    if counters.cancelled:
        print(f"{Colors.YELLOW}Run was cancelled before finishing{Colors.ENDC}")


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command != 'partial':
        parser.print_help()
        return EXIT_ERROR

    setup_logging(args.verbose, args.log_file)
    logger = logging.getLogger(__name__)

    cancel = threading.Event()

    def signal_handler(signum, frame):
        """Stop between pages on Ctrl+C"""
        print(f"\n{Colors.YELLOW}Received interrupt signal, stopping after the current request...{Colors.ENDC}")
        cancel.set()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        settings = Settings(
            token=load_token(args.token),
            dry_run=args.dry_run,
            skip_channels=parse_skip_channels(args.skip),
            verbose=args.verbose,
            keep_going=args.keep_going,
        )
    except DeleteError as e:
        print(f"{Colors.RED}Error: {e}{Colors.ENDC}")
        return EXIT_ERROR

    started = datetime.now()
    try:
        counters = Enumerator(settings, cancel=cancel).run()
    except AuthenticationError as e:
        logger.debug("Run failed", exc_info=True)
        print(f"{Colors.RED}Error: {e}{Colors.ENDC}")
        print("Check your token; it may have expired or been revoked.")
        return EXIT_ERROR
    except DeleteError as e:
        logger.debug("Run failed", exc_info=True)
        print(f"{Colors.RED}Error: {e}{Colors.ENDC}")
        return EXIT_ERROR

    print_summary(counters, started, settings.dry_run)
    if counters.cancelled:
        return EXIT_CANCELLED
    if counters.failed_contexts:
        return EXIT_ERROR
    return EXIT_OK


if __name__ == '__main__':
    sys.exit(main())
