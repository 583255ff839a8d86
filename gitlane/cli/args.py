"""Command-line argument parsing for gitlane."""

import argparse
from typing import List, Optional

from gitlane.__version__ import __version__


def parse_args(argv: Optional[List[str]] = None):
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Terminal UI for git",
        epilog="Logs are written to ~/.gitlane/gitlane.log",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Show verbose output")
    parser.add_argument("--version", action="version", version=f"gitlane {__version__}")
    parser.add_argument(
        "-p", "--path", default=None, help="Path of the repository (default: current directory)"
    )
    parser.add_argument(
        "--debug", action="store_true", help="Log debug information for troubleshooting"
    )
    parser.add_argument(
        "--refresh-interval",
        type=int,
        metavar="SECONDS",
        default=10,
        help="Seconds between background refreshes of the working tree, 0 to disable (default: 10)",
    )
    parser.add_argument(
        "--demo",
        action="store_true",
        help="Demo mode: slower spinners for screen recordings",
    )
    parser.add_argument(
        "--state-file",
        default=None,
        help="Where to keep persisted UI state (default: ~/.gitlane/state.json)",
    )
    parser.add_argument(
        "--no-lock-checks",
        action="store_true",
        help="Disable runtime lock-order validation",
    )

    return parser.parse_args(argv)
