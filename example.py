#!/usr/bin/env python3
"""
Example runner for candle_feed that delegates to the package CLI.

Keeps the example aligned with the installed console script (`candle-feed`)
so argument parsing, validation and output live in one place.
"""

from __future__ import annotations

import sys
from candle_feed.cli import main as cli_main


def main() -> None:
    # Pass through command-line args to the real CLI main
    cli_main(sys.argv[1:])


if __name__ == "__main__":
    main()
