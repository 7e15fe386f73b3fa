"""Difftail CLI — difftail --file PATH | --dir PATH.

Entry point for the ``difftail`` command-line interface.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the difftail CLI."""
    parser = argparse.ArgumentParser(
        prog="difftail",
        description="Watch a file or directory and stream line diffs over WebSocket.",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {_get_version()}",
    )
    parser.add_argument("-f", "--file", default=None, help="File to watch")
    parser.add_argument("-d", "--dir", dest="directory", default=None, help="Directory to watch")
    parser.add_argument("--host", default=None, help="Bind address (default: localhost)")
    parser.add_argument("--port", type=int, default=None, help="Bind port (default: 8081)")
    parser.add_argument(
        "--config-dir",
        default=".",
        help="Directory searched for difftail.yaml / difftail.toml",
    )
    return parser


def _get_version() -> str:
    """Get the package version."""
    from difftail import __version__

    return __version__


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    from difftail._errors import ConfigError, WatchError
    from difftail.config_loader import load_config

    parser = _build_parser()
    args = parser.parse_args(argv)

    try:
        config = load_config(
            Path(args.config_dir),
            file=args.file,
            directory=args.directory,
            host=args.host,
            port=args.port,
        )
    except ConfigError as exc:
        print(f"error: {exc}", file=sys.stderr)
        parser.print_usage(sys.stderr)
        sys.exit(1)

    from difftail.app import run

    try:
        run(config)
    except WatchError as exc:
        print(f"error: {exc}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
