#!/usr/bin/env python3
"""
Unified CLI for the code scanner.

Usage:
    qrscan replay <frames.jsonl>   # Replay recorded camera frames, store confirmed scans
    qrscan replay f.jsonl -t 3     # Require 3 sightings before confirming a code
    qrscan scans list              # List products and scanned codes
    qrscan scans clear             # Delete all stored scans
    qrscan serve                   # Launch products viewer website (port 30001)
"""

import argparse
import logging

from logging_utils import configure_logging, add_logging_args
from cli.scan import add_replay_subparser
from cli.scans import add_scans_subparser

logger = logging.getLogger(__name__)


def cmd_serve(args: argparse.Namespace) -> int:
    """Launch the products viewer web server."""
    from web import main
    argv = ["--db", args.db] if args.db else []
    return main(argv)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="qrscan",
        description="Code scanner - stabilize camera code detections into confirmed scans",
    )
    add_logging_args(parser)
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    serve_parser = subparsers.add_parser(
        "serve",
        help="Launch products viewer website (port 30001)",
    )
    serve_parser.add_argument("--db", help="SQLite database (default: scans.db)")
    serve_parser.set_defaults(_cmd=cmd_serve)

    add_replay_subparser(subparsers)
    add_scans_subparser(subparsers)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level, args.verbose, args.quiet, args.log_file)

    if args.command is None:
        parser.print_help()
        return 1

    if args.command == "scans" and args.scans_command is None:
        args._scans_parser.print_help()
        return 1

    cmd = getattr(args, "_cmd", None)
    if cmd is None:
        parser.print_help()
        return 1
    return cmd(args)


if __name__ == "__main__":
    raise SystemExit(main())
