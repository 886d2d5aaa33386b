"""Stored scans command CLI parsing and control flow."""

from __future__ import annotations

import argparse
import asyncio
import logging

from scan import ScanStoreError, SqliteScanStore, group_products

logger = logging.getLogger(__name__)


def add_scans_subparser(subparsers: argparse._SubParsersAction) -> None:
    scans_parser = subparsers.add_parser(
        "scans",
        help="Manage stored scans (list/clear)",
    )
    scans_subparsers = scans_parser.add_subparsers(
        dest="scans_command",
        help="Scans command",
    )

    scans_list = scans_subparsers.add_parser(
        "list",
        help="List products and their scanned codes",
    )
    scans_list.add_argument("--db", help="SQLite database (default: scans.db)")
    scans_list.set_defaults(_cmd=cmd_scans_list)

    scans_clear = scans_subparsers.add_parser(
        "clear",
        help="Delete all stored scans",
    )
    scans_clear.add_argument("--db", help="SQLite database (default: scans.db)")
    scans_clear.add_argument(
        "-f", "--force",
        action="store_true",
        help="Skip confirmation prompt",
    )
    scans_clear.set_defaults(_cmd=cmd_scans_clear)

    scans_parser.set_defaults(_scans_parser=scans_parser)


def cmd_scans_list(args: argparse.Namespace) -> int:
    store = SqliteScanStore(args.db)
    try:
        records = asyncio.run(store.load_all())
    except ScanStoreError as exc:
        logger.error("%s", exc)
        return 1

    if not records:
        logger.info("No scans stored yet.")
        return 0

    products = group_products(records)
    logger.info("%s products, %s scans", len(products), len(records))
    logger.info("%s", "-" * 50)
    for product in products:
        logger.info("%-20s %s items", product.id, len(product.codes))
        for code in product.codes:
            logger.info("    %s", code)
    return 0


def cmd_scans_clear(args: argparse.Namespace) -> int:
    store = SqliteScanStore(args.db)
    if not args.force:
        confirm = input(f"Delete all scans from {store.db_path}? (y/N): ").strip().lower()
        if confirm not in {"y", "yes"}:
            logger.info("Canceled.")
            return 1

    try:
        asyncio.run(store.clear_all())
    except ScanStoreError as exc:
        logger.error("%s", exc)
        return 1
    return 0
