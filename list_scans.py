#!/usr/bin/env python3
"""List all stored scans grouped by product."""

import argparse
import logging
from datetime import datetime

import db
from logging_utils import add_logging_args, configure_logging

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="List stored scans by product")
    add_logging_args(parser)
    parser.add_argument("--db", help="SQLite database (default: scans.db)")
    parser.add_argument("--product", "-p", type=str, help="Show codes for a single product")
    return parser


def _format_time(scanned_at: float | None) -> str:
    if scanned_at is None:
        return "(unknown)"
    return datetime.fromtimestamp(scanned_at / 1000).strftime("%Y-%m-%d %H:%M:%S")


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level, args.verbose, args.quiet, args.log_file)

    db_path = args.db or db.DB_PATH
    if not args.db and not db.DB_PATH.exists():
        logger.error("Database not found. Run 'qrscan replay' first.")
        return 1

    conn = db.get_connection(db_path)

    # Show single product details
    if args.product:
        scans = [s for s in db.list_scans(conn) if s["group_key"] == args.product]
        conn.close()
        if not scans:
            logger.warning("Product %s not found.", args.product)
            return 0
        logger.info("Product:  %s (%s items)", args.product, len(scans))
        for scan in sorted(scans, key=lambda s: s["code"]):
            logger.info("  %-30s %s", scan["code"], _format_time(scan["scanned_at"]))
        return 0

    products = db.list_products(conn)
    total_scans = db.count_scans(conn)
    conn.close()

    if not products:
        logger.info("No scans in database.")
        return 0

    logger.info("%-20s %-8s %s", "Product", "Items", "Last Scanned")
    logger.info("%s", "-" * 60)
    for product in products:
        logger.info(
            "%-20s %-8s %s",
            product["group_key"],
            product["scan_count"],
            _format_time(product["last_scanned_at"]),
        )

    logger.info("%s", "-" * 60)
    logger.info("Total: %s products, %s scans", len(products), total_scans)
    return 0


if __name__ == "__main__":
    main()
