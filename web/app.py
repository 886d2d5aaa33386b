"""
Flask application for the scanned products web interface.
"""

import argparse
import asyncio
import logging
from pathlib import Path

from flask import Flask, jsonify, render_template_string

from config import WEB_HOST, WEB_PORT
from logging_utils import configure_logging, add_logging_args
from scan import ScanStoreError, SqliteScanStore, group_products
from scan.schemas import ClearResponse, ProductOut, ProductsResponse
from .templates import PRODUCTS_TEMPLATE, EMPTY_TEMPLATE

logger = logging.getLogger(__name__)


def get_products_response(store: SqliteScanStore) -> ProductsResponse:
    """Load stored scans and shape them for the products view."""
    records = asyncio.run(store.load_all())
    products = group_products(records)
    return ProductsResponse(
        products=[
            ProductOut(id=p.id, codes=p.codes, count=len(p.codes))
            for p in products
        ],
        total_products=len(products),
        total_scans=len(records),
    )


def create_app(db_path: Path | str | None = None) -> Flask:
    """Create and configure the Flask application."""
    app = Flask(__name__)
    store = SqliteScanStore(db_path)

    @app.route('/')
    def index():
        """Show every product with its scanned codes."""
        response = get_products_response(store)
        if not response.products:
            return render_template_string(EMPTY_TEMPLATE)
        return render_template_string(
            PRODUCTS_TEMPLATE,
            products=response.products,
            total_products=response.total_products,
            total_scans=response.total_scans,
        )

    @app.route('/api/products')
    def api_products():
        """Products and codes as JSON."""
        return jsonify(get_products_response(store).model_dump())

    @app.route('/api/clear', methods=['POST'])
    def api_clear():
        """Delete every stored scan."""
        asyncio.run(store.clear_all())
        return jsonify(ClearResponse(cleared=True).model_dump())

    @app.errorhandler(ScanStoreError)
    def handle_store_error(exc):
        logger.error("Store error: %s", exc)
        return jsonify({"error": str(exc)}), 500

    return app


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description=f"Launch the scanned products web viewer (port {WEB_PORT})."
    )
    add_logging_args(parser)
    parser.add_argument("--db", help="SQLite database (default: scans.db)")
    return parser


def main(argv: list[str] | None = None) -> int:
    """Run the web server."""
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level, args.verbose, args.quiet, args.log_file)

    app = create_app(args.db)

    logger.info("Starting Scanned Products Viewer...")
    logger.info("Open http://%s:%s in your browser", WEB_HOST, WEB_PORT)
    logger.info("Press Ctrl+C to stop")
    app.run(host=WEB_HOST, port=WEB_PORT, debug=False)
    return 0


if __name__ == '__main__':
    main()
