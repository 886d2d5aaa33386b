"""
Web interface module for the code scanner.

Provides a Flask-based web UI for browsing scanned products and their
confirmed codes.
"""

from .app import create_app, main

__all__ = ["create_app", "main"]
