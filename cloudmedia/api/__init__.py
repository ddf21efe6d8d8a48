"""
HTTP API — Flask application exposing upload, compress and convert.

Usage:
    python -m cloudmedia.main serve
    # Serves http://127.0.0.1:5050/api/*
"""

from .server import create_app, run_server

__all__ = ["create_app", "run_server"]
