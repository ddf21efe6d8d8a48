"""
API — Core endpoints.

Blueprint: core_bp
Routes:
    GET  /api/health    # Backend + Ghostscript availability
"""

from __future__ import annotations

from flask import Blueprint, jsonify

from .. import __version__
from .helpers import services

core_bp = Blueprint("core", __name__)


@core_bp.route("/api/health")
def api_health():
    """Report which transform backend is active and whether gs resolves."""
    svc = services()
    gs_path = svc.ghostscript.locate()
    return jsonify({
        "status": "ok",
        "version": __version__,
        "backend": svc.backend.name,
        "ghostscript": gs_path,
        "ghostscript_available": gs_path is not None,
    })
