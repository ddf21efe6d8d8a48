"""
API — Format conversions.

Blueprint: convert_bp
Prefix: /api
Routes:
    POST /api/convert    # {kind, assetId|assetIds, targetFormat, ...}
"""

from __future__ import annotations

from flask import Blueprint, jsonify, request

from .helpers import require_user, services

convert_bp = Blueprint("convert", __name__)


@convert_bp.route("/convert", methods=["POST"])
def convert():
    user_id = require_user()
    body = request.get_json(silent=True)
    return jsonify(services().converter.convert(user_id, body))
