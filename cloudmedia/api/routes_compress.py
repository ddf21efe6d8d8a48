"""
API — Target-size compression and its history.

Blueprint: compress_bp
Prefix: /api
Routes:
    POST /api/compress       # JSON {assetId, targetKb|targetMb} or multipart with the PDF
    GET  /api/compressions   # The caller's compress history, newest first
"""

from __future__ import annotations

import logging

from flask import Blueprint, jsonify, request

from ..compression.orchestrator import CompressionRequest, coerce_number
from ..errors import BadRequestError
from .helpers import require_user, services

compress_bp = Blueprint("compress", __name__)

logger = logging.getLogger(__name__)


def _json_number(value):
    # JSON bodies must carry real numbers; strings are ignored
    return coerce_number(value) if isinstance(value, (int, float)) else None


def _parse_request() -> CompressionRequest:
    """Build a CompressionRequest from multipart form data or a JSON body."""
    if request.mimetype == "multipart/form-data":
        form = request.form
        pdf = request.files.get("file")
        return CompressionRequest(
            asset_id=form.get("assetId") or None,
            target_kb=coerce_number(form.get("targetKb")),
            target_mb=coerce_number(form.get("targetMb")),
            pdf_data=pdf.read() if pdf is not None else None,
            pdf_mime=pdf.mimetype if pdf is not None else None,
        )

    body = request.get_json(silent=True)
    if body is not None and not isinstance(body, dict):
        raise BadRequestError("Bad request")
    body = body or {}
    asset_id = body.get("assetId")
    return CompressionRequest(
        asset_id=asset_id if isinstance(asset_id, str) else None,
        target_kb=_json_number(body.get("targetKb")),
        target_mb=_json_number(body.get("targetMb")),
    )


@compress_bp.route("/compress", methods=["POST"])
def compress():
    user_id = require_user()
    outcome = services().orchestrator.compress(user_id, _parse_request())
    return jsonify(outcome.to_api_dict())


@compress_bp.route("/compressions", methods=["GET"])
def list_compressions():
    user_id = require_user()
    svc = services()
    assets = {a.id: a for a in svc.assets.list_for_user(user_id)}
    rows = []
    for conversion in svc.conversions.list_for_user(user_id, kind="compress"):
        asset = assets.get(conversion.asset_id)
        rows.append(conversion.to_api_dict(asset.summary() if asset else None))
    return jsonify(rows)
