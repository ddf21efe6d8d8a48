"""
API — Asset upload.

Blueprint: assets_bp
Prefix: /api/assets
Routes:
    POST /api/assets/upload    # Multipart upload → backend + asset record
"""

from __future__ import annotations

import logging

from flask import Blueprint, jsonify, request

from ..errors import BadRequestError, PayloadTooLargeError
from ..models.asset import MediaAsset
from .helpers import require_user, services

assets_bp = Blueprint("assets", __name__)

logger = logging.getLogger(__name__)

# Video/audio uploads are buffered in memory; cap them
MAX_VIDEO_AUDIO_BYTES = 100 * 1024 * 1024


def pick_resource_type(mime_type: str | None) -> str:
    """Backend resource type for an upload's MIME type."""
    if not mime_type:
        return "auto"
    if mime_type == "application/pdf":
        # Stored as image so the backend can render page thumbnails
        return "image"
    if mime_type.startswith("image/"):
        return "image"
    if mime_type.startswith("video/") or mime_type.startswith("audio/"):
        return "video"
    return "auto"


@assets_bp.route("/upload", methods=["POST"])
def upload_asset():
    user_id = require_user()

    file = request.files.get("file")
    if file is None:
        raise BadRequestError("Missing file")

    mime_type = file.mimetype or ""
    data = file.read()
    if mime_type.startswith(("video/", "audio/")) and len(data) > MAX_VIDEO_AUDIO_BYTES:
        raise PayloadTooLargeError("File too large. Max size is 100 MB.")

    svc = services()
    result = svc.backend.upload(
        data,
        resource_type=pick_resource_type(mime_type),
        folder=f"cloudmedia/{user_id}",
    )

    asset = svc.assets.create(MediaAsset(
        user_id=user_id,
        public_id=result.public_id,
        resource_type=result.resource_type if result.resource_type in ("image", "video") else "raw",
        mime_type=mime_type or None,
        original_format=result.format or "unknown",
        bytes=result.bytes,
        width=result.width,
        height=result.height,
        duration=result.duration,
    ))
    return jsonify(asset.to_api_dict())
