"""
Conversion Model — One compression or conversion performed on an asset.

Conversions are append-only history: created once when the operation
completes, never edited afterwards.
"""

from __future__ import annotations

from typing import Any, Dict, Literal, Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from .asset import _now_iso

ConversionKind = Literal[
    "compress",
    "image_format",
    "images_to_pdf",
    "pdf_to_image",
    "video_to_audio",
]


class Conversion(BaseModel):
    """A completed operation on an asset."""

    id: str = Field(default_factory=lambda: f"C-{uuid4().hex[:12]}")
    user_id: str
    asset_id: str
    kind: ConversionKind
    target_format: str
    options: Dict[str, Any] = Field(default_factory=dict)
    result_url: str
    created_at_iso: str = Field(default_factory=_now_iso)

    def to_api_dict(self, asset: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "userId": self.user_id,
            "assetId": self.asset_id,
            "kind": self.kind,
            "targetFormat": self.target_format,
            "options": self.options,
            "resultUrl": self.result_url,
            "createdAt": self.created_at_iso,
        }
        if asset is not None:
            data["asset"] = asset
        return data
