"""
Asset Model — One uploaded file and its current storage reference.

An asset is created on upload and mutated in place whenever a
compression overwrites it. PDFs are stored as resource_type "image"
with original_format "pdf".
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Literal, Optional
from uuid import uuid4

from pydantic import BaseModel, Field

ResourceType = Literal["image", "video", "raw"]


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class MediaAsset(BaseModel):
    """An uploaded file owned by one user."""

    id: str = Field(default_factory=lambda: f"A-{uuid4().hex[:12]}")
    user_id: str
    public_id: str
    resource_type: ResourceType = "image"
    mime_type: Optional[str] = None
    original_format: str = "unknown"
    bytes: int = 0
    width: Optional[int] = None
    height: Optional[int] = None
    duration: Optional[float] = None
    created_at_iso: str = Field(default_factory=_now_iso)
    updated_at_iso: str = Field(default_factory=_now_iso)

    @property
    def is_pdf(self) -> bool:
        return self.original_format == "pdf"

    @property
    def is_video(self) -> bool:
        return self.resource_type == "video"

    def summary(self) -> Dict[str, Any]:
        """Subset included alongside conversion history rows."""
        return {
            "id": self.id,
            "publicId": self.public_id,
            "resourceType": self.resource_type,
            "originalFormat": self.original_format,
            "bytes": self.bytes,
        }

    def to_api_dict(self) -> Dict[str, Any]:
        return {
            "assetId": self.id,
            "publicId": self.public_id,
            "resourceType": self.resource_type,
            "originalFormat": self.original_format,
            "bytes": self.bytes,
            "width": self.width,
            "height": self.height,
            "duration": self.duration,
        }
