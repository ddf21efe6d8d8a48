"""
Mock Backend — In-memory stand-in for the transform service.

Stores uploads in a dict and simulates transformations with a simple
size model, so the whole compression flow can run locally without a
Cloudinary account:

- quality=N (int)   → output is N% of the stored bytes
- bit_rate="Nk"     → output is N kbps × duration, capped at the stored size
- anything else     → output is the stored bytes unchanged

Delivery URLs mimic Cloudinary's shape so the download route accepts them.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Optional, Tuple
from uuid import uuid4

from ..errors import TransformError
from .base import EagerResult, TransformBackend, UploadResult

logger = logging.getLogger(__name__)

MOCK_URL_PREFIX = "https://res.cloudinary.com/mock"

# transformation key → URL code (Cloudinary-style)
_CODES = {
    "quality": "q",
    "bit_rate": "br",
    "format": "f",
    "fetch_format": "f",
    "density": "dn",
    "page": "pg",
    "audio_frequency": "af",
}
_KEYS = {code: key for key, code in _CODES.items() if key != "fetch_format"}

_URL_RE = re.compile(
    r"^" + re.escape(MOCK_URL_PREFIX)
    + r"/(?P<rt>\w+)/upload/(?P<tx>[^/]+)/(?P<pid>.+?)(?:\.(?P<fmt>[A-Za-z0-9]+))?$"
)


class MockTransformBackend(TransformBackend):
    """
    Transform backend that keeps everything in memory.

    Every render is recorded in `renders` as (public_id, transformation)
    so callers can inspect how many transform calls were made.
    """

    def __init__(self) -> None:
        self._objects: Dict[str, Dict[str, Any]] = {}
        self.renders: List[Tuple[str, Dict[str, Any]]] = []

    @property
    def name(self) -> str:
        return "mock"

    # ── Storage ──────────────────────────────────────────────

    def put(
        self,
        public_id: str,
        data: bytes,
        *,
        resource_type: str = "image",
        format: Optional[str] = None,
        duration: Optional[float] = None,
        pages: Optional[int] = None,
    ) -> None:
        """Seed an object directly (local fixtures, tests)."""
        self._objects[public_id] = {
            "data": data,
            "resource_type": resource_type,
            "format": format,
            "duration": duration,
            "pages": pages,
        }

    def stored(self, public_id: str) -> bytes:
        return self._get(public_id)["data"]

    def _get(self, public_id: str) -> Dict[str, Any]:
        obj = self._objects.get(public_id)
        if obj is None:
            raise TransformError(f"Resource not found: {public_id}")
        return obj

    def upload(
        self,
        data: bytes,
        *,
        resource_type: str,
        folder: Optional[str] = None,
        public_id: Optional[str] = None,
        overwrite: bool = False,
        invalidate: bool = False,
        format: Optional[str] = None,
    ) -> UploadResult:
        if resource_type == "auto":
            resource_type = "raw"
        if public_id is None:
            public_id = f"{folder}/{uuid4().hex[:12]}" if folder else uuid4().hex[:12]
        elif public_id in self._objects and not overwrite:
            raise TransformError(f"Resource already exists: {public_id}")

        previous = self._objects.get(public_id, {})
        self.put(
            public_id,
            data,
            resource_type=resource_type,
            format=format or previous.get("format"),
            duration=previous.get("duration"),
            pages=previous.get("pages"),
        )
        obj = self._objects[public_id]
        logger.info(f"[MOCK] Stored {public_id} ({resource_type}, {len(data):,} bytes)")
        return UploadResult(
            public_id=public_id,
            resource_type=resource_type,
            format=obj["format"],
            bytes=len(data),
            secure_url=self.delivery_url(public_id, resource_type, obj["format"], []),
            duration=obj["duration"],
        )

    # ── Transformations ──────────────────────────────────────

    def _render(self, public_id: str, transformation: Dict[str, Any]) -> bytes:
        obj = self._get(public_id)
        data = obj["data"]
        self.renders.append((public_id, dict(transformation)))

        quality = transformation.get("quality")
        if isinstance(quality, int) and not isinstance(quality, bool):
            return data[: max(1, len(data) * quality // 100)]

        bit_rate = transformation.get("bit_rate")
        if bit_rate and obj.get("duration"):
            kbps = int(str(bit_rate).rstrip("k"))
            size = int(kbps * 1000 / 8 * obj["duration"])
            return data[: max(1, min(len(data), size))]

        return data

    def explicit_eager(
        self,
        public_id: str,
        resource_type: str,
        transformation: Dict[str, Any],
    ) -> EagerResult:
        self._get(public_id)
        url = self.delivery_url(
            public_id, resource_type, transformation.get("format"), [transformation]
        )
        size = len(self._render(public_id, transformation))
        return EagerResult(secure_url=url, bytes=size)

    def delivery_url(
        self,
        public_id: str,
        resource_type: str,
        format: Optional[str],
        transformation: List[Dict[str, Any]],
    ) -> str:
        parts = []
        for step in transformation:
            for key, value in step.items():
                if key in _CODES and key not in ("format", "fetch_format"):
                    parts.append(f"{_CODES[key]}_{value}")
        tx = ",".join(parts) or "t_none"
        suffix = f".{format}" if format else ""
        return f"{MOCK_URL_PREFIX}/{resource_type}/upload/{tx}/{public_id}{suffix}"

    def fetch_bytes(self, url: str) -> bytes:
        match = _URL_RE.match(url)
        if not match:
            raise TransformError(f"Failed to fetch file: unknown URL {url}")

        transformation: Dict[str, Any] = {}
        for part in match.group("tx").split(","):
            code, _, value = part.partition("_")
            key = _KEYS.get(code)
            if key is None:
                continue
            transformation[key] = int(value) if value.isdigit() else value

        return self._render(match.group("pid"), transformation)

    def resource_info(
        self,
        public_id: str,
        resource_type: str,
        pages: bool = False,
    ) -> Dict[str, Any]:
        obj = self._get(public_id)
        info: Dict[str, Any] = {
            "public_id": public_id,
            "resource_type": obj["resource_type"],
            "format": obj["format"],
            "bytes": len(obj["data"]),
        }
        if obj.get("duration") is not None:
            info["duration"] = obj["duration"]
        if pages and obj.get("pages") is not None:
            info["pages"] = obj["pages"]
        return info
