"""
Transform Backend Base Class — Interface for media storage/transform services.

A backend stores uploaded bytes under a public id, renders
transformations of them (quality, bitrate, format, page, density),
and reports byte sizes. Calls are network-bound and may fail; failures
surface as TransformError and are never retried here.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional


@dataclass
class UploadResult:
    """Metadata returned after storing bytes."""

    public_id: str
    resource_type: str
    format: Optional[str] = None
    bytes: int = 0
    secure_url: str = ""
    width: Optional[int] = None
    height: Optional[int] = None
    duration: Optional[float] = None

    @classmethod
    def from_response(cls, data: Dict[str, Any]) -> "UploadResult":
        return cls(
            public_id=data.get("public_id", ""),
            resource_type=data.get("resource_type", ""),
            format=data.get("format"),
            bytes=int(data.get("bytes") or 0),
            secure_url=data.get("secure_url") or "",
            width=data.get("width"),
            height=data.get("height"),
            duration=data.get("duration"),
        )


@dataclass
class EagerResult:
    """A transformation rendered synchronously on the backend."""

    secure_url: str
    bytes: int = 0


class TransformBackend(ABC):
    """
    Abstract base class for transform backends.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """The backend identifier (e.g., 'cloudinary', 'mock')."""
        pass

    @abstractmethod
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
        """Store bytes, optionally overwriting an existing public id."""
        pass

    @abstractmethod
    def explicit_eager(
        self,
        public_id: str,
        resource_type: str,
        transformation: Dict[str, Any],
    ) -> EagerResult:
        """
        Render a transformation and wait for it to finish.

        Needed for video, where on-the-fly URL transforms are processed
        asynchronously and can't be fetched right away.
        """
        pass

    @abstractmethod
    def delivery_url(
        self,
        public_id: str,
        resource_type: str,
        format: Optional[str],
        transformation: List[Dict[str, Any]],
    ) -> str:
        """URL that renders the transformation on the fly."""
        pass

    @abstractmethod
    def fetch_bytes(self, url: str) -> bytes:
        """Download a rendered artifact."""
        pass

    @abstractmethod
    def resource_info(
        self,
        public_id: str,
        resource_type: str,
        pages: bool = False,
    ) -> Dict[str, Any]:
        """Stored metadata (duration, pages, bytes, ...) for a public id."""
        pass
