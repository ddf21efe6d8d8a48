"""
Cloudinary Backend — Store and transform media through the Cloudinary API.

## Configuration

- CLOUDINARY_URL, or
- CLOUDINARY_CLOUD_NAME + CLOUDINARY_API_KEY + CLOUDINARY_API_SECRET

Rendered artifacts are downloaded with httpx. Downloads larger than
MAX_FETCH_BYTES are refused to protect server memory.
"""

from __future__ import annotations

import io
import logging
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import unquote, urlparse

import cloudinary
import cloudinary.api
import cloudinary.exceptions
import cloudinary.uploader
import cloudinary.utils
import httpx

from ..config.loader import Settings
from ..errors import TransformError
from .base import EagerResult, TransformBackend, UploadResult

logger = logging.getLogger(__name__)

MB = 1024 * 1024
MAX_FETCH_BYTES = 110 * MB
FETCH_TIMEOUT_SECONDS = 120


def parse_credentials(settings: Settings) -> Tuple[Optional[str], Optional[str], Optional[str]]:
    """
    (cloud_name, api_key, api_secret) from settings.

    CLOUDINARY_URL has the form cloudinary://<api_key>:<api_secret>@<cloud_name>
    and wins over the individual keys when both are set.
    """
    if settings.cloudinary_url:
        parsed = urlparse(settings.cloudinary_url)
        if parsed.scheme == "cloudinary" and parsed.hostname:
            return parsed.hostname, unquote(parsed.username or ""), unquote(parsed.password or "")
        logger.warning("Ignoring malformed CLOUDINARY_URL")
    return (
        settings.cloudinary_cloud_name,
        settings.cloudinary_api_key,
        settings.cloudinary_api_secret,
    )


class CloudinaryBackend(TransformBackend):
    """
    Transform backend backed by a Cloudinary account.

    All SDK errors are re-raised as TransformError with the SDK message.
    """

    def __init__(self, settings: Settings, timeout: int = FETCH_TIMEOUT_SECONDS):
        self.timeout = timeout
        self.max_fetch_bytes = MAX_FETCH_BYTES
        cloud_name, api_key, api_secret = parse_credentials(settings)
        cloudinary.config(
            cloud_name=cloud_name,
            api_key=api_key,
            api_secret=api_secret,
            secure=True,
        )

    @property
    def name(self) -> str:
        return "cloudinary"

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
        options: Dict[str, Any] = {"resource_type": resource_type}
        if folder:
            options["folder"] = folder
        if public_id:
            options["public_id"] = public_id
            options["overwrite"] = overwrite
            options["invalidate"] = invalidate
        if format:
            options["format"] = format

        try:
            response = cloudinary.uploader.upload(io.BytesIO(data), **options)
        except cloudinary.exceptions.Error as e:
            logger.error(f"Cloudinary upload failed: {e}")
            raise TransformError(f"Upload failed: {e}")

        result = UploadResult.from_response(response)
        logger.info(
            f"Uploaded {result.public_id} ({result.resource_type}, {result.bytes:,} bytes)"
        )
        return result

    def explicit_eager(
        self,
        public_id: str,
        resource_type: str,
        transformation: Dict[str, Any],
    ) -> EagerResult:
        try:
            response = cloudinary.uploader.explicit(
                public_id,
                resource_type=resource_type,
                type="upload",
                eager=[transformation],
                eager_async=False,
            )
        except cloudinary.exceptions.Error as e:
            logger.error(f"Cloudinary explicit failed for {public_id}: {e}")
            raise TransformError(f"Transformation processing failed: {e}")

        eager = (response.get("eager") or [None])[0]
        if not eager or not eager.get("secure_url"):
            raise TransformError("Transformation processing failed")
        return EagerResult(secure_url=eager["secure_url"], bytes=eager.get("bytes") or 0)

    def delivery_url(
        self,
        public_id: str,
        resource_type: str,
        format: Optional[str],
        transformation: List[Dict[str, Any]],
    ) -> str:
        options: Dict[str, Any] = {
            "resource_type": resource_type,
            "secure": True,
            "transformation": transformation,
        }
        if format:
            options["format"] = format
        url, _ = cloudinary.utils.cloudinary_url(public_id, **options)
        return url

    def fetch_bytes(self, url: str) -> bytes:
        try:
            with httpx.stream("GET", url, timeout=self.timeout, follow_redirects=True) as resp:
                if resp.status_code >= 400:
                    logger.error(f"Fetch failed: HTTP {resp.status_code} for {url}")
                    raise TransformError(f"Failed to fetch file (HTTP {resp.status_code})")

                declared = int(resp.headers.get("content-length") or 0)
                if declared > self.max_fetch_bytes:
                    raise TransformError("Transformed file too large to process")

                buf = bytearray()
                for chunk in resp.iter_bytes():
                    buf.extend(chunk)
                    if len(buf) > self.max_fetch_bytes:
                        raise TransformError("Transformed file too large to process")
                return bytes(buf)
        except httpx.HTTPError as e:
            logger.error(f"Fetch failed for {url}: {e}")
            raise TransformError(f"Failed to fetch file: {e}")

    def resource_info(
        self,
        public_id: str,
        resource_type: str,
        pages: bool = False,
    ) -> Dict[str, Any]:
        try:
            return dict(cloudinary.api.resource(
                public_id,
                resource_type=resource_type,
                pages=pages,
            ))
        except cloudinary.exceptions.Error as e:
            raise TransformError(f"Resource lookup failed: {e}")
