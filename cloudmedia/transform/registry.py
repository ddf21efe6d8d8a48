"""
Backend Registry — Build the configured transform backend.
"""

from __future__ import annotations

import logging

from ..config.loader import Settings
from .base import TransformBackend

logger = logging.getLogger(__name__)


def create_backend(settings: Settings) -> TransformBackend:
    """
    Instantiate the backend named by TRANSFORM_BACKEND.

    Raises:
        ValueError: For an unknown backend name
    """
    name = settings.backend_name

    if name == "mock":
        from .mock import MockTransformBackend
        logger.info("Using in-memory mock transform backend")
        return MockTransformBackend()

    if name == "cloudinary":
        from .cloudinary_backend import CloudinaryBackend
        if not settings.has_cloudinary():
            logger.warning(
                "Cloudinary credentials missing — set CLOUDINARY_URL or "
                "CLOUDINARY_CLOUD_NAME/API_KEY/API_SECRET"
            )
        return CloudinaryBackend(settings)

    raise ValueError(f"Unknown transform backend: {name!r} (expected 'cloudinary' or 'mock')")
