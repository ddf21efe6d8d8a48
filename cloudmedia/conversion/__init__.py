"""Format conversions (image format, images → PDF, PDF → images, video → audio)."""

from .service import ConversionService

__all__ = ["ConversionService"]
