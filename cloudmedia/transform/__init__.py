"""
Transform backends — the remote service that stores and transforms media.
"""

from .base import EagerResult, TransformBackend, UploadResult
from .registry import create_backend

__all__ = ["EagerResult", "TransformBackend", "UploadResult", "create_backend"]
