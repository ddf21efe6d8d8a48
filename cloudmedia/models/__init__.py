"""Pydantic models for assets and conversion history."""

from .asset import MediaAsset, ResourceType
from .conversion import Conversion, ConversionKind

__all__ = ["MediaAsset", "ResourceType", "Conversion", "ConversionKind"]
