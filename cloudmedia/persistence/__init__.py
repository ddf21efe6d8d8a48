"""File-backed persistence for assets and conversion history."""

from .asset_store import AssetStore
from .conversions import ConversionLedger

__all__ = ["AssetStore", "ConversionLedger"]
