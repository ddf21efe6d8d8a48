"""
Asset Store — JSON-file persistence for uploaded assets.

All assets live in one JSON document keyed by asset id. Writes go to a
temp file first and are then renamed into place, so a crash mid-write
never leaves a truncated store behind.
"""

from __future__ import annotations

import json
import logging
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from ..models.asset import MediaAsset

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1


class AssetStore:
    """
    Create/read/update access to assets, always scoped by owner.

    Usage:
        store = AssetStore(Path("data/assets.json"))
        asset = store.create(MediaAsset(user_id="u1", public_id="cloudmedia/u1/abc"))
        store.get(asset.id, "u1")
    """

    def __init__(self, path: Path):
        self.path = path
        self._lock = threading.Lock()

    # ── Reads ────────────────────────────────────────────────

    def _load(self) -> Dict[str, MediaAsset]:
        if not self.path.exists():
            return {}
        with self.path.open("r", encoding="utf-8") as f:
            data = json.load(f)
        return {
            raw["id"]: MediaAsset(**raw)
            for raw in data.get("assets", [])
        }

    def get(self, asset_id: str, user_id: str) -> Optional[MediaAsset]:
        """Return the asset if it exists and belongs to user_id."""
        with self._lock:
            asset = self._load().get(asset_id)
        if asset is None or asset.user_id != user_id:
            return None
        return asset

    def get_many(
        self,
        asset_ids: Iterable[str],
        user_id: str,
        resource_type: Optional[str] = None,
    ) -> List[MediaAsset]:
        """Return the caller's assets among asset_ids, oldest first."""
        wanted = set(asset_ids)
        with self._lock:
            assets = self._load()
        found = [
            a for a in assets.values()
            if a.id in wanted
            and a.user_id == user_id
            and (resource_type is None or a.resource_type == resource_type)
        ]
        return sorted(found, key=lambda a: a.created_at_iso)

    def list_for_user(self, user_id: str) -> List[MediaAsset]:
        with self._lock:
            assets = self._load()
        mine = [a for a in assets.values() if a.user_id == user_id]
        return sorted(mine, key=lambda a: a.created_at_iso, reverse=True)

    # ── Writes ───────────────────────────────────────────────

    def _save(self, assets: Dict[str, MediaAsset]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = self.path.with_suffix(".tmp")
        payload = {
            "version": SCHEMA_VERSION,
            "assets": [a.model_dump() for a in assets.values()],
        }
        with temp_path.open("w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2)
            f.write("\n")
        temp_path.replace(self.path)

    def create(self, asset: MediaAsset) -> MediaAsset:
        with self._lock:
            assets = self._load()
            assets[asset.id] = asset
            self._save(assets)
        logger.info(
            f"Asset created: {asset.id} ({asset.resource_type}/{asset.original_format}, "
            f"{asset.bytes:,} bytes)",
            extra={"user_id": asset.user_id, "asset_id": asset.id},
        )
        return asset

    def update(self, asset_id: str, **changes: Any) -> MediaAsset:
        """
        Apply field changes to an asset in place.

        Raises:
            KeyError: If the asset does not exist
        """
        with self._lock:
            assets = self._load()
            current = assets[asset_id]
            changes["updated_at_iso"] = (
                datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
            )
            updated = current.model_copy(update=changes)
            assets[asset_id] = updated
            self._save(assets)
        logger.debug(f"Asset updated: {asset_id} fields={sorted(changes)}")
        return updated
