"""
Conversion Ledger — Append-only NDJSON history of operations.

Each line is one Conversion record. Records are never edited,
only appended.
"""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import List, Optional

from ..models.conversion import Conversion

logger = logging.getLogger(__name__)


class ConversionLedger:
    """
    Append-only conversion history.

    Usage:
        ledger = ConversionLedger(Path("data/conversions.ndjson"))
        ledger.append(Conversion(...))
        ledger.list_for_user("u1", kind="compress")
    """

    def __init__(self, path: Path):
        self.path = path
        self._lock = threading.Lock()
        self._ensure_exists()

    def _ensure_exists(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        if not self.path.exists():
            self.path.touch()

    def append(self, conversion: Conversion) -> Conversion:
        line = json.dumps(conversion.model_dump())
        with self._lock:
            with self.path.open("a", encoding="utf-8") as f:
                f.write(line + "\n")
        logger.info(
            f"Conversion recorded: {conversion.id} kind={conversion.kind} "
            f"asset={conversion.asset_id}",
            extra={"user_id": conversion.user_id, "asset_id": conversion.asset_id},
        )
        return conversion

    def _read_all(self) -> List[Conversion]:
        records = []
        with self.path.open("r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if line:
                    records.append(Conversion(**json.loads(line)))
        return records

    def list_for_user(self, user_id: str, kind: Optional[str] = None) -> List[Conversion]:
        """Return the user's conversions, newest first."""
        with self._lock:
            records = self._read_all()
        mine = [
            c for c in records
            if c.user_id == user_id and (kind is None or c.kind == kind)
        ]
        # Stable sort keeps later-appended records first on equal timestamps
        mine.reverse()
        return sorted(mine, key=lambda c: c.created_at_iso, reverse=True)
