"""State store — JSON snapshot of the election between runs.

The audit log is the history; the snapshot is the current state, so a
restart does not need to replay every event. Writes go to a temporary
file in the same directory and are moved into place with os.replace, so a
crash mid-write leaves the previous snapshot intact.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Optional

from chainballot.engine.election import Election


class StateStore:
    """File-backed snapshot of one Election."""

    SCHEMA_VERSION = 1

    def __init__(self, storage_path: Path) -> None:
        self._storage_path = storage_path

    @property
    def storage_path(self) -> Path:
        return self._storage_path

    def exists(self) -> bool:
        return self._storage_path.exists()

    def save(self, election: Election) -> None:
        """Write the snapshot. Raises OSError on I/O failure."""
        data = {
            "schema_version": self.SCHEMA_VERSION,
            "election": election.to_dict(),
        }
        self._storage_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._storage_path.with_name(self._storage_path.name + ".tmp")
        with tmp_path.open("w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, sort_keys=True, ensure_ascii=False)
        os.replace(tmp_path, self._storage_path)

    def load(self) -> Optional[Election]:
        """Load the snapshot, or None if nothing has been saved yet.

        Raises ValueError for an unknown schema version.
        """
        if not self._storage_path.exists():
            return None
        with self._storage_path.open("r", encoding="utf-8") as f:
            data = json.load(f)
        version = data.get("schema_version")
        if version != self.SCHEMA_VERSION:
            raise ValueError(
                f"Unsupported state schema version {version!r} "
                f"(expected {self.SCHEMA_VERSION})"
            )
        return Election.from_dict(data["election"])
