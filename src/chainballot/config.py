"""Runtime configuration.

Settings come from the environment, optionally seeded from a ``.env``
file at the project root:

    CHAINBALLOT_DATA_DIR   directory for state.json and events.jsonl
                           (default: data/ under the project root)
    CHAINBALLOT_ADMIN      administrator identity for a fresh ballot box
    CHAINBALLOT_LOG_LEVEL  DEBUG, INFO, WARNING or ERROR (default INFO)

Variables already present in the environment win over the ``.env`` file.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


ROOT = Path(__file__).resolve().parents[2]
DEFAULT_DATA_DIR = ROOT / "data"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


@dataclass(frozen=True)
class BallotConfig:
    data_dir: Path
    administrator: Optional[str] = None
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if self.log_level.upper() not in LOG_LEVELS:
            raise ValueError(
                f"Unknown log level {self.log_level!r} (expected one of {', '.join(LOG_LEVELS)})"
            )

    @property
    def state_file(self) -> Path:
        return self.data_dir / "state.json"

    @property
    def event_file(self) -> Path:
        return self.data_dir / "events.jsonl"

    @property
    def lock_file(self) -> Path:
        return self.data_dir / "ballot.lock"

    @classmethod
    def from_env(cls, env_file: Optional[Path] = None) -> BallotConfig:
        """Build config from the process environment and a .env file."""
        load_dotenv(env_file or ROOT / ".env")
        data_dir = os.getenv("CHAINBALLOT_DATA_DIR")
        return cls(
            data_dir=Path(data_dir) if data_dir else DEFAULT_DATA_DIR,
            administrator=os.getenv("CHAINBALLOT_ADMIN") or None,
            log_level=os.getenv("CHAINBALLOT_LOG_LEVEL", "INFO").upper(),
        )
