"""Append-only audit log — the durable record of every committed change.

Every notification the election core emits is written here as an
EventRecord. Records are immutable once written and are chained: each one
carries the hash of its predecessor, so editing, dropping or reordering any
record breaks every hash after it. The log serves as:
1. The audit trail behind the live tally.
2. The activity feed consumed by presentation layers.
3. Evidence for third-party verification of an election's history.
"""

from __future__ import annotations

import enum
import hashlib
import json
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional


# Sentinel previous-hash for the first record in a log.
GENESIS_PREVIOUS_HASH = "sha256:" + "0" * 64


class EventKind(str, enum.Enum):
    """Classification of ballot events."""
    POLL_TITLE_SET = "poll_title_set"
    CHOICES_SET = "choices_set"
    WHITELIST_SET = "whitelist_set"
    WHITELIST_ADDED = "whitelist_added"
    WHITELIST_REMOVED = "whitelist_removed"
    ELECTION_STARTED = "election_started"
    ELECTION_ENDED = "election_ended"
    VOTE_CAST = "vote_cast"


def _canonical_hash(
    event_id: str,
    event_kind: str,
    timestamp_utc: str,
    actor_id: str,
    epoch: int,
    payload: dict[str, Any],
    previous_hash: str,
) -> str:
    canonical = json.dumps(
        {
            "event_id": event_id,
            "event_kind": event_kind,
            "timestamp_utc": timestamp_utc,
            "actor_id": actor_id,
            "epoch": epoch,
            "payload": payload,
            "previous_hash": previous_hash,
        },
        sort_keys=True,
        ensure_ascii=False,
    ).encode("utf-8")
    return f"sha256:{hashlib.sha256(canonical).hexdigest()}"


@dataclass(frozen=True)
class EventRecord:
    """A single immutable event in the audit log.

    event_hash covers every other field, including previous_hash, and is
    computed once at creation time.
    """
    event_id: str
    event_kind: EventKind
    timestamp_utc: str
    actor_id: str
    epoch: int
    payload: dict[str, Any]
    previous_hash: str
    event_hash: str  # SHA-256 of canonical JSON

    @staticmethod
    def create(
        event_id: str,
        event_kind: EventKind,
        actor_id: str,
        epoch: int,
        payload: dict[str, Any],
        previous_hash: str = GENESIS_PREVIOUS_HASH,
        timestamp_utc: Optional[datetime] = None,
    ) -> EventRecord:
        """Create a new event record with computed hash."""
        ts = timestamp_utc or datetime.now(timezone.utc)
        ts_str = ts.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")

        return EventRecord(
            event_id=event_id,
            event_kind=event_kind,
            timestamp_utc=ts_str,
            actor_id=actor_id,
            epoch=epoch,
            payload=payload,
            previous_hash=previous_hash,
            event_hash=_canonical_hash(
                event_id, event_kind.value, ts_str, actor_id,
                epoch, payload, previous_hash,
            ),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_id": self.event_id,
            "event_kind": self.event_kind.value,
            "timestamp_utc": self.timestamp_utc,
            "actor_id": self.actor_id,
            "epoch": self.epoch,
            "payload": self.payload,
            "previous_hash": self.previous_hash,
            "event_hash": self.event_hash,
        }


class EventLog:
    """Append-only, hash-chained event log with optional file persistence.

    Events can only be appended, never modified or deleted.
    The log can be persisted to a JSONL file (one JSON object per line)
    and loaded back for recovery.
    """

    def __init__(self, storage_path: Optional[Path] = None) -> None:
        self._events: list[EventRecord] = []
        self._storage_path = storage_path
        self._event_ids: set[str] = set()

        if storage_path and storage_path.exists():
            self._load_from_file(storage_path)

    def append(self, event: EventRecord) -> None:
        """Append an event to the log.

        Raises ValueError if event_id is a duplicate (replay protection)
        or if the event does not link to the current head.
        """
        if event.event_id in self._event_ids:
            raise ValueError(f"Duplicate event ID: {event.event_id}")
        if event.previous_hash != self.head_hash:
            raise ValueError(
                f"Event {event.event_id} links to {event.previous_hash}, "
                f"expected head {self.head_hash}"
            )

        if self._storage_path:
            self._append_to_file(event)

        self._events.append(event)
        self._event_ids.add(event.event_id)

    def events(self, kind: Optional[EventKind] = None) -> list[EventRecord]:
        """Return events, optionally filtered by kind."""
        if kind is None:
            return list(self._events)
        return [e for e in self._events if e.event_kind == kind]

    def events_for_epoch(
        self,
        epoch: int,
        kind: Optional[EventKind] = None,
    ) -> list[EventRecord]:
        result = [e for e in self._events if e.epoch == epoch]
        if kind is not None:
            result = [e for e in result if e.event_kind == kind]
        return result

    def recent(self, limit: int = 20) -> list[EventRecord]:
        """Newest events first."""
        if limit <= 0:
            return []
        return list(reversed(self._events[-limit:]))

    def verify_chain(self) -> list[str]:
        """Re-check every hash and link. Empty list means intact."""
        errors: list[str] = []
        previous = GENESIS_PREVIOUS_HASH
        for position, e in enumerate(self._events):
            if e.previous_hash != previous:
                errors.append(f"Broken link at position {position}: {e.event_id}")
            expected = _canonical_hash(
                e.event_id, e.event_kind.value, e.timestamp_utc, e.actor_id,
                e.epoch, e.payload, e.previous_hash,
            )
            if e.event_hash != expected:
                errors.append(f"Hash mismatch at position {position}: {e.event_id}")
            previous = e.event_hash
        return errors

    @property
    def count(self) -> int:
        return len(self._events)

    @property
    def last_event(self) -> Optional[EventRecord]:
        return self._events[-1] if self._events else None

    @property
    def head_hash(self) -> str:
        """Hash the next appended event must link to."""
        return self._events[-1].event_hash if self._events else GENESIS_PREVIOUS_HASH

    def reload(self) -> None:
        """Re-read the JSONL file, picking up events other writers appended.

        No-op for an in-memory log. Raises ValueError on tampering, leaving
        the previously loaded events in place.
        """
        if not self._storage_path or not self._storage_path.exists():
            return
        events, event_ids = self._events, self._event_ids
        self._events, self._event_ids = [], set()
        try:
            self._load_from_file(self._storage_path)
        except ValueError:
            self._events, self._event_ids = events, event_ids
            raise

    def _append_to_file(self, event: EventRecord) -> None:
        """Append a single event to the JSONL file."""
        with self._storage_path.open("a", encoding="utf-8") as f:
            f.write(json.dumps(event.to_dict(), sort_keys=True, ensure_ascii=False) + "\n")

    def _load_from_file(self, path: Path) -> None:
        """Load events from a JSONL file with integrity verification.

        Fail-closed: rejects tampered records (hash mismatch), broken
        chain links and duplicate event IDs.
        """
        with path.open("r", encoding="utf-8") as f:
            for line_num, line in enumerate(f, 1):
                line = line.strip()
                if not line:
                    continue
                data = json.loads(line)

                event_id = data["event_id"]
                if event_id in self._event_ids:
                    raise ValueError(
                        f"Duplicate event ID on recovery (line {line_num}): {event_id}"
                    )

                if data["previous_hash"] != self.head_hash:
                    raise ValueError(
                        f"Chain broken (line {line_num}): event {event_id} "
                        f"links to {data['previous_hash']}, expected {self.head_hash}"
                    )

                expected_hash = _canonical_hash(
                    data["event_id"], data["event_kind"], data["timestamp_utc"],
                    data["actor_id"], data["epoch"], data["payload"],
                    data["previous_hash"],
                )
                if data["event_hash"] != expected_hash:
                    raise ValueError(
                        f"Integrity check failed (line {line_num}): event {event_id} "
                        f"stored hash {data['event_hash']} != computed {expected_hash}"
                    )

                event = EventRecord(
                    event_id=data["event_id"],
                    event_kind=EventKind(data["event_kind"]),
                    timestamp_utc=data["timestamp_utc"],
                    actor_id=data["actor_id"],
                    epoch=data["epoch"],
                    payload=data["payload"],
                    previous_hash=data["previous_hash"],
                    event_hash=data["event_hash"],
                )
                self._events.append(event)
                self._event_ids.add(event.event_id)
