"""Ballot service — unified facade over one election instance.

This is the primary interface for programmatic access to ChainBallot.
It wraps the election core with the concerns the core leaves out:
- Serialisation: one re-entrant lock guards every read and write, so
  concurrent callers observe only committed state and each vote is
  accepted at most once. A service opened on a data directory also holds
  an exclusive file lock for each mutation and re-reads the snapshot and
  audit log under it, so separate processes sharing the directory are
  serialised too.
- Clock: timestamps come from an injectable clock at call time.
- Audit: every committed notification is appended to the hash-chained
  event log.
- Persistence: the state snapshot is rewritten after each commit.
- Delivery: subscribers see each notification after it is audited and
  persisted. A failing subscriber is logged and reported as a warning;
  it cannot undo or hide the commit.

Engines raise; the service reports. Mutating methods return a typed
ServiceResult instead of raising for ballot rejections. Once the core has
committed a change it is never rolled back: an audit or snapshot write
failure marks the service degraded and is reported as a warning.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Iterator, Optional

from chainballot.config import BallotConfig
from chainballot.engine.election import Election
from chainballot.errors import BallotError
from chainballot.ledger.receipts import VoteReceipt
from chainballot.log import get_logger
from chainballot.models.ballot import (
    Notification,
    VoterRecord,
    VoterStatus,
    WhitelistEntry,
    WinnerResult,
)
from chainballot.persistence.event_log import EventKind, EventLog, EventRecord
from chainballot.persistence.file_lock import FileLock
from chainballot.persistence.state_store import StateStore


logger = get_logger(__name__)

Clock = Callable[[], datetime]
Subscriber = Callable[[Notification], None]


@dataclass(frozen=True)
class ServiceResult:
    """Result of a service operation."""
    success: bool
    errors: list[str] = field(default_factory=list)
    data: dict[str, Any] = field(default_factory=dict)
    error_kind: Optional[str] = None


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class BallotService:
    """Serialised, audited access to a single Election.

    Usage:
        service = BallotService(Election(administrator=admin))
        service.set_choices(admin, ["A", "B"])
        service.set_whitelist(admin, [alice, bob])
        service.start_election(admin)
        result = service.vote(alice, 0)
        service.winner()

    Persistence (optional):
        service = BallotService.open(BallotConfig.from_env())
        # State is saved on each mutation and restored on open.
        # Mutations, status() and verify() first re-read the data directory
        # under its file lock; other reads use this instance's last view
        # until refresh() is called.
    """

    def __init__(
        self,
        election: Election,
        event_log: Optional[EventLog] = None,
        state_store: Optional[StateStore] = None,
        clock: Optional[Clock] = None,
        lock_path: Optional[Path] = None,
    ) -> None:
        self._election = election
        self._event_log = event_log
        self._state_store = state_store
        self._clock = clock or _utc_now
        self._lock = threading.RLock()
        self._file_lock = FileLock(lock_path) if lock_path is not None else None
        self._exclusive_depth = 0
        self._subscribers: list[Subscriber] = []

        # Initialise counter from persisted log to avoid ID collision on restart
        self._event_counter = event_log.count if event_log is not None else 0
        # Notifications already written to the audit log
        self._audited = len(election.notifications)
        self._persistence_degraded = False

    @classmethod
    def open(cls, config: BallotConfig, clock: Optional[Clock] = None) -> BallotService:
        """Open (or create) the ballot box stored under config.data_dir.

        Raises ValueError if nothing is stored yet and no administrator
        is configured.
        """
        config.data_dir.mkdir(parents=True, exist_ok=True)
        state_store = StateStore(config.state_file)

        with FileLock(config.lock_file):
            event_log = EventLog(storage_path=config.event_file)
            election = state_store.load()
            if election is None:
                if not config.administrator:
                    raise ValueError(
                        "No stored election and no administrator configured "
                        "(set CHAINBALLOT_ADMIN)"
                    )
                election = Election(config.administrator)
                logger.info("Created ballot box for administrator %s", election.administrator)
            else:
                logger.info(
                    "Restored ballot box: epoch %d, %s, %d audit events",
                    election.epoch, election.phase.value, event_log.count,
                )
                if config.administrator and not election.is_administrator(config.administrator):
                    logger.warning(
                        "Configured administrator %s ignored; stored administrator is %s",
                        config.administrator, election.administrator,
                    )

            service = cls(
                election, event_log=event_log, state_store=state_store,
                clock=clock, lock_path=config.lock_file,
            )
            if not state_store.exists():
                warning = service._safe_persist_post_audit()
                if warning:
                    logger.warning(warning)
        return service

    def subscribe(self, subscriber: Subscriber) -> None:
        """Register a listener for committed notifications."""
        with self._lock:
            self._subscribers.append(subscriber)

    def refresh(self) -> None:
        """Pick up changes other processes committed to the data directory."""
        with self._exclusive():
            pass

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def set_poll_title(self, caller: str, title: str) -> ServiceResult:
        return self._execute(
            lambda now: {"poll_title": self._election.set_poll_title(caller, title, now)}
        )

    def set_choices(self, caller: str, labels: list[str]) -> ServiceResult:
        return self._execute(
            lambda now: {"count": self._election.set_choices(caller, labels, now)}
        )

    def set_whitelist(self, caller: str, identities: list[str]) -> ServiceResult:
        return self._execute(
            lambda now: {"count": self._election.set_whitelist(caller, identities, now)}
        )

    def add_to_whitelist(self, caller: str, identity: str) -> ServiceResult:
        return self._execute(
            lambda now: {"changed": self._election.add_to_whitelist(caller, identity, now)}
        )

    def remove_from_whitelist(self, caller: str, identity: str) -> ServiceResult:
        def _remove(now: datetime) -> dict[str, Any]:
            self._election.remove_from_whitelist(caller, identity, now)
            return {"removed": identity}

        return self._execute(_remove)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start_election(self, caller: str) -> ServiceResult:
        def _start(now: datetime) -> dict[str, Any]:
            epoch = self._election.start_election(caller, now)
            logger.info("Election epoch %d started", epoch)
            return {"epoch": epoch, "started_utc": now.isoformat()}

        return self._execute(_start)

    def end_election(self, caller: str) -> ServiceResult:
        def _end(now: datetime) -> dict[str, Any]:
            self._election.end_election(caller, now)
            logger.info("Election epoch %d ended", self._election.epoch)
            return {"epoch": self._election.epoch, "ended_utc": now.isoformat()}

        return self._execute(_end)

    # ------------------------------------------------------------------
    # Voting
    # ------------------------------------------------------------------

    def vote(self, caller: str, choice_index: int) -> ServiceResult:
        def _vote(now: datetime) -> dict[str, Any]:
            record = self._election.vote(caller, choice_index, now)
            return {
                "voter": record.identity,
                "choice_index": record.choice_index,
                "epoch": record.last_voted_epoch,
                "voted_utc": record.voted_utc.isoformat(),
            }

        return self._execute(_vote)

    # ------------------------------------------------------------------
    # Read accessors
    # ------------------------------------------------------------------

    @property
    def administrator(self) -> str:
        return self._election.administrator

    @property
    def election_active(self) -> bool:
        with self._lock:
            return self._election.election_active

    @property
    def election_start(self) -> Optional[datetime]:
        with self._lock:
            return self._election.election_start

    @property
    def election_end(self) -> Optional[datetime]:
        with self._lock:
            return self._election.election_end

    @property
    def poll_title(self) -> str:
        with self._lock:
            return self._election.poll_title

    @property
    def epoch(self) -> int:
        with self._lock:
            return self._election.epoch

    def choice_count(self) -> int:
        with self._lock:
            return self._election.choice_count()

    def choice_info(self, index: int) -> tuple[str, int]:
        """Raises IndexOutOfRange past the last choice."""
        with self._lock:
            return self._election.choice_info(index)

    def whitelist_count(self) -> int:
        with self._lock:
            return self._election.whitelist_count()

    def whitelist_entry(self, index: int) -> WhitelistEntry:
        """Raises IndexOutOfRange past the last entry."""
        with self._lock:
            return self._election.whitelist_entry(index)

    def voter_status(self, identity: str) -> VoterStatus:
        with self._lock:
            return self._election.voter_status(identity)

    def voter_record(self, identity: str) -> Optional[VoterRecord]:
        with self._lock:
            return self._election.voter_record(identity)

    def winner(self) -> WinnerResult:
        with self._lock:
            return self._election.winner()

    def recent_events(self, limit: int = 20) -> list[EventRecord]:
        """Newest audit events first (empty without an event log)."""
        with self._lock:
            if self._event_log is None:
                return []
            return self._event_log.recent(limit)

    def receipt(self, identity: str) -> Optional[VoteReceipt]:
        """Inclusion proof for identity's vote in the current epoch."""
        with self._lock:
            return self._election.receipt_tree().receipt(identity)

    def receipt_root(self) -> str:
        with self._lock:
            return self._election.receipt_tree().root

    # ------------------------------------------------------------------
    # Status and verification
    # ------------------------------------------------------------------

    def status(self) -> dict[str, Any]:
        """Return a summary of the ballot box, as of the latest commit on disk."""
        with self._exclusive():
            election = self._election
            winner = election.winner()
            return {
                "administrator": election.administrator,
                "poll_title": election.poll_title,
                "phase": election.phase.value,
                "epoch": election.epoch,
                "election_start": _iso(election.election_start),
                "election_end": _iso(election.election_end),
                "choices": [
                    {"index": i, "label": c.label, "votes": c.vote_count}
                    for i, c in enumerate(election.choices())
                ],
                "whitelist": {
                    "tracked": election.whitelist_count(),
                    "active": election.active_voter_count(),
                },
                "winner": {
                    "index": winner.index,
                    "label": winner.label,
                    "votes": winner.votes,
                    "has_tie": winner.has_tie,
                    "has_winner": winner.has_winner,
                },
                "audit_events": self._event_log.count if self._event_log else 0,
                "persistence_degraded": self._persistence_degraded,
            }

    def verify(self) -> ServiceResult:
        """Recount the tally from the ledger and re-check the audit chain."""
        try:
            with self._exclusive():
                return self._verify_loaded()
        except ValueError as e:
            # Stored log or snapshot failed its integrity checks on reload
            return ServiceResult(success=False, errors=[str(e)], error_kind="tamper_detected")

    def _verify_loaded(self) -> ServiceResult:
        with self._lock:
            errors: list[str] = []
            recount = self._election.recount()
            stored = [c.vote_count for c in self._election.choices()]
            if recount != stored:
                errors.append(f"Tally mismatch: stored {stored}, recount {recount}")
            if self._event_log is not None:
                errors.extend(self._event_log.verify_chain())
            if errors:
                return ServiceResult(success=False, errors=errors, error_kind="tamper_detected")
            return ServiceResult(
                success=True,
                data={
                    "epoch": self._election.epoch,
                    "tally": stored,
                    "receipt_root": self._election.receipt_tree().root,
                    "audit_head": self._event_log.head_hash if self._event_log else None,
                },
            )

    @property
    def persistence_degraded(self) -> bool:
        return self._persistence_degraded

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _execute(self, operation: Callable[[datetime], dict[str, Any]]) -> ServiceResult:
        """Run one mutation under the lock, then audit and persist.

        Ballot rejections come back as a failed ServiceResult. The core
        validates before writing, so nothing needs undoing on failure.
        """
        with self._exclusive():
            try:
                data = operation(self._clock())
            except BallotError as e:
                return ServiceResult(success=False, errors=[str(e)], error_kind=e.kind)

            pending = self._election.notifications_since(self._audited)
            self._audited += len(pending)
            warnings = self._record_notifications(pending)
            warning = self._safe_persist_post_audit()
            if warning:
                warnings.append(warning)
            warnings.extend(self._notify_subscribers(pending))
            if warnings:
                data["warning"] = "; ".join(warnings)
            return ServiceResult(success=True, data=data)

    def _next_event_id(self) -> str:
        """Generate a monotonically increasing unique event ID."""
        self._event_counter += 1
        return f"EVT-{self._event_counter:08d}"

    @contextmanager
    def _exclusive(self) -> Iterator[None]:
        """Hold the thread lock and, when opened on a data directory, the
        file lock, with state re-read from disk on entry.

        Re-entrant within one thread: only the outermost entry takes the
        file lock and reloads.
        """
        with self._lock:
            if self._file_lock is None or self._exclusive_depth:
                self._exclusive_depth += 1
                try:
                    yield
                finally:
                    self._exclusive_depth -= 1
                return
            with self._file_lock:
                self._exclusive_depth += 1
                try:
                    self._sync_from_disk()
                    yield
                finally:
                    self._exclusive_depth -= 1

    def _sync_from_disk(self) -> None:
        """Adopt whatever other writers committed since this instance last looked."""
        if self._persistence_degraded:
            # The snapshot is stale; in-memory state is the newer copy
            logger.warning(
                "Persistence degraded; not reloading from %s", self._file_lock.path.parent,
            )
            return
        if self._state_store is not None:
            stored = self._state_store.load()
            if stored is not None:
                self._election = stored
                self._audited = len(stored.notifications)
        if self._event_log is not None:
            self._event_log.reload()
            self._event_counter = self._event_log.count

    def _record_notifications(self, pending: list[Notification]) -> list[str]:
        """Append notifications to the event log.

        Returns warnings for any that could not be written.
        """
        if self._event_log is None:
            return []

        warnings: list[str] = []
        for notification in pending:
            err = self._record_event(notification)
            if err:
                self._persistence_degraded = True
                logger.warning(err)
                warnings.append(err)
        return warnings

    def _record_event(self, notification: Notification) -> Optional[str]:
        """Hash and record one notification. Returns error string or None."""
        try:
            event = EventRecord.create(
                event_id=self._next_event_id(),
                event_kind=EventKind[notification.kind.name],
                actor_id=notification.actor_id,
                epoch=notification.epoch,
                payload=notification.payload,
                previous_hash=self._event_log.head_hash,
                timestamp_utc=notification.timestamp_utc,
            )
            self._event_log.append(event)
        except (ValueError, OSError) as e:
            return f"Event log failure: {e}"
        return None

    def _notify_subscribers(self, pending: list[Notification]) -> list[str]:
        """Hand committed notifications to every subscriber.

        A subscriber that raises is logged and skipped; the commit stands
        and the remaining subscribers still run. Returns warnings.
        """
        warnings: list[str] = []
        for notification in pending:
            for subscriber in list(self._subscribers):
                try:
                    subscriber(notification)
                except Exception as e:
                    msg = f"Subscriber {subscriber!r} failed on {notification.kind.value}: {e}"
                    logger.warning(msg)
                    warnings.append(msg)
        return warnings

    def _safe_persist_post_audit(self) -> Optional[str]:
        """Persist state after the core has committed a change.

        MUST NOT rollback in-memory state. If the write fails, in-memory
        state remains correct but the snapshot is stale; the degraded flag
        is set for operator awareness and a warning is returned.
        """
        if self._state_store is None:
            return None
        try:
            self._state_store.save(self._election)
            return None
        except OSError as e:
            self._persistence_degraded = True
            msg = f"Persistence degraded: {e}; state committed in memory but snapshot is stale"
            logger.warning(msg)
            return msg


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None
