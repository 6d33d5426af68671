"""Election core — the single state struct for one ballot box.

Composes the administrator gate, whitelist, choice registry, lifecycle
state machine and vote ledger, and is the only place that mutates them.
Every mutating method validates fully before writing anything, so a
rejected call has no observable effect.

Check order for administrator operations:
1. Caller is the administrator (Unauthorized).
2. Lifecycle allows the operation (InvalidState and subclasses).
3. Input is well formed (ValidationError and subclasses).

Check order for vote (first failure wins):
1. Election active (NotActive).
2. Choice index valid (InvalidChoice).
3. Caller currently whitelisted (NotWhitelisted).
4. Caller has not voted this epoch (AlreadyVoted).

Each committed mutation appends exactly one Notification (none for a
whitelist add that changes nothing). Delivery to listeners is the
service's job, after the change is audited and persisted.

Thread-safety: this class is not thread-safe. BallotService serialises
access with a lock; direct users must do the same.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from chainballot.engine.lifecycle import ElectionLifecycle
from chainballot.errors import NoChoices, NotWhitelisted, NoVoters, ValidationError
from chainballot.identity.access import AccessControl, canonical_identity
from chainballot.identity.whitelist import Whitelist
from chainballot.ledger.receipts import VoteReceiptTree
from chainballot.ledger.votes import VoteLedger
from chainballot.models.ballot import (
    Choice,
    ElectionPhase,
    ElectionWindow,
    Notification,
    NotificationKind,
    VoterRecord,
    VoterStatus,
    WhitelistEntry,
    WinnerResult,
)
from chainballot.registry.choices import ChoiceRegistry
from chainballot.tally.engine import TallyEngine


class Election:
    """Permissioned single-election ballot box.

    Usage:
        election = Election(administrator="0xadmin...")
        election.set_poll_title(admin, "Favourite snack")
        election.set_choices(admin, ["Chips", "Fruit"])
        election.set_whitelist(admin, [alice, bob])
        election.start_election(admin)
        election.vote(alice, 0)
        election.winner()
        election.end_election(admin)
    """

    def __init__(self, administrator: str) -> None:
        self._access = AccessControl(administrator)
        self._whitelist = Whitelist()
        self._choices = ChoiceRegistry()
        self._lifecycle = ElectionLifecycle()
        self._ledger = VoteLedger()
        self._poll_title = ""
        self._notifications: list[Notification] = []

    # ------------------------------------------------------------------
    # Configuration (administrator only, inactive only)
    # ------------------------------------------------------------------

    def set_poll_title(
        self, caller: str, title: str, now: Optional[datetime] = None,
    ) -> str:
        self._require_configurable(caller)
        text = (title or "").strip()
        if not text:
            raise ValidationError("Poll title cannot be blank")
        self._poll_title = text
        self._emit(NotificationKind.POLL_TITLE_SET, caller, now, {"title": text})
        return text

    def set_choices(
        self, caller: str, labels: list[str], now: Optional[datetime] = None,
    ) -> int:
        """Replace every choice. Returns the new choice count."""
        self._require_configurable(caller)
        count = self._choices.replace(labels)
        self._emit(NotificationKind.CHOICES_SET, caller, now, {"count": count})
        return count

    def set_whitelist(
        self, caller: str, identities: list[str], now: Optional[datetime] = None,
    ) -> int:
        """Replace whitelist membership. Returns the active member count."""
        self._require_configurable(caller)
        count = self._whitelist.replace(identities)
        self._emit(NotificationKind.WHITELIST_SET, caller, now, {"count": count})
        return count

    def add_to_whitelist(
        self, caller: str, identity: str, now: Optional[datetime] = None,
    ) -> bool:
        """Whitelist one identity. Returns False if it already was."""
        self._require_configurable(caller)
        flipped = self._whitelist.add(identity)
        if flipped:
            self._emit(
                NotificationKind.WHITELIST_ADDED, caller, now,
                {"voter": canonical_identity(identity)},
            )
        return flipped

    def remove_from_whitelist(
        self, caller: str, identity: str, now: Optional[datetime] = None,
    ) -> None:
        self._require_configurable(caller)
        removed = self._whitelist.remove(identity)
        self._emit(NotificationKind.WHITELIST_REMOVED, caller, now, {"voter": removed})

    # ------------------------------------------------------------------
    # Lifecycle (administrator only)
    # ------------------------------------------------------------------

    def start_election(self, caller: str, now: Optional[datetime] = None) -> int:
        """Open the next epoch. Returns the new epoch number."""
        self._access.require_administrator(caller)
        self._lifecycle.check_start()
        if self._choices.count() == 0:
            raise NoChoices("Cannot start: no choices configured")
        if self._whitelist.active_count == 0:
            raise NoVoters("Cannot start: no whitelisted voters")

        ts = now or datetime.now(timezone.utc)
        self._choices.reset_counts()
        epoch = self._lifecycle.apply_start(ts)
        self._emit(
            NotificationKind.ELECTION_STARTED, caller, ts,
            {"timestamp": ts.isoformat()},
        )
        return epoch

    def end_election(self, caller: str, now: Optional[datetime] = None) -> None:
        self._access.require_administrator(caller)
        self._lifecycle.check_end()

        ts = now or datetime.now(timezone.utc)
        self._lifecycle.apply_end(ts)
        self._emit(
            NotificationKind.ELECTION_ENDED, caller, ts,
            {"timestamp": ts.isoformat()},
        )

    # ------------------------------------------------------------------
    # Voting
    # ------------------------------------------------------------------

    def vote(
        self, caller: str, choice_index: int, now: Optional[datetime] = None,
    ) -> VoterRecord:
        self._lifecycle.require_active()
        self._choices.require_valid(choice_index)
        if not self._whitelist.is_member(caller):
            raise NotWhitelisted(f"{caller!r} is not whitelisted")
        epoch = self._lifecycle.epoch
        self._ledger.check_can_vote(caller, epoch)

        ts = now or datetime.now(timezone.utc)
        record = self._ledger.record(
            caller, epoch, choice_index, ts, self._choices.generation,
        )
        self._choices.increment(choice_index)
        self._emit(
            NotificationKind.VOTE_CAST, caller, ts,
            {"voter": record.identity, "choice_index": choice_index},
        )
        return record

    # ------------------------------------------------------------------
    # Read accessors
    # ------------------------------------------------------------------

    @property
    def administrator(self) -> str:
        return self._access.administrator

    def is_administrator(self, identity: Optional[str]) -> bool:
        return self._access.is_administrator(identity)

    @property
    def phase(self) -> ElectionPhase:
        return self._lifecycle.phase

    @property
    def election_active(self) -> bool:
        return self._lifecycle.active

    @property
    def election_start(self) -> Optional[datetime]:
        return self._lifecycle.window.start_utc

    @property
    def election_end(self) -> Optional[datetime]:
        return self._lifecycle.window.end_utc

    @property
    def poll_title(self) -> str:
        return self._poll_title

    @property
    def epoch(self) -> int:
        return self._lifecycle.epoch

    def choice_count(self) -> int:
        return self._choices.count()

    def choice_info(self, index: int) -> tuple[str, int]:
        return self._choices.info(index)

    def choices(self) -> list[Choice]:
        return self._choices.snapshot()

    def whitelist_count(self) -> int:
        return self._whitelist.count

    def whitelist_entry(self, index: int) -> WhitelistEntry:
        return self._whitelist.entry(index)

    def whitelist_entries(self) -> list[WhitelistEntry]:
        return self._whitelist.entries()

    def active_voter_count(self) -> int:
        return self._whitelist.active_count

    def is_whitelisted(self, identity: Optional[str]) -> bool:
        return self._whitelist.is_member(identity)

    def voter_status(self, identity: str) -> VoterStatus:
        whitelisted = self._whitelist.is_member(identity)
        record = self._ledger.get(identity)
        if record is None or not self._ledger.has_voted(identity, self.epoch):
            return VoterStatus(whitelisted=whitelisted, voted_this_epoch=False)
        return VoterStatus(
            whitelisted=whitelisted,
            voted_this_epoch=True,
            choice_index=record.choice_index,
            voted_utc=record.voted_utc,
        )

    def voter_record(self, identity: str) -> Optional[VoterRecord]:
        """Raw ledger record, possibly from an earlier epoch."""
        return self._ledger.get(identity)

    def winner(self) -> WinnerResult:
        return TallyEngine.winner(self._choices.snapshot())

    @property
    def notifications(self) -> list[Notification]:
        return list(self._notifications)

    def notifications_since(self, position: int) -> list[Notification]:
        return self._notifications[position:]

    # ------------------------------------------------------------------
    # Audit
    # ------------------------------------------------------------------

    def recount(self) -> list[int]:
        """Counts rebuilt from the votes cast this epoch under the live choice list."""
        records = self._counted_records() if self.epoch else []
        return TallyEngine.recount(
            self._choices.count(), [r.choice_index for r in records],
        )

    def verify_tally(self) -> bool:
        """True iff the stored counters match the ledger recount."""
        return self.recount() == self._choices.counts()

    def receipt_tree(self) -> VoteReceiptTree:
        """Merkle commitment over the votes that make up the live tally."""
        return VoteReceiptTree.from_records(self._counted_records(), self.epoch)

    # ------------------------------------------------------------------
    # Serialisation
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        window = self._lifecycle.window
        return {
            "administrator": self.administrator,
            "poll_title": self._poll_title,
            "phase": self._lifecycle.phase.value,
            "epoch": self._lifecycle.epoch,
            "election_start": window.start_utc.isoformat() if window.start_utc else None,
            "election_end": window.end_utc.isoformat() if window.end_utc else None,
            "choices_generation": self._choices.generation,
            "choices": [
                {"label": c.label, "vote_count": c.vote_count}
                for c in self._choices.snapshot()
            ],
            "whitelist": [
                {"identity": e.identity, "active": e.active}
                for e in self._whitelist.entries()
            ],
            "voters": [
                {
                    "identity": r.identity,
                    "last_voted_epoch": r.last_voted_epoch,
                    "choice_index": r.choice_index,
                    "voted_utc": r.voted_utc.isoformat(),
                    "choices_generation": r.choices_generation,
                }
                for r in self._ledger.all_records()
            ],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Election:
        """Restore an election from a to_dict snapshot."""
        election = cls(data["administrator"])
        election._poll_title = data.get("poll_title", "")
        election._choices = ChoiceRegistry.from_records(
            data.get("choices", []), int(data.get("choices_generation", 0)),
        )
        election._whitelist = Whitelist.from_records(data.get("whitelist", []))
        election._lifecycle = ElectionLifecycle(
            phase=ElectionPhase(data.get("phase", ElectionPhase.CONFIGURING.value)),
            epoch=int(data.get("epoch", 0)),
            window=ElectionWindow(
                start_utc=_parse_utc(data.get("election_start")),
                end_utc=_parse_utc(data.get("election_end")),
            ),
        )
        for v in data.get("voters", []):
            election._ledger.restore(VoterRecord(
                identity=v["identity"],
                last_voted_epoch=int(v["last_voted_epoch"]),
                choice_index=int(v["choice_index"]),
                voted_utc=datetime.fromisoformat(v["voted_utc"]),
                choices_generation=int(v.get("choices_generation", 0)),
            ))
        return election

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _counted_records(self) -> list[VoterRecord]:
        return self._ledger.records_for_epoch(self.epoch, self._choices.generation)

    def _require_configurable(self, caller: str) -> None:
        self._access.require_administrator(caller)
        self._lifecycle.require_configuring()

    def _emit(
        self,
        kind: NotificationKind,
        caller: str,
        now: Optional[datetime],
        payload: dict[str, Any],
    ) -> Notification:
        notification = Notification(
            kind=kind,
            actor_id=canonical_identity(caller),
            epoch=self._lifecycle.epoch,
            timestamp_utc=now or datetime.now(timezone.utc),
            payload=payload,
        )
        self._notifications.append(notification)
        return notification


def _parse_utc(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None
