"""Vote ledger — one record per identity, stamped with an epoch.

Replay protection works by comparison, not by clearing: an identity may
vote in epoch ``e`` only if its stored ``last_voted_epoch`` is below ``e``.
Starting a new election therefore never touches the ledger; old records
simply stop matching the current epoch. This keeps each vote O(1) no
matter how large the roster grows.

Records from earlier epochs are retained for audit reads but are never
counted toward the current tally.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from chainballot.errors import AlreadyVoted
from chainballot.identity.access import canonical_identity
from chainballot.models.ballot import VoterRecord


class VoteLedger:
    """Per-identity last-vote records."""

    def __init__(self) -> None:
        self._records: dict[str, VoterRecord] = {}

    def has_voted(self, identity: str, epoch: int) -> bool:
        """True if identity has a vote stamped with this epoch."""
        if epoch <= 0:
            return False
        record = self._records.get(canonical_identity(identity))
        return record is not None and record.last_voted_epoch == epoch

    def check_can_vote(self, identity: str, epoch: int) -> None:
        """Raise AlreadyVoted unless the record predates this epoch."""
        record = self._records.get(canonical_identity(identity))
        if record is not None and record.last_voted_epoch >= epoch:
            raise AlreadyVoted(
                f"{identity!r} already voted in epoch {epoch}"
            )

    def record(
        self,
        identity: str,
        epoch: int,
        choice_index: int,
        now: datetime,
        choices_generation: int = 0,
    ) -> VoterRecord:
        """Stamp a vote. Call check_can_vote first."""
        record = VoterRecord(
            identity=canonical_identity(identity),
            last_voted_epoch=epoch,
            choice_index=choice_index,
            voted_utc=now,
            choices_generation=choices_generation,
        )
        self._records[record.identity] = record
        return record

    def get(self, identity: str) -> Optional[VoterRecord]:
        return self._records.get(canonical_identity(identity))

    def records_for_epoch(
        self, epoch: int, choices_generation: Optional[int] = None,
    ) -> list[VoterRecord]:
        """Records stamped with epoch.

        With choices_generation, only votes cast under that choice list.
        """
        return [
            r for r in self._records.values()
            if r.last_voted_epoch == epoch
            and (choices_generation is None or r.choices_generation == choices_generation)
        ]

    def all_records(self) -> list[VoterRecord]:
        return list(self._records.values())

    def restore(self, record: VoterRecord) -> None:
        """Load a persisted record verbatim."""
        self._records[canonical_identity(record.identity)] = record

    @property
    def count(self) -> int:
        return len(self._records)
