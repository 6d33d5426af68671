"""Election lifecycle state machine.

Two states, two transitions:

    CONFIGURING --start--> ACTIVE --end--> CONFIGURING

Transitions are fail-closed: any pair not in the legal set is rejected.
The epoch counter is bumped exactly once per start and never goes down,
which makes it the replay-protection token for the vote ledger.

The state machine owns only phase, epoch and the election window. The
choice/voter preconditions for start are checked by the election core,
which knows about the registry and whitelist.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from chainballot.errors import AlreadyActive, InvalidState, NotActive
from chainballot.models.ballot import ElectionPhase, ElectionWindow


# Legal transitions: (from_phase, to_phase)
_TRANSITIONS: set[tuple[ElectionPhase, ElectionPhase]] = {
    (ElectionPhase.CONFIGURING, ElectionPhase.ACTIVE),
    (ElectionPhase.ACTIVE, ElectionPhase.CONFIGURING),
}


class ElectionLifecycle:
    """Phase, epoch and window of a single election instance."""

    def __init__(
        self,
        phase: ElectionPhase = ElectionPhase.CONFIGURING,
        epoch: int = 0,
        window: Optional[ElectionWindow] = None,
    ) -> None:
        if epoch < 0:
            raise ValueError(f"Epoch cannot be negative, got {epoch}")
        if phase == ElectionPhase.ACTIVE and epoch == 0:
            raise ValueError("An active election must have epoch >= 1")
        self._phase = phase
        self._epoch = epoch
        self._window = window or ElectionWindow()

    @property
    def phase(self) -> ElectionPhase:
        return self._phase

    @property
    def active(self) -> bool:
        return self._phase == ElectionPhase.ACTIVE

    @property
    def epoch(self) -> int:
        return self._epoch

    @property
    def window(self) -> ElectionWindow:
        return self._window

    def require_configuring(self) -> None:
        """Raise InvalidState while an election is running."""
        if self.active:
            raise InvalidState("Configuration is locked while the election is active")

    def require_active(self) -> None:
        if not self.active:
            raise NotActive("Election is not active")

    def check_start(self) -> None:
        """Validate CONFIGURING -> ACTIVE without applying it."""
        if self.active:
            raise AlreadyActive(f"Election epoch {self._epoch} is already active")
        self._check_legal(ElectionPhase.ACTIVE)

    def check_end(self) -> None:
        """Validate ACTIVE -> CONFIGURING without applying it."""
        if not self.active:
            raise NotActive("Cannot end: election is not active")
        self._check_legal(ElectionPhase.CONFIGURING)

    def apply_start(self, now: datetime) -> int:
        """Open the next epoch. Call check_start first. Returns the new epoch."""
        self._phase = ElectionPhase.ACTIVE
        self._epoch += 1
        self._window = ElectionWindow(start_utc=now, end_utc=None)
        return self._epoch

    def apply_end(self, now: datetime) -> None:
        """Close the running epoch. Call check_end first."""
        self._phase = ElectionPhase.CONFIGURING
        self._window = ElectionWindow(start_utc=self._window.start_utc, end_utc=now)

    def _check_legal(self, target: ElectionPhase) -> None:
        if (self._phase, target) not in _TRANSITIONS:
            raise InvalidState(
                f"Illegal transition: {self._phase.value} -> {target.value}"
            )
