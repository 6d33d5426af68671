"""Ballot data models.

An election cycle is identified by its epoch. Voter records are stamped
with the epoch they voted in and are never cleared; whether a voter has
voted "this time" is always derived by comparing the stamp against the
current epoch.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional


class ElectionPhase(str, enum.Enum):
    """Lifecycle state of the election."""
    CONFIGURING = "configuring"
    ACTIVE = "active"


class NotificationKind(str, enum.Enum):
    """Change notifications emitted once per committed mutation."""
    POLL_TITLE_SET = "PollTitleSet"
    CHOICES_SET = "ChoicesSet"
    WHITELIST_SET = "WhitelistSet"
    WHITELIST_ADDED = "WhitelistAdded"
    WHITELIST_REMOVED = "WhitelistRemoved"
    ELECTION_STARTED = "ElectionStarted"
    ELECTION_ENDED = "ElectionEnded"
    VOTE_CAST = "VoteCast"


@dataclass
class Choice:
    """A selectable option. The counter is reset at every start."""
    label: str
    vote_count: int = 0


@dataclass(frozen=True)
class WhitelistEntry:
    """One identity ever added to the whitelist and its current flag."""
    identity: str
    active: bool


@dataclass(frozen=True)
class VoterRecord:
    """Last vote cast by an identity, in whichever epoch that was.

    ``choices_generation`` names the choice list the index points into.
    """
    identity: str
    last_voted_epoch: int
    choice_index: int
    voted_utc: datetime
    choices_generation: int = 0


@dataclass(frozen=True)
class VoterStatus:
    """Read projection of a voter against the current epoch.

    ``choice_index`` and ``voted_utc`` are None unless ``voted_this_epoch``.
    """
    whitelisted: bool
    voted_this_epoch: bool
    choice_index: Optional[int] = None
    voted_utc: Optional[datetime] = None


@dataclass(frozen=True)
class ElectionWindow:
    start_utc: Optional[datetime] = None
    end_utc: Optional[datetime] = None


@dataclass(frozen=True)
class WinnerResult:
    """Current leader. The lowest index wins among equal maxima."""
    index: int
    label: str
    votes: int
    has_tie: bool
    has_winner: bool


@dataclass(frozen=True)
class Notification:
    """A committed change, in commit order."""
    kind: NotificationKind
    actor_id: str
    epoch: int
    timestamp_utc: datetime
    payload: dict[str, Any]
