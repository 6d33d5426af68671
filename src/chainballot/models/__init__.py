"""Core data models for ChainBallot."""

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

__all__ = [
    "Choice",
    "ElectionPhase",
    "ElectionWindow",
    "Notification",
    "NotificationKind",
    "VoterRecord",
    "VoterStatus",
    "WhitelistEntry",
    "WinnerResult",
]
