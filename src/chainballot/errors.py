"""Rejection kinds raised by the ballot core.

Every error is a precondition failure raised before any state is touched,
so a rejected call leaves the election exactly as it found it. Retrying the
same call against the same state fails the same way.

Each class carries a stable ``kind`` string that presentation layers can
map to user-facing messages without importing the class hierarchy.
"""

from __future__ import annotations


class BallotError(Exception):
    """Base class for all deterministic ballot rejections."""
    kind = "ballot_error"


class Unauthorized(BallotError, PermissionError):
    """Caller is not the administrator."""
    kind = "unauthorized"


class InvalidState(BallotError, RuntimeError):
    """Lifecycle precondition violated."""
    kind = "invalid_state"


class AlreadyActive(InvalidState):
    kind = "already_active"


class NotActive(InvalidState):
    kind = "not_active"


class NoChoices(InvalidState):
    kind = "no_choices"


class NoVoters(InvalidState):
    kind = "no_voters"


class ValidationError(BallotError, ValueError):
    """Empty input, blank label, null identity or bad index."""
    kind = "validation_error"


class InvalidChoice(ValidationError):
    kind = "invalid_choice"


class IndexOutOfRange(ValidationError):
    kind = "index_out_of_range"


class NotWhitelisted(BallotError):
    kind = "not_whitelisted"


class AlreadyVoted(BallotError):
    kind = "already_voted"
