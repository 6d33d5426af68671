"""Voter whitelist — who may vote in the next or current election.

Membership is a flag per identity. Every identity ever added is also kept
in insertion order so the full history can be enumerated; removing an
identity only clears its flag, and adding it back sets the flag again
without creating a second entry.

This class validates and mutates membership only. Lifecycle gating
(whitelist changes are allowed only while the election is inactive) and
the administrator check live in the election core.

Thread-safety: this class is not thread-safe. The caller must
synchronise access if used from multiple threads.
"""

from __future__ import annotations

from typing import Any, Optional

from chainballot.errors import IndexOutOfRange, NotWhitelisted, ValidationError
from chainballot.identity.access import canonical_identity, require_identity
from chainballot.models.ballot import WhitelistEntry


class Whitelist:
    """Membership flags plus an insertion-ordered roster."""

    def __init__(self) -> None:
        self._members: dict[str, bool] = {}
        self._order: list[str] = []

    @classmethod
    def from_records(cls, entries: list[dict[str, Any]]) -> Whitelist:
        """Restore membership and roster order from persisted entries."""
        whitelist = cls()
        for e in entries:
            identity = require_identity(e["identity"])
            whitelist._track(identity)
            whitelist._members[identity] = bool(e["active"])
        return whitelist

    def replace(self, identities: list[str]) -> int:
        """Replace the whole membership set. Returns the active count.

        Raises ValidationError for an empty list or any null identity.
        Nothing changes unless every identity is valid.
        """
        if not identities:
            raise ValidationError("Whitelist cannot be empty")
        canonical = [require_identity(i) for i in identities]

        for identity in self._order:
            self._members[identity] = False
        for identity in canonical:
            self._track(identity)
            self._members[identity] = True
        return self.active_count

    def add(self, identity: str) -> bool:
        """Add an identity. Returns True if membership actually flipped."""
        canonical = require_identity(identity)
        if self._members.get(canonical, False):
            return False
        self._track(canonical)
        self._members[canonical] = True
        return True

    def remove(self, identity: str) -> str:
        """Clear an identity's flag. Raises NotWhitelisted if not active."""
        canonical = canonical_identity(identity)
        if not self._members.get(canonical, False):
            raise NotWhitelisted(f"{identity!r} is not whitelisted")
        self._members[canonical] = False
        return canonical

    def is_member(self, identity: Optional[str]) -> bool:
        return self._members.get(canonical_identity(identity), False)

    def entry(self, index: int) -> WhitelistEntry:
        if not 0 <= index < len(self._order):
            raise IndexOutOfRange(
                f"Whitelist index {index} out of range (count {len(self._order)})"
            )
        identity = self._order[index]
        return WhitelistEntry(identity=identity, active=self._members[identity])

    def entries(self) -> list[WhitelistEntry]:
        return [
            WhitelistEntry(identity=i, active=self._members[i])
            for i in self._order
        ]

    @property
    def count(self) -> int:
        """Number of identities ever tracked."""
        return len(self._order)

    @property
    def active_count(self) -> int:
        return sum(1 for active in self._members.values() if active)

    def _track(self, identity: str) -> None:
        if identity not in self._members:
            self._order.append(identity)
            self._members[identity] = False
