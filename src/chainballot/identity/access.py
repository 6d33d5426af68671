"""Administrator gate and identity canonicalisation.

Identities are opaque text. Hex addresses (``0x`` prefix) are compared
case-insensitively, so they are lower-cased on the way in; anything else is
only stripped of surrounding whitespace.

The administrator is fixed when the gate is built and cannot be changed
afterwards. There is no setter and no transfer operation.
"""

from __future__ import annotations

from typing import Optional

from chainballot.errors import Unauthorized, ValidationError


ZERO_IDENTITY = "0x" + "0" * 40


def canonical_identity(identity: Optional[str]) -> str:
    """Return the canonical form of an identity ("" for null input)."""
    if identity is None:
        return ""
    canonical = identity.strip()
    if canonical[:2].lower() == "0x":
        canonical = canonical.lower()
    return canonical


def is_null_identity(identity: Optional[str]) -> bool:
    """True for None, blank text and the all-zero address."""
    canonical = canonical_identity(identity)
    return not canonical or canonical == ZERO_IDENTITY


def require_identity(identity: Optional[str]) -> str:
    """Canonicalise an identity, rejecting the null identity."""
    if is_null_identity(identity):
        raise ValidationError(f"Null identity not allowed: {identity!r}")
    return canonical_identity(identity)


class AccessControl:
    """Single-administrator privilege gate."""

    def __init__(self, administrator: str) -> None:
        self._administrator = require_identity(administrator)

    @property
    def administrator(self) -> str:
        return self._administrator

    def is_administrator(self, identity: Optional[str]) -> bool:
        return canonical_identity(identity) == self._administrator

    def require_administrator(self, caller: Optional[str]) -> None:
        """Raise Unauthorized unless caller is the administrator."""
        if not self.is_administrator(caller):
            raise Unauthorized(
                f"Caller {caller!r} is not the administrator"
            )
