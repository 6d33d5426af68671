"""Administrator gate and voter whitelist."""

from chainballot.identity.access import AccessControl, canonical_identity
from chainballot.identity.whitelist import Whitelist

__all__ = ["AccessControl", "Whitelist", "canonical_identity"]
