"""Election engine — lifecycle state machine and the election core."""

from chainballot.engine.election import Election
from chainballot.engine.lifecycle import ElectionLifecycle

__all__ = ["Election", "ElectionLifecycle"]
