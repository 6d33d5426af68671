"""Winner and tie projection."""

from chainballot.tally.engine import TallyEngine

__all__ = ["TallyEngine"]
