"""Choice registry."""

from chainballot.registry.choices import ChoiceRegistry

__all__ = ["ChoiceRegistry"]
