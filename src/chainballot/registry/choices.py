"""Choice registry — the ordered, index-addressed list of options.

A configuration call replaces the whole list; entries are never merged or
edited in place. The index of a choice is its address for as long as that
configuration stands.

Every replace bumps ``generation``. Votes are stamped with the generation
they were cast under, so a vote recorded against an earlier list is never
counted against the indexes of a later one.
"""

from __future__ import annotations

from typing import Any

from chainballot.errors import IndexOutOfRange, InvalidChoice, ValidationError
from chainballot.models.ballot import Choice


def _is_index(value: Any) -> bool:
    # bool is an int subclass; True must not address choice 1
    return isinstance(value, int) and not isinstance(value, bool)


class ChoiceRegistry:
    """Ordered choices with per-choice vote counters."""

    def __init__(self, generation: int = 0) -> None:
        if generation < 0:
            raise ValueError(f"Generation cannot be negative, got {generation}")
        self._choices: list[Choice] = []
        self._generation = generation

    @classmethod
    def from_records(
        cls, choices: list[dict[str, Any]], generation: int = 0,
    ) -> ChoiceRegistry:
        """Restore choices and counters from persisted records."""
        registry = cls(generation)
        for c in choices:
            if int(c["vote_count"]) < 0:
                raise ValueError(f"Negative vote count for {c['label']!r}")
            registry._choices.append(
                Choice(label=c["label"], vote_count=int(c["vote_count"]))
            )
        return registry

    @property
    def generation(self) -> int:
        """Number of times the list has been replaced."""
        return self._generation

    def replace(self, labels: list[str]) -> int:
        """Replace every choice. Returns the new count.

        Raises ValidationError if labels is empty or any label is blank.
        """
        if not labels:
            raise ValidationError("At least one choice is required")
        cleaned: list[str] = []
        for position, label in enumerate(labels):
            text = (label or "").strip()
            if not text:
                raise ValidationError(f"Choice {position} has a blank label")
            cleaned.append(text)
        self._choices = [Choice(label=text) for text in cleaned]
        self._generation += 1
        return len(self._choices)

    def count(self) -> int:
        return len(self._choices)

    def info(self, index: int) -> tuple[str, int]:
        """Return (label, vote_count) for a choice."""
        if not _is_index(index) or not 0 <= index < len(self._choices):
            raise IndexOutOfRange(
                f"Choice index {index!r} out of range (count {len(self._choices)})"
            )
        choice = self._choices[index]
        return choice.label, choice.vote_count

    def require_valid(self, index: int) -> None:
        """Raise InvalidChoice unless index addresses a configured choice."""
        if not _is_index(index) or not 0 <= index < len(self._choices):
            raise InvalidChoice(
                f"Invalid choice index {index!r} (count {len(self._choices)})"
            )

    def increment(self, index: int) -> int:
        self._choices[index].vote_count += 1
        return self._choices[index].vote_count

    def reset_counts(self) -> None:
        for choice in self._choices:
            choice.vote_count = 0

    def counts(self) -> list[int]:
        return [c.vote_count for c in self._choices]

    def snapshot(self) -> list[Choice]:
        """Copies of the current choices, safe to hand out."""
        return [Choice(label=c.label, vote_count=c.vote_count) for c in self._choices]
