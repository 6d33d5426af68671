"""Tally engine — winner and tie projection over the current counts.

Pure and side-effect free. It can be evaluated in any lifecycle state:
during an election for live standings, after it for the final result.

Rules:
- One pass in index order with a running leader and maximum.
- A strictly greater count takes the lead and clears the tie flag.
- An equal count at the running maximum sets the tie flag; the lower
  index stays the reported leader.
- Ties below the maximum never set the flag.
"""

from __future__ import annotations

from chainballot.models.ballot import Choice, WinnerResult


NO_WINNER = WinnerResult(index=0, label="", votes=0, has_tie=False, has_winner=False)


class TallyEngine:
    """Stateless winner computation."""

    @staticmethod
    def winner(choices: list[Choice]) -> WinnerResult:
        if not choices:
            return NO_WINNER

        leader = 0
        best = choices[0].vote_count
        tie = False
        for index in range(1, len(choices)):
            count = choices[index].vote_count
            if count > best:
                leader, best, tie = index, count, False
            elif count == best:
                tie = True

        return WinnerResult(
            index=leader,
            label=choices[leader].label,
            votes=best,
            has_tie=tie,
            has_winner=True,
        )

    @staticmethod
    def recount(choice_count: int, choice_indexes: list[int]) -> list[int]:
        """Per-choice counts rebuilt from individual votes."""
        counts = [0] * choice_count
        for index in choice_indexes:
            if 0 <= index < choice_count:
                counts[index] += 1
        return counts
