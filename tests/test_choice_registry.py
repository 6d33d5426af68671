"""Tests for the choice registry — wholesale replacement and counters."""

import pytest

from chainballot.engine.election import Election
from chainballot.errors import (
    IndexOutOfRange,
    InvalidChoice,
    InvalidState,
    Unauthorized,
    ValidationError,
)
from chainballot.models.ballot import NotificationKind
from chainballot.registry.choices import ChoiceRegistry


ADMIN = "0x" + "a" * 40
ALICE = "0x" + "1" * 40


class TestReplace:
    def test_last_configuration_wins(self) -> None:
        registry = ChoiceRegistry()
        registry.replace(["A", "B", "C"])
        registry.replace(["X", "Y"])
        assert registry.count() == 2
        assert registry.info(0) == ("X", 0)
        assert registry.info(1) == ("Y", 0)

    def test_empty_rejected(self) -> None:
        with pytest.raises(ValidationError, match="At least one"):
            ChoiceRegistry().replace([])

    @pytest.mark.parametrize("labels", [["A", ""], ["   "], ["A", None]])
    def test_blank_label_rejected(self, labels) -> None:
        registry = ChoiceRegistry()
        registry.replace(["Keep"])
        with pytest.raises(ValidationError, match="blank"):
            registry.replace(labels)
        # Failed replace leaves the previous list intact
        assert registry.info(0) == ("Keep", 0)

    def test_labels_stripped(self) -> None:
        registry = ChoiceRegistry()
        registry.replace(["  Chips "])
        assert registry.info(0) == ("Chips", 0)

    def test_replace_resets_counters(self) -> None:
        registry = ChoiceRegistry()
        registry.replace(["A"])
        registry.increment(0)
        registry.replace(["A"])
        assert registry.counts() == [0]


class TestLookup:
    def test_info_out_of_range(self) -> None:
        registry = ChoiceRegistry()
        registry.replace(["A", "B"])
        with pytest.raises(IndexOutOfRange):
            registry.info(2)
        with pytest.raises(IndexOutOfRange):
            registry.info(-1)

    def test_require_valid(self) -> None:
        registry = ChoiceRegistry()
        registry.replace(["A"])
        registry.require_valid(0)
        with pytest.raises(InvalidChoice):
            registry.require_valid(1)
        with pytest.raises(InvalidChoice):
            registry.require_valid(-1)

    def test_invalid_choice_is_validation_error(self) -> None:
        assert issubclass(InvalidChoice, ValidationError)
        assert issubclass(IndexOutOfRange, ValidationError)

    def test_snapshot_is_a_copy(self) -> None:
        registry = ChoiceRegistry()
        registry.replace(["A"])
        snapshot = registry.snapshot()
        snapshot[0].vote_count = 99
        assert registry.info(0) == ("A", 0)


class TestChoiceGating:
    def test_only_admin_sets_choices(self) -> None:
        election = Election(ADMIN)
        with pytest.raises(Unauthorized):
            election.set_choices(ALICE, ["A"])
        assert election.choice_count() == 0

    def test_choices_locked_while_active(self) -> None:
        election = Election(ADMIN)
        election.set_choices(ADMIN, ["A", "B"])
        election.set_whitelist(ADMIN, [ALICE])
        election.start_election(ADMIN)
        with pytest.raises(InvalidState):
            election.set_choices(ADMIN, ["C"])
        assert election.choice_count() == 2

    def test_choices_set_notification(self) -> None:
        election = Election(ADMIN)
        election.set_choices(ADMIN, ["A", "B", "C"])
        last = election.notifications[-1]
        assert last.kind == NotificationKind.CHOICES_SET
        assert last.payload == {"count": 3}

    def test_poll_title(self) -> None:
        election = Election(ADMIN)
        election.set_poll_title(ADMIN, "  Favourite snack ")
        assert election.poll_title == "Favourite snack"
        assert election.notifications[-1].kind == NotificationKind.POLL_TITLE_SET
        with pytest.raises(ValidationError):
            election.set_poll_title(ADMIN, "  ")
        with pytest.raises(Unauthorized):
            election.set_poll_title(ALICE, "Mine now")
        assert election.poll_title == "Favourite snack"


class TestGeneration:
    def test_replace_bumps_generation(self) -> None:
        registry = ChoiceRegistry()
        assert registry.generation == 0
        registry.replace(["A"])
        registry.replace(["A"])
        assert registry.generation == 2

    def test_failed_replace_keeps_generation(self) -> None:
        registry = ChoiceRegistry()
        registry.replace(["A"])
        with pytest.raises(ValidationError):
            registry.replace([])
        assert registry.generation == 1

    def test_restored_generation(self) -> None:
        registry = ChoiceRegistry.from_records([{"label": "A", "vote_count": 2}], generation=5)
        assert registry.generation == 5
        assert registry.counts() == [2]


class TestBooleanIndex:
    def test_bool_is_not_a_choice_index(self) -> None:
        registry = ChoiceRegistry()
        registry.replace(["A", "B"])
        for flag in (True, False):
            with pytest.raises(InvalidChoice):
                registry.require_valid(flag)
            with pytest.raises(IndexOutOfRange):
                registry.info(flag)

    def test_vote_with_bool_rejected(self) -> None:
        election = Election(ADMIN)
        election.set_choices(ADMIN, ["A", "B"])
        election.set_whitelist(ADMIN, [ALICE])
        election.start_election(ADMIN)
        with pytest.raises(InvalidChoice):
            election.vote(ALICE, True)
        assert election.choice_info(1) == ("B", 0)
        assert election.voter_record(ALICE) is None
