"""Tests for administrator gating and the voter whitelist."""

import pytest

from chainballot.errors import (
    IndexOutOfRange,
    InvalidState,
    NotWhitelisted,
    Unauthorized,
    ValidationError,
)
from chainballot.engine.election import Election
from chainballot.identity.access import (
    ZERO_IDENTITY,
    AccessControl,
    canonical_identity,
    is_null_identity,
)
from chainballot.identity.whitelist import Whitelist
from chainballot.models.ballot import NotificationKind


ADMIN = "0x" + "a" * 40
ALICE = "0x" + "1" * 40
BOB = "0x" + "2" * 40
CAROL = "0x" + "3" * 40


class TestIdentity:
    def test_hex_addresses_compare_case_insensitively(self) -> None:
        assert canonical_identity("  0xABCDEF  ") == "0xabcdef"

    def test_plain_identities_only_stripped(self) -> None:
        assert canonical_identity("  Alice ") == "Alice"

    @pytest.mark.parametrize("value", [None, "", "   ", ZERO_IDENTITY, ZERO_IDENTITY.upper()])
    def test_null_identities(self, value) -> None:
        assert is_null_identity(value)

    def test_administrator_cannot_be_null(self) -> None:
        with pytest.raises(ValidationError):
            AccessControl(ZERO_IDENTITY)


class TestAccessControl:
    def test_is_administrator(self) -> None:
        gate = AccessControl(ADMIN)
        assert gate.is_administrator(ADMIN)
        assert gate.is_administrator(ADMIN.upper().replace("0X", "0x"))
        assert not gate.is_administrator(ALICE)
        assert not gate.is_administrator(None)

    def test_require_administrator_rejects_others(self) -> None:
        gate = AccessControl(ADMIN)
        gate.require_administrator(ADMIN)
        with pytest.raises(Unauthorized, match="not the administrator"):
            gate.require_administrator(ALICE)

    def test_administrator_is_not_reassignable(self) -> None:
        gate = AccessControl(ADMIN)
        with pytest.raises(AttributeError):
            gate.administrator = ALICE  # type: ignore[misc]


class TestWhitelist:
    def test_replace_is_wholesale(self) -> None:
        wl = Whitelist()
        wl.replace([ALICE, BOB])
        wl.replace([CAROL])
        assert not wl.is_member(ALICE)
        assert not wl.is_member(BOB)
        assert wl.is_member(CAROL)
        assert wl.active_count == 1
        # Every identity ever added stays enumerable
        assert [e.identity for e in wl.entries()] == [ALICE, BOB, CAROL]

    def test_replace_empty_rejected(self) -> None:
        with pytest.raises(ValidationError, match="empty"):
            Whitelist().replace([])

    def test_replace_with_null_identity_changes_nothing(self) -> None:
        wl = Whitelist()
        wl.replace([ALICE])
        with pytest.raises(ValidationError):
            wl.replace([BOB, ZERO_IDENTITY])
        assert wl.is_member(ALICE)
        assert not wl.is_member(BOB)
        assert wl.count == 1

    def test_duplicates_collapse(self) -> None:
        wl = Whitelist()
        assert wl.replace([ALICE, ALICE.upper().replace("0X", "0x")]) == 1
        assert wl.count == 1

    def test_readd_flips_flag_without_new_entry(self) -> None:
        wl = Whitelist()
        wl.replace([ALICE, BOB])
        wl.remove(ALICE)
        assert wl.add(ALICE) is True
        assert wl.count == 2
        assert wl.entry(0).identity == ALICE
        assert wl.entry(0).active

    def test_add_existing_member_is_noop(self) -> None:
        wl = Whitelist()
        wl.add(ALICE)
        assert wl.add(ALICE) is False
        assert wl.count == 1

    def test_remove_non_member_fails(self) -> None:
        wl = Whitelist()
        with pytest.raises(NotWhitelisted):
            wl.remove(ALICE)
        wl.add(ALICE)
        wl.remove(ALICE)
        with pytest.raises(NotWhitelisted):
            wl.remove(ALICE)

    def test_entry_out_of_range(self) -> None:
        wl = Whitelist()
        wl.add(ALICE)
        with pytest.raises(IndexOutOfRange):
            wl.entry(1)
        with pytest.raises(IndexOutOfRange):
            wl.entry(-1)


class TestWhitelistGating:
    """Whitelist changes go through the election core's gates."""

    def _election(self) -> Election:
        election = Election(ADMIN)
        election.set_choices(ADMIN, ["A", "B"])
        election.set_whitelist(ADMIN, [ALICE])
        return election

    def test_non_admin_cannot_change_whitelist(self) -> None:
        election = self._election()
        with pytest.raises(Unauthorized):
            election.set_whitelist(ALICE, [ALICE, BOB])
        with pytest.raises(Unauthorized):
            election.add_to_whitelist(ALICE, BOB)
        with pytest.raises(Unauthorized):
            election.remove_from_whitelist(ALICE, ALICE)

    def test_unauthorized_checked_before_state(self) -> None:
        election = self._election()
        election.start_election(ADMIN)
        with pytest.raises(Unauthorized):
            election.add_to_whitelist(BOB, BOB)

    def test_whitelist_locked_while_active(self) -> None:
        election = self._election()
        election.start_election(ADMIN)
        with pytest.raises(InvalidState):
            election.set_whitelist(ADMIN, [BOB])
        with pytest.raises(InvalidState):
            election.add_to_whitelist(ADMIN, BOB)
        with pytest.raises(InvalidState):
            election.remove_from_whitelist(ADMIN, ALICE)

    def test_notifications(self) -> None:
        election = Election(ADMIN)
        election.set_whitelist(ADMIN, [ALICE, BOB])
        election.add_to_whitelist(ADMIN, ALICE)  # already a member: silent
        election.add_to_whitelist(ADMIN, CAROL)
        election.remove_from_whitelist(ADMIN, BOB)

        kinds = [n.kind for n in election.notifications]
        assert kinds == [
            NotificationKind.WHITELIST_SET,
            NotificationKind.WHITELIST_ADDED,
            NotificationKind.WHITELIST_REMOVED,
        ]
        assert election.notifications[0].payload == {"count": 2}
        assert election.notifications[1].payload == {"voter": CAROL}
        assert election.notifications[2].payload == {"voter": BOB}

    def test_whitelist_entry_accessor(self) -> None:
        election = Election(ADMIN)
        election.set_whitelist(ADMIN, [ALICE, BOB])
        election.remove_from_whitelist(ADMIN, BOB)
        assert election.whitelist_count() == 2
        entry = election.whitelist_entry(1)
        assert entry.identity == BOB
        assert entry.active is False
