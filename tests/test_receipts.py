"""Tests for vote receipts — Merkle inclusion proofs over an epoch's votes."""

import pytest
from datetime import datetime, timedelta, timezone

from chainballot.engine.election import Election
from chainballot.ledger.receipts import (
    EMPTY_ROOT,
    VoteReceiptTree,
    verify_receipt,
    vote_leaf_hash,
)
from chainballot.models.ballot import VoterRecord


ADMIN = "0x" + "a" * 40
VOTERS = [f"0x{n:040x}" for n in range(1, 8)]


def _now() -> datetime:
    return datetime(2026, 3, 1, 9, 0, 0, tzinfo=timezone.utc)


def _records(epoch: int, choices: list[int]) -> list[VoterRecord]:
    return [
        VoterRecord(
            identity=VOTERS[i],
            last_voted_epoch=epoch,
            choice_index=c,
            voted_utc=_now() + timedelta(minutes=i),
        )
        for i, c in enumerate(choices)
    ]


class TestLeafHash:
    def test_deterministic(self) -> None:
        a = vote_leaf_hash(VOTERS[0], 1, 0, "2026-03-01T09:00:00+00:00")
        b = vote_leaf_hash(VOTERS[0], 1, 0, "2026-03-01T09:00:00+00:00")
        assert a == b
        assert a.startswith("sha256:")

    def test_identity_case_insensitive(self) -> None:
        upper = "0x" + "AB" * 20
        assert vote_leaf_hash(upper, 1, 0, "t") == vote_leaf_hash(upper.lower(), 1, 0, "t")

    def test_every_field_matters(self) -> None:
        base = vote_leaf_hash(VOTERS[0], 1, 0, "t")
        assert vote_leaf_hash(VOTERS[1], 1, 0, "t") != base
        assert vote_leaf_hash(VOTERS[0], 2, 0, "t") != base
        assert vote_leaf_hash(VOTERS[0], 1, 1, "t") != base
        assert vote_leaf_hash(VOTERS[0], 1, 0, "u") != base


class TestTree:
    def test_empty_epoch(self) -> None:
        tree = VoteReceiptTree.from_records([], 1)
        assert tree.root == EMPTY_ROOT
        assert tree.leaf_count == 0
        assert tree.receipt(VOTERS[0]) is None

    def test_single_vote(self) -> None:
        tree = VoteReceiptTree.from_records(_records(1, [0]), 1)
        receipt = tree.receipt(VOTERS[0])
        assert receipt is not None
        assert receipt.leaf_hash == tree.root
        assert receipt.path == []
        assert verify_receipt(receipt)

    @pytest.mark.parametrize("n", [2, 3, 4, 5, 7])
    def test_every_receipt_verifies(self, n: int) -> None:
        tree = VoteReceiptTree.from_records(_records(1, [i % 2 for i in range(n)]), 1)
        assert tree.leaf_count == n
        for voter in VOTERS[:n]:
            receipt = tree.receipt(voter)
            assert verify_receipt(receipt)
            assert verify_receipt(receipt, tree.root)

    def test_root_independent_of_order(self) -> None:
        records = _records(1, [0, 1, 1, 0])
        forward = VoteReceiptTree.from_records(records, 1)
        backward = VoteReceiptTree.from_records(list(reversed(records)), 1)
        assert forward.root == backward.root

    def test_changed_vote_changes_root(self) -> None:
        before = VoteReceiptTree.from_records(_records(1, [0, 1, 1]), 1)
        after = VoteReceiptTree.from_records(_records(1, [0, 1, 0]), 1)
        assert before.root != after.root
        # An old receipt no longer verifies against the new root
        assert not verify_receipt(before.receipt(VOTERS[0]), after.root)

    def test_other_epochs_excluded(self) -> None:
        records = _records(1, [0, 1]) + [
            VoterRecord(VOTERS[5], 2, 0, _now()),
        ]
        tree = VoteReceiptTree.from_records(records, 2)
        assert tree.leaf_count == 1
        assert tree.receipt(VOTERS[0]) is None
        assert tree.receipt(VOTERS[5]).epoch == 2


class TestElectionReceipts:
    def test_receipt_for_cast_vote(self) -> None:
        election = Election(ADMIN)
        election.set_choices(ADMIN, ["A", "B"])
        election.set_whitelist(ADMIN, VOTERS[:3])
        election.start_election(ADMIN, _now())
        election.vote(VOTERS[0], 1, _now())
        election.vote(VOTERS[1], 0, _now())

        tree = election.receipt_tree()
        assert tree.epoch == 1
        assert verify_receipt(tree.receipt(VOTERS[0]))
        assert tree.receipt(VOTERS[2]) is None

    def test_new_epoch_starts_empty(self) -> None:
        election = Election(ADMIN)
        election.set_choices(ADMIN, ["A"])
        election.set_whitelist(ADMIN, VOTERS[:1])
        election.start_election(ADMIN)
        election.vote(VOTERS[0], 0)
        election.end_election(ADMIN)
        election.start_election(ADMIN)
        assert election.receipt_tree().root == EMPTY_ROOT
