"""Vote receipts — a Merkle commitment over one epoch's votes.

Each vote counted in an epoch becomes a leaf: the SHA-256 of the canonical
JSON of (identity, epoch, choice_index, voted_utc). Leaves are sorted before
the tree is built so the root depends only on the set of votes, not on the
order they were cast or stored in.

A voter can keep their receipt (leaf, path, root) and later check that the
published root still includes their vote. Changing any counted vote, or
adding or dropping one, changes the root.

Usage:
    tree = VoteReceiptTree.from_records(ledger.records_for_epoch(epoch), epoch)
    root = tree.root
    receipt = tree.receipt("0xabc...")
    assert verify_receipt(receipt)
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from typing import Optional

from chainballot.identity.access import canonical_identity
from chainballot.models.ballot import VoterRecord


EMPTY_ROOT = "sha256:" + hashlib.sha256(b"").hexdigest()


@dataclass(frozen=True)
class VoteReceipt:
    """Inclusion proof for one vote."""
    identity: str
    epoch: int
    leaf_hash: str
    path: list[tuple[str, str]]  # (sibling_hash, "L" | "R")
    root: str


def vote_leaf_hash(
    identity: str,
    epoch: int,
    choice_index: int,
    voted_utc: str,
) -> str:
    """Leaf hash for a single counted vote."""
    canonical = json.dumps(
        {
            "identity": canonical_identity(identity),
            "epoch": epoch,
            "choice_index": choice_index,
            "voted_utc": voted_utc,
        },
        sort_keys=True,
        ensure_ascii=False,
    ).encode("utf-8")
    return "sha256:" + hashlib.sha256(canonical).hexdigest()


class VoteReceiptTree:
    """Deterministic SHA-256 Merkle tree over an epoch's vote leaves."""

    def __init__(self, epoch: int, leaves: dict[str, str]) -> None:
        # identity -> leaf hash
        self._epoch = epoch
        self._leaves = dict(leaves)
        self._levels: list[list[str]] = []
        self._root = self._build()

    @classmethod
    def from_records(cls, records: list[VoterRecord], epoch: int) -> VoteReceiptTree:
        """Build from ledger records, ignoring any not stamped with epoch."""
        leaves = {
            r.identity: vote_leaf_hash(
                r.identity, epoch, r.choice_index, r.voted_utc.isoformat(),
            )
            for r in records
            if r.last_voted_epoch == epoch
        }
        return cls(epoch, leaves)

    @property
    def epoch(self) -> int:
        return self._epoch

    @property
    def root(self) -> str:
        return self._root

    @property
    def leaf_count(self) -> int:
        return len(self._leaves)

    def receipt(self, identity: str) -> Optional[VoteReceipt]:
        """Inclusion proof for identity's vote, or None if it has none."""
        canonical = canonical_identity(identity)
        leaf = self._leaves.get(canonical)
        if leaf is None:
            return None

        idx = self._levels[0].index(leaf)
        path: list[tuple[str, str]] = []
        for level in self._levels[:-1]:
            if idx % 2 == 0:
                sibling = level[idx + 1] if idx + 1 < len(level) else level[idx]
                path.append((sibling, "R"))
            else:
                path.append((level[idx - 1], "L"))
            idx //= 2

        return VoteReceipt(
            identity=canonical,
            epoch=self._epoch,
            leaf_hash=leaf,
            path=path,
            root=self._root,
        )

    def _build(self) -> str:
        if not self._leaves:
            return EMPTY_ROOT
        level = sorted(self._leaves.values())
        self._levels = [level]
        while len(level) > 1:
            parents: list[str] = []
            for i in range(0, len(level), 2):
                left = level[i]
                right = level[i + 1] if i + 1 < len(level) else left
                parents.append(_hash_pair(left, right))
            self._levels.append(parents)
            level = parents
        return level[0]


def verify_receipt(receipt: VoteReceipt, root: Optional[str] = None) -> bool:
    """Recompute the path and compare with root (default: receipt.root)."""
    current = receipt.leaf_hash
    for sibling, position in receipt.path:
        if position == "L":
            current = _hash_pair(sibling, current)
        else:
            current = _hash_pair(current, sibling)
    return current == (root or receipt.root)


def _hash_pair(left: str, right: str) -> str:
    combined = (left.removeprefix("sha256:") + right.removeprefix("sha256:")).encode("utf-8")
    return "sha256:" + hashlib.sha256(combined).hexdigest()
