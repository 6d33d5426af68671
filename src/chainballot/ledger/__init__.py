"""Vote ledger and per-epoch vote receipts."""

from chainballot.ledger.receipts import VoteReceiptTree, verify_receipt
from chainballot.ledger.votes import VoteLedger

__all__ = ["VoteLedger", "VoteReceiptTree", "verify_receipt"]
