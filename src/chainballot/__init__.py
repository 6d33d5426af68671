"""ChainBallot — permissioned single-election ballot box."""

__version__ = "0.1.0"
