"""Named loggers for operational diagnostics.

The audit trail of ballot changes lives in the event log, not here. These
loggers carry operator-facing messages only: lifecycle transitions,
persistence trouble, recovery.
"""

from __future__ import annotations

import logging

_ROOT = "chainballot"
_configured = False


def configure(level: str = "INFO") -> None:
    """Attach a console handler to the package root logger once."""
    global _configured
    root = logging.getLogger(_ROOT)
    root.setLevel(level.upper())
    if _configured:
        return

    handler = logging.StreamHandler()
    handler.setFormatter(
        logging.Formatter("%(asctime)s | %(levelname)s | %(name)s | %(message)s")
    )
    root.addHandler(handler)
    root.propagate = False
    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Logger under the package root, e.g. get_logger(__name__)."""
    if name == _ROOT or name.startswith(_ROOT + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{_ROOT}.{name}")
