"""Exclusive advisory lock on a file in the data directory.

Every process that opens the same ballot box takes this lock around each
reload -> mutate -> audit -> persist sequence, so writers in different
processes are serialised the same way threads are within one service.

POSIX only (fcntl.flock).
"""

from __future__ import annotations

import errno
import fcntl
from pathlib import Path
from typing import IO, Optional


class FileLock:
    """Blocking exclusive lock held for the duration of a with-block.

    Not re-entrant: nesting two FileLocks on the same path in one thread
    deadlocks, since each acquisition opens its own descriptor.
    """

    def __init__(self, path: Path) -> None:
        self._path = path
        self._handle: Optional[IO[str]] = None

    @property
    def path(self) -> Path:
        return self._path

    def __enter__(self) -> FileLock:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._handle = self._path.open("a", encoding="utf-8")
        while True:
            try:
                fcntl.flock(self._handle.fileno(), fcntl.LOCK_EX)
                break
            except OSError as e:
                if e.errno != errno.EINTR:
                    self._handle.close()
                    self._handle = None
                    raise
        return self

    def __exit__(self, *exc_info: object) -> None:
        try:
            fcntl.flock(self._handle.fileno(), fcntl.LOCK_UN)
        finally:
            self._handle.close()
            self._handle = None
