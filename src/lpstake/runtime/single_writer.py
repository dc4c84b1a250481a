from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Iterator, Optional

from lpstake.runtime.errors import ReentrancyRejected


class SingleWriterLock:
    """
    Enforces a single in-flight mutating call per ledger instance.

    - A second entry from the thread that already holds the lock is a
      reentrant callback (e.g. a token hook calling back into the ledger)
      and is rejected immediately.
    - Other threads wait up to timeout_s, then fail closed.
    """

    def __init__(self, *, timeout_s: float = 30.0):
        self.timeout_s = float(timeout_s)
        self._lock = threading.Lock()
        self._owner: Optional[int] = None
        self._operation = ""

    @property
    def held(self) -> bool:
        return self._owner is not None

    def acquire(self, operation: str) -> None:
        me = threading.get_ident()
        if self._owner == me:
            raise ReentrancyRejected(
                "reentrant_call",
                "ledger entry point invoked while another call is in progress",
                {"operation": operation, "in_progress": self._operation},
            )
        if not self._lock.acquire(timeout=max(0.0, self.timeout_s)):
            raise ReentrancyRejected(
                "lock_timeout",
                "timed out waiting for the ledger writer lock",
                {"operation": operation, "timeout_s": self.timeout_s},
            )
        self._owner = me
        self._operation = str(operation)

    def release(self) -> None:
        if self._owner != threading.get_ident():
            raise RuntimeError("single-writer lock released by a non-owner")
        self._owner = None
        self._operation = ""
        self._lock.release()

    @contextmanager
    def hold(self, operation: str) -> Iterator[None]:
        self.acquire(operation)
        try:
            yield
        finally:
            self.release()
