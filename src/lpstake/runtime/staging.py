# src/lpstake/runtime/staging.py
from __future__ import annotations

"""Stage/commit journal for ledger calls.

A call mutates the live LedgerState directly (so state is already updated
when an external transfer runs) while the journal keeps:

  - a deep snapshot of the state taken on entry
  - a compensating action for every external transfer that succeeded

commit() forgets both. rollback() restores the snapshot and runs the
compensations newest-first. A transfer whose compensation fails really
happened, so its ``keep`` effect is re-applied to the restored state and the
failure is returned for the executor to report.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from lpstake.ledger.state import LedgerState
from lpstake.runtime.errors import ExternalCallFailure, LedgerError

Json = Dict[str, Any]


@dataclass
class _Compensation:
    label: str
    undo: Callable[[], bool]
    details: Json = field(default_factory=dict)
    keep: Optional[Callable[[LedgerState], None]] = None


class CallJournal:
    def __init__(self, state: LedgerState, *, operation: str) -> None:
        self.operation = str(operation)
        self._state = state
        self._snapshot = state.clone()
        self._compensations: List[_Compensation] = []
        self._closed = False
        self.transfers: List[Json] = []

    @property
    def issued(self) -> int:
        return len(self._compensations)

    def transfer(
        self,
        label: str,
        call: Callable[[], bool],
        *,
        undo: Callable[[], bool],
        details: Json,
        keep: Optional[Callable[[LedgerState], None]] = None,
    ) -> None:
        """Issue one external transfer and register how to reverse it.

        A False result or a non-ledger exception becomes ExternalCallFailure.
        LedgerErrors (e.g. a rejected reentrant callback) propagate unchanged.

        ``keep`` re-applies this transfer's state effect if it cannot be undone.
        """
        if self._closed:
            raise RuntimeError("journal already closed")

        info = {"label": str(label), **details}
        try:
            ok = call()
        except LedgerError:
            raise
        except Exception as e:
            raise ExternalCallFailure("transfer_failed", f"{label} raised", {**info, "error": str(e)}) from e

        if not ok:
            raise ExternalCallFailure("transfer_rejected", f"{label} reported failure", info)

        self._compensations.append(_Compensation(label=str(label), undo=undo, details=info, keep=keep))
        self.transfers.append(info)

    def commit(self) -> None:
        self._closed = True
        self._compensations.clear()

    def rollback(self) -> List[Json]:
        """Restore the entry snapshot and reverse issued transfers.

        Returns the details of every compensation that did not succeed; the
        state effects of those transfers are kept.
        """
        if self._closed:
            return []
        self._closed = True
        self._state.restore(self._snapshot)

        failed: List[Json] = []
        for comp in reversed(self._compensations):
            try:
                ok = bool(comp.undo())
                error = None
            except Exception as e:
                ok = False
                error = str(e)
            if ok:
                continue
            if comp.keep is not None:
                comp.keep(self._state)
            info = dict(comp.details)
            if error is not None:
                info["error"] = error
            info["kept"] = comp.keep is not None
            failed.append(info)
        self._compensations.clear()
        return failed


__all__ = ["CallJournal"]
