from __future__ import annotations

from typing import Protocol, Tuple, runtime_checkable


@runtime_checkable
class TransferableBalanceLedger(Protocol):
    """A token handle bound to the custody holder.

    ``transfer`` moves funds out of custody; ``transfer_from`` moves funds
    the sender has approved for custody. Both return False (or raise) on
    failure, and any failure aborts the enclosing ledger call.
    """

    def balance_of(self, holder: str) -> int:
        ...

    def transfer(self, to: str, amount: int) -> bool:
        ...

    def transfer_from(self, sender: str, to: str, amount: int) -> bool:
        ...


@runtime_checkable
class LiquidityPoolOracle(Protocol):
    """Reserve/supply view of the pool behind the liquidity token."""

    def get_reserves(self) -> Tuple[int, int, int]:
        """Return (reserve0, reserve1, last_update_time)."""
        ...

    def token0(self) -> str:
        ...

    def total_supply(self) -> int:
        ...


@runtime_checkable
class ServiceDirectory(Protocol):
    """Resolves asset references to live service handles.

    ``is_live`` is the existence predicate consulted at configuration time.
    ``token`` and ``oracle`` raise KeyError for unknown references.
    """

    def is_live(self, ref: str) -> bool:
        ...

    def token(self, ref: str) -> TransferableBalanceLedger:
        ...

    def oracle(self, ref: str) -> LiquidityPoolOracle:
        ...
