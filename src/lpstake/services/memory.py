from __future__ import annotations

from typing import Any, Callable, Dict, Optional, Set, Tuple

Json = Dict[str, Any]

TransferHook = Callable[[str, str, int], None]


class InMemoryToken:
    """
    Minimal in-process fungible token used for unit tests and dev nodes.

    - Integer balances, no decimals
    - ERC20-style allowances (owner -> spender -> amount)
    - Failures are reported as False, never raised
    - Optional ``on_transfer`` hook runs before every valid move, which
      lets tests model tokens that call back into their recipients
    """

    def __init__(self, ref: str, *, balances: Optional[Dict[str, int]] = None) -> None:
        self.ref = str(ref)
        self._balances: Dict[str, int] = {}
        self._allowances: Dict[Tuple[str, str], int] = {}
        self.frozen = False
        self.on_transfer: Optional[TransferHook] = None
        for holder, amount in (balances or {}).items():
            self.mint(holder, int(amount))

    def mint(self, holder: str, amount: int) -> None:
        if int(amount) < 0:
            raise ValueError("mint amount must be >= 0")
        self._balances[holder] = self._balances.get(holder, 0) + int(amount)

    def approve(self, owner: str, spender: str, amount: int) -> None:
        self._allowances[(owner, spender)] = max(0, int(amount))

    def allowance(self, owner: str, spender: str) -> int:
        return int(self._allowances.get((owner, spender), 0))

    def balance_of(self, holder: str) -> int:
        return int(self._balances.get(holder, 0))

    def total_supply(self) -> int:
        return sum(self._balances.values())

    def _move(self, sender: str, to: str, amount: int) -> bool:
        amt = int(amount)
        if self.frozen or amt < 0:
            return False
        if self._balances.get(sender, 0) < amt:
            return False
        # Hook runs before balances move, so a hook that raises leaves no trace.
        if self.on_transfer is not None:
            self.on_transfer(sender, to, amt)
        self._balances[sender] = self._balances.get(sender, 0) - amt
        self._balances[to] = self._balances.get(to, 0) + amt
        return True

    def transfer_as(self, holder: str, to: str, amount: int) -> bool:
        return self._move(holder, to, amount)

    def transfer_from_as(self, spender: str, sender: str, to: str, amount: int) -> bool:
        amt = int(amount)
        allowed = self.allowance(sender, spender)
        if allowed < amt:
            return False
        if not self._move(sender, to, amt):
            return False
        self._allowances[(sender, spender)] = allowed - amt
        return True

    def bind(self, holder: str) -> "BoundToken":
        return BoundToken(self, holder)


class BoundToken:
    """A token handle that acts as ``holder`` (the TransferableBalanceLedger surface)."""

    def __init__(self, token: InMemoryToken, holder: str) -> None:
        self._token = token
        self.holder = str(holder)

    @property
    def ref(self) -> str:
        return self._token.ref

    def balance_of(self, holder: str) -> int:
        return self._token.balance_of(holder)

    def transfer(self, to: str, amount: int) -> bool:
        return self._token.transfer_as(self.holder, to, amount)

    def transfer_from(self, sender: str, to: str, amount: int) -> bool:
        return self._token.transfer_from_as(self.holder, sender, to, amount)


class InMemoryPool(InMemoryToken):
    """A liquidity-pool token that is also its own reserve oracle.

    Total supply is the sum of LP balances, so minting LP units dilutes the
    per-unit reserve exactly the way a constant-product pair does.
    """

    def __init__(
        self,
        ref: str,
        *,
        token0: str,
        reserve0: int = 0,
        reserve1: int = 0,
        balances: Optional[Dict[str, int]] = None,
    ) -> None:
        super().__init__(ref, balances=balances)
        self._token0 = str(token0)
        self._reserve0 = int(reserve0)
        self._reserve1 = int(reserve1)
        self._last_update = 0

    def set_reserves(self, reserve0: int, reserve1: int, *, at: int = 0) -> None:
        self._reserve0 = int(reserve0)
        self._reserve1 = int(reserve1)
        self._last_update = int(at)

    def get_reserves(self) -> Tuple[int, int, int]:
        return self._reserve0, self._reserve1, self._last_update

    def token0(self) -> str:
        return self._token0


class InMemoryServiceDirectory:
    """Registry of in-process services, resolving refs to custody-bound handles."""

    def __init__(self, *, custody_id: str) -> None:
        self.custody_id = str(custody_id)
        self._tokens: Dict[str, InMemoryToken] = {}
        self._retired: Set[str] = set()

    def register(self, token: InMemoryToken) -> InMemoryToken:
        self._tokens[token.ref] = token
        self._retired.discard(token.ref)
        return token

    def retire(self, ref: str) -> None:
        """Mark a registered service as no longer live (it still resolves)."""
        self._retired.add(str(ref))

    def get(self, ref: str) -> InMemoryToken:
        return self._tokens[str(ref)]

    def is_live(self, ref: str) -> bool:
        r = str(ref or "")
        return r in self._tokens and r not in self._retired

    def token(self, ref: str) -> BoundToken:
        return self._tokens[str(ref)].bind(self.custody_id)

    def oracle(self, ref: str) -> InMemoryPool:
        tok = self._tokens[str(ref)]
        if not isinstance(tok, InMemoryPool):
            raise KeyError(f"{ref} is not a liquidity pool")
        return tok

    @classmethod
    def from_config(cls, services: Json, *, custody_id: str) -> "InMemoryServiceDirectory":
        """Build a directory from the ``services`` block of a ledger config.

        Expected shape:
          {"tokens": {"<ref>": {"balances": {...}}},
           "pools":  {"<ref>": {"token0": "<ref>", "reserve0": 0, "reserve1": 0, "balances": {...}}}}
        """
        directory = cls(custody_id=custody_id)
        tokens = services.get("tokens") if isinstance(services.get("tokens"), dict) else {}
        pools = services.get("pools") if isinstance(services.get("pools"), dict) else {}

        for ref, spec in tokens.items():
            spec = spec if isinstance(spec, dict) else {}
            directory.register(InMemoryToken(str(ref), balances=_int_map(spec.get("balances"))))

        for ref, spec in pools.items():
            spec = spec if isinstance(spec, dict) else {}
            token0 = str(spec.get("token0") or "").strip()
            if not token0:
                raise ValueError(f"pool {ref!r} must declare token0")
            directory.register(
                InMemoryPool(
                    str(ref),
                    token0=token0,
                    reserve0=int(spec.get("reserve0") or 0),
                    reserve1=int(spec.get("reserve1") or 0),
                    balances=_int_map(spec.get("balances")),
                )
            )
        return directory


def _int_map(raw: Any) -> Dict[str, int]:
    if not isinstance(raw, dict):
        return {}
    return {str(k): int(v) for k, v in raw.items()}
