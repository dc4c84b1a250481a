from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from lpstake.ledger.constants import STATE_SCHEMA_VERSION
from lpstake.runtime.errors import InvariantViolation

Json = Dict[str, Any]


def _as_int(v: Any, default: int = 0) -> int:
    try:
        return int(v)
    except Exception:
        return int(default)


@dataclass(frozen=True, slots=True)
class Configuration:
    """Epoch schedule and asset handles, set once by the administrator."""

    start_time: int
    close_time: int
    release_time: int
    percentage_yield: int
    liquidity_token_ref: str
    reward_token_ref: str

    def to_json(self) -> Json:
        return {
            "start_time": int(self.start_time),
            "close_time": int(self.close_time),
            "release_time": int(self.release_time),
            "percentage_yield": int(self.percentage_yield),
            "liquidity_token_ref": str(self.liquidity_token_ref),
            "reward_token_ref": str(self.reward_token_ref),
        }

    @classmethod
    def from_json(cls, raw: Json) -> "Configuration":
        return cls(
            start_time=_as_int(raw.get("start_time")),
            close_time=_as_int(raw.get("close_time")),
            release_time=_as_int(raw.get("release_time")),
            percentage_yield=_as_int(raw.get("percentage_yield")),
            liquidity_token_ref=str(raw.get("liquidity_token_ref") or ""),
            reward_token_ref=str(raw.get("reward_token_ref") or ""),
        )


@dataclass(slots=True)
class AccountEntry:
    staked_amount: int = 0
    reward_owed: int = 0

    def is_empty(self) -> bool:
        return self.staked_amount == 0 and self.reward_owed == 0

    def to_json(self) -> Json:
        return {"staked_amount": int(self.staked_amount), "reward_owed": int(self.reward_owed)}


@dataclass
class LedgerState:
    """The whole mutable state of one staking ledger.

    Owned by exactly one StakingExecutor. Apply functions mutate it in place;
    the executor snapshots it before every call so a failed call can be
    restored wholesale.
    """

    configuration: Optional[Configuration] = None
    accounts: Dict[str, AccountEntry] = field(default_factory=dict)
    allocated_staking_rewards: int = 0
    rewards_amount: int = 0
    unstake_early_allowed: bool = False
    decommissioned: bool = False
    config_version: int = 0

    @property
    def active(self) -> bool:
        return not self.decommissioned

    def account(self, account_id: str) -> AccountEntry:
        """Return the entry for account_id, creating an empty one if needed."""
        entry = self.accounts.get(account_id)
        if entry is None:
            entry = AccountEntry()
            self.accounts[account_id] = entry
        return entry

    def prune_account(self, account_id: str) -> None:
        entry = self.accounts.get(account_id)
        if entry is not None and entry.is_empty():
            del self.accounts[account_id]

    def total_staked(self) -> int:
        return sum(int(e.staked_amount) for e in self.accounts.values())

    def total_reward_owed(self) -> int:
        return sum(int(e.reward_owed) for e in self.accounts.values())

    def check_invariants(self) -> None:
        """Raise InvariantViolation if the conservation invariants do not hold."""
        if self.allocated_staking_rewards > self.rewards_amount:
            raise InvariantViolation(
                "allocation_exceeds_pool",
                "allocated rewards exceed the funded pool",
                {"allocated": self.allocated_staking_rewards, "rewards_amount": self.rewards_amount},
            )
        owed = self.total_reward_owed()
        if owed != self.allocated_staking_rewards:
            raise InvariantViolation(
                "allocation_mismatch",
                "allocated rewards do not match the sum of owed rewards",
                {"allocated": self.allocated_staking_rewards, "sum_reward_owed": owed},
            )
        for account_id, entry in self.accounts.items():
            if entry.staked_amount < 0 or entry.reward_owed < 0:
                raise InvariantViolation("negative_balance", "account balance is negative", {"account": account_id})

    def clone(self) -> "LedgerState":
        return copy.deepcopy(self)

    def restore(self, other: "LedgerState") -> None:
        """Overwrite this state in place with a copy of other."""
        src = copy.deepcopy(other)
        self.configuration = src.configuration
        self.accounts = src.accounts
        self.allocated_staking_rewards = src.allocated_staking_rewards
        self.rewards_amount = src.rewards_amount
        self.unstake_early_allowed = src.unstake_early_allowed
        self.decommissioned = src.decommissioned
        self.config_version = src.config_version

    def to_json(self) -> Json:
        return {
            "schema_version": STATE_SCHEMA_VERSION,
            "configuration": self.configuration.to_json() if self.configuration else None,
            "accounts": {k: v.to_json() for k, v in sorted(self.accounts.items())},
            "allocated_staking_rewards": int(self.allocated_staking_rewards),
            "rewards_amount": int(self.rewards_amount),
            "unstake_early_allowed": bool(self.unstake_early_allowed),
            "decommissioned": bool(self.decommissioned),
            "config_version": int(self.config_version),
        }

    @classmethod
    def from_json(cls, raw: Json) -> "LedgerState":
        if not isinstance(raw, dict):
            raise TypeError(f"ledger state must be a dict, got {type(raw)}")
        version = _as_int(raw.get("schema_version"), STATE_SCHEMA_VERSION)
        if version != STATE_SCHEMA_VERSION:
            raise ValueError(f"unsupported ledger state schema_version: {version}")

        cfg_raw = raw.get("configuration")
        accounts_raw = raw.get("accounts") if isinstance(raw.get("accounts"), dict) else {}
        accounts = {
            str(k): AccountEntry(
                staked_amount=_as_int(v.get("staked_amount")),
                reward_owed=_as_int(v.get("reward_owed")),
            )
            for k, v in accounts_raw.items()
            if isinstance(v, dict)
        }
        st = cls(
            configuration=Configuration.from_json(cfg_raw) if isinstance(cfg_raw, dict) else None,
            accounts=accounts,
            allocated_staking_rewards=_as_int(raw.get("allocated_staking_rewards")),
            rewards_amount=_as_int(raw.get("rewards_amount")),
            unstake_early_allowed=bool(raw.get("unstake_early_allowed", False)),
            decommissioned=bool(raw.get("decommissioned", False)),
            config_version=_as_int(raw.get("config_version")),
        )
        # Fail closed on a corrupt snapshot.
        st.check_invariants()
        return st


@dataclass(frozen=True, slots=True)
class LedgerView:
    """
    Immutable read-only view used by the API and tests.
    """

    configuration: Optional[Configuration] = None
    accounts: Dict[str, AccountEntry] = field(default_factory=dict)
    allocated_staking_rewards: int = 0
    rewards_amount: int = 0
    unstake_early_allowed: bool = False
    decommissioned: bool = False
    phase: str = "unstarted"

    @classmethod
    def from_state(cls, state: LedgerState, *, phase: str) -> "LedgerView":
        return cls(
            configuration=state.configuration,
            accounts=copy.deepcopy(state.accounts),
            allocated_staking_rewards=int(state.allocated_staking_rewards),
            rewards_amount=int(state.rewards_amount),
            unstake_early_allowed=bool(state.unstake_early_allowed),
            decommissioned=bool(state.decommissioned),
            phase=str(phase),
        )

    def staked_amount(self, account_id: str) -> int:
        entry = self.accounts.get(account_id)
        return int(entry.staked_amount) if entry else 0

    def reward_owed(self, account_id: str) -> int:
        entry = self.accounts.get(account_id)
        return int(entry.reward_owed) if entry else 0

    def get_account(self, account_id: str) -> Json:
        return {
            "account": account_id,
            "staked_amount": self.staked_amount(account_id),
            "reward_owed": self.reward_owed(account_id),
        }

    def to_json(self) -> Json:
        return {
            "configuration": self.configuration.to_json() if self.configuration else None,
            "accounts": {k: v.to_json() for k, v in sorted(self.accounts.items())},
            "allocated_staking_rewards": int(self.allocated_staking_rewards),
            "rewards_amount": int(self.rewards_amount),
            "unstake_early_allowed": bool(self.unstake_early_allowed),
            "decommissioned": bool(self.decommissioned),
            "active": not bool(self.decommissioned),
            "phase": self.phase,
        }
