# src/lpstake/ledger/rewards.py
from __future__ import annotations

"""Reward accountant.

A deposit of ``amount`` liquidity units earns a fixed reward, priced from the
pool's reward-asset reserve at deposit time:

    reward = (((amount * reserve) // total_supply) * percentage_yield) // 100

The division order is part of the contract with depositors: it decides where
truncation happens and must not be algebraically rearranged.

Every allocation is charged against the funded pool (``rewards_amount``) and
must keep ``allocated_staking_rewards <= rewards_amount``.
"""

from typing import Any, Tuple

from lpstake.ledger.constants import PERCENT_DENOMINATOR
from lpstake.ledger.state import LedgerState
from lpstake.runtime.errors import ConfigurationError, ExternalCallFailure, InvariantViolation
from lpstake.services.interfaces import LiquidityPoolOracle


def compute_reward(amount: int, reserve: int, total_supply: int, percentage_yield: int) -> int:
    """Return the reward for a deposit, truncating in the canonical order."""
    if int(total_supply) <= 0:
        raise ExternalCallFailure("bad_oracle_data", "pool total supply must be positive", {"total_supply": total_supply})
    priced = (int(amount) * int(reserve)) // int(total_supply)
    return (priced * int(percentage_yield)) // PERCENT_DENOMINATOR


def _oracle_call(name: str, fn: Any) -> Any:
    try:
        return fn()
    except Exception as e:
        raise ExternalCallFailure("oracle_call_failed", f"oracle {name}() raised", {"error": str(e)}) from e


def read_pool_pricing(oracle: LiquidityPoolOracle, *, reward_token_ref: str) -> Tuple[int, int]:
    """Query the oracle and return (reserve, total_supply) for the reward asset.

    The pool's token0 must be the reward token, otherwise reserve0 would price
    deposits in the wrong asset.
    """
    token0 = str(_oracle_call("token0", oracle.token0) or "")
    if token0 != str(reward_token_ref):
        raise ConfigurationError(
            "reserve_asset_mismatch",
            "pool reserve asset is not the reward token",
            {"token0": token0, "reward_token_ref": reward_token_ref},
        )

    reserves = _oracle_call("get_reserves", oracle.get_reserves)
    total_supply = _oracle_call("total_supply", oracle.total_supply)
    try:
        reserve0 = int(reserves[0])
        total = int(total_supply)
    except (TypeError, ValueError, IndexError) as e:
        raise ExternalCallFailure("bad_oracle_data", "malformed oracle response", {"error": str(e)}) from e

    if reserve0 < 0 or total <= 0:
        raise ExternalCallFailure(
            "bad_oracle_data",
            "oracle reported a negative reserve or non-positive supply",
            {"reserve0": reserve0, "total_supply": total},
        )
    return reserve0, total


def allocate_reward(state: LedgerState, account_id: str, reward: int) -> int:
    """Charge reward to account_id against the funded pool.

    Raises InvariantViolation, leaving state untouched, if the pool cannot
    cover the new total.
    """
    r = int(reward)
    if r < 0:
        raise InvariantViolation("negative_reward", "computed reward is negative", {"reward": r})

    entry = state.account(account_id)
    entry.reward_owed += r
    state.allocated_staking_rewards += r

    if state.allocated_staking_rewards > state.rewards_amount:
        entry.reward_owed -= r
        state.allocated_staking_rewards -= r
        state.prune_account(account_id)
        raise InvariantViolation(
            "insufficient_reward_pool",
            "reward would exceed the funded pool",
            {
                "reward": r,
                "allocated": state.allocated_staking_rewards,
                "rewards_amount": state.rewards_amount,
            },
        )
    return r


def _settle(state: LedgerState, account_id: str) -> int:
    entry = state.accounts.get(account_id)
    if entry is None:
        return 0
    owed = int(entry.reward_owed)
    entry.reward_owed = 0
    state.allocated_staking_rewards -= owed
    return owed


def release_reward(state: LedgerState, account_id: str) -> int:
    """Zero the account's reward and return the amount to pay out."""
    return _settle(state, account_id)


def forfeit_reward(state: LedgerState, account_id: str) -> int:
    """Zero the account's reward without payout (early-exit penalty)."""
    return _settle(state, account_id)


__all__ = [
    "compute_reward",
    "read_pool_pricing",
    "allocate_reward",
    "release_reward",
    "forfeit_reward",
]
