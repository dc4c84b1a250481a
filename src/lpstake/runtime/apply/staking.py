# src/lpstake/runtime/apply/staking.py
from __future__ import annotations

from typing import Any, Dict

from lpstake.ledger.rewards import allocate_reward, compute_reward, forfeit_reward, read_pool_pricing, release_reward
from lpstake.ledger.state import Configuration, LedgerState
from lpstake.runtime.apply.common import as_positive_int, deny_if_decommissioned, require_configuration
from lpstake.runtime.epoch_phase import Phase, deny_unless_phase
from lpstake.runtime.errors import PhaseViolation
from lpstake.services.interfaces import LiquidityPoolOracle

Json = Dict[str, Any]


def check_deposit(state: LedgerState, *, amount: Any, now_s: int) -> Configuration:
    """Gate a deposit before any custody transfer is issued."""
    deny_if_decommissioned(state, "deposit")
    as_positive_int(amount, name="amount")
    deny_unless_phase(state.configuration, now_s, (Phase.OPEN,), operation="deposit")
    return require_configuration(state, "deposit")


def apply_deposit(state: LedgerState, account: str, amount: int, *, oracle: LiquidityPoolOracle) -> Json:
    """Price the deposit, charge its reward against the pool and record the stake.

    Runs after the liquidity token is already in custody; any error here is
    rolled back together with that transfer by the executor.
    """
    cfg = require_configuration(state, "deposit")
    reserve, total_supply = read_pool_pricing(oracle, reward_token_ref=cfg.reward_token_ref)
    reward = compute_reward(amount, reserve, total_supply, cfg.percentage_yield)

    allocate_reward(state, account, reward)
    entry = state.account(account)
    entry.staked_amount += int(amount)

    return {
        "applied": "DEPOSIT",
        "account": account,
        "amount": int(amount),
        "reward": int(reward),
        "reserve": int(reserve),
        "total_supply": int(total_supply),
        "staked_amount": int(entry.staked_amount),
        "reward_owed": int(entry.reward_owed),
    }


def apply_withdraw_at_release(state: LedgerState, account: str, *, now_s: int) -> Json:
    """Zero the account's stake and reward; the executor pays both out."""
    deny_if_decommissioned(state, "withdraw_at_release")
    # An unconfigured ledger maps to UNSTARTED and is rejected here too.
    deny_unless_phase(state.configuration, now_s, (Phase.RELEASABLE,), operation="withdraw_at_release")

    entry = state.account(account)
    principal = int(entry.staked_amount)
    entry.staked_amount = 0
    reward = release_reward(state, account)
    state.prune_account(account)

    return {"applied": "WITHDRAW_AT_RELEASE", "account": account, "principal": principal, "reward": reward}


def apply_withdraw_early(state: LedgerState, account: str) -> Json:
    """Zero the account's stake and forfeit its reward (early-exit penalty)."""
    deny_if_decommissioned(state, "withdraw_early")
    if not state.unstake_early_allowed:
        raise PhaseViolation(
            "early_exit_disabled",
            "early withdrawal has not been enabled",
            {"operation": "withdraw_early"},
        )

    entry = state.account(account)
    principal = int(entry.staked_amount)
    entry.staked_amount = 0
    forfeited = forfeit_reward(state, account)
    state.prune_account(account)

    return {"applied": "WITHDRAW_EARLY", "account": account, "principal": principal, "forfeited": forfeited}


# Effects kept when a payout reached the account but could not be pulled back.


def keep_principal_paid(state: LedgerState, account: str, amount: int) -> None:
    entry = state.account(account)
    entry.staked_amount = max(0, int(entry.staked_amount) - int(amount))
    state.prune_account(account)


def keep_reward_paid(state: LedgerState, account: str, amount: int) -> None:
    entry = state.account(account)
    paid = min(int(amount), int(entry.reward_owed))
    entry.reward_owed -= paid
    state.allocated_staking_rewards -= paid
    state.prune_account(account)


def keep_early_exit_paid(state: LedgerState, account: str, amount: int) -> None:
    forfeit_reward(state, account)
    keep_principal_paid(state, account, amount)
