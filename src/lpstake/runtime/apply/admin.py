# src/lpstake/runtime/apply/admin.py
from __future__ import annotations

from typing import Any, Callable, Dict

from lpstake.ledger.state import Configuration, LedgerState
from lpstake.runtime.apply.common import as_positive_int, deny_if_decommissioned
from lpstake.runtime.auth import CallContext, require_admin
from lpstake.runtime.epoch_phase import Phase, deny_unless_phase, validate_schedule
from lpstake.runtime.errors import ConfigurationError, InvariantViolation

Json = Dict[str, Any]


def _as_ref(v: Any, *, name: str) -> str:
    s = str(v).strip() if isinstance(v, str) else ""
    if not s:
        raise ConfigurationError("invalid_asset_ref", f"{name} must be a non-empty string", {name: repr(v)})
    return s


def apply_configure(
    state: LedgerState,
    ctx: CallContext,
    *,
    administrator: str,
    now_s: int,
    start_time: int,
    close_time: int,
    release_time: int,
    percentage_yield: int,
    liquidity_token_ref: str,
    reward_token_ref: str,
    is_live: Callable[[str], bool],
    reward_balance: Callable[[], int],
) -> Json:
    """Install (or overwrite) the configuration while the ledger is unstarted.

    The reward pool is snapshotted from the custody balance at this moment;
    later top-ups are not counted unless configure runs again.
    """
    deny_if_decommissioned(state, "configure")
    require_admin(ctx, administrator)
    deny_unless_phase(state.configuration, now_s, (Phase.UNSTARTED,), operation="configure")

    validate_schedule(start_time, close_time, release_time)
    if isinstance(percentage_yield, bool) or not isinstance(percentage_yield, int) or percentage_yield < 0:
        raise ConfigurationError(
            "invalid_yield",
            "percentage_yield must be a non-negative int",
            {"percentage_yield": repr(percentage_yield)},
        )

    liquidity = _as_ref(liquidity_token_ref, name="liquidity_token_ref")
    reward = _as_ref(reward_token_ref, name="reward_token_ref")
    if liquidity == reward:
        raise ConfigurationError("invalid_asset_ref", "liquidity and reward tokens must differ", {"ref": liquidity})

    for name, ref in (("liquidity_token_ref", liquidity), ("reward_token_ref", reward)):
        if not is_live(ref):
            raise ConfigurationError("asset_not_live", f"{name} is not a live service", {name: ref})

    state.configuration = Configuration(
        start_time=int(start_time),
        close_time=int(close_time),
        release_time=int(release_time),
        percentage_yield=int(percentage_yield),
        liquidity_token_ref=liquidity,
        reward_token_ref=reward,
    )
    state.rewards_amount = int(reward_balance())
    state.config_version += 1

    return {
        "applied": "CONFIGURE",
        "configuration": state.configuration.to_json(),
        "rewards_amount": int(state.rewards_amount),
        "config_version": int(state.config_version),
    }


def apply_withdraw_surplus(
    state: LedgerState,
    ctx: CallContext,
    *,
    administrator: str,
    asset_ref: str,
    amount: Any,
    custody_balance: Callable[[], int],
) -> Json:
    """Account for an administrator withdrawal of custody assets.

    Liquidity custody is never withdrawable. Reward custody is withdrawable
    only down to the allocated total, and reduces the tracked pool. Anything
    else is an unrelated asset and is released without restriction.
    """
    deny_if_decommissioned(state, "withdraw_surplus")
    require_admin(ctx, administrator)
    amt = as_positive_int(amount, name="amount")
    ref = _as_ref(asset_ref, name="asset_ref")

    cfg = state.configuration
    tracked = False
    if cfg is not None and ref == cfg.liquidity_token_ref:
        raise InvariantViolation(
            "liquidity_custody_protected",
            "staked liquidity cannot be withdrawn by the administrator",
            {"asset_ref": ref},
        )

    if cfg is not None and ref == cfg.reward_token_ref:
        balance = int(custody_balance())
        allocated = int(state.allocated_staking_rewards)
        if balance - amt < allocated:
            raise InvariantViolation(
                "insufficient_coverage",
                "withdrawal would leave allocated rewards uncovered",
                {"balance": balance, "amount": amt, "allocated": allocated},
            )
        remaining_pool = int(state.rewards_amount) - amt
        if remaining_pool < allocated:
            raise InvariantViolation(
                "allocation_exceeds_pool",
                "withdrawal would shrink the tracked pool below allocated rewards",
                {"rewards_amount": state.rewards_amount, "amount": amt, "allocated": allocated},
            )
        state.rewards_amount = remaining_pool
        tracked = True

    return {
        "applied": "WITHDRAW_SURPLUS",
        "asset_ref": ref,
        "amount": amt,
        "tracked": tracked,
        "rewards_amount": int(state.rewards_amount),
    }


def apply_enable_early_exit(state: LedgerState, ctx: CallContext, *, administrator: str) -> Json:
    deny_if_decommissioned(state, "enable_early_exit")
    require_admin(ctx, administrator)
    already = bool(state.unstake_early_allowed)
    state.unstake_early_allowed = True
    return {"applied": "ENABLE_EARLY_EXIT", "deduped": already}


def apply_decommission(
    state: LedgerState,
    ctx: CallContext,
    *,
    administrator: str,
    reward_balance: Callable[[], int],
    liquidity_balance: Callable[[], int],
) -> Json:
    """Move the ledger to its terminal state and size the residual sweep.

    Only untracked value is swept: the whole reward custody (nothing is
    allocated any more) and liquidity custody above the total still staked.
    """
    deny_if_decommissioned(state, "decommission")
    require_admin(ctx, administrator)

    if state.allocated_staking_rewards != 0:
        raise InvariantViolation(
            "rewards_outstanding",
            "cannot decommission while rewards are allocated",
            {"allocated": int(state.allocated_staking_rewards)},
        )

    reward_sweep = 0
    liquidity_sweep = 0
    if state.configuration is not None:
        reward_sweep = max(0, int(reward_balance()))
        liquidity_sweep = max(0, int(liquidity_balance()) - state.total_staked())

    state.decommissioned = True
    return {
        "applied": "DECOMMISSION",
        "reward_sweep": reward_sweep,
        "liquidity_sweep": liquidity_sweep,
        "residual_staked": state.total_staked(),
    }


def keep_surplus_paid(state: LedgerState, amount: int) -> None:
    """Shrink the tracked pool for a reward-token surplus that left custody."""
    state.rewards_amount -= int(amount)


def keep_decommissioned(state: LedgerState) -> None:
    state.decommissioned = True
