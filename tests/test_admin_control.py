from __future__ import annotations

import pytest

from lpstake.runtime.errors import (
    AuthorizationError,
    ConfigurationError,
    InvalidArgument,
    InvariantViolation,
    LedgerDecommissioned,
    PhaseViolation,
)
from lpstake.services.memory import InMemoryToken

CUSTODY = "LPSTAKE_CUSTODY"


def _configure(ex, ctx, caller: str = "admin", **overrides):
    kw = dict(
        start_time=100,
        close_time=200,
        release_time=300,
        percentage_yield=80,
        liquidity_token_ref="LP",
        reward_token_ref="RWD",
    )
    kw.update(overrides)
    return ex.configure(ctx(caller), **kw)


def test_configure_snapshots_reward_pool(executor, ctx) -> None:
    meta = _configure(executor, ctx)
    assert meta["applied"] == "CONFIGURE"
    assert meta["rewards_amount"] == 1000
    assert meta["config_version"] == 1

    view = executor.view()
    assert view.configuration.percentage_yield == 80
    assert view.phase == "unstarted"


def test_configure_requires_administrator(executor, ctx) -> None:
    with pytest.raises(AuthorizationError):
        _configure(executor, ctx, caller="alice")
    assert executor.view().configuration is None


@pytest.mark.parametrize(
    "overrides,code",
    [
        ({"close_time": 100}, "invalid_schedule"),
        ({"release_time": 150}, "invalid_schedule"),
        ({"percentage_yield": -1}, "invalid_yield"),
        ({"percentage_yield": "80"}, "invalid_yield"),
        ({"reward_token_ref": "LP"}, "invalid_asset_ref"),
        ({"liquidity_token_ref": ""}, "invalid_asset_ref"),
        ({"reward_token_ref": "MISSING"}, "asset_not_live"),
    ],
)
def test_configure_validation(executor, ctx, overrides, code: str) -> None:
    with pytest.raises(ConfigurationError) as e:
        _configure(executor, ctx, **overrides)
    assert e.value.code == code
    assert executor.view().configuration is None


def test_configure_rejects_retired_asset(executor, services, ctx) -> None:
    services.directory.retire("RWD")
    with pytest.raises(ConfigurationError) as e:
        _configure(executor, ctx)
    assert e.value.code == "asset_not_live"


def test_reconfigure_before_open_is_last_call_wins(executor, services, ctx) -> None:
    _configure(executor, ctx)
    services.reward.mint(CUSTODY, 500)

    meta = _configure(executor, ctx, percentage_yield=50, start_time=120)
    assert meta["config_version"] == 2
    assert meta["rewards_amount"] == 1500
    assert executor.view().configuration.start_time == 120


def test_configure_after_open_is_rejected(configured, clock, ctx) -> None:
    clock.now = 150
    with pytest.raises(PhaseViolation):
        _configure(configured, ctx)


def test_enable_early_exit_is_one_way_and_idempotent(configured, ctx) -> None:
    with pytest.raises(AuthorizationError):
        configured.enable_early_exit(ctx("alice"))

    assert configured.enable_early_exit(ctx("admin"))["deduped"] is False
    assert configured.enable_early_exit(ctx("admin"))["deduped"] is True
    assert configured.view().unstake_early_allowed is True


def test_surplus_never_touches_liquidity_custody(open_ledger, ctx) -> None:
    open_ledger.deposit(ctx("alice"), 500)
    with pytest.raises(InvariantViolation) as e:
        open_ledger.withdraw_surplus(ctx("admin"), "LP", 1)
    assert e.value.code == "liquidity_custody_protected"


def test_surplus_reward_withdrawal_keeps_allocation_covered(open_ledger, services, ctx) -> None:
    open_ledger.deposit(ctx("alice"), 500)  # allocates 80

    meta = open_ledger.withdraw_surplus(ctx("admin"), "RWD", 920)
    assert meta["tracked"] is True
    assert meta["rewards_amount"] == 80
    assert services.reward.balance_of("admin") == 920
    assert services.reward.balance_of(CUSTODY) == 80

    before = open_ledger.read_state()
    with pytest.raises(InvariantViolation) as e:
        open_ledger.withdraw_surplus(ctx("admin"), "RWD", 1)
    assert e.value.code == "insufficient_coverage"
    assert open_ledger.read_state() == before
    assert services.reward.balance_of(CUSTODY) == 80


def test_surplus_checks_tracked_pool_even_with_untracked_top_up(open_ledger, services, ctx) -> None:
    open_ledger.deposit(ctx("alice"), 500)  # allocates 80
    # Custody gains rewards the ledger never snapshotted.
    services.reward.mint(CUSTODY, 5000)

    with pytest.raises(InvariantViolation) as e:
        open_ledger.withdraw_surplus(ctx("admin"), "RWD", 921)
    assert e.value.code == "allocation_exceeds_pool"


def test_surplus_releases_unrelated_assets(configured, services, ctx) -> None:
    services.directory.register(InMemoryToken("DUST", balances={CUSTODY: 7}))

    meta = configured.withdraw_surplus(ctx("admin"), "DUST", 7)
    assert meta["tracked"] is False
    assert services.directory.get("DUST").balance_of("admin") == 7


def test_surplus_rejects_unknown_asset_and_bad_amount(configured, ctx) -> None:
    with pytest.raises(ConfigurationError) as e:
        configured.withdraw_surplus(ctx("admin"), "NOPE", 1)
    assert e.value.code == "unknown_asset"

    with pytest.raises(InvalidArgument):
        configured.withdraw_surplus(ctx("admin"), "RWD", 0)

    with pytest.raises(AuthorizationError):
        configured.withdraw_surplus(ctx("alice"), "RWD", 1)


def test_decommission_refuses_while_rewards_allocated(open_ledger, ctx) -> None:
    open_ledger.deposit(ctx("alice"), 500)
    with pytest.raises(InvariantViolation) as e:
        open_ledger.decommission(ctx("admin"))
    assert e.value.code == "rewards_outstanding"
    assert open_ledger.view().decommissioned is False


def test_decommission_sweeps_untracked_balances_and_is_terminal(configured, services, clock, ctx) -> None:
    services.pool.mint(CUSTODY, 7)

    meta = configured.decommission(ctx("admin"))
    assert meta["reward_sweep"] == 1000
    assert meta["liquidity_sweep"] == 7
    assert services.reward.balance_of("admin") == 1000
    assert services.pool.balance_of("admin") == 7

    view = configured.view()
    assert view.decommissioned is True
    assert view.to_json()["active"] is False

    clock.now = 150
    with pytest.raises(LedgerDecommissioned):
        configured.deposit(ctx("alice"), 1)
    with pytest.raises(LedgerDecommissioned):
        configured.enable_early_exit(ctx("admin"))
    with pytest.raises(ConfigurationError):
        configured.decommission(ctx("admin"))


def test_decommission_leaves_zero_yield_stake_in_custody(executor, services, clock, ctx) -> None:
    _configure(executor, ctx, percentage_yield=0)
    clock.now = 150
    executor.deposit(ctx("alice"), 500)

    meta = executor.decommission(ctx("admin"))
    assert meta["liquidity_sweep"] == 0
    assert meta["residual_staked"] == 500
    assert services.pool.balance_of(CUSTODY) == 500


def test_decommission_of_unconfigured_ledger_sweeps_nothing(executor, ctx) -> None:
    meta = executor.decommission(ctx("admin"))
    assert meta["transfers"] == []
    assert executor.view().decommissioned is True
