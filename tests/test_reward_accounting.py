from __future__ import annotations

import pytest

from lpstake.ledger.rewards import (
    allocate_reward,
    compute_reward,
    forfeit_reward,
    read_pool_pricing,
    release_reward,
)
from lpstake.ledger.state import LedgerState
from lpstake.runtime.errors import ConfigurationError, ExternalCallFailure, InvariantViolation
from lpstake.services.memory import InMemoryPool


def test_reward_scenario_matches_reference_numbers() -> None:
    # floor(floor(500*2000/10000)*80/100) = floor(100*0.8) = 80
    assert compute_reward(500, 2000, 10000, 80) == 80


def test_reward_truncates_in_canonical_order() -> None:
    # (7*3)//10 = 2, then 2*50//100 = 1.
    # Rearranged as (7*3*50)//(10*100) it would also be 1, but
    # (7*50//100)*3//10 would be 0: the order matters.
    assert compute_reward(7, 3, 10, 50) == 1

    # Inner truncation to zero kills the reward entirely.
    assert compute_reward(1, 9, 10, 100) == 0
    assert compute_reward(10, 1, 3, 99) == 2


def test_reward_rejects_empty_pool() -> None:
    with pytest.raises(ExternalCallFailure) as e:
        compute_reward(1, 1, 0, 10)
    assert e.value.code == "bad_oracle_data"


def test_read_pool_pricing_requires_reward_token_as_token0() -> None:
    pool = InMemoryPool("LP", token0="OTHER", reserve0=10, balances={"x": 5})
    with pytest.raises(ConfigurationError) as e:
        read_pool_pricing(pool, reward_token_ref="RWD")
    assert e.value.code == "reserve_asset_mismatch"


def test_read_pool_pricing_returns_reserve0_and_supply() -> None:
    pool = InMemoryPool("LP", token0="RWD", reserve0=2000, reserve1=1, balances={"a": 4000, "b": 6000})
    assert read_pool_pricing(pool, reward_token_ref="RWD") == (2000, 10000)


def test_read_pool_pricing_wraps_oracle_exceptions() -> None:
    class _Broken:
        def token0(self) -> str:
            return "RWD"

        def get_reserves(self):
            raise RuntimeError("rpc down")

        def total_supply(self) -> int:
            return 1

    with pytest.raises(ExternalCallFailure) as e:
        read_pool_pricing(_Broken(), reward_token_ref="RWD")
    assert e.value.code == "oracle_call_failed"


def test_allocation_over_pool_leaves_state_untouched() -> None:
    st = LedgerState(rewards_amount=100)
    allocate_reward(st, "alice", 60)

    with pytest.raises(InvariantViolation) as e:
        allocate_reward(st, "bob", 41)
    assert e.value.code == "insufficient_reward_pool"

    assert st.allocated_staking_rewards == 60
    assert "bob" not in st.accounts
    st.check_invariants()


def test_release_and_forfeit_both_decrement_allocation() -> None:
    st = LedgerState(rewards_amount=100)
    allocate_reward(st, "alice", 30)
    allocate_reward(st, "bob", 20)

    assert release_reward(st, "alice") == 30
    assert forfeit_reward(st, "bob") == 20
    assert st.allocated_staking_rewards == 0
    assert release_reward(st, "nobody") == 0
    st.check_invariants()
