from __future__ import annotations

import sys
from pathlib import Path
from types import SimpleNamespace

import pytest

# Ensure local "src/" takes precedence over any globally-installed "lpstake" package.
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

src_str = str(SRC)
if src_str not in sys.path:
    sys.path.insert(0, src_str)

from lpstake.runtime.auth import CallContext  # noqa: E402
from lpstake.runtime.executor import StakingExecutor  # noqa: E402
from lpstake.services.memory import InMemoryPool, InMemoryServiceDirectory, InMemoryToken  # noqa: E402

CUSTODY = "LPSTAKE_CUSTODY"

# Schedule shared by every configured ledger in the suite.
START, CLOSE, RELEASE = 100, 200, 300


class FakeClock:
    def __init__(self, now: int = 50) -> None:
        self.now = int(now)

    def __call__(self) -> int:
        return self.now


def make_services(*, admin: str = "admin", alice: str = "alice", bob: str = "bob") -> SimpleNamespace:
    """Reward token with 1000 units in custody and an LP pool of supply 10000.

    The pool prices LP units against reserve0=2000 of the reward token. Each
    user approves custody for exactly the LP they hold, so a stake that has
    been deposited in full leaves no allowance behind.
    """
    directory = InMemoryServiceDirectory(custody_id=CUSTODY)
    reward = directory.register(InMemoryToken("RWD", balances={CUSTODY: 1000}))
    pool = directory.register(
        InMemoryPool(
            "LP",
            token0="RWD",
            reserve0=2000,
            reserve1=5000,
            balances={alice: 600, bob: 400, "whale": 9000},
        )
    )
    for who in (alice, bob):
        pool.approve(who, CUSTODY, pool.balance_of(who))
    return SimpleNamespace(directory=directory, reward=reward, pool=pool, admin=admin, alice=alice, bob=bob)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def services() -> SimpleNamespace:
    return make_services()


@pytest.fixture
def ctx():
    def _ctx(caller: str) -> CallContext:
        return CallContext(caller=caller)

    return _ctx


@pytest.fixture
def executor(services: SimpleNamespace, clock: FakeClock) -> StakingExecutor:
    return StakingExecutor(
        directory=services.directory,
        administrator=services.admin,
        custody_id=CUSTODY,
        clock=clock,
        lock_timeout_s=1.0,
    )


def configure_default(ex: StakingExecutor, *, percentage_yield: int = 80) -> dict:
    return ex.configure(
        CallContext(caller="admin"),
        start_time=START,
        close_time=CLOSE,
        release_time=RELEASE,
        percentage_yield=percentage_yield,
        liquidity_token_ref="LP",
        reward_token_ref="RWD",
    )


@pytest.fixture
def configured(executor: StakingExecutor) -> StakingExecutor:
    configure_default(executor)
    return executor


@pytest.fixture
def open_ledger(configured: StakingExecutor, clock: FakeClock) -> StakingExecutor:
    clock.now = START + 10
    return configured


@pytest.fixture
def configure_ledger():
    return configure_default


@pytest.fixture
def service_factory():
    return make_services
