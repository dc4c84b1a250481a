# src/lpstake/runtime/executor_boot.py

from __future__ import annotations

from typing import Optional

from lpstake.runtime.executor import StakingExecutor
from lpstake.runtime.ledger_config import LedgerConfig, apply_ledger_config_to_env, load_ledger_config


def build_executor(cfg: Optional[LedgerConfig] = None) -> StakingExecutor:
    """
    Build a StakingExecutor from an explicit ledger config or, if omitted,
    from LPSTAKE_CONFIG_PATH (falling back to production-safe defaults).

    The resolved config is exported to LPSTAKE_* so the API layer and the
    SQLite pragmas see the same posture as the executor.
    """
    c = cfg or load_ledger_config()
    apply_ledger_config_to_env(c)
    return StakingExecutor.from_config(c)
