# src/lpstake/ledger/constants.py
from __future__ import annotations

"""Staking ledger constants.

Amounts are integer base units of the respective token. Timestamps are unix
seconds.
"""

# Yield is expressed in whole percent; the reward formula divides by this last.
PERCENT_DENOMINATOR: int = 100

# Snapshot schema version written by LedgerState.to_json().
STATE_SCHEMA_VERSION: int = 1

# Default identities used by dev deployments when no config file is given.
DEFAULT_LEDGER_ID: str = "lpstake-dev"
DEFAULT_CUSTODY_ID: str = "LPSTAKE_CUSTODY"
