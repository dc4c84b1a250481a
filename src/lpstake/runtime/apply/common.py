from __future__ import annotations

from typing import Any

from lpstake.ledger.state import Configuration, LedgerState
from lpstake.runtime.errors import ConfigurationError, InvalidArgument, LedgerDecommissioned


def as_positive_int(v: Any, *, name: str) -> int:
    if isinstance(v, bool) or not isinstance(v, int):
        raise InvalidArgument("invalid_amount", f"{name} must be an int", {name: repr(v)})
    if v <= 0:
        raise InvalidArgument("invalid_amount", f"{name} must be positive", {name: v})
    return int(v)


def deny_if_decommissioned(state: LedgerState, operation: str) -> None:
    if state.decommissioned:
        raise LedgerDecommissioned(
            "ledger_decommissioned",
            "ledger has been decommissioned",
            {"operation": operation},
        )


def require_configuration(state: LedgerState, operation: str) -> Configuration:
    cfg = state.configuration
    if cfg is None:
        raise ConfigurationError("not_configured", "ledger has not been configured", {"operation": operation})
    return cfg
