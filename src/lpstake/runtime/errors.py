from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass
class LedgerError(Exception):
    """Canonical error type for staking ledger entry points.

    Every subclass is terminal to the current call: the executor restores the
    pre-call state before the error reaches the caller.
    """

    code: str
    reason: str
    details: Optional[Dict[str, Any]] = None

    kind = "ledger_error"

    def __str__(self) -> str:  # pragma: no cover
        if self.details is None:
            return f"{self.code}:{self.reason}"
        return f"{self.code}:{self.reason}:{self.details}"

    def to_json(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "code": self.code,
            "message": self.reason,
            "details": dict(self.details or {}),
        }


class PhaseViolation(LedgerError):
    kind = "phase_violation"


class InvariantViolation(LedgerError):
    kind = "invariant_violation"


class ExternalCallFailure(LedgerError):
    kind = "external_call_failure"


class ConfigurationError(LedgerError):
    kind = "configuration_error"


class LedgerDecommissioned(ConfigurationError):
    kind = "ledger_decommissioned"


class AuthorizationError(LedgerError):
    kind = "authorization_error"


class ReentrancyRejected(LedgerError):
    kind = "reentrancy_rejected"


class InvalidArgument(LedgerError):
    kind = "invalid_argument"


__all__ = [
    "LedgerError",
    "PhaseViolation",
    "InvariantViolation",
    "ExternalCallFailure",
    "ConfigurationError",
    "LedgerDecommissioned",
    "AuthorizationError",
    "ReentrancyRejected",
    "InvalidArgument",
]
