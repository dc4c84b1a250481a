from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from lpstake.runtime.errors import (
    AuthorizationError,
    ConfigurationError,
    ExternalCallFailure,
    InvalidArgument,
    InvariantViolation,
    LedgerError,
    PhaseViolation,
    ReentrancyRejected,
)


@dataclass(frozen=True, slots=True)
class ApiError(Exception):
    status_code: int
    code: str
    message: str
    details: Dict[str, Any]

    @staticmethod
    def bad_request(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(400, code, message, details or {})

    @staticmethod
    def forbidden(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(403, code, message, details or {})

    @staticmethod
    def not_found(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(404, code, message, details or {})

    @staticmethod
    def internal(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(500, code, message, details or {})

    def to_json(self) -> Dict[str, Any]:
        return {"ok": False, "error": {"code": self.code, "message": self.message, "details": dict(self.details)}}


# Checked in order; LedgerDecommissioned falls under ConfigurationError.
_LEDGER_STATUS = (
    (PhaseViolation, 409),
    (InvariantViolation, 409),
    (ExternalCallFailure, 502),
    (ConfigurationError, 400),
    (AuthorizationError, 403),
    (ReentrancyRejected, 423),
    (InvalidArgument, 400),
)


def ledger_error_status(err: LedgerError) -> int:
    for cls, status in _LEDGER_STATUS:
        if isinstance(err, cls):
            return status
    return 500


def ledger_error_body(err: LedgerError) -> Dict[str, Any]:
    return {
        "ok": False,
        "error": {
            "kind": err.kind,
            "code": err.code,
            "message": err.reason,
            "details": dict(err.details or {}),
        },
    }
