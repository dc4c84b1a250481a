from __future__ import annotations

from dataclasses import dataclass

from lpstake.runtime.errors import AuthorizationError, InvalidArgument


@dataclass(frozen=True, slots=True)
class CallContext:
    """Who is calling. ``verified`` is set once a request signature was checked."""

    caller: str
    verified: bool = False


def require_caller(ctx: CallContext) -> str:
    caller = str(getattr(ctx, "caller", "") or "").strip()
    if not caller:
        raise InvalidArgument("missing_caller", "call context has no caller identity", {})
    return caller


def require_admin(ctx: CallContext, administrator: str) -> str:
    """Return the caller if it is the administrator, else raise AuthorizationError."""
    caller = require_caller(ctx)
    admin = str(administrator or "").strip()
    if not admin or caller != admin:
        raise AuthorizationError("not_administrator", "operation requires the administrator", {"caller": caller})
    return caller
