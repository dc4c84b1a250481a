from __future__ import annotations

from typing import Any, Dict

from fastapi import Request

from lpstake.api.errors import ApiError
from lpstake.api.schemas import SignedCall
from lpstake.api.security import authenticate_call
from lpstake.runtime.auth import CallContext

Json = Dict[str, Any]


def _executor(request: Request):
    ex = getattr(request.app.state, "executor", None)
    if ex is None:
        raise ApiError.internal("not_ready", "executor not attached to app.state", {})
    return ex


def _context(request: Request, op: str, body: SignedCall) -> CallContext:
    return authenticate_call(
        request,
        op=op,
        caller=body.caller,
        nonce=body.nonce,
        sig=body.sig,
        payload=body.payload(),
    )


def _ok(meta: Json) -> Json:
    return {"ok": True, **meta}
