from __future__ import annotations

import os
import threading
from typing import Any, Dict, Optional, Tuple

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from lpstake.crypto.sig import canonical_call_message, verify_ed25519_signature
from lpstake.runtime.auth import CallContext
from lpstake.runtime.errors import AuthorizationError, InvalidArgument

Json = Dict[str, Any]


def _truthy(v: str | None) -> bool:
    return (v or "").strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None:
        return int(default)
    try:
        return int(str(raw).strip())
    except ValueError:
        return int(default)


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    """Fail-fast request size limiter.

    - Enforces Content-Length when present.
    - Also caps buffered body size by reading body once when needed.

    Configure:
      LPSTAKE_MAX_REQUEST_BYTES (default: 64_000)
      LPSTAKE_SIZE_LIMIT_DISABLE=1 to disable (not recommended unless handled at edge)
    """

    def __init__(
        self,
        app,
        *,
        max_bytes: Optional[int] = None,
        exempt_prefixes: Tuple[str, ...] = ("/docs", "/openapi.json", "/v1/health"),
    ):
        super().__init__(app)
        self._enabled = not _truthy(os.environ.get("LPSTAKE_SIZE_LIMIT_DISABLE"))
        if max_bytes is not None:
            self._max_bytes = int(max_bytes)
        else:
            self._max_bytes = _env_int("LPSTAKE_MAX_REQUEST_BYTES", 64_000)
        self._exempt_prefixes = exempt_prefixes

    def _too_large(self) -> JSONResponse:
        return JSONResponse(
            status_code=413,
            content={
                "ok": False,
                "error": {"code": "request_too_large", "message": "Request body too large"},
            },
        )

    async def dispatch(self, request: Request, call_next):
        if not self._enabled:
            return await call_next(request)

        path = request.url.path or ""
        for ex in self._exempt_prefixes:
            if path.startswith(ex):
                return await call_next(request)

        # First gate using Content-Length if present (cheap).
        cl = request.headers.get("content-length")
        if cl:
            try:
                if int(cl) > self._max_bytes:
                    return self._too_large()
            except ValueError:
                # Malformed header; fall back to the buffered body cap.
                pass

        # For mutating requests, also cap actual body bytes (protect against chunked).
        if (request.method or "").upper() in {"POST", "PUT", "PATCH"}:
            body = await request.body()
            if body and len(body) > self._max_bytes:
                return self._too_large()

        return await call_next(request)


class NonceRegistry:
    """Highest accepted nonce per caller, kept in memory.

    Nonces must strictly increase per caller. A restart forgets them, so a
    deployment that needs replay protection across restarts must also pin
    callers to fresh nonces at the edge.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._last: Dict[str, int] = {}

    def last(self, caller: str) -> int:
        with self._lock:
            return int(self._last.get(caller, 0))

    def advance(self, caller: str, nonce: int) -> None:
        with self._lock:
            last = int(self._last.get(caller, 0))
            if int(nonce) <= last:
                raise AuthorizationError(
                    "nonce_replay",
                    "nonce must be greater than the last accepted nonce",
                    {"caller": caller, "nonce": int(nonce), "last": last},
                )
            self._last[caller] = int(nonce)


def authenticate_call(request: Request, *, op: str, caller: str, nonce: int, sig: Optional[str], payload: Json) -> CallContext:
    """Turn a request body into a CallContext.

    With signatures required, ``sig`` must be a valid Ed25519 signature by
    ``caller`` (hex public key) over canonical_call_message(...), and the
    nonce must be fresh. Otherwise the caller is taken as claimed.
    """
    who = str(caller or "").strip()
    if not who:
        raise InvalidArgument("missing_caller", "request has no caller", {})

    cfg = request.app.state.cfg
    if not cfg.require_signatures:
        return CallContext(caller=who, verified=False)

    if not sig:
        raise AuthorizationError("missing_signature", "request signature is required", {"caller": who})

    msg = canonical_call_message(op=op, caller=who, nonce=int(nonce), payload=payload)
    if not verify_ed25519_signature(message=msg, sig=str(sig), pubkey=who):
        raise AuthorizationError("bad_signature", "request signature does not verify", {"caller": who, "op": op})

    request.app.state.nonces.advance(who, int(nonce))
    return CallContext(caller=who, verified=True)
