from __future__ import annotations

import time
from typing import Any, Dict

from fastapi import APIRouter, Request

router = APIRouter()

Json = Dict[str, Any]


@router.get("/health")
def health(request: Request) -> Json:
    """Liveness plus a small ledger summary. Never raises."""
    ex = getattr(request.app.state, "executor", None)
    out: Json = {"ok": True, "service": "lpstake", "ts_ms": int(time.time() * 1000), "executor": ex is not None}
    if ex is not None:
        out["ledger_id"] = str(getattr(ex, "ledger_id", ""))
        out["phase"] = ex.phase().value
        out["active"] = bool(ex.state.active)
    return out
