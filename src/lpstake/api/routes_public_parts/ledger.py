from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Request

from lpstake.api.routes_public_parts.common import _executor

router = APIRouter()

Json = Dict[str, Any]


@router.get("/ledger")
def ledger_view(request: Request) -> Json:
    view = _executor(request).view()
    return {"ok": True, "ledger": view.to_json()}


@router.get("/ledger/accounts/{account}")
def ledger_account(request: Request, account: str) -> Json:
    """Per-account balances. Unknown accounts read as zero."""
    view = _executor(request).view()
    return {"ok": True, **view.get_account(account)}
