from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Request

from lpstake.api.routes_public_parts.common import _context, _executor, _ok
from lpstake.api.schemas import AdminRequest, ConfigureRequest, WithdrawSurplusRequest

router = APIRouter()

Json = Dict[str, Any]


@router.post("/admin/configure")
def admin_configure(request: Request, body: ConfigureRequest) -> Json:
    ctx = _context(request, "configure", body)
    return _ok(_executor(request).configure(ctx, **body.payload()))


@router.post("/admin/withdraw-surplus")
def admin_withdraw_surplus(request: Request, body: WithdrawSurplusRequest) -> Json:
    ctx = _context(request, "withdraw_surplus", body)
    return _ok(_executor(request).withdraw_surplus(ctx, body.asset_ref, body.amount))


@router.post("/admin/enable-early-exit")
def admin_enable_early_exit(request: Request, body: AdminRequest) -> Json:
    ctx = _context(request, "enable_early_exit", body)
    return _ok(_executor(request).enable_early_exit(ctx))


@router.post("/admin/decommission")
def admin_decommission(request: Request, body: AdminRequest) -> Json:
    ctx = _context(request, "decommission", body)
    return _ok(_executor(request).decommission(ctx))
