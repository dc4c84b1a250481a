from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Request

from lpstake.api.routes_public_parts.common import _context, _executor, _ok
from lpstake.api.schemas import DepositRequest, WithdrawRequest

router = APIRouter()

Json = Dict[str, Any]


@router.post("/staking/deposit")
def staking_deposit(request: Request, body: DepositRequest) -> Json:
    ctx = _context(request, "deposit", body)
    return _ok(_executor(request).deposit(ctx, body.amount))


@router.post("/staking/withdraw")
def staking_withdraw(request: Request, body: WithdrawRequest) -> Json:
    ctx = _context(request, "withdraw_at_release", body)
    return _ok(_executor(request).withdraw_at_release(ctx))


@router.post("/staking/withdraw-early")
def staking_withdraw_early(request: Request, body: WithdrawRequest) -> Json:
    ctx = _context(request, "withdraw_early", body)
    return _ok(_executor(request).withdraw_early(ctx))
