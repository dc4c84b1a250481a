from __future__ import annotations

"""Pydantic request schemas for the ledger API.

Every write body carries the signing envelope (caller, nonce, sig). The
remaining fields are the signed payload, so they must serialize exactly the
way the client signed them.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

Json = Dict[str, Any]

_ENVELOPE = {"caller", "nonce", "sig"}


class SignedCall(BaseModel):
    caller: str = Field(..., description="Caller identity (hex Ed25519 public key)")
    nonce: int = Field(default=0, description="Strictly increasing per-caller nonce")
    sig: Optional[str] = Field(default=None, description="Hex signature over the canonical call message")

    model_config = {"extra": "forbid"}

    def payload(self) -> Json:
        return {k: v for k, v in self.model_dump().items() if k not in _ENVELOPE}


class DepositRequest(SignedCall):
    amount: int = Field(..., description="Liquidity token units to stake")


class WithdrawRequest(SignedCall):
    pass


class ConfigureRequest(SignedCall):
    start_time: int
    close_time: int
    release_time: int
    percentage_yield: int
    liquidity_token_ref: str
    reward_token_ref: str


class WithdrawSurplusRequest(SignedCall):
    asset_ref: str
    amount: int


class AdminRequest(SignedCall):
    pass
