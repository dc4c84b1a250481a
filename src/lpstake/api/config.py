from __future__ import annotations

import os
from dataclasses import dataclass


def _is_truthy(v: str | None, default: bool) -> bool:
    if v is None or not v.strip():
        return default
    return v.strip().lower() in {"1", "true", "yes", "y", "on"}


@dataclass(frozen=True)
class ApiConfig:
    mode: str  # "dev" | "testnet" | "prod"
    require_signatures: bool


def load_api_config() -> ApiConfig:
    """Read the API posture from LPSTAKE_* (exported by apply_ledger_config_to_env).

    Signatures stay required in prod even if the env says otherwise.
    """
    mode = (os.getenv("LPSTAKE_MODE") or "prod").strip().lower()
    require = _is_truthy(os.getenv("LPSTAKE_REQUIRE_SIGNATURES"), True)
    if mode == "prod":
        require = True
    return ApiConfig(mode=mode, require_signatures=require)
