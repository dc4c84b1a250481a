# src/lpstake/runtime/ledger_config.py
from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from lpstake.ledger.constants import DEFAULT_CUSTODY_ID, DEFAULT_LEDGER_ID

Json = Dict[str, Any]


def _as_int(v: Any, default: int) -> int:
    try:
        return int(v)
    except Exception:
        return int(default)


def _as_str(v: Any, default: str) -> str:
    if v is None:
        return str(default)
    s = str(v)
    return s if s.strip() else str(default)


def _as_bool(v: Any, default: bool) -> bool:
    if v is None:
        return bool(default)
    if isinstance(v, bool):
        return v
    s = str(v).strip().lower()
    if s in {"1", "true", "yes", "y", "on"}:
        return True
    if s in {"0", "false", "no", "n", "off"}:
        return False
    return bool(default)


@dataclass(frozen=True)
class LedgerConfig:
    ledger_id: str
    custody_id: str
    administrator: str
    mode: str  # "dev" | "testnet" | "prod"

    # Empty means the ledger state lives in memory only.
    db_path: str

    api_host: str
    api_port: int

    require_signatures: bool
    lock_timeout_ms: int

    log_level: str

    # In-process asset bootstrap for dev nodes (see InMemoryServiceDirectory.from_config).
    services: Json = field(default_factory=dict)


_ALLOWED_MODES = {"dev", "testnet", "prod"}


def _is_pubkey_hex(s: str) -> bool:
    try:
        return len(bytes.fromhex(s)) == 32
    except ValueError:
        return False


def validate_ledger_config(cfg: LedgerConfig) -> None:
    """Fail-fast validation for operator config.

    Prevent silent misconfiguration that could leave a ledger without an
    administrator or with request signing silently disabled in production.
    """

    for name, v in (("ledger_id", cfg.ledger_id), ("custody_id", cfg.custody_id)):
        if not isinstance(v, str) or not v.strip():
            raise ValueError(f"{name} must be a non-empty string")

    if not isinstance(cfg.administrator, str) or not cfg.administrator.strip():
        raise ValueError("administrator must be a non-empty string")

    if cfg.administrator.strip() == cfg.custody_id.strip():
        raise ValueError("administrator must differ from custody_id")

    mode = str(cfg.mode or "").strip().lower()
    if mode not in _ALLOWED_MODES:
        raise ValueError(f"mode must be one of {_ALLOWED_MODES}; got: {cfg.mode!r}")

    if mode == "prod" and not cfg.require_signatures:
        raise ValueError("require_signatures cannot be disabled in prod mode")

    # Signed callers are hex Ed25519 keys; any other administrator could never authenticate.
    if mode == "prod" and not _is_pubkey_hex(cfg.administrator.strip()):
        raise ValueError("administrator must be a 32-byte hex Ed25519 public key in prod mode")

    if int(cfg.api_port) <= 0 or int(cfg.api_port) > 65535:
        raise ValueError(f"api_port must be 1..65535; got: {cfg.api_port}")

    if int(cfg.lock_timeout_ms) < 0:
        raise ValueError(f"lock_timeout_ms must be >= 0; got: {cfg.lock_timeout_ms}")

    if not isinstance(cfg.services, dict):
        raise ValueError("services must be a mapping")


def default_ledger_config() -> LedgerConfig:
    return LedgerConfig(
        ledger_id=DEFAULT_LEDGER_ID,
        custody_id=DEFAULT_CUSTODY_ID,
        # No usable default: prod requires the administrator's public key.
        administrator=os.environ.get("LPSTAKE_ADMINISTRATOR", "").strip(),
        # Production-safe defaults: without an explicit config file the node
        # must not drop into an unsigned development posture.
        mode="prod",
        db_path="./data/lpstake.db",
        api_host="0.0.0.0",
        api_port=8000,
        require_signatures=True,
        lock_timeout_ms=30_000,
        log_level="INFO",
        services={},
    )


def _read_raw(p: Path) -> Any:
    text = p.read_text(encoding="utf-8")
    if p.suffix.lower() in {".yaml", ".yml"}:
        return yaml.safe_load(text)
    return json.loads(text)


def read_ledger_config_file(path: str) -> LedgerConfig:
    p = Path(path)
    raw = _read_raw(p)
    if not isinstance(raw, dict):
        raise ValueError("ledger config must be a mapping")

    d = default_ledger_config()

    services = raw.get("services")
    cfg = LedgerConfig(
        ledger_id=_as_str(raw.get("ledger_id"), d.ledger_id),
        custody_id=_as_str(raw.get("custody_id"), d.custody_id),
        administrator=_as_str(raw.get("administrator"), d.administrator),
        mode=_as_str(raw.get("mode"), d.mode),
        db_path=str(raw.get("db_path")) if raw.get("db_path") is not None else d.db_path,
        api_host=_as_str(raw.get("api_host"), d.api_host),
        api_port=_as_int(raw.get("api_port"), d.api_port),
        require_signatures=_as_bool(raw.get("require_signatures"), d.require_signatures),
        lock_timeout_ms=_as_int(raw.get("lock_timeout_ms"), d.lock_timeout_ms),
        log_level=_as_str(raw.get("log_level"), d.log_level),
        services=services if services is not None else {},
    )

    validate_ledger_config(cfg)
    return cfg


def load_ledger_config(*, config_path: Optional[str] = None) -> LedgerConfig:
    p = config_path or os.environ.get("LPSTAKE_CONFIG_PATH")
    if p:
        return read_ledger_config_file(p)

    cfg = default_ledger_config()
    validate_ledger_config(cfg)
    return cfg


def apply_ledger_config_to_env(cfg: LedgerConfig) -> None:
    validate_ledger_config(cfg)
    os.environ["LPSTAKE_ADMINISTRATOR"] = cfg.administrator

    # Exposed so sqlite pragmas and the API can pick their posture.
    os.environ["LPSTAKE_MODE"] = (cfg.mode or "prod").strip().lower()
    os.environ["LPSTAKE_LOG_LEVEL"] = cfg.log_level

    os.environ["LPSTAKE_REQUIRE_SIGNATURES"] = "1" if cfg.require_signatures else "0"
