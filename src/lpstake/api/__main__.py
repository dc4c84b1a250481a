# src/lpstake/api/__main__.py
from __future__ import annotations

import os

import uvicorn

from lpstake.env import load_dotenv_if_present


def main() -> None:
    # Load .env early so LPSTAKE_* vars exist before anything reads them.
    load_dotenv_if_present()

    # Import after dotenv load (prevents "config read before env" surprises)
    from lpstake.api.app import create_app
    from lpstake.api.structured_logging import configure_structured_logging
    from lpstake.runtime.ledger_config import load_ledger_config

    cfg = load_ledger_config()
    os.environ.setdefault("LPSTAKE_LOG_LEVEL", cfg.log_level)
    configure_structured_logging()

    uvicorn.run(create_app(), host=cfg.api_host, port=int(cfg.api_port), log_level="info")


if __name__ == "__main__":
    main()
