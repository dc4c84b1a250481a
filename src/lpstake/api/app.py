from __future__ import annotations

import os

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from lpstake.api.config import load_api_config
from lpstake.api.errors import ApiError, ledger_error_body, ledger_error_status
from lpstake.api.routes_public import public_router
from lpstake.api.security import NonceRegistry, RequestSizeLimitMiddleware
from lpstake.api.structured_logging import RequestLogMiddleware
from lpstake.runtime.errors import LedgerError
from lpstake.runtime.executor_boot import build_executor as _build_executor


def build_executor():
    """Build a StakingExecutor for API runtime.

    This wrapper exists so tests can monkeypatch `lpstake.api.app.build_executor`
    without reaching into runtime modules.
    """
    return _build_executor()


def create_app(*, boot_runtime: bool = True) -> FastAPI:
    """Create the FastAPI application.

    boot_runtime:
      - True (default): load ledger config + attach executor
      - False: keep lightweight; tests attach app.state.executor themselves

    Ledger errors map to {"ok": false, "error": {...}} with a status per
    error kind (see lpstake.api.errors).
    """
    # Runtime boot first: it exports LPSTAKE_* that load_api_config reads.
    executor = build_executor() if boot_runtime else None

    mode = os.environ.get("LPSTAKE_MODE", "prod").strip().lower()

    # Disable docs in production.
    if mode == "prod":
        app = FastAPI(title="LP Staking Ledger API", docs_url=None, redoc_url=None, openapi_url=None)
    else:
        app = FastAPI(title="LP Staking Ledger API")

    app.state.cfg = load_api_config()
    app.state.executor = executor
    app.state.nonces = NonceRegistry()

    @app.exception_handler(LedgerError)
    async def _ledger_error(_request: Request, exc: LedgerError) -> JSONResponse:
        return JSONResponse(status_code=ledger_error_status(exc), content=ledger_error_body(exc))

    @app.exception_handler(ApiError)
    async def _api_error(_request: Request, exc: ApiError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.to_json())

    # --- Middleware ---
    # Added last runs first: request logging wraps the size limiter.
    app.add_middleware(RequestSizeLimitMiddleware)
    app.add_middleware(RequestLogMiddleware)

    # --- Routers ---
    app.include_router(public_router)

    return app
