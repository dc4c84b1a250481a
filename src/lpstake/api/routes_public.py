# src/lpstake/api/routes_public.py
from __future__ import annotations

from fastapi import APIRouter

from lpstake.api.routes_public_parts.admin import router as admin_router
from lpstake.api.routes_public_parts.health import router as health_router
from lpstake.api.routes_public_parts.ledger import router as ledger_router
from lpstake.api.routes_public_parts.staking import router as staking_router

public_router = APIRouter()

# Versioned API surface
public_router.include_router(health_router, prefix="/v1", tags=["health"])
public_router.include_router(ledger_router, prefix="/v1", tags=["ledger"])
public_router.include_router(staking_router, prefix="/v1", tags=["staking"])
public_router.include_router(admin_router, prefix="/v1", tags=["admin"])
