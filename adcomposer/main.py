"""Ad Composer — FastAPI application entry point.

All routers are mounted here. No dead-code routers allowed — if a router
module exists, it must be mounted in this file.
"""
from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from adcomposer.routers import adformat, production, system, timing
from adcomposer.services.shared.config import DEFAULT_SETTINGS_PATH, get_config
from adcomposer.services.shared.logging import setup_logging

_settings = get_config(str(DEFAULT_SETTINGS_PATH))
setup_logging(
    level=_settings.get("logging.level", "INFO"),
    log_file=_settings.get("logging.file"),
)

app = FastAPI(
    title="Ad Composer",
    version=system.VERSION,
    description="Ad production plan validation, musical timing and music prompt composition.",
)

# ── CORS ──────────────────────────────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://localhost:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Routers ───────────────────────────────────────────────────────────────────
# Critical: every imported router must be mounted. No orphan routers.
app.include_router(production.router, prefix="/api/production", tags=["Production"])
app.include_router(adformat.router,   prefix="/api/adformat",   tags=["Ad Format"])
app.include_router(timing.router,     prefix="/api/timing",     tags=["Timing"])
app.include_router(system.router,     prefix="/api/system",     tags=["System"])
