"""System router — health and engine capabilities."""
from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import APIRouter

from adcomposer.services.adformat.templates import template_ids
from adcomposer.services.prompt.cultural_styles import cultural_style_ids
from adcomposer.services.composition.engine import PROVIDER_ENV_VAR
from adcomposer.services.shared.config import DEFAULT_SETTINGS_PATH, get_config
from adcomposer.services.timing.musical_timing import BEATS_PER_BAR

logger = logging.getLogger("adcomposer.routers.system")
router = APIRouter()

VERSION = "1.0.0"


@router.get("/health")
async def health_check() -> Dict[str, str]:
    """Health check endpoint."""
    return {"status": "ok", "version": VERSION}


@router.get("/info")
async def engine_info() -> Dict[str, Any]:
    """Configured providers and the static tables the engine knows about."""
    config = get_config(str(DEFAULT_SETTINGS_PATH))
    return {
        "default_provider": config.get_env(PROVIDER_ENV_VAR) or config.get("music.default_provider"),
        "provider_limits": config.get("music.provider_limits", {}),
        "time_signatures": list(BEATS_PER_BAR),
        "templates": list(template_ids()),
        "cultural_styles": list(cultural_style_ids()),
    }
