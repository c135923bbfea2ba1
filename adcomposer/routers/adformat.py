"""Ad format router — structural validation of creative plans and built-in templates."""
from __future__ import annotations

import dataclasses
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter

from adcomposer.services.adformat.schema import CreativePlanSchema
from adcomposer.services.adformat.templates import BUILTIN_TEMPLATES, template_summary
from adcomposer.services.adformat.validator import AdFormatValidator
from adcomposer.services.shared.config import DEFAULT_SETTINGS_PATH, get_config

logger = logging.getLogger("adcomposer.routers.adformat")
router = APIRouter()

# ── Module-level singleton (lazy init) ────────────────────────────────────────
_validator: Optional[AdFormatValidator] = None


def _get_validator() -> AdFormatValidator:
    global _validator
    if _validator is None:
        _validator = AdFormatValidator.from_config(get_config(str(DEFAULT_SETTINGS_PATH)))
    return _validator


@router.post("/validate")
async def validate_plan(plan: CreativePlanSchema) -> Dict[str, Any]:
    """Check a camelCase creative plan; violations are returned, never raised."""
    violations = _get_validator().validate(plan.to_plan())
    logger.debug("Validated plan %s: %d violation(s)", plan.template_id, len(violations))
    return {"valid": not violations, "violations": violations}


@router.get("/templates")
async def list_templates() -> Dict[str, Any]:
    """List built-in ad format templates with their segment slots."""
    return {
        "templates": [dataclasses.asdict(t) for t in BUILTIN_TEMPLATES],
        "summary": template_summary(),
    }
