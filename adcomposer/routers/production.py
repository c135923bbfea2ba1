"""Production router — validate model output, build fallbacks, compose music requests."""
from __future__ import annotations

import dataclasses
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, ConfigDict, Field

from adcomposer.services.composition.engine import CompositionEngine, CompositionResult
from adcomposer.services.production.errors import ParseError, SchemaViolation
from adcomposer.services.production.sanitizer import (
    create_fallback_response, parse_and_validate, response_to_payload,
)
from adcomposer.services.prompt.types import CharacterAlignment, SentenceTiming

logger = logging.getLogger("adcomposer.routers.production")
router = APIRouter()

# ── Module-level singleton (lazy init) ────────────────────────────────────────
_engine: Optional[CompositionEngine] = None


def _get_engine() -> CompositionEngine:
    global _engine
    if _engine is None:
        _engine = CompositionEngine()
    return _engine


# ── Pydantic models ───────────────────────────────────────────────────────────


class ProductionRequest(BaseModel):
    model_config = ConfigDict(allow_inf_nan=False)   # NaN / Infinity fail validation (422)


class ValidateRequest(ProductionRequest):
    raw_text: str             # Model output, fenced or with trailing prose


class FallbackRequest(ProductionRequest):
    prompt: str
    duration_seconds: float = Field(default=30.0, gt=0)
    tone: str = "professional"  # "calm" → slow pace, "exciting" → fast


class SentenceTimingModel(ProductionRequest):
    text: str
    start_seconds: float
    end_seconds: float


class CharacterAlignmentModel(ProductionRequest):
    """Character-level speech alignment as returned by a TTS provider."""
    characters: List[str]
    start_times: List[float]
    end_times: List[float]


class ComposeRequest(ProductionRequest):
    raw_text: str
    voice_duration: Optional[float] = Field(default=None, gt=0)
    sentence_timings: List[SentenceTimingModel] = []
    alignment: Optional[CharacterAlignmentModel] = None   # Used when sentence_timings is empty
    fallback_prompt: Optional[str] = None   # Set to substitute the fallback plan on bad output
    fallback_duration: float = Field(default=30.0, gt=0)
    fallback_tone: str = "professional"
    provider: Optional[str] = None          # "suno" | "elevenlabs"; settings default if omitted


# ── Helpers ───────────────────────────────────────────────────────────────────


def _unprocessable(exc: Exception) -> HTTPException:
    if isinstance(exc, SchemaViolation):
        detail: Dict[str, Any] = {"error": "schema_violation", "issues": exc.issues}
    else:
        detail = {"error": "parse_error", "message": str(exc)}
    return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=detail)


def _result_payload(result: CompositionResult) -> Dict[str, Any]:
    request = result.request
    return {
        "response": response_to_payload(result.response),
        "format_violations": result.format_violations,
        "time_signature": result.time_signature,
        "grid": dataclasses.asdict(result.grid),
        "music_plan": dataclasses.asdict(result.music_plan),
        "tempo_fit": dataclasses.asdict(result.tempo_fit) if result.tempo_fit else None,
        "music_request": request.to_payload(),
        "dropped_sections": list(request.dropped_sections),
        "truncated": request.truncated,
        "used_fallback": result.used_fallback,
        "fallback_reason": result.fallback_reason,
    }


# ── Endpoints ─────────────────────────────────────────────────────────────────


@router.post("/validate")
async def validate_production(req: ValidateRequest) -> Dict[str, Any]:
    """Parse, validate and sanitize raw model output.

    Returns the canonical camelCase plan. Unusable output yields 422 with
    either ``parse_error`` or ``schema_violation`` and every offending field.
    """
    try:
        response = parse_and_validate(req.raw_text)
    except (ParseError, SchemaViolation) as exc:
        raise _unprocessable(exc) from exc
    return {"response": response_to_payload(response)}


@router.post("/fallback")
async def fallback_production(req: FallbackRequest) -> Dict[str, Any]:
    """Build the deterministic fallback plan without any model call."""
    response = create_fallback_response(req.prompt, req.duration_seconds, req.tone)
    return {"response": response_to_payload(response)}


@router.post("/compose")
async def compose_production(req: ComposeRequest) -> Dict[str, Any]:
    """Run validation, timing and prompt composition on raw model output."""
    timings = [SentenceTiming(t.text, t.start_seconds, t.end_seconds) for t in req.sentence_timings]
    alignment = None
    if req.alignment is not None:
        alignment = CharacterAlignment(
            characters=tuple(req.alignment.characters),
            start_times=tuple(req.alignment.start_times),
            end_times=tuple(req.alignment.end_times),
        )
    try:
        result = _get_engine().compose(
            req.raw_text,
            voice_duration=req.voice_duration,
            sentence_timings=timings or None,
            alignment=alignment,
            fallback_prompt=req.fallback_prompt,
            fallback_duration=req.fallback_duration,
            fallback_tone=req.fallback_tone,
            provider=req.provider,
        )
    except (ParseError, SchemaViolation) as exc:
        raise _unprocessable(exc) from exc
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return _result_payload(result)
