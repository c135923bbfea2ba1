"""Timing router — bar-grid math for trimming, looping and cue placement."""
from __future__ import annotations

import dataclasses
import logging
from typing import Any, Callable, Dict, List, Optional

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, ConfigDict, Field

from adcomposer.services.timing import musical_timing as mt

logger = logging.getLogger("adcomposer.routers.timing")
router = APIRouter()


# ── Pydantic models ───────────────────────────────────────────────────────────


class TimingRequest(BaseModel):
    model_config = ConfigDict(allow_inf_nan=False)   # NaN / Infinity fail validation (422)


class GridRequest(TimingRequest):
    bpm: float
    duration: float = Field(ge=0)
    time_signature: str = mt.DEFAULT_TIME_SIGNATURE


class BarAlignRequest(TimingRequest):
    seconds: float = Field(ge=0)
    bpm: float
    mode: str = "ceil"        # "ceil" | "floor" | "round"
    time_signature: str = mt.DEFAULT_TIME_SIGNATURE


class DownbeatsRequest(TimingRequest):
    bpm: float
    total_bars: int = Field(ge=0, le=1000)
    time_signature: str = mt.DEFAULT_TIME_SIGNATURE


class LoopPlanRequest(TimingRequest):
    total_needed_duration: float = Field(gt=0)
    bpm: float
    max_gen_duration: float = mt.DEFAULT_MAX_GEN_DURATION
    time_signature: str = mt.DEFAULT_TIME_SIGNATURE


class PrePostRollRequest(TimingRequest):
    voice_duration: float = Field(gt=0)
    bpm: float
    genre: Optional[str] = None
    ad_duration: Optional[float] = None
    time_signature: str = mt.DEFAULT_TIME_SIGNATURE


class MusicPlanRequest(TimingRequest):
    voice_duration: float = Field(gt=0)
    bpm: float
    genre: Optional[str] = None
    max_gen_duration: float = mt.LONG_FORM_MAX_GEN_DURATION
    time_signature: str = mt.DEFAULT_TIME_SIGNATURE


class OptimizeBpmRequest(TimingRequest):
    target_bpm: float
    target_duration: float = Field(gt=0)
    search_radius: int = Field(default=mt.DEFAULT_BPM_SEARCH_RADIUS, ge=0, le=50)
    time_signature: str = mt.DEFAULT_TIME_SIGNATURE


class AlignRequest(TimingRequest):
    music_duration: float
    voice_duration: float = Field(gt=0)
    bpm: float
    genre: Optional[str] = None
    time_signature: str = mt.DEFAULT_TIME_SIGNATURE
    tolerance_bars: float = Field(default=mt.ALIGNMENT_TOLERANCE_BARS, ge=0)


class SnapRequest(TimingRequest):
    timestamp: float
    bpm: float
    unit: str = "bar"         # "bar" | "beat"
    time_signature: str = mt.DEFAULT_TIME_SIGNATURE


_BAR_ALIGN: Dict[str, Callable[..., mt.BarAlignedDuration]] = {
    "ceil": mt.ceil_to_bar,
    "floor": mt.floor_to_bar,
    "round": mt.round_to_bar,
}
_SNAP: Dict[str, Callable[..., mt.GridPoint]] = {
    "bar": mt.nearest_downbeat,
    "beat": mt.nearest_beat,
}


def _bad_request(exc: ValueError) -> HTTPException:
    logger.info("Rejected timing request: %s", exc)
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


def _choice(table: Dict[str, Any], key: str, field: str) -> Any:
    if key not in table:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid {field} '{key}'. Valid: {list(table)}",
        )
    return table[key]


# ── Endpoints ─────────────────────────────────────────────────────────────────


@router.post("/grid")
async def bar_grid(req: GridRequest) -> Dict[str, Any]:
    """Bar grid covering at least ``duration`` seconds."""
    try:
        grid = mt.build_bar_grid(req.bpm, req.duration, req.time_signature)
    except ValueError as exc:
        raise _bad_request(exc) from exc
    return dataclasses.asdict(grid)


@router.post("/bar-align")
async def bar_align(req: BarAlignRequest) -> Dict[str, Any]:
    """Snap a duration to a whole number of bars."""
    align = _choice(_BAR_ALIGN, req.mode, "mode")
    try:
        result = align(req.seconds, req.bpm, req.time_signature)
    except ValueError as exc:
        raise _bad_request(exc) from exc
    return dataclasses.asdict(result)


@router.post("/downbeats")
async def downbeats(req: DownbeatsRequest) -> Dict[str, List[float]]:
    try:
        times = mt.generate_downbeats(req.bpm, req.total_bars, req.time_signature)
    except ValueError as exc:
        raise _bad_request(exc) from exc
    return {"downbeats": times}


@router.post("/loop-plan")
async def loop_plan(req: LoopPlanRequest) -> Dict[str, Any]:
    """Seed length, loop count and trim point for music longer than one generation."""
    try:
        plan = mt.create_loop_plan(
            req.total_needed_duration, req.bpm, req.max_gen_duration, req.time_signature,
        )
    except ValueError as exc:
        raise _bad_request(exc) from exc
    return dataclasses.asdict(plan)


@router.post("/pre-post-roll")
async def pre_post_roll(req: PrePostRollRequest) -> Dict[str, Any]:
    try:
        roll = mt.calculate_pre_post_roll(
            req.voice_duration, req.bpm, req.genre, req.ad_duration, req.time_signature,
        )
    except ValueError as exc:
        raise _bad_request(exc) from exc
    return dataclasses.asdict(roll)


@router.post("/music-plan")
async def music_plan(req: MusicPlanRequest) -> Dict[str, Any]:
    """Pre/post-roll plus loop plan for a voice track."""
    try:
        plan = mt.plan_music_duration(
            req.voice_duration, req.bpm, req.genre, req.max_gen_duration, req.time_signature,
        )
    except ValueError as exc:
        raise _bad_request(exc) from exc
    return dataclasses.asdict(plan)


@router.post("/optimize-bpm")
async def optimize_bpm(req: OptimizeBpmRequest) -> Dict[str, Any]:
    """Integer tempo near the target whose bars best fill the target duration."""
    try:
        fit = mt.optimize_bpm_for_duration(
            req.target_bpm, req.target_duration, req.search_radius, req.time_signature,
        )
    except ValueError as exc:
        raise _bad_request(exc) from exc
    return dataclasses.asdict(fit)


@router.post("/align")
async def align(req: AlignRequest) -> Dict[str, Any]:
    """Decide use-as-is / trim / loop for a generated track."""
    try:
        result = mt.align_music_to_voice(
            req.music_duration, req.voice_duration, req.bpm, req.genre,
            req.time_signature, req.tolerance_bars,
        )
    except ValueError as exc:
        raise _bad_request(exc) from exc
    return dataclasses.asdict(result)


@router.post("/snap")
async def snap(req: SnapRequest) -> Dict[str, Any]:
    """Snap a timestamp to the nearest downbeat or beat."""
    snap_fn = _choice(_SNAP, req.unit, "unit")
    try:
        point = snap_fn(req.timestamp, req.bpm, req.time_signature)
    except ValueError as exc:
        raise _bad_request(exc) from exc
    return dataclasses.asdict(point)
