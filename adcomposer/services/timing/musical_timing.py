"""Musical timing — bar/beat-aware duration math for music-to-voice alignment.

Every alignment decision here is expressed in whole bars so that trim points,
loop seams and transitions land on downbeats rather than at arbitrary second
offsets.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from types import MappingProxyType
from typing import List, Optional

logger = logging.getLogger("adcomposer.timing.musical_timing")

DEFAULT_TIME_SIGNATURE = "4/4"

BEATS_PER_BAR = MappingProxyType({
    "4/4": 4,
    "3/4": 3,
    "6/8": 6,
    "7/8": 7,
    "12/8": 12,
})

# Compound x/8 meters count eighth notes: half a quarter-note beat
_BEAT_UNIT = MappingProxyType({
    "4/4": 1.0,
    "3/4": 1.0,
    "6/8": 0.5,
    "7/8": 0.5,
    "12/8": 0.5,
})

# Default provider generation cap used for loop seeds (seconds)
DEFAULT_MAX_GEN_DURATION = 22.0
# Long-form providers generate up to 8 minutes in one request
LONG_FORM_MAX_GEN_DURATION = 480.0
# A musical phrase; shorter seeds loop audibly
MIN_SEED_BARS = 4
DEFAULT_BPM_SEARCH_RADIUS = 5
BPM_SEARCH_MIN = 40
BPM_SEARCH_MAX = 200
# A generated track within this many bars of the target is used untouched
ALIGNMENT_TOLERANCE_BARS = 0.5
MAX_PRE_ROLL_BARS = 4

_EXTENDED_INTRO_GENRES = ("cinematic", "ambient")

# Absorbs float error so already-aligned durations stay put
_EPS = 1e-9


# ── result types ──────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class BarGrid:
    """Bar grid for a tempo and time signature.

    ``total_duration`` is always ``total_bars * bar_duration``.
    """
    bpm: float
    beats_per_bar: int
    beat_duration: float
    bar_duration: float
    total_bars: int
    total_duration: float


@dataclass(frozen=True)
class BarAlignedDuration:
    duration: float
    bars: int
    bpm: float
    bar_duration: float


@dataclass(frozen=True)
class PrePostRoll:
    """Music-only padding around the voice track.

    Attributes:
        pre_roll_bars: Bars of music before the voice enters.
        pre_roll_duration: Pre-roll length in seconds.
        post_roll_bars: Bars of music after the voice ends.
        post_roll_duration: Post-roll length in seconds.
        total_music_duration: pre-roll + voice + post-roll.
    """
    pre_roll_bars: int
    pre_roll_duration: float
    post_roll_bars: int
    post_roll_duration: float
    total_music_duration: float


@dataclass(frozen=True)
class LoopPlan:
    """How to cover a long duration with a capped-length generated seed.

    Attributes:
        seed_duration: Duration to request from the generator (never above the cap).
        seed_bars: Bars in the seed (at least MIN_SEED_BARS).
        full_loops: Seed repetitions needed to reach ``total_bars``.
        trim_duration: Bar-aligned final length of the looped output.
        total_bars: Bars in the final output.
    """
    seed_duration: float
    seed_bars: int
    full_loops: int
    trim_duration: float
    total_bars: int
    bpm: float
    bar_duration: float


@dataclass(frozen=True)
class TempoFit:
    bpm: int
    bars: int
    exact_duration: float
    error: float


@dataclass(frozen=True)
class MusicAlignment:
    """Decision for fitting a generated track to the voice.

    ``action`` is one of ``"use_as_is"``, ``"trim"`` or ``"loop"``. The final
    mix must delay the voice by ``pre_roll_duration``.
    """
    action: str
    target_duration: float
    target_bars: int
    bar_duration: float
    loop_count: int
    pre_roll_duration: float
    pre_roll_bars: int


@dataclass(frozen=True)
class MusicDurationPlan:
    pre_post_roll: PrePostRoll
    loop_plan: LoopPlan
    request_duration: float
    needs_loop: bool


@dataclass(frozen=True)
class GridPoint:
    """A timestamp snapped to the grid; ``offset`` is input minus snapped time."""
    time: float
    index: int
    offset: float


# ── grid primitives ───────────────────────────────────────────────────────────


def _check_signature(time_signature: str) -> None:
    if time_signature not in BEATS_PER_BAR:
        raise ValueError(
            f"Unsupported time signature: '{time_signature}'. "
            f"Valid: {list(BEATS_PER_BAR)}"
        )


def _check_tempo(bpm: float) -> None:
    if not math.isfinite(bpm) or bpm <= 0:
        raise ValueError(f"Tempo must be a positive finite number, got {bpm}")


def beats_per_bar(time_signature: str = DEFAULT_TIME_SIGNATURE) -> int:
    _check_signature(time_signature)
    return BEATS_PER_BAR[time_signature]


def beat_unit(time_signature: str = DEFAULT_TIME_SIGNATURE) -> float:
    """Beat length relative to a quarter note (1.0 for x/4, 0.5 for x/8)."""
    _check_signature(time_signature)
    return _BEAT_UNIT[time_signature]


def beat_duration(bpm: float, time_signature: str = DEFAULT_TIME_SIGNATURE) -> float:
    _check_tempo(bpm)
    return 60.0 / bpm * beat_unit(time_signature)


def bar_duration(bpm: float, time_signature: str = DEFAULT_TIME_SIGNATURE) -> float:
    return beat_duration(bpm, time_signature) * beats_per_bar(time_signature)


def build_bar_grid(
    bpm: float,
    total_duration_hint: float,
    time_signature: str = DEFAULT_TIME_SIGNATURE,
) -> BarGrid:
    """Build a bar grid covering at least ``total_duration_hint`` seconds."""
    beat = beat_duration(bpm, time_signature)
    bpb = beats_per_bar(time_signature)
    bar = beat * bpb
    total_bars = max(0, math.ceil(total_duration_hint / bar - _EPS))
    return BarGrid(
        bpm=bpm,
        beats_per_bar=bpb,
        beat_duration=beat,
        bar_duration=bar,
        total_bars=total_bars,
        total_duration=total_bars * bar,
    )


def ceil_to_bar(
    seconds: float,
    bpm: float,
    time_signature: str = DEFAULT_TIME_SIGNATURE,
) -> BarAlignedDuration:
    """Round a duration up to the next whole bar boundary."""
    bar = bar_duration(bpm, time_signature)
    bars = max(0, math.ceil(seconds / bar - _EPS))
    return BarAlignedDuration(duration=bars * bar, bars=bars, bpm=bpm, bar_duration=bar)


def floor_to_bar(
    seconds: float,
    bpm: float,
    time_signature: str = DEFAULT_TIME_SIGNATURE,
) -> BarAlignedDuration:
    """Round a duration down to a whole bar boundary (never below one bar)."""
    bar = bar_duration(bpm, time_signature)
    bars = max(1, math.floor(seconds / bar + _EPS))
    return BarAlignedDuration(duration=bars * bar, bars=bars, bpm=bpm, bar_duration=bar)


def round_to_bar(
    seconds: float,
    bpm: float,
    time_signature: str = DEFAULT_TIME_SIGNATURE,
) -> BarAlignedDuration:
    """Round a duration to the nearest whole bar boundary (never below one bar)."""
    bar = bar_duration(bpm, time_signature)
    bars = max(1, int(math.floor(seconds / bar + 0.5)))
    return BarAlignedDuration(duration=bars * bar, bars=bars, bpm=bpm, bar_duration=bar)


def generate_downbeats(
    bpm: float,
    total_bars: int,
    time_signature: str = DEFAULT_TIME_SIGNATURE,
) -> List[float]:
    """Return downbeat timestamps for bars 0..total_bars (inclusive end marker)."""
    bar = bar_duration(bpm, time_signature)
    return [i * bar for i in range(total_bars + 1)]


def nearest_downbeat(
    timestamp: float,
    bpm: float,
    time_signature: str = DEFAULT_TIME_SIGNATURE,
) -> GridPoint:
    """Snap a timestamp (e.g. a sound-effect cue) to the closest bar boundary."""
    bar = bar_duration(bpm, time_signature)
    index = int(math.floor(timestamp / bar + 0.5))
    time = index * bar
    return GridPoint(time=time, index=index, offset=timestamp - time)


def nearest_beat(
    timestamp: float,
    bpm: float,
    time_signature: str = DEFAULT_TIME_SIGNATURE,
) -> GridPoint:
    """Snap a timestamp to the closest beat of the signature's beat unit."""
    beat = beat_duration(bpm, time_signature)
    index = int(math.floor(timestamp / beat + 0.5))
    time = index * beat
    return GridPoint(time=time, index=index, offset=timestamp - time)


# ── planning ──────────────────────────────────────────────────────────────────


def calculate_pre_post_roll(
    voice_duration: float,
    bpm: float,
    genre: Optional[str] = None,
    ad_duration: Optional[float] = None,
    time_signature: str = DEFAULT_TIME_SIGNATURE,
) -> PrePostRoll:
    """Choose pre-roll and post-roll bar counts from the ad length.

    Short ads get one bar either side; 15-30s ads get two when bars are short
    (fast tempos) and one otherwise; longer ads get two. Cinematic and ambient
    genres take one extra pre-roll bar, capped at MAX_PRE_ROLL_BARS.
    """
    bar = bar_duration(bpm, time_signature)
    length_hint = ad_duration or voice_duration

    if length_hint <= 15:
        pre_bars, post_bars = 1, 1
    elif length_hint <= 30:
        pre_bars = post_bars = 2 if bar <= 1.5 else 1
    else:
        pre_bars, post_bars = 2, 2

    genre_lower = (genre or "").lower()
    if any(g in genre_lower for g in _EXTENDED_INTRO_GENRES):
        pre_bars = min(pre_bars + 1, MAX_PRE_ROLL_BARS)

    pre_duration = pre_bars * bar
    post_duration = post_bars * bar
    return PrePostRoll(
        pre_roll_bars=pre_bars,
        pre_roll_duration=pre_duration,
        post_roll_bars=post_bars,
        post_roll_duration=post_duration,
        total_music_duration=pre_duration + voice_duration + post_duration,
    )


def create_loop_plan(
    total_needed_duration: float,
    bpm: float,
    max_gen_duration: float = DEFAULT_MAX_GEN_DURATION,
    time_signature: str = DEFAULT_TIME_SIGNATURE,
) -> LoopPlan:
    """Plan a bar-aligned seed that is looped to cover ``total_needed_duration``.

    The seed is the largest whole number of bars that fits under
    ``max_gen_duration``, but never fewer than MIN_SEED_BARS. When even
    MIN_SEED_BARS do not fit, the requested seed duration is clamped to the cap.
    """
    if max_gen_duration <= 0:
        raise ValueError(f"max_gen_duration must be positive, got {max_gen_duration}")
    bar = bar_duration(bpm, time_signature)

    max_bars = int(math.floor(max_gen_duration / bar + _EPS))
    seed_bars = max(MIN_SEED_BARS, max_bars)
    seed_duration = seed_bars * bar
    if seed_duration > max_gen_duration:
        logger.warning(
            "%d-bar seed (%.2fs) exceeds generation cap %.2fs at %s BPM; clamping",
            seed_bars, seed_duration, max_gen_duration, bpm,
        )
        seed_duration = max_gen_duration

    total_bars = max(1, math.ceil(total_needed_duration / bar - _EPS))
    full_loops = math.ceil(total_bars / seed_bars)

    return LoopPlan(
        seed_duration=seed_duration,
        seed_bars=seed_bars,
        full_loops=full_loops,
        trim_duration=total_bars * bar,
        total_bars=total_bars,
        bpm=bpm,
        bar_duration=bar,
    )


def optimize_bpm_for_duration(
    target_bpm: float,
    target_duration: float,
    search_radius: int = DEFAULT_BPM_SEARCH_RADIUS,
    time_signature: str = DEFAULT_TIME_SIGNATURE,
) -> TempoFit:
    """Find the integer tempo near ``target_bpm`` whose bars best fill ``target_duration``.

    Candidates are searched outward from the target, so on equal residual
    error the tempo closest to the target wins.

    Raises:
        ValueError: If no candidate tempo in range yields at least one bar.
    """
    _check_signature(time_signature)
    centre = int(round(target_bpm))
    candidates = [centre]
    for step in range(1, max(0, search_radius) + 1):
        candidates.extend((centre - step, centre + step))

    best: Optional[TempoFit] = None
    for bpm in candidates:
        if bpm < BPM_SEARCH_MIN or bpm > BPM_SEARCH_MAX:
            continue
        bar = bar_duration(bpm, time_signature)
        bars = int(math.floor(target_duration / bar + 0.5))
        if bars < 1:
            continue
        exact = bars * bar
        error = abs(exact - target_duration)
        if best is None or error < best.error - _EPS:
            best = TempoFit(bpm=bpm, bars=bars, exact_duration=exact, error=error)

    if best is None:
        raise ValueError(
            f"No tempo within ±{search_radius} of {target_bpm} fits {target_duration}s"
        )
    logger.debug(
        "Tempo fit for %.2fs: %d BPM, %d bars, error %.4fs",
        target_duration, best.bpm, best.bars, best.error,
    )
    return best


def plan_music_duration(
    voice_duration: float,
    bpm: float,
    genre: Optional[str] = None,
    max_gen_duration: float = LONG_FORM_MAX_GEN_DURATION,
    time_signature: str = DEFAULT_TIME_SIGNATURE,
) -> MusicDurationPlan:
    """Decide how much music to request for a voice track of ``voice_duration``."""
    rolls = calculate_pre_post_roll(
        voice_duration, bpm, genre=genre, ad_duration=voice_duration,
        time_signature=time_signature,
    )
    plan = create_loop_plan(rolls.total_music_duration, bpm, max_gen_duration, time_signature)
    return MusicDurationPlan(
        pre_post_roll=rolls,
        loop_plan=plan,
        request_duration=min(plan.seed_duration, max_gen_duration),
        needs_loop=plan.full_loops > 1,
    )


def align_music_to_voice(
    music_duration: float,
    voice_duration: float,
    bpm: float,
    genre: Optional[str] = None,
    time_signature: str = DEFAULT_TIME_SIGNATURE,
    tolerance_bars: float = ALIGNMENT_TOLERANCE_BARS,
) -> MusicAlignment:
    """Decide whether a generated track is used as-is, trimmed or looped.

    The target is pre-roll + voice + post-roll rounded up to whole bars. A
    track within ``tolerance_bars`` of the target is used untouched.
    """
    if music_duration <= 0:
        raise ValueError(f"music_duration must be positive, got {music_duration}")

    rolls = calculate_pre_post_roll(
        voice_duration, bpm, genre=genre, ad_duration=voice_duration,
        time_signature=time_signature,
    )
    bar = bar_duration(bpm, time_signature)
    target_bars = math.ceil(rolls.total_music_duration / bar - _EPS)
    target_duration = target_bars * bar

    loop_count = 1
    if abs(music_duration - target_duration) <= bar * tolerance_bars:
        action = "use_as_is"
    elif music_duration > target_duration:
        action = "trim"
    else:
        action = "loop"
        loop_count = math.ceil(target_duration / music_duration)

    logger.info(
        "Music alignment: %s (music %.2fs, target %.2fs / %d bars, loops %d)",
        action, music_duration, target_duration, target_bars, loop_count,
    )
    return MusicAlignment(
        action=action,
        target_duration=target_duration,
        target_bars=target_bars,
        bar_duration=bar,
        loop_count=loop_count,
        pre_roll_duration=rolls.pre_roll_duration,
        pre_roll_bars=rolls.pre_roll_bars,
    )
