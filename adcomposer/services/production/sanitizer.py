"""Production response sanitizer — raw model text to a safe ProductionResponse.

Pipeline::

    raw text ─► strip fences ─► first balanced {...} ─► json.loads
             ─► pydantic validation (all field errors aggregated)
             ─► defaults + clamping ─► ProductionResponse

``parse_and_validate`` raises :class:`ParseError` or :class:`SchemaViolation`;
it never guesses at a partially valid object. When generation keeps failing
the caller can use ``create_fallback_response`` instead, which needs no model.
"""
from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional, Tuple

from pydantic import ValidationError

from adcomposer.services.adformat.schema import plan_to_payload
from adcomposer.services.production.errors import ParseError, SchemaViolation
from adcomposer.services.production.json_extract import (
    extract_first_json_object, strip_code_fences,
)
from adcomposer.services.production.schema import (
    ArcSegmentSchema, ProductionResponseSchema,
)
from adcomposer.services.production.types import (
    DEFAULT_BPM_BY_PACE,
    AdContext, ArcSegment, ButtonEnding, Fades, Instrumentation,
    MusicalStructure, MusicDescriptor, ProductionResponse, SentenceCue,
    SoundDesignCue, VoiceHints, Volume, VolumeSegment,
)

logger = logging.getLogger("adcomposer.production.sanitizer")

DEFAULT_VERSION = "1.0"
DEFAULT_FADE_IN = 0.1
DEFAULT_FADE_OUT = 0.4
DEFAULT_FADE_CURVE = "exp"
DEFAULT_VOICE_VOLUME = 1.0
DEFAULT_MUSIC_VOLUME = 0.15

# Safe ranges. Short fade-in keeps the first word clear; the fade-out must be
# long enough to avoid an abrupt stop.
FADE_IN_RANGE = (0.02, 0.12)
FADE_OUT_RANGE = (0.1, 0.6)
VOLUME_RANGE = (0.0, 2.0)
BPM_RANGE = (60.0, 180.0)
VOLUME_MULTIPLIER_RANGE = (0.7, 1.3)

MUSIC_PROMPT_MAX_LENGTH = 200
COMPOSER_DIRECTION_MAX_LENGTH = 300

ARC_MIN_SEGMENTS = 2

# Fallback script sizing
FALLBACK_WORDS_PER_SECOND = 2.8
FALLBACK_MIN_WORDS = 40
_FALLBACK_FILLER = (
    "[warmly] This is the perfect choice for you. We are here to help you succeed.",
    "Discover why so many people trust us every day. Quality you can rely on.",
    "Simple, effective, and designed with you in mind. Get started in no time.",
    "Join us and see the difference. Your journey starts here today.",
    "We make it easy. Everything you need in one place.",
)
_FALLBACK_CLOSER = "[pause] Try it now. Thank you."


# ── public ────────────────────────────────────────────────────────────────────

def parse_and_validate(raw_text: str) -> ProductionResponse:
    """Parse model output and return a defaulted, clamped ProductionResponse.

    Raises:
        ParseError: no JSON object could be extracted or decoded.
        SchemaViolation: the object fails validation; every bad field is listed.
    """
    content = strip_code_fences(raw_text or "")
    candidate = extract_first_json_object(content)
    if candidate is None:
        raise ParseError("No JSON object found in model response")
    try:
        data = json.loads(candidate)
    except json.JSONDecodeError as e:
        raise ParseError(f"Invalid JSON in model response: {e}") from e
    return validate_payload(data)


def validate_payload(data: Any) -> ProductionResponse:
    """Validate an already-decoded object (dict) and sanitize it."""
    try:
        parsed = ProductionResponseSchema.model_validate(data)
    except ValidationError as e:
        issues = _format_issues(e)
        logger.info("Model response rejected with %d issue(s)", len(issues))
        raise SchemaViolation(issues) from e
    return apply_defaults_and_clamp(parsed)


def apply_defaults_and_clamp(parsed: ProductionResponseSchema) -> ProductionResponse:
    """Fill optional fields with safe defaults and clamp numbers into range."""
    duration = parsed.context.duration_seconds
    return ProductionResponse(
        version=parsed.version or DEFAULT_VERSION,
        script=parsed.script,
        context=_build_context(parsed),
        music=_build_music(parsed, duration),
        fades=_build_fades(parsed),
        volume=_build_volume(parsed),
        mix_preset=parsed.mix_preset,
        sentence_cues=_build_sentence_cues(parsed),
        sound_design=_build_sound_design(parsed, duration),
        ad_format=parsed.ad_format.to_plan() if parsed.ad_format is not None else None,
    )


def response_to_payload(resp: ProductionResponse) -> Dict[str, Any]:
    """Canonical camelCase serialization. Validating it yields ``resp`` again."""
    ctx = resp.context
    music = resp.music
    return {
        "version": resp.version,
        "script": resp.script,
        "context": {
            "adCategory": ctx.ad_category,
            "tone": ctx.tone,
            "emotion": ctx.emotion,
            "pace": ctx.pace,
            "durationSeconds": ctx.duration_seconds,
            "targetWordsPerMinute": ctx.target_words_per_minute,
            "voiceHints": None if ctx.voice_hints is None else {
                "gender": ctx.voice_hints.gender,
                "ageRange": ctx.voice_hints.age_range,
                "accent": ctx.voice_hints.accent,
            },
        },
        "music": {
            "prompt": music.prompt,
            "targetBPM": music.target_bpm,
            "genre": music.genre,
            "mood": music.mood,
            "composerDirection": music.composer_direction,
            "instrumentation": None if music.instrumentation is None else {
                "drums": music.instrumentation.drums,
                "bass": music.instrumentation.bass,
                "mids": music.instrumentation.mids,
                "effects": music.instrumentation.effects,
            },
            "arc": None if music.arc is None else [
                {
                    "startSeconds": seg.start_seconds,
                    "endSeconds": seg.end_seconds,
                    "label": seg.label,
                    "musicPrompt": seg.music_prompt,
                    "targetBPM": seg.target_bpm,
                    "energyLevel": seg.energy_level,
                }
                for seg in music.arc
            ],
            "buttonEnding": None if music.button_ending is None else {
                "type": music.button_ending.type,
                "timing": music.button_ending.timing,
                "description": music.button_ending.description,
            },
            "musicalStructure": _structure_to_payload(music.musical_structure),
        },
        "fades": {
            "fadeInSeconds": resp.fades.fade_in_seconds,
            "fadeOutSeconds": resp.fades.fade_out_seconds,
            "curve": resp.fades.curve,
        },
        "volume": {
            "voiceVolume": resp.volume.voice_volume,
            "musicVolume": resp.volume.music_volume,
            "segments": None if resp.volume.segments is None else [
                {
                    "startSeconds": s.start_seconds,
                    "endSeconds": s.end_seconds,
                    "type": s.type,
                    "intensity": s.intensity,
                }
                for s in resp.volume.segments
            ],
        },
        "mixPreset": resp.mix_preset,
        "sentenceCues": None if resp.sentence_cues is None else [
            {
                "index": c.index,
                "musicCue": c.music_cue,
                "musicVolumeMultiplier": c.music_volume_multiplier,
                "musicDirection": c.music_direction,
                "musicalFunction": c.musical_function,
            }
            for c in resp.sentence_cues
        ],
        "soundDesign": None if resp.sound_design is None else [
            {"timestamp": c.timestamp, "sound": c.sound, "purpose": c.purpose}
            for c in resp.sound_design
        ],
        "adFormat": None if resp.ad_format is None else plan_to_payload(resp.ad_format),
    }


def create_fallback_response(
    prompt: str,
    duration_seconds: float = 30.0,
    tone: str = "professional",
) -> ProductionResponse:
    """Deterministic production plan built from word-count math alone.

    The script is padded with generic filler until it holds roughly
    ``duration_seconds * 2.8`` words so that speech fills the slot.
    """
    if duration_seconds <= 0:
        raise ValueError(f"duration_seconds must be positive, got {duration_seconds}")

    pace = {"calm": "slow", "exciting": "fast"}.get(tone, "moderate")
    target_wpm = {"slow": 120, "fast": 160}.get(pace, 150)
    target_bpm = {"slow": 85, "fast": 115}.get(pace, 100)

    target_words = max(FALLBACK_MIN_WORDS, round(duration_seconds * FALLBACK_WORDS_PER_SECOND))
    prompt_text = " ".join(prompt.split())
    opener = f"[excited] {prompt_text[:200]}{'.' if len(prompt_text) > 200 else ''}"

    lines = [opener]
    word_count = _count_words(opener)
    i = 0
    while word_count < target_words - 15:
        filler = _FALLBACK_FILLER[i % len(_FALLBACK_FILLER)]
        lines.append(filler)
        word_count += _count_words(filler)
        i += 1
    lines.append(_FALLBACK_CLOSER)

    payload = {
        "version": DEFAULT_VERSION,
        "script": " ".join(lines),
        "context": {
            "adCategory": "other",
            "tone": tone,
            "emotion": tone,
            "pace": pace,
            "durationSeconds": duration_seconds,
            "targetWordsPerMinute": target_wpm,
        },
        "music": {
            "prompt": (
                f"Professional {tone} background music, instrumental, {pace} pace, "
                f"suitable for voice-over, {target_bpm} BPM"
            ),
            "targetBPM": target_bpm,
            "genre": "corporate",
            "mood": tone,
        },
        "fades": {
            "fadeInSeconds": DEFAULT_FADE_IN,
            "fadeOutSeconds": DEFAULT_FADE_OUT,
            "curve": DEFAULT_FADE_CURVE,
        },
        "volume": {"voiceVolume": DEFAULT_VOICE_VOLUME, "musicVolume": DEFAULT_MUSIC_VOLUME},
        "mixPreset": "voiceProminent",
    }
    logger.info(
        "Built fallback production plan: %.1fs, pace=%s, %d words", duration_seconds, pace, word_count,
    )
    return validate_payload(payload)


# ── builders ─────────────────────────────────────────────────────────────────

def _build_context(parsed: ProductionResponseSchema) -> AdContext:
    ctx = parsed.context
    hints = None
    if ctx.voice_hints is not None:
        hints = VoiceHints(
            gender=ctx.voice_hints.gender,
            age_range=ctx.voice_hints.age_range,
            accent=ctx.voice_hints.accent,
        )
    return AdContext(
        ad_category=ctx.ad_category,
        tone=ctx.tone,
        emotion=ctx.emotion,
        pace=ctx.pace,
        duration_seconds=ctx.duration_seconds,
        target_words_per_minute=ctx.target_words_per_minute,
        voice_hints=hints,
    )


def _build_music(parsed: ProductionResponseSchema, duration: float) -> MusicDescriptor:
    music = parsed.music
    if music.target_bpm is not None:
        target_bpm = _clamp("music.targetBPM", music.target_bpm, BPM_RANGE)
    else:
        target_bpm = float(DEFAULT_BPM_BY_PACE[parsed.context.pace])

    instrumentation = None
    if music.instrumentation is not None:
        inst = music.instrumentation
        instrumentation = Instrumentation(
            drums=inst.drums, bass=inst.bass, mids=inst.mids, effects=inst.effects,
        )

    button = None
    if music.button_ending is not None:
        be = music.button_ending
        button = ButtonEnding(type=be.type, timing=be.timing, description=be.description)

    structure = None
    if music.musical_structure is not None:
        ms = music.musical_structure
        structure = MusicalStructure(
            intro_type=ms.intro_type,
            intro_bars=ms.intro_bars,
            body_feel=ms.body_feel,
            peak_moment=ms.peak_moment,
            ending_type=ms.ending_type,
            outro_bars=ms.outro_bars,
            key_signature=ms.key_signature,
            phrase_length=ms.phrase_length,
        )

    return MusicDescriptor(
        prompt=_truncate(music.prompt, MUSIC_PROMPT_MAX_LENGTH),
        target_bpm=target_bpm,
        genre=music.genre,
        mood=music.mood,
        composer_direction=_truncate(music.composer_direction, COMPOSER_DIRECTION_MAX_LENGTH) or None,
        instrumentation=instrumentation,
        arc=_normalize_arc(music.arc, duration),
        button_ending=button,
        musical_structure=structure,
    )


def _normalize_arc(
    arc: Optional[List[ArcSegmentSchema]],
    duration: float,
) -> Optional[Tuple[ArcSegment, ...]]:
    """Keep valid arc entries, clip them to the ad, and make them span it.

    Entries with no prompt or an empty window are dropped. The survivors are
    ordered by start, clipped to ``[0, duration]``, and the first/last are
    stretched to 0 and ``duration``. Fewer than two survivors drops the arc.
    """
    if not arc:
        return None

    kept: List[ArcSegment] = []
    for seg in sorted(arc, key=lambda s: s.start_seconds):
        start = max(0.0, seg.start_seconds)
        end = min(duration, seg.end_seconds)
        if end <= start or not seg.music_prompt.strip():
            continue
        bpm = None
        if seg.target_bpm is not None:
            bpm = _clamp("music.arc.targetBPM", seg.target_bpm, BPM_RANGE)
        kept.append(ArcSegment(
            start_seconds=start,
            end_seconds=end,
            label=seg.label,
            music_prompt=seg.music_prompt,
            target_bpm=bpm,
            energy_level=seg.energy_level,
        ))

    if len(kept) < ARC_MIN_SEGMENTS:
        logger.debug("Dropping music arc: %d usable segment(s)", len(kept))
        return None

    first = kept[0]
    kept[0] = ArcSegment(0.0, first.end_seconds, first.label, first.music_prompt,
                         first.target_bpm, first.energy_level)
    last = kept[-1]
    kept[-1] = ArcSegment(last.start_seconds, duration, last.label, last.music_prompt,
                          last.target_bpm, last.energy_level)
    return tuple(kept)


def _build_fades(parsed: ProductionResponseSchema) -> Fades:
    fades = parsed.fades
    fade_in = fades.fade_in_seconds if fades and fades.fade_in_seconds is not None else DEFAULT_FADE_IN
    fade_out = fades.fade_out_seconds if fades and fades.fade_out_seconds is not None else DEFAULT_FADE_OUT
    return Fades(
        fade_in_seconds=_clamp("fades.fadeInSeconds", fade_in, FADE_IN_RANGE),
        fade_out_seconds=_clamp("fades.fadeOutSeconds", fade_out, FADE_OUT_RANGE),
        curve=(fades.curve if fades and fades.curve else DEFAULT_FADE_CURVE),
    )


def _build_volume(parsed: ProductionResponseSchema) -> Volume:
    volume = parsed.volume
    voice = volume.voice_volume if volume and volume.voice_volume is not None else DEFAULT_VOICE_VOLUME
    music = volume.music_volume if volume and volume.music_volume is not None else DEFAULT_MUSIC_VOLUME

    segments = None
    if volume and volume.segments:
        valid = tuple(
            VolumeSegment(s.start_seconds, s.end_seconds, s.type, s.intensity)
            for s in volume.segments
            if s.end_seconds > s.start_seconds
        )
        if len(valid) < len(volume.segments):
            logger.debug("Dropped %d empty volume segment(s)", len(volume.segments) - len(valid))
        segments = valid or None

    return Volume(
        voice_volume=_clamp("volume.voiceVolume", voice, VOLUME_RANGE),
        music_volume=_clamp("volume.musicVolume", music, VOLUME_RANGE),
        segments=segments,
    )


def _build_sentence_cues(parsed: ProductionResponseSchema) -> Optional[Tuple[SentenceCue, ...]]:
    if not parsed.sentence_cues:
        return None
    cues = []
    for cue in parsed.sentence_cues:
        mult = cue.music_volume_multiplier
        if mult is not None:
            mult = _clamp("sentenceCues.musicVolumeMultiplier", mult, VOLUME_MULTIPLIER_RANGE)
        cues.append(SentenceCue(
            index=cue.index,
            music_cue=cue.music_cue,
            music_volume_multiplier=mult,
            music_direction=cue.music_direction,
            musical_function=cue.musical_function,
        ))
    return tuple(cues)


def _build_sound_design(
    parsed: ProductionResponseSchema,
    duration: float,
) -> Optional[Tuple[SoundDesignCue, ...]]:
    if not parsed.sound_design:
        return None
    return tuple(
        SoundDesignCue(
            timestamp=_clamp("soundDesign.timestamp", cue.timestamp, (0.0, duration)),
            sound=cue.sound,
            purpose=cue.purpose,
        )
        for cue in parsed.sound_design
    )


# ── helpers ──────────────────────────────────────────────────────────────────

def _structure_to_payload(ms: Optional[MusicalStructure]) -> Optional[Dict[str, Any]]:
    if ms is None:
        return None
    return {
        "introType": ms.intro_type,
        "introBars": ms.intro_bars,
        "bodyFeel": ms.body_feel,
        "peakMoment": ms.peak_moment,
        "endingType": ms.ending_type,
        "outroBars": ms.outro_bars,
        "keySignature": ms.key_signature,
        "phraseLength": ms.phrase_length,
    }


def _clamp(field: str, value: float, bounds: Tuple[float, float]) -> float:
    low, high = bounds
    clamped = max(low, min(high, float(value)))
    if clamped != value:
        logger.debug("Clamped %s from %s to %s", field, value, clamped)
    return clamped


def _truncate(text: Optional[str], limit: int) -> str:
    if text is None:
        return ""
    return text.strip()[:limit].rstrip()


def _count_words(text: str) -> int:
    return len(text.split())


def _format_issues(error: ValidationError) -> List[str]:
    """One ``"path: message"`` entry per offending field path, first message wins."""
    seen: Dict[str, str] = {}
    for err in error.errors():
        path = ".".join(str(part) for part in err["loc"]) or "(root)"
        seen.setdefault(path, err["msg"])
    return [f"{path}: {msg}" for path, msg in seen.items()]
