"""CompositionEngine — model output to a music provider request in one call.

Flow::

    raw text ─► parse_and_validate ─(failure + fallback_prompt)─► fallback plan
             ─► AdFormatValidator (when the plan carries an adFormat)
             ─► bar grid, pre/post-roll and loop plan at the validated tempo
             ─► PromptComposer ─► MusicRequest

All tolerances and provider budgets come from ``settings.yaml``; the default
provider can be overridden with ``ADCOMPOSER_MUSIC_PROVIDER`` (environment or .env).
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from adcomposer.services.adformat.validator import AdFormatValidator
from adcomposer.services.production.errors import ProductionResponseError
from adcomposer.services.production.sanitizer import create_fallback_response, parse_and_validate
from adcomposer.services.production.types import ProductionResponse
from adcomposer.services.prompt.cultural_styles import (
    cultural_enrichment, tempo_range_for_genre, time_signature_for_genre,
)
from adcomposer.services.prompt.prompt_composer import PromptComposer
from adcomposer.services.prompt.sentences import alignment_to_sentence_timings, alignment_to_word_timings
from adcomposer.services.prompt.types import CharacterAlignment, MusicRequest, SentenceTiming
from adcomposer.services.shared.config import DEFAULT_SETTINGS_PATH, Config, get_config
from adcomposer.services.timing import musical_timing as mt

logger = logging.getLogger("adcomposer.composition.engine")

# Overrides music.default_provider, e.g. ADCOMPOSER_MUSIC_PROVIDER=elevenlabs in .env
PROVIDER_ENV_VAR = "ADCOMPOSER_MUSIC_PROVIDER"


@dataclass(frozen=True)
class CompositionResult:
    """Everything downstream audio assembly needs for one ad."""
    response: ProductionResponse
    format_violations: List[str]
    time_signature: str
    grid: mt.BarGrid
    music_plan: mt.MusicDurationPlan
    tempo_fit: Optional[mt.TempoFit]
    request: MusicRequest
    used_fallback: bool = False
    fallback_reason: Optional[str] = None


class CompositionEngine:
    """Runs validation, timing and prompt composition with configured limits."""

    def __init__(self, config: Optional[Config] = None):
        self.config = config or get_config(str(DEFAULT_SETTINGS_PATH))
        cfg = self.config
        self.provider: str = cfg.get_env(PROVIDER_ENV_VAR) or cfg.get("music.default_provider", "suno")
        self.max_gen_duration = float(cfg.get("music.max_gen_seconds", mt.LONG_FORM_MAX_GEN_DURATION))
        self.default_time_signature: str = cfg.get(
            "timing.default_time_signature", mt.DEFAULT_TIME_SIGNATURE,
        )
        self.bpm_search_radius = int(cfg.get("timing.bpm_search_radius", mt.DEFAULT_BPM_SEARCH_RADIUS))
        self.alignment_tolerance_bars = float(
            cfg.get("timing.alignment_tolerance_bars", mt.ALIGNMENT_TOLERANCE_BARS)
        )
        self.validator = AdFormatValidator.from_config(cfg)
        self.composer = PromptComposer(
            provider=self.provider,
            provider_limits=cfg.get("music.provider_limits"),
        )
        # Fail fast on a bad signature in settings
        mt.beats_per_bar(self.default_time_signature)

    def compose(
        self,
        raw_text: str,
        voice_duration: Optional[float] = None,
        sentence_timings: Optional[Sequence[SentenceTiming]] = None,
        alignment: Optional[CharacterAlignment] = None,
        fallback_prompt: Optional[str] = None,
        fallback_duration: float = 30.0,
        fallback_tone: str = "professional",
        provider: Optional[str] = None,
    ) -> CompositionResult:
        """Turn raw model output into a composed music request.

        Args:
            raw_text: Model output expected to hold one JSON production plan.
            voice_duration: Measured speech length; defaults to the plan's duration.
            sentence_timings: Per-sentence speech timing for timestamped cues.
            alignment: Character-level speech alignment of the script. Used for
                sentence timings when none are given and for the voice
                duration when that is not measured.
            fallback_prompt: When given, a parse/validation failure is replaced
                by the deterministic fallback plan instead of raised.
            fallback_duration, fallback_tone: Length and tone of that fallback plan.
            provider: Music provider budget to fit (default from settings).

        Raises:
            ParseError / SchemaViolation: bad model output and no fallback_prompt.
        """
        used_fallback = False
        reason: Optional[str] = None
        try:
            response = parse_and_validate(raw_text)
        except ProductionResponseError as e:
            if fallback_prompt is None:
                raise
            reason = str(e)
            logger.warning("Model output unusable, substituting fallback plan: %s", reason)
            response = create_fallback_response(fallback_prompt, fallback_duration, fallback_tone)
            used_fallback = True
        return self.compose_response(
            response,
            voice_duration=voice_duration,
            sentence_timings=sentence_timings,
            alignment=alignment,
            provider=provider,
            used_fallback=used_fallback,
            fallback_reason=reason,
        )

    def compose_response(
        self,
        response: ProductionResponse,
        voice_duration: Optional[float] = None,
        sentence_timings: Optional[Sequence[SentenceTiming]] = None,
        alignment: Optional[CharacterAlignment] = None,
        provider: Optional[str] = None,
        used_fallback: bool = False,
        fallback_reason: Optional[str] = None,
    ) -> CompositionResult:
        """Validate structure, plan timing and compose for an already validated plan."""
        violations: List[str] = []
        cultural_context = None
        if response.ad_format is not None:
            violations = self.validator.validate(response.ad_format)
            cultural_context = response.ad_format.cultural_context

        music = response.music
        time_signature = time_signature_for_genre(music.genre, cultural_context, self.default_time_signature)
        bpm = music.target_bpm
        tempo_range = tempo_range_for_genre(music.genre, cultural_context)
        if tempo_range is not None and not tempo_range[0] <= bpm <= tempo_range[1]:
            logger.info("%s BPM is outside the %s-%s BPM range typical for '%s'",
                        bpm, tempo_range[0], tempo_range[1], music.genre or cultural_context)

        if alignment is not None and not sentence_timings:
            sentence_timings = alignment_to_sentence_timings(response.script, alignment) or None
        duration = response.context.duration_seconds
        if voice_duration is None and alignment is not None:
            words = alignment_to_word_timings(alignment)
            if words:
                voice_duration = words[-1].end_seconds
        voice = voice_duration if voice_duration is not None else duration

        grid = mt.build_bar_grid(bpm, duration, time_signature)
        plan = mt.plan_music_duration(voice, bpm, music.genre, self.max_gen_duration, time_signature)
        try:
            tempo_fit = mt.optimize_bpm_for_duration(bpm, duration, self.bpm_search_radius, time_signature)
        except ValueError as e:
            logger.info("No tempo fit near %s BPM: %s", bpm, e)
            tempo_fit = None

        request = self.composer.compose_for_response(
            response,
            sentence_timings=sentence_timings,
            cultural_enrichment=cultural_enrichment(music.genre, cultural_context),
            timing=plan.pre_post_roll,
            time_signature=time_signature,
            provider=provider,
        )
        logger.info(
            "Composed %s request: %d bars of %s at %s BPM, %d violation(s)%s",
            request.provider, grid.total_bars, time_signature, bpm, len(violations),
            " [fallback]" if used_fallback else "",
        )
        return CompositionResult(
            response=response,
            format_violations=violations,
            time_signature=time_signature,
            grid=grid,
            music_plan=plan,
            tempo_fit=tempo_fit,
            request=request,
            used_fallback=used_fallback,
            fallback_reason=fallback_reason,
        )

    def align_generated_music(
        self,
        result: CompositionResult,
        music_duration: float,
        voice_duration: Optional[float] = None,
    ) -> mt.MusicAlignment:
        """Decide use-as-is / trim / loop for a track generated from ``result``."""
        voice = voice_duration if voice_duration is not None else result.response.context.duration_seconds
        return mt.align_music_to_voice(
            music_duration,
            voice,
            result.response.music.target_bpm,
            result.response.music.genre,
            result.time_signature,
            self.alignment_tolerance_bars,
        )
