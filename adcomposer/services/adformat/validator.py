"""AdFormatValidator — structural consistency checks for a CreativePlan.

Violations are returned as data, never raised: the caller decides whether to
auto-repair, regenerate or reject the plan.
"""
from __future__ import annotations

import logging
from types import MappingProxyType
from typing import FrozenSet, List, Tuple

from adcomposer.services.adformat.types import CreativePlan, CreativeSegment
from adcomposer.services.shared.config import Config

logger = logging.getLogger("adcomposer.adformat.validator")

# Segment durations may drift from the declared total by rounding
DURATION_SUM_TOLERANCE = 1.0
# Longest acceptable music-only intro/outro
MUSIC_SOLO_MAX_DURATION = 5.0

MUSIC_GAP_MESSAGE = "music-only gap between voiceover segments"

# type -> (layers that must be present, layers that must be absent)
_LAYER_RULES = MappingProxyType({
    "music_solo": (frozenset({"music"}), frozenset({"voiceover"})),
    "voiceover_with_music": (frozenset({"voiceover", "music"}), frozenset()),
    "voiceover_only": (frozenset({"voiceover"}), frozenset({"music"})),
    "sfx_hit": (frozenset({"sfx"}), frozenset({"voiceover"})),
    "silence": (frozenset(), frozenset({"voiceover", "music", "sfx"})),
})


class AdFormatValidator:
    """Checks a CreativePlan for timeline consistency.

    Usage::

        validator = AdFormatValidator()
        violations = validator.validate(plan)
        if violations:
            ...  # repair, regenerate or reject
    """

    def __init__(
        self,
        duration_tolerance: float = DURATION_SUM_TOLERANCE,
        music_solo_max_duration: float = MUSIC_SOLO_MAX_DURATION,
    ):
        self.duration_tolerance = duration_tolerance
        self.music_solo_max_duration = music_solo_max_duration

    @classmethod
    def from_config(cls, config: Config) -> "AdFormatValidator":
        """Build with the ``adformat.*`` tolerances from settings."""
        return cls(
            duration_tolerance=float(config.get("adformat.duration_tolerance_sec", DURATION_SUM_TOLERANCE)),
            music_solo_max_duration=float(config.get("adformat.music_solo_max_sec", MUSIC_SOLO_MAX_DURATION)),
        )

    def validate(self, plan: CreativePlan) -> List[str]:
        """Return every violation found in ``plan``; an empty list means valid."""
        segments = plan.segments
        violations: List[str] = []
        violations.extend(self._check_indices(segments))
        violations.extend(self._check_duration_sum(segments, plan.total_duration))
        for seg in segments:
            violations.extend(self._check_layers(seg))
        if not any(seg.has_voice for seg in segments):
            violations.append("Ad must have at least one voiceover segment")
        violations.extend(self._check_music_solo_placement(segments))

        if violations:
            logger.info(
                "Plan '%s' has %d structural violation(s)", plan.template_id, len(violations),
            )
        return violations

    # ── checks ────────────────────────────────────────────────────────────────

    @staticmethod
    def _check_indices(segments: Tuple[CreativeSegment, ...]) -> List[str]:
        return [
            f"Segment {i} has segmentIndex={seg.segment_index}, expected {i}"
            for i, seg in enumerate(segments)
            if seg.segment_index != i
        ]

    def _check_duration_sum(
        self,
        segments: Tuple[CreativeSegment, ...],
        total_duration: float,
    ) -> List[str]:
        duration_sum = sum(seg.duration for seg in segments)
        if abs(duration_sum - total_duration) > self.duration_tolerance:
            return [
                f"Segment durations sum to {duration_sum:.1f}s "
                f"but totalDuration is {total_duration}s"
            ]
        return []

    @staticmethod
    def _check_layers(seg: CreativeSegment) -> List[str]:
        present: FrozenSet[str] = frozenset(
            name for name in ("voiceover", "music", "sfx")
            if getattr(seg, name) is not None
        )
        rules = _LAYER_RULES.get(seg.type)
        if rules is None:
            return [f'Segment "{seg.label}" has unknown type {seg.type!r}']
        required, forbidden = rules
        errors = [
            f'Segment "{seg.label}" is {seg.type} but has no {layer}'
            for layer in sorted(required - present)
        ]
        errors.extend(
            f'Segment "{seg.label}" is {seg.type} but has {layer}'
            for layer in sorted(forbidden & present)
        )
        return errors

    def _check_music_solo_placement(self, segments: Tuple[CreativeSegment, ...]) -> List[str]:
        errors: List[str] = []
        last = len(segments) - 1
        for pos, seg in enumerate(segments):
            if seg.type != "music_solo":
                continue
            if seg.duration > self.music_solo_max_duration:
                errors.append(
                    f'Music-only segment "{seg.label}" lasts {seg.duration}s '
                    f"(max {self.music_solo_max_duration}s)"
                )
            if pos in (0, last):
                continue
            voice_before = any(s.has_voice for s in segments[:pos])
            voice_after = any(s.has_voice for s in segments[pos + 1:])
            if voice_before and voice_after:
                errors.append(f'{MUSIC_GAP_MESSAGE} (segment {pos} "{seg.label}")')
            else:
                errors.append(
                    f'Music-only segment {pos} "{seg.label}" must be first or last'
                )
        return errors
