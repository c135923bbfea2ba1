"""Data types for segment-based ad formats."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

VOICE_SEGMENT_TYPES = frozenset({"voiceover_with_music", "voiceover_only"})


@dataclass(frozen=True)
class VoiceoverLayer:
    text: str
    voice_style: Optional[str] = None    # "excited" | "whisper" | "warm" | etc.


@dataclass(frozen=True)
class MusicLayer:
    description: str
    behavior: str                         # "full" | "ducked" | "building" | etc.
    volume: float                         # 0.0-1.0 relative
    cultural_style: Optional[str] = None  # "Punjabi folk", "Latin jazz"
    instruments: Optional[Tuple[str, ...]] = None


@dataclass(frozen=True)
class SfxLayer:
    description: str
    volume: Optional[float] = None


@dataclass(frozen=True)
class CreativeSegment:
    """One slot of the ad timeline and the audio layers active in it."""
    segment_index: int
    type: str                             # "music_solo" | "voiceover_with_music" | etc.
    label: str
    duration: float
    voiceover: Optional[VoiceoverLayer]
    music: Optional[MusicLayer]
    sfx: Optional[SfxLayer]
    transition: str                       # "crossfade" | "hard_cut" | etc.
    transition_duration: Optional[float] = None

    @property
    def has_voice(self) -> bool:
        return self.type in VOICE_SEGMENT_TYPES


@dataclass(frozen=True)
class CreativePlan:
    """A filled-in ad format: ordered segments plus overall direction."""
    template_id: str
    template_name: str
    total_duration: float
    segments: Tuple[CreativeSegment, ...]
    overall_music_direction: str = ""
    cultural_context: Optional[str] = None


@dataclass(frozen=True)
class SegmentSlot:
    """Skeleton slot of a built-in template (constraints, not content)."""
    type: str
    label: str
    min_duration: float
    max_duration: float
    music_behavior: str
    required: bool
    transition: str


@dataclass(frozen=True)
class AdFormatTemplate:
    id: str
    name: str
    description: str
    slots: Tuple[SegmentSlot, ...]
    min_total: float
    max_total: float
    best_for: Tuple[str, ...]
