"""Data types for a validated ad production plan.

A ProductionResponse is built once per generation request and never mutated:
every record is a frozen dataclass and every sequence a tuple. Optional
facets are either a full record or ``None``.
"""
from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Optional, Tuple

from adcomposer.services.adformat.types import CreativePlan

DEFAULT_BPM_BY_PACE = MappingProxyType({"slow": 80, "moderate": 100, "fast": 120})


@dataclass(frozen=True)
class VoiceHints:
    gender: Optional[str] = None      # "male" | "female" | "neutral"
    age_range: Optional[str] = None
    accent: Optional[str] = None


@dataclass(frozen=True)
class AdContext:
    ad_category: str                  # "retail" | "tech" | "food" | etc.
    tone: str
    emotion: str
    pace: str                         # "slow" | "moderate" | "fast"
    duration_seconds: float
    target_words_per_minute: Optional[float] = None
    voice_hints: Optional[VoiceHints] = None


@dataclass(frozen=True)
class ArcSegment:
    """A time window of the music track with its own feel."""
    start_seconds: float
    end_seconds: float
    label: str                        # "intro" | "product_intro" | "cta" | etc.
    music_prompt: str
    target_bpm: Optional[float] = None
    energy_level: Optional[float] = None  # 1 (minimal) - 10 (maximum)


@dataclass(frozen=True)
class Instrumentation:
    drums: str
    bass: str
    mids: str
    effects: str


@dataclass(frozen=True)
class ButtonEnding:
    type: str                         # "sustained chord with clean cutoff", "punchy stinger"
    timing: Optional[str] = None
    description: Optional[str] = None


@dataclass(frozen=True)
class MusicalStructure:
    intro_type: str                   # "ambient_build" | "rhythmic_hook" | etc.
    intro_bars: int                   # 1-4
    body_feel: str
    peak_moment: str
    ending_type: str                  # "button" | "sustain" | "stinger" | "decay"
    outro_bars: int                   # 1-4
    key_signature: Optional[str] = None
    phrase_length: Optional[int] = None


@dataclass(frozen=True)
class MusicDescriptor:
    prompt: str
    target_bpm: float
    genre: Optional[str] = None
    mood: Optional[str] = None
    composer_direction: Optional[str] = None
    instrumentation: Optional[Instrumentation] = None
    arc: Optional[Tuple[ArcSegment, ...]] = None
    button_ending: Optional[ButtonEnding] = None
    musical_structure: Optional[MusicalStructure] = None


@dataclass(frozen=True)
class Fades:
    fade_in_seconds: float
    fade_out_seconds: float
    curve: str                        # "linear" | "exp" | "qsin"


@dataclass(frozen=True)
class VolumeSegment:
    start_seconds: float
    end_seconds: float
    type: str                         # "voice_up" | "music_up" | "voice_down" | "music_down"
    intensity: Optional[str] = None


@dataclass(frozen=True)
class Volume:
    voice_volume: float
    music_volume: float
    segments: Optional[Tuple[VolumeSegment, ...]] = None


@dataclass(frozen=True)
class SentenceCue:
    index: int                        # 0 = first sentence
    music_cue: Optional[str] = None
    music_volume_multiplier: Optional[float] = None
    music_direction: Optional[str] = None
    musical_function: Optional[str] = None


@dataclass(frozen=True)
class SoundDesignCue:
    timestamp: float
    sound: str
    purpose: str


@dataclass(frozen=True)
class ProductionResponse:
    """Validated, defaulted and clamped production plan for one ad."""
    version: str
    script: str
    context: AdContext
    music: MusicDescriptor
    fades: Fades
    volume: Volume
    mix_preset: Optional[str] = None
    sentence_cues: Optional[Tuple[SentenceCue, ...]] = None
    sound_design: Optional[Tuple[SoundDesignCue, ...]] = None
    ad_format: Optional[CreativePlan] = None
