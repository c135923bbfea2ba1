"""Pydantic models for the production plan a generative text model returns.

The models describe the wire shape only: required fields, enumerations and
the ranges that make a response unusable. Defaults and safe-range clamping
are applied afterwards by :mod:`adcomposer.services.production.sanitizer`.
"""
from __future__ import annotations

from typing import Annotated, Any, List, Literal, Optional

from pydantic import Field, field_validator

from adcomposer.services.adformat.schema import CreativePlanSchema, WireModel

AdCategory = Literal[
    "retail", "automotive", "tech", "finance", "food",
    "healthcare", "entertainment", "real_estate", "other",
]
Pace = Literal["slow", "moderate", "fast"]
FadeCurve = Literal["linear", "exp", "qsin"]
VolumeSegmentType = Literal["voice_up", "music_up", "voice_down", "music_down"]
Intensity = Literal["subtle", "moderate", "strong"]
MixPreset = Literal["voiceProminent", "balanced", "musicEmotional"]
MusicalFunction = Literal["hook", "build", "peak", "resolve", "transition", "pause"]
IntroType = Literal["ambient_build", "rhythmic_hook", "melodic_theme", "silence_to_entry"]
EndingType = Literal["button", "sustain", "stinger", "decay"]

_GENDERS = ("male", "female", "neutral")


class VoiceHintsSchema(WireModel):
    gender: Optional[str] = None
    age_range: Optional[str] = None
    accent: Optional[str] = None

    @field_validator("gender", mode="before")
    @classmethod
    def _lenient_gender(cls, value: Any) -> Optional[str]:
        # Models invent values like "any" or "Female voice"; treat those as absent
        if isinstance(value, str) and value.strip().lower() in _GENDERS:
            return value.strip().lower()
        return None


class ContextSchema(WireModel):
    ad_category: AdCategory
    tone: str
    emotion: str
    pace: Pace
    duration_seconds: Annotated[float, Field(gt=0)]
    target_words_per_minute: Optional[float] = None
    voice_hints: Optional[VoiceHintsSchema] = None


class ArcSegmentSchema(WireModel):
    start_seconds: float
    end_seconds: float
    label: str
    music_prompt: str
    target_bpm: Optional[float] = Field(default=None, alias="targetBPM")
    energy_level: Optional[Annotated[float, Field(ge=1, le=10)]] = None


class InstrumentationSchema(WireModel):
    drums: str
    bass: str
    mids: str
    effects: str


class ButtonEndingSchema(WireModel):
    type: str
    timing: Optional[str] = None
    description: Optional[str] = None


class MusicalStructureSchema(WireModel):
    intro_type: IntroType
    intro_bars: Annotated[int, Field(ge=1, le=4)]
    body_feel: str
    peak_moment: str
    ending_type: EndingType
    outro_bars: Annotated[int, Field(ge=1, le=4)]
    key_signature: Optional[str] = None
    phrase_length: Optional[Annotated[int, Field(ge=2, le=8)]] = None


class MusicSchema(WireModel):
    prompt: str
    target_bpm: Optional[float] = Field(default=None, alias="targetBPM")
    genre: Optional[str] = None
    mood: Optional[str] = None
    composer_direction: Optional[str] = None
    instrumentation: Optional[InstrumentationSchema] = None
    arc: Optional[Annotated[List[ArcSegmentSchema], Field(max_length=4)]] = None
    button_ending: Optional[ButtonEndingSchema] = None
    musical_structure: Optional[MusicalStructureSchema] = None


class FadesSchema(WireModel):
    fade_in_seconds: Optional[float] = None
    fade_out_seconds: Optional[float] = None
    curve: Optional[FadeCurve] = None


class VolumeSegmentSchema(WireModel):
    start_seconds: float
    end_seconds: float
    type: VolumeSegmentType
    intensity: Optional[Intensity] = None


class VolumeSchema(WireModel):
    voice_volume: Optional[float] = None
    music_volume: Optional[float] = None
    segments: Optional[List[VolumeSegmentSchema]] = None


class SentenceCueSchema(WireModel):
    index: Annotated[int, Field(ge=0)]
    music_cue: Optional[str] = None
    music_volume_multiplier: Optional[float] = None
    music_direction: Optional[str] = None
    musical_function: Optional[MusicalFunction] = None


class SoundDesignCueSchema(WireModel):
    timestamp: float
    sound: str
    purpose: str


class ProductionResponseSchema(WireModel):
    version: Optional[str] = None
    script: str
    context: ContextSchema
    music: MusicSchema
    fades: Optional[FadesSchema] = None
    volume: Optional[VolumeSchema] = None
    mix_preset: Optional[MixPreset] = None
    sentence_cues: Optional[List[SentenceCueSchema]] = None
    sound_design: Optional[Annotated[List[SoundDesignCueSchema], Field(max_length=5)]] = None
    ad_format: Optional[CreativePlanSchema] = None
