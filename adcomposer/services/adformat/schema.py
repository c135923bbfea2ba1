"""Pydantic models for the ``adFormat`` block of generative-model output.

These describe the wire shape (camelCase keys, nullable facets) and convert
to the frozen dataclasses in :mod:`adcomposer.services.adformat.types`.
"""
from __future__ import annotations

from typing import Annotated, Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from adcomposer.services.adformat.types import (
    CreativePlan, CreativeSegment, MusicLayer, SfxLayer, VoiceoverLayer,
)

SegmentType = Literal["music_solo", "voiceover_with_music", "voiceover_only", "sfx_hit", "silence"]
MusicBehavior = Literal["full", "ducked", "building", "resolving", "accent", "none"]
SegmentTransition = Literal["crossfade", "hard_cut", "duck_transition", "natural"]

UnitVolume = Annotated[float, Field(ge=0.0, le=1.0)]


class WireModel(BaseModel):
    """Base for wire models: camelCase aliases, unknown keys ignored.

    ``json.loads`` accepts NaN, Infinity and overflowing literals such as
    ``1e999``; those are rejected here as field errors.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        allow_inf_nan=False,
    )


class VoiceoverLayerSchema(WireModel):
    text: str
    voice_style: Optional[str] = None

    def to_layer(self) -> VoiceoverLayer:
        return VoiceoverLayer(text=self.text, voice_style=self.voice_style)


class MusicLayerSchema(WireModel):
    description: str
    behavior: MusicBehavior
    volume: UnitVolume
    cultural_style: Optional[str] = None
    instruments: Optional[List[str]] = None

    def to_layer(self) -> MusicLayer:
        return MusicLayer(
            description=self.description,
            behavior=self.behavior,
            volume=self.volume,
            cultural_style=self.cultural_style,
            instruments=tuple(self.instruments) if self.instruments is not None else None,
        )


class SfxLayerSchema(WireModel):
    description: str
    volume: Optional[UnitVolume] = None

    def to_layer(self) -> SfxLayer:
        return SfxLayer(description=self.description, volume=self.volume)


class CreativeSegmentSchema(WireModel):
    segment_index: Annotated[int, Field(ge=0)]
    type: SegmentType
    label: str = ""
    duration: Annotated[float, Field(ge=0.1, le=120)]
    voiceover: Optional[VoiceoverLayerSchema] = None
    music: Optional[MusicLayerSchema] = None
    sfx: Optional[SfxLayerSchema] = None
    transition: SegmentTransition = "natural"
    transition_duration: Optional[Annotated[float, Field(ge=0, le=5)]] = None

    def to_segment(self) -> CreativeSegment:
        return CreativeSegment(
            segment_index=self.segment_index,
            type=self.type,
            label=self.label,
            duration=self.duration,
            voiceover=self.voiceover.to_layer() if self.voiceover else None,
            music=self.music.to_layer() if self.music else None,
            sfx=self.sfx.to_layer() if self.sfx else None,
            transition=self.transition,
            transition_duration=self.transition_duration,
        )


class CreativePlanSchema(WireModel):
    template_id: str
    template_name: Optional[str] = None
    total_duration: Annotated[float, Field(ge=5, le=300)]
    segments: Annotated[List[CreativeSegmentSchema], Field(min_length=1, max_length=20)]
    overall_music_direction: Optional[str] = None
    cultural_context: Optional[str] = None

    def to_plan(self) -> CreativePlan:
        return CreativePlan(
            template_id=self.template_id,
            template_name=self.template_name or self.template_id,
            total_duration=self.total_duration,
            segments=tuple(s.to_segment() for s in self.segments),
            overall_music_direction=self.overall_music_direction or "",
            cultural_context=self.cultural_context,
        )


def plan_to_payload(plan: CreativePlan) -> Dict[str, Any]:
    """Serialize a CreativePlan back to its camelCase wire shape."""
    segments: List[Dict[str, Any]] = []
    for seg in plan.segments:
        segments.append({
            "segmentIndex": seg.segment_index,
            "type": seg.type,
            "label": seg.label,
            "duration": seg.duration,
            "voiceover": None if seg.voiceover is None else {
                "text": seg.voiceover.text,
                "voiceStyle": seg.voiceover.voice_style,
            },
            "music": None if seg.music is None else {
                "description": seg.music.description,
                "behavior": seg.music.behavior,
                "volume": seg.music.volume,
                "culturalStyle": seg.music.cultural_style,
                "instruments": list(seg.music.instruments) if seg.music.instruments is not None else None,
            },
            "sfx": None if seg.sfx is None else {
                "description": seg.sfx.description,
                "volume": seg.sfx.volume,
            },
            "transition": seg.transition,
            "transitionDuration": seg.transition_duration,
        })
    return {
        "templateId": plan.template_id,
        "templateName": plan.template_name,
        "totalDuration": plan.total_duration,
        "segments": segments,
        "overallMusicDirection": plan.overall_music_direction,
        "culturalContext": plan.cultural_context,
    }
