"""Data types for the music-generation prompt composer."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Tuple

# Provider character budgets for the composition text (custom mode)
PROVIDER_LIMITS = MappingProxyType({
    "suno": 1000,
    "elevenlabs": 450,
})
TITLE_MAX_LENGTH = 80
NON_CUSTOM_PROMPT_MAX_LENGTH = 500


class SectionPriority(str, Enum):
    """Drop order of a prompt section; HEAD and CLOSING are never dropped."""
    HEAD = "head"
    BODY = "body"
    TAIL = "tail"
    CLOSING = "closing"

    @property
    def droppable(self) -> bool:
        return self in (SectionPriority.BODY, SectionPriority.TAIL)


@dataclass(frozen=True)
class PromptSection:
    """One sentence-group of the composition text."""
    name: str                  # "tempo" | "instrumentation" | "arc" | "fades" | etc.
    text: str
    priority: SectionPriority


@dataclass(frozen=True)
class SentenceTiming:
    """Speech timing of one script sentence."""
    text: str
    start_seconds: float
    end_seconds: float


@dataclass(frozen=True)
class WordTiming:
    text: str
    start_seconds: float
    end_seconds: float


@dataclass(frozen=True)
class CharacterAlignment:
    """Character-level timestamps as returned by a speech provider."""
    characters: Tuple[str, ...]
    start_times: Tuple[float, ...]
    end_times: Tuple[float, ...]


@dataclass(frozen=True)
class MusicRequest:
    """Request body for the music provider plus a record of what was cut."""
    custom_mode: bool
    title: str = ""
    composition_text: str = ""
    prompt: str = ""
    provider: str = "suno"
    sections: Tuple[PromptSection, ...] = ()
    dropped_sections: Tuple[str, ...] = ()
    truncated: bool = False

    @property
    def text(self) -> str:
        """Whatever text the provider will actually receive."""
        return self.composition_text if self.custom_mode else self.prompt

    def to_payload(self) -> Dict[str, Any]:
        if self.custom_mode:
            return {
                "customMode": True,
                "title": self.title,
                "compositionText": self.composition_text,
            }
        return {"customMode": False, "prompt": self.prompt}


@dataclass(frozen=True)
class CulturalStyle:
    """Musical idiom a genre or cultural context maps onto."""
    id: str
    name: str
    instruments: Tuple[str, ...]
    rhythm_pattern: str
    scales: Tuple[str, ...]
    tempo_range: Tuple[int, int]
    time_signature: str
    keywords: Tuple[str, ...]
    prompt_fragment: str

    def enrichment_text(self) -> str:
        parts = [self.prompt_fragment, f"Rhythm: {self.rhythm_pattern}."]
        if self.scales:
            parts.append(f"Scale: {self.scales[0]}.")
        return " ".join(parts)
