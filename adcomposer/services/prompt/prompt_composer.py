"""PromptComposer — one length-budgeted text prompt for the music provider.

Section order (canonical)::

    HEAD     tempo/genre/key/mood → instrumentation → composer direction
    BODY     context → description → cultural style → arc → structure → timing → button ending
    TAIL     fades → volume → mix preset → sentence cues
    CLOSING  continuity instructions

HEAD and CLOSING always ship. BODY and TAIL sections are appended greedily in
that order while the text fits the provider budget; the first section that
does not fit is dropped together with everything after it.
"""
from __future__ import annotations

import logging
from typing import List, Optional, Sequence, Tuple

from adcomposer.services.production.types import (
    AdContext, Fades, MusicDescriptor, ProductionResponse, SentenceCue, Volume,
)
from adcomposer.services.prompt.types import (
    NON_CUSTOM_PROMPT_MAX_LENGTH, PROVIDER_LIMITS, TITLE_MAX_LENGTH,
    MusicRequest, PromptSection, SectionPriority, SentenceTiming,
)
from adcomposer.services.timing.musical_timing import (
    DEFAULT_TIME_SIGNATURE, PrePostRoll, bar_duration,
)

logger = logging.getLogger("adcomposer.prompt.prompt_composer")

DEFAULT_GENRE = "corporate"
DEFAULT_MOOD = "professional"
DEFAULT_ENERGY = 5

CLOSING_TEXT = (
    "IMPORTANT: Continuous flowing instrumental music, no vocals, no abrupt stops. "
    "Follow the speech pacing with smooth transitions and support the voice without competing."
)

_MIX_PRESET_NOTES = {
    "voiceProminent": "voice prominent, music under",
    "balanced": "balanced",
    "musicEmotional": "music more present",
}


def _num(value: float) -> str:
    return f"{value:g}"


def _squash(text: str) -> str:
    return " ".join(text.split())


class PromptComposer:
    """Builds the music provider request for one ad.

    Usage::

        composer = PromptComposer()
        request = composer.compose_for_response(response, timing=roll)
        short = composer.fit_for_provider(request, "elevenlabs")
    """

    def __init__(self, provider: str = "suno", provider_limits=None):
        self.provider_limits = dict(provider_limits or PROVIDER_LIMITS)
        self.provider = provider
        self._budget(provider)

    # ── public ────────────────────────────────────────────────────────────────

    def compose(
        self,
        music: MusicDescriptor,
        duration_seconds: float,
        context: Optional[AdContext] = None,
        fades: Optional[Fades] = None,
        volume: Optional[Volume] = None,
        mix_preset: Optional[str] = None,
        sentence_cues: Optional[Sequence[SentenceCue]] = None,
        sentence_timings: Optional[Sequence[SentenceTiming]] = None,
        cultural_enrichment: Optional[str] = None,
        timing: Optional[PrePostRoll] = None,
        time_signature: str = DEFAULT_TIME_SIGNATURE,
        provider: Optional[str] = None,
    ) -> MusicRequest:
        """Compose a MusicRequest for ``provider`` (default: the composer's own).

        Returns a custom-mode request when the descriptor carries a prompt, an
        arc or a composer direction; otherwise a short comma-joined prompt.
        """
        provider = provider or self.provider
        budget = self._budget(provider)
        genre = music.genre or DEFAULT_GENRE
        mood = music.mood or DEFAULT_MOOD

        has_content = bool(music.prompt.strip() or music.arc or (music.composer_direction or "").strip())
        if not has_content:
            parts = [f"targetBPM {_num(music.target_bpm)}", genre, mood,
                     "instrumental", "no vocals", "ad background"]
            prompt = ", ".join(parts)[:min(budget, NON_CUSTOM_PROMPT_MAX_LENGTH)]
            return MusicRequest(custom_mode=False, prompt=prompt, provider=provider)

        sections = self.build_sections(
            music, duration_seconds,
            context=context,
            fades=fades,
            volume=volume,
            mix_preset=mix_preset,
            sentence_cues=sentence_cues,
            sentence_timings=sentence_timings,
            cultural_enrichment=cultural_enrichment,
            timing=timing,
            time_signature=time_signature,
        )
        title = f"Ad {_num(duration_seconds)}s {genre}"[:TITLE_MAX_LENGTH]
        return self._assemble(sections, title, provider)

    def compose_for_response(
        self,
        response: ProductionResponse,
        sentence_timings: Optional[Sequence[SentenceTiming]] = None,
        cultural_enrichment: Optional[str] = None,
        timing: Optional[PrePostRoll] = None,
        time_signature: str = DEFAULT_TIME_SIGNATURE,
        provider: Optional[str] = None,
    ) -> MusicRequest:
        """Compose from a validated ProductionResponse."""
        return self.compose(
            response.music,
            response.context.duration_seconds,
            context=response.context,
            fades=response.fades,
            volume=response.volume,
            mix_preset=response.mix_preset,
            sentence_cues=response.sentence_cues,
            sentence_timings=sentence_timings,
            cultural_enrichment=cultural_enrichment,
            timing=timing,
            time_signature=time_signature,
            provider=provider,
        )

    def fit_for_provider(self, request: MusicRequest, provider: str) -> MusicRequest:
        """Re-apply the budget of another provider to an already composed request."""
        if not request.custom_mode:
            limit = min(self._budget(provider), NON_CUSTOM_PROMPT_MAX_LENGTH)
            return MusicRequest(custom_mode=False, prompt=request.prompt[:limit], provider=provider)
        return self._assemble(request.sections, request.title, provider)

    def build_sections(
        self,
        music: MusicDescriptor,
        duration_seconds: float,
        context: Optional[AdContext] = None,
        fades: Optional[Fades] = None,
        volume: Optional[Volume] = None,
        mix_preset: Optional[str] = None,
        sentence_cues: Optional[Sequence[SentenceCue]] = None,
        sentence_timings: Optional[Sequence[SentenceTiming]] = None,
        cultural_enrichment: Optional[str] = None,
        timing: Optional[PrePostRoll] = None,
        time_signature: str = DEFAULT_TIME_SIGNATURE,
    ) -> List[PromptSection]:
        """Every candidate section in priority order, before any budgeting."""
        head, body, tail = SectionPriority.HEAD, SectionPriority.BODY, SectionPriority.TAIL
        sections: List[PromptSection] = []

        def add(name: str, text: Optional[str], priority: SectionPriority) -> None:
            if text:
                sections.append(PromptSection(name, _squash(text), priority))

        add("tempo", self._tempo_line(music, time_signature), head)
        if music.instrumentation:
            inst = music.instrumentation
            add("instrumentation",
                "Instrumentation (voice-supportive, leaves 1-4kHz clear): "
                f"drums: {inst.drums}. bass: {inst.bass}. mids: {inst.mids}. effects: {inst.effects}.",
                head)
        if music.composer_direction and music.composer_direction.strip():
            add("direction", f"Direction: {music.composer_direction.strip()}", head)

        if context:
            add("context",
                f"Ad context: {context.ad_category}, {context.tone}, {context.emotion}, "
                f"pace {context.pace}. Duration {_num(duration_seconds)}s.",
                body)
        add("description", f"Music prompt: {music.prompt.strip() or 'Instrumental ad background.'}", body)
        if cultural_enrichment:
            add("cultural_style", f"Cultural style: {cultural_enrichment}", body)
        add("arc", self._arc_text(music, duration_seconds), body)
        add("structure", self._structure_text(music), body)
        if timing:
            add("timing", self._timing_text(timing, music.target_bpm, time_signature), body)
        if music.button_ending:
            be = music.button_ending
            timing_note = f" timing: {be.timing}" if be.timing else ""
            desc = f" - {be.description}" if be.description else ""
            add("button_ending", f"ButtonEnding: {be.type}{timing_note}{desc}. CLEAN ENDING, NO FADE-OUT.", body)

        if fades:
            add("fades",
                f"Fades: fadeInSeconds: {_num(fades.fade_in_seconds)}, "
                f"fadeOutSeconds: {_num(fades.fade_out_seconds)}, curve: {fades.curve}.",
                tail)
        if volume:
            add("volume", self._volume_text(volume), tail)
        if mix_preset:
            note = _MIX_PRESET_NOTES.get(mix_preset, "balanced")
            add("mix_preset", f"mixPreset: {mix_preset} ({note}).", tail)
        add("sentence_cues", self._sentence_text(sentence_cues, sentence_timings, duration_seconds), tail)

        add("closing", CLOSING_TEXT, SectionPriority.CLOSING)
        return sections

    # ── assembly ──────────────────────────────────────────────────────────────

    def _budget(self, provider: str) -> int:
        if provider not in self.provider_limits:
            raise ValueError(
                f"Unknown music provider '{provider}'. Known: {sorted(self.provider_limits)}"
            )
        return self.provider_limits[provider]

    def _assemble(
        self,
        sections: Sequence[PromptSection],
        title: str,
        provider: str,
    ) -> MusicRequest:
        budget = self._budget(provider)
        head = [s.text for s in sections if s.priority == SectionPriority.HEAD]
        closing = [s.text for s in sections if s.priority == SectionPriority.CLOSING]
        optional = [s for s in sections if s.priority.droppable]

        closing_text = " ".join(closing)
        head_text = " ".join(head)
        mandatory_len = len(head_text) + len(closing_text) + (1 if head_text and closing_text else 0)

        if mandatory_len > budget:
            room = budget - len(closing_text) - 1
            if room > 0:
                head_text = head_text[:room].rstrip()
            else:
                head_text = ""
                closing_text = closing_text[:budget].rstrip()
            logger.warning(
                "Mandatory prompt sections need %d chars but %s allows %d; head truncated",
                mandatory_len, provider, budget,
            )
            composition = " ".join(t for t in (head_text, closing_text) if t)
            return MusicRequest(
                custom_mode=True,
                title=title,
                composition_text=composition,
                provider=provider,
                sections=tuple(sections),
                dropped_sections=tuple(s.name for s in optional),
                truncated=True,
            )

        accepted: List[str] = []
        dropped: Tuple[str, ...] = ()
        length = mandatory_len
        for pos, section in enumerate(optional):
            if length + 1 + len(section.text) > budget:
                dropped = tuple(s.name for s in optional[pos:])
                break
            accepted.append(section.text)
            length += 1 + len(section.text)

        if dropped:
            logger.info("Dropped %d prompt section(s) for %s: %s", len(dropped), provider, ", ".join(dropped))

        composition = " ".join(t for t in [head_text, *accepted, closing_text] if t)
        return MusicRequest(
            custom_mode=True,
            title=title,
            composition_text=composition,
            provider=provider,
            sections=tuple(sections),
            dropped_sections=dropped,
        )

    # ── section text ──────────────────────────────────────────────────────────

    @staticmethod
    def _tempo_line(music: MusicDescriptor, time_signature: str) -> str:
        parts = [
            f"genre: {music.genre or DEFAULT_GENRE}.",
            f"targetBPM: {_num(music.target_bpm)}.",
        ]
        if time_signature != DEFAULT_TIME_SIGNATURE:
            parts.append(f"time signature: {time_signature}.")
        structure = music.musical_structure
        if structure and structure.key_signature:
            parts.append(f"key: {structure.key_signature}.")
        parts.append(f"mood: {music.mood or DEFAULT_MOOD}.")
        return " ".join(parts)

    @staticmethod
    def _arc_text(music: MusicDescriptor, duration_seconds: float) -> Optional[str]:
        if not music.arc or len(music.arc) < 2:
            return None
        lines = []
        last = len(music.arc) - 1
        for i, seg in enumerate(music.arc):
            start = max(0.0, seg.start_seconds)
            end = min(duration_seconds, seg.end_seconds)
            bpm = seg.target_bpm if seg.target_bpm is not None else music.target_bpm
            energy = seg.energy_level if seg.energy_level is not None else DEFAULT_ENERGY
            note = "smooth transition to next section" if i < last else "clean ending"
            lines.append(
                f"[{_num(start)}-{_num(end)}s] {seg.label}: {seg.music_prompt.strip()}. "
                f"{_num(bpm)} BPM, energy {_num(energy)}/10. {note}"
            )
        return "Musical arc (continuous flow, no abrupt changes): " + " → ".join(lines)

    @staticmethod
    def _structure_text(music: MusicDescriptor) -> Optional[str]:
        ms = music.musical_structure
        if ms is None:
            return None
        text = (
            f"Structure: {ms.intro_type} intro ({ms.intro_bars} bars), body {ms.body_feel}, "
            f"peak {ms.peak_moment}, {ms.ending_type} ending ({ms.outro_bars} bars)"
        )
        if ms.phrase_length:
            text += f", {ms.phrase_length}-bar phrases"
        return text + "."

    @staticmethod
    def _timing_text(timing: PrePostRoll, bpm: float, time_signature: str) -> str:
        bar = bar_duration(bpm, time_signature)
        return (
            f"Timing: {time_signature} at {_num(bpm)} BPM, {bar:.2f}s per bar. "
            f"{timing.pre_roll_bars}-bar intro before the voice, "
            f"{timing.post_roll_bars}-bar outro after it, "
            f"{timing.total_music_duration:.1f}s total."
        )

    @staticmethod
    def _volume_text(volume: Volume) -> str:
        parts = [f"voiceVolume: {_num(volume.voice_volume)}, musicVolume: {_num(volume.music_volume)}"]
        if volume.segments:
            segs = "; ".join(
                f"[{_num(s.start_seconds)}-{_num(s.end_seconds)}s] type: {s.type}"
                + (f", intensity: {s.intensity}" if s.intensity else "")
                for s in volume.segments
            )
            parts.append(f"segments: {segs}")
        return "Volume: " + ". ".join(parts)

    @staticmethod
    def _sentence_text(
        cues: Optional[Sequence[SentenceCue]],
        timings: Optional[Sequence[SentenceTiming]],
        duration_seconds: float,
    ) -> Optional[str]:
        if not cues:
            return None
        if timings:
            by_index = {c.index: c for c in cues}
            parts = []
            for i, t in enumerate(timings):
                cue = by_index.get(i)
                start = max(0.0, t.start_seconds)
                end = min(duration_seconds, t.end_seconds)
                label = cue.music_cue if cue and cue.music_cue else f"s{i}"
                vol = f" vol {_num(cue.music_volume_multiplier)}" if cue and cue.music_volume_multiplier is not None else ""
                direction = f" {cue.music_direction.strip()}" if cue and cue.music_direction else ""
                parts.append(f"[{start:.2f}-{end:.2f}s] {label}{vol}{direction}")
            return "Sentences: " + "; ".join(parts)

        parts = []
        for c in cues:
            mult = f" volMult:{_num(c.music_volume_multiplier)}" if c.music_volume_multiplier is not None else ""
            func = f" ({c.musical_function})" if c.musical_function else ""
            label = f"s{c.index}:{c.music_cue}" if c.music_cue else f"s{c.index}"
            parts.append(f"{label}{mult}{func}")
        return "SentenceCues: " + ", ".join(parts)
