"""Built-in ad format templates (segment skeletons the text model fills in)."""
from __future__ import annotations

from typing import Optional, Tuple

from adcomposer.services.adformat.types import AdFormatTemplate, SegmentSlot

BUILTIN_TEMPLATES: Tuple[AdFormatTemplate, ...] = (
    AdFormatTemplate(
        id="classic_radio",
        name="Classic Radio",
        description="Music intro, voice over ducked music, music outro with a button ending.",
        slots=(
            SegmentSlot("music_solo", "Music Intro", 1.5, 4, "full", True, "duck_transition"),
            SegmentSlot("voiceover_with_music", "Main Voiceover", 10, 55, "ducked", True, "duck_transition"),
            SegmentSlot("music_solo", "Music Outro", 1, 3, "full", True, "natural"),
        ),
        min_total=15,
        max_total=60,
        best_for=("corporate", "professional services", "general-purpose ads"),
    ),
    AdFormatTemplate(
        id="sfx_driven",
        name="SFX-Driven",
        description="Sound effects carry the transitions; music stays minimal under the voice.",
        slots=(
            SegmentSlot("sfx_hit", "Opening SFX", 0.5, 1.5, "none", True, "hard_cut"),
            SegmentSlot("voiceover_with_music", "Problem / Hook", 4, 10, "ducked", True, "hard_cut"),
            SegmentSlot("sfx_hit", "Transition SFX", 0.3, 1, "none", True, "hard_cut"),
            SegmentSlot("voiceover_with_music", "Solution / Product", 5, 15, "ducked", True, "natural"),
            SegmentSlot("sfx_hit", "Action SFX", 0.3, 1, "none", False, "hard_cut"),
            SegmentSlot("voiceover_with_music", "Call to Action", 3, 8, "building", True, "natural"),
        ),
        min_total=15,
        max_total=45,
        best_for=("tech products", "mobile apps", "SaaS", "gaming"),
    ),
    AdFormatTemplate(
        id="high_energy_sale",
        name="High Energy Sale",
        description="Fast-paced promotion format: music burst, SFX hits, urgent voice, punchy ending.",
        slots=(
            SegmentSlot("music_solo", "Energy Burst Intro", 1.5, 3, "full", True, "hard_cut"),
            SegmentSlot("sfx_hit", "Attention SFX", 0.3, 1, "none", False, "hard_cut"),
            SegmentSlot("voiceover_with_music", "Headline / Offer", 3, 10, "ducked", True, "hard_cut"),
            SegmentSlot("sfx_hit", "Deal SFX", 0.3, 0.8, "none", True, "hard_cut"),
            SegmentSlot("voiceover_with_music", "Details / Urgency", 4, 12, "ducked", True, "natural"),
            SegmentSlot("voiceover_with_music", "Urgent CTA", 2, 6, "building", True, "hard_cut"),
            SegmentSlot("music_solo", "Punchy Ending", 0.5, 2, "full", True, "natural"),
        ),
        min_total=15,
        max_total=45,
        best_for=("sales and promotions", "limited-time offers", "event announcements"),
    ),
)


def get_template(template_id: str) -> Optional[AdFormatTemplate]:
    """Look up a built-in template by ID."""
    for template in BUILTIN_TEMPLATES:
        if template.id == template_id:
            return template
    return None


def template_ids() -> Tuple[str, ...]:
    return tuple(t.id for t in BUILTIN_TEMPLATES)


def template_summary() -> str:
    """Compact one-block-per-template summary for the script-writing prompt."""
    blocks = []
    for t in BUILTIN_TEMPLATES:
        flow = " → ".join(
            f"{s.label} ({s.type}, {s.min_duration:g}-{s.max_duration:g}s)" for s in t.slots
        )
        blocks.append(
            f'ID: "{t.id}" — {t.name}\n'
            f"  Use for: {', '.join(t.best_for)}\n"
            f"  Flow: {flow}"
        )
    return "\n\n".join(blocks)
