"""Cultural music styles — instrumentation, rhythm and scale per idiom.

A generic "Punjabi music" hint produces generic results; matching the genre
and cultural context against a style lets the composer name the instruments,
rhythm cycle and mode a session musician would reach for.
"""
from __future__ import annotations

import logging
from typing import Optional, Tuple

from adcomposer.services.prompt.types import CulturalStyle

logger = logging.getLogger("adcomposer.prompt.cultural_styles")

DEFAULT_TIME_SIGNATURE = "4/4"

CULTURAL_STYLES: Tuple[CulturalStyle, ...] = (
    CulturalStyle(
        id="punjabi",
        name="Punjabi / Bhangra",
        instruments=("dhol", "tumbi", "algoza", "chimta"),
        rhythm_pattern="Chaal rhythm (DHA GE NA GE), syncopated tumbi riffs, chimta accents on strong downbeats",
        scales=("D major pentatonic", "Mixolydian mode (flat 7th)"),
        tempo_range=(85, 170),
        time_signature="4/4",
        keywords=("punjabi", "bhangra", "dhol", "tumbi", "desi"),
        prompt_fragment="Punjabi bhangra with driving dhol chaal rhythm, tumbi hooks, chimta accents.",
    ),
    CulturalStyle(
        id="bollywood",
        name="Bollywood / Hindi Film",
        instruments=("tabla", "sitar", "harmonium", "bansuri", "strings section"),
        rhythm_pattern="Keherwa (8 beats) or Tintal (16 beats) taal cycle led by tabla",
        scales=("Raag Yaman (Lydian)", "Raag Bhairav", "Raag Khamaj"),
        tempo_range=(70, 140),
        time_signature="4/4",
        keywords=("bollywood", "hindi", "indian", "desi", "filmi"),
        prompt_fragment="Bollywood cinematic with tabla groove, sitar ornaments, bansuri melody and string swells.",
    ),
    CulturalStyle(
        id="reggaeton",
        name="Reggaeton",
        instruments=("dembow beat", "808 bass", "synth leads", "hi-hats"),
        rhythm_pattern="Dembow riddim (boom-ch-boom-chick) with syncopated kick and rolling hi-hats",
        scales=("A minor", "D minor pentatonic"),
        tempo_range=(85, 100),
        time_signature="4/4",
        keywords=("reggaeton", "dembow", "latin urban", "perreo"),
        prompt_fragment="Reggaeton with dembow riddim, deep 808 bass, rolling hi-hats, sparse synth hooks.",
    ),
    CulturalStyle(
        id="salsa",
        name="Salsa / Latin Jazz",
        instruments=("congas", "timbales", "piano", "brass section", "bass"),
        rhythm_pattern="Son clave (3-2 or 2-3), piano montuno, congas tumbao, cascara on timbales",
        scales=("C major", "A minor", "Dorian mode"),
        tempo_range=(140, 220),
        time_signature="4/4",
        keywords=("salsa", "latin jazz", "mambo", "son", "cubano"),
        prompt_fragment="Salsa with son clave groove, piano montuno, congas tumbao, brass mambo riffs.",
    ),
    CulturalStyle(
        id="bossa_nova",
        name="Bossa Nova / Brazilian",
        instruments=("nylon guitar", "pandeiro", "bass", "piano"),
        rhythm_pattern="Syncopated bass-chord-chord guitar pattern over a relaxed shaker groove",
        scales=("Dorian mode", "Lydian mode", "Major 7th harmonies"),
        tempo_range=(110, 140),
        time_signature="4/4",
        keywords=("bossa nova", "brazilian", "samba", "mpb"),
        prompt_fragment="Bossa nova with fingerpicked nylon guitar, pandeiro groove, walking bass, jazz harmonies.",
    ),
    CulturalStyle(
        id="japanese",
        name="Japanese Traditional",
        instruments=("koto", "shakuhachi", "taiko", "shamisen"),
        rhythm_pattern="Ma (space) as a compositional element, asymmetric phrasing, taiko accents on peaks",
        scales=("In scale (Japanese minor pentatonic)", "Yo scale (major pentatonic)"),
        tempo_range=(60, 120),
        time_signature="4/4",
        keywords=("japanese", "koto", "shakuhachi", "taiko", "zen"),
        prompt_fragment="Japanese aesthetic with koto pentatonic phrases, breathy shakuhachi, sparse taiko accents.",
    ),
    CulturalStyle(
        id="arabic",
        name="Arabic / Middle Eastern",
        instruments=("oud", "darbuka", "ney", "qanun", "riq"),
        rhythm_pattern="Maqsoum (DUM tek tek DUM tek) or Saidi with intricate darbuka fills",
        scales=("Maqam Hijaz", "Maqam Bayati", "Maqam Nahawand"),
        tempo_range=(80, 140),
        time_signature="4/4",
        keywords=("arabic", "middle eastern", "oud", "maqam", "khaleeji", "egyptian"),
        prompt_fragment="Arabic maqam with oud ornaments, darbuka maqsoum rhythm, soulful ney phrases.",
    ),
    CulturalStyle(
        id="celtic",
        name="Celtic / Irish",
        instruments=("fiddle", "tin whistle", "bodhran", "uilleann pipes", "acoustic guitar"),
        rhythm_pattern="Jig or reel patterns, bodhran drives the pulse with ornamental rolls and cuts",
        scales=("Dorian mode", "Mixolydian mode", "Ionian (major)"),
        tempo_range=(100, 160),
        time_signature="6/8",
        keywords=("celtic", "irish", "scottish", "folk", "fiddle", "gaelic"),
        prompt_fragment="Celtic with fiddle reels, tin whistle melody, bodhran pulse, DADGAD guitar.",
    ),
    CulturalStyle(
        id="lo_fi",
        name="Lo-Fi / Chill Hop",
        instruments=("vinyl crackle", "Rhodes", "muted drums", "bass", "tape hiss"),
        rhythm_pattern="Laid-back boom-bap sitting slightly behind the beat, roughly 60% swing",
        scales=("Major 7th chords", "Minor 9th chords", "Jazz voicings"),
        tempo_range=(70, 90),
        time_signature="4/4",
        keywords=("lo-fi", "lofi", "chill hop", "study beats", "chill"),
        prompt_fragment="Lo-fi chill hop with vinyl crackle, Rhodes jazz chords, laid-back boom-bap drums.",
    ),
)


def match_cultural_style(genre: Optional[str], cultural_context: Optional[str] = None) -> Optional[CulturalStyle]:
    """Return the best-matching style, or None.

    Each keyword found in ``"<genre> <context>"`` scores its own length, so
    specific multi-word keywords beat short generic ones.
    """
    search_text = f"{genre or ''} {cultural_context or ''}".lower()
    if not search_text.strip():
        return None

    best: Optional[CulturalStyle] = None
    best_score = 0
    for style in CULTURAL_STYLES:
        score = sum(len(k) for k in style.keywords if k in search_text)
        if score > best_score:
            best, best_score = style, score

    if best is not None:
        logger.debug("Cultural style matched: %s (score %d)", best.name, best_score)
    return best


def cultural_enrichment(genre: Optional[str], cultural_context: Optional[str] = None) -> Optional[str]:
    """Prompt fragment + rhythm + first scale of the matched style."""
    style = match_cultural_style(genre, cultural_context)
    return style.enrichment_text() if style else None


def time_signature_for_genre(
    genre: Optional[str],
    cultural_context: Optional[str] = None,
    default: str = DEFAULT_TIME_SIGNATURE,
) -> str:
    style = match_cultural_style(genre, cultural_context)
    return style.time_signature if style else default


def tempo_range_for_genre(
    genre: Optional[str],
    cultural_context: Optional[str] = None,
) -> Optional[Tuple[int, int]]:
    style = match_cultural_style(genre, cultural_context)
    return style.tempo_range if style else None


def cultural_style_ids() -> Tuple[str, ...]:
    return tuple(s.id for s in CULTURAL_STYLES)
