"""Shared test fixtures for the ad composer."""
import copy
import json
import shutil
import tempfile
from pathlib import Path
from typing import Any, Dict, Generator

import pytest
import yaml


@pytest.fixture
def tmp_dir() -> Generator[Path, None, None]:
    d = Path(tempfile.mkdtemp())
    yield d
    shutil.rmtree(d, ignore_errors=True)


@pytest.fixture
def sample_settings(tmp_dir: Path) -> Path:
    """Write a minimal settings.yaml to a temp dir and return its path."""
    settings = {
        "logging": {"level": "DEBUG", "file": str(tmp_dir / "test.log")},
        "music": {
            "default_provider": "suno",
            "max_gen_seconds": 480,
            "provider_limits": {"suno": 1000, "elevenlabs": 450},
        },
        "timing": {
            "default_time_signature": "4/4",
            "bpm_search_radius": 5,
            "alignment_tolerance_bars": 0.5,
        },
        "adformat": {"duration_tolerance_sec": 1.0, "music_solo_max_sec": 5.0},
    }
    cfg_path = tmp_dir / "settings.yaml"
    cfg_path.write_text(yaml.dump(settings))
    return cfg_path


# ─────────────────────────────────────────────────────────────────────────────
# Model output fixtures
# ─────────────────────────────────────────────────────────────────────────────

_MINIMAL_PAYLOAD: Dict[str, Any] = {
    "script": "Fresh bread every morning. Visit Main Street Bakery today!",
    "context": {
        "adCategory": "food",
        "tone": "warm",
        "emotion": "comfort",
        "pace": "moderate",
        "durationSeconds": 30,
    },
    "music": {"prompt": "Warm acoustic guitar with light percussion"},
}

_FULL_PAYLOAD: Dict[str, Any] = {
    "version": "1.0",
    "script": "[excited] Summer sale starts now! Everything is half price. Hurry in before Sunday.",
    "context": {
        "adCategory": "retail",
        "tone": "energetic",
        "emotion": "excitement",
        "pace": "fast",
        "durationSeconds": 30,
        "targetWordsPerMinute": 160,
        "voiceHints": {"gender": "female", "ageRange": "25-35", "accent": "neutral"},
    },
    "music": {
        "prompt": "Bright upbeat pop with claps and synth stabs",
        "targetBPM": 120,
        "genre": "pop",
        "mood": "upbeat",
        "composerDirection": "Open with a punchy hook, sit under the offer, lift for the call to action.",
        "instrumentation": {
            "drums": "Tight claps and kick",
            "bass": "Round synth bass",
            "mids": "Plucky synth stabs",
            "effects": "Short room reverb",
        },
        "arc": [
            {"startSeconds": 0, "endSeconds": 10, "label": "intro", "musicPrompt": "Punchy hook",
             "targetBPM": 120, "energyLevel": 7},
            {"startSeconds": 10, "endSeconds": 22, "label": "offer", "musicPrompt": "Groove under voice",
             "energyLevel": 5},
            {"startSeconds": 22, "endSeconds": 30, "label": "cta", "musicPrompt": "Lift and button",
             "energyLevel": 8},
        ],
        "buttonEnding": {"type": "punchy stinger", "timing": "on the final word"},
        "musicalStructure": {
            "introType": "rhythmic_hook",
            "introBars": 2,
            "bodyFeel": "driving four-on-the-floor",
            "peakMoment": "the call to action",
            "endingType": "stinger",
            "outroBars": 1,
            "keySignature": "E major",
            "phraseLength": 4,
        },
    },
    "fades": {"fadeInSeconds": 0.08, "fadeOutSeconds": 0.3, "curve": "exp"},
    "volume": {
        "voiceVolume": 1.0,
        "musicVolume": 0.2,
        "segments": [
            {"startSeconds": 0, "endSeconds": 2, "type": "music_up", "intensity": "strong"},
        ],
    },
    "mixPreset": "balanced",
    "sentenceCues": [
        {"index": 0, "musicCue": "hit", "musicVolumeMultiplier": 1.1, "musicalFunction": "hook"},
        {"index": 2, "musicCue": "lift", "musicalFunction": "peak"},
    ],
    "soundDesign": [{"timestamp": 29.5, "sound": "register ding", "purpose": "Brand button"}],
    "adFormat": {
        "templateId": "classic_radio",
        "templateName": "Classic Radio",
        "totalDuration": 30,
        "segments": [
            {"segmentIndex": 0, "type": "music_solo", "label": "Music Intro", "duration": 2,
             "music": {"description": "Hook", "behavior": "full", "volume": 0.8}},
            {"segmentIndex": 1, "type": "voiceover_with_music", "label": "Main Voiceover", "duration": 26,
             "voiceover": {"text": "Summer sale starts now!"},
             "music": {"description": "Groove", "behavior": "ducked", "volume": 0.3}},
            {"segmentIndex": 2, "type": "music_solo", "label": "Music Outro", "duration": 2,
             "music": {"description": "Stinger", "behavior": "full", "volume": 0.8}},
        ],
        "overallMusicDirection": "Bright pop throughout",
    },
}


@pytest.fixture
def minimal_payload() -> Dict[str, Any]:
    """Smallest production plan that passes validation."""
    return copy.deepcopy(_MINIMAL_PAYLOAD)


@pytest.fixture
def full_payload() -> Dict[str, Any]:
    """Production plan exercising every optional facet."""
    return copy.deepcopy(_FULL_PAYLOAD)


@pytest.fixture
def raw_full_response(full_payload: Dict[str, Any]) -> str:
    """Model output as it typically arrives: fenced JSON plus commentary."""
    return "```json\n" + json.dumps(full_payload, indent=2) + "\n```\nLet me know if you need changes!"


# ─────────────────────────────────────────────────────────────────────────────
# FastAPI TestClient
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def api_client():
    """Session-scoped FastAPI TestClient for integration tests.

    Prefer the module-scoped ``client`` fixture in individual test
    modules; use this when a single client should persist across the
    whole test run.
    """
    from fastapi.testclient import TestClient
    from adcomposer.main import app
    with TestClient(app) as c:
        yield c
