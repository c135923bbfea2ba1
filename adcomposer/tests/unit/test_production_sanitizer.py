"""Tests for model-output extraction, validation, sanitizing and the fallback plan."""
import json

import pytest

from adcomposer.services.production import sanitizer
from adcomposer.services.production.errors import (
    ParseError, ProductionResponseError, SchemaViolation,
)
from adcomposer.services.production.json_extract import (
    extract_first_json_object, strip_code_fences,
)
from adcomposer.services.production.sanitizer import (
    create_fallback_response, parse_and_validate, response_to_payload, validate_payload,
)


def _arc(start, end, prompt="Steady groove", **extra):
    entry = {"startSeconds": start, "endSeconds": end, "label": "part", "musicPrompt": prompt}
    entry.update(extra)
    return entry


# ═══════════════════════════════════════════════════════════════════════════════
# JSON extraction
# ═══════════════════════════════════════════════════════════════════════════════


class TestStripCodeFences:
    def test_json_fence(self):
        assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_bare_fence(self):
        assert strip_code_fences('```\n{"a": 1}\n```') == '{"a": 1}'

    def test_uppercase_language_tag(self):
        assert strip_code_fences('```JSON\n{"a": 1}\n```') == '{"a": 1}'

    def test_unfenced_text_untouched(self):
        assert strip_code_fences('  {"a": 1}  ') == '{"a": 1}'


class TestExtractFirstJsonObject:
    def test_trailing_commentary(self):
        text = '{"a": {"b": 2}} Hope this helps!'
        assert extract_first_json_object(text) == '{"a": {"b": 2}}'

    def test_leading_prose(self):
        text = 'Here you go: {"a": 1}'
        assert extract_first_json_object(text) == '{"a": 1}'

    def test_braces_inside_strings(self):
        text = '{"script": "Use {code} now }", "n": 1} trailing }'
        assert json.loads(extract_first_json_object(text)) == {"script": "Use {code} now }", "n": 1}

    def test_escaped_quotes_inside_strings(self):
        text = r'{"script": "She said \"{hi}\" loudly"} extra'
        assert json.loads(extract_first_json_object(text)) == {"script": 'She said "{hi}" loudly'}

    def test_escaped_backslash_before_closing_quote(self):
        text = r'{"path": "C:\\"} {"second": true}'
        assert extract_first_json_object(text) == r'{"path": "C:\\"}'

    def test_only_first_object_returned(self):
        assert extract_first_json_object('{"a": 1}{"b": 2}') == '{"a": 1}'

    @pytest.mark.parametrize("text", ["", "no json here", "[1, 2, 3]"])
    def test_no_object(self, text):
        assert extract_first_json_object(text) is None

    def test_unclosed_object(self):
        assert extract_first_json_object('{"a": {"b": 1}') is None


# ═══════════════════════════════════════════════════════════════════════════════
# parse_and_validate
# ═══════════════════════════════════════════════════════════════════════════════


class TestParseAndValidate:
    def test_fenced_response_with_commentary(self, raw_full_response):
        resp = parse_and_validate(raw_full_response)
        assert resp.context.ad_category == "retail"
        assert resp.music.target_bpm == 120
        assert resp.ad_format is not None
        assert resp.ad_format.template_id == "classic_radio"

    def test_minimal_payload(self, minimal_payload):
        resp = parse_and_validate(json.dumps(minimal_payload))
        assert resp.script.startswith("Fresh bread")
        assert resp.music.arc is None
        assert resp.sentence_cues is None

    @pytest.mark.parametrize("raw", ["", "   ", "Sorry, I cannot help with that.", None])
    def test_no_object_is_parse_error(self, raw):
        with pytest.raises(ParseError, match="No JSON object"):
            parse_and_validate(raw)

    def test_invalid_json_is_parse_error(self):
        with pytest.raises(ParseError, match="Invalid JSON"):
            parse_and_validate("{'single': 'quotes'}")

    def test_unclosed_object_is_parse_error(self):
        with pytest.raises(ParseError):
            parse_and_validate('{"script": "cut off')

    def test_errors_share_base_class(self):
        assert issubclass(ParseError, ProductionResponseError)
        assert issubclass(SchemaViolation, ProductionResponseError)


class TestSchemaViolations:
    def test_issues_aggregated(self, minimal_payload):
        del minimal_payload["script"]
        minimal_payload["context"]["pace"] = "ludicrous"
        with pytest.raises(SchemaViolation) as exc_info:
            validate_payload(minimal_payload)
        issues = exc_info.value.issues
        assert any(i.startswith("script:") for i in issues)
        assert any(i.startswith("context.pace:") for i in issues)
        assert "context.pace" in str(exc_info.value)

    def test_missing_music_prompt(self, minimal_payload):
        minimal_payload["music"] = {}
        with pytest.raises(SchemaViolation) as exc_info:
            validate_payload(minimal_payload)
        assert any(i.startswith("music.prompt:") for i in exc_info.value.issues)

    def test_non_object_root(self):
        with pytest.raises(SchemaViolation) as exc_info:
            validate_payload([1, 2])
        assert exc_info.value.issues[0].startswith("(root):")

    @pytest.mark.parametrize("mutate", [
        lambda p: p["context"].update(adCategory="space_travel"),
        lambda p: p["context"].update(durationSeconds=0),
        lambda p: p.update(mixPreset="loud"),
        lambda p: p.update(fades={"curve": "cubic"}),
        lambda p: p["music"].update(arc=[_arc(i, i + 1) for i in range(5)]),
        lambda p: p.update(soundDesign=[{"timestamp": 1, "sound": "s", "purpose": "p"}] * 6),
        lambda p: p.update(sentenceCues=[{"index": -1}]),
        lambda p: p["music"].update(musicalStructure={
            "introType": "ambient_build", "introBars": 9, "bodyFeel": "x",
            "peakMoment": "y", "endingType": "button", "outroBars": 1,
        }),
    ])
    def test_rejected_values(self, minimal_payload, mutate):
        mutate(minimal_payload)
        with pytest.raises(SchemaViolation):
            validate_payload(minimal_payload)

    def test_unknown_keys_ignored(self, minimal_payload):
        minimal_payload["notes"] = "extra"
        minimal_payload["music"]["tempoFeel"] = "laid back"
        assert validate_payload(minimal_payload).music.prompt


class TestNonFiniteNumbers:
    """``json.loads`` accepts NaN, Infinity and 1e999; none may reach the plan."""

    @pytest.mark.parametrize("section,key,value,path", [
        ("context", "durationSeconds", float("inf"), "context.durationSeconds"),
        ("context", "durationSeconds", float("nan"), "context.durationSeconds"),
        ("music", "targetBPM", float("nan"), "music.targetBPM"),
        ("music", "targetBPM", float("-inf"), "music.targetBPM"),
    ])
    def test_rejected_with_field_path(self, minimal_payload, section, key, value, path):
        minimal_payload[section][key] = value
        with pytest.raises(SchemaViolation) as exc_info:
            parse_and_validate(json.dumps(minimal_payload))
        assert any(i.startswith(f"{path}:") for i in exc_info.value.issues)

    def test_overflowing_literal_rejected(self, minimal_payload):
        minimal_payload["context"]["durationSeconds"] = 12345
        raw = json.dumps(minimal_payload).replace("12345", "1e999")
        with pytest.raises(SchemaViolation) as exc_info:
            parse_and_validate(raw)
        assert any(i.startswith("context.durationSeconds:") for i in exc_info.value.issues)

    def test_nan_volumes_reported_not_clamped(self, minimal_payload):
        minimal_payload["volume"] = {"voiceVolume": float("nan"), "musicVolume": float("nan")}
        with pytest.raises(SchemaViolation) as exc_info:
            parse_and_validate(json.dumps(minimal_payload))
        issues = exc_info.value.issues
        assert any(i.startswith("volume.voiceVolume:") for i in issues)
        assert any(i.startswith("volume.musicVolume:") for i in issues)

    def test_arc_fields(self, minimal_payload):
        minimal_payload["music"]["arc"] = [
            _arc(0, float("inf")),
            _arc(10, 30, energyLevel=float("nan")),
        ]
        with pytest.raises(SchemaViolation) as exc_info:
            parse_and_validate(json.dumps(minimal_payload))
        issues = exc_info.value.issues
        assert any(i.startswith("music.arc.0.endSeconds:") for i in issues)
        assert any(i.startswith("music.arc.1.energyLevel:") for i in issues)


# ═══════════════════════════════════════════════════════════════════════════════
# Defaults and clamping
# ═══════════════════════════════════════════════════════════════════════════════


class TestDefaults:
    def test_defaults_applied(self, minimal_payload):
        resp = validate_payload(minimal_payload)
        assert resp.version == "1.0"
        assert resp.fades.fade_in_seconds == pytest.approx(0.1)
        assert resp.fades.fade_out_seconds == pytest.approx(0.4)
        assert resp.fades.curve == "exp"
        assert resp.volume.voice_volume == pytest.approx(1.0)
        assert resp.volume.music_volume == pytest.approx(0.15)
        assert resp.volume.segments is None
        assert resp.mix_preset is None

    @pytest.mark.parametrize("pace,bpm", [("slow", 80), ("moderate", 100), ("fast", 120)])
    def test_bpm_from_pace(self, minimal_payload, pace, bpm):
        minimal_payload["context"]["pace"] = pace
        assert validate_payload(minimal_payload).music.target_bpm == bpm

    def test_partial_fades_keep_given_values(self, minimal_payload):
        minimal_payload["fades"] = {"fadeOutSeconds": 0.25}
        fades = validate_payload(minimal_payload).fades
        assert fades.fade_in_seconds == pytest.approx(0.1)
        assert fades.fade_out_seconds == pytest.approx(0.25)

    def test_empty_lists_become_none(self, minimal_payload):
        minimal_payload["sentenceCues"] = []
        minimal_payload["soundDesign"] = []
        minimal_payload["volume"] = {"segments": []}
        resp = validate_payload(minimal_payload)
        assert resp.sentence_cues is None
        assert resp.sound_design is None
        assert resp.volume.segments is None


class TestClamping:
    @pytest.mark.parametrize("given,expected", [(300, 180), (20, 60), (95, 95)])
    def test_target_bpm(self, minimal_payload, given, expected):
        minimal_payload["music"]["targetBPM"] = given
        assert validate_payload(minimal_payload).music.target_bpm == expected

    def test_fades(self, minimal_payload):
        minimal_payload["fades"] = {"fadeInSeconds": 0.5, "fadeOutSeconds": 0.01}
        fades = validate_payload(minimal_payload).fades
        assert fades.fade_in_seconds == pytest.approx(0.12)
        assert fades.fade_out_seconds == pytest.approx(0.1)

    def test_volumes(self, minimal_payload):
        minimal_payload["volume"] = {"voiceVolume": -1, "musicVolume": 5}
        volume = validate_payload(minimal_payload).volume
        assert volume.voice_volume == 0.0
        assert volume.music_volume == 2.0

    @pytest.mark.parametrize("given,expected", [(2.0, 1.3), (0.2, 0.7), (1.1, 1.1)])
    def test_sentence_cue_multiplier(self, minimal_payload, given, expected):
        minimal_payload["sentenceCues"] = [{"index": 0, "musicVolumeMultiplier": given}]
        cue = validate_payload(minimal_payload).sentence_cues[0]
        assert cue.music_volume_multiplier == pytest.approx(expected)

    def test_sound_design_timestamp_clipped_to_ad(self, minimal_payload):
        minimal_payload["soundDesign"] = [
            {"timestamp": 45, "sound": "ding", "purpose": "button"},
            {"timestamp": -2, "sound": "whoosh", "purpose": "open"},
        ]
        cues = validate_payload(minimal_payload).sound_design
        assert [c.timestamp for c in cues] == [30.0, 0.0]

    def test_empty_volume_segments_dropped(self, minimal_payload):
        minimal_payload["volume"] = {"segments": [
            {"startSeconds": 5, "endSeconds": 5, "type": "voice_up"},
            {"startSeconds": 0, "endSeconds": 2, "type": "music_up"},
        ]}
        segments = validate_payload(minimal_payload).volume.segments
        assert len(segments) == 1
        assert segments[0].type == "music_up"


class TestTextLimits:
    def test_music_prompt_truncated(self, minimal_payload):
        minimal_payload["music"]["prompt"] = "a" * 250
        assert len(validate_payload(minimal_payload).music.prompt) == sanitizer.MUSIC_PROMPT_MAX_LENGTH

    def test_composer_direction_truncated(self, minimal_payload):
        minimal_payload["music"]["composerDirection"] = "b" * 400
        direction = validate_payload(minimal_payload).music.composer_direction
        assert len(direction) == sanitizer.COMPOSER_DIRECTION_MAX_LENGTH

    def test_blank_direction_becomes_none(self, minimal_payload):
        minimal_payload["music"]["composerDirection"] = "   "
        assert validate_payload(minimal_payload).music.composer_direction is None

    def test_truncation_strips_trailing_space(self, minimal_payload):
        minimal_payload["music"]["prompt"] = "x" * 199 + " tail"
        assert validate_payload(minimal_payload).music.prompt == "x" * 199


class TestVoiceHints:
    @pytest.mark.parametrize("given,expected", [
        ("female", "female"), ("MALE", "male"), (" neutral ", "neutral"),
        ("Female voice", None), ("any", None), (None, None), (3, None),
    ])
    def test_gender_is_lenient(self, minimal_payload, given, expected):
        minimal_payload["context"]["voiceHints"] = {"gender": given, "accent": "British"}
        hints = validate_payload(minimal_payload).context.voice_hints
        assert hints.gender == expected
        assert hints.accent == "British"


class TestArcNormalization:
    def test_full_arc_kept(self, full_payload):
        arc = validate_payload(full_payload).music.arc
        assert [s.label for s in arc] == ["intro", "offer", "cta"]
        assert arc[0].start_seconds == 0.0
        assert arc[-1].end_seconds == 30.0

    def test_sorted_and_stretched_to_ad(self, minimal_payload):
        minimal_payload["music"]["arc"] = [_arc(14, 27, "Lift"), _arc(2, 14, "Open")]
        arc = validate_payload(minimal_payload).music.arc
        assert [s.music_prompt for s in arc] == ["Open", "Lift"]
        assert arc[0].start_seconds == 0.0
        assert arc[0].end_seconds == 14
        assert arc[1].end_seconds == 30.0

    def test_clipped_to_duration(self, minimal_payload):
        minimal_payload["music"]["arc"] = [_arc(-3, 12), _arc(12, 45)]
        arc = validate_payload(minimal_payload).music.arc
        assert arc[0].start_seconds == 0.0
        assert arc[1].end_seconds == 30.0

    def test_invalid_entries_dropped(self, minimal_payload):
        minimal_payload["music"]["arc"] = [
            _arc(0, 10), _arc(10, 10), _arc(12, 8), _arc(10, 20, "  "), _arc(10, 30),
        ]
        arc = validate_payload(minimal_payload).music.arc
        assert len(arc) == 2

    def test_single_survivor_drops_arc(self, minimal_payload):
        minimal_payload["music"]["arc"] = [_arc(0, 30), _arc(31, 40)]
        assert validate_payload(minimal_payload).music.arc is None

    def test_arc_bpm_clamped(self, minimal_payload):
        minimal_payload["music"]["arc"] = [_arc(0, 15, targetBPM=250), _arc(15, 30, targetBPM=120)]
        arc = validate_payload(minimal_payload).music.arc
        assert arc[0].target_bpm == 180
        assert arc[1].target_bpm == 120


# ═══════════════════════════════════════════════════════════════════════════════
# Serialization
# ═══════════════════════════════════════════════════════════════════════════════


class TestResponseToPayload:
    @pytest.mark.parametrize("fixture_name", ["minimal_payload", "full_payload"])
    def test_serialized_response_validates_to_itself(self, request, fixture_name):
        resp = validate_payload(request.getfixturevalue(fixture_name))
        again = validate_payload(json.loads(json.dumps(response_to_payload(resp))))
        assert again == resp

    def test_camel_case_keys(self, full_payload):
        payload = response_to_payload(validate_payload(full_payload))
        assert payload["music"]["targetBPM"] == 120
        assert payload["context"]["durationSeconds"] == 30
        assert payload["adFormat"]["templateId"] == "classic_radio"
        assert payload["sentenceCues"][1]["musicalFunction"] == "peak"


# ═══════════════════════════════════════════════════════════════════════════════
# Fallback
# ═══════════════════════════════════════════════════════════════════════════════


class TestFallbackResponse:
    def test_fills_the_slot_with_words(self):
        resp = create_fallback_response("Grand opening this weekend at Lakeside Mall", 30.0)
        words = len(resp.script.split())
        assert words >= round(30 * sanitizer.FALLBACK_WORDS_PER_SECOND) - 15
        assert resp.script.startswith("[excited] Grand opening")
        assert resp.script.endswith("Thank you.")

    def test_short_ad_uses_minimum_word_count(self):
        resp = create_fallback_response("Sale", 5.0)
        assert len(resp.script.split()) >= sanitizer.FALLBACK_MIN_WORDS - 15

    @pytest.mark.parametrize("tone,pace,bpm,wpm", [
        ("calm", "slow", 85, 120),
        ("exciting", "fast", 115, 160),
        ("professional", "moderate", 100, 150),
        ("quirky", "moderate", 100, 150),
    ])
    def test_pace_from_tone(self, tone, pace, bpm, wpm):
        resp = create_fallback_response("Try our app", 30.0, tone=tone)
        assert resp.context.pace == pace
        assert resp.music.target_bpm == bpm
        assert resp.context.target_words_per_minute == wpm
        assert f"{bpm} BPM" in resp.music.prompt

    def test_long_prompt_cut_with_period(self):
        resp = create_fallback_response("word " * 100, 30.0)
        opener = resp.script.split("[warmly]")[0].strip()
        assert opener.endswith(".")
        assert len(opener) <= len("[excited] ") + 201

    def test_plan_is_fully_populated(self):
        resp = create_fallback_response("Try our app", 20.0)
        assert resp.mix_preset == "voiceProminent"
        assert resp.music.genre == "corporate"
        assert resp.context.ad_category == "other"
        assert resp.context.duration_seconds == 20.0

    def test_deterministic(self):
        assert create_fallback_response("Same", 30.0) == create_fallback_response("Same", 30.0)

    @pytest.mark.parametrize("duration", [0, -5])
    def test_non_positive_duration_raises(self, duration):
        with pytest.raises(ValueError):
            create_fallback_response("x", duration)
