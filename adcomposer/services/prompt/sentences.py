"""Sentence and word timings derived from character-level speech alignment."""
from __future__ import annotations

import re
from typing import List, Optional, Tuple

from adcomposer.services.prompt.types import CharacterAlignment, SentenceTiming, WordTiming

_SENTENCE_BREAK = re.compile(r"(?<=[.!?])\s+")


def split_into_sentences(script: str) -> List[str]:
    """Split on . ! ? followed by whitespace; punctuation stays with its sentence.

    Delivery tags such as ``[excited]`` are kept as part of the text.
    """
    trimmed = script.strip()
    if not trimmed:
        return []
    return [part.strip() for part in _SENTENCE_BREAK.split(trimmed) if part.strip()]


def _sentence_ranges(script: str) -> List[Tuple[str, int, int]]:
    """(sentence, start_char, end_char) against the untrimmed script."""
    ranges = []
    pos = 0
    for sentence in split_into_sentences(script):
        idx = script.find(sentence, pos)
        if idx == -1:
            end = min(pos + len(sentence), len(script))
            ranges.append((sentence, pos, end))
            pos = end
        else:
            ranges.append((sentence, idx, idx + len(sentence)))
            pos = idx + len(sentence)
    return ranges


def alignment_to_sentence_timings(
    script: str,
    alignment: Optional[CharacterAlignment],
) -> List[SentenceTiming]:
    """Map each sentence of ``script`` to the time span its characters were spoken.

    ``alignment`` must describe the exact text sent to the speech provider so
    character offsets line up. Returns an empty list when there is no alignment.
    """
    if alignment is None:
        return []
    length = min(len(alignment.characters), len(alignment.start_times), len(alignment.end_times))
    if length == 0:
        return []

    starts, ends = alignment.start_times, alignment.end_times
    timings = []
    for text, start_char, end_char in _sentence_ranges(script):
        char_start = max(0, min(start_char, length - 1))
        char_end = max(char_start, min(end_char, length))
        if char_end <= char_start:
            timings.append(SentenceTiming(text, starts[0], ends[0]))
            continue
        timings.append(SentenceTiming(text, starts[char_start], ends[char_end - 1]))
    return timings


def alignment_to_word_timings(alignment: Optional[CharacterAlignment]) -> List[WordTiming]:
    """Group aligned characters into whitespace-separated words."""
    if alignment is None:
        return []
    length = min(len(alignment.characters), len(alignment.start_times), len(alignment.end_times))

    words = []
    word_start = -1
    for i in range(length + 1):
        at_end = i == length
        is_space = not at_end and alignment.characters[i].isspace()
        if word_start >= 0 and (is_space or at_end):
            text = "".join(alignment.characters[word_start:i]).strip()
            if text:
                words.append(WordTiming(text, alignment.start_times[word_start], alignment.end_times[i - 1]))
            word_start = -1
        elif not is_space and not at_end and word_start < 0:
            word_start = i
    return words
