"""Text helpers shared by the pipeline and ingestion."""

from __future__ import annotations

import unicodedata

_ZERO_WIDTH_JOINER = "\u200d"
_EXTEND_CATEGORIES = {"Mn", "Me", "Mc"}

# Hangul jamo ranges (conjoining leading, vowel and trailing jamo).
_HANGUL_L = ((0x1100, 0x115F), (0xA960, 0xA97C))
_HANGUL_V = ((0x1160, 0x11A7), (0xD7B0, 0xD7C6))
_HANGUL_T = ((0x11A8, 0x11FF), (0xD7CB, 0xD7FB))
_HANGUL_SYLLABLES = (0xAC00, 0xD7A3)


def truncate_text(text: str, limit: int) -> str:
    """Return at most ``limit`` characters of ``text`` without splitting a grapheme.

    Slicing a ``str`` never cuts an encoded byte sequence, but it can separate
    a base character from what belongs to it: combining and spacing marks,
    variation selectors, emoji modifiers, zero-width-joiner sequences,
    regional-indicator flag pairs, conjoining Hangul jamo and CR LF. When the
    cut lands inside such a cluster the whole cluster is dropped.
    """
    if limit < 0:
        raise ValueError("limit must be non-negative")
    if len(text) <= limit:
        return text
    end = limit
    while end > 0 and _continues_cluster(text, end):
        end -= 1
    return text[:end]


def _continues_cluster(text: str, index: int) -> bool:
    """Whether ``text[index]`` belongs to the same grapheme as ``text[index - 1]``."""
    char = text[index]
    previous = text[index - 1]
    if previous == "\r" and char == "\n":
        return True
    if char == _ZERO_WIDTH_JOINER or previous == _ZERO_WIDTH_JOINER:
        return True
    if unicodedata.combining(char) or unicodedata.category(char) in _EXTEND_CATEGORIES:
        return True
    code = ord(char)
    if 0xFE00 <= code <= 0xFE0F or 0x1F3FB <= code <= 0x1F3FF:
        return True
    if _is_regional_indicator(char) and _is_regional_indicator(previous):
        return _regional_run(text, index) % 2 == 1
    return _joins_hangul(previous, char)


def _is_regional_indicator(char: str) -> bool:
    return 0x1F1E6 <= ord(char) <= 0x1F1FF


def _regional_run(text: str, index: int) -> int:
    # Indicators pair up left to right, so an odd run before the cut means
    # text[index] completes a flag.
    count = 0
    position = index - 1
    while position >= 0 and _is_regional_indicator(text[position]):
        count += 1
        position -= 1
    return count


def _in_ranges(char: str, ranges: tuple[tuple[int, int], ...]) -> bool:
    code = ord(char)
    return any(low <= code <= high for low, high in ranges)


def _hangul_syllable(char: str) -> str | None:
    code = ord(char)
    low, high = _HANGUL_SYLLABLES
    if not low <= code <= high:
        return None
    return "LV" if (code - low) % 28 == 0 else "LVT"


def _joins_hangul(previous: str, char: str) -> bool:
    syllable = _hangul_syllable(previous)
    if _in_ranges(previous, _HANGUL_L):
        return (
            _in_ranges(char, _HANGUL_L)
            or _in_ranges(char, _HANGUL_V)
            or _hangul_syllable(char) is not None
        )
    if syllable == "LV" or _in_ranges(previous, _HANGUL_V):
        return _in_ranges(char, _HANGUL_V) or _in_ranges(char, _HANGUL_T)
    if syllable == "LVT" or _in_ranges(previous, _HANGUL_T):
        return _in_ranges(char, _HANGUL_T)
    return False
