"""Reading-time estimate for posts that arrive without one."""

from __future__ import annotations

import math
import re

WORDS_PER_MINUTE = 250

_TAGS = re.compile(r"<[^>]*>")
_NON_WORD = re.compile(r"[^\w\s]")
_SPACES = re.compile(r"\s+")


def count_words(content: str) -> int:
    """Count words in *content* after stripping HTML tags and punctuation."""
    text = _TAGS.sub(" ", content)
    text = _SPACES.sub(" ", _NON_WORD.sub(" ", text)).strip()
    if not text:
        return 0
    return len(text.split(" "))


def reading_minutes(content: str, words_per_minute: int = WORDS_PER_MINUTE) -> int:
    """Minutes needed to read *content*; never less than one."""
    return max(1, math.ceil(count_words(content) / words_per_minute))


def format_reading_time(content: str, words_per_minute: int = WORDS_PER_MINUTE) -> str:
    """Render the display string stored in a post's read-time field."""
    return f"{reading_minutes(content, words_per_minute)} min read"
