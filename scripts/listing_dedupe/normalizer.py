"""
Title normalization

Two modes turn a raw listing title into a comparison key:

- basic: format-only cleanup. Feeds exact-match duplicate grouping, so it
  must not merge titles that differ in content.
- advanced: lossy keyword extraction (unit expansion, stop-word removal,
  word sorting). Feeds Jaccard similarity scoring.
"""

import re
from collections import Counter
from typing import Dict, List, Optional

# Basic mode
_WHITESPACE = re.compile(r"\s+")
_EMPTY_PARENS = re.compile(r"\(\s*\)")
_EMPTY_BRACKETS = re.compile(r"\[\s*\]")
_LONE_DOT = re.compile(r"\s+\.\s+")
_SPACE_AROUND_SYMBOL = re.compile(r"\s*([().\-_])\s*")
_DISALLOWED = re.compile(r"[^\w\s().\-_]")

# Advanced mode
_ADVANCED_SYMBOLS = re.compile(r"[().\-_]")
_PUNCTUATION = re.compile(r"[^\w\s]")

ABBREVIATIONS: Dict[str, str] = {
    "in.": "inch",
    "inches": "inch",
    "ft.": "foot",
    "feet": "foot",
    "lbs": "pound",
    "lb.": "pound",
    "pounds": "pound",
    "oz.": "ounce",
    "ounces": "ounce",
    "pcs": "piece",
    "pc.": "piece",
    "pieces": "piece",
}

_ABBREVIATION_PATTERNS = [
    (re.compile(r"(?<!\w)" + re.escape(abbr) + r"(?!\w)"), full)
    for abbr, full in ABBREVIATIONS.items()
]

STOP_WORDS = frozenset([
    "a", "an", "the", "and", "or", "but", "is", "are",
    "on", "at", "to", "for", "with", "by", "in", "of",
])

MIN_WORD_LENGTH = 3
IMPORTANT_WORD_LENGTH = 6
MIN_IMPORTANT_WORDS = 3


def _basic_pass(text: str) -> str:
    text = _WHITESPACE.sub(" ", text)
    text = _EMPTY_PARENS.sub("", text)
    text = _EMPTY_BRACKETS.sub("", text)
    text = _LONE_DOT.sub(" ", text)
    text = _SPACE_AROUND_SYMBOL.sub(r"\1", text)
    text = _WHITESPACE.sub(" ", text).strip()
    return _DISALLOWED.sub("", text)


def basic_normalize(title: Optional[str]) -> str:
    """
    Format-normalize a title for exact duplicate grouping.

    Stripping disallowed characters can expose new empty brackets or double
    spaces ("a ★ b"), so the cleanup is repeated until the key is stable.
    """
    if not title:
        return ""
    text = str(title).lower()
    while True:
        cleaned = _basic_pass(text)
        if cleaned == text:
            return cleaned
        text = cleaned


def significant_words(title: Optional[str]) -> List[str]:
    """Sorted words of a title after punctuation stripping, unit expansion and stop-word removal."""
    if not title:
        return []
    text = _WHITESPACE.sub(" ", str(title).lower())
    text = _ADVANCED_SYMBOLS.sub("", text)
    text = _PUNCTUATION.sub("", text)
    for pattern, full in _ABBREVIATION_PATTERNS:
        text = pattern.sub(full, text)

    words = [
        word for word in text.split(" ")
        if len(word) >= MIN_WORD_LENGTH and word not in STOP_WORDS
    ]
    words.sort()
    return words


def advanced_normalize(title: Optional[str]) -> str:
    """
    Keyword key for similarity scoring.

    Keeps each word once if it repeats within the title or is longer than
    five characters. Titles with fewer than three such words fall back to
    the full sorted word list.
    """
    words = significant_words(title)
    counts = Counter(words)

    important: List[str] = []
    seen = set()
    for word in words:
        if word in seen:
            continue
        seen.add(word)
        if counts[word] > 1 or len(word) >= IMPORTANT_WORD_LENGTH:
            important.append(word)

    if len(important) < MIN_IMPORTANT_WORDS:
        return " ".join(words)
    return " ".join(important)


def normalize(title: Optional[str], advanced: bool = False) -> str:
    """Normalize ``title`` in basic or advanced mode."""
    if advanced:
        return advanced_normalize(title)
    return basic_normalize(title)
