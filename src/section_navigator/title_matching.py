"""
Title-to-page content matching shared by offset estimation and page refinement.
"""

import re
from typing import List, Sequence

from .data_models import Line

# Leading numbering: "1.2.3", "1.", "IV.", "ii)", "a)", and stray dashes
_LEADING_NUMBERING = re.compile(
    r'^(?:\s*(?:\d+(?:\.\d+)*\.?\)?|[ivxlcdm]+[.)]|[a-z]\))\s+|\s*[-–—]+\s*)+'
)
_NON_ALNUM = re.compile(r'[^\w\s]|_')
_WHITESPACE = re.compile(r'\s+')


def _normalize_words(text: str) -> str:
    text = _NON_ALNUM.sub(' ', text.lower())
    return _WHITESPACE.sub(' ', text).strip()


def title_key(title: str, max_words: int = 6, min_word_length: int = 3) -> str:
    """
    Build the comparison key of a section title.

    Lower-cases, strips leading numbering, replaces symbols by spaces and keeps
    the first ``max_words`` words of at least ``min_word_length`` characters.

    Args:
        title: Raw section title

    Returns:
        Space-joined key, empty when the title has no content words
    """
    text = _LEADING_NUMBERING.sub('', (title or '').lower())
    words = [w for w in _normalize_words(text).split(' ') if len(w) >= min_word_length]
    return ' '.join(words[:max_words])


def page_header_text(lines: Sequence[Line], line_count: int = 8) -> str:
    """Normalised concatenation of the first ``line_count`` lines of a page."""
    return _normalize_words(' '.join(line.text for line in lines[:line_count]))


def sequential_presence_bonus(tokens: List[str], words: List[str]) -> float:
    """Fraction of ``tokens`` found, in order, as a subsequence of ``words``."""
    if not tokens:
        return 0.0
    matched = 0
    for word in words:
        if word == tokens[matched]:
            matched += 1
            if matched >= len(tokens):
                break
    return matched / len(tokens)


def title_match_score(key: str, header: str) -> float:
    """
    Score how well a title key matches a page header, in [0, 1].

    1.0 when the key is a literal substring of the header, otherwise the
    larger of the word-set Jaccard similarity and 0.6 times the sequential
    presence bonus.
    """
    if not key or not header:
        return 0.0
    if key in header:
        return 1.0

    key_words = key.split(' ')
    header_words = header.split(' ')
    a = set(key_words)
    b = set(header_words)
    inter = len(a & b)
    jaccard = inter / max(1, len(a) + len(b) - inter)

    bonus = sequential_presence_bonus(key_words, header_words)
    return max(jaccard, bonus * 0.6)


def find_title_line(lines: Sequence[Line], title: str):
    """Return the first line whose normalised text equals the title, if any."""
    target = _normalize_words(title or '')
    if not target:
        return None
    for line in lines:
        if _normalize_words(line.text) == target:
            return line
    return None
