"""
Table-of-contents line parsing.

Splits one TOC line into its title and printed page token, and provides the
page-token helpers (arabic/roman detection, roman conversion) shared by the
text and link strategies.
"""

import re
from typing import Optional

from .data_models import Line, TOCEntry

BULLETS = re.compile(r'[•●○∙·⋅]+')
_WHITESPACE = re.compile(r'\s+')
_TRAILING_DOTS = re.compile(r'\s*\.*\s*$')
_PAGE_TOKEN_EDGES_TRAILING = re.compile(r'[()\[\],.:]+$')
_PAGE_TOKEN_EDGES_LEADING = re.compile(r'^[()\[\],.:]+')

# title, dot leader (>=2 dots or >=4 dots/spaces), optional page label, token
_STRUCTURED_LINE = re.compile(
    r'^(.+?)(?:\.{2,}|[.\s]{4,})\s*[(\[]?\s*(?:pages?|pp?\.|hal\.?)?\s*([a-z0-9]+)[)\]]?$',
    re.IGNORECASE,
)
# A page label left dangling at the end of a title: "Results (page", "Intro p."
_DANGLING_LABEL = re.compile(r'[\s(\[,:-]*(?:(?<!\w)(?:pages?|pp?\.|hal\.?))?[\s(\[,:-]*$', re.IGNORECASE)

_ARABIC = re.compile(r'^\d+$')
_ROMAN_LETTERS = re.compile(r'^[ivxlcdm]+$', re.IGNORECASE)
_WELL_FORMED_ROMAN = re.compile(
    r'^m{0,4}(cm|cd|d?c{0,3})(xc|xl|l?x{0,3})(ix|iv|v?i{0,3})$', re.IGNORECASE
)

_ROMAN_VALUES = {'i': 1, 'v': 5, 'x': 10, 'l': 50, 'c': 100, 'd': 500, 'm': 1000}
_ROMAN_TABLE = [
    (1000, 'M'), (900, 'CM'), (500, 'D'), (400, 'CD'),
    (100, 'C'), (90, 'XC'), (50, 'L'), (40, 'XL'),
    (10, 'X'), (9, 'IX'), (5, 'V'), (4, 'IV'), (1, 'I'),
]


def is_arabic_token(token: Optional[str]) -> bool:
    return bool(token) and bool(_ARABIC.match(token))


def is_roman_token(token: Optional[str]) -> bool:
    """True when the token consists only of roman numeral letters."""
    return bool(token) and bool(_ROMAN_LETTERS.match(token))


def is_strict_roman_token(token: Optional[str]) -> bool:
    """True for a well-formed roman numeral written in a single letter case."""
    if not is_roman_token(token):
        return False
    if not (token.islower() or token.isupper()):
        return False
    return bool(_WELL_FORMED_ROMAN.match(token))


def roman_to_int(token: str) -> int:
    total = 0
    previous = 0
    for char in reversed((token or '').lower()):
        value = _ROMAN_VALUES.get(char, 0)
        if value < previous:
            total -= value
        else:
            total += value
            previous = value
    return total


def format_roman(number: int, upper: bool = False) -> str:
    n = max(1, int(number))
    out = []
    for value, symbol in _ROMAN_TABLE:
        while n >= value:
            out.append(symbol)
            n -= value
    text = ''.join(out)
    return text if upper else text.lower()


def clean_page_token(token: Optional[str]) -> str:
    """Strip surrounding brackets and punctuation from a page token."""
    if not token:
        return ""
    token = _PAGE_TOKEN_EDGES_TRAILING.sub('', token)
    token = _PAGE_TOKEN_EDGES_LEADING.sub('', token)
    return token.strip()


def clean_toc_title(title: Optional[str]) -> str:
    """Remove trailing dot leaders and collapse whitespace."""
    title = _TRAILING_DOTS.sub('', title or '')
    return _WHITESPACE.sub(' ', title).strip()


def normalize_toc_text(text: Optional[str]) -> str:
    """Turn bullet runs into dots and collapse whitespace."""
    text = BULLETS.sub('.', text or '')
    return _WHITESPACE.sub(' ', text).strip()


def parse_toc_line(text: Optional[str]) -> Optional[TOCEntry]:
    """
    Parse one TOC line into a title and a printed page token.

    Tries the structured ``title .... [page] token`` form first, then scans
    words right to left for the last page-number-like token.

    Args:
        text: Line text

    Returns:
        TOCEntry with indent 0, or None when no page token can be isolated
    """
    if not text:
        return None
    t = _TRAILING_DOTS.sub('', normalize_toc_text(text))
    if not t:
        return None

    match = _STRUCTURED_LINE.match(t)
    if match:
        title = clean_toc_title(match.group(1))
        token = clean_page_token(match.group(2))
        if title and token:
            return TOCEntry(title=title, page_token=token)

    parts = t.split(' ')
    for i in range(len(parts) - 1, -1, -1):
        token = clean_page_token(parts[i])
        if not token:
            continue
        if is_arabic_token(token) or is_strict_roman_token(token):
            title = _DANGLING_LABEL.sub('', ' '.join(parts[:i]))
            title = clean_toc_title(title)
            if title:
                return TOCEntry(title=title, page_token=token)
            break
    return None


def parse_toc_line_from_line(line: Line, toc_page: Optional[int] = None) -> Optional[TOCEntry]:
    """Parse a clustered line, carrying its left edge as indent."""
    entry = parse_toc_line(line.text)
    if entry is None:
        return None
    entry.indent = line.x_min
    entry.toc_page = toc_page
    return entry
