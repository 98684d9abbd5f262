"""
Section list assembly from parsed table-of-contents entries.

Maps printed page tokens to physical pages, filters captions and
over-indented noise, infers heading levels and keeps the emitted sequence in
non-decreasing page order without adjacent duplicates.
"""

import re
from dataclasses import replace
from typing import Collection, Dict, Iterable, List, Optional, Sequence

from .config import InferenceConfig
from .data_models import Section, SectionSource, TOCEntry
from .logging_config import safe_execute, setup_logging
from .page_refiner import PageMatchRefiner
from .text_extractor import PageLineReader
from .title_matching import find_title_line
from .toc_parser import clean_toc_title, is_arabic_token

logger = setup_logging()

NON_BODY_PREFIX = re.compile(
    r'^(?:(?:figure|table|appendix|lampiran|gambar|tabel)\b|(?:fig|tab)\.)',
    re.IGNORECASE,
)
NUMBERING_PREFIX = re.compile(r'^\d+(\.\d+)*')


def guess_level_from_title(title: str) -> int:
    """
    Infer a heading level from leading decimal numbering.

    ``"2"`` -> 1, ``"2.3"`` -> 2, ``"2.3.1"`` and deeper -> 3. Unnumbered
    titles are level 1.
    """
    match = NUMBERING_PREFIX.match((title or '').strip())
    if not match:
        return 1
    depth = match.group(0).count('.') + 1
    return min(3, max(1, depth))


def is_non_body_title(title: str) -> bool:
    """Figure, table and appendix captions."""
    return bool(NON_BODY_PREFIX.match((title or '').strip()))


def allowed_indent(min_indent: float, indent_slack: float, level: int) -> float:
    return min_indent + indent_slack * (level - 1 + 0.15)


def dedupe_sequential(sections: Iterable[Section]) -> List[Section]:
    """Drop sections whose (page, title prefix) equals the previous one."""
    out = []
    last_key = None
    for section in sections:
        key = section.dedupe_key
        if key != last_key:
            out.append(section)
        last_key = key
    return out


def drop_page_regressions(sections: Iterable[Section]) -> List[Section]:
    """Keep only sections whose page does not go below an earlier kept page."""
    out = []
    last_page = 0
    for section in sections:
        if section.page < last_page:
            logger.debug(f"Dropping out-of-order section '{section.title[:50]}' on page {section.page}")
            continue
        out.append(section)
        last_page = section.page
    return out


def build_label_index(labels: Optional[Sequence[str]]) -> Dict[str, int]:
    """Map lower-cased page labels to the first physical page carrying them."""
    index = {}
    for position, label in enumerate(labels or []):
        key = (label or '').strip().lower()
        if key and key not in index:
            index[key] = position + 1
    return index


class SectionListBuilder:
    """Turns parsed TOC entries into ``toc_text`` sections."""

    def __init__(self, config: Optional[InferenceConfig] = None,
                 refiner: Optional[PageMatchRefiner] = None):
        self.config = config or InferenceConfig()
        self.refiner = refiner or PageMatchRefiner(self.config.refine_window,
                                                   self.config.refine_accept_score)

    def map_token(self, token: str, offset: int, total_pages: int,
                  label_index: Optional[Dict[str, int]] = None) -> Optional[int]:
        """
        Map a printed page token to a physical page.

        Page labels win when enabled and the token matches one exactly;
        otherwise arabic tokens are shifted by ``offset`` and clamped. Roman
        tokens only map through labels.
        """
        if not token:
            return None
        if label_index:
            by_label = label_index.get(token.lower())
            if by_label:
                return by_label
        if is_arabic_token(token):
            return max(1, min(total_pages, int(token) + offset))
        return None

    def build(self, reader: PageLineReader, entries: Sequence[TOCEntry], offset: int,
              toc_pages: Collection[int] = ()) -> List[Section]:
        """
        Build the section list.

        Args:
            reader: Line reader of the current pass
            entries: Parsed TOC entries in TOC order
            offset: Printed-to-physical page offset
            toc_pages: Physical pages holding the TOC, excluded from refinement

        Returns:
            Sections with non-decreasing pages; empty when nothing survives
        """
        config = self.config
        total_pages = reader.page_count
        if total_pages < 1:
            return []

        if config.ignore_roman_tokens:
            entries = [e for e in entries if is_arabic_token(e.page_token)]
        if not entries:
            return []

        label_index = None
        if config.use_page_labels:
            label_index = build_label_index(safe_execute(reader.provider.get_page_labels, logger=logger))

        min_indent = min(e.indent or 0.0 for e in entries)

        sections = []
        last_page = 0
        last_key = None
        for entry in entries:
            title = entry.title
            if not config.include_figures and is_non_body_title(title):
                continue

            page = self.map_token(entry.page_token, offset, total_pages, label_index)
            if not page:
                continue

            level = guess_level_from_title(title)
            if level > config.max_depth:
                continue
            if (entry.indent or 0.0) > allowed_indent(min_indent, config.indent_slack, level):
                logger.debug(f"Dropping over-indented TOC line '{title[:50]}'")
                continue

            key = (page, title[:120])
            if page < last_page or key == last_key:
                continue

            sections.append(Section(
                id=None,
                title=clean_toc_title(title),
                level=level,
                page=page,
                source=SectionSource.TOC_TEXT,
            ))
            last_page = max(last_page, page)
            last_key = key

        sections = [
            replace(s, page=self.refiner.refine(reader, s.title, s.page, toc_pages))
            for s in sections
        ]
        sections = dedupe_sequential(drop_page_regressions(sections))

        if config.anchor_titles:
            sections = [self._anchor(reader, s) for s in sections]

        logger.info(f"Built {len(sections)} sections from {len(entries)} TOC entries")
        return sections

    def _anchor(self, reader: PageLineReader, section: Section) -> Section:
        line = find_title_line(reader.lines(section.page), section.title)
        if line is None:
            return section
        return replace(section, anchor_y=line.top)
