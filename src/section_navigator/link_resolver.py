"""
Link-based table of contents resolution.

When the TOC pages carry hyperlink annotations, each link's real destination
is used instead of the printed page number, and the title is recovered from
the TOC line under the link rectangle. Titles that wrap over several lines
are merged back together.
"""

import re
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence

from .config import InferenceConfig
from .data_models import LinkAnnotation, Line, ResolvedDestination, Section, SectionSource
from .geometry import rect_mid_y, spans_overlap
from .logging_config import InferenceCancelled, safe_execute, setup_logging
from .section_builder import (
    allowed_indent, dedupe_sequential, drop_page_regressions,
    guess_level_from_title, is_non_body_title,
)
from .text_extractor import PageLineReader
from .toc_locator import TOCPage, TOCPageLocator
from .toc_parser import clean_toc_title, parse_toc_line

logger = setup_logging()

PAGE_IN_URI = re.compile(r'[#?&]page=(\d+)', re.IGNORECASE)
NUMBERED_ITEM = re.compile(
    r'^(?:\d+(?:\.\d+)*[).]?\s+|[(\[]?[a-zA-Z][).\]]\s+|[ivxlcdmIVXLCDM]+[).]\s+)'
)
STARTS_LOWER_OR_HYPHEN = re.compile(r'^[a-z\-]')
TERMINAL_PUNCTUATION = re.compile(r'[.:;]$')


@dataclass
class RawLinkEntry:
    """One link matched to a TOC line, before multi-line merging."""
    toc_page: int
    line_index: int
    mid_y: float
    indent: float
    target_page: int
    anchor_x: float
    anchor_y: Optional[float]
    destination: Any
    title: str
    level: int


def pick_line_by_rect(lines: Sequence[Line], rect) -> Optional[Line]:
    """Line overlapping the rect horizontally whose centre is nearest the rect's."""
    if not rect or not lines:
        return None
    x0, _, x1, _ = rect
    mid_y = rect_mid_y(rect)
    best = None
    best_distance = float('inf')
    for line in lines:
        if not spans_overlap(x0, x1, line.x_min, line.x_max):
            continue
        distance = abs(line.mid_y - mid_y)
        if distance < best_distance:
            best = line
            best_distance = distance
    return best


def pick_nearest_line(lines: Sequence[Line], rect) -> Optional[Line]:
    """Line whose centre is nearest the rect centre, ignoring x."""
    if not lines:
        return None
    mid_y = rect_mid_y(rect)
    if mid_y is None:
        mid_y = lines[0].y_min
    return min(lines, key=lambda line: abs(line.mid_y - mid_y))


def is_numbered_title(title: str) -> bool:
    return bool(NUMBERED_ITEM.match((title or '').strip()))


def shares_first_token(a: str, b: str) -> bool:
    a_words = (a or '').lower().split()
    b_words = (b or '').lower().split()
    if not a_words or not b_words:
        return False
    return a_words[0] == b_words[0] and len(a_words[0]) > 2


def looks_like_continuation(previous_title: str, next_title: str,
                            hanging_min_length: int = 12) -> bool:
    """
    Decide whether ``next_title`` continues the wrapped ``previous_title``.

    Never true when the next line starts a new numbered item or a caption.
    Otherwise true when the next line starts lowercase or with a hyphen, when
    the previous line is long and lacks terminal punctuation, or when both
    share a first word longer than two characters.
    """
    a = clean_toc_title(previous_title)
    b = clean_toc_title(next_title)
    if not a or not b:
        return False
    if is_numbered_title(b) or is_non_body_title(b):
        return False

    starts_lower = bool(STARTS_LOWER_OR_HYPHEN.match(b))
    hanging = not TERMINAL_PUNCTUATION.search(a) and len(a) >= hanging_min_length
    return starts_lower or hanging or shares_first_token(a, b)


def merge_title(a: str, b: str) -> str:
    a = clean_toc_title(a)
    b = clean_toc_title(b)
    if not a:
        return b
    if not b:
        return a
    return clean_toc_title(f"{a} {b}")


def merge_multiline_entries(entries: Sequence[RawLinkEntry], y_tolerance: float = 10.0,
                            x_tolerance: float = 30.0,
                            hanging_min_length: int = 12) -> List[RawLinkEntry]:
    """
    Merge consecutive raw entries that belong to one wrapped title.

    The merged entry keeps the first line's target and coordinates and the
    outermost (minimum) level. Further links on an already seen TOC line
    (a title link plus a page-number link) are dropped, never merged.
    """
    groups: List[RawLinkEntry] = []
    last_mid_y = None
    last_line = None
    for entry in entries:
        line_key = (entry.toc_page, entry.line_index)
        if line_key == last_line:
            continue
        last_line = line_key
        group = groups[-1] if groups else None
        can_merge = (
            group is not None
            and entry.toc_page == group.toc_page
            and abs(last_mid_y - entry.mid_y) <= y_tolerance
            and abs(group.indent - entry.indent) <= x_tolerance
            and looks_like_continuation(group.title, entry.title, hanging_min_length)
        )
        if can_merge:
            group.title = merge_title(group.title, entry.title)
            group.level = min(group.level, entry.level)
        else:
            groups.append(RawLinkEntry(**vars(entry)))
        last_mid_y = entry.mid_y

    for group in groups:
        group.title = clean_toc_title(group.title)
    return groups


class LinkAnnotationResolver:
    """Builds ``toc_link`` sections from link annotations on TOC pages."""

    def __init__(self, config: Optional[InferenceConfig] = None,
                 locator: Optional[TOCPageLocator] = None):
        self.config = config or InferenceConfig()
        self.locator = locator or TOCPageLocator(self.config.max_scan_pages,
                                                 self.config.max_toc_span_pages,
                                                 self.config.min_dot_leader_lines)

    def resolve_target(self, reader: PageLineReader,
                       annotation: LinkAnnotation) -> Optional[ResolvedDestination]:
        """Resolve where a link jumps to; None when it has no in-document target."""
        destination = annotation.destination
        if destination is None and annotation.dest_ref is not None:
            try:
                destination = reader.provider.resolve_destination(annotation.dest_ref)
            except InferenceCancelled:
                raise
            except Exception as e:
                logger.debug(f"Could not resolve link destination {annotation.dest_ref!r}: {e}")
                destination = None
        if destination is None and annotation.uri:
            match = PAGE_IN_URI.search(annotation.uri)
            if match:
                destination = ResolvedDestination(page_number=int(match.group(1)))
        if destination is None and annotation.target_page:
            destination = ResolvedDestination(page_number=int(annotation.target_page))

        if destination is None:
            return None
        if destination.page_number < 1 or destination.page_number > reader.page_count:
            logger.debug(f"Ignoring link to page {destination.page_number} outside the document")
            return None
        return destination

    def collect_page_entries(self, reader: PageLineReader, toc_page: int,
                             lines: Sequence[Line]) -> List[RawLinkEntry]:
        """Match the link annotations of one TOC page to its lines."""
        config = self.config
        annotations = safe_execute(reader.provider.get_page_annotations, toc_page,
                                   default=[], logger=logger)

        min_indent = min(line.x_min for line in lines)
        entries = []
        for annotation in annotations or []:
            destination = self.resolve_target(reader, annotation)
            if destination is None:
                continue

            line = pick_line_by_rect(lines, annotation.rect) or pick_nearest_line(lines, annotation.rect)
            if line is None:
                continue

            parsed = parse_toc_line(line.text)
            title = clean_toc_title(parsed.title if parsed else line.text)
            if not title:
                continue
            if not config.include_figures and is_non_body_title(title):
                continue

            level = guess_level_from_title(title)
            if level > config.max_depth:
                continue
            if line.x_min > allowed_indent(min_indent, config.indent_slack, level):
                continue

            entries.append(RawLinkEntry(
                toc_page=toc_page,
                line_index=line.index,
                mid_y=line.mid_y,
                indent=line.x_min,
                target_page=destination.page_number,
                anchor_x=destination.x or 0.0,
                anchor_y=destination.y,
                destination=destination.explicit,
                title=title,
                level=level,
            ))

        entries.sort(key=lambda e: (e.line_index, e.mid_y))
        return entries

    def resolve(self, reader: PageLineReader,
                toc_pages: Optional[Sequence[TOCPage]] = None) -> List[Section]:
        """
        Build sections from the links of the TOC pages.

        Args:
            reader: Line reader of the current pass
            toc_pages: Already located TOC pages; located here when omitted

        Returns:
            Sections in TOC reading order; empty when no usable link exists
        """
        if toc_pages is None:
            toc_pages = self.locator.locate(reader)
        if not toc_pages:
            return []

        raw_entries = []
        for toc_page, lines in toc_pages:
            raw_entries.extend(self.collect_page_entries(reader, toc_page, lines))
        if not raw_entries:
            return []

        merged = merge_multiline_entries(
            raw_entries,
            y_tolerance=self.config.merge_y_tolerance,
            x_tolerance=self.config.merge_x_tolerance,
            hanging_min_length=self.config.hanging_title_min_length,
        )

        sections = [
            Section(
                id=None,
                title=entry.title,
                level=entry.level,
                page=entry.target_page,
                anchor_x=entry.anchor_x,
                anchor_y=entry.anchor_y,
                destination=entry.destination,
                source=SectionSource.TOC_LINK,
            )
            for entry in merged
        ]
        sections = dedupe_sequential(drop_page_regressions(sections))
        logger.info(f"Resolved {len(sections)} sections from {len(raw_entries)} TOC links")
        return sections
