"""
Locates the pages holding a textual table of contents.
"""

import re
from typing import List, Sequence, Tuple

from .data_models import Line
from .logging_config import setup_logging
from .text_extractor import PageLineReader
from .toc_parser import normalize_toc_text

logger = setup_logging()

TOC_HEADER_PATTERN = re.compile(
    r'(^|\s)(table\s+of\s+contents|contents|daftar\s+isi|inhaltsverzeichnis|'
    r'table\s+des\s+mati[eè]res|sommaire|[ií]ndice)(\s|$)',
    re.IGNORECASE,
)
DOT_LEADER_PATTERN = re.compile(
    r'.+?(?:\.{2,}|[.\s]{4,})\s*(?:hal\.?|pages?|p\.)?\s*(\d+|[ivxlcdm]+)$',
    re.IGNORECASE,
)

TOCPage = Tuple[int, List[Line]]


def is_dot_leader_line(text: str) -> bool:
    """Detect ``Title ...... 12`` style lines (dots, bullets, page labels)."""
    if not text:
        return False
    return bool(DOT_LEADER_PATTERN.match(normalize_toc_text(text)))


def has_toc_header(lines: Sequence[Line]) -> bool:
    text_block = "\n".join(line.text for line in lines)
    return bool(TOC_HEADER_PATTERN.search(text_block))


def is_toc_page(lines: Sequence[Line], min_dot_leader_lines: int = 5) -> bool:
    """
    Classify a page as a table-of-contents page.

    A page qualifies when it carries a contents header, or when at least
    ``min_dot_leader_lines`` of its lines are dot-leader lines.
    """
    if not lines:
        return False
    if has_toc_header(lines):
        return True
    dot_leader_lines = sum(1 for line in lines if is_dot_leader_line(line.text))
    return dot_leader_lines >= min_dot_leader_lines


class TOCPageLocator:
    """
    Finds the first TOC page among the leading pages and the run of TOC
    pages that follows it.
    """

    def __init__(self, max_scan_pages: int = 60, max_span_pages: int = 8,
                 min_dot_leader_lines: int = 5):
        self.max_scan_pages = max_scan_pages
        self.max_span_pages = max_span_pages
        self.min_dot_leader_lines = min_dot_leader_lines

    def find_start_page(self, reader: PageLineReader) -> int:
        """Return the first TOC page number, or 0 when there is none."""
        pages_to_scan = min(reader.page_count, self.max_scan_pages)
        batch = reader.max_workers
        for page_number in range(1, pages_to_scan + 1):
            if (page_number - 1) % batch == 0:
                reader.prefetch(range(page_number, min(pages_to_scan, page_number + batch - 1) + 1))
            lines = reader.lines(page_number)
            if not lines:
                continue
            if is_toc_page(lines, self.min_dot_leader_lines):
                logger.debug(f"TOC starts on page {page_number}")
                return page_number
        return 0

    def locate(self, reader: PageLineReader) -> List[TOCPage]:
        """
        Collect the contiguous TOC pages.

        Args:
            reader: Line reader of the current pass

        Returns:
            List of (page_number, lines) pairs; empty when no TOC was found
        """
        start_page = self.find_start_page(reader)
        if not start_page:
            return []

        pages_to_scan = min(reader.page_count, self.max_scan_pages)
        toc_pages = []
        end_page = min(pages_to_scan, start_page + self.max_span_pages - 1)
        for page_number in range(start_page, end_page + 1):
            lines = reader.lines(page_number)
            if not lines or not is_toc_page(lines, self.min_dot_leader_lines):
                break
            toc_pages.append((page_number, lines))

        logger.info(f"Located TOC on pages {start_page}-{start_page + len(toc_pages) - 1}")
        return toc_pages
