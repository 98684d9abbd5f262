"""
Page text extraction: clusters positioned text runs into ordered lines.

This module provides the line clustering used by every strategy, and the
per-pass ``PageLineReader`` that fetches pages from a provider, caches the
clustered lines and honours cancellation at page-fetch boundaries.
"""

import re
import threading
import unicodedata
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Dict, Iterable, List, Optional

import numpy as np

from .data_models import Line, TextRun
from .logging_config import InferenceCancelled, setup_logging
from .page_provider import PageProvider
from .title_matching import page_header_text

logger = setup_logging()

_ZERO_WIDTH = ('\u200b', '\u200c', '\u200d', '\ufeff')


def normalize_text(text: str) -> str:
    """
    Normalize run text while preserving special characters.

    Args:
        text: Raw text from the provider

    Returns:
        NFC-normalised text with collapsed whitespace
    """
    if not text:
        return ""

    text = unicodedata.normalize('NFC', text)
    for char in _ZERO_WIDTH:
        text = text.replace(char, '')
    return re.sub(r'\s+', ' ', text).strip()


class PageTextExtractor:
    """
    Groups the text runs of one page into lines.

    A single sweep over runs sorted by y: a run joins the current line when
    its y lies within ``tolerance`` of the line's first run, otherwise it
    opens a new line.
    """

    def __init__(self, tolerance: float = 2.2, default_height: float = 12.0):
        self.tolerance = tolerance
        self.default_height = default_height

    def extract_lines(self, runs: Iterable[TextRun]) -> List[Line]:
        """
        Cluster runs into lines ordered top-to-bottom, then left-to-right.

        Args:
            runs: Text runs of one page in top-left coordinates

        Returns:
            List of Line objects; empty when no run carries text
        """
        items = []
        for run in runs:
            text = normalize_text(run.text)
            if text:
                items.append((run, text))
        if not items:
            return []

        items.sort(key=lambda item: (item[0].y, item[0].x))

        groups = []
        current = []
        anchor_y = None
        for run, text in items:
            if anchor_y is None or abs(run.y - anchor_y) <= self.tolerance:
                current.append((run, text))
                if anchor_y is None:
                    anchor_y = run.y
            else:
                groups.append(current)
                current = [(run, text)]
                anchor_y = run.y
        if current:
            groups.append(current)

        lines = [self._build_line(group) for group in groups]
        lines.sort(key=lambda line: (line.y_min, line.x_min))
        for index, line in enumerate(lines):
            line.index = index
        return lines

    def _build_line(self, group) -> Line:
        group = sorted(group, key=lambda item: item[0].x)
        ys = [run.y for run, _ in group]
        heights = [run.height for run, _ in group if run.height > 0]
        height = float(np.median(heights)) if heights else self.default_height
        text = re.sub(r'\s+', ' ', " ".join(text for _, text in group)).strip()
        return Line(
            index=0,
            text=text,
            x_min=min(run.x for run, _ in group),
            x_max=max(run.x + run.width for run, _ in group),
            y_min=min(ys),
            y_max=max(ys),
            height=height,
        )


class PassToken:
    """Cancellation token for one inference pass."""

    def __init__(self, is_current: Optional[Callable[[], bool]] = None):
        self._is_current = is_current
        self._cancelled = threading.Event()

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        if self._cancelled.is_set():
            return True
        return self._is_current is not None and not self._is_current()

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise InferenceCancelled("Inference pass superseded by a newer load")


class PageLineReader:
    """
    Fetches and caches clustered lines for one inference pass.

    Each pass builds its own reader so no state leaks between passes. A page
    whose runs cannot be read yields no lines and the scan moves on.
    """

    def __init__(self, provider: PageProvider, extractor: Optional[PageTextExtractor] = None,
                 token: Optional[PassToken] = None, max_workers: int = 1,
                 header_line_count: int = 8):
        self.provider = provider
        self.extractor = extractor or PageTextExtractor()
        self.token = token or PassToken()
        self.max_workers = max(1, int(max_workers))
        self.header_line_count = header_line_count
        self._lines: Dict[int, List[Line]] = {}
        self._headers: Dict[int, str] = {}
        self._page_count: Optional[int] = None

    @property
    def page_count(self) -> int:
        if self._page_count is None:
            self._page_count = max(0, int(self.provider.page_count()))
        return self._page_count

    def lines(self, page_number: int) -> List[Line]:
        """Clustered lines of a page (cached for the pass)."""
        cached = self._lines.get(page_number)
        if cached is not None:
            return cached
        lines = self._read_page(page_number)
        self._lines[page_number] = lines
        return lines

    def header_text(self, page_number: int) -> str:
        """Normalised text of the first lines of a page."""
        cached = self._headers.get(page_number)
        if cached is None:
            cached = page_header_text(self.lines(page_number), self.header_line_count)
            self._headers[page_number] = cached
        return cached

    def prefetch(self, page_numbers: Iterable[int]) -> None:
        """
        Read several pages ahead of a scan, in parallel when configured.

        Results are stored by page number so completion order has no effect.
        """
        pending = [p for p in page_numbers if p not in self._lines]
        if self.max_workers <= 1 or len(pending) <= 1:
            return

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = {page: executor.submit(self._read_page, page) for page in pending}
            results = {page: future.result() for page, future in futures.items()}
        for page in pending:
            self._lines[page] = results[page]

    def _read_page(self, page_number: int) -> List[Line]:
        self.token.raise_if_cancelled()
        try:
            runs = self.provider.get_page_text_runs(page_number)
        except InferenceCancelled:
            raise
        except Exception as e:
            logger.warning(f"Skipping page {page_number}: {str(e)}")
            return []
        lines = self.extractor.extract_lines(runs or [])
        logger.debug(f"Extracted {len(lines)} lines from page {page_number}")
        return lines
