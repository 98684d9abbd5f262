"""
Printed-to-physical page offset estimation.

Printed page numbers in a table of contents are usually shifted from the
physical page index by front matter (covers, roman-numbered preambles). The
estimator finds the pages whose headers best match a sample of TOC titles and
takes the median of the implied offsets.
"""

import math
from typing import Collection, List, Optional, Sequence, Tuple

import numpy as np

from .data_models import TOCEntry
from .logging_config import setup_logging
from .text_extractor import PageLineReader
from .title_matching import title_key, title_match_score
from .toc_parser import is_arabic_token

logger = setup_logging()


def median_offset(candidates: Sequence[int]) -> int:
    """Median of integer offsets, rounding half up for even counts."""
    return int(math.floor(float(np.median(candidates)) + 0.5))


class OffsetEstimator:
    """Estimates ``physical - printed`` from content matches."""

    def __init__(self, sample_size: int = 8, min_page: int = 3, scan_limit: int = 160,
                 accept_score: float = 0.22, min_offset: int = -200, max_offset: int = 400):
        self.sample_size = sample_size
        self.min_page = min_page
        self.scan_limit = scan_limit
        self.accept_score = accept_score
        self.min_offset = min_offset
        self.max_offset = max_offset

    def sample_entries(self, entries: Sequence[TOCEntry]) -> List[TOCEntry]:
        """Arabic-numbered entries with a usable title, in TOC order."""
        sampled = [
            entry for entry in entries
            if is_arabic_token(entry.page_token) and len((entry.title or '').strip()) >= 3
        ]
        return sampled[:self.sample_size]

    def best_page_for_key(self, reader: PageLineReader, key: str,
                          excluded_pages: Collection[int] = ()) -> Tuple[Optional[int], float]:
        """Scan the candidate range for the page whose header best matches ``key``."""
        last_page = min(reader.page_count, self.scan_limit)
        best_page = None
        best_score = -1.0
        for page_number in range(max(self.min_page, 1), last_page + 1):
            if page_number in excluded_pages:
                continue
            score = title_match_score(key, reader.header_text(page_number))
            if score > best_score:
                best_score = score
                best_page = page_number
        return best_page, best_score

    def estimate(self, reader: PageLineReader, entries: Sequence[TOCEntry],
                 excluded_pages: Collection[int] = ()) -> int:
        """
        Estimate the arabic page offset.

        Args:
            reader: Line reader of the current pass
            entries: Parsed TOC entries in TOC order
            excluded_pages: Pages never considered a match (the TOC itself)

        Returns:
            Offset to add to printed numbers; 0 when no entry could be matched
        """
        sampled = self.sample_entries(entries)
        if not sampled:
            return 0

        last_page = min(reader.page_count, self.scan_limit)
        reader.prefetch(range(max(self.min_page, 1), last_page + 1))

        candidates = []
        for entry in sampled:
            key = title_key(entry.title)
            if not key:
                continue
            best_page, best_score = self.best_page_for_key(reader, key, excluded_pages)
            if best_page is not None and best_score >= self.accept_score:
                offset = best_page - int(entry.page_token)
                candidates.append(offset)
                logger.debug(f"Offset candidate {offset} from '{entry.title[:50]}' "
                             f"(page {best_page}, score {best_score:.2f})")

        if not candidates:
            logger.info("No TOC title matched page content, using offset 0")
            return 0

        offset = median_offset(candidates)
        offset = max(self.min_offset, min(self.max_offset, offset))
        logger.info(f"Estimated page offset {offset} from {len(candidates)} candidates")
        return offset
