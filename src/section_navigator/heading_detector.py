"""
Heading fallback: structural guesses from font-height outliers.

Used only when the document offers neither an outline nor a table of
contents. Lines noticeably taller than the page's median line, sitting near
the left margin and short enough to be a title, are taken as headings.
"""

import re
from typing import List, Optional

import numpy as np

from .config import InferenceConfig
from .data_models import Line, Section, SectionSource
from .logging_config import setup_logging
from .section_builder import dedupe_sequential, guess_level_from_title
from .text_extractor import PageLineReader

logger = setup_logging()

NUMBERED_HEADING = re.compile(r'^\d+(\.\d+)*[).]?\s+')


class HeadingFallbackDetector:
    """Detects up to a few headings per page from line heights."""

    def __init__(self, config: Optional[InferenceConfig] = None):
        self.config = config or InferenceConfig()

    def is_heading_like(self, text: str) -> bool:
        if not text or len(text) <= 3:
            return False
        numbered = bool(NUMBERED_HEADING.match(text))
        return numbered or len(text) <= self.config.heading_max_length

    def page_candidates(self, lines: List[Line]) -> List[Line]:
        """
        Heading lines of one page, top to bottom, capped per page.

        Args:
            lines: Clustered lines of the page

        Returns:
            At most ``headings_per_page`` lines
        """
        if not lines:
            return []
        config = self.config
        median_height = float(np.median([line.height for line in lines])) or config.default_line_height
        threshold = config.heading_height_ratio * median_height

        candidates = [
            line for line in lines
            if line.height >= threshold
            and line.x_min <= config.heading_max_indent
            and self.is_heading_like(line.text)
        ]
        candidates.sort(key=lambda line: (line.y_min, line.x_min))
        return candidates[:config.headings_per_page]

    def detect(self, reader: PageLineReader) -> List[Section]:
        """
        Scan the leading pages for heading lines.

        Args:
            reader: Line reader of the current pass

        Returns:
            ``heading`` sections ordered by page, then position
        """
        last_page = min(reader.page_count, self.config.heading_max_pages)
        reader.prefetch(range(1, last_page + 1))

        sections = []
        for page_number in range(1, last_page + 1):
            for line in self.page_candidates(reader.lines(page_number)):
                sections.append(Section(
                    id=None,
                    title=line.text,
                    level=guess_level_from_title(line.text),
                    page=page_number,
                    anchor_x=line.x_min,
                    anchor_y=line.top,
                    source=SectionSource.HEADING,
                ))

        sections = dedupe_sequential(sections)
        logger.info(f"Detected {len(sections)} headings over {last_page} pages")
        return sections
