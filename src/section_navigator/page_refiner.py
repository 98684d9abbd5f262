"""
Local page correction by title matching.
"""

from typing import Collection, List

from .logging_config import setup_logging
from .text_extractor import PageLineReader
from .title_matching import title_key, title_match_score

logger = setup_logging()


class PageMatchRefiner:
    """Nudges a guessed page to the best matching page within a small window."""

    def __init__(self, window: int = 3, accept_score: float = 0.15):
        self.window = window
        self.accept_score = accept_score

    def candidate_pages(self, guess_page: int, total: int,
                        excluded_pages: Collection[int] = ()) -> List[int]:
        """Window pages ordered by distance from the guess, guess first."""
        start = max(1, min(total, guess_page - self.window))
        end = max(1, min(total, guess_page + self.window))
        pages = [p for p in range(start, end + 1) if p not in excluded_pages]
        return sorted(pages, key=lambda p: (abs(p - guess_page), p))

    def refine(self, reader: PageLineReader, title: str, guess_page: int,
               excluded_pages: Collection[int] = ()) -> int:
        """
        Return the page within ``guess_page ± window`` whose header best
        matches ``title``, or ``guess_page`` when no page scores well enough.

        Ties go to the page closest to the guess. ``excluded_pages`` (the TOC
        pages themselves) never qualify.
        """
        key = title_key(title)
        total = reader.page_count
        if not key or total < 1:
            return guess_page

        pages = self.candidate_pages(guess_page, total, excluded_pages)
        reader.prefetch(sorted(pages))

        best_page = guess_page
        best_score = -1.0
        for page_number in pages:
            score = title_match_score(key, reader.header_text(page_number))
            if score > best_score:
                best_score = score
                best_page = page_number

        if best_score >= self.accept_score:
            if best_page != guess_page:
                logger.debug(f"Refined '{title[:50]}' from page {guess_page} to {best_page}")
            return best_page
        return guess_page
