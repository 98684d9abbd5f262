"""
Section inference orchestration.

Strategies are tried in a fixed order (outline, link TOC, text TOC, headings,
one section per page) and the first non-empty result wins. Results are never
merged across strategies.

``DocumentSession`` adds last-load-wins semantics on top: only the most
recently started pass may publish its sections.
"""

import itertools
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import replace
from enum import Enum
from typing import Callable, Dict, List, Optional

from .config import InferenceConfig
from .data_models import Section, SectionSource
from .heading_detector import HeadingFallbackDetector
from .link_resolver import LinkAnnotationResolver
from .logging_config import InferenceCancelled, setup_logging
from .offset_estimator import OffsetEstimator
from .outline import flatten_outline
from .page_provider import PageProvider
from .section_builder import SectionListBuilder, dedupe_sequential
from .text_extractor import PageLineReader, PageTextExtractor, PassToken
from .toc_locator import TOCPage, TOCPageLocator
from .toc_parser import parse_toc_line_from_line

logger = setup_logging()


class SequentialIdGenerator:
    """Deterministic section ids: ``sec_1``, ``sec_2``, ..."""

    def __init__(self, prefix: str = "sec", start: int = 1):
        self.prefix = prefix
        self._counter = itertools.count(start)

    def __call__(self) -> str:
        return f"{self.prefix}_{next(self._counter)}"


class InferenceState(Enum):
    TRY_OUTLINE = "try_outline"
    TRY_LINK_TOC = "try_link_toc"
    TRY_TEXT_TOC = "try_text_toc"
    TRY_HEADINGS = "try_headings"
    FALLBACK = "fallback"
    DONE = "done"


NEXT_STATE = {
    InferenceState.TRY_OUTLINE: InferenceState.TRY_LINK_TOC,
    InferenceState.TRY_LINK_TOC: InferenceState.TRY_TEXT_TOC,
    InferenceState.TRY_TEXT_TOC: InferenceState.TRY_HEADINGS,
    InferenceState.TRY_HEADINGS: InferenceState.FALLBACK,
    InferenceState.FALLBACK: InferenceState.DONE,
}


class _PassContext:
    """Intermediate results shared by the strategies of one pass."""

    def __init__(self, provider: PageProvider, reader: PageLineReader, locator: TOCPageLocator):
        self.provider = provider
        self.reader = reader
        self.locator = locator
        self._toc_pages: Optional[List[TOCPage]] = None

    @property
    def total_pages(self) -> int:
        return self.reader.page_count

    def toc_pages(self) -> List[TOCPage]:
        if self._toc_pages is None:
            self._toc_pages = self.locator.locate(self.reader)
        return self._toc_pages


class SectionInferenceEngine:
    """
    Derives an ordered section list for one document.

    The engine never raises for content problems: a failing strategy counts
    as empty and the next one is tried. For a document with at least one page
    the result is never empty.
    """

    def __init__(self, config: Optional[InferenceConfig] = None,
                 id_generator_factory: Optional[Callable[[], Callable[[], str]]] = None):
        self.config = config or InferenceConfig()
        self.id_generator_factory = id_generator_factory or SequentialIdGenerator
        self.locator = TOCPageLocator(self.config.max_scan_pages,
                                      self.config.max_toc_span_pages,
                                      self.config.min_dot_leader_lines)
        self.link_resolver = LinkAnnotationResolver(self.config, self.locator)
        self.offset_estimator = OffsetEstimator(
            sample_size=self.config.offset_sample_size,
            min_page=self.config.offset_min_page,
            scan_limit=self.config.offset_scan_limit,
            accept_score=self.config.offset_accept_score,
            min_offset=self.config.min_offset,
            max_offset=self.config.max_offset,
        )
        self.section_builder = SectionListBuilder(self.config)
        self.heading_detector = HeadingFallbackDetector(self.config)
        self._strategies: Dict[InferenceState, Callable[[_PassContext], List[Section]]] = {
            InferenceState.TRY_OUTLINE: self._try_outline,
            InferenceState.TRY_LINK_TOC: self._try_link_toc,
            InferenceState.TRY_TEXT_TOC: self._try_text_toc,
            InferenceState.TRY_HEADINGS: self._try_headings,
            InferenceState.FALLBACK: self._page_fallback,
        }

    def infer_sections(self, provider: PageProvider, token: Optional[PassToken] = None) -> List[Section]:
        """
        Run one inference pass.

        Args:
            provider: Page provider of the document
            token: Cancellation token; a cancelled pass raises InferenceCancelled

        Returns:
            Ordered list of sections
        """
        token = token or PassToken()
        extractor = PageTextExtractor(self.config.line_tolerance, self.config.default_line_height)
        reader = PageLineReader(provider, extractor, token,
                                max_workers=self.config.max_workers,
                                header_line_count=self.config.header_line_count)
        try:
            total_pages = reader.page_count
        except InferenceCancelled:
            raise
        except Exception as e:
            logger.error(f"Could not read page count: {e}")
            return []
        if total_pages < 1:
            logger.warning("Document has no pages, no sections inferred")
            return []

        context = _PassContext(provider, reader, self.locator)
        state = InferenceState.TRY_OUTLINE
        sections: List[Section] = []
        while state is not InferenceState.DONE:
            token.raise_if_cancelled()
            sections = self._run_strategy(state, context)
            if sections:
                logger.info(f"Strategy {state.value} produced {len(sections)} sections")
                break
            logger.debug(f"Strategy {state.value} produced no sections")
            state = NEXT_STATE[state]

        return self._finalize(sections, total_pages)

    def _run_strategy(self, state: InferenceState, context: _PassContext) -> List[Section]:
        try:
            return self._strategies[state](context) or []
        except InferenceCancelled:
            raise
        except Exception as e:
            logger.warning(f"Strategy {state.value} failed: {e}")
            return []

    def _try_outline(self, context: _PassContext) -> List[Section]:
        outline = context.provider.get_outline()
        if not outline:
            return []
        return flatten_outline(context.provider, outline, context.total_pages)

    def _try_link_toc(self, context: _PassContext) -> List[Section]:
        toc_pages = context.toc_pages()
        if not toc_pages:
            return []
        return self.link_resolver.resolve(context.reader, toc_pages)

    def _try_text_toc(self, context: _PassContext) -> List[Section]:
        toc_pages = context.toc_pages()
        if not toc_pages:
            return []

        entries = []
        for page_number, lines in toc_pages:
            for line in lines:
                entry = parse_toc_line_from_line(line, page_number)
                if entry is not None:
                    entries.append(entry)
        if not entries:
            return []

        excluded = {page_number for page_number, _ in toc_pages}
        offset = self.offset_estimator.estimate(context.reader, entries, excluded)
        return self.section_builder.build(context.reader, entries, offset, excluded)

    def _try_headings(self, context: _PassContext) -> List[Section]:
        return self.heading_detector.detect(context.reader)

    def _page_fallback(self, context: _PassContext) -> List[Section]:
        return [
            Section(
                id=None,
                title=self.config.fallback_title_format.format(page=page),
                level=1,
                page=page,
                source=SectionSource.PAGE_FALLBACK,
            )
            for page in range(1, context.total_pages + 1)
        ]

    def _finalize(self, sections: List[Section], total_pages: int) -> List[Section]:
        """Clamp pages, drop adjacent duplicates and stamp ids."""
        clamped = [replace(s, page=max(1, min(total_pages, s.page))) for s in sections]
        next_id = self.id_generator_factory()
        return [replace(s, id=next_id()) for s in dedupe_sequential(clamped)]


class DocumentSession:
    """
    Holds the published sections of the document currently loaded.

    Every ``load`` supersedes the previous ones: an older pass stops at its
    next page fetch and its result is discarded, so only the most recently
    started pass can publish.
    """

    def __init__(self, engine: Optional[SectionInferenceEngine] = None, background_workers: int = 2):
        self.engine = engine or SectionInferenceEngine()
        self.background_workers = background_workers
        self._generations = itertools.count(1)
        self._current_generation = 0
        self._published: List[Section] = []
        self._publish_lock = threading.Lock()
        self._executor: Optional[ThreadPoolExecutor] = None

    @property
    def sections(self) -> List[Section]:
        """Sections of the latest completed load."""
        return list(self._published)

    def _begin(self) -> int:
        with self._publish_lock:
            generation = next(self._generations)
            self._current_generation = generation
        return generation

    def is_current(self, generation: int) -> bool:
        return self._current_generation == generation

    def load(self, provider: PageProvider) -> Optional[List[Section]]:
        """
        Infer and publish sections for a newly loaded document.

        Returns:
            The published sections, or None when a newer load superseded this one
        """
        return self._run_load(provider, self._begin())

    def _run_load(self, provider: PageProvider, generation: int) -> Optional[List[Section]]:
        token = PassToken(lambda: self.is_current(generation))
        try:
            sections = self.engine.infer_sections(provider, token)
        except InferenceCancelled:
            logger.info(f"Load {generation} superseded, discarding its result")
            return None

        with self._publish_lock:
            if not self.is_current(generation):
                logger.info(f"Load {generation} finished after a newer load started, discarding")
                return None
            self._published = list(sections)
        return list(sections)

    def submit(self, provider: PageProvider) -> "Future[Optional[List[Section]]]":
        """
        Run a load on a background thread.

        The load supersedes earlier ones at call time, not when the worker
        picks it up.
        """
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=self.background_workers)
        generation = self._begin()
        return self._executor.submit(self._run_load, provider, generation)

    def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None
