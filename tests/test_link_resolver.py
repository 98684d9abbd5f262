"""
Tests for link-based table of contents resolution.
"""

from section_navigator.config import InferenceConfig
from section_navigator.data_models import Line, LinkAnnotation, ResolvedDestination, SectionSource
from section_navigator.link_resolver import (
    LinkAnnotationResolver, RawLinkEntry, looks_like_continuation,
    merge_multiline_entries, merge_title, pick_line_by_rect, pick_nearest_line,
)
from section_navigator.page_provider import InMemoryPageProvider
from section_navigator.text_extractor import PageLineReader

from conftest import build_page


def _line(index, text, y, x=72.0, x_max=300.0):
    return Line(index=index, text=text, x_min=x, x_max=x_max, y_min=y, y_max=y, height=10.0)


def _raw(line_index, title, mid_y, indent=72.0, target_page=3, toc_page=1, level=1):
    return RawLinkEntry(
        toc_page=toc_page, line_index=line_index, mid_y=mid_y, indent=indent,
        target_page=target_page, anchor_x=0.0, anchor_y=None, destination=None,
        title=title, level=level,
    )


def _linked_toc(annotations, page_count=6, destinations=None):
    toc_page = build_page(
        [("Contents", 72, 50, 16), ("Chapter One", 72, 100, 10), ("Chapter Two", 72, 140, 10)],
        annotations=annotations,
    )
    body = [build_page([("Body text", 72, 100, 10)]) for _ in range(page_count - 1)]
    return InMemoryPageProvider([toc_page] + body, destinations=destinations)


class TestContinuationHeuristics:
    """Test cases for wrapped-title detection."""

    def test_lowercase_start_continues(self):
        assert looks_like_continuation("Overview of the system", "architecture")

    def test_hyphen_start_continues(self):
        assert looks_like_continuation("Short", "-based methods")

    def test_long_unterminated_line_continues(self):
        assert looks_like_continuation("Results of the experiments", "Across Datasets")

    def test_short_terminated_line_does_not_continue(self):
        assert not looks_like_continuation("Short.", "Next")

    def test_numbered_next_line_never_continues(self):
        assert not looks_like_continuation("Introduction and background", "2 Methods")
        assert not looks_like_continuation("Introduction and background", "a) methods")

    def test_caption_never_continues(self):
        assert not looks_like_continuation("Background of the work", "Figure 2 Overview")

    def test_shared_first_word(self):
        assert looks_like_continuation("Data", "Data sources")

    def test_merge_title(self):
        assert merge_title("Overview of the ", " architecture ...") == "Overview of the architecture"
        assert merge_title("", "B") == "B"


class TestMergeMultilineEntries:
    """Test cases for merge_multiline_entries."""

    def test_wrapped_title_is_merged(self):
        merged = merge_multiline_entries([
            _raw(1, "Overview of the system", 100.0),
            _raw(2, "architecture", 108.0),
        ])
        assert len(merged) == 1
        assert merged[0].title == "Overview of the system architecture"
        assert merged[0].target_page == 3
        assert merged[0].mid_y == 100.0

    def test_distant_lines_stay_separate(self):
        merged = merge_multiline_entries([
            _raw(1, "Overview of the system", 100.0),
            _raw(2, "architecture", 125.0),
        ])
        assert len(merged) == 2

    def test_different_indent_stays_separate(self):
        merged = merge_multiline_entries([
            _raw(1, "Overview of the system", 100.0, indent=72.0),
            _raw(2, "architecture", 108.0, indent=150.0),
        ])
        assert len(merged) == 2

    def test_different_toc_pages_stay_separate(self):
        merged = merge_multiline_entries([
            _raw(1, "Overview of the system", 100.0, toc_page=1),
            _raw(0, "architecture", 104.0, toc_page=2),
        ])
        assert len(merged) == 2

    def test_second_link_on_same_line_is_dropped(self):
        merged = merge_multiline_entries([
            _raw(1, "Introduction", 100.0),
            _raw(1, "Introduction", 100.0),
            _raw(2, "Conclusions", 120.0, target_page=5),
        ])
        assert [(e.title, e.target_page) for e in merged] == [("Introduction", 3), ("Conclusions", 5)]

    def test_merged_level_is_outermost(self):
        merged = merge_multiline_entries([
            _raw(1, "Overview of the system", 100.0, level=2),
            _raw(2, "architecture", 108.0, level=1),
        ])
        assert merged[0].level == 1

    def test_inputs_not_mutated(self):
        first = _raw(1, "Overview of the system", 100.0)
        merge_multiline_entries([first, _raw(2, "architecture", 108.0)])
        assert first.title == "Overview of the system"


class TestLinePicking:
    """Test cases for matching link rects to lines."""

    def setup_method(self):
        self.lines = [
            _line(0, "Contents", 50.0),
            _line(1, "Chapter One", 100.0),
            _line(2, "Chapter Two", 140.0, x=320.0, x_max=500.0),
        ]

    def test_overlapping_nearest_centre(self):
        assert pick_line_by_rect(self.lines, (72, 95, 300, 105)).text == "Chapter One"

    def test_requires_horizontal_overlap(self):
        assert pick_line_by_rect(self.lines, (72, 135, 300, 145)).text == "Chapter One"
        assert pick_line_by_rect(self.lines, (600, 135, 700, 145)) is None

    def test_nearest_line_ignores_x(self):
        assert pick_nearest_line(self.lines, (600, 135, 700, 145)).text == "Chapter Two"
        assert pick_line_by_rect([], (0, 0, 1, 1)) is None
        assert pick_nearest_line([], (0, 0, 1, 1)) is None


class TestLinkAnnotationResolver:
    """Test cases for LinkAnnotationResolver."""

    def setup_method(self):
        self.resolver = LinkAnnotationResolver()

    def test_wrapped_link_title(self, link_toc_document):
        sections = self.resolver.resolve(PageLineReader(link_toc_document))

        assert [(s.title, s.page) for s in sections] == [
            ("Overview of the system architecture", 3),
            ("Conclusions", 5),
        ]
        assert all(s.source == SectionSource.TOC_LINK for s in sections)

    def test_named_destination_keeps_anchor(self):
        destinations = {"chap1": ResolvedDestination(4, x=10.0, y=700.0, explicit=[4, "XYZ", 10, 700, None])}
        provider = _linked_toc([LinkAnnotation(rect=(72, 95, 300, 105), dest_ref="chap1")],
                               destinations=destinations)
        sections = self.resolver.resolve(PageLineReader(provider))

        assert len(sections) == 1
        section = sections[0]
        assert (section.title, section.page) == ("Chapter One", 4)
        assert section.anchor_x == 10.0
        assert section.anchor_y == 700.0
        assert section.destination == [4, "XYZ", 10, 700, None]

    def test_uri_page_fragment(self):
        provider = _linked_toc([LinkAnnotation(rect=(72, 95, 300, 105), uri="doc.pdf#page=4")])
        sections = self.resolver.resolve(PageLineReader(provider))
        assert [(s.title, s.page) for s in sections] == [("Chapter One", 4)]

    def test_unusable_links_skipped(self):
        provider = _linked_toc([
            LinkAnnotation(rect=(72, 95, 300, 105), target_page=99),
            LinkAnnotation(rect=(72, 95, 300, 105), dest_ref="missing"),
            LinkAnnotation(rect=(72, 95, 300, 105), uri="https://example.org"),
            LinkAnnotation(rect=(72, 135, 300, 145), target_page=5),
        ])
        sections = self.resolver.resolve(PageLineReader(provider))
        assert [(s.title, s.page) for s in sections] == [("Chapter Two", 5)]

    def test_page_regressions_dropped(self):
        provider = _linked_toc([
            LinkAnnotation(rect=(72, 95, 300, 105), target_page=5),
            LinkAnnotation(rect=(72, 135, 300, 145), target_page=3),
        ])
        sections = self.resolver.resolve(PageLineReader(provider))
        assert [(s.title, s.page) for s in sections] == [("Chapter One", 5)]

    def test_entries_follow_line_order(self):
        provider = _linked_toc([
            LinkAnnotation(rect=(72, 135, 300, 145), target_page=4),
            LinkAnnotation(rect=(72, 95, 300, 105), target_page=2),
        ])
        sections = self.resolver.resolve(PageLineReader(provider))
        assert [s.title for s in sections] == ["Chapter One", "Chapter Two"]

    def test_title_and_page_number_links_on_one_line(self):
        toc_page = build_page(
            [
                ("Contents", 72, 50, 16),
                ("Introduction", 72, 100, 10), ("9", 500, 100, 10),
                ("Conclusions", 72, 120, 10), ("12", 500, 120, 10),
            ],
            annotations=[
                LinkAnnotation(rect=(72, 95, 200, 105), target_page=3),
                LinkAnnotation(rect=(495, 95, 510, 105), target_page=3),
                LinkAnnotation(rect=(72, 115, 200, 125), target_page=5),
                LinkAnnotation(rect=(495, 115, 510, 125), target_page=5),
            ],
        )
        body = [build_page([("Body text", 72, 100, 10)]) for _ in range(5)]
        sections = self.resolver.resolve(PageLineReader(InMemoryPageProvider([toc_page] + body)))

        assert [(s.title, s.page) for s in sections] == [("Introduction", 3), ("Conclusions", 5)]

    def test_dot_leader_suffix_removed_from_title(self):
        toc_page = build_page(
            [("Contents", 72, 50, 16), ("1 Introduction ........ 1", 72, 100, 10)],
            annotations=[LinkAnnotation(rect=(72, 95, 300, 105), target_page=2)],
        )
        provider = InMemoryPageProvider([toc_page, build_page([("Body", 72, 72, 10)])])
        sections = self.resolver.resolve(PageLineReader(provider))
        assert [s.title for s in sections] == ["1 Introduction"]

    def test_no_toc_or_no_links(self, offset_document):
        assert self.resolver.resolve(PageLineReader(offset_document)) == []
        provider = InMemoryPageProvider([build_page([("Plain", 72, 72, 10)])])
        assert self.resolver.resolve(PageLineReader(provider)) == []

    def test_failing_destination_lookup_is_skipped(self):
        class BrokenDestinations(InMemoryPageProvider):
            def resolve_destination(self, ref):
                raise RuntimeError("corrupt name tree")

        toc_page = build_page(
            [("Contents", 72, 50, 16), ("Chapter One", 72, 100, 10)],
            annotations=[LinkAnnotation(rect=(72, 95, 300, 105), dest_ref="chap1")],
        )
        provider = BrokenDestinations([toc_page, build_page([("Body", 72, 72, 10)])])
        assert self.resolver.resolve(PageLineReader(provider)) == []

    def test_figure_links_filtered(self):
        provider = _linked_toc([LinkAnnotation(rect=(72, 95, 300, 105), target_page=3)])
        provider.pages[0].runs[1].text = "Figure 1 Pipeline"
        assert self.resolver.resolve(PageLineReader(provider)) == []

        resolver = LinkAnnotationResolver(InferenceConfig(include_figures=True))
        assert len(resolver.resolve(PageLineReader(provider))) == 1
