"""
Tests for line clustering and the per-pass page reader.
"""

import pytest

from section_navigator.data_models import TextRun
from section_navigator.logging_config import InferenceCancelled
from section_navigator.page_provider import InMemoryPage, InMemoryPageProvider
from section_navigator.text_extractor import (
    PageLineReader, PageTextExtractor, PassToken, normalize_text,
)


class TestNormalizeText:
    """Test cases for run text normalisation."""

    def test_collapses_whitespace(self):
        assert normalize_text("  Intro   duction \n") == "Intro duction"

    def test_removes_zero_width_characters(self):
        assert normalize_text("Intro\u200bduction\ufeff") == "Introduction"

    def test_empty(self):
        assert normalize_text("") == ""
        assert normalize_text(None) == ""

    def test_preserves_accents(self):
        assert normalize_text("Métodos y Técnicas") == "Métodos y Técnicas"


class TestPageTextExtractor:
    """Test cases for PageTextExtractor."""

    def setup_method(self):
        self.extractor = PageTextExtractor()

    def test_empty_page(self):
        assert self.extractor.extract_lines([]) == []
        assert self.extractor.extract_lines([TextRun("   ", 10, 10, 10)]) == []

    def test_runs_on_same_row_join_in_x_order(self):
        runs = [
            TextRun("World", 100, 50.5, 10),
            TextRun("Hello", 40, 50, 10),
            TextRun("Second", 40, 70, 10),
        ]
        lines = self.extractor.extract_lines(runs)

        assert [line.text for line in lines] == ["Hello World", "Second"]
        assert [line.index for line in lines] == [0, 1]
        assert lines[0].x_min == 40
        assert lines[0].y_min == 50
        assert lines[0].y_max == 50.5

    def test_rows_beyond_tolerance_split(self):
        lines = self.extractor.extract_lines([
            TextRun("Upper", 10, 50, 10),
            TextRun("Lower", 10, 52.5, 10),
        ])
        assert [line.text for line in lines] == ["Upper", "Lower"]

    def test_tolerance_measured_from_first_run_of_line(self):
        lines = self.extractor.extract_lines([
            TextRun("a", 10, 50, 10),
            TextRun("b", 20, 52, 10),
            TextRun("c", 30, 54, 10),
        ])
        assert [line.text for line in lines] == ["a b", "c"]

    def test_line_height_is_median(self):
        lines = self.extractor.extract_lines([
            TextRun("Energy", 10, 50, 10),
            TextRun("2", 50, 49, 4),
            TextRun("equals", 60, 50, 10),
        ])
        assert len(lines) == 1
        assert lines[0].height == 10

    def test_top_is_baseline_minus_height(self):
        lines = self.extractor.extract_lines([
            TextRun("Heading", 72, 100, 18),
            TextRun("Clipped", 72, 130, 400),
        ])
        assert lines[0].top == 82.0
        assert lines[1].top == 0.0

    def test_default_height_when_runs_have_none(self):
        lines = PageTextExtractor(default_height=9.0).extract_lines([TextRun("x y", 10, 10, 0)])
        assert lines[0].height == 9.0

    def test_x_max_includes_run_width(self):
        lines = self.extractor.extract_lines([TextRun("Title", 72, 100, 12, width=40)])
        assert lines[0].x_max == 112

    def test_lines_ordered_top_to_bottom(self):
        lines = self.extractor.extract_lines([
            TextRun("third", 10, 300, 10),
            TextRun("first", 10, 100, 10),
            TextRun("second", 10, 200, 10),
        ])
        assert [line.text for line in lines] == ["first", "second", "third"]


class CountingProvider(InMemoryPageProvider):
    """In-memory provider recording page reads."""

    def __init__(self, pages, failing_pages=()):
        super().__init__(pages)
        self.reads = []
        self.failing_pages = set(failing_pages)

    def get_page_text_runs(self, page_number):
        self.reads.append(page_number)
        if page_number in self.failing_pages:
            raise RuntimeError("broken content stream")
        return super().get_page_text_runs(page_number)


def _pages(count):
    return [InMemoryPage(runs=[TextRun(f"Page text {n}", 72, 72, 10)]) for n in range(1, count + 1)]


class TestPageLineReader:
    """Test cases for PageLineReader."""

    def test_lines_are_cached(self):
        provider = CountingProvider(_pages(3))
        reader = PageLineReader(provider)

        first = reader.lines(2)
        second = reader.lines(2)

        assert first is second
        assert provider.reads == [2]
        assert first[0].text == "Page text 2"

    def test_failing_page_yields_no_lines(self):
        provider = CountingProvider(_pages(3), failing_pages={2})
        reader = PageLineReader(provider)

        assert reader.lines(2) == []
        assert reader.lines(3)[0].text == "Page text 3"

    def test_header_text_is_normalised(self):
        provider = InMemoryPageProvider([InMemoryPage(runs=[
            TextRun("1.2 Scope & Goals", 72, 72, 10),
            TextRun("Body", 72, 90, 10),
        ])])
        reader = PageLineReader(provider)
        assert reader.header_text(1) == "1 2 scope goals body"

    def test_cancelled_token_stops_reads(self):
        provider = CountingProvider(_pages(3))
        token = PassToken()
        reader = PageLineReader(provider, token=token)
        reader.lines(1)

        token.cancel()

        with pytest.raises(InferenceCancelled):
            reader.lines(2)
        assert provider.reads == [1]

    def test_token_follows_currency_callback(self):
        current = {"value": True}
        token = PassToken(lambda: current["value"])
        assert not token.cancelled
        current["value"] = False
        assert token.cancelled

    def test_parallel_prefetch_matches_sequential_reads(self):
        sequential = PageLineReader(InMemoryPageProvider(_pages(6)))
        parallel = PageLineReader(InMemoryPageProvider(_pages(6)), max_workers=4)

        parallel.prefetch(range(1, 7))

        for page in range(1, 7):
            assert parallel.lines(page) == sequential.lines(page)

    def test_prefetch_single_worker_is_lazy(self):
        provider = CountingProvider(_pages(4))
        reader = PageLineReader(provider, max_workers=1)
        reader.prefetch(range(1, 5))
        assert provider.reads == []
