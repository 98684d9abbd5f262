"""
Shared fixtures for the section navigator test suite.
"""

import os
import sys

import pytest

# Add src directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from section_navigator.data_models import LinkAnnotation, TextRun
from section_navigator.page_provider import InMemoryPage, InMemoryPageProvider


def build_page(lines=(), annotations=(), label=None):
    """Page with one run per (text, x, y, height) tuple."""
    runs = [TextRun(text=text, x=x, y=y, height=height) for text, x, y, height in lines]
    return InMemoryPage(runs=runs, annotations=list(annotations), label=label)


@pytest.fixture
def make_page():
    return build_page


@pytest.fixture
def blank_provider():
    def make(page_count):
        return InMemoryPageProvider([InMemoryPage() for _ in range(page_count)])
    return make


@pytest.fixture
def offset_document():
    """
    Twelve pages: cover, contents on page 2, body titles on physical pages
    5, 7 and 9 printed as 1, 3 and 5 (offset 4).
    """
    filler = ("Body text continues here", 72, 100, 10)
    pages = [build_page([("The Book", 72, 72, 24)])]
    pages.append(build_page([
        ("Contents", 72, 60, 16),
        ("Introduction ........ 1", 72, 90, 10),
        ("Methodology ........ 3", 72, 110, 10),
        ("Evaluation Results ........ 5", 72, 130, 10),
    ]))
    titles = {5: "Introduction", 7: "Methodology", 9: "Evaluation Results"}
    for page_number in range(3, 13):
        lines = [filler]
        if page_number in titles:
            lines = [(titles[page_number], 72, 72, 10), filler]
        pages.append(build_page(lines))
    return InMemoryPageProvider(pages)


@pytest.fixture
def link_toc_document():
    """
    Five pages. Page 1 is a linked contents page whose second entry wraps
    over two lines.
    """
    toc_page = build_page(
        [
            ("Contents", 72, 50, 16),
            ("Overview of the system", 72, 100, 10),
            ("architecture", 72, 108, 10),
            ("Conclusions", 72, 140, 10),
        ],
        annotations=[
            LinkAnnotation(rect=(72, 95, 300, 105), target_page=3),
            LinkAnnotation(rect=(72, 103, 300, 113), target_page=3),
            LinkAnnotation(rect=(72, 135, 300, 145), target_page=5),
        ],
    )
    body = [build_page([("Body text continues here", 72, 100, 10)]) for _ in range(4)]
    return InMemoryPageProvider([toc_page] + body)
