"""
Core data models for Section Navigator.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional, Tuple


Rect = Tuple[float, float, float, float]  # x0, y0, x1, y1 (top-left origin)


class SectionSource(str, Enum):
    """Strategy that produced a section."""
    OUTLINE = "outline"
    TOC_LINK = "toc_link"
    TOC_TEXT = "toc_text"
    HEADING = "heading"
    PAGE_FALLBACK = "page_fallback"


@dataclass
class TextRun:
    """
    A positioned run of text on a page.

    Coordinates use a top-left origin; hosts with a bottom-left native origin
    flip them with ``geometry.flip_y`` before building runs.
    """
    text: str
    x: float
    y: float
    height: float
    width: float = 0.0

    def __post_init__(self):
        self.text = self.text if self.text else ""
        self.x = float(self.x)
        self.y = float(self.y)
        self.height = max(0.0, float(self.height))
        self.width = max(0.0, float(self.width or 0.0))

    def is_empty(self) -> bool:
        """Check if the run carries no visible text."""
        return not self.text or self.text.isspace()


@dataclass
class Line:
    """A row of text runs sharing a vertical band on one page."""
    index: int
    text: str
    x_min: float
    x_max: float
    y_min: float
    y_max: float
    height: float

    @property
    def mid_y(self) -> float:
        return (self.y_min + self.y_max) / 2

    @property
    def top(self) -> float:
        """Top of the text; ``y_min`` is the first run's baseline."""
        return max(0.0, self.y_min - self.height)


@dataclass
class TOCEntry:
    """A parsed table-of-contents line before it is mapped to a physical page."""
    title: str
    page_token: str
    indent: float = 0.0
    toc_page: Optional[int] = None


@dataclass
class ResolvedDestination:
    """
    A jump target resolved to a physical page and an in-page point.

    ``page_number`` is 1-based and ``x``/``y`` use the engine's top-left
    origin. ``explicit`` is the host's native jump target, passed through
    untouched; the PDF provider builds it as ``[page_number, "XYZ", x, y, zoom]``
    with ``y`` measured from the bottom of the page.
    """
    page_number: int
    x: float = 0.0
    y: Optional[float] = None
    zoom: Optional[float] = None
    explicit: Any = None


@dataclass
class LinkAnnotation:
    """
    A hyperlink annotation as exposed by the host.

    The target is given in one of several forms: an already resolved
    ``destination``, an opaque ``dest_ref`` for ``PageProvider.resolve_destination``,
    a ``uri`` carrying ``#page=N``, or a bare ``target_page``.
    """
    rect: Optional[Rect]
    target_page: Optional[int] = None
    dest_ref: Any = None
    destination: Optional[ResolvedDestination] = None
    uri: Optional[str] = None


@dataclass
class OutlineNode:
    """A node of the native bookmark tree."""
    title: str
    dest_ref: Any = None
    children: List["OutlineNode"] = field(default_factory=list)


@dataclass
class Section:
    """
    A navigable section: a title anchored to a physical page.

    ``page`` is 1-based. ``anchor_y`` is null when only the page is known.
    """
    id: Optional[str]
    title: str
    level: int
    page: int
    anchor_x: float = 0.0
    anchor_y: Optional[float] = None
    destination: Any = None
    source: SectionSource = SectionSource.PAGE_FALLBACK

    def __post_init__(self):
        self.title = self.title.strip() if self.title else ""
        self.level = max(1, min(3, int(self.level)))
        self.page = int(self.page)

    @property
    def dedupe_key(self) -> Tuple[int, str]:
        """Key used to drop adjacent duplicates."""
        return self.page, self.title[:120]
