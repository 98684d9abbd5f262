"""
Page provider capability consumed by the inference engine.

A provider exposes positioned text runs, link annotations, destination
resolution and an optional native outline for one document. All coordinates
handed to the engine use a top-left origin.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .data_models import LinkAnnotation, OutlineNode, ResolvedDestination, TextRun
from .geometry import flip_rect, flip_y, normalize_rect
from .logging_config import PageExtractionError, setup_logging

logger = setup_logging()


class PageProvider(ABC):
    """Read-only view of a paginated document. Page numbers are 1-based."""

    @abstractmethod
    def page_count(self) -> int:
        """Number of physical pages."""

    @abstractmethod
    def get_page_text_runs(self, page_number: int) -> List[TextRun]:
        """Positioned text runs for one page."""

    def get_page_annotations(self, page_number: int) -> List[LinkAnnotation]:
        """Link annotations for one page; none by default."""
        return []

    def resolve_destination(self, ref: Any) -> Optional[ResolvedDestination]:
        """Resolve a named or explicit destination; unresolvable by default."""
        return None

    def get_outline(self) -> Optional[List[OutlineNode]]:
        """Top-level outline nodes, or None when the document has no outline."""
        return None

    def get_page_labels(self) -> Optional[List[str]]:
        """Printed page labels indexed by physical page - 1, when declared."""
        return None


@dataclass
class InMemoryPage:
    """Content of one page held in memory."""
    runs: List[TextRun] = field(default_factory=list)
    annotations: List[LinkAnnotation] = field(default_factory=list)
    height: float = 842.0
    label: Optional[str] = None


class InMemoryPageProvider(PageProvider):
    """
    Provider over pages held in memory.

    Used by hosts that already extracted page content (for example in a
    browser or another process) and by the test suite.
    """

    def __init__(self, pages: List[InMemoryPage],
                 outline: Optional[List[OutlineNode]] = None,
                 destinations: Optional[Dict[Any, ResolvedDestination]] = None):
        self.pages = list(pages)
        self.outline = outline
        self.destinations = dict(destinations or {})

    def page_count(self) -> int:
        return len(self.pages)

    def _page(self, page_number: int) -> InMemoryPage:
        if page_number < 1 or page_number > len(self.pages):
            raise PageExtractionError(f"Page {page_number} out of range 1..{len(self.pages)}")
        return self.pages[page_number - 1]

    def get_page_text_runs(self, page_number: int) -> List[TextRun]:
        return list(self._page(page_number).runs)

    def get_page_annotations(self, page_number: int) -> List[LinkAnnotation]:
        return list(self._page(page_number).annotations)

    def resolve_destination(self, ref: Any) -> Optional[ResolvedDestination]:
        try:
            return self.destinations.get(ref)
        except TypeError:
            # Unhashable explicit destinations are never registered
            return None

    def get_outline(self) -> Optional[List[OutlineNode]]:
        return self.outline

    def get_page_labels(self) -> Optional[List[str]]:
        labels = [page.label for page in self.pages]
        if not any(labels):
            return None
        return [label or "" for label in labels]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InMemoryPageProvider":
        """
        Build a provider from a JSON-like document description.

        Expected shape::

            {
              "origin": "top-left" | "bottom-left",
              "pages": [{"height": 842, "label": "iv",
                         "runs": [{"text", "x", "y", "height", "width"}],
                         "links": [{"rect": [x0, y0, x1, y1], "page": 5,
                                    "dest": "ref", "uri": "...#page=5"}]}],
              "outline": [{"title": "...", "dest": "ref", "children": [...]}],
              "destinations": {"ref": {"page": 5, "x": 0, "y": 700}}
            }

        With ``"origin": "bottom-left"`` every y coordinate is flipped here,
        using the height of the page it belongs to.
        """
        bottom_left = str(data.get('origin', 'top-left')).lower() == 'bottom-left'
        pages = []
        for raw_page in data.get('pages', []):
            height = float(raw_page.get('height', 842.0))
            runs = []
            for raw_run in raw_page.get('runs', []):
                y = float(raw_run['y'])
                runs.append(TextRun(
                    text=raw_run.get('text', ''),
                    x=raw_run['x'],
                    y=flip_y(y, height) if bottom_left else y,
                    height=raw_run.get('height', 0.0),
                    width=raw_run.get('width', 0.0),
                ))
            annotations = []
            for raw_link in raw_page.get('links', []):
                rect = raw_link.get('rect')
                if rect:
                    rect = flip_rect(rect, height) if bottom_left else normalize_rect(rect)
                annotations.append(LinkAnnotation(
                    rect=rect,
                    target_page=raw_link.get('page'),
                    dest_ref=raw_link.get('dest'),
                    uri=raw_link.get('uri'),
                ))
            pages.append(InMemoryPage(runs=runs, annotations=annotations,
                                      height=height, label=raw_page.get('label')))

        destinations = {}
        for ref, raw_dest in (data.get('destinations') or {}).items():
            page_number = int(raw_dest['page'])
            y = raw_dest.get('y')
            if y is not None and bottom_left and 1 <= page_number <= len(pages):
                y = flip_y(y, pages[page_number - 1].height)
            destinations[ref] = ResolvedDestination(
                page_number=page_number,
                x=float(raw_dest.get('x', 0.0) or 0.0),
                y=y,
                zoom=raw_dest.get('zoom'),
                explicit=raw_dest.get('explicit'),
            )

        outline = _outline_from_dicts(data['outline']) if data.get('outline') else None
        logger.debug(f"Built in-memory provider with {len(pages)} pages")
        return cls(pages, outline=outline, destinations=destinations)


def _outline_from_dicts(items: List[Dict[str, Any]]) -> List[OutlineNode]:
    """Convert nested outline dicts to OutlineNode trees without recursion."""
    roots: List[OutlineNode] = []
    stack = [(item, roots) for item in reversed(items)]
    while stack:
        item, siblings = stack.pop()
        node = OutlineNode(title=item.get('title', ''), dest_ref=item.get('dest'))
        siblings.append(node)
        for child in reversed(item.get('children') or []):
            stack.append((child, node.children))
    return roots
