"""
PDF page provider with PyMuPDF integration.

This module exposes a PDF document through the ``PageProvider`` capability:
text spans become positioned runs, link annotations keep their resolved
targets, and the native outline is converted into ``OutlineNode`` trees.
PyMuPDF already reports coordinates with a top-left origin; only the explicit
destination arrays handed back to hosts are converted to native PDF space.
"""

import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import fitz  # PyMuPDF

from .data_models import LinkAnnotation, OutlineNode, ResolvedDestination, TextRun
from .geometry import flip_y, normalize_rect
from .logging_config import DestinationResolutionError, PageExtractionError, setup_logging
from .page_provider import PageProvider

logger = setup_logging()


@dataclass(frozen=True)
class PdfDestination:
    """An explicit in-document destination (0-based page index)."""
    page_index: int
    x: float = 0.0
    y: Optional[float] = None
    zoom: Optional[float] = None


class PyMuPDFPageProvider(PageProvider):
    """
    Page provider backed by a PyMuPDF document.

    PyMuPDF documents are not thread-safe, so every access goes through one
    lock; parallel page reads are serialised here.
    """

    supported_extensions = {'.pdf'}

    def __init__(self, document: "fitz.Document", name: str = "<memory>"):
        self.document = document
        self.name = name
        self._lock = threading.RLock()
        self._named_destinations: Optional[Dict[str, Any]] = None

    @classmethod
    def open(cls, pdf_path: Union[str, Path]) -> "PyMuPDFPageProvider":
        """
        Open a PDF file.

        Raises:
            FileNotFoundError: If the file doesn't exist
            ValueError: If the file is not a PDF
            PageExtractionError: If PyMuPDF cannot open it
        """
        pdf_path = Path(pdf_path)
        if not pdf_path.exists():
            raise FileNotFoundError(f"PDF file not found: {pdf_path}")
        if pdf_path.suffix.lower() not in cls.supported_extensions:
            raise ValueError(f"Unsupported file type: {pdf_path.suffix}")

        try:
            document = fitz.open(str(pdf_path))
        except Exception as e:
            raise PageExtractionError(f"Cannot open PDF {pdf_path}: {e}") from e
        logger.info(f"Opened PDF {pdf_path} ({document.page_count} pages)")
        return cls(document, name=str(pdf_path))

    @classmethod
    def from_bytes(cls, data: bytes, name: str = "<memory>") -> "PyMuPDFPageProvider":
        try:
            document = fitz.open(stream=data, filetype="pdf")
        except Exception as e:
            raise PageExtractionError(f"Cannot open PDF {name}: {e}") from e
        return cls(document, name=name)

    def close(self) -> None:
        with self._lock:
            self.document.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def page_count(self) -> int:
        with self._lock:
            return self.document.page_count

    def _load_page(self, page_number: int):
        if page_number < 1 or page_number > self.document.page_count:
            raise PageExtractionError(f"Page {page_number} out of range in {self.name}")
        return self.document[page_number - 1]

    def get_page_text_runs(self, page_number: int) -> List[TextRun]:
        with self._lock:
            page = self._load_page(page_number)
            blocks = page.get_text("dict")

        runs = []
        for block in blocks.get("blocks", []):
            if "lines" not in block:
                continue  # Skip non-text blocks (images, etc.)
            for line in block["lines"]:
                for span in line["spans"]:
                    x0, y0, x1, y1 = span["bbox"]
                    baseline = span.get("origin", (x0, y1))[1]
                    height = float(span.get("size", 0.0)) or (y1 - y0)
                    run = TextRun(text=span.get("text", ""), x=x0, y=baseline,
                                  height=height, width=x1 - x0)
                    if not run.is_empty():
                        runs.append(run)
        return runs

    def get_page_annotations(self, page_number: int) -> List[LinkAnnotation]:
        with self._lock:
            page = self._load_page(page_number)
            links = page.get_links()

        annotations = []
        for link in links:
            rect = link.get("from")
            rect = normalize_rect(tuple(rect)) if rect is not None else None
            kind = link.get("kind")
            target_index = link.get("page", -1)

            if kind in (fitz.LINK_GOTO, fitz.LINK_NAMED) and target_index is not None and target_index >= 0:
                point = link.get("to")
                destination = PdfDestination(
                    page_index=int(target_index),
                    x=float(point.x) if point is not None else 0.0,
                    y=float(point.y) if point is not None else None,
                    zoom=link.get("zoom"),
                )
                annotations.append(LinkAnnotation(rect=rect, dest_ref=destination))
            elif kind == fitz.LINK_NAMED:
                name = link.get("nameddest") or link.get("name")
                if name:
                    annotations.append(LinkAnnotation(rect=rect, dest_ref=str(name)))
            elif kind == fitz.LINK_URI and link.get("uri"):
                annotations.append(LinkAnnotation(rect=rect, uri=link["uri"]))
        return annotations

    def resolve_destination(self, ref: Any) -> Optional[ResolvedDestination]:
        """
        Resolve a link or outline target.

        ``y`` stays in PyMuPDF's top-left space; ``explicit`` is rebuilt as a
        native /XYZ array with a bottom-left y.
        """
        if isinstance(ref, str):
            ref = self._resolve_name(ref)
        if not isinstance(ref, PdfDestination):
            return None
        page_number = ref.page_index + 1
        if page_number < 1 or page_number > self.page_count():
            raise DestinationResolutionError(f"Destination page {page_number} not in {self.name}")

        native_y = None
        if ref.y is not None:
            with self._lock:
                page_height = self.document[ref.page_index].rect.height
            native_y = flip_y(ref.y, page_height)
        return ResolvedDestination(
            page_number=page_number,
            x=ref.x,
            y=ref.y,
            zoom=ref.zoom,
            explicit=[page_number, "XYZ", ref.x, native_y, ref.zoom],
        )

    def _resolve_name(self, name: str) -> Optional[PdfDestination]:
        with self._lock:
            if self._named_destinations is None:
                resolver = getattr(self.document, "resolve_names", None)
                try:
                    self._named_destinations = resolver() if resolver else {}
                except RuntimeError as e:
                    raise DestinationResolutionError(f"Cannot read named destinations of {self.name}: {e}") from e
        target = self._named_destinations.get(name)
        if not target or target.get("page", -1) < 0:
            return None
        point = target.get("to") or (0.0, None)
        return PdfDestination(page_index=int(target["page"]), x=float(point[0] or 0.0),
                              y=point[1], zoom=target.get("zoom"))

    def get_outline(self) -> Optional[List[OutlineNode]]:
        with self._lock:
            first = self.document.outline
            if first is None:
                return None

            roots: List[OutlineNode] = []
            stack = [(first, roots)]
            while stack:
                item, siblings = stack.pop()
                while item is not None:
                    node = OutlineNode(title=item.title or "", dest_ref=self._outline_destination(item))
                    siblings.append(node)
                    if item.down is not None:
                        stack.append((item.down, node.children))
                    item = item.next
        return roots or None

    def _outline_destination(self, item) -> Optional[PdfDestination]:
        if item.is_external or item.page is None or item.page < 0:
            return None
        x, y = 0.0, None
        try:
            point = item.dest.lt
            if point is not None:
                x, y = float(point.x), float(point.y)
        except (AttributeError, RuntimeError, ValueError) as e:
            logger.debug(f"Outline item '{item.title}' has no target point: {e}")
        return PdfDestination(page_index=int(item.page), x=x, y=y)

    def get_page_labels(self) -> Optional[List[str]]:
        with self._lock:
            labels = [page.get_label() or "" for page in self.document]
        return labels if any(labels) else None
