"""
Section Navigator - infers navigable sections for paginated documents.
"""

from .config import InferenceConfig
from .data_models import (
    Line, LinkAnnotation, OutlineNode, ResolvedDestination, Section,
    SectionSource, TextRun, TOCEntry,
)
from .engine import DocumentSession, SectionInferenceEngine, SequentialIdGenerator
from .page_provider import InMemoryPage, InMemoryPageProvider, PageProvider

__version__ = "0.1.0"

__all__ = [
    "DocumentSession",
    "InMemoryPage",
    "InMemoryPageProvider",
    "InferenceConfig",
    "Line",
    "LinkAnnotation",
    "OutlineNode",
    "PageProvider",
    "ResolvedDestination",
    "Section",
    "SectionInferenceEngine",
    "SectionSource",
    "SequentialIdGenerator",
    "TOCEntry",
    "TextRun",
]
