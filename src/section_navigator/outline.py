"""
Native outline (bookmark tree) flattening.

The tree is walked with an explicit stack of (node, level) pairs so that
pathologically deep outlines cannot exhaust the interpreter stack.
"""

from typing import List, Optional, Sequence

from .data_models import OutlineNode, ResolvedDestination, Section, SectionSource
from .logging_config import InferenceCancelled, setup_logging
from .page_provider import PageProvider

logger = setup_logging()


def iter_outline(nodes: Sequence[OutlineNode]):
    """Yield (node, level) pairs in pre-order, level 1 for top-level nodes."""
    stack = [(node, 1) for node in reversed(nodes or [])]
    while stack:
        node, level = stack.pop()
        yield node, level
        for child in reversed(node.children or []):
            stack.append((child, level + 1))


def resolve_outline_destination(provider: PageProvider, node: OutlineNode) -> Optional[ResolvedDestination]:
    if node.dest_ref is None:
        return None
    try:
        return provider.resolve_destination(node.dest_ref)
    except InferenceCancelled:
        raise
    except Exception as e:
        logger.debug(f"Outline destination for '{node.title[:50]}' did not resolve: {e}")
        return None


def flatten_outline(provider: PageProvider, nodes: Sequence[OutlineNode],
                    total_pages: int) -> List[Section]:
    """
    Flatten an outline tree into ``outline`` sections.

    Entries whose destination cannot be resolved point at page 1 with no
    anchor. Levels deeper than 3 are reported as 3.

    Args:
        provider: Provider used to resolve destinations
        nodes: Top-level outline nodes
        total_pages: Physical page count, used to clamp pages

    Returns:
        Sections in outline order
    """
    sections = []
    for node, level in iter_outline(nodes):
        location = resolve_outline_destination(provider, node)
        if location is not None:
            page = max(1, min(total_pages, int(location.page_number)))
            anchor_x = location.x or 0.0
            anchor_y = location.y
            destination = location.explicit
        else:
            page, anchor_x, anchor_y, destination = 1, 0.0, None, None

        sections.append(Section(
            id=None,
            title=(node.title or "").strip() or "Untitled",
            level=min(3, level),
            page=page,
            anchor_x=anchor_x,
            anchor_y=anchor_y,
            destination=destination,
            source=SectionSource.OUTLINE,
        ))

    logger.info(f"Flattened outline into {len(sections)} sections")
    return sections
