"""
Coordinate transforms applied at the page provider boundary.

The engine works in a top-left origin space where ``y`` grows downwards.
Native PDF space has a bottom-left origin; hosts convert with these helpers
before handing runs, rects and destinations to the engine.
"""

from typing import Optional, Sequence

from .data_models import Rect


def flip_y(y: float, page_height: float) -> float:
    """Convert a y coordinate between bottom-left and top-left origins."""
    return float(page_height) - float(y)


def flip_rect(rect: Sequence[float], page_height: float) -> Rect:
    """
    Flip a rectangle vertically and re-normalise it.

    Args:
        rect: (x0, y0, x1, y1) in the source origin
        page_height: Height of the page

    Returns:
        Normalised (x0, y0, x1, y1) in the flipped origin
    """
    x0, y0, x1, y1 = (float(v) for v in rect)
    fy0 = flip_y(y0, page_height)
    fy1 = flip_y(y1, page_height)
    return normalize_rect((x0, fy0, x1, fy1))


def normalize_rect(rect: Sequence[float]) -> Rect:
    """Order rect corners so that x0 <= x1 and y0 <= y1."""
    x0, y0, x1, y1 = (float(v) for v in rect)
    return min(x0, x1), min(y0, y1), max(x0, x1), max(y0, y1)


def rect_mid_y(rect: Optional[Sequence[float]]) -> Optional[float]:
    if not rect:
        return None
    return (float(rect[1]) + float(rect[3])) / 2


def spans_overlap(a0: float, a1: float, b0: float, b1: float) -> bool:
    """Closed-interval overlap test on one axis."""
    return not (a1 < b0 or a0 > b1)
