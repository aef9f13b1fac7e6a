"""
Axis-aligned rectangle helpers.

Rectangles are (x, y, width, height) tuples in sheet pixel coordinates,
with the right and bottom edges exclusive.
"""

from __future__ import annotations

from typing import Iterable

Rect = tuple[int, int, int, int]


def rect_area(rect: Rect) -> float:
    """Area of a rectangle; negative extents count as zero."""
    return float(max(rect[2], 0) * max(rect[3], 0))


def rect_union(rects: Iterable[Rect]) -> Rect:
    """Smallest rectangle containing every given rectangle, or (0, 0, 0, 0) if there are none."""
    rects = list(rects)
    if not rects:
        return (0, 0, 0, 0)
    left = min(r[0] for r in rects)
    top = min(r[1] for r in rects)
    right = max(r[0] + r[2] for r in rects)
    bottom = max(r[1] + r[3] for r in rects)
    return (left, top, right - left, bottom - top)


def rect_intersection_area(a: Rect, b: Rect) -> float:
    iw = max(0, min(a[0] + a[2], b[0] + b[2]) - max(a[0], b[0]))
    ih = max(0, min(a[1] + a[3], b[1] + b[3]) - max(a[1], b[1]))
    return float(iw * ih)


def rects_intersect(a: Rect, b: Rect) -> bool:
    """True if the rectangles share at least one pixel."""
    return a[0] < b[0] + b[2] and b[0] < a[0] + a[2] and a[1] < b[1] + b[3] and b[1] < a[1] + a[3]


def intersection_over_union(a: Rect, b: Rect) -> float:
    """Intersection-over-union in [0, 1]; 0 when the union is empty."""
    intersection = rect_intersection_area(a, b)
    union = rect_area(a) + rect_area(b) - intersection
    if union <= 0:
        return 0.0
    return intersection / union
