"""
Alpha projection analysis.

The alpha channel is summed along rows and columns. Gaps between frames show up
as valleys in these projections; the depth of the deepest valley, relative to the
projection's peak, is used as a hint of how many frames the sheet holds.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np
from scipy.ndimage import uniform_filter1d    # type: ignore

from spritesheet_slicer.geometry import Rect
from spritesheet_slicer.raster import SpriteSheet


@dataclass(frozen=True, eq=False)
class AlphaMetrics:
    """
    Per-sheet alpha projection statistics.

    Attributes:
        row_valley_score: Depth of the deepest valley in the row projection, in [0, 1]
        col_valley_score: Depth of the deepest valley in the column projection, in [0, 1]
        row_valley_index: Row of that valley, or -1 if there is none
        col_valley_index: Column of that valley, or -1 if there is none
        width, height: Sheet size
        total_opaque_pixels: Pixels with alpha above the threshold
        coverage: total_opaque_pixels / sheet area
        row_profile, col_profile: Smoothed alpha sums per row and per column
    """
    row_valley_score: float = 0.0
    col_valley_score: float = 0.0
    row_valley_index: int = -1
    col_valley_index: int = -1
    width: int = 0
    height: int = 0
    total_opaque_pixels: int = 0
    coverage: float = 0.0
    row_profile: np.ndarray = field(default_factory=lambda: np.zeros(0))
    col_profile: np.ndarray = field(default_factory=lambda: np.zeros(0))

    def best_binary_split(self) -> tuple[Rect, Rect] | None:
        """
        Split the sheet in two at the valley of the axis with the higher score.

        Returns:
            Two (x, y, w, h) rectangles covering the sheet, or None if neither axis has an
            interior valley.
        """
        horizontal = None
        if 0 < self.row_valley_index < self.height - 1:
            r = self.row_valley_index
            horizontal = ((0, 0, self.width, r), (0, r, self.width, self.height - r))

        vertical = None
        if 0 < self.col_valley_index < self.width - 1:
            c = self.col_valley_index
            vertical = ((0, 0, c, self.height), (c, 0, self.width - c, self.height))

        if horizontal is not None and vertical is not None:
            return horizontal if self.row_valley_score >= self.col_valley_score else vertical
        return horizontal if horizontal is not None else vertical


def smooth_profile(data: np.ndarray, window: int) -> np.ndarray:
    """
    Centered moving average. Near the ends the window is truncated rather than padded,
    so the edges are averaged over fewer samples.
    """
    data = np.asarray(data, dtype=np.float64)
    if window <= 1 or data.size == 0:
        return data.copy()
    size = 2 * (window // 2) + 1
    sums = uniform_filter1d(data, size, mode="constant", cval=0.0)
    counts = uniform_filter1d(np.ones_like(data), size, mode="constant", cval=0.0)
    return sums / counts


def deepest_valley(data: np.ndarray) -> tuple[float, int]:
    """
    Find the deepest dip between two higher regions of a profile.

    The depth at i is min(max(data[:i+1]), max(data[i:])) - data[i], so a unimodal profile
    has no valley at all while two separated peaks produce one as deep as the lower peak.

    Returns:
        (score, index): depth relative to the profile peak in [0, 1], and the middle of the
        first run of maximal depth; (0.0, -1) when there is no valley.
    """
    data = np.asarray(data, dtype=np.float64)
    if data.size < 3:
        return 0.0, -1
    peak = float(data.max())
    if peak <= 0:
        return 0.0, -1

    left = np.maximum.accumulate(data)
    right = np.maximum.accumulate(data[::-1])[::-1]
    depth = np.minimum(left, right) - data

    max_depth = float(depth.max())
    if max_depth <= peak * 1e-9:
        return 0.0, -1

    candidates = np.flatnonzero(depth >= max_depth * (1.0 - 1e-9))
    start = end = int(candidates[0])
    for c in candidates[1:]:
        if c != end + 1:
            break
        end = int(c)

    score = min(1.0, max(0.0, max_depth / peak))
    return score, (start + end) // 2


def compute_alpha_metrics(sheet: SpriteSheet, alpha_threshold: int, valley_window: int) -> AlphaMetrics:
    """
    Compute alpha projections and valley scores for a sheet.

    Args:
        sheet: The sprite sheet
        alpha_threshold: Threshold used for the opaque pixel count and coverage
        valley_window: Moving average width applied to the projections before valley search

    Returns:
        AlphaMetrics for the sheet
    """
    alpha = sheet.alpha.astype(np.float64)
    row_profile = smooth_profile(alpha.sum(axis=1), valley_window)
    col_profile = smooth_profile(alpha.sum(axis=0), valley_window)

    row_score, row_index = deepest_valley(row_profile)
    col_score, col_index = deepest_valley(col_profile)

    total_opaque = int(np.count_nonzero(sheet.alpha > alpha_threshold))
    return AlphaMetrics(
        row_valley_score=row_score,
        col_valley_score=col_score,
        row_valley_index=row_index,
        col_valley_index=col_index,
        width=sheet.width,
        height=sheet.height,
        total_opaque_pixels=total_opaque,
        coverage=total_opaque / float(sheet.width * sheet.height),
        row_profile=row_profile,
        col_profile=col_profile,
    )
