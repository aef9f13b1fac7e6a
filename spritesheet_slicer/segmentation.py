"""
Functions for segmenting a sprite sheet's alpha channel into connected components.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import cv2
import numpy as np

from spritesheet_slicer.alpha_processing import clean_mask, remove_border_background, threshold_alpha
from spritesheet_slicer.config import ExtractorConfig
from spritesheet_slicer.geometry import Rect
from spritesheet_slicer.raster import SpriteSheet

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Component:
    """
    A maximal 4-connected set of opaque pixels.

    Attributes:
        label: Index of the component within its sheet
        left, top, width, height: Bounding box containing every member pixel
        area: Number of member pixels (always > 0)
        density: area / bounding box area
        solidity: Approximated by density (no convex hull is computed)
        centroid_x, centroid_y: Mean member pixel position
        color_variance: Population variance of the per-pixel intensity (R+G+B)/3
    """
    label: int
    left: int
    top: int
    width: int
    height: int
    area: int
    density: float
    solidity: float
    centroid_x: float
    centroid_y: float
    color_variance: float

    @property
    def right(self) -> int:
        return self.left + self.width

    @property
    def bottom(self) -> int:
        return self.top + self.height

    @property
    def bounds(self) -> Rect:
        return (self.left, self.top, self.width, self.height)


def label_components(mask: np.ndarray, image: np.ndarray, min_area: int = 0) -> list[Component]:
    """
    Label 4-connected foreground regions and describe each one.

    Every True pixel of the mask ends up in exactly one component (unless its component is
    smaller than min_area); an empty mask yields an empty list.

    Args:
        mask: Boolean foreground mask
        image: BGRA image the mask was derived from, used for color statistics
        min_area: Components with fewer pixels than this are dropped

    Returns:
        Components in label order
    """
    num_labels, labels, stats, centroids = cv2.connectedComponentsWithStats(
        mask.astype(np.uint8), connectivity=4)
    if num_labels <= 1:
        return []

    # Per-label intensity moments, label 0 is the background
    intensity = image[:, :, :3].astype(np.float64).sum(axis=2) / 3.0
    flat_labels = labels.ravel()
    intensity_sum = np.bincount(flat_labels, weights=intensity.ravel(), minlength=num_labels)
    intensity_sq = np.bincount(flat_labels, weights=(intensity ** 2).ravel(), minlength=num_labels)

    components = []
    for i in range(1, num_labels):
        area = int(stats[i, cv2.CC_STAT_AREA])
        if area <= 0 or area < min_area:
            continue

        w = int(stats[i, cv2.CC_STAT_WIDTH])
        h = int(stats[i, cv2.CC_STAT_HEIGHT])
        density = area / float(w * h)
        mean = intensity_sum[i] / area
        variance = max(0.0, float(intensity_sq[i] / area - mean * mean))

        components.append(Component(
            label=i - 1,
            left=int(stats[i, cv2.CC_STAT_LEFT]),
            top=int(stats[i, cv2.CC_STAT_TOP]),
            width=w,
            height=h,
            area=area,
            density=density,
            solidity=density,
            centroid_x=float(centroids[i, 0]),
            centroid_y=float(centroids[i, 1]),
            color_variance=variance,
        ))

    return components


def segment_components(sheet: SpriteSheet, config: ExtractorConfig) -> list[Component]:
    """
    Segment a sprite sheet into components using the configured thresholds.

    The alpha channel is thresholded, a solid border background is removed if the sheet
    has one, the mask is optionally cleaned with a 3x3 close and open, and components
    smaller than config.min_area are discarded.
    """
    mask = threshold_alpha(sheet.alpha, config.alpha_threshold)
    mask = remove_border_background(sheet.image, mask, config.alpha_threshold)
    if config.clean_mask:
        mask = clean_mask(mask)

    components = label_components(mask, sheet.image, config.min_area)
    logger.debug("%s: %d components above %d px", sheet.file_name, len(components), config.min_area)
    return components
