"""
Turning a decision and its clusters into cropped, pivoted frames.
"""

from __future__ import annotations

from typing import Sequence

import cv2

from spritesheet_slicer.alpha_processing import alpha_centroid, crop_region, crop_to_opaque, opaque_bounds
from spritesheet_slicer.classifier import CoreVsFxClassifier
from spritesheet_slicer.clustering import FrameCluster
from spritesheet_slicer.config import ExtractorConfig
from spritesheet_slicer.geometry import Rect, rects_intersect
from spritesheet_slicer.metrics import AlphaMetrics
from spritesheet_slicer.models import FrameSlice
from spritesheet_slicer.raster import SpriteSheet
from spritesheet_slicer.segmentation import Component


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


class PivotEstimator:
    """
    Places a frame's pivot at the centroid of its components, weighted by how likely each
    one is to be part of the sprite body rather than an effect.
    """

    def __init__(self, classifier: CoreVsFxClassifier):
        self.classifier = classifier

    def estimate(self, sheet: SpriteSheet, components: Sequence[Component], bounds: Rect) -> tuple[float, float]:
        """
        Pivot for the region bounds, as fractions of its width and height.

        Falls back to the alpha centroid of the region when no component overlaps it, and to
        the center when the region is fully transparent.
        """
        x, y, w, h = bounds
        weighted_x = weighted_y = total_weight = 0.0
        for component in components:
            if not rects_intersect(bounds, component.bounds):
                continue
            weight = self.classifier.score(component)
            weighted_x += weight * (component.centroid_x - x)
            weighted_y += weight * (component.centroid_y - y)
            total_weight += weight

        if total_weight <= 0.0:
            region = crop_region(sheet.image, bounds)
            cx, cy, count = alpha_centroid(region)
            if count <= 0:
                return 0.5, 0.5
            return cx / region.shape[1], cy / region.shape[0]

        pivot_x = (weighted_x / total_weight) / w if w > 0 else 0.5
        pivot_y = (weighted_y / total_weight) / h if h > 0 else 0.5
        return _clamp(pivot_x), _clamp(pivot_y)


class FrameRefiner:
    """Trims frames to their opaque pixels and surrounds them with a transparent margin."""

    def __init__(self, config: ExtractorConfig):
        self.config = config

    def refine(self, sheet: SpriteSheet, frames: Sequence[FrameSlice]) -> list[FrameSlice]:
        """
        Refine candidate frames.

        The margin on each side is config.padding pixels, but never reaches past the sheet
        edge. Frames without opaque pixels are dropped and the rest are re-indexed. Pivots
        keep their absolute position.
        """
        padding = self.config.padding
        refined: list[FrameSlice] = []
        for frame in frames:
            lx, ly, lw, lh = opaque_bounds(frame.image, self.config.alpha_threshold)
            if lw <= 0 or lh <= 0:
                continue
            trimmed = frame.image[ly:ly + lh, lx:lx + lw].copy()

            left = frame.x + lx
            top = frame.y + ly
            pad_left = max(0, min(padding, left))
            pad_top = max(0, min(padding, top))
            pad_right = max(0, min(padding, sheet.width - (left + lw)))
            pad_bottom = max(0, min(padding, sheet.height - (top + lh)))

            padded = cv2.copyMakeBorder(trimmed, pad_top, pad_bottom, pad_left, pad_right,
                                        cv2.BORDER_CONSTANT, value=(0, 0, 0, 0))
            height, width = padded.shape[:2]

            pivot_x = frame.pivot_x * frame.width - lx + pad_left
            pivot_y = frame.pivot_y * frame.height - ly + pad_top

            refined.append(FrameSlice(
                image=padded,
                index=len(refined),
                x=left - pad_left,
                y=top - pad_top,
                width=width,
                height=height,
                pivot_x=_clamp(pivot_x / width),
                pivot_y=_clamp(pivot_y / height),
            ))
        return refined


class FrameSlicer:
    """Builds the frames of a sheet for each kind of decision."""

    def __init__(self, config: ExtractorConfig, classifier: CoreVsFxClassifier):
        self.config = config
        self.pivots = PivotEstimator(classifier)
        self.refiner = FrameRefiner(config)

    def _region_frame(self, sheet: SpriteSheet, components: Sequence[Component], bounds: Rect, index: int) -> FrameSlice:
        region = crop_region(sheet.image, bounds)
        pivot_x, pivot_y = self.pivots.estimate(sheet, components, bounds)
        return FrameSlice(image=region, index=index, x=bounds[0], y=bounds[1],
                          width=region.shape[1], height=region.shape[0], pivot_x=pivot_x, pivot_y=pivot_y)

    def whole(self, sheet: SpriteSheet, components: Sequence[Component]) -> list[FrameSlice]:
        """One frame spanning every opaque pixel of the sheet."""
        trimmed, bounds = crop_to_opaque(sheet.image, self.config.alpha_threshold)
        if bounds[2] <= 0 or bounds[3] <= 0:
            return [FrameSlice(image=trimmed, index=0, x=0, y=0, width=1, height=1, pivot_x=0.5, pivot_y=0.5)]
        pivot_x, pivot_y = self.pivots.estimate(sheet, components, bounds)
        return [FrameSlice(image=trimmed, index=0, x=bounds[0], y=bounds[1],
                           width=bounds[2], height=bounds[3], pivot_x=pivot_x, pivot_y=pivot_y)]

    def two(
        self,
        sheet: SpriteSheet,
        metrics: AlphaMetrics,
        components: Sequence[Component],
        clusters: Sequence[FrameCluster]
    ) -> list[FrameSlice]:
        """
        Two frames split along the alpha valley. Falls back to the bounds of the two main
        clusters when there is no valley to split at, and to a single whole frame if
        refinement does not leave two frames.
        """
        halves = metrics.best_binary_split()
        if halves is not None:
            regions = list(halves)
        else:
            main = sorted(clusters, key=lambda c: -len(c.components))[:2]
            regions = sorted((c.bounds for c in main), key=lambda b: (b[1], b[0]))

        candidates = [self._region_frame(sheet, components, bounds, i) for i, bounds in enumerate(regions)]
        frames = self.refiner.refine(sheet, candidates)
        if len(frames) < 2:
            return self.whole(sheet, components)
        return frames

    def many(self, sheet: SpriteSheet, clusters: Sequence[FrameCluster]) -> list[FrameSlice]:
        """One refined frame per cluster."""
        candidates = [self._region_frame(sheet, cluster.components, cluster.bounds, i)
                      for i, cluster in enumerate(clusters)]
        return self.refiner.refine(sheet, candidates)
