"""
Rule-based classification of a sprite sheet as one frame, two frames or many frames.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Mapping, Sequence, TypeVar

from spritesheet_slicer.clustering import FrameCluster
from spritesheet_slicer.config import ExtractorConfig
from spritesheet_slicer.geometry import intersection_over_union, rect_area
from spritesheet_slicer.metrics import AlphaMetrics
from spritesheet_slicer.segmentation import Component

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Minimum share of the summed cluster area held by the two main clusters of a TWO sheet
TWO_SHARE_MIN = 0.75


class ProcessingDecision(str, Enum):
    """Cardinality class of a sheet."""
    WHOLE = "WHOLE"
    TWO = "TWO"
    MANY = "MANY"


def matches_pattern(file_name: str, pattern: str | None, ignore_case: bool = False) -> bool:
    """
    Glob-like file name matching.

    Supported patterns are "*", "prefix*", "*suffix", "*fragment*" and an exact name.
    Exact names always compare case-insensitively; the wildcard forms only do so when
    ignore_case is set. Blank patterns never match.
    """
    if pattern is None or not pattern.strip():
        return False
    if pattern == "*":
        return True
    if ignore_case:
        file_name, pattern = file_name.lower(), pattern.lower()

    if len(pattern) >= 2 and pattern.startswith("*") and pattern.endswith("*"):
        return pattern[1:-1] in file_name
    if pattern.startswith("*"):
        return file_name.endswith(pattern[1:])
    if pattern.endswith("*"):
        return file_name.startswith(pattern[:-1])
    return file_name.lower() == pattern.lower()


def resolve_override(file_name: str, overrides: Mapping[str, T], ignore_case: bool = False) -> T | None:
    """Value of the first override (in insertion order) whose pattern matches file_name."""
    for pattern, value in overrides.items():
        if matches_pattern(file_name, pattern, ignore_case):
            return value
    return None


class DecisionModule:
    """Decides WHOLE / TWO / MANY from segmentation, clustering and alpha metrics."""

    def __init__(self, config: ExtractorConfig):
        self.config = config
        self.overrides = {pattern: ProcessingDecision(name)
                          for pattern, name in config.decision_overrides.items()}

    def decide(
        self,
        file_name: str,
        components: Sequence[Component],
        clusters: Sequence[FrameCluster],
        metrics: AlphaMetrics
    ) -> ProcessingDecision:
        """
        Classify a sheet.

        A matching file name override wins outright. Otherwise empty sheets and sheets
        dominated by one component in a single cluster are WHOLE, sheets whose two main
        clusters are distinct and separated by a clear valley are TWO, and everything
        else is MANY.
        """
        override = resolve_override(file_name, self.overrides)
        if override is not None:
            logger.debug("%s: decision forced to %s by override", file_name, override.value)
            return override

        if not components:
            return ProcessingDecision.WHOLE

        areas = [float(c.area) for c in components]
        total_area = sum(areas)
        if total_area <= 0:
            return ProcessingDecision.WHOLE

        if max(areas) / total_area >= self.config.whole_coverage and len(clusters) <= 1:
            return ProcessingDecision.WHOLE

        if self.should_split_in_two(clusters, metrics):
            return ProcessingDecision.TWO

        return ProcessingDecision.MANY

    def should_split_in_two(self, clusters: Sequence[FrameCluster], metrics: AlphaMetrics) -> bool:
        """
        True if the two clusters with the most components dominate the sheet, barely overlap,
        and coincide with a clear valley in the alpha projections.
        """
        if len(clusters) < 2:
            return False

        a, b = sorted(clusters, key=lambda c: -len(c.components))[:2]
        total = rect_area(a.bounds) + rect_area(b.bounds)
        if total <= 0:
            return False

        iou = intersection_over_union(a.bounds, b.bounds)
        share = total / sum(rect_area(c.bounds) for c in clusters)
        threshold = self.config.clear_valley_min
        clear_valley = metrics.row_valley_score > threshold or metrics.col_valley_score > threshold

        logger.debug("two-frame check: share=%.3f iou=%.3f valley=(%.3f, %.3f)",
                     share, iou, metrics.row_valley_score, metrics.col_valley_score)
        return share > TWO_SHARE_MIN and iou < self.config.two_gap_iou_max and clear_valley
