"""
Grouping of components into frame clusters.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np
from scipy.sparse import csr_matrix    # type: ignore
from scipy.sparse.csgraph import connected_components    # type: ignore
from scipy.spatial.distance import pdist, squareform    # type: ignore

from spritesheet_slicer.config import ExtractorConfig
from spritesheet_slicer.geometry import Rect, rect_area, rect_union
from spritesheet_slicer.metrics import AlphaMetrics
from spritesheet_slicer.segmentation import Component

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FrameCluster:
    """
    Components believed to form one visual frame.

    Attributes:
        label: Position of the cluster in top-to-bottom, left-to-right order
        bounds: Union of the member bounding boxes as (x, y, w, h)
        components: Member components
    """
    label: int
    bounds: Rect
    components: tuple[Component, ...]

    @property
    def area(self) -> float:
        return rect_area(self.bounds)


def _gap_matrix(components: list[Component]) -> np.ndarray:
    """Pairwise Chebyshev gaps between component bounding boxes."""
    left = np.array([c.left for c in components])
    top = np.array([c.top for c in components])
    right = np.array([c.right for c in components])
    bottom = np.array([c.bottom for c in components])

    dx = np.maximum(np.maximum.outer(left, left) - np.minimum.outer(right, right), 0)
    dy = np.maximum(np.maximum.outer(top, top) - np.minimum.outer(bottom, bottom), 0)
    return np.maximum(dx, dy)


def _groups(adjacency: np.ndarray) -> list[list[int]]:
    """Connected groups of an undirected adjacency matrix, as lists of node indices."""
    n_groups, labels = connected_components(csr_matrix(adjacency), directed=False)
    return [np.flatnonzero(labels == g).tolist() for g in range(n_groups)]


def _make_clusters(components: list[Component], groups: list[list[int]]) -> list[FrameCluster]:
    members = [sorted((components[i] for i in group), key=lambda c: (c.top, c.left, c.label))
               for group in groups]
    bounded = [(rect_union(c.bounds for c in m), m) for m in members]
    bounded.sort(key=lambda item: (item[0][1], item[0][0], item[0][3], item[0][2]))
    return [FrameCluster(label=i, bounds=bounds, components=tuple(m))
            for i, (bounds, m) in enumerate(bounded)]


def cluster_components(
    components: list[Component],
    metrics: AlphaMetrics,
    config: ExtractorConfig
) -> list[FrameCluster]:
    """
    Merge components into frame clusters.

    Components whose bounding boxes overlap or lie within config.merge_gap pixels always
    share a cluster. A component may also join one whose centroid lies within config.eps
    pixels, but only when it is much smaller (at most config.soft_link_area_ratio of the
    other's area, e.g. a spark next to a body), and only when the resulting group has at
    least config.min_samples members; smaller groups fall back to their box-linked parts.
    Separate sprites of similar size therefore never merge. The partition does not depend
    on the order of the input.

    When this yields a single cluster and the alpha projections show a clear valley that
    cleanly separates it into two linked groups, the cluster is split in two along that
    valley.

    Returns:
        Clusters ordered top-to-bottom, then left-to-right
    """
    if not components:
        return []

    hard = _gap_matrix(components) <= config.merge_gap
    if len(components) > 1:
        centroids = np.array([(c.centroid_x, c.centroid_y) for c in components])
        areas = np.array([c.area for c in components], dtype=np.float64)
        ratio = np.minimum.outer(areas, areas) / np.maximum.outer(areas, areas)
        soft = (squareform(pdist(centroids)) <= config.eps) & (ratio <= config.soft_link_area_ratio)
    else:
        soft = np.zeros((1, 1), dtype=bool)
    links = hard | soft

    groups = []
    for group in _groups(links):
        if len(group) >= config.min_samples:
            groups.append(group)
        else:
            sub = hard[np.ix_(group, group)]
            groups.extend([[group[i] for i in part] for part in _groups(sub)])

    clusters = _make_clusters(components, groups)

    if len(clusters) == 1:
        split = _split_along_valley(components, links, metrics, config)
        if split is not None:
            logger.debug("Single cluster split in two along alpha valley")
            return split

    return clusters


def _split_along_valley(
    components: list[Component],
    links: np.ndarray,
    metrics: AlphaMetrics,
    config: ExtractorConfig
) -> list[FrameCluster] | None:
    if max(metrics.row_valley_score, metrics.col_valley_score) <= config.clear_valley_min:
        return None
    halves = metrics.best_binary_split()
    if halves is None:
        return None

    sides: tuple[list[int], list[int]] = ([], [])
    for i, c in enumerate(components):
        for side, (x, y, w, h) in zip(sides, halves):
            if c.left >= x and c.top >= y and c.right <= x + w and c.bottom <= y + h:
                side.append(i)
                break
        else:
            # Component straddles the valley
            return None

    for side in sides:
        # Each side must be a single linked group
        if not side or len(_groups(links[np.ix_(side, side)])) != 1:
            return None
    return _make_clusters(components, [sides[0], sides[1]])
