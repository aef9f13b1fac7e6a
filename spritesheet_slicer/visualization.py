"""
Functions for visualizing segmentation, clustering and frame decisions on a sheet.
"""

from pathlib import Path
from typing import Sequence

import cv2
import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt    # noqa: E402
import numpy as np

from spritesheet_slicer.clustering import FrameCluster
from spritesheet_slicer.metrics import AlphaMetrics
from spritesheet_slicer.models import SpriteSheetProcessingResult


def _composite_on_white(img: np.ndarray) -> np.ndarray:
    bg = np.ones((img.shape[0], img.shape[1], 3), dtype=np.uint8) * 255
    alpha = img[:, :, 3:4].astype(float) / 255
    return (img[:, :, :3] * alpha + bg * (1 - alpha)).astype(np.uint8)


def visualize_frames(
    img: np.ndarray,
    result: SpriteSheetProcessingResult,
    clusters: Sequence[FrameCluster] = (),
    output_path: str | Path | None = None
) -> np.ndarray:
    """
    Overlay cluster bounds (cyan), frame rectangles (magenta) and pivots (green) on a sheet.

    Args:
        img: Sheet image (BGRA)
        result: Processing result for the sheet
        clusters: Clusters to outline (optional)
        output_path: Path to save the visualization (optional)

    Returns:
        BGR image with the overlay
    """
    vis_img = _composite_on_white(img)

    for cluster in clusters:
        x, y, w, h = cluster.bounds
        cv2.rectangle(vis_img, (x, y), (x + w - 1, y + h - 1), (255, 255, 0), 1)  # Cyan

    for frame in result.frames:
        x, y, w, h = frame.bounds
        cv2.rectangle(vis_img, (x, y), (x + w - 1, y + h - 1), (255, 0, 255), 1)  # Magenta
        pivot = (int(x + frame.pivot_x * w), int(y + frame.pivot_y * h))
        cv2.drawMarker(vis_img, pivot, (0, 200, 0), cv2.MARKER_CROSS, 6, 1)  # Green
        cv2.putText(vis_img, str(frame.index), (x + 2, y + 10), cv2.FONT_HERSHEY_SIMPLEX, 0.3, (255, 0, 255), 1)

    if output_path:
        cv2.imwrite(str(output_path), vis_img)

    return vis_img


def plot_alpha_profiles(metrics: AlphaMetrics, title: str, output_path: str | Path) -> None:
    """
    Plot the smoothed row and column alpha projections with their deepest valleys marked.

    Args:
        metrics: Alpha metrics of the sheet
        title: Figure title, usually the sheet's file name
        output_path: Where to save the figure
    """
    fig, axes = plt.subplots(2, 1, figsize=(10, 6))
    for ax, profile, index, score, label in (
        (axes[0], metrics.row_profile, metrics.row_valley_index, metrics.row_valley_score, "Row"),
        (axes[1], metrics.col_profile, metrics.col_valley_index, metrics.col_valley_score, "Column"),
    ):
        ax.plot(np.arange(len(profile)), profile, linewidth=1)
        if index >= 0:
            ax.axvline(x=index, color='r', linestyle='--', label=f'Valley {index} (score={score:.2f})')
            ax.legend()
        ax.set_xlabel(f"{label} (pixels)")
        ax.set_ylabel("Alpha sum")
        ax.grid(alpha=0.3)

    fig.suptitle(title)
    fig.tight_layout()
    fig.savefig(str(output_path))
    plt.close(fig)
