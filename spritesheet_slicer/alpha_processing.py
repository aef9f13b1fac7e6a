"""
Functions for thresholding and cleaning alpha masks, and for locating opaque pixels.
"""

import cv2
import numpy as np

from spritesheet_slicer.geometry import Rect


def threshold_alpha(alpha: np.ndarray, threshold: int) -> np.ndarray:
    """
    Binary foreground mask of an alpha channel.

    Args:
        alpha: The alpha channel (uint8)
        threshold: Pixels with alpha strictly above this value are foreground

    Returns:
        Boolean mask, True for foreground pixels
    """
    return alpha > threshold


def clean_mask(mask: np.ndarray, kernel_size: int = 3) -> np.ndarray:
    """
    Clean up a foreground mask with morphological operations.

    Args:
        mask: Boolean foreground mask
        kernel_size: Size of the kernel for morphological operations

    Returns:
        Cleaned boolean mask
    """
    binary = mask.astype(np.uint8) * 255

    # Create kernel for morphological operations
    kernel = np.ones((kernel_size, kernel_size), np.uint8)

    # Fill small holes with closing operation (dilation followed by erosion)
    cleaned = cv2.morphologyEx(binary, cv2.MORPH_CLOSE, kernel)

    # Remove small noise with opening operation (erosion followed by dilation)
    cleaned = cv2.morphologyEx(cleaned, cv2.MORPH_OPEN, kernel)

    return cleaned > 0


def estimate_border_color(image: np.ndarray) -> np.ndarray:
    """Mean BGR color of the outermost rows and columns of an image."""
    border = np.concatenate([
        image[0, :, :3], image[-1, :, :3],
        image[:, 0, :3], image[:, -1, :3],
    ]).astype(np.float64)
    return border.mean(axis=0)


def remove_border_background(
    image: np.ndarray,
    mask: np.ndarray,
    alpha_threshold: int,
    coverage_limit: float = 0.85,
    color_tolerance: float = 32.0
) -> np.ndarray:
    """
    Strip a solid background color from sheets that were saved without transparency.

    Only applies when the mask covers at least coverage_limit of the image. Pixels that are
    transparent, or within color_tolerance (euclidean BGR distance) of the mean border color,
    and 8-connected to the image border through such pixels, are removed from the mask.

    Args:
        image: BGRA image
        mask: Boolean foreground mask of the same height and width
        alpha_threshold: Alpha at or below this value counts as background
        coverage_limit: Minimum mask coverage before background removal kicks in
        color_tolerance: Maximum color distance to the border color for background pixels

    Returns:
        A new boolean mask (or the input mask when no removal was necessary)
    """
    if mask.size == 0 or mask.mean() < coverage_limit:
        return mask

    background = estimate_border_color(image)
    distance = np.linalg.norm(image[:, :, :3].astype(np.float64) - background, axis=2)
    candidate = (image[:, :, 3] <= alpha_threshold) | (distance < color_tolerance)

    _num_labels, labels = cv2.connectedComponents(candidate.astype(np.uint8), connectivity=8)
    border_labels = np.unique(np.concatenate([
        labels[0, :][candidate[0, :]], labels[-1, :][candidate[-1, :]],
        labels[:, 0][candidate[:, 0]], labels[:, -1][candidate[:, -1]],
    ]))
    if border_labels.size == 0:
        return mask

    reachable = np.isin(labels, border_labels) & candidate
    return mask & ~reachable


def opaque_bounds(image: np.ndarray, alpha_threshold: int) -> Rect:
    """
    Bounding box of all pixels with alpha above the threshold.

    Returns:
        (x, y, width, height), or (0, 0, 0, 0) if no pixel is opaque
    """
    ys, xs = np.nonzero(image[:, :, 3] > alpha_threshold)
    if len(xs) == 0:
        return (0, 0, 0, 0)
    x1, y1 = int(xs.min()), int(ys.min())
    return (x1, y1, int(xs.max()) - x1 + 1, int(ys.max()) - y1 + 1)


def crop_region(image: np.ndarray, rect: Rect) -> np.ndarray:
    """Copy of a rectangular region, clipped to the image."""
    x, y, w, h = rect
    x1, y1 = max(0, x), max(0, y)
    x2, y2 = min(image.shape[1], x + w), min(image.shape[0], y + h)
    return image[y1:max(y1, y2), x1:max(x1, x2)].copy()


def crop_to_opaque(image: np.ndarray, alpha_threshold: int) -> tuple[np.ndarray, Rect]:
    """
    Crop an image to its opaque bounds.

    Returns:
        The cropped image and its bounds. A fully transparent image yields a 1x1 transparent
        pixel with bounds (0, 0, 0, 0).
    """
    bounds = opaque_bounds(image, alpha_threshold)
    if bounds[2] <= 0 or bounds[3] <= 0:
        return np.zeros((1, 1, 4), dtype=np.uint8), bounds
    return crop_region(image, bounds), bounds


def alpha_centroid(image: np.ndarray) -> tuple[float, float, int]:
    """
    Centroid of all pixels with non-zero alpha.

    Returns:
        (x, y, count); x and y are 0.0 when count is 0
    """
    ys, xs = np.nonzero(image[:, :, 3] > 0)
    if len(xs) == 0:
        return 0.0, 0.0, 0
    return float(xs.mean()), float(ys.mean()), int(len(xs))
