"""
Decoded sprite sheet rasters.

Images are held the way OpenCV returns them: a contiguous, row-major
``uint8`` array of shape (height, width, 4) in BGRA channel order.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import cv2
import numpy as np

from spritesheet_slicer.errors import InvalidImageError, SheetLoadError


@dataclass(frozen=True, eq=False)
class SpriteSheet:
    """
    One decoded sprite sheet.

    Attributes:
        path: Where the sheet was loaded from (or a synthetic name for in-memory sheets)
        image: BGRA pixel data, uint8, shape (height, width, 4)
    """
    path: Path
    image: np.ndarray

    @property
    def width(self) -> int:
        return int(self.image.shape[1])

    @property
    def height(self) -> int:
        return int(self.image.shape[0])

    @property
    def alpha(self) -> np.ndarray:
        return self.image[:, :, 3]

    @property
    def file_name(self) -> str:
        return self.path.name

    def pixel(self, x: int, y: int) -> tuple[int, int, int, int]:
        """Return the (b, g, r, a) value at column x, row y."""
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise IndexError(f"pixel ({x}, {y}) outside {self.width}x{self.height} sheet")
        b, g, r, a = self.image[y, x]
        return int(b), int(g), int(r), int(a)


def sprite_sheet_from_array(image: np.ndarray | None, path: str | Path = "<memory>") -> SpriteSheet:
    """
    Wrap a BGR or BGRA array as a SpriteSheet, adding an opaque alpha channel if needed.

    Raises:
        InvalidImageError: If image is None or has invalid shape/dtype.
    """
    if image is None:
        raise InvalidImageError("image cannot be None")

    if not isinstance(image, np.ndarray):
        raise InvalidImageError(f"image must be a numpy array, got {type(image)}")

    if image.ndim != 3:
        raise InvalidImageError(f"image must be 3D array (height, width, channels), got shape {image.shape}")

    if image.shape[2] not in (3, 4):
        raise InvalidImageError(f"image must have 3 (BGR) or 4 (BGRA) channels, got {image.shape[2]}")

    if image.dtype != np.uint8:
        raise InvalidImageError(f"image must be uint8, got {image.dtype}")

    if image.shape[0] == 0 or image.shape[1] == 0:
        raise InvalidImageError(f"image must not be empty, got shape {image.shape}")

    if image.shape[2] == 3:
        img = cv2.cvtColor(image, cv2.COLOR_BGR2BGRA)
    else:
        img = image.copy()

    return SpriteSheet(path=Path(path), image=np.ascontiguousarray(img))


def load_sprite_sheet(path: str | Path) -> SpriteSheet:
    """
    Decode an image file into a SpriteSheet.

    Grayscale files are expanded to BGR, 16-bit files are scaled down to 8 bits.

    Raises:
        SheetLoadError: If the file does not exist or cannot be decoded.
    """
    path = Path(path)
    if not path.is_file():
        raise SheetLoadError(f"Unable to read image {path}: no such file")

    img = cv2.imread(str(path), cv2.IMREAD_UNCHANGED)
    if img is None:
        raise SheetLoadError(f"Unable to read image {path}")

    if img.dtype == np.uint16:
        img = (img // 257).astype(np.uint8)
    if img.ndim == 2:
        img = cv2.cvtColor(img, cv2.COLOR_GRAY2BGR)

    try:
        return sprite_sheet_from_array(img, path)
    except InvalidImageError as e:
        raise SheetLoadError(f"Unable to read image {path}: {e}") from e
