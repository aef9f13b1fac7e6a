"""
Result objects handed from the pipeline to naming and export code.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import numpy as np

from spritesheet_slicer.decision import ProcessingDecision
from spritesheet_slicer.geometry import Rect


@dataclass(eq=False)
class FrameSlice:
    """
    One extracted frame.

    Attributes:
        image: Cropped frame as a BGRA numpy array (uint8)
        index: Position of the frame in its sheet
        x, y: Origin of the crop in the source sheet
        width, height: Size of the crop
        pivot_x, pivot_y: Pivot as fractions (0..1) of the crop size
        exported_path: Set by the exporter once the frame has been written
    """
    image: np.ndarray
    index: int
    x: int
    y: int
    width: int
    height: int
    pivot_x: float
    pivot_y: float
    exported_path: Path | None = None

    @property
    def bounds(self) -> Rect:
        return (self.x, self.y, self.width, self.height)


@dataclass(frozen=True, eq=False)
class AnimationClip:
    """A named, timed sequence of frames."""
    name: str
    loop: bool
    frame_duration: float
    frames: tuple[FrameSlice, ...]


@dataclass
class SpriteSheetProcessingResult:
    """
    Everything the pipeline produced for one sheet.

    Attributes:
        source: Path of the sheet
        decision: WHOLE, TWO or MANY
        frames: Extracted frames in index order
        clips: Animation clips built from the frames
        stats: Free-form numbers and labels describing the run
    """
    source: Path
    decision: ProcessingDecision
    frames: list[FrameSlice]
    clips: list[AnimationClip] = field(default_factory=list)
    stats: dict[str, Any] = field(default_factory=dict)
