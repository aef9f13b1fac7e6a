#!/usr/bin/env python3
"""
Functions for saving extracted frames as individual images.
"""

from pathlib import Path

import cv2

from spritesheet_slicer.errors import SlicerError
from spritesheet_slicer.models import SpriteSheetProcessingResult


def save_frames(
    result: SpriteSheetProcessingResult,
    output_dir: str | Path,
    debug_dir: Path | None = None
) -> list[Path]:
    """
    Save each frame of a result as a PNG and record where it went.

    Frames are written to <output_dir>/<sheet stem>/<sheet stem>_frame_<index>.png and
    each frame's exported_path is set.

    Args:
        result: Processing result of one sheet
        output_dir: Base directory for the output files
        debug_dir: Directory for debug copies of the frames (optional)

    Returns:
        Paths of the written files, in frame order

    Raises:
        SlicerError: If OpenCV refuses to write a file.
    """
    stem = result.source.stem
    sheet_dir = Path(output_dir) / stem
    sheet_dir.mkdir(parents=True, exist_ok=True)

    written = []
    for frame in result.frames:
        frame_path = sheet_dir / f"{stem}_frame_{frame.index}.png"
        if not cv2.imwrite(str(frame_path), frame.image):
            raise SlicerError(f"Failed to write frame {frame_path}")
        frame.exported_path = frame_path
        written.append(frame_path)

        # Save debug copy if needed
        if debug_dir:
            cv2.imwrite(str(debug_dir / f"{stem}_frame_{frame.index}.png"), frame.image)

    return written
