"""
Naming of animation clips from sheet file names.
"""

from __future__ import annotations

import re
from pathlib import PurePath
from typing import Sequence

from spritesheet_slicer.config import ExtractorConfig
from spritesheet_slicer.decision import ProcessingDecision, resolve_override
from spritesheet_slicer.models import AnimationClip, FrameSlice

NUMBER_PATTERN = re.compile(r"(\d+)")


class AnimationNamer:
    """Wraps a sheet's frames into a clip named after the sheet's file name."""

    def __init__(self, config: ExtractorConfig):
        self.config = config

    def name_clips(
        self,
        file_name: str,
        frames: Sequence[FrameSlice],
        decision: ProcessingDecision
    ) -> list[AnimationClip]:
        if not frames:
            return []
        name = self.resolve_clip_name(file_name, decision)
        loop = "idle" in name.lower()
        return [AnimationClip(name=name, loop=loop, frame_duration=self.config.frame_duration, frames=tuple(frames))]

    def resolve_clip_name(self, file_name: str, decision: ProcessingDecision) -> str:
        override = resolve_override(file_name, self.config.clip_overrides, ignore_case=True)
        if override is not None:
            return override

        base = PurePath(file_name).stem.lower()
        if "death" in base:
            return "Death"
        if "idle" in base:
            return "Idle"
        if "attack" in base:
            match = NUMBER_PATTERN.search(base)
            return f"Attack{match.group(1)}" if match else "Attack"
        if "cast" in base or "spell" in base:
            return "CastSpell"
        if "hit" in base or "hurt" in base:
            return "Hit"
        if decision == ProcessingDecision.WHOLE:
            return "Whole"
        return "Idle"
