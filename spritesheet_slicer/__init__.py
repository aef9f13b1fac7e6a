"""
Sprite Sheet Slicer

Decomposes sprite sheets on a transparent background into animation frames,
deciding whether a sheet holds one frame, two frames or many.

Public API:
    - SpriteSheetProcessor: Runs the pipeline on a sheet
    - process_batch: Processes many sheets, isolating per-sheet failures
    - ExtractorConfig: Pipeline settings
    - CoreVsFxClassifier: Online core/effect component classifier
    - ProcessingDecision, FrameSlice, AnimationClip, SpriteSheetProcessingResult: Results
"""

from spritesheet_slicer.classifier import CoreVsFxClassifier
from spritesheet_slicer.config import ExtractorConfig, load_config
from spritesheet_slicer.decision import DecisionModule, ProcessingDecision
from spritesheet_slicer.models import AnimationClip, FrameSlice, SpriteSheetProcessingResult
from spritesheet_slicer.processor import SheetOutcome, SpriteSheetProcessor, process_batch
from spritesheet_slicer.raster import SpriteSheet, load_sprite_sheet, sprite_sheet_from_array

__version__ = "0.1.0"
__all__ = [
    "SpriteSheetProcessor", "process_batch", "SheetOutcome",
    "ExtractorConfig", "load_config",
    "CoreVsFxClassifier", "DecisionModule", "ProcessingDecision",
    "FrameSlice", "AnimationClip", "SpriteSheetProcessingResult",
    "SpriteSheet", "load_sprite_sheet", "sprite_sheet_from_array",
    "__version__",
]
