#!/usr/bin/env python3
"""
Public API for the sprite sheet frame extraction pipeline.

A sheet goes through alpha analysis, component segmentation, clustering, the
WHOLE / TWO / MANY decision, frame slicing, classifier learning and clip naming,
in that order.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Generator, Iterable

from spritesheet_slicer.classifier import CoreVsFxClassifier
from spritesheet_slicer.clustering import FrameCluster, cluster_components
from spritesheet_slicer.config import ExtractorConfig
from spritesheet_slicer.decision import DecisionModule, ProcessingDecision
from spritesheet_slicer.errors import SlicerError
from spritesheet_slicer.metrics import AlphaMetrics, compute_alpha_metrics
from spritesheet_slicer.models import SpriteSheetProcessingResult
from spritesheet_slicer.naming import AnimationNamer
from spritesheet_slicer.raster import SpriteSheet, load_sprite_sheet
from spritesheet_slicer.segmentation import Component, segment_components
from spritesheet_slicer.slicing import FrameSlicer

logger = logging.getLogger(__name__)


@dataclass
class SheetOutcome:
    """
    Result of one sheet in a batch.

    Attributes:
        path: The sheet's path
        result: The processing result, or None if the sheet failed
        error: The error that stopped the sheet, or None on success
    """
    path: Path
    result: SpriteSheetProcessingResult | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class SheetAnalysis:
    """Intermediate results of one sheet, before slicing."""
    sheet: SpriteSheet
    metrics: AlphaMetrics
    components: list[Component]
    clusters: list[FrameCluster]
    decision: ProcessingDecision


class SpriteSheetProcessor:
    """
    Runs the extraction pipeline on single sheets.

    The classifier is shared by every sheet the processor handles; each processed sheet
    updates it. Saving the classifier is left to the caller.

    Example:
        >>> from spritesheet_slicer import CoreVsFxClassifier, ExtractorConfig, SpriteSheetProcessor
        >>>
        >>> classifier = CoreVsFxClassifier.load_or_create("out/core_fx_model.txt")
        >>> processor = SpriteSheetProcessor(ExtractorConfig(), classifier)
        >>> result = processor.process("sheets/knightAttack1.png")
        >>> print(result.decision, len(result.frames))
        >>> classifier.save()
    """

    def __init__(self, config: ExtractorConfig, classifier: CoreVsFxClassifier):
        self.config = config
        self.classifier = classifier
        self.decision_module = DecisionModule(config)
        self.slicer = FrameSlicer(config, classifier)
        self.namer = AnimationNamer(config)

    def analyze(self, source: str | Path | SpriteSheet) -> SheetAnalysis:
        """Run segmentation, clustering and the decision without slicing or learning."""
        sheet = source if isinstance(source, SpriteSheet) else load_sprite_sheet(source)
        config = self.config

        metrics = compute_alpha_metrics(sheet, config.alpha_threshold, config.valley_window)
        components = segment_components(sheet, config)
        clusters = cluster_components(components, metrics, config)
        decision = self.decision_module.decide(sheet.file_name, components, clusters, metrics)
        return SheetAnalysis(sheet, metrics, components, clusters, decision)

    def process(self, source: str | Path | SpriteSheet) -> SpriteSheetProcessingResult:
        """
        Process one sheet.

        Args:
            source: Path of an image file, or an already decoded SpriteSheet

        Returns:
            The decision, frames, clips and stats for the sheet

        Raises:
            SheetLoadError: If the image cannot be read.
        """
        analysis = self.analyze(source)
        sheet, metrics, components, clusters, decision = (
            analysis.sheet, analysis.metrics, analysis.components, analysis.clusters, analysis.decision)
        config = self.config

        if decision == ProcessingDecision.WHOLE:
            frames = self.slicer.whole(sheet, components)
        elif decision == ProcessingDecision.TWO:
            frames = self.slicer.two(sheet, metrics, components, clusters)
        else:
            frames = self.slicer.many(sheet, clusters)

        self.classifier.learn_from(components, frames)
        clips = self.namer.name_clips(sheet.file_name, frames, decision)

        stats = {
            "count": len(frames),
            "alpha_threshold": config.alpha_threshold,
            "padding": config.padding,
            "decision": decision.value,
            "coverage": metrics.coverage,
            "components": len(components),
            "clusters": len(clusters),
            "row_valley_score": metrics.row_valley_score,
            "col_valley_score": metrics.col_valley_score,
        }
        logger.info("%s: %s, %d frame(s) from %d component(s) in %d cluster(s)",
                    sheet.file_name, decision.value, len(frames), len(components), len(clusters))

        return SpriteSheetProcessingResult(source=sheet.path, decision=decision, frames=frames,
                                           clips=clips, stats=stats)

    def process_safely(self, path: Path) -> SheetOutcome:
        """Process one sheet, capturing pipeline errors in the outcome instead of raising."""
        try:
            return SheetOutcome(path=path, result=self.process(path))
        except SlicerError as e:
            logger.warning("Skipping %s: %s", path, e)
            return SheetOutcome(path=path, error=e)


def process_batch(
    processor: SpriteSheetProcessor,
    paths: Iterable[str | Path],
    workers: int = 1
) -> Generator[SheetOutcome, None, None]:
    """
    Process several sheets and yield an outcome for each, in input order.

    A sheet that cannot be read is reported through its outcome and does not stop the
    batch. With workers > 1 sheets are processed on a thread pool; the shared classifier
    serializes its own updates.
    """
    paths = [Path(p) for p in paths]
    if workers <= 1:
        for path in paths:
            yield processor.process_safely(path)
        return

    with ThreadPoolExecutor(max_workers=workers) as pool:
        yield from pool.map(processor.process_safely, paths)


def find_sheets(directory: str | Path, suffixes: tuple[str, ...] = (".png",)) -> list[Path]:
    """All image files below directory with one of the given suffixes, sorted."""
    directory = Path(directory)
    return sorted(p for p in directory.rglob("*") if p.is_file() and p.suffix.lower() in suffixes)
