#!/usr/bin/env python3
"""
Sprite Sheet Slicer - Command Line Interface

Splits sprite sheets on a transparent background into animation frames, without
any slicing metadata. Each sheet is classified as a single frame (WHOLE), two frames
(TWO) or many frames (MANY); frames are cropped, given a pivot, and saved as PNGs.

A small classifier that tells sprite bodies from effects learns from every sheet and
is saved at the end of the run, so later runs start from what earlier runs saw.
"""

import logging
import sys
from pathlib import Path

import click

from spritesheet_slicer.classifier import CoreVsFxClassifier
from spritesheet_slicer.config import ExtractorConfig, load_config, parse_override
from spritesheet_slicer.errors import ConfigError, ModelLoadError, ModelSaveError, SlicerError
from spritesheet_slicer.frame_save import save_frames
from spritesheet_slicer.processor import SpriteSheetProcessor, find_sheets, process_batch
from spritesheet_slicer.visualization import plot_alpha_profiles, visualize_frames

DEFAULT_MODEL_NAME = "core_fx_model.txt"


def _collect_inputs(input_paths: tuple[str, ...]) -> list[Path]:
    paths: list[Path] = []
    for entry in input_paths:
        path = Path(entry)
        if path.is_dir():
            paths.extend(find_sheets(path))
        else:
            paths.append(path)
    return paths


def _build_config(config_path: str | None, decision: tuple[str, ...], clip: tuple[str, ...],
                  force_whole: bool, force_two: bool, **values) -> ExtractorConfig:
    base = load_config(config_path) if config_path else ExtractorConfig()

    decision_overrides = dict(parse_override(entry) for entry in decision)
    if force_whole:
        decision_overrides.setdefault("*", "WHOLE")
    if force_two:
        decision_overrides.setdefault("*", "TWO")
    clip_overrides = dict(parse_override(entry) for entry in clip)

    return base.with_overrides(decision_overrides=decision_overrides, clip_overrides=clip_overrides, **values)


@click.command(context_settings=dict(show_default=True))
@click.argument('input_paths', nargs=-1, required=True, type=click.Path(exists=True))
@click.option('--output-dir', '-o', type=click.Path(file_okay=False), default='out',
              help='Directory for extracted frames and the classifier model')
@click.option('--config', '-c', 'config_path', type=click.Path(exists=True, dir_okay=False),
              help='JSON file with pipeline settings')
@click.option('--alpha-threshold', '-a', type=click.IntRange(0, 255), help='Alpha above this is opaque [default: 8]')
@click.option('--padding', '-p', type=click.IntRange(min=0), help='Transparent margin around frames [default: 2]')
@click.option('--min-area', type=click.IntRange(min=0), help='Ignore components smaller than this [default: 40]')
@click.option('--whole-coverage', type=float, help='Largest-component share that makes a sheet WHOLE [default: 0.9]')
@click.option('--two-gap-iou-max', type=float, help='Maximum overlap of the two frames of a TWO sheet [default: 0.05]')
@click.option('--decision', '-D', multiple=True, metavar='PATTERN=DECISION',
              help='Force WHOLE/TWO/MANY for matching file names, e.g. "*Idle*=WHOLE"')
@click.option('--clip', '-C', multiple=True, metavar='PATTERN=NAME',
              help='Force a clip name for matching file names')
@click.option('--force-whole', is_flag=True, help='Treat every sheet as a single frame')
@click.option('--force-two', is_flag=True, help='Treat every sheet as two frames')
@click.option('--model-path', '-m', type=click.Path(dir_okay=False),
              help=f'Classifier model file [default: OUTPUT_DIR/{DEFAULT_MODEL_NAME}]')
@click.option('--workers', '-j', type=click.IntRange(min=1), default=1, help='Sheets processed in parallel')
@click.option('--debug', '-d', is_flag=True, help='Save overlays and projection plots for debugging')
@click.option('--verbose', '-v', is_flag=True, help='Log pipeline details')
def main(input_paths: tuple[str, ...], output_dir: str, config_path: str | None, alpha_threshold: int | None,
         padding: int | None, min_area: int | None, whole_coverage: float | None, two_gap_iou_max: float | None,
         decision: tuple[str, ...], clip: tuple[str, ...], force_whole: bool, force_two: bool,
         model_path: str | None, workers: int, debug: bool, verbose: bool) -> None:
    """Split sprite sheets into animation frames.

    INPUT_PATHS are image files or directories; directories are searched recursively
    for PNG files.

    Frames are written to OUTPUT_DIR/<sheet name>/. If a sheet is classified wrongly,
    force the decision for its file name with -D, e.g. -D "bossAttack3.png=TWO".
    """
    logging.basicConfig(level=logging.INFO if verbose else logging.WARNING,
                        format="%(levelname)s %(name)s: %(message)s")

    if force_whole and force_two:
        raise click.UsageError("--force-whole and --force-two cannot be combined")

    try:
        config = _build_config(config_path, decision, clip, force_whole, force_two,
                               alpha_threshold=alpha_threshold, padding=padding, min_area=min_area,
                               whole_coverage=whole_coverage, two_gap_iou_max=two_gap_iou_max)
    except ConfigError as e:
        raise click.BadParameter(str(e)) from e

    out_dir = Path(output_dir)
    out_dir.mkdir(parents=True, exist_ok=True)

    try:
        classifier = CoreVsFxClassifier.load_or_create(Path(model_path) if model_path else out_dir / DEFAULT_MODEL_NAME)
    except ModelLoadError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(2)

    # Setup debug directory if needed
    debug_dir = None
    if debug:
        debug_dir = out_dir / "debug"
        debug_dir.mkdir(exist_ok=True)
        click.echo(f"Debug mode enabled, saving intermediate images to '{debug_dir}'")

    processor = SpriteSheetProcessor(config, classifier)
    sheets = _collect_inputs(input_paths)
    click.echo(f"Found {len(sheets)} sheet(s)")

    failures = 0
    for outcome in process_batch(processor, sheets, workers=workers):
        if not outcome.ok:
            failures += 1
            click.echo(f"Error: {outcome.error}", err=True)
            continue

        result = outcome.result
        try:
            save_frames(result, out_dir, debug_dir)
        except SlicerError as e:
            failures += 1
            click.echo(f"Error: {e}", err=True)
            continue

        clip_names = ", ".join(c.name for c in result.clips)
        click.echo(f"{outcome.path.name}: {result.decision.value}, {len(result.frames)} frame(s) [{clip_names}]")

        if debug_dir:
            analysis = processor.analyze(outcome.path)
            stem = outcome.path.stem
            visualize_frames(analysis.sheet.image, result, analysis.clusters, debug_dir / f"{stem}_frames.png")
            plot_alpha_profiles(analysis.metrics, outcome.path.name, debug_dir / f"{stem}_profiles.png")

    try:
        saved = classifier.save()
    except ModelSaveError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(2)
    click.echo(f"Classifier model saved to {saved}")

    if failures:
        click.echo(f"{failures} sheet(s) failed", err=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
