"""
End-to-end tests for the spritesheet_slicer library API.

Tests that sheets can be processed programmatically, without using the CLI,
on small synthetic sheets whose correct decomposition is known.
"""

import cv2
import numpy as np
import pytest

from spritesheet_slicer import (
    CoreVsFxClassifier,
    ExtractorConfig,
    ProcessingDecision,
    SpriteSheetProcessor,
    process_batch,
    sprite_sheet_from_array,
)
from spritesheet_slicer.classifier import DEFAULT_WEIGHTS
from spritesheet_slicer.errors import InvalidImageError, SheetLoadError
from spritesheet_slicer.frame_save import save_frames
from spritesheet_slicer.processor import find_sheets
from spritesheet_slicer.visualization import plot_alpha_profiles, visualize_frames

from sheet_factory import blank_sheet, fill_rect


def _processor(config=None):
    return SpriteSheetProcessor(config or ExtractorConfig(), CoreVsFxClassifier(None))


def _whole_sheet():
    """A body with a small attachment touching it."""
    img = blank_sheet(64, 50)
    fill_rect(img, 10, 10, 30, 30)
    fill_rect(img, 41, 20, 7, 7, bgr=(200, 200, 40))
    return img


def _two_sheet():
    """Two equal blocks, far apart horizontally."""
    img = blank_sheet(100, 50)
    fill_rect(img, 5, 10, 30, 30)
    fill_rect(img, 65, 10, 30, 30)
    return img


def _many_sheet():
    """Five small blocks in a row."""
    img = blank_sheet(200, 40)
    for i in range(5):
        fill_rect(img, 5 + 40 * i, 15, 10, 10)
    return img


def _check_frame(frame, sheet):
    assert frame.image.dtype == np.uint8, "Frame should be uint8"
    assert frame.image.shape == (frame.height, frame.width, 4), "Frame image should match its size and be BGRA"
    assert 0 <= frame.x and 0 <= frame.y, "Frame should start inside the sheet"
    assert frame.x + frame.width <= sheet.shape[1], "Frame should end inside the sheet"
    assert frame.y + frame.height <= sheet.shape[0], "Frame should end inside the sheet"
    assert 0.0 <= frame.pivot_x <= 1.0 and 0.0 <= frame.pivot_y <= 1.0, "Pivot should be normalized"


def test_transparent_sheet_gives_single_empty_frame():
    """A sheet without opaque pixels still yields one 1x1 frame."""
    sheet = sprite_sheet_from_array(blank_sheet(32, 32), "blank.png")
    result = _processor().process(sheet)

    assert result.decision == ProcessingDecision.WHOLE
    assert len(result.frames) == 1
    frame = result.frames[0]
    assert (frame.x, frame.y, frame.width, frame.height) == (0, 0, 1, 1)
    assert frame.image.shape == (1, 1, 4)
    assert not frame.image.any(), "Empty frame should be transparent"
    assert [c.name for c in result.clips] == ["Whole"]
    assert result.stats["components"] == 0


def test_single_sprite_is_whole():
    """One dominant body becomes one frame spanning all opaque pixels."""
    img = _whole_sheet()
    result = _processor().process(sprite_sheet_from_array(img, "hero.png"))

    assert result.decision == ProcessingDecision.WHOLE
    assert len(result.frames) == 1
    frame = result.frames[0]
    assert frame.bounds == (10, 10, 38, 30), "WHOLE frame should be the opaque bounds of the sheet"
    np.testing.assert_array_equal(frame.image, img[10:40, 10:48])
    _check_frame(frame, img)
    assert result.clips[0].name == "Whole"


def test_two_separated_sprites_are_two():
    """Two blocks separated by a clear gap become two padded frames."""
    img = _two_sheet()
    result = _processor().process(sprite_sheet_from_array(img, "mageCast.png"))

    assert result.decision == ProcessingDecision.TWO
    assert len(result.frames) == 2
    left, right = result.frames
    assert left.bounds == (3, 8, 34, 34), "Frame should be the block plus 2 px padding"
    assert right.bounds == (63, 8, 34, 34)
    assert [f.index for f in result.frames] == [0, 1]
    for frame in result.frames:
        _check_frame(frame, img)
        assert frame.image[:2].max() == 0, "Padding rows should be transparent"

    clip = result.clips[0]
    assert clip.name == "CastSpell"
    assert not clip.loop
    assert len(clip.frames) == 2


def test_row_of_sprites_is_many():
    """Five blocks in a row become five frames in left-to-right order."""
    img = _many_sheet()
    result = _processor().process(sprite_sheet_from_array(img, "slimeIdle.png"))

    assert result.decision == ProcessingDecision.MANY
    assert len(result.frames) == 5
    assert [f.x for f in result.frames] == [3 + 40 * i for i in range(5)]
    for frame in result.frames:
        _check_frame(frame, img)
        assert (frame.width, frame.height) == (14, 14)

    assert result.clips[0].name == "Idle"
    assert result.clips[0].loop
    assert result.stats["count"] == 5
    assert result.stats["clusters"] == 5


def test_tightly_spaced_row_is_many():
    """Sprites a few pixels apart are still separate frames, not one TWO split."""
    img = blank_sheet(110, 30)
    for i in range(5):
        fill_rect(img, 5 + 20 * i, 8, 14, 14)
    result = _processor().process(sprite_sheet_from_array(img, "slimeWalk.png"))

    assert result.decision == ProcessingDecision.MANY
    assert [f.bounds for f in result.frames] == [(3 + 20 * i, 6, 18, 18) for i in range(5)]
    assert result.stats["components"] == 5
    assert result.stats["clusters"] == 5


def test_frames_do_not_overlap():
    for img in (_two_sheet(), _many_sheet()):
        frames = _processor(ExtractorConfig(padding=0)).process(sprite_sheet_from_array(img)).frames
        for i, a in enumerate(frames):
            for b in frames[i + 1:]:
                overlap_x = min(a.x + a.width, b.x + b.width) - max(a.x, b.x)
                overlap_y = min(a.y + a.height, b.y + b.height) - max(a.y, b.y)
                assert overlap_x <= 0 or overlap_y <= 0, "Frames should be disjoint"


def test_decision_override_wins():
    """A file name override replaces the geometric decision."""
    config = ExtractorConfig(decision_overrides={"bossAttack3.png": "WHOLE"})
    result = _processor(config).process(sprite_sheet_from_array(_two_sheet(), "bossAttack3.png"))

    assert result.decision == ProcessingDecision.WHOLE
    assert len(result.frames) == 1
    assert result.frames[0].bounds == (5, 10, 90, 30)
    assert result.clips[0].name == "Attack3"

    config = ExtractorConfig(decision_overrides={"*": "TWO"})
    result = _processor(config).process(sprite_sheet_from_array(_many_sheet(), "row.png"))
    assert result.decision == ProcessingDecision.TWO
    assert len(result.frames) == 2


def test_processing_updates_classifier():
    classifier = CoreVsFxClassifier(None)
    processor = SpriteSheetProcessor(ExtractorConfig(), classifier)
    processor.process(sprite_sheet_from_array(_two_sheet()))

    assert classifier.bias != 0.0
    assert not np.array_equal(classifier.weights, DEFAULT_WEIGHTS), "Weights should have been nudged"


def test_stats():
    result = _processor().process(sprite_sheet_from_array(_two_sheet()))
    assert result.stats["decision"] == "TWO"
    assert result.stats["count"] == 2
    assert result.stats["alpha_threshold"] == 8
    assert result.stats["padding"] == 2
    assert result.stats["coverage"] == pytest.approx(0.36)
    assert result.stats["col_valley_score"] > 0.35


def test_process_from_file(tmp_path):
    path = tmp_path / "slimeIdle.png"
    assert cv2.imwrite(str(path), _many_sheet())

    result = _processor().process(path)
    assert result.source == path
    assert result.decision == ProcessingDecision.MANY
    assert len(result.frames) == 5


def test_unreadable_file_raises(tmp_path):
    broken = tmp_path / "broken.png"
    broken.write_bytes(b"not an image")

    with pytest.raises(SheetLoadError, match="Unable to read image"):
        _processor().process(broken)
    with pytest.raises(SheetLoadError):
        _processor().process(tmp_path / "missing.png")


@pytest.mark.parametrize("workers", [1, 3])
def test_batch_isolates_failures(tmp_path, workers):
    """A broken sheet is reported but does not stop the others."""
    good_a = tmp_path / "a_idle.png"
    broken = tmp_path / "b_broken.png"
    good_c = tmp_path / "c_attack.png"
    cv2.imwrite(str(good_a), _many_sheet())
    broken.write_bytes(b"not an image")
    cv2.imwrite(str(good_c), _two_sheet())

    outcomes = list(process_batch(_processor(), find_sheets(tmp_path), workers=workers))

    assert [o.path for o in outcomes] == [good_a, broken, good_c], "Outcomes should follow input order"
    assert [o.ok for o in outcomes] == [True, False, True]
    assert isinstance(outcomes[1].error, SheetLoadError)
    assert outcomes[0].result.decision == ProcessingDecision.MANY
    assert outcomes[2].result.decision == ProcessingDecision.TWO


def test_bgr_input():
    """BGR images without alpha are treated as fully opaque."""
    bgr = np.full((20, 30, 3), 50, dtype=np.uint8)
    sheet = sprite_sheet_from_array(bgr)
    assert sheet.image.shape == (20, 30, 4), "Sheet should be BGRA"
    assert sheet.pixel(0, 0) == (50, 50, 50, 255)
    with pytest.raises(IndexError):
        sheet.pixel(30, 0)


def test_invalid_input():
    """Invalid rasters raise errors that are also ValueErrors."""
    with pytest.raises(ValueError, match="image.*None"):
        sprite_sheet_from_array(None)

    with pytest.raises(InvalidImageError, match="shape"):
        sprite_sheet_from_array(np.zeros((10, 10), dtype=np.uint8))

    with pytest.raises(InvalidImageError, match="uint8"):
        sprite_sheet_from_array(np.zeros((10, 10, 4), dtype=np.float32))

    with pytest.raises(InvalidImageError, match="channels"):
        sprite_sheet_from_array(np.zeros((10, 10, 2), dtype=np.uint8))


def test_save_frames(tmp_path):
    path = tmp_path / "in" / "slimeIdle.png"
    path.parent.mkdir()
    cv2.imwrite(str(path), _many_sheet())
    result = _processor().process(path)

    written = save_frames(result, tmp_path / "out")

    assert [p.name for p in written] == [f"slimeIdle_frame_{i}.png" for i in range(5)]
    for frame, frame_path in zip(result.frames, written):
        assert frame.exported_path == frame_path
        saved = cv2.imread(str(frame_path), cv2.IMREAD_UNCHANGED)
        np.testing.assert_array_equal(saved, frame.image)


def test_save_frames_with_debug_copies(tmp_path):
    result = _processor().process(sprite_sheet_from_array(_two_sheet(), "pair.png"))
    debug_dir = tmp_path / "debug"
    debug_dir.mkdir()

    written = save_frames(result, tmp_path / "out", debug_dir)

    assert sorted(p.name for p in debug_dir.iterdir()) == [p.name for p in written]
    for frame_path in written:
        copy = cv2.imread(str(debug_dir / frame_path.name), cv2.IMREAD_UNCHANGED)
        np.testing.assert_array_equal(copy, cv2.imread(str(frame_path), cv2.IMREAD_UNCHANGED))


def test_debug_visualization(tmp_path):
    processor = _processor()
    sheet = sprite_sheet_from_array(_two_sheet(), "pair.png")
    analysis = processor.analyze(sheet)
    result = processor.process(sheet)

    overlay = visualize_frames(sheet.image, result, analysis.clusters, tmp_path / "frames.png")
    assert overlay.shape == (50, 100, 3), "Overlay should be BGR and sheet-sized"
    assert (tmp_path / "frames.png").exists()

    plot_alpha_profiles(analysis.metrics, "pair.png", tmp_path / "profiles.png")
    assert (tmp_path / "profiles.png").exists()
