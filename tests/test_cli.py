"""
Tests for the command line interface.
"""

import cv2
from click.testing import CliRunner

from spritesheet_slicer.main import DEFAULT_MODEL_NAME, main

from sheet_factory import blank_sheet, fill_rect


def _write_sheets(directory):
    directory.mkdir(parents=True, exist_ok=True)
    pair = blank_sheet(100, 50)
    fill_rect(pair, 5, 10, 30, 30)
    fill_rect(pair, 65, 10, 30, 30)
    cv2.imwrite(str(directory / "mageCast.png"), pair)

    row = blank_sheet(200, 40)
    for i in range(5):
        fill_rect(row, 5 + 40 * i, 15, 10, 10)
    cv2.imwrite(str(directory / "slimeIdle.png"), row)


def test_extracts_frames_and_saves_model(tmp_path):
    _write_sheets(tmp_path / "sheets")
    out = tmp_path / "out"

    result = CliRunner().invoke(main, [str(tmp_path / "sheets"), "-o", str(out)])

    assert result.exit_code == 0, result.output
    assert "Found 2 sheet(s)" in result.output
    assert "mageCast.png: TWO, 2 frame(s) [CastSpell]" in result.output
    assert "slimeIdle.png: MANY, 5 frame(s) [Idle]" in result.output

    assert sorted(p.name for p in (out / "mageCast").iterdir()) == ["mageCast_frame_0.png", "mageCast_frame_1.png"]
    assert len(list((out / "slimeIdle").glob("*.png"))) == 5
    assert (out / DEFAULT_MODEL_NAME).exists(), "Model should be saved to the output directory"


def test_decision_override_option(tmp_path):
    _write_sheets(tmp_path / "sheets")
    out = tmp_path / "out"

    result = CliRunner().invoke(main, [str(tmp_path / "sheets" / "mageCast.png"), "-o", str(out),
                                       "-D", "mage*=WHOLE", "-C", "*cast*=Fireball"])

    assert result.exit_code == 0, result.output
    assert "mageCast.png: WHOLE, 1 frame(s) [Fireball]" in result.output


def test_force_two_and_model_path(tmp_path):
    _write_sheets(tmp_path / "sheets")
    model = tmp_path / "models" / "shared.txt"

    result = CliRunner().invoke(main, [str(tmp_path / "sheets" / "slimeIdle.png"), "-o", str(tmp_path / "out"),
                                       "--force-two", "-m", str(model), "-j", "2"])

    assert result.exit_code == 0, result.output
    assert "slimeIdle.png: TWO, 2 frame(s)" in result.output
    assert model.exists()


def test_debug_output(tmp_path):
    _write_sheets(tmp_path / "sheets")
    out = tmp_path / "out"

    result = CliRunner().invoke(main, [str(tmp_path / "sheets"), "-o", str(out), "--debug"])

    assert result.exit_code == 0, result.output
    assert (out / "debug" / "mageCast_frames.png").exists()
    assert (out / "debug" / "mageCast_profiles.png").exists()
    assert (out / "debug" / "mageCast_frame_1.png").exists(), "Frames should also be copied to the debug directory"


def test_bad_override_is_usage_error(tmp_path):
    _write_sheets(tmp_path / "sheets")

    result = CliRunner().invoke(main, [str(tmp_path / "sheets"), "-o", str(tmp_path / "out"), "-D", "nonsense"])
    assert result.exit_code == 2

    result = CliRunner().invoke(main, [str(tmp_path / "sheets"), "-o", str(tmp_path / "out"), "-D", "*=SOME"])
    assert result.exit_code == 2


def test_failed_sheet_sets_exit_code(tmp_path):
    _write_sheets(tmp_path / "sheets")
    (tmp_path / "sheets" / "broken.png").write_bytes(b"not an image")
    out = tmp_path / "out"

    result = CliRunner().invoke(main, [str(tmp_path / "sheets"), "-o", str(out)])

    assert result.exit_code == 1
    assert "1 sheet(s) failed" in result.output
    assert (out / "slimeIdle").is_dir(), "Other sheets should still be processed"
    assert (out / DEFAULT_MODEL_NAME).exists()


def test_corrupt_model_aborts(tmp_path):
    _write_sheets(tmp_path / "sheets")
    model = tmp_path / "model.txt"
    model.write_text("garbage\n1,2\n")

    result = CliRunner().invoke(main, [str(tmp_path / "sheets"), "-o", str(tmp_path / "out"), "-m", str(model)])

    assert result.exit_code == 2
    assert "classifier model" in result.output


def test_config_file(tmp_path):
    _write_sheets(tmp_path / "sheets")
    config = tmp_path / "slicer.json"
    config.write_text('{"decision_overrides": {"*": "WHOLE"}, "padding": 0}')

    result = CliRunner().invoke(main, [str(tmp_path / "sheets"), "-o", str(tmp_path / "out"),
                                       "-c", str(config), "-D", "slime*=MANY"])

    assert result.exit_code == 0, result.output
    assert "mageCast.png: WHOLE" in result.output
    assert "slimeIdle.png: MANY" in result.output, "Command line overrides come before config file ones"


def test_force_flags_are_exclusive(tmp_path):
    _write_sheets(tmp_path / "sheets")
    out = tmp_path / "out"

    result = CliRunner().invoke(main, [str(tmp_path / "sheets"), "-o", str(out), "--force-whole", "--force-two"])

    assert result.exit_code == 2
    assert "cannot be combined" in result.output
    assert not out.exists(), "Nothing should be written on a usage error"
