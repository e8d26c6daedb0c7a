"""Tests for the command-line interface."""

import json

import pytest
import soundfile as sf
from click.testing import CliRunner

from pyloopgrid.cli import cli_main

from tests.conftest import SR, generate_click_train


@pytest.fixture
def wav_path(tmp_path):
    path = tmp_path / "clicks.wav"
    sf.write(str(path), generate_click_train(duration_seconds=6.0), SR)
    return path


def test_analyze_prints_summary(wav_path):
    result = CliRunner().invoke(cli_main, ["analyze", "--path", str(wav_path)])
    assert result.exit_code == 0, result.output
    assert "BPM" in result.output
    assert "Loop:" in result.output


def test_analyze_json(wav_path):
    result = CliRunner().invoke(cli_main, ["analyze", "--path", str(wav_path), "--json"])
    assert result.exit_code == 0, result.output
    payload = json.loads(result.output)
    assert payload["sample_rate"] == SR
    assert payload["loop_end_sample"] > payload["loop_start_sample"]


def test_analyze_accepts_engine_options(wav_path):
    result = CliRunner().invoke(
        cli_main,
        ["analyze", "--path", str(wav_path), "--beat-strategy", "GREEDY", "--min-bpm", "80", "--json"],
    )
    assert result.exit_code == 0, result.output
    assert 80.0 <= json.loads(result.output)["bpm"] <= 200.0


def test_export_points_to_txt(wav_path, tmp_path):
    out_dir = tmp_path / "out"
    result = CliRunner().invoke(
        cli_main,
        ["export-points", "--path", str(wav_path), "--export-to", "txt", "--output-dir", str(out_dir)],
    )
    assert result.exit_code == 0, result.output

    line = (out_dir / "loops.txt").read_text().strip()
    start, end, name = line.split(" ")
    assert int(start) < int(end)
    assert name == "clicks.wav"


def test_export_all_candidates_to_stdout(wav_path):
    result = CliRunner().invoke(
        cli_main, ["export-points", "--path", str(wav_path), "--fmt", "seconds", "--all-candidates"]
    )
    assert result.exit_code == 0, result.output
    rows = [line.split() for line in result.output.strip().splitlines()]
    assert len(rows) >= 1
    assert all(len(row) == 4 and float(row[0]) < float(row[1]) for row in rows)


def test_split_audio(wav_path, tmp_path):
    out_dir = tmp_path / "split"
    result = CliRunner().invoke(
        cli_main, ["split-audio", "--path", str(wav_path), "--output-dir", str(out_dir), "--format", "wav"]
    )
    assert result.exit_code == 0, result.output
    for section in ("intro", "loop", "outro"):
        assert (out_dir / f"clicks.wav-{section}.wav").exists()


def test_missing_path_is_rejected(tmp_path):
    result = CliRunner().invoke(cli_main, ["analyze", "--path", str(tmp_path / "missing.wav")])
    assert result.exit_code != 0
