"""Tests for the structural self-similarity fallback."""

import numpy as np
import pytest

from pyloopgrid.analysis.spectral import spectrogram
from pyloopgrid.analysis.structure import analyze_structure, downsample_frames

from tests.conftest import HOP, SR


def _structure(y, beat_times, **kwargs):
    S = spectrogram(y, 2048, HOP)
    return analyze_structure(S, SR, 2048, HOP, beat_times, 0.25, 12.0, **kwargs)


def test_finds_repetition_period(note_cycle):
    result = _structure(note_cycle, np.zeros(0))

    assert result is not None
    assert result.lag == pytest.approx(1.0, abs=0.05)
    assert result.end - result.start == pytest.approx(result.lag)
    assert result.confidence > 0.5
    assert result.lag_candidates[0][0] == pytest.approx(result.lag)


def test_start_snaps_to_a_beat_and_end_follows_the_period(note_cycle):
    beat_times = np.arange(0.0, 8.0, 0.25)
    result = _structure(note_cycle, beat_times)

    assert result is not None
    assert np.min(np.abs(beat_times - result.start)) < 1e-9
    # A period within a tenth of a beat of 4 beats is rounded to exactly 4
    assert result.end - result.start == pytest.approx(1.0)
    assert np.min(np.abs(beat_times - result.end)) < 1e-9


def test_period_off_the_beat_grid_is_kept(note_cycle):
    beat_times = np.arange(0.0, 8.0, 0.3)
    result = _structure(note_cycle, beat_times)

    assert result is not None
    assert np.min(np.abs(beat_times - result.start)) < 1e-9
    assert result.end - result.start == pytest.approx(result.lag)
    assert result.resolution == pytest.approx(HOP / SR)


def test_too_short_input_returns_none():
    S = np.abs(np.random.default_rng(0).standard_normal((1024, 3)))
    assert analyze_structure(S, SR, 2048, HOP, np.zeros(0), 0.25, 12.0) is None


def test_downsample_frames():
    features = np.arange(12 * 2500, dtype=np.float64).reshape(12, 2500)
    reduced, factor = downsample_frames(features, 1024)

    assert factor == 3
    assert reduced.shape == (12, 833)
    assert reduced[0, 0] == pytest.approx(features[0, :3].mean())

    same, factor = downsample_frames(features[:, :100], 1024)
    assert factor == 1
    assert same.shape == (12, 100)


def test_downsampling_keeps_the_period(note_cycle):
    result = _structure(note_cycle, np.zeros(0), max_frames=128)
    assert result is not None
    assert result.lag == pytest.approx(1.0, abs=0.1)
