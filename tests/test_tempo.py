"""Tests for autocorrelation tempo estimation."""

import numpy as np
import pytest

from pyloopgrid.analysis.onset import onset_strength
from pyloopgrid.analysis.spectral import spectrogram
from pyloopgrid.analysis.tempo import (
    autocorrelate,
    bpm_to_lag,
    estimate_tempo,
    lag_range,
    lag_to_bpm,
)

from tests.conftest import CLICK_PERIOD, HOP, SR, impulse_envelope


def test_click_train_tempo(click_train):
    onset = onset_strength(spectrogram(click_train, 2048, HOP))
    tempo = estimate_tempo(onset, SR, HOP)

    expected = 60.0 * SR / CLICK_PERIOD  # ~117.45 BPM
    assert tempo.bpm == pytest.approx(expected, rel=0.02)
    assert tempo.confidence > 0.8
    assert tempo.period == pytest.approx(bpm_to_lag(tempo.bpm, SR, HOP))


def test_candidates_are_sorted_by_strength(click_train):
    onset = onset_strength(spectrogram(click_train, 2048, HOP))
    tempo = estimate_tempo(onset, SR, HOP)

    strengths = [s for _, s in tempo.candidates]
    assert strengths == sorted(strengths, reverse=True)
    assert all(60.0 <= bpm <= 200.0 for bpm, _ in tempo.candidates)
    assert 0.0 <= tempo.confidence <= 1.0


def test_octave_correction_doubles_slow_tempo():
    # Strong pulse every 40 frames (~64.6 BPM) with a nearly as strong off-beat
    onset = impulse_envelope(800, 40) + impulse_envelope(800, 40, offset=25, amplitude=0.8)
    tempo = estimate_tempo(onset, SR, HOP)
    assert tempo.bpm == pytest.approx(lag_to_bpm(20, SR, HOP), rel=0.01)


def test_weak_off_beat_keeps_slow_tempo():
    onset = impulse_envelope(800, 40) + impulse_envelope(800, 40, offset=25, amplitude=0.3)
    tempo = estimate_tempo(onset, SR, HOP)
    assert tempo.bpm == pytest.approx(lag_to_bpm(40, SR, HOP), rel=0.01)


def test_flat_envelope_returns_default():
    tempo = estimate_tempo(np.zeros(500), SR, HOP)
    assert tempo.bpm == 120.0
    assert tempo.confidence == 0.0
    assert tempo.candidates == ()


def test_short_envelope_returns_default():
    onset = np.zeros(10)
    onset[3] = 1.0
    tempo = estimate_tempo(onset, SR, HOP, default_bpm=100.0)
    assert tempo.bpm == 100.0
    assert tempo.confidence == 0.0


def test_bpm_stays_in_range():
    onset = impulse_envelope(800, 40)
    tempo = estimate_tempo(onset, SR, HOP, min_bpm=70.0, max_bpm=180.0)
    assert 70.0 <= tempo.bpm <= 180.0


def test_lag_range_bounds():
    min_lag, max_lag = lag_range(1000, SR, HOP, 60.0, 200.0)
    assert min_lag == 13
    assert max_lag == 43
    assert lag_to_bpm(min_lag, SR, HOP) <= 200.0
    assert lag_to_bpm(max_lag, SR, HOP) >= 60.0


def test_autocorrelation_is_normalized_by_overlap():
    onset = np.ones(100)
    ac = autocorrelate(onset, 50)
    np.testing.assert_allclose(ac, 1.0)
