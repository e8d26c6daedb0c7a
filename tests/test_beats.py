"""Tests for greedy and dynamic-programming beat tracking."""

import numpy as np
import pytest

from pyloopgrid.analysis.beats import (
    predominant_pulse_phase,
    track_beats,
    track_beats_dp,
    track_beats_greedy,
)
from pyloopgrid.analysis.onset import onset_strength
from pyloopgrid.analysis.spectral import spectrogram
from pyloopgrid.analysis.tempo import lag_to_bpm
from pyloopgrid.exceptions import InvalidParameterError

from tests.conftest import HOP, SR, impulse_envelope

IMPULSES = np.arange(5, 400, 20)


def test_dp_follows_regular_impulses():
    onset = impulse_envelope(400, 20)
    beats = track_beats_dp(onset, 20.0)
    np.testing.assert_array_equal(beats, IMPULSES)


def test_greedy_follows_regular_impulses():
    onset = impulse_envelope(400, 20)
    beats = track_beats_greedy(onset, 20.0)
    np.testing.assert_array_equal(beats, IMPULSES)


def test_greedy_snaps_to_jittered_onsets():
    onset = np.zeros(400)
    positions = [5, 26, 44, 66, 85, 106]
    onset[positions] = 1.0
    beats = track_beats_greedy(onset[:120], 20.0)
    np.testing.assert_array_equal(beats[: len(positions)], positions)


@pytest.mark.parametrize("strategy", ["dp", "greedy"])
def test_click_train_beat_spacing(click_train, strategy):
    onset = onset_strength(spectrogram(click_train, 2048, HOP))
    grid = track_beats(onset, lag_to_bpm(22, SR, HOP), SR, HOP, strategy=strategy)

    assert len(grid) >= 15
    assert np.all(np.diff(grid.frames) > 0)
    assert abs(float(np.median(np.diff(grid.frames))) - 22) <= 1
    np.testing.assert_allclose(grid.times, grid.frames * HOP / SR)


def test_pulse_phase_matches_click_position(click_train):
    onset = onset_strength(spectrogram(click_train, 2048, HOP))
    phase = predominant_pulse_phase(onset, 22.0)
    # Clicks at multiples of 22 hops show up in the frames just before them
    assert 18 <= phase <= 21


def test_pulse_phase_of_impulses():
    assert predominant_pulse_phase(impulse_envelope(400, 20), 20.0) == pytest.approx(5.0)


@pytest.mark.parametrize("tracker", [track_beats_dp, track_beats_greedy])
def test_flat_envelope_gives_empty_grid(tracker):
    beats = tracker(np.zeros(300), 20.0)
    assert beats.size == 0


def test_unknown_strategy_raises():
    with pytest.raises(InvalidParameterError):
        track_beats(impulse_envelope(400, 20), 120.0, SR, HOP, strategy="viterbi")


def test_non_positive_bpm_raises():
    with pytest.raises(InvalidParameterError):
        track_beats(impulse_envelope(400, 20), 0.0, SR, HOP)
