"""Tests for zero-crossing refinement and crossfades."""

import numpy as np
import pytest

from pyloopgrid.analysis.refine import Crossfade, find_zero_crossing, refine_boundaries
from pyloopgrid.exceptions import InvalidParameterError

SR = 44100


def _sine(seconds=1.0, freq=440.0):
    t = np.arange(int(seconds * SR)) / SR
    return np.sin(2 * np.pi * freq * t + 0.3)


def _is_crossing(y, j):
    return (y[j - 1] < 0) != (y[j] < 0)


def test_boundaries_snap_to_nearby_crossings():
    y = _sine()
    refined = refine_boundaries(y, 1000, 30000, SR)

    assert refined.start_snapped and refined.end_snapped
    assert _is_crossing(y, refined.start)
    assert _is_crossing(y, refined.end)
    assert abs(refined.start - 1000) <= 441
    assert abs(refined.end - 30000) <= 441
    assert refined.crossfade is None


def test_snap_picks_the_closest_crossing():
    y = _sine()
    refined = refine_boundaries(y, 1000, 30000, SR)
    # Half a 440 Hz period is ~50 samples, so the closest crossing is within 26
    assert abs(refined.start - 1000) <= 26
    assert abs(refined.end - 30000) <= 26


def test_no_crossing_keeps_bounds_and_adds_crossfade():
    y = 1.0 + 0.1 * _sine()
    refined = refine_boundaries(y, 1000, 30000, SR)

    assert (refined.start, refined.end) == (1000, 30000)
    assert not refined.start_snapped and not refined.end_snapped
    assert refined.crossfade is not None
    assert refined.crossfade.length == 441


def test_crossfade_is_limited_to_half_the_loop():
    y = np.ones(5000)
    refined = refine_boundaries(y, 1000, 1100, SR)
    assert refined.crossfade.length == 50


def test_max_shift_rejects_distant_crossings():
    y = np.ones(5000)
    y[1200:] = -1.0
    refined = refine_boundaries(y, 1000, 4000, SR, search_ms=10, max_shift_ms=2)

    assert refined.start == 1000
    assert not refined.start_snapped
    assert refined.crossfade is not None


def test_equal_power_crossfade():
    fade = Crossfade.equal_power(256)
    np.testing.assert_allclose(fade.fade_in**2 + fade.fade_out**2, 1.0)
    assert fade.fade_in[0] == pytest.approx(0.0)
    assert fade.fade_out[-1] == pytest.approx(0.0, abs=1e-12)


def test_zero_crossing_tie_breaks():
    # Two crossings one sample from the target; the quieter one wins
    y = np.array([1.0, -0.2, -0.3, 0.5, 1.0])
    assert find_zero_crossing(y, 2, 2) == 1

    # Same distance and amplitude; the earlier one wins
    y = np.array([1.0, -0.5, -0.5, 0.5, 1.0])
    assert find_zero_crossing(y, 2, 2) == 1


def test_zero_crossing_none_when_absent():
    assert find_zero_crossing(np.ones(100), 50, 10) is None


def test_invalid_bounds_raise():
    y = _sine()
    with pytest.raises(InvalidParameterError):
        refine_boundaries(y, 5000, 5000, SR)
    with pytest.raises(InvalidParameterError):
        refine_boundaries(y, 0, len(y) + 1, SR)
    with pytest.raises(InvalidParameterError):
        refine_boundaries(y, -1, 100, SR)
