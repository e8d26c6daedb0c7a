"""
Beat Tracking.

Two trackers over the onset envelope, both returning strictly increasing
frame indices:
- greedy: anchor on the strongest onset in the first period, then step by
  the period and snap to the local onset peak
- dp: Viterbi-style cumulative score with a quadratic period-deviation
  penalty, backtracked from a frame in phase with the predominant pulse
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

import numpy as np
from numba import njit

from pyloopgrid.analysis import constants as C
from pyloopgrid.analysis.framing import frames_to_time
from pyloopgrid.analysis.onset import is_flat
from pyloopgrid.analysis.tempo import bpm_to_lag
from pyloopgrid.exceptions import InvalidParameterError

_EMPTY = np.zeros(0, dtype=np.int64)


@dataclass(slots=True, frozen=True, eq=False)
class BeatGrid:
    frames: np.ndarray  # Strictly increasing frame indices
    times: np.ndarray  # Same beats in seconds
    period: float  # Beat period in frames

    def __len__(self) -> int:
        return len(self.frames)


def track_beats_greedy(onset: np.ndarray, period: float) -> np.ndarray:
    """Fixed-interval tracker snapping each step to the nearest local onset peak."""
    n = len(onset)
    if n == 0 or period <= 0 or is_flat(onset):
        return _EMPTY

    first_window = max(1, min(n, math.ceil(period)))
    beats = [int(np.argmax(onset[:first_window]))]
    tolerance = max(1, int(round(C.GREEDY_SNAP_RATIO * period)))

    expected = beats[0] + period
    while int(round(expected)) < n:
        center = int(round(expected))
        lo = max(beats[-1] + 1, center - tolerance)
        hi = min(n, center + tolerance + 1)
        if lo >= hi:
            break
        snapped = lo + int(np.argmax(onset[lo:hi]))
        if onset[snapped] <= 0.0:
            snapped = min(max(center, lo), hi - 1)
        beats.append(snapped)
        expected = snapped + period

    return np.asarray(beats, dtype=np.int64)


def predominant_pulse_phase(onset: np.ndarray, period: float) -> float:
    """Phase offset (in frames, within [0, period)) holding the most onset energy."""
    n = len(onset)
    if n == 0 or period <= 0:
        return 0.0
    n_bins = max(1, math.ceil(period))
    phase = np.mod(np.arange(n, dtype=np.float64), period) / period
    bins = np.minimum((phase * n_bins).astype(np.int64), n_bins - 1)
    histogram = np.bincount(bins, weights=onset, minlength=n_bins)
    return float(np.argmax(histogram)) * period / n_bins


@njit(cache=True)
def _dp_forward(local: np.ndarray, period: float, tightness: float):
    n = local.shape[0]
    cumulative = np.zeros(n, dtype=np.float64)
    backlink = np.full(n, -1, dtype=np.int64)

    min_step = max(1, int(round(period / 2.0)))
    max_step = max(min_step, int(round(2.0 * period)))

    for t in range(n):
        best = 0.0
        best_prev = -1
        for step in range(min_step, max_step + 1):
            prev = t - step
            if prev < 0:
                break
            deviation = (step - period) / period
            score = cumulative[prev] - tightness * deviation * deviation
            if best_prev < 0 or score > best:
                best = score
                best_prev = prev
        if best_prev >= 0 and best > 0.0:
            cumulative[t] = local[t] + best
            backlink[t] = best_prev
        else:
            cumulative[t] = local[t]

    return cumulative, backlink


@njit(cache=True)
def _backtrack(backlink: np.ndarray, start: int) -> np.ndarray:
    path = []
    t = start
    while t >= 0:
        path.append(t)
        t = backlink[t]
    out = np.empty(len(path), dtype=np.int64)
    for i in range(len(path)):
        out[i] = path[len(path) - 1 - i]
    return out


def _backtrack_start(cumulative: np.ndarray, period: float, pulse_phase: float) -> int:
    n = len(cumulative)
    window_start = max(0, n - max(1, math.ceil(period)))
    frames = np.arange(window_start, n)

    distance = np.abs(np.mod(frames, period) - pulse_phase)
    distance = np.minimum(distance, period - distance)
    in_phase = frames[distance <= C.PLP_PHASE_TOLERANCE * period]

    if in_phase.size:
        return int(in_phase[np.argmax(cumulative[in_phase])])
    return int(np.argmax(cumulative))


def track_beats_dp(
    onset: np.ndarray,
    period: float,
    tightness: float = C.TIGHTNESS,
) -> np.ndarray:
    """Dynamic-programming tracker anchored to the predominant local pulse."""
    n = len(onset)
    if n == 0 or period <= 0 or is_flat(onset):
        return _EMPTY

    std = float(np.std(onset))
    if std <= 0.0:
        return _EMPTY
    local = np.ascontiguousarray(onset / std, dtype=np.float64)

    cumulative, backlink = _dp_forward(local, float(period), float(tightness))
    pulse_phase = predominant_pulse_phase(onset, period)
    start = _backtrack_start(cumulative, period, pulse_phase)
    return _backtrack(backlink, start)


def track_beats(
    onset: np.ndarray,
    bpm: float,
    sr: int,
    hop_length: int,
    strategy: str = "dp",
    tightness: float = C.TIGHTNESS,
) -> BeatGrid:
    """Beat grid for ``onset`` at tempo ``bpm`` using the chosen strategy."""
    if bpm <= 0:
        raise InvalidParameterError(f"bpm must be positive, got {bpm}.")
    period = bpm_to_lag(bpm, sr, hop_length)
    onset = np.asarray(onset, dtype=np.float64)

    if strategy == "dp":
        frames = track_beats_dp(onset, period, tightness)
    elif strategy == "greedy":
        frames = track_beats_greedy(onset, period)
    else:
        raise InvalidParameterError(f"Unknown beat tracking strategy {strategy!r}.")

    logging.info(f"Tracked {len(frames)} beats ({strategy}, period {period:.2f} frames)")
    return BeatGrid(
        frames=frames,
        times=np.asarray(frames_to_time(frames, sr, hop_length), dtype=np.float64),
        period=period,
    )
