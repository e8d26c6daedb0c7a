"""
Tempo Estimation.

Autocorrelation of the onset envelope over the lag range implied by the
admissible BPM range, with:
- Local-maximum peak picking and parabolic sub-lag refinement
- Octave-error correction (half / double tempo) for BPMs outside the
  "normal" range
- Confidence = peak strength / envelope self-energy, clamped to [0, 1]
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

import librosa
import numpy as np

from pyloopgrid.analysis import constants as C
from pyloopgrid.analysis.onset import is_flat


@dataclass(slots=True, frozen=True)
class TempoEstimate:
    bpm: float
    confidence: float
    candidates: tuple[tuple[float, float], ...]  # (bpm, strength), strongest first
    period: float  # Beat period in frames


def bpm_to_lag(bpm: float, sr: int, hop_length: int) -> float:
    return 60.0 * sr / (bpm * hop_length)


def lag_to_bpm(lag: float, sr: int, hop_length: int) -> float:
    return 60.0 * sr / (lag * hop_length)


def lag_range(
    n_frames: int, sr: int, hop_length: int, min_bpm: float, max_bpm: float
) -> tuple[int, int]:
    """Integer lag bounds whose BPM stays inside [min_bpm, max_bpm]."""
    min_lag = max(1, math.ceil(bpm_to_lag(max_bpm, sr, hop_length) - 1e-9))
    max_lag = min(n_frames - 1, math.floor(bpm_to_lag(min_bpm, sr, hop_length) + 1e-9))
    return min_lag, max_lag


def autocorrelate(onset: np.ndarray, max_lag: int) -> np.ndarray:
    """ac[lag] = mean(onset[i] * onset[i + lag]) for lag in [0, max_lag]."""
    n = len(onset)
    max_lag = min(max_lag, n - 1)
    ac = np.zeros(max_lag + 1, dtype=np.float64)
    ac[0] = np.dot(onset, onset) / n
    for lag in range(1, max_lag + 1):
        ac[lag] = np.dot(onset[:-lag], onset[lag:]) / (n - lag)
    return ac


def _refine_peak(ac: np.ndarray, lag: int) -> float:
    """Parabolic interpolation around an integer peak; offset clipped to +/-0.5."""
    if lag <= 0 or lag >= len(ac) - 1:
        return float(lag)
    a, b, c = ac[lag - 1], ac[lag], ac[lag + 1]
    denom = a - 2.0 * b + c
    if denom >= 0.0:
        return float(lag)
    delta = 0.5 * (a - c) / denom
    return lag + float(np.clip(delta, -0.5, 0.5))


def _octave_correct(
    ac: np.ndarray,
    primary: int,
    min_lag: int,
    max_lag: int,
    sr: int,
    hop_length: int,
    octave_ratio: float,
    normal_range: tuple[float, float],
) -> int:
    bpm = lag_to_bpm(_refine_peak(ac, primary), sr, hop_length)
    low, high = normal_range
    if bpm < low:
        target = primary / 2.0  # double tempo
    elif bpm > high:
        target = primary * 2.0  # half tempo
    else:
        return primary

    center = int(round(target))
    lo = max(min_lag, center - C.OCTAVE_SEARCH_RADIUS)
    hi = min(max_lag, center + C.OCTAVE_SEARCH_RADIUS)
    if lo > hi:
        return primary

    alt = lo + int(np.argmax(ac[lo : hi + 1]))
    if ac[alt] >= octave_ratio * ac[primary]:
        logging.info(
            f"Octave correction: {bpm:.2f} BPM -> {lag_to_bpm(_refine_peak(ac, alt), sr, hop_length):.2f} BPM"
        )
        return alt
    return primary


def _default_estimate(default_bpm: float, sr: int, hop_length: int) -> TempoEstimate:
    return TempoEstimate(
        bpm=float(default_bpm),
        confidence=0.0,
        candidates=(),
        period=bpm_to_lag(default_bpm, sr, hop_length),
    )


def estimate_tempo(
    onset: np.ndarray,
    sr: int,
    hop_length: int,
    min_bpm: float = C.MIN_BPM,
    max_bpm: float = C.MAX_BPM,
    default_bpm: float = C.DEFAULT_BPM,
    octave_ratio: float = C.OCTAVE_RATIO,
    normal_range: tuple[float, float] = C.NORMAL_BPM_RANGE,
    n_candidates: int = C.N_TEMPO_CANDIDATES,
) -> TempoEstimate:
    """
    Estimate the dominant tempo of an onset envelope.

    A flat envelope, or one too short to hold a single admissible lag,
    returns the default BPM with zero confidence rather than raising.
    """
    onset = np.asarray(onset, dtype=np.float64)
    if is_flat(onset):
        return _default_estimate(default_bpm, sr, hop_length)

    min_lag, max_lag = lag_range(len(onset), sr, hop_length, min_bpm, max_bpm)
    if max_lag < min_lag:
        logging.info(f"Onset envelope of {len(onset)} frames is too short for tempo estimation.")
        return _default_estimate(default_bpm, sr, hop_length)

    # One extra lag so the top of the range can still be interpolated
    ac = autocorrelate(onset, max_lag + 1)
    energy = ac[0]
    if energy <= 0.0:
        return _default_estimate(default_bpm, sr, hop_length)

    is_peak = librosa.util.localmax(ac)
    peaks = np.flatnonzero(is_peak[min_lag : max_lag + 1]) + min_lag
    peaks = peaks[ac[peaks] > 0.0]
    if peaks.size == 0:
        peaks = np.array([min_lag + int(np.argmax(ac[min_lag : max_lag + 1]))])

    # Strongest first; equal strengths resolve to the shorter lag
    order = np.lexsort((peaks, -ac[peaks]))
    peaks = peaks[order]

    primary = _octave_correct(
        ac, int(peaks[0]), min_lag, max_lag, sr, hop_length, octave_ratio, normal_range
    )
    period = _refine_peak(ac, primary)
    bpm = float(np.clip(lag_to_bpm(period, sr, hop_length), min_bpm, max_bpm))
    confidence = float(np.clip(ac[primary] / energy, 0.0, 1.0))

    candidates = tuple(
        (
            float(np.clip(lag_to_bpm(_refine_peak(ac, int(lag)), sr, hop_length), min_bpm, max_bpm)),
            float(np.clip(ac[lag] / energy, 0.0, 1.0)),
        )
        for lag in peaks[:n_candidates]
    )

    logging.info(f"Tempo: {bpm:.2f} BPM (confidence {confidence:.2f}, lag {period:.2f} frames)")
    return TempoEstimate(
        bpm=bpm,
        confidence=confidence,
        candidates=candidates,
        period=bpm_to_lag(bpm, sr, hop_length),
    )
