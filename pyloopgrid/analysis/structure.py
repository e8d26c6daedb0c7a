"""
Structural Self-Similarity Analysis.

Fallback loop finder that looks for repeating blocks directly:
1. Chroma from the power spectrogram, down-sampled for long inputs
2. Time-delay embedding (stacked delayed copies of each frame)
3. Cosine self-similarity, thresholded into a recurrence matrix
4. Lag transform: L[lag, i] = R[i, i + lag]
5. Strongest run of recurrence along each lag -> loop length
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

import librosa
import numpy as np
from numba import njit
from scipy.ndimage import uniform_filter1d

from pyloopgrid.analysis import constants as C


@dataclass(slots=True, frozen=True)
class StructuralResult:
    start: float  # Seconds, snapped to a beat when one is available
    end: float  # start + lag, rounded to whole beats when close to them
    lag: float  # Repetition period in seconds, before beat rounding
    confidence: float
    similarity: float  # Mean similarity along the winning run
    lag_candidates: tuple[tuple[float, float], ...]  # (lag seconds, run strength)
    resolution: float = 0.0  # Seconds per lag step


@njit(cache=True, fastmath=True)
def _cosine_ssm(features: np.ndarray) -> np.ndarray:
    """Cosine self-similarity between feature columns; all-zero columns score 0."""
    n_feat, n_frames = features.shape
    norms = np.zeros(n_frames, dtype=np.float64)

    for i in range(n_frames):
        s = 0.0
        for k in range(n_feat):
            s += features[k, i] ** 2
        norms[i] = np.sqrt(s) if s > 1e-16 else 1.0

    ssm = np.zeros((n_frames, n_frames), dtype=np.float64)
    for i in range(n_frames):
        for j in range(i, n_frames):
            dot = 0.0
            for k in range(n_feat):
                dot += features[k, i] * features[k, j]
            sim = dot / (norms[i] * norms[j])
            ssm[i, j] = sim
            ssm[j, i] = sim

    return ssm


@njit(cache=True)
def _lag_matrix(ssm: np.ndarray) -> np.ndarray:
    """L[lag, i] = ssm[i, i + lag]; cells past the end stay zero."""
    n = ssm.shape[0]
    lag_mat = np.zeros((n, n), dtype=np.float64)
    for lag in range(n):
        for i in range(n - lag):
            lag_mat[lag, i] = ssm[i, i + lag]
    return lag_mat


def chroma_features(S: np.ndarray, sr: int, n_fft: int) -> np.ndarray:
    """Project a (n_bins, n_frames) magnitude spectrogram onto 12 pitch classes."""
    filters = librosa.filters.chroma(sr=sr, n_fft=n_fft, n_chroma=C.N_CHROMA)
    return filters[:, : S.shape[0]] @ (S**2)


def downsample_frames(features: np.ndarray, max_frames: int) -> tuple[np.ndarray, int]:
    """Average blocks of frames so at most ``max_frames`` remain; returns (features, factor)."""
    n_frames = features.shape[1]
    if n_frames <= max_frames:
        return features, 1
    factor = math.ceil(n_frames / max_frames)
    kept = n_frames // factor
    blocks = features[:, : kept * factor].reshape(features.shape[0], kept, factor)
    return blocks.mean(axis=2), factor


def _runs(mask: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """Start (inclusive) and end (exclusive) indices of True regions."""
    changes = np.diff(mask.astype(np.int8))
    starts = np.where(changes == 1)[0] + 1
    ends = np.where(changes == -1)[0] + 1
    if mask[0]:
        starts = np.concatenate([[0], starts])
    if mask[-1]:
        ends = np.concatenate([ends, [len(mask)]])
    return starts, ends


def _snap(t: float, beat_times: np.ndarray) -> float:
    if beat_times.size == 0:
        return t
    return float(beat_times[np.argmin(np.abs(beat_times - t))])


def _round_to_beats(lag: float, beat_times: np.ndarray) -> float:
    """Whole number of beat periods when ``lag`` is close to one, else ``lag`` unchanged."""
    if beat_times.size < 2:
        return lag
    period = float(np.median(np.diff(beat_times)))
    if period <= 0:
        return lag
    n_beats = round(lag / period)
    if n_beats < 1 or abs(lag / period - n_beats) > C.STRUCTURE_BEAT_TOLERANCE:
        return lag
    return n_beats * period


def analyze_structure(
    S: np.ndarray,
    sr: int,
    n_fft: int,
    hop_length: int,
    beat_times: np.ndarray,
    min_loop_seconds: float,
    max_loop_seconds: float,
    threshold: float = 0.5,
    max_frames: int = 1024,
) -> StructuralResult | None:
    """
    Find the dominant repetition period of a spectrogram.

    Returns None when the input is too short or nothing repeats.
    """
    features, factor = downsample_frames(chroma_features(S, sr, n_fft), max_frames)
    n = features.shape[1]
    if n < 4:
        return None
    frame_seconds = hop_length * factor / sr

    embedded = librosa.feature.stack_memory(features, n_steps=C.EMBED_STEPS, delay=C.EMBED_DELAY)
    ssm = _cosine_ssm(np.ascontiguousarray(embedded, dtype=np.float64))
    recurrence = ssm >= threshold
    lag_sim = _lag_matrix(ssm)
    lag_rec = _lag_matrix(recurrence.astype(np.float64))

    duration = S.shape[1] * hop_length / sr
    min_lag = max(1, math.ceil(min_loop_seconds / frame_seconds))
    max_lag = min(n - 1, math.floor(min(max_loop_seconds, duration / 2) / frame_seconds))
    if max_lag < min_lag:
        return None

    # Run strength: similarity mass along the longest recurrent run of each lag
    found = []
    for lag in range(min_lag, max_lag + 1):
        row = uniform_filter1d(lag_rec[lag, : n - lag], size=C.RUN_SMOOTH_SIZE) >= 0.5
        if not row.any():
            continue
        starts, ends = _runs(row)
        longest = int(np.argmax(ends - starts))
        s, e = int(starts[longest]), int(ends[longest])
        strength = float(lag_sim[lag, s:e].sum())
        found.append((strength, lag, s, e))

    if not found:
        logging.info("Structural analysis found no repeating blocks.")
        return None

    # Strongest run first; equal strengths resolve to the shorter lag
    found.sort(key=lambda f: (-f[0], f[1]))
    strength, lag, s, e = found[0]
    similarity = float(np.mean(lag_sim[lag, s:e]))
    confidence = float(np.clip(min(1.0, (e - s) / lag) * similarity, 0.0, 1.0))

    # Only the start moves to a beat; the end follows at the repetition period
    lag_seconds = lag * frame_seconds
    start = _snap(s * frame_seconds, beat_times)
    if start + lag_seconds > duration:
        start = s * frame_seconds
    loop_seconds = _round_to_beats(lag_seconds, beat_times)
    if start + loop_seconds > duration:
        loop_seconds = lag_seconds
    end = start + loop_seconds

    lag_candidates = tuple((f[1] * frame_seconds, f[0]) for f in found[: C.N_LAG_CANDIDATES])
    logging.info(
        f"Structural period {lag * frame_seconds:.3f}s over {(e - s) * frame_seconds:.2f}s "
        f"(confidence {confidence:.2f})"
    )
    return StructuralResult(
        start=float(start),
        end=float(end),
        lag=lag_seconds,
        confidence=confidence,
        similarity=similarity,
        lag_candidates=lag_candidates,
        resolution=frame_seconds,
    )
