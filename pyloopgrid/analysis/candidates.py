"""
Loop Candidate Generation.

Proposes loop lengths at musical subdivisions of a bar and scores each by
waveform self-similarity:
- Two adjacent Hann-tapered windows, cosine-normalized cross-correlation
- Musical alignment bonus (integer beat counts, common subdivisions)
- Fade penalty for segments that fade in or out
- Sample-accurate +/-50 ms length scan around every bar-aligned length
- Start positions at the audio start and on the first bar of beats
- Tempo re-derived from a near-perfectly repeating length before alignment
- Whole-track candidate for short clips
- Fundamental-period preference among near-tied integer multiples
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace

import librosa
import numpy as np
from scipy.signal import correlate

from pyloopgrid.analysis import constants as C
from pyloopgrid.analysis.framing import hann_window
from pyloopgrid.exceptions import InvalidParameterError

_EPS = 1e-12


@dataclass(slots=True, frozen=True)
class LoopCandidate:
    """A scored loop boundary pair; ``start``/``end`` are sample indices."""

    start: int
    end: int
    correlation: float
    division: float  # Length in bars at the detected tempo
    confidence: float
    alignment: float = 1.0
    fade_factor: float = 1.0
    source: str = "bar_aligned"

    @property
    def length(self) -> int:
        return self.end - self.start

    def to_dict(self, sr: int) -> dict:
        return {
            "loop_start": self.start / sr,
            "loop_end": self.end / sr,
            "loop_start_sample": self.start,
            "loop_end_sample": self.end,
            "correlation": self.correlation,
            "musical_division": self.division,
            "confidence": self.confidence,
            "source": self.source,
        }


# ============================================================================
# SCORING TERMS
# ============================================================================


def _cosine(a: np.ndarray, b: np.ndarray) -> float:
    denom = math.sqrt(float(np.dot(a, a)) * float(np.dot(b, b)))
    if denom <= _EPS:
        return 0.0
    return float(np.clip(np.dot(a, b) / denom, -1.0, 1.0))


def window_correlation(y: np.ndarray, start: int, length: int) -> float:
    """Normalized correlation of y[start:start+length] with the window right after it."""
    if length < 2 or start + 2 * length > len(y):
        return 0.0
    window = hann_window(length)
    first = y[start : start + length] * window
    second = y[start + length : start + 2 * length] * window
    return _cosine(first, second)


def head_tail_correlation(y: np.ndarray, sr: int) -> float:
    """Similarity between the opening and closing windows of the buffer."""
    win = min(int(round(C.HEAD_TAIL_WINDOW_SECONDS * sr)), len(y) // 2)
    if win < 2:
        return 0.0
    window = hann_window(win)
    return _cosine(y[:win] * window, y[len(y) - win :] * window)


def alignment_bonus(length_seconds: float, bpm: float) -> float:
    """Reward lengths close to an integer beat count and to a common subdivision."""
    beats = length_seconds * bpm / 60.0
    beat_align = 1.0 - abs(beats - round(beats))
    nearest = min(C.COMMON_BEAT_COUNTS, key=lambda d: abs(d - beats))
    division_bonus = max(0.0, 1.0 - abs(nearest - beats) / 2.0)
    return C.BEAT_ALIGN_WEIGHT * beat_align + C.DIVISION_ALIGN_WEIGHT * division_bonus


def fade_factor(segment: np.ndarray) -> float:
    """Down-weight segments whose edges carry much less energy than their middle."""
    n = len(segment)
    edge = max(1, int(n * C.FADE_EDGE_RATIO))
    if n <= 2 * edge:
        return 1.0
    middle = float(np.mean(segment[edge:-edge] ** 2))
    if middle <= _EPS:
        return 1.0
    edges = 0.5 * (float(np.mean(segment[:edge] ** 2)) + float(np.mean(segment[-edge:] ** 2)))
    ratio = edges / middle
    if ratio >= C.FADE_ENERGY_THRESHOLD:
        return 1.0
    return 0.5 + 0.5 * ratio / C.FADE_ENERGY_THRESHOLD


def score_loop(
    y: np.ndarray,
    sr: int,
    start: int,
    length: int,
    bpm: float,
    beats_per_bar: int = C.BEATS_PER_BAR,
    source: str = "bar_aligned",
) -> LoopCandidate:
    seconds = length / sr
    correlation = window_correlation(y, start, length)
    alignment = alignment_bonus(seconds, bpm)
    fade = fade_factor(y[start : start + length])
    return LoopCandidate(
        start=int(start),
        end=int(start + length),
        correlation=correlation,
        division=seconds / (60.0 / bpm * beats_per_bar),
        confidence=abs(correlation) * alignment * fade,
        alignment=alignment,
        fade_factor=fade,
        source=source,
    )


def full_track_candidate(
    y: np.ndarray, sr: int, bpm: float, beats_per_bar: int = C.BEATS_PER_BAR
) -> LoopCandidate:
    seconds = len(y) / sr
    correlation = head_tail_correlation(y, sr)
    alignment = alignment_bonus(seconds, bpm)
    fade = fade_factor(y)
    return LoopCandidate(
        start=0,
        end=len(y),
        correlation=correlation,
        division=seconds / (60.0 / bpm * beats_per_bar),
        confidence=abs(correlation) * alignment * fade,
        alignment=alignment,
        fade_factor=fade,
        source="full_track",
    )


# ============================================================================
# FINE LENGTH SEARCH
# ============================================================================


def scan_lengths(
    y: np.ndarray, start: int, length: int, lo: int, hi: int
) -> tuple[np.ndarray, np.ndarray]:
    """
    Normalized windowed correlation for every loop length in [lo, hi].

    The reference window y[start:start+length] is compared against the
    window starting at start+m for each candidate length m, using two FFT
    correlations (numerator and sliding energy) instead of one dot product
    per length.
    """
    lo = max(lo, 1)
    hi = min(hi, len(y) - start - length)
    if hi < lo or length < 2:
        return np.zeros(0, dtype=np.int64), np.zeros(0)

    window = hann_window(length)
    w2 = window * window
    reference = y[start : start + length]
    ref_energy = float(np.dot(reference * reference, w2))

    region = y[start + lo : start + hi + length]
    numerator = correlate(region, reference * w2, mode="valid")
    energy = np.maximum(correlate(region * region, w2, mode="valid"), 0.0)

    denom = np.sqrt(ref_energy * energy)
    corr = np.zeros_like(numerator)
    valid = denom > _EPS
    corr[valid] = numerator[valid] / denom[valid]
    return np.arange(lo, hi + 1, dtype=np.int64), np.clip(corr, -1.0, 1.0)


def perturbed_lengths(
    y: np.ndarray, sr: int, start: int, length: int, min_len: int, max_len: int
) -> list[int]:
    """Coarse 10 ms grid within +/-50 ms of ``length`` plus the exact correlation peak."""
    radius = int(round(C.PERTURB_RANGE_SECONDS * sr))
    step = max(1, int(round(C.PERTURB_STEP_SECONDS * sr)))
    lo = max(min_len, length - radius)
    hi = min(max_len, length + radius)

    lengths = [m for m in range(length - (radius // step) * step, hi + 1, step) if lo <= m <= hi and m != length]
    scanned, corr = scan_lengths(y, start, length, lo, hi)
    if scanned.size:
        peak = int(scanned[np.argmax(np.abs(corr))])
        if peak != length and peak not in lengths:
            lengths.append(peak)
    return lengths


def best_scanned_length(y: np.ndarray, start: int, lo: int, hi: int) -> tuple[int, float] | None:
    """Loop length in [lo, hi] whose continuation best matches y[start:], with its correlation."""
    reference = min(lo, len(y) - start - hi)
    if reference < 2:
        return None
    lengths, corr = scan_lengths(y, start, reference, lo, hi)
    if not lengths.size:
        return None
    best = int(np.argmax(corr))
    return int(lengths[best]), float(corr[best])


# ============================================================================
# RANKING
# ============================================================================


def _is_multiple(longer: int, shorter: int) -> bool:
    ratio = longer / shorter
    k = round(ratio)
    return k >= 2 and abs(ratio - k) <= C.MULTIPLE_TOLERANCE * k


def prefer_fundamental(ranked: list[LoopCandidate]) -> list[LoopCandidate]:
    """
    Move a shorter near-tied candidate ahead of any candidate whose length
    is an integer multiple of it; the minimal repeating unit is the loop.
    """
    ranked = list(ranked)
    i = 0
    while i < len(ranked):
        current = ranked[i]
        for j in range(i + 1, len(ranked)):
            other = ranked[j]
            if (
                other.length < current.length
                and other.confidence >= current.confidence - C.TIE_TOLERANCE
                and _is_multiple(current.length, other.length)
            ):
                ranked.insert(i, ranked.pop(j))
                break
        else:
            i += 1
    return ranked


def rank_candidates(candidates: list[LoopCandidate]) -> list[LoopCandidate]:
    ranked = sorted(candidates, key=lambda c: (-c.confidence, c.length, c.start))
    return prefer_fundamental(ranked)


# ============================================================================
# GENERATOR
# ============================================================================


def find_audio_start(y: np.ndarray, sr: int, short_track_seconds: float) -> int:
    """First non-silent sample for long tracks; 0 for short clips."""
    if len(y) / sr <= short_track_seconds:
        return 0
    _, (start, _) = librosa.effects.trim(y, top_db=C.TRIM_TOP_DB)
    return int(start)


def start_positions(audio_start: int, beat_samples: np.ndarray | None, n_beats: int) -> list[int]:
    """The audio start followed by the first ``n_beats`` beats after it (one of them the downbeat)."""
    starts = [int(audio_start)]
    if beat_samples is not None:
        later = [int(b) for b in beat_samples if b > audio_start]
        starts.extend(later[:n_beats])
    return starts


def _best_start(
    y: np.ndarray, sr: int, starts: list[int], length: int, bpm: float, beats_per_bar: int
) -> LoopCandidate:
    # A later start has to win by more than a tie
    best = score_loop(y, sr, starts[0], length, bpm, beats_per_bar)
    for start in starts[1:]:
        cand = score_loop(y, sr, start, length, bpm, beats_per_bar)
        if cand.confidence > best.confidence + C.TIE_TOLERANCE:
            best = cand
    return best


def refine_bpm(candidates: list[LoopCandidate], sr: int, bpm: float) -> float:
    """
    Tempo implied by the most self-similar candidate length.

    The candidate must correlate at least ``REFINE_MIN_CORRELATION`` and sit
    near a whole beat count at ``bpm``; the tempo that makes that count exact
    is returned if it is within ``BPM_REFINE_TOLERANCE`` of ``bpm``.
    Otherwise ``bpm`` is returned unchanged.
    """
    periodic = [c for c in candidates if abs(c.correlation) >= C.REFINE_MIN_CORRELATION]
    if not periodic:
        return bpm
    best = max(periodic, key=lambda c: (abs(c.correlation), -c.length))
    n_beats = round(best.length / sr * bpm / 60.0)
    if n_beats < 1:
        return bpm
    refined = n_beats * 60.0 * sr / best.length
    if abs(refined - bpm) > C.BPM_REFINE_TOLERANCE * bpm:
        return bpm
    return refined


def rescore(cand: LoopCandidate, sr: int, bpm: float, beats_per_bar: int = C.BEATS_PER_BAR) -> LoopCandidate:
    """Recompute the tempo-dependent terms of a candidate at ``bpm``."""
    seconds = cand.length / sr
    alignment = alignment_bonus(seconds, bpm)
    return replace(
        cand,
        division=seconds / (60.0 / bpm * beats_per_bar),
        alignment=alignment,
        confidence=abs(cand.correlation) * alignment * cand.fade_factor,
    )


def generate_candidates(
    y: np.ndarray,
    sr: int,
    bpm: float,
    beats_per_bar: int = C.BEATS_PER_BAR,
    bar_divisions: tuple[float, ...] = C.BAR_DIVISIONS,
    min_loop_seconds: float = 0.25,
    max_loop_seconds: float = 12.0,
    short_track_seconds: float = 15.0,
    n_runners_up: int = 4,
    beat_samples: np.ndarray | None = None,
) -> list[LoopCandidate]:
    """
    Score bar-aligned loop lengths and return the best candidate followed by
    up to ``n_runners_up`` alternatives. An empty list means no admissible
    length fits the buffer.

    Each length is tried from the audio start and from the first bar of
    ``beat_samples`` (sample indices), keeping the best start.
    """
    if bpm <= 0:
        raise InvalidParameterError(f"bpm must be positive, got {bpm}.")
    if max_loop_seconds <= min_loop_seconds:
        raise InvalidParameterError("Inverted loop bounds.")

    n_samples = len(y)
    duration = n_samples / sr
    bar_seconds = 60.0 / bpm * beats_per_bar
    audio_start = find_audio_start(y, sr, short_track_seconds)
    starts = start_positions(audio_start, beat_samples, beats_per_bar)

    min_len = max(2, math.ceil(min_loop_seconds * sr))
    max_seconds_len = math.floor(max_loop_seconds * sr)
    max_len = min(max_seconds_len, (n_samples - audio_start) // 2)

    scored: dict[int, LoopCandidate] = {}
    for division in bar_divisions:
        seconds = division * bar_seconds
        if seconds > max_loop_seconds or seconds < min_loop_seconds or seconds > duration / 2:
            continue
        length = int(round(seconds * sr))
        if not min_len <= length <= max_len:
            continue
        scored[length] = _best_start(y, sr, starts, length, bpm, beats_per_bar)

    for length, cand in list(scored.items()):
        for m in perturbed_lengths(y, sr, cand.start, length, min_len, max_len):
            if m not in scored:
                scored[m] = score_loop(y, sr, cand.start, m, bpm, beats_per_bar, source="perturbed")

    candidates = list(scored.values())
    refined_bpm = refine_bpm(candidates, sr, bpm)
    if refined_bpm != bpm:
        logging.info(f"Loop alignment scored at {refined_bpm:.2f} BPM (estimated {bpm:.2f})")
        candidates = [rescore(c, sr, refined_bpm, beats_per_bar) for c in candidates]

    if duration < short_track_seconds and min_len <= n_samples <= max_seconds_len:
        candidates.append(full_track_candidate(y, sr, refined_bpm, beats_per_bar))

    ranked = rank_candidates(candidates)
    for cand in ranked[:10]:
        logging.debug(
            f"Candidate {cand.start}-{cand.end} ({cand.division:.3f} bars, {cand.source}): "
            f"corr={cand.correlation:.4f} align={cand.alignment:.3f} fade={cand.fade_factor:.3f} "
            f"score={cand.confidence:.4f}"
        )
    return ranked[: 1 + n_runners_up]
