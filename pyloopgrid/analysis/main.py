"""
Main Analysis Entry Point.

Orchestrates the complete pipeline:
1. Spectrogram
2. Onset envelope
3. Tempo estimation
4. Beat tracking
5. Bar-aligned loop candidates
6. Structural fallback when bar-aligned confidence is low
7. Zero-crossing refinement of the chosen boundaries
"""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass

import numpy as np

from pyloopgrid.analysis import constants as C
from pyloopgrid.analysis.beats import BeatGrid, track_beats
from pyloopgrid.analysis.candidates import LoopCandidate, best_scanned_length, generate_candidates
from pyloopgrid.analysis.framing import as_signal
from pyloopgrid.analysis.onset import OnsetEnvelope, onset_strength, require_variation
from pyloopgrid.analysis.refine import Crossfade, refine_boundaries
from pyloopgrid.analysis.spectral import fft_size, spectrogram
from pyloopgrid.analysis.structure import StructuralResult, analyze_structure
from pyloopgrid.analysis.tempo import TempoEstimate, estimate_tempo
from pyloopgrid.config import AnalysisConfig
from pyloopgrid.exceptions import (
    DegenerateSignalError,
    InsufficientLengthError,
    InvalidParameterError,
)


@dataclass(slots=True, frozen=True, eq=False)
class AnalysisResult:
    """Immutable outcome of one analysis call. All times are seconds from buffer start."""

    bpm: float
    confidence: float
    beat_grid: tuple[float, ...]
    loop_start: float
    loop_end: float
    loop_start_sample: int
    loop_end_sample: int
    loop_confidence: float
    musical_division: float
    candidates: tuple[LoopCandidate, ...]
    tempo_candidates: tuple[tuple[float, float], ...]
    crossfade: Crossfade | None
    source: str
    degenerate: bool
    duration: float
    sample_rate: int

    @property
    def loop_length(self) -> float:
        return self.loop_end - self.loop_start

    def to_dict(self) -> dict:
        return {
            "bpm": self.bpm,
            "confidence": self.confidence,
            "beat_grid": list(self.beat_grid),
            "loop_start": self.loop_start,
            "loop_end": self.loop_end,
            "loop_confidence": self.loop_confidence,
            "candidates": [c.to_dict(self.sample_rate) for c in self.candidates],
            "loop_start_sample": self.loop_start_sample,
            "loop_end_sample": self.loop_end_sample,
            "musical_division": self.musical_division,
            "tempo_candidates": [list(c) for c in self.tempo_candidates],
            "crossfade": (
                None
                if self.crossfade is None
                else {"length": self.crossfade.length, "seconds": self.crossfade.length / self.sample_rate}
            ),
            "source": self.source,
            "degenerate": self.degenerate,
            "duration": self.duration,
            "sample_rate": self.sample_rate,
        }


def _check_inputs(y: np.ndarray, sr: int, config: AnalysisConfig) -> None:
    if not sr or sr <= 0:
        raise InvalidParameterError(f"Sample rate must be positive, got {sr}.")
    if len(y) < config.frame_length:
        raise InsufficientLengthError(
            f"Buffer of {len(y)} samples is shorter than one analysis frame ({config.frame_length})."
        )
    if len(y) < config.min_loop_seconds * sr:
        raise InsufficientLengthError(
            f"Buffer of {len(y) / sr:.3f}s is shorter than the minimum loop length ({config.min_loop_seconds}s)."
        )


def _default_result(y: np.ndarray, sr: int, config: AnalysisConfig) -> AnalysisResult:
    """Best-effort outcome for signals with no measurable rhythm: the whole buffer loops."""
    n = len(y)
    return AnalysisResult(
        bpm=float(config.default_bpm),
        confidence=0.0,
        beat_grid=(),
        loop_start=0.0,
        loop_end=n / sr,
        loop_start_sample=0,
        loop_end_sample=n,
        loop_confidence=0.0,
        musical_division=n / sr / (60.0 / config.default_bpm * config.beats_per_bar),
        candidates=(),
        tempo_candidates=(),
        crossfade=None,
        source="default",
        degenerate=True,
        duration=n / sr,
        sample_rate=int(sr),
    )


def _structural_candidate(
    structural: StructuralResult,
    y: np.ndarray,
    sr: int,
    bpm: float,
    beats_per_bar: int,
    min_len: int,
    max_len: int,
) -> LoopCandidate | None:
    """
    Sample-accurate loop from a structural period, scored on the waveform.

    The period is searched within a few structural frames of both the raw
    lag and the beat-rounded one; the candidate's confidence is the
    structural confidence scaled by how well the final boundaries repeat.
    """
    start = int(round(structural.start * sr))
    rounded = int(round((structural.end - structural.start) * sr))
    raw = int(round(structural.lag * sr))
    radius = int(round(C.STRUCTURE_SCAN_FRAMES * structural.resolution * sr))
    lo = max(min_len, min(raw, rounded) - radius)
    hi = min(max_len, max(raw, rounded) + radius)
    if hi < lo:
        return None

    found = best_scanned_length(y, start, lo, hi)
    if found is None:
        return None
    length, correlation = found
    return LoopCandidate(
        start=start,
        end=start + length,
        correlation=correlation,
        division=length / sr / (60.0 / bpm * beats_per_bar),
        confidence=structural.confidence * max(correlation, 0.0),
        source="structural",
    )


def _merge_structural(
    candidates: list[LoopCandidate], structural: LoopCandidate, keep: int
) -> list[LoopCandidate]:
    """The structural candidate leads only if it beats the best bar-aligned confidence."""
    if not candidates or structural.confidence > candidates[0].confidence:
        merged = [structural, *candidates]
    else:
        merged = [*candidates, structural]
    return merged[:keep]


def _analyze(y: np.ndarray, sr: int, config: AnalysisConfig) -> AnalysisResult:
    t0 = time.perf_counter()
    n_samples = len(y)

    if float(np.ptp(y)) == 0.0:
        raise DegenerateSignalError("Signal is constant; no tempo or loop structure to analyze.")

    # ===== PHASE 1: Spectrogram =====
    S = spectrogram(y, config.frame_length, config.hop_length)
    logging.info(f"Spectrogram {S.shape[0]}x{S.shape[1]} in {time.perf_counter() - t0:.3f}s")

    # ===== PHASE 2: Onset envelope =====
    envelope = require_variation(OnsetEnvelope(onset_strength(S), sr, config.hop_length))

    # ===== PHASE 3: Tempo =====
    t1 = time.perf_counter()
    tempo: TempoEstimate = estimate_tempo(
        envelope.values,
        sr,
        config.hop_length,
        min_bpm=config.min_bpm,
        max_bpm=config.max_bpm,
        default_bpm=config.default_bpm,
        octave_ratio=config.octave_ratio,
        normal_range=config.normal_bpm_range,
    )

    # ===== PHASE 4: Beat grid =====
    beats: BeatGrid = track_beats(
        envelope.values,
        tempo.bpm,
        sr,
        config.hop_length,
        strategy=config.beat_strategy,
        tightness=config.tightness,
    )
    logging.info(f"Tempo and beats in {time.perf_counter() - t1:.3f}s")

    # ===== PHASE 5: Bar-aligned candidates =====
    t2 = time.perf_counter()
    keep = 1 + config.n_runners_up
    candidates = generate_candidates(
        y,
        sr,
        tempo.bpm,
        beats_per_bar=config.beats_per_bar,
        bar_divisions=config.bar_divisions,
        min_loop_seconds=config.min_loop_seconds,
        max_loop_seconds=config.max_loop_seconds,
        short_track_seconds=config.short_track_seconds,
        n_runners_up=config.n_runners_up,
        beat_samples=beats.frames * config.hop_length,
    )
    logging.info(f"Scored {len(candidates)} loop candidates in {time.perf_counter() - t2:.3f}s")

    # ===== PHASE 6: Structural fallback =====
    best_confidence = candidates[0].confidence if candidates else 0.0
    if best_confidence < config.structure_threshold:
        t3 = time.perf_counter()
        structural = analyze_structure(
            S,
            sr,
            fft_size(config.frame_length),
            config.hop_length,
            beats.times,
            config.min_loop_seconds,
            config.max_loop_seconds,
            max_frames=config.structure_max_frames,
        )
        logging.info(f"Structural analysis in {time.perf_counter() - t3:.3f}s")
        if structural is not None:
            candidate = _structural_candidate(
                structural,
                y,
                sr,
                tempo.bpm,
                config.beats_per_bar,
                min_len=max(2, math.ceil(config.min_loop_seconds * sr)),
                max_len=min(math.floor(config.max_loop_seconds * sr), n_samples // 2),
            )
            if candidate is not None:
                candidates = _merge_structural(candidates, candidate, keep)

    if not candidates:
        logging.info("No loop candidate fits the buffer; looping the whole track.")
        chosen = LoopCandidate(
            start=0,
            end=n_samples,
            correlation=0.0,
            division=n_samples / sr / (60.0 / tempo.bpm * config.beats_per_bar),
            confidence=0.0,
            source="default",
        )
    else:
        chosen = candidates[0]

    # ===== PHASE 7: Boundary refinement =====
    refined = refine_boundaries(
        y,
        chosen.start,
        chosen.end,
        sr,
        search_ms=config.zero_crossing_ms,
        max_shift_ms=config.max_shift_ms,
        crossfade_ms=config.crossfade_ms,
    )

    logging.info(
        f"Loop {refined.start / sr:.3f}s - {refined.end / sr:.3f}s "
        f"({chosen.source}, confidence {chosen.confidence:.2f}); total {time.perf_counter() - t0:.3f}s"
    )
    return AnalysisResult(
        bpm=tempo.bpm,
        confidence=tempo.confidence,
        beat_grid=tuple(float(t) for t in beats.times),
        loop_start=refined.start / sr,
        loop_end=refined.end / sr,
        loop_start_sample=refined.start,
        loop_end_sample=refined.end,
        loop_confidence=float(chosen.confidence),
        musical_division=float(chosen.division),
        candidates=tuple(candidates),
        tempo_candidates=tempo.candidates,
        crossfade=refined.crossfade,
        source=chosen.source,
        degenerate=False,
        duration=n_samples / sr,
        sample_rate=int(sr),
    )


def analyze_signal(samples, sr: int, config: AnalysisConfig | None = None) -> AnalysisResult:
    """
    Analyze a decoded mono buffer for tempo, beat grid and loop points.

    Args:
        samples: Mono samples, nominally in [-1, 1]
        sr: Sample rate in Hz
        config: Engine parameters (defaults when omitted)

    Returns:
        AnalysisResult. Silent or constant input yields a best-effort
        result with ``degenerate=True``.

    Raises:
        InvalidParameterError: Malformed buffer or sample rate
        InsufficientLengthError: Empty buffer, or shorter than one frame
            or the minimum loop length
    """
    config = config or AnalysisConfig()
    y = as_signal(samples)
    _check_inputs(y, sr, config)

    try:
        return _analyze(y, sr, config)
    except DegenerateSignalError as e:
        logging.info(f"{e} Returning default result.")
        return _default_result(y, sr, config)
