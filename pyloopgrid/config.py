"""Analysis configuration."""

from __future__ import annotations

import dataclasses
import numbers
from dataclasses import dataclass

from pyloopgrid.analysis import constants as C
from pyloopgrid.exceptions import InvalidParameterError

BEAT_STRATEGIES = ("dp", "greedy")


@dataclass(slots=True, frozen=True)
class AnalysisConfig:
    """Immutable set of engine parameters, validated on construction.

    Invalid values raise ``InvalidParameterError``; nothing is silently
    clamped or corrected.
    """

    # Framing
    hop_length: int = C.HOP_LENGTH
    frame_length: int = C.FRAME_LENGTH

    # Tempo / beats
    min_bpm: float = C.MIN_BPM
    max_bpm: float = C.MAX_BPM
    default_bpm: float = C.DEFAULT_BPM
    tightness: float = C.TIGHTNESS
    beats_per_bar: int = C.BEATS_PER_BAR
    beat_strategy: str = "dp"
    octave_ratio: float = C.OCTAVE_RATIO
    normal_bpm_range: tuple[float, float] = C.NORMAL_BPM_RANGE

    # Loop search
    min_loop_seconds: float = 0.25
    max_loop_seconds: float = 12.0
    bar_divisions: tuple[float, ...] = C.BAR_DIVISIONS
    short_track_seconds: float = 15.0
    n_runners_up: int = 4

    # Boundary refinement
    zero_crossing_ms: float = 10.0
    max_shift_ms: float = 10.0
    crossfade_ms: float = 10.0

    # Structural fallback
    structure_threshold: float = 0.5
    structure_max_frames: int = 1024

    def __post_init__(self) -> None:
        if not isinstance(self.frame_length, numbers.Integral) or self.frame_length <= 1:
            raise InvalidParameterError(f"frame_length must be an integer > 1, got {self.frame_length!r}.")
        if not isinstance(self.hop_length, numbers.Integral) or self.hop_length < 1:
            raise InvalidParameterError(f"hop_length must be a positive integer, got {self.hop_length!r}.")
        if self.hop_length > self.frame_length:
            raise InvalidParameterError(
                f"hop_length ({self.hop_length}) cannot exceed frame_length ({self.frame_length})."
            )

        if not 0 < self.min_bpm < self.max_bpm:
            raise InvalidParameterError(
                f"BPM range must satisfy 0 < min_bpm < max_bpm, got [{self.min_bpm}, {self.max_bpm}]."
            )
        if not self.min_bpm <= self.default_bpm <= self.max_bpm:
            raise InvalidParameterError(f"default_bpm ({self.default_bpm}) lies outside the BPM range.")
        if self.tightness <= 0:
            raise InvalidParameterError("tightness must be positive.")
        if not isinstance(self.beats_per_bar, numbers.Integral) or self.beats_per_bar < 1:
            raise InvalidParameterError("beats_per_bar must be a positive integer.")
        if self.beat_strategy not in BEAT_STRATEGIES:
            raise InvalidParameterError(
                f"beat_strategy must be one of {BEAT_STRATEGIES}, got {self.beat_strategy!r}."
            )
        if not 0 < self.octave_ratio <= 1:
            raise InvalidParameterError("octave_ratio must lie in (0, 1].")
        low, high = self.normal_bpm_range
        if not low < high:
            raise InvalidParameterError("normal_bpm_range must be an increasing pair.")

        if self.min_loop_seconds <= 0:
            raise InvalidParameterError("min_loop_seconds must be positive.")
        if self.max_loop_seconds <= self.min_loop_seconds:
            raise InvalidParameterError(
                f"Inverted loop bounds: min_loop_seconds={self.min_loop_seconds}, "
                f"max_loop_seconds={self.max_loop_seconds}."
            )
        if not self.bar_divisions or any(d <= 0 for d in self.bar_divisions):
            raise InvalidParameterError("bar_divisions must be a non-empty sequence of positive values.")
        if self.short_track_seconds < 0:
            raise InvalidParameterError("short_track_seconds cannot be negative.")
        if self.n_runners_up < 0:
            raise InvalidParameterError("n_runners_up cannot be negative.")

        for name in ("zero_crossing_ms", "max_shift_ms", "crossfade_ms"):
            if getattr(self, name) <= 0:
                raise InvalidParameterError(f"{name} must be positive.")

        if not 0 <= self.structure_threshold <= 1:
            raise InvalidParameterError("structure_threshold must lie in [0, 1].")
        if self.structure_max_frames < 16:
            raise InvalidParameterError("structure_max_frames must be at least 16.")

    def replace(self, **changes) -> AnalysisConfig:
        """Return a validated copy with the given fields changed."""
        return dataclasses.replace(self, **changes)
