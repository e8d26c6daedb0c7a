"""
Onset Strength.

Half-wave rectified spectral flux:
    onset[t] = sum_bins max(0, S_t - S_{t-1}),  onset[0] = 0
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from pyloopgrid.analysis.constants import FLAT_ENVELOPE_EPS
from pyloopgrid.analysis.framing import frames_to_time
from pyloopgrid.exceptions import DegenerateSignalError


@dataclass(slots=True, frozen=True, eq=False)
class OnsetEnvelope:
    """Frame-rate onset strength plus the timing needed to convert frames to seconds."""

    values: np.ndarray  # One non-negative value per frame
    sr: int
    hop_length: int

    @property
    def n_frames(self) -> int:
        return len(self.values)

    @property
    def is_flat(self) -> bool:
        return is_flat(self.values)

    def times(self) -> np.ndarray:
        return frames_to_time(np.arange(self.n_frames), self.sr, self.hop_length)


def onset_strength(S: np.ndarray) -> np.ndarray:
    """Spectral flux envelope for a (n_bins, n_frames) magnitude spectrogram."""
    n_frames = S.shape[1]
    onset = np.zeros(n_frames, dtype=np.float64)
    if n_frames < 2:
        return onset
    flux = np.diff(S, axis=1)
    np.maximum(flux, 0.0, out=flux)
    onset[1:] = flux.sum(axis=0)
    return onset


def is_flat(onset: np.ndarray) -> bool:
    """True for an empty envelope or one with no attack above the noise floor."""
    return onset.size == 0 or float(np.max(onset)) <= FLAT_ENVELOPE_EPS


def require_variation(envelope: OnsetEnvelope) -> OnsetEnvelope:
    if envelope.is_flat:
        raise DegenerateSignalError(
            "Onset envelope has no variation (silent or constant signal)."
        )
    return envelope
