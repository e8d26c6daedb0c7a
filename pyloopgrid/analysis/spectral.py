"""
Spectral Transform.

Magnitude spectra of Hann-windowed frames. Frames are zero-padded to the
next power of two so the FFT always runs on radix-2 lengths; only the
n_fft // 2 positive-frequency bins below Nyquist are kept.
"""

from __future__ import annotations

import numpy as np
from scipy import fft as sp_fft

from pyloopgrid.analysis.constants import SPECTROGRAM_BLOCK_FRAMES
from pyloopgrid.analysis.framing import iter_frames, num_frames


def next_pow2(n: int) -> int:
    return 1 << max(0, int(n) - 1).bit_length()


def fft_size(frame_length: int) -> int:
    return next_pow2(frame_length)


def magnitude_spectrum(frame: np.ndarray) -> np.ndarray:
    """Magnitude spectrum of an already-windowed frame (or a stack of frames).

    Returns ``next_pow2(N) // 2`` bins along the last axis. An all-zero
    frame yields an all-zero spectrum.
    """
    frame = np.asarray(frame, dtype=np.float64)
    n_fft = fft_size(frame.shape[-1])
    spectrum = sp_fft.rfft(frame, n=n_fft, axis=-1)
    return np.abs(spectrum[..., : n_fft // 2])


def spectrogram(
    y: np.ndarray,
    frame_length: int,
    hop_length: int,
    block_size: int = SPECTROGRAM_BLOCK_FRAMES,
) -> np.ndarray:
    """Magnitude spectrogram with shape (n_bins, n_frames)."""
    n_frames = num_frames(len(y), frame_length, hop_length)
    S = np.empty((fft_size(frame_length) // 2, n_frames), dtype=np.float64)
    for first, block in iter_frames(y, frame_length, hop_length, block_size):
        S[:, first : first + block.shape[0]] = magnitude_spectrum(block).T
    return S
