"""
Framing and Windowing.

Slices a mono buffer into overlapping frames and tapers them:
- Frame count: floor((L - N) / H) + 1
- Symmetric Hann window: w[i] = 0.5 * (1 - cos(2*pi*i / (N - 1)))
- Frame index <-> time conversion with exact round trips
"""

from __future__ import annotations

from collections.abc import Iterator

import librosa
import numpy as np
from scipy.signal import get_window

from pyloopgrid.analysis.constants import SPECTROGRAM_BLOCK_FRAMES
from pyloopgrid.exceptions import InsufficientLengthError, InvalidParameterError


def as_signal(y) -> np.ndarray:
    """Validate a caller buffer and return it as contiguous float64 mono samples."""
    y = np.asarray(y)
    if y.ndim != 1:
        raise InvalidParameterError(
            f"Expected a mono (1-D) buffer, got shape {y.shape}. Mix to mono before analysis."
        )
    if y.size == 0:
        raise InsufficientLengthError("Audio buffer is empty.")
    if not np.issubdtype(y.dtype, np.number) or np.iscomplexobj(y):
        raise InvalidParameterError(f"Audio buffer must hold real numbers, got dtype {y.dtype}.")
    y = np.ascontiguousarray(y, dtype=np.float64)
    if not np.all(np.isfinite(y)):
        raise InvalidParameterError("Audio buffer contains NaN or infinite samples.")
    return y


def check_frame_params(length: int, frame_length: int, hop_length: int) -> None:
    if frame_length <= 1:
        raise InvalidParameterError(f"frame_length must be > 1, got {frame_length}.")
    if hop_length < 1:
        raise InvalidParameterError(f"hop_length must be >= 1, got {hop_length}.")
    if hop_length > frame_length:
        raise InvalidParameterError(
            f"hop_length ({hop_length}) cannot exceed frame_length ({frame_length})."
        )
    if length < frame_length:
        raise InsufficientLengthError(
            f"Buffer of {length} samples is shorter than one analysis frame ({frame_length})."
        )


def num_frames(length: int, frame_length: int, hop_length: int) -> int:
    check_frame_params(length, frame_length, hop_length)
    return (length - frame_length) // hop_length + 1


def hann_window(n: int) -> np.ndarray:
    """Symmetric Hann window of length ``n`` (endpoints are exactly zero)."""
    if n <= 1:
        raise InvalidParameterError(f"Window length must be > 1, got {n}.")
    return get_window("hann", n, fftbins=False)


def frame_signal(y: np.ndarray, frame_length: int, hop_length: int) -> np.ndarray:
    """Strided (n_frames, frame_length) view of ``y``; no copy, no window."""
    check_frame_params(len(y), frame_length, hop_length)
    y = np.ascontiguousarray(y)
    return librosa.util.frame(y, frame_length=frame_length, hop_length=hop_length, axis=0)


def iter_frames(
    y: np.ndarray,
    frame_length: int,
    hop_length: int,
    block_size: int = SPECTROGRAM_BLOCK_FRAMES,
) -> Iterator[tuple[int, np.ndarray]]:
    """Lazily yield ``(first_frame_index, windowed_block)`` pairs.

    Each block has shape (<= block_size, frame_length). Only one block of
    windowed frames exists at a time, so memory stays bounded for long inputs.
    """
    frames = frame_signal(y, frame_length, hop_length)
    window = hann_window(frame_length)
    for first in range(0, frames.shape[0], block_size):
        yield first, frames[first : first + block_size] * window


def frames_to_time(frames, sr: int, hop_length: int):
    return librosa.frames_to_time(frames, sr=sr, hop_length=hop_length)


def time_to_frames(times, sr: int, hop_length: int):
    """Inverse of ``frames_to_time``; rounds to the nearest frame so round trips are exact."""
    return np.rint(np.asarray(times, dtype=np.float64) * sr / hop_length).astype(np.int64)


def samples_to_time(samples, sr: int):
    return librosa.samples_to_time(samples, sr=sr)
