"""
Boundary Refinement.

Snaps loop boundaries to the nearest zero crossing within a small window so
the seam does not click. A boundary that cannot be snapped keeps its index
and the result carries a short equal-power crossfade to apply at playback.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np
from numba import njit

from pyloopgrid.exceptions import InvalidParameterError


@dataclass(slots=True, frozen=True, eq=False)
class Crossfade:
    """Equal-power fade pair: fade_in**2 + fade_out**2 == 1 at every sample."""

    length: int
    fade_in: np.ndarray
    fade_out: np.ndarray

    @classmethod
    def equal_power(cls, length: int) -> Crossfade:
        x = np.linspace(0.0, 1.0, length)
        return cls(
            length=length,
            fade_in=np.sin(0.5 * np.pi * x),
            fade_out=np.cos(0.5 * np.pi * x),
        )


@dataclass(slots=True, frozen=True, eq=False)
class RefinedBoundaries:
    start: int
    end: int
    start_snapped: bool
    end_snapped: bool
    crossfade: Crossfade | None = None


@njit(cache=True)
def _nearest_sign_change(y: np.ndarray, target: int, radius: int) -> int:
    """
    Index j closest to ``target`` with y[j-1] and y[j] on opposite sides of
    zero; ties go to the smaller |y[j]|, then to the smaller j. -1 if none.
    """
    n = y.shape[0]
    lo = max(1, target - radius)
    hi = min(n - 1, target + radius)
    best = -1
    best_dist = 0
    best_amp = 0.0
    for j in range(lo, hi + 1):
        if (y[j - 1] < 0.0) != (y[j] < 0.0):
            dist = abs(j - target)
            amp = abs(y[j])
            if best < 0 or dist < best_dist or (dist == best_dist and amp < best_amp):
                best = j
                best_dist = dist
                best_amp = amp
    return best


def find_zero_crossing(y: np.ndarray, target: int, radius: int) -> int | None:
    """Nearest zero crossing to ``target`` within +/-``radius`` samples, or None."""
    if radius < 0:
        raise InvalidParameterError("Search radius cannot be negative.")
    y = np.ascontiguousarray(y, dtype=np.float64)
    j = _nearest_sign_change(y, int(target), int(radius))
    return None if j < 0 else int(j)


def refine_boundaries(
    y: np.ndarray,
    start: int,
    end: int,
    sr: int,
    search_ms: float = 10.0,
    max_shift_ms: float | None = None,
    crossfade_ms: float = 10.0,
) -> RefinedBoundaries:
    """
    Snap ``start`` and ``end`` to nearby zero crossings.

    Each boundary moves by at most the search window. A crossing farther
    than ``max_shift_ms`` (defaults to the search window) is rejected. If
    either boundary stays unsnapped, an equal-power crossfade of at most
    ``crossfade_ms`` (and at most half the loop) is attached instead.
    """
    n = len(y)
    if not 0 <= start < end <= n:
        raise InvalidParameterError(f"Invalid loop bounds ({start}, {end}) for a buffer of {n} samples.")
    if search_ms <= 0 or crossfade_ms <= 0:
        raise InvalidParameterError("search_ms and crossfade_ms must be positive.")

    radius = max(1, int(round(search_ms * sr / 1000)))
    max_shift = radius if max_shift_ms is None else max(0, int(round(max_shift_ms * sr / 1000)))

    def _snap(target: int) -> tuple[int, bool]:
        j = find_zero_crossing(y, target, radius)
        if j is None or abs(j - target) > max_shift:
            return target, False
        return j, True

    new_start, start_snapped = _snap(start)
    new_end, end_snapped = _snap(end)

    if new_start >= new_end:
        logging.info(f"Refinement collapsed loop ({new_start}, {new_end}); keeping original bounds.")
        new_start, new_end = start, end
        start_snapped = end_snapped = False

    crossfade = None
    if not (start_snapped and end_snapped):
        length = min(int(round(crossfade_ms * sr / 1000)), (new_end - new_start) // 2)
        if length >= 2:
            crossfade = Crossfade.equal_power(length)

    logging.info(
        f"Refined loop {start}-{end} -> {new_start}-{new_end}"
        + (f" (crossfade {crossfade.length} samples)" if crossfade else "")
    )
    return RefinedBoundaries(
        start=new_start,
        end=new_end,
        start_snapped=start_snapped,
        end_snapped=end_snapped,
        crossfade=crossfade,
    )
