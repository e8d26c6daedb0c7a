"""In-memory memoization of analysis results.

Entries are keyed on a content hash of the sample buffer together with the
sample rate and the full configuration, so any change to either produces a
new key. Results are immutable and can be shared between callers.
"""

from __future__ import annotations

import hashlib
import threading
from collections import OrderedDict
from typing import TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from pyloopgrid.analysis import AnalysisResult
    from pyloopgrid.config import AnalysisConfig


class AnalysisCache:
    """Bounded least-recently-used cache, safe to share between threads."""

    def __init__(self, capacity: int = 32) -> None:
        if capacity < 1:
            raise ValueError("Cache capacity must be at least 1.")
        self.capacity = capacity
        self._entries: OrderedDict[str, AnalysisResult] = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    @staticmethod
    def make_key(samples: np.ndarray, sr: int, config: AnalysisConfig) -> str:
        """SHA-256 over buffer bytes, dtype, shape, sample rate and config -> 32 hex chars."""
        buf = np.ascontiguousarray(samples)
        h = hashlib.sha256()
        h.update(str(buf.dtype).encode("ascii"))
        h.update(str(buf.shape).encode("ascii"))
        h.update(buf.tobytes())
        h.update(str(int(sr)).encode("ascii"))
        h.update(repr(config).encode("utf-8"))
        return h.hexdigest()[:32]

    def get(self, key: str) -> AnalysisResult | None:
        with self._lock:
            result = self._entries.get(key)
            if result is None:
                self.misses += 1
                return None
            self._entries.move_to_end(key)
            self.hits += 1
            return result

    def put(self, key: str, result: AnalysisResult) -> None:
        with self._lock:
            self._entries[key] = result
            self._entries.move_to_end(key)
            while len(self._entries) > self.capacity:
                self._entries.popitem(last=False)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self.hits = self.misses = 0

    @property
    def stats(self) -> dict[str, int]:
        with self._lock:
            return {"hits": self.hits, "misses": self.misses, "size": len(self._entries)}

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._entries
