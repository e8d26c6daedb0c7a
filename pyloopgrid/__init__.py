"""Tempo, beat-grid and loop-point analysis for music tracks."""

__version__ = "0.1.0"

# analysis must be imported before config
from pyloopgrid.analysis import (
    AnalysisResult,
    BeatGrid,
    Crossfade,
    LoopCandidate,
    TempoEstimate,
    analyze_signal,
)
from pyloopgrid.config import AnalysisConfig
from pyloopgrid.cache import AnalysisCache
from pyloopgrid.core import LoopGrid, analyze
from pyloopgrid.exceptions import (
    AudioLoadError,
    DegenerateSignalError,
    InsufficientLengthError,
    InvalidParameterError,
)

__all__ = [
    "__version__",
    "AnalysisConfig",
    "AnalysisCache",
    "AnalysisResult",
    "BeatGrid",
    "Crossfade",
    "LoopCandidate",
    "LoopGrid",
    "TempoEstimate",
    "analyze",
    "analyze_signal",
    "AudioLoadError",
    "DegenerateSignalError",
    "InsufficientLengthError",
    "InvalidParameterError",
]
