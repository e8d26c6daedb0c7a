"""
pyloopgrid Analysis Module - Tempo, Beat Grid and Loop Point Detection.

Architecture:
├── constants.py   - Heuristic thresholds
├── framing.py     - Framing, Hann window, frame/time conversion
├── spectral.py    - Radix-2 magnitude spectra
├── onset.py       - Spectral-flux onset envelope
├── tempo.py       - Autocorrelation tempo with octave correction
├── beats.py       - Greedy and dynamic-programming beat trackers
├── candidates.py  - Bar-aligned loop candidates and scoring
├── refine.py      - Zero-crossing snapping and crossfades
├── structure.py   - Recurrence / lag-matrix fallback
└── main.py        - Pipeline orchestration
"""

from pyloopgrid.analysis.framing import (
    as_signal,
    frame_signal,
    frames_to_time,
    hann_window,
    iter_frames,
    num_frames,
    samples_to_time,
    time_to_frames,
)
from pyloopgrid.analysis.spectral import magnitude_spectrum, spectrogram
from pyloopgrid.analysis.onset import OnsetEnvelope, onset_strength
from pyloopgrid.analysis.tempo import TempoEstimate, estimate_tempo
from pyloopgrid.analysis.beats import (
    BeatGrid,
    predominant_pulse_phase,
    track_beats,
    track_beats_dp,
    track_beats_greedy,
)
from pyloopgrid.analysis.candidates import LoopCandidate, generate_candidates
from pyloopgrid.analysis.refine import (
    Crossfade,
    RefinedBoundaries,
    find_zero_crossing,
    refine_boundaries,
)
from pyloopgrid.analysis.structure import StructuralResult, analyze_structure
from pyloopgrid.analysis.main import AnalysisResult, analyze_signal


__all__ = [
    # Framing / spectral
    'as_signal',
    'frame_signal',
    'iter_frames',
    'num_frames',
    'hann_window',
    'magnitude_spectrum',
    'spectrogram',
    'frames_to_time',
    'time_to_frames',
    'samples_to_time',

    # Rhythm
    'OnsetEnvelope',
    'onset_strength',
    'TempoEstimate',
    'estimate_tempo',
    'BeatGrid',
    'track_beats',
    'track_beats_dp',
    'track_beats_greedy',
    'predominant_pulse_phase',

    # Loops
    'LoopCandidate',
    'generate_candidates',
    'Crossfade',
    'RefinedBoundaries',
    'find_zero_crossing',
    'refine_boundaries',
    'StructuralResult',
    'analyze_structure',

    # Pipeline
    'AnalysisResult',
    'analyze_signal',
]
