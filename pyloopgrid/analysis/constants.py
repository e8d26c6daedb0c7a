"""
Analysis Constants - Heuristic thresholds and parameters.

Centralized tuning knobs for the analysis pipeline. Values that callers
commonly change live on ``AnalysisConfig``; everything here is a fixed
heuristic that only needs touching when re-tuning the engine.
"""

from __future__ import annotations

# ============================================================================
# FRAMING / SPECTRAL
# ============================================================================

HOP_LENGTH = 512  # Default hop between analysis frames (samples)
FRAME_LENGTH = 2048  # Default analysis frame length (samples)
SPECTROGRAM_BLOCK_FRAMES = 256  # Frames transformed per FFT batch

# ============================================================================
# ONSET ENVELOPE
# ============================================================================

FLAT_ENVELOPE_EPS = 1e-8  # Envelope peak below this is treated as silence

# ============================================================================
# TEMPO ESTIMATION
# ============================================================================

DEFAULT_BPM = 120.0  # Reported when tempo cannot be determined
MIN_BPM = 60.0
MAX_BPM = 200.0
NORMAL_BPM_RANGE = (90.0, 160.0)  # Octave correction only fires outside this
OCTAVE_RATIO = 0.7  # Secondary peak must reach 70% of primary strength
OCTAVE_SEARCH_RADIUS = 1  # +/- lags searched around the 2x / 0.5x target
N_TEMPO_CANDIDATES = 5  # (bpm, strength) pairs reported

# ============================================================================
# BEAT TRACKING
# ============================================================================

TIGHTNESS = 100.0  # Quadratic penalty weight for period deviation
GREEDY_SNAP_RATIO = 0.1  # Greedy tracker snaps within 10% of a period
PLP_PHASE_TOLERANCE = 0.25  # Backtrack start must sit within P/4 of the pulse phase

# ============================================================================
# LOOP CANDIDATES
# ============================================================================

BEATS_PER_BAR = 4
BAR_DIVISIONS = (0.25, 0.5, 1.0, 2.0, 4.0, 8.0)  # Loop lengths in bars
COMMON_BEAT_COUNTS = (1, 2, 4, 8, 16)  # Beat counts rewarded by the alignment bonus
BEAT_ALIGN_WEIGHT = 0.7
DIVISION_ALIGN_WEIGHT = 0.3

FADE_EDGE_RATIO = 0.05  # Edge slice size for the fade check (5% of the loop)
FADE_ENERGY_THRESHOLD = 0.25  # Edge/middle energy ratio below which the loop is penalized

PERTURB_RANGE_SECONDS = 0.05  # Fine search +/- 50 ms around each length
PERTURB_STEP_SECONDS = 0.01  # Coarse grid inside the fine search

HEAD_TAIL_WINDOW_SECONDS = 0.5  # Window compared when looping a whole short track
TRIM_TOP_DB = 40  # Leading silence threshold for long tracks

TIE_TOLERANCE = 0.02  # Scores within this are considered tied
MULTIPLE_TOLERANCE = 0.02  # Relative slack when testing length multiples

REFINE_MIN_CORRELATION = 0.9  # Candidate must repeat this well to re-derive the tempo from it
BPM_REFINE_TOLERANCE = 0.05  # Max relative tempo change when re-deriving it from a loop length

# ============================================================================
# STRUCTURAL ANALYSIS
# ============================================================================

N_CHROMA = 12
EMBED_STEPS = 10  # Time-delay embedding depth
EMBED_DELAY = 3  # Frames between embedded copies
RUN_SMOOTH_SIZE = 3  # Smoothing length applied to lag rows before run detection
N_LAG_CANDIDATES = 10  # Lag peaks kept for diagnostics
STRUCTURE_BEAT_TOLERANCE = 0.1  # Lag within this many beats of a whole count is rounded to it
STRUCTURE_SCAN_FRAMES = 2  # Sample-accurate lag search radius, in structural frames
