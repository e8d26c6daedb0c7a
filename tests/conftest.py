"""Shared synthetic signals for pyloopgrid tests."""

import numpy as np
import pytest

SR = 22050
HOP = 512

# 22 hops between clicks -> exactly periodic onset envelope at ~117.45 BPM
CLICK_PERIOD = 22 * HOP


def generate_click_train(
    period_samples: int = CLICK_PERIOD,
    duration_seconds: float = 10.0,
    sr: int = SR,
) -> np.ndarray:
    """Decaying 1 kHz clicks placed at exact multiples of ``period_samples``."""
    n_samples = int(duration_seconds * sr)
    audio = np.zeros(n_samples, dtype=np.float64)

    click_samples = int(0.02 * sr)  # 20ms click
    t_click = np.arange(click_samples) / sr
    click = np.sin(2 * np.pi * 1000 * t_click) * np.exp(-t_click * 100)

    for pos in range(0, n_samples, period_samples):
        end = min(pos + click_samples, n_samples)
        audio[pos:end] += click[: end - pos]

    return audio


def generate_repeated_segment(
    segment_seconds: float = 0.5,
    repeats: int = 4,
    sr: int = 44100,
    seed: int = 0,
) -> np.ndarray:
    """
    A struck chord-like segment tiled ``repeats`` times, so the buffer is
    exactly periodic with period ``segment_seconds``.
    """
    n = int(round(segment_seconds * sr))
    t = np.arange(n) / sr
    rng = np.random.default_rng(seed)

    tone = sum(0.5 * np.sin(2 * np.pi * f * t) for f in (220.0, 347.0, 611.0))
    noise = 0.02 * rng.standard_normal(n)
    attack = np.minimum(1.0, t / 0.002)
    envelope = attack * np.exp(-t / 0.25)
    segment = (tone + noise) * envelope / 1.6

    return np.tile(segment, repeats)


def generate_note_cycle(
    freqs=(261.63, 329.63, 392.0, 493.88),
    note_seconds: float = 0.25,
    cycles: int = 8,
    sr: int = SR,
) -> np.ndarray:
    """Sustained notes played in a fixed order, repeated ``cycles`` times."""
    n = int(round(note_seconds * sr))
    t = np.arange(n) / sr
    notes = [0.5 * np.sin(2 * np.pi * f * t) for f in freqs]
    return np.tile(np.concatenate(notes), cycles)


def impulse_envelope(n_frames: int, period: int, offset: int = 5, amplitude: float = 1.0) -> np.ndarray:
    """Onset envelope with single-frame impulses every ``period`` frames."""
    onset = np.zeros(n_frames, dtype=np.float64)
    onset[offset::period] = amplitude
    return onset


@pytest.fixture
def click_train():
    return generate_click_train()


@pytest.fixture
def repeated_segment():
    return generate_repeated_segment()


@pytest.fixture
def note_cycle():
    return generate_note_cycle()


@pytest.fixture
def silence():
    return np.zeros(SR, dtype=np.float64)
