"""Tests for AnalysisConfig validation."""

import dataclasses

import pytest

from pyloopgrid import AnalysisConfig
from pyloopgrid.exceptions import InvalidParameterError


def test_defaults():
    config = AnalysisConfig()
    assert config.hop_length == 512
    assert config.frame_length == 2048
    assert (config.min_bpm, config.max_bpm) == (60.0, 200.0)
    assert config.beats_per_bar == 4
    assert config.beat_strategy == "dp"


@pytest.mark.parametrize(
    "changes",
    [
        {"hop_length": 4096},
        {"hop_length": 0},
        {"hop_length": 1.5},
        {"frame_length": 1},
        {"min_bpm": 200.0, "max_bpm": 60.0},
        {"min_bpm": 0.0},
        {"default_bpm": 250.0},
        {"beat_strategy": "viterbi"},
        {"beats_per_bar": 0},
        {"octave_ratio": 1.5},
        {"bar_divisions": ()},
        {"bar_divisions": (1.0, -2.0)},
        {"n_runners_up": -1},
        {"crossfade_ms": 0.0},
        {"structure_threshold": 1.5},
    ],
)
def test_invalid_values_raise(changes):
    with pytest.raises(InvalidParameterError):
        AnalysisConfig(**changes)


def test_inverted_loop_bounds():
    with pytest.raises(InvalidParameterError, match="Inverted loop bounds"):
        AnalysisConfig(min_loop_seconds=5.0, max_loop_seconds=2.0)


def test_replace_validates():
    config = AnalysisConfig()
    assert config.replace(beats_per_bar=3).beats_per_bar == 3
    with pytest.raises(InvalidParameterError):
        config.replace(max_loop_seconds=0.1)


def test_config_is_frozen():
    config = AnalysisConfig()
    with pytest.raises(dataclasses.FrozenInstanceError):
        config.hop_length = 256
