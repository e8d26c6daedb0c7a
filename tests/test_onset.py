"""Tests for the spectral-flux onset envelope."""

import numpy as np
import pytest

from pyloopgrid.analysis.onset import OnsetEnvelope, is_flat, onset_strength, require_variation
from pyloopgrid.analysis.spectral import spectrogram
from pyloopgrid.exceptions import DegenerateSignalError

from tests.conftest import SR


def test_onset_is_non_negative_and_starts_at_zero(click_train):
    S = spectrogram(click_train, 2048, 512)
    onset = onset_strength(S)

    assert onset.shape == (S.shape[1],)
    assert onset[0] == 0.0
    assert np.all(onset >= 0.0)


def test_onset_peaks_where_tone_starts():
    t = np.arange(SR) / SR
    y = np.concatenate([np.zeros(SR), 0.5 * np.sin(2 * np.pi * 440 * t)])
    onset = onset_strength(spectrogram(y, 2048, 512))

    # Tone starts at sample 22050, i.e. it enters frames 40..43
    assert 40 <= int(np.argmax(onset)) <= 43
    assert onset[60:].max() < 0.1 * onset.max()


def test_silence_is_flat(silence):
    onset = onset_strength(spectrogram(silence, 2048, 512))
    assert is_flat(onset)

    envelope = OnsetEnvelope(onset, SR, 512)
    with pytest.raises(DegenerateSignalError):
        require_variation(envelope)


def test_single_frame_spectrogram():
    onset = onset_strength(np.ones((1024, 1)))
    np.testing.assert_array_equal(onset, [0.0])


def test_envelope_times():
    envelope = OnsetEnvelope(np.zeros(4), SR, 512)
    np.testing.assert_allclose(envelope.times(), np.arange(4) * 512 / SR)
    assert envelope.n_frames == 4
    assert envelope.is_flat
