"""Tests for magnitude spectra."""

import numpy as np

from pyloopgrid.analysis.framing import hann_window
from pyloopgrid.analysis.spectral import magnitude_spectrum, next_pow2, spectrogram


def test_next_pow2():
    assert next_pow2(1) == 1
    assert next_pow2(1000) == 1024
    assert next_pow2(1024) == 1024
    assert next_pow2(1025) == 2048


def test_sine_peaks_at_expected_bin():
    sr, n = 8192, 1024
    t = np.arange(n) / sr
    frame = np.sin(2 * np.pi * 512 * t) * hann_window(n)

    spectrum = magnitude_spectrum(frame)
    assert spectrum.shape == (512,)
    assert int(np.argmax(spectrum)) == 64


def test_non_power_of_two_frames_are_zero_padded():
    spectrum = magnitude_spectrum(np.ones(1000) * hann_window(1000))
    assert spectrum.shape == (512,)


def test_zero_frame_gives_zero_spectrum():
    spectrum = magnitude_spectrum(np.zeros(2048))
    assert np.all(spectrum == 0.0)


def test_spectrogram_shape_and_non_negativity():
    y = np.random.default_rng(0).standard_normal(10000)
    S = spectrogram(y, 2048, 512)
    assert S.shape == (1024, 16)
    assert np.all(S >= 0.0)


def test_spectrogram_does_not_depend_on_block_size():
    y = np.random.default_rng(2).standard_normal(20000)
    np.testing.assert_allclose(
        spectrogram(y, 2048, 512, block_size=3),
        spectrogram(y, 2048, 512, block_size=256),
    )


def test_spectrogram_columns_match_single_frames():
    y = np.random.default_rng(3).standard_normal(5000)
    S = spectrogram(y, 1024, 256)
    frame = y[256 * 4 : 256 * 4 + 1024] * hann_window(1024)
    np.testing.assert_allclose(S[:, 4], magnitude_spectrum(frame))
    assert S.shape[0] == 512
