"""Shared fixtures for the VGGish front-end tests."""

import numpy as np
import pytest

import vggish_params


@pytest.fixture
def params():
    return vggish_params.DEFAULT_PARAMS


@pytest.fixture
def silence():
    """One second of mono silence at the VGGish sample rate."""
    return np.zeros(vggish_params.SAMPLE_RATE)


@pytest.fixture
def tone():
    """Three seconds of a 1 kHz sine at the VGGish sample rate."""
    t = np.arange(3 * vggish_params.SAMPLE_RATE) / vggish_params.SAMPLE_RATE
    return 0.5 * np.sin(2 * np.pi * 1000.0 * t)
