"""Tests for resampler.py.

Both libsamplerate policies are exercised; the reference pipeline uses
ResamplingPolicy.LINEAR (SRC_LINEAR).
"""

import numpy as np
import pytest

import resampler
from resampler import REFERENCE_POLICY, Resampler, ResamplingPolicy
from vggish_errors import InvalidInputError, ResamplingError


def _sine(rate, seconds=1.0, freq=440.0):
    t = np.arange(int(rate * seconds)) / rate
    return 0.5 * np.sin(2 * np.pi * freq * t)


class _FakeConverter:
    def __init__(self, outcome, converter_type):
        self.outcome = outcome
        self.converter_type = converter_type
        self.resets = 0

    def process(self, data, ratio, end_of_input=False):
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome

    def reset(self):
        self.resets += 1


class _FakeBackend:
    """Stands in for the samplerate module; records the converters it creates."""

    def __init__(self, outcome):
        self.outcome = outcome
        self.converters = []

    def Resampler(self, converter_type, channels):
        converter = _FakeConverter(self.outcome, converter_type)
        self.converters.append(converter)
        return converter


class TestPolicies:
    def test_reference_policy_is_linear(self):
        assert REFERENCE_POLICY is ResamplingPolicy.LINEAR

    def test_policy_from_string(self):
        assert Resampler('sinc_best').policy is ResamplingPolicy.SINC_BEST

    def test_unknown_policy(self):
        with pytest.raises(ValueError):
            Resampler('cubic')


class TestResample:
    @pytest.mark.parametrize("policy", list(ResamplingPolicy))
    def test_upsample_length(self, policy):
        out = resampler.resample(_sine(8000), 8000, 16000, policy=policy)
        assert out.shape == (16000,)
        assert out.dtype == np.float32

    @pytest.mark.parametrize("policy", list(ResamplingPolicy))
    def test_downsample_length(self, policy):
        out = resampler.resample(_sine(48000), 48000, 16000, policy=policy)
        assert out.shape == (16000,)

    def test_linear_preserves_tone_level(self):
        """A 440 Hz tone survives 44.1 kHz -> 16 kHz with roughly the same RMS."""
        data = _sine(44100, seconds=2.0)
        out = resampler.resample(data, 44100, 16000, policy=ResamplingPolicy.LINEAR)
        in_rms = np.sqrt(np.mean(data ** 2))
        out_rms = np.sqrt(np.mean(out[100:-100] ** 2))
        assert out_rms == pytest.approx(in_rms, rel=0.05)

    def test_deterministic(self):
        data = _sine(22050)
        first = resampler.resample(data, 22050, 16000)
        second = resampler.resample(data, 22050, 16000)
        np.testing.assert_array_equal(first, second)

    def test_equal_rates_return_copy(self):
        data = _sine(16000).astype(np.float32)
        out = resampler.resample(data, 16000, 16000)
        np.testing.assert_array_equal(out, data)
        assert out is not data

    @pytest.mark.parametrize("source,target", [(0, 16000), (16000, -1)])
    def test_invalid_rates(self, source, target):
        with pytest.raises(InvalidInputError):
            resampler.resample(np.zeros(10), source, target)

    def test_backend_exception_is_wrapped(self, monkeypatch):
        monkeypatch.setattr(resampler, "_backend", _FakeBackend(RuntimeError("converter blew up")))
        with pytest.raises(ResamplingError) as excinfo:
            resampler.resample(np.zeros(100), 8000, 16000)
        assert isinstance(excinfo.value.__cause__, RuntimeError)

    def test_empty_output_is_failure(self, monkeypatch):
        monkeypatch.setattr(resampler, "_backend", _FakeBackend(np.zeros(0, dtype=np.float32)))
        with pytest.raises(ResamplingError):
            resampler.resample(np.zeros(100), 8000, 16000)

    def test_converter_reset_between_calls(self, monkeypatch):
        backend = _FakeBackend(np.ones(200, dtype=np.float32))
        monkeypatch.setattr(resampler, "_backend", backend)
        with Resampler() as handle:
            handle.resample(np.zeros(100), 8000, 16000)
            handle.resample(np.zeros(100), 8000, 16000)
        assert backend.converters[0].resets == 2
        assert backend.converters[0].converter_type == "linear"


class TestHandle:
    def test_closed_handle_cannot_be_reused(self):
        handle = Resampler()
        with handle:
            handle.resample(np.zeros(800), 8000, 16000)
        with pytest.raises(ResamplingError):
            handle.resample(np.zeros(800), 8000, 16000)
        with pytest.raises(ResamplingError):
            handle.open()

    def test_unopened_handle(self):
        with pytest.raises(ResamplingError):
            Resampler().resample(np.zeros(800), 8000, 16000)

    def test_missing_backend(self, monkeypatch):
        def _missing(name):
            raise ImportError(f"No module named {name!r}")

        monkeypatch.setattr(resampler, "_backend", None)
        monkeypatch.setattr(resampler.importlib, "import_module", _missing)
        with pytest.raises(ResamplingError):
            Resampler().open()
