"""Sample-rate conversion for the VGGish front end.

Conversion runs on a libsamplerate converter (the `samplerate` binding, the
same backend librosa uses for these converter types). The binding is loaded
lazily, once per process, the first time a resampler is opened.
"""

import importlib
import logging
import threading
from enum import Enum

import librosa
import numpy as np

from vggish_errors import InvalidInputError, ResamplingError

logger = logging.getLogger(__name__)


class ResamplingPolicy(str, Enum):
    """libsamplerate converter used for the conversion."""
    LINEAR = 'linear'
    SINC_BEST = 'sinc_best'


# The reference front end converts with libsamplerate's SRC_LINEAR
REFERENCE_POLICY = ResamplingPolicy.LINEAR

_backend_lock = threading.Lock()
_backend = None


def ensure_backend():
    """Load the libsamplerate binding once per process and return it."""
    global _backend
    with _backend_lock:
        if _backend is None:
            try:
                _backend = importlib.import_module('samplerate')
            except ImportError as e:
                raise ResamplingError(f"libsamplerate backend could not be loaded: {e}") from e
            logger.debug("libsamplerate backend loaded")
        return _backend


class Resampler:
    """Scoped handle over one libsamplerate converter.

    Opening allocates a mono converter of the chosen policy; closing drops
    it. A closed handle cannot be reopened.

        with Resampler(ResamplingPolicy.LINEAR) as resampler:
            data = resampler.resample(data, 44100, 16000)
    """

    def __init__(self, policy=REFERENCE_POLICY):
        self.policy = ResamplingPolicy(policy)
        self._converter = None
        self._closed = False

    def open(self):
        if self._closed:
            raise ResamplingError("Resampler handle has already been released")
        backend = ensure_backend()
        try:
            self._converter = backend.Resampler(converter_type=self.policy.value, channels=1)
        except Exception as e:
            raise ResamplingError(f"Could not create a {self.policy.value} converter: {e}") from e
        return self

    def close(self):
        self._converter = None
        self._closed = True

    def __enter__(self):
        return self.open()

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    def resample(self, data, source_rate, target_rate):
        """Convert a mono waveform from source_rate to target_rate.

        The output holds ceil(len(data) * target_rate / source_rate) samples,
        matching librosa.resample.

        Args:
            data: 1D np.array of samples.
            source_rate: Sample rate of data, in Hz.
            target_rate: Desired sample rate, in Hz.

        Returns:
            A new 1D float32 np.array at target_rate.
        """
        if self._converter is None:
            raise ResamplingError("Resampler handle is not open")
        if not source_rate > 0 or not target_rate > 0:
            raise InvalidInputError(
                f"Sample rates must be positive, got {source_rate} -> {target_rate}")

        data = np.asarray(data, dtype=np.float32)
        if source_rate == target_rate:
            return data.copy()

        ratio = float(target_rate) / source_rate
        try:
            resampled = self._converter.process(data, ratio, end_of_input=True)
        except Exception as e:
            raise ResamplingError(
                f"Resampling {source_rate} Hz -> {target_rate} Hz failed: {e}") from e
        finally:
            # Converter state carries over between calls unless reset
            self._converter.reset()

        resampled = np.asarray(resampled, dtype=np.float32).reshape(-1)
        if resampled.size == 0:
            raise ResamplingError(
                f"Resampling {data.shape[0]} samples from {source_rate} Hz produced no output")
        num_samples = int(np.ceil(data.shape[0] * ratio))
        return np.ascontiguousarray(librosa.util.fix_length(resampled, size=num_samples))


def resample(data, source_rate, target_rate, policy=REFERENCE_POLICY):
    """Convenience wrapper: open a Resampler, convert data, release the converter."""
    with Resampler(policy) as resampler:
        return resampler.resample(data, source_rate, target_rate)
