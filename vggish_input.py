import logging

import numpy as np
import librosa

import mel_features
import vggish_params
from resampler import REFERENCE_POLICY, resample
from vggish_errors import InvalidInputError

logger = logging.getLogger(__name__)


def waveform_to_examples(data, sample_rate, params=vggish_params.DEFAULT_PARAMS,
                         resampling_policy=REFERENCE_POLICY):
    """Converts audio waveform into an array of examples for VGGish.

    Args:
        data: np.array of either one dimension (mono) or two dimensions
            (multi-channel, with the outer dimension representing samples).
            Each sample is generally expected to lie in the range [-1.0, +1.0],
            although this is not required.
        sample_rate: Sample rate of data.
        params: VggishParams bundle to use for the whole call.
        resampling_policy: ResamplingPolicy used when sample_rate differs from
            params.sample_rate.

    Returns:
        4-D np.array of shape [num_examples, 1, num_frames, num_bands] which
        represents a sequence of examples, each of which contains one channel
        holding a patch of log mel spectrogram, covering num_frames frames of
        audio and num_bands mel frequency bands, where the frame length is
        params.stft_hop_length_seconds. Audio too short for a single example
        gives num_examples == 0.

    Raises:
        InvalidInputError, InvalidFilterbankRangeError, ResamplingError,
        SpectralComputationError: the extraction was aborted and no examples
        were produced.
    """
    log_mel = waveform_to_log_mel(data, sample_rate, params, resampling_policy)

    # Frame features into examples
    example_window_length = params.example_window_length
    example_hop_length = params.example_hop_length
    log_mel_examples = mel_features.frame(log_mel,
                                          window_length=example_window_length,
                                          hop_length=example_hop_length)

    if log_mel_examples.shape[0] == 0:
        logger.warning("Audio shorter than one example (%d of %d frames); no examples produced",
                       log_mel.shape[0], example_window_length)

    # Add channel dimension
    examples = np.expand_dims(log_mel_examples, axis=1).astype(np.float32)
    logger.debug("Produced examples of shape %s", examples.shape)
    return examples


def waveform_to_log_mel(data, sample_rate, params=vggish_params.DEFAULT_PARAMS,
                        resampling_policy=REFERENCE_POLICY):
    """Converts audio waveform into a log mel spectrogram at params.sample_rate.

    Returns:
        2D np.array of (num_frames, params.num_mel_bins).
    """
    data = _validate_waveform(data)
    sample_rate = _validate_sample_rate(sample_rate)

    # Convert to mono
    data = merge_channels(data)

    # Resample to the rate assumed by VGGish
    if sample_rate != params.sample_rate:
        logger.debug("Resampling from %d Hz to %d Hz (%s)",
                     sample_rate, params.sample_rate, resampling_policy)
        data = resample(data, sample_rate, params.sample_rate, policy=resampling_policy)

    # Compute log mel spectrogram features
    return mel_features.log_mel_spectrogram(
        data,
        audio_sample_rate=params.sample_rate,
        log_offset=params.log_offset,
        window_length_secs=params.stft_window_length_seconds,
        hop_length_secs=params.stft_hop_length_seconds,
        num_mel_bins=params.num_mel_bins,
        lower_edge_hertz=params.mel_min_hz,
        upper_edge_hertz=params.mel_max_hz)


def merge_channels(data):
    """Average a [num_samples, num_channels] array into a mono waveform.

    Mono input is returned as a copy.
    """
    data = np.asarray(data, dtype=np.float64)
    if data.ndim == 1:
        return data.copy()
    return np.mean(data, axis=1)


def examples_to_channels_last(examples):
    """Reorder examples to [num_examples, num_frames, num_bands, 1] for Keras models."""
    examples = np.asarray(examples)
    if examples.ndim != 4 or examples.shape[1] != 1:
        raise ValueError(f"Expected examples of shape [N, 1, frames, bands], got {examples.shape}")
    return np.ascontiguousarray(np.moveaxis(examples, 1, -1))


def wavfile_to_examples(wav_file, params=vggish_params.DEFAULT_PARAMS,
                        resampling_policy=REFERENCE_POLICY):
    """Convenience wrapper around waveform_to_examples() for a common WAV format.

    Args:
        wav_file: String path to a file, or a file-like object. Decoding is
            left to librosa.

    Returns:
        See waveform_to_examples.
    """
    try:
        data, sr = librosa.load(wav_file, sr=None, mono=False)
    except Exception as e:
        raise InvalidInputError(f"Could not decode audio from {wav_file}: {e}") from e

    # librosa returns [channels, samples]; the pipeline expects samples first
    if data.ndim > 1:
        data = data.T
    return waveform_to_examples(data, sr, params=params, resampling_policy=resampling_policy)


def _validate_waveform(data):
    if data is None:
        raise InvalidInputError("Invalid or undefined waveform received")
    try:
        data = np.asarray(data, dtype=np.float64)
    except (ValueError, TypeError) as e:
        raise InvalidInputError(f"Waveform is not numeric sample data: {e}") from e

    if data.ndim not in (1, 2):
        raise InvalidInputError(
            f"Waveform must be [num_samples] or [num_samples, num_channels], got shape {data.shape}")
    if data.shape[0] == 0 or (data.ndim == 2 and data.shape[1] == 0):
        raise InvalidInputError("Waveform contains no samples")
    if not np.all(np.isfinite(data)):
        raise InvalidInputError("Waveform contains NaN or infinite samples")
    return data


def _validate_sample_rate(sample_rate):
    if isinstance(sample_rate, bool) or not isinstance(sample_rate, (int, float, np.integer, np.floating)):
        raise InvalidInputError(f"Sample rate must be a number, got {sample_rate!r}")
    if not sample_rate > 0 or not float(sample_rate).is_integer():
        raise InvalidInputError(f"Sample rate must be a positive integer, got {sample_rate}")
    return int(sample_rate)
