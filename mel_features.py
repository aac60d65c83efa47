"""Signal processing primitives for computing VGGish log mel spectrograms.

Every function here is pure: it reads its arguments and returns a freshly
allocated np.array, so stages can be tested and swapped independently.
"""

import functools
import logging

import numpy as np

import vggish_params
from vggish_errors import InvalidFilterbankRangeError, SpectralComputationError

logger = logging.getLogger(__name__)

# Mel scale constants (HTK style, natural log)
_MEL_BREAK_FREQUENCY_HERTZ = 700.0
_MEL_HIGH_FREQUENCY_Q = 1127.0


def num_frames(num_samples, window_length, hop_length):
    """Number of complete frames that fit in num_samples; never negative."""
    if num_samples < window_length:
        return 0
    return 1 + (num_samples - window_length) // hop_length


def frame(data, window_length, hop_length):
    """Convert array into a sequence of successive possibly overlapping frames.

    An n-dimensional array of shape (num_samples, ...) is converted into an
    (n+1)-D array of shape (num_frames, window_length, ...), where each frame
    starts hop_length points after the preceding one. Only complete frames are
    produced, so an input shorter than window_length gives zero frames.

    Args:
        data: np.array of dimension N >= 1.
        window_length: Number of samples in each frame.
        hop_length: Advance (in samples) between each window.

    Returns:
        (N+1)-D np.array with as many rows as there are complete frames that
        can be extracted. The result is a copy, not a view of data.
    """
    if window_length <= 0 or hop_length <= 0:
        raise ValueError(
            f"window_length and hop_length must be positive, got {window_length} and {hop_length}")
    data = np.asarray(data)
    if num_frames(data.shape[0], window_length, hop_length) == 0:
        return np.empty((0, window_length) + data.shape[1:], dtype=data.dtype)
    # sliding_window_view appends the window axis last; frames want it second
    windows = np.lib.stride_tricks.sliding_window_view(data, window_length, axis=0)
    windows = np.moveaxis(windows, -1, 1)
    return windows[::hop_length].copy()


def periodic_hann(window_length):
    """Calculate a "periodic" Hann window.

    The classic Hann window is defined as a raised cosine that starts and ends
    on zero, and where every value appears twice, except the middle point for
    an odd-length window. The periodic variant drops the final zero, which is
    what an FFT-based STFT expects: the denominator is window_length, not
    window_length - 1.

    Args:
        window_length: The number of points in the returned window.

    Returns:
        A 1D np.array containing the periodic Hann window.
    """
    return 0.5 - (0.5 * np.cos(2 * np.pi / window_length * np.arange(window_length)))


def apply_window(frames, window):
    """Multiply every frame element-wise by window."""
    frames = np.asarray(frames)
    window = np.asarray(window)
    if frames.shape[-1] != window.shape[0]:
        raise ValueError(
            f"Window of length {window.shape[0]} cannot be applied to frames of length {frames.shape[-1]}")
    return frames * window


def next_power_of_two(value):
    """Smallest power of two greater than or equal to value."""
    if value < 1:
        raise ValueError(f"value must be at least 1, got {value}")
    return 2 ** int(np.ceil(np.log2(value)))


def stft_magnitude(signal, fft_length, hop_length=None, window_length=None):
    """Calculate the short-time Fourier transform magnitude.

    Args:
        signal: 1D np.array of the input time-domain signal.
        fft_length: Size of the FFT to apply.
        hop_length: Advance (in samples) between each frame passed to FFT.
        window_length: Length of each block of samples to pass to FFT.

    Returns:
        2D np.array where each row contains the magnitudes of the
        fft_length/2+1 unique values of the FFT for the corresponding frame of
        input samples.
    """
    if window_length is None:
        window_length = fft_length
    if hop_length is None:
        hop_length = window_length
    if fft_length < window_length:
        raise SpectralComputationError(
            f"fft_length {fft_length} is shorter than window_length {window_length}")

    frames = frame(signal, window_length, hop_length)
    num_bins = fft_length // 2 + 1
    if frames.shape[0] == 0:
        return np.zeros((0, num_bins))

    windowed_frames = apply_window(frames, periodic_hann(window_length))
    try:
        magnitudes = np.abs(np.fft.rfft(windowed_frames, int(fft_length)))
    except (ValueError, TypeError, MemoryError) as e:
        raise SpectralComputationError(f"FFT of {frames.shape[0]} frames failed: {e}") from e

    if not np.all(np.isfinite(magnitudes)):
        raise SpectralComputationError("FFT produced non-finite magnitudes")
    return magnitudes


def hertz_to_mel(frequencies_hertz):
    """Convert frequencies to mel scale using HTK formula.

    Args:
        frequencies_hertz: Scalar or np.array of frequencies in hertz.

    Returns:
        Object of same size as frequencies_hertz containing corresponding values
        on the mel scale.
    """
    return _MEL_HIGH_FREQUENCY_Q * np.log(
        1.0 + (np.asarray(frequencies_hertz, dtype=np.float64) / _MEL_BREAK_FREQUENCY_HERTZ))


def spectrogram_to_mel_matrix(num_mel_bins=vggish_params.NUM_MEL_BINS,
                              num_spectrogram_bins=257,
                              audio_sample_rate=vggish_params.SAMPLE_RATE,
                              lower_edge_hertz=vggish_params.MEL_MIN_HZ,
                              upper_edge_hertz=vggish_params.MEL_MAX_HZ):
    """Return a matrix that can post-multiply spectrogram rows to make mel.

    A spectrogram S of shape (frames, bins) times the returned matrix A gives
    the mel spectrogram M = S A of shape (frames, num_mel_bins). Each column of
    A is one triangular filter laid out on the mel scale.

    Args:
        num_mel_bins: How many bands in the resulting mel spectrum. This is
            the number of columns in the output matrix.
        num_spectrogram_bins: How many bins there are in the source spectrogram
            data, which is understood to be fft_size/2 + 1, i.e. the spectrogram
            only contains the nonredundant FFT bins.
        audio_sample_rate: Samples per second of the audio at the input to the
            spectrogram. We need this to figure out the actual frequencies for
            each spectrogram bin, which dictates how they are mapped into mel.
        lower_edge_hertz: Lower bound on the frequencies to be included in the
            mel spectrum. This corresponds to the lower edge of the lowest
            triangular band.
        upper_edge_hertz: The desired top edge of the highest frequency band.

    Returns:
        An np.array with shape (num_spectrogram_bins, num_mel_bins).

    Raises:
        InvalidFilterbankRangeError: if the frequency edges are incorrectly
            ordered or out of range.
    """
    nyquist_hertz = audio_sample_rate / 2.
    if not (0.0 <= lower_edge_hertz < upper_edge_hertz <= nyquist_hertz):
        raise InvalidFilterbankRangeError(
            "Mel range %.1f-%.1f Hz must satisfy 0 <= lower < upper <= Nyquist %.1f"
            % (lower_edge_hertz, upper_edge_hertz, nyquist_hertz))

    spectrogram_bins_hertz = np.linspace(0.0, nyquist_hertz, num_spectrogram_bins)
    spectrogram_bins_mel = hertz_to_mel(spectrogram_bins_hertz)
    # Band i spans band_edges_mel[i:i + 3] as (lower, center, upper)
    band_edges_mel = np.linspace(hertz_to_mel(lower_edge_hertz),
                                 hertz_to_mel(upper_edge_hertz), num_mel_bins + 2)

    mel_weights_matrix = np.empty((num_spectrogram_bins, num_mel_bins))
    for i in range(num_mel_bins):
        lower_edge_mel, center_mel, upper_edge_mel = band_edges_mel[i:i + 3]
        lower_slope = ((spectrogram_bins_mel - lower_edge_mel) /
                       (center_mel - lower_edge_mel))
        upper_slope = ((upper_edge_mel - spectrogram_bins_mel) /
                       (upper_edge_mel - center_mel))
        mel_weights_matrix[:, i] = np.maximum(0.0, np.minimum(lower_slope, upper_slope))

    # DC bin never contributes to any mel band
    mel_weights_matrix[0, :] = 0.0
    return mel_weights_matrix


@functools.lru_cache(maxsize=16)
def cached_mel_matrix(num_mel_bins, num_spectrogram_bins, audio_sample_rate,
                      lower_edge_hertz, upper_edge_hertz):
    """Memoised, read-only spectrogram_to_mel_matrix for repeated configurations."""
    matrix = spectrogram_to_mel_matrix(num_mel_bins=num_mel_bins,
                                       num_spectrogram_bins=num_spectrogram_bins,
                                       audio_sample_rate=audio_sample_rate,
                                       lower_edge_hertz=lower_edge_hertz,
                                       upper_edge_hertz=upper_edge_hertz)
    matrix.setflags(write=False)
    return matrix


def log_compress(mel_spectrogram, log_offset):
    """Element-wise ln(max(value, log_offset)); the result is never below ln(log_offset)."""
    return np.log(np.maximum(mel_spectrogram, log_offset))


def log_mel_spectrogram(data,
                        audio_sample_rate=vggish_params.SAMPLE_RATE,
                        log_offset=vggish_params.LOG_OFFSET,
                        window_length_secs=vggish_params.STFT_WINDOW_LENGTH_SECONDS,
                        hop_length_secs=vggish_params.STFT_HOP_LENGTH_SECONDS,
                        **kwargs):
    """Convert waveform to a log magnitude mel-frequency spectrogram.

    Args:
        data: 1D np.array of waveform data.
        audio_sample_rate: The sampling rate of data.
        log_offset: Floor applied to mel energies before taking the log.
        window_length_secs: Duration of each window to analyze.
        hop_length_secs: Advance between successive analysis windows.
        **kwargs: Additional arguments to pass to spectrogram_to_mel_matrix.

    Returns:
        2D np.array of (num_frames, num_mel_bins) consisting of log mel filterbank
        magnitudes for successive frames.
    """
    window_length_samples = int(round(audio_sample_rate * window_length_secs))
    hop_length_samples = int(round(audio_sample_rate * hop_length_secs))
    if window_length_samples < 1 or hop_length_samples < 1:
        raise SpectralComputationError(
            "STFT window of %d and hop of %d samples at %d Hz are empty"
            % (window_length_samples, hop_length_samples, audio_sample_rate))
    fft_length = next_power_of_two(window_length_samples)
    spectrogram = stft_magnitude(
        data,
        fft_length=fft_length,
        hop_length=hop_length_samples,
        window_length=window_length_samples)
    logger.debug("Spectrogram of %d frames x %d bins calculated",
                 spectrogram.shape[0], spectrogram.shape[1])

    mel_matrix = cached_mel_matrix(
        kwargs.get('num_mel_bins', vggish_params.NUM_MEL_BINS),
        spectrogram.shape[1],
        audio_sample_rate,
        kwargs.get('lower_edge_hertz', vggish_params.MEL_MIN_HZ),
        kwargs.get('upper_edge_hertz', vggish_params.MEL_MAX_HZ))
    try:
        mel_spectrogram = np.dot(spectrogram, mel_matrix)
    except ValueError as e:
        raise SpectralComputationError(f"Mel projection failed: {e}") from e
    return log_compress(mel_spectrogram, log_offset)
