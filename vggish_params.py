# VGGish parameters for audio processing

import dataclasses
from dataclasses import dataclass

import yaml

# Sample rate assumed by the VGGish model
SAMPLE_RATE = 16000

# STFT analysis window and hop, in seconds
STFT_WINDOW_LENGTH_SECONDS = 0.025
STFT_HOP_LENGTH_SECONDS = 0.010

# Number of mel frequency bands and the range they cover
NUM_MEL_BINS = 64
MEL_MIN_HZ = 125
MEL_MAX_HZ = 7500

# Offset added before taking the log so silence stays finite
LOG_OFFSET = 0.01

# Each example covers 0.96 s of audio; examples do not overlap
EXAMPLE_WINDOW_SECONDS = 0.96
EXAMPLE_HOP_SECONDS = 0.96

# Number of spectrogram frames per example (0.96 s / 0.010 s)
NUM_FRAMES = 96

# Dimensions of one example handed to the model: [channel, frame, mel bin]
EXPECTED_SHAPE = (1, NUM_FRAMES, NUM_MEL_BINS)


@dataclass(frozen=True)
class VggishParams:
    """Immutable configuration bundle for one feature extraction call."""
    sample_rate: int = SAMPLE_RATE
    stft_window_length_seconds: float = STFT_WINDOW_LENGTH_SECONDS
    stft_hop_length_seconds: float = STFT_HOP_LENGTH_SECONDS
    num_mel_bins: int = NUM_MEL_BINS
    mel_min_hz: float = MEL_MIN_HZ
    mel_max_hz: float = MEL_MAX_HZ
    log_offset: float = LOG_OFFSET
    example_window_seconds: float = EXAMPLE_WINDOW_SECONDS
    example_hop_seconds: float = EXAMPLE_HOP_SECONDS

    def __post_init__(self):
        if not self.sample_rate > 0:
            raise ValueError(f"sample_rate must be positive, got {self.sample_rate}")
        if not self.num_mel_bins > 0:
            raise ValueError(f"num_mel_bins must be positive, got {self.num_mel_bins}")
        if not self.log_offset > 0:
            raise ValueError(f"log_offset must be positive, got {self.log_offset}")
        for name in ('stft_window_length_seconds', 'stft_hop_length_seconds',
                     'example_window_seconds', 'example_hop_seconds'):
            if not getattr(self, name) > 0:
                raise ValueError(f"{name} must be positive, got {getattr(self, name)}")
        # Durations are rounded to whole samples or frames downstream
        for name in ('stft_window_length_samples', 'stft_hop_length_samples',
                     'example_window_length', 'example_hop_length'):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} rounds to {getattr(self, name)}; it must be at least 1")

    @property
    def features_sample_rate(self):
        """Rate of spectrogram frames, in frames per second."""
        return 1.0 / self.stft_hop_length_seconds

    @property
    def stft_window_length_samples(self):
        return int(round(self.sample_rate * self.stft_window_length_seconds))

    @property
    def stft_hop_length_samples(self):
        return int(round(self.sample_rate * self.stft_hop_length_seconds))

    @property
    def example_window_length(self):
        """Spectrogram frames per example."""
        return int(round(self.example_window_seconds * self.features_sample_rate))

    @property
    def example_hop_length(self):
        return int(round(self.example_hop_seconds * self.features_sample_rate))

    @classmethod
    def from_dict(cls, overrides):
        """Build parameters from DEFAULT_PARAMS with the given fields replaced."""
        known = {f.name for f in dataclasses.fields(cls)}
        unknown = sorted(set(overrides) - known)
        if unknown:
            raise ValueError(f"Unknown VGGish parameter(s): {', '.join(unknown)}")
        return dataclasses.replace(DEFAULT_PARAMS, **overrides)


DEFAULT_PARAMS = VggishParams()


def load_params(config_path):
    """Load parameter overrides from a YAML file.

    The file holds a flat mapping of VggishParams field names to values. An
    empty file yields DEFAULT_PARAMS.
    """
    with open(config_path, 'r') as f:
        overrides = yaml.safe_load(f) or {}
    if not isinstance(overrides, dict):
        raise ValueError(f"Expected a mapping in {config_path}, got {type(overrides).__name__}")
    return VggishParams.from_dict(overrides)
