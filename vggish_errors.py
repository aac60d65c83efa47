"""Exceptions raised by the VGGish feature extraction pipeline."""


class FeatureExtractionError(Exception):
    """Base class for every failure that aborts an extraction call."""


class InvalidInputError(FeatureExtractionError, ValueError):
    """The waveform, its channel layout or its sample rate cannot be used."""


class InvalidFilterbankRangeError(FeatureExtractionError, ValueError):
    """Mel frequency bounds fall outside [0, nyquist] or are inverted."""


class ResamplingError(FeatureExtractionError):
    """The resampling backend failed to initialise or produced no samples."""


class SpectralComputationError(FeatureExtractionError):
    """The FFT, magnitude or mel projection stage failed."""


class ModelNotReadyError(FeatureExtractionError):
    """The embedding model never became ready, or waiting for it was cancelled."""


class ExtractionBusyError(FeatureExtractionError):
    """Another extraction is already running on the same session."""
