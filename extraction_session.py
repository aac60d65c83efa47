"""Caller-side gate around waveform_to_examples().

A host application that feeds examples to an embedding model owns one
ExtractionSession. The session tracks whether that model is ready, lets the
host wait for it with a bounded timeout, and guarantees that at most one
extraction runs at a time.
"""

import logging
import threading
import time
from enum import Enum

import vggish_params
from resampler import REFERENCE_POLICY
from vggish_errors import ExtractionBusyError, ModelNotReadyError
from vggish_input import waveform_to_examples

logger = logging.getLogger(__name__)

# Default time to wait for the embedding model before giving up
READY_TIMEOUT_SECONDS = 30.0


class ModelState(Enum):
    NOT_READY = 'not_ready'
    READY = 'ready'
    FAILED = 'failed'


class ExtractionSession:
    def __init__(self, params=vggish_params.DEFAULT_PARAMS, resampling_policy=REFERENCE_POLICY):
        """Create a session whose model starts out NOT_READY."""
        self.params = params
        self.resampling_policy = resampling_policy

        self._state = ModelState.NOT_READY
        self._failure_reason = None
        self._cancel_generation = 0
        self._state_changed = threading.Condition()
        self._in_flight = threading.Lock()

        # Duration of the last successful extraction, in milliseconds
        self.last_latency_ms = None

    @property
    def state(self):
        with self._state_changed:
            return self._state

    @property
    def busy(self):
        return self._in_flight.locked()

    def mark_ready(self):
        """Record that the embedding model has been loaded."""
        with self._state_changed:
            self._state = ModelState.READY
            self._failure_reason = None
            self._state_changed.notify_all()
        logger.info("Embedding model ready")

    def mark_failed(self, reason):
        """Record that the embedding model could not be loaded."""
        with self._state_changed:
            self._state = ModelState.FAILED
            self._failure_reason = reason
            self._state_changed.notify_all()
        logger.error("Embedding model failed to load: %s", reason)

    def cancel(self):
        """Make every call currently blocked in wait_until_ready() give up.

        Waits started after cancel() returns are unaffected.
        """
        with self._state_changed:
            self._cancel_generation += 1
            self._state_changed.notify_all()

    def wait_until_ready(self, timeout=READY_TIMEOUT_SECONDS):
        """Block until the model is READY.

        Raises:
            ModelNotReadyError: the model failed, the wait was cancelled, or
                timeout seconds elapsed first.
        """
        with self._state_changed:
            generation = self._cancel_generation

            def cancelled():
                return self._cancel_generation != generation

            self._state_changed.wait_for(
                lambda: self._state is not ModelState.NOT_READY or cancelled(),
                timeout=timeout)
            if self._state is ModelState.READY:
                return
            if self._state is ModelState.FAILED:
                raise ModelNotReadyError(f"Embedding model failed to load: {self._failure_reason}")
            if cancelled():
                raise ModelNotReadyError("Waiting for the embedding model was cancelled")
            raise ModelNotReadyError(f"Embedding model not ready after {timeout} s")

    def extract(self, data, sample_rate, timeout=READY_TIMEOUT_SECONDS):
        """Run waveform_to_examples() once the model is ready.

        Only one extraction may run at a time; a call made while another is in
        progress fails immediately with ExtractionBusyError.
        """
        if not self._in_flight.acquire(blocking=False):
            raise ExtractionBusyError("An extraction is already being processed")
        try:
            self.wait_until_ready(timeout)
            start_time = time.time()
            examples = waveform_to_examples(data, sample_rate, params=self.params,
                                            resampling_policy=self.resampling_policy)
            self.last_latency_ms = (time.time() - start_time) * 1000
            logger.info("Extracted %d examples in %.1f ms", examples.shape[0], self.last_latency_ms)
            return examples
        except Exception as e:
            logger.error("Feature extraction failed: %s", e)
            raise
        finally:
            self._in_flight.release()
