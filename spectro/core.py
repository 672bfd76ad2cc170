"""Core audio: live capture + hand-off of analysis results to the display.

Expose an `AudioAnalyzer` class with a minimal API:
- start()
- stop()
- store: the `SharedMetricsStore` the display loop reads from

This module intentionally keeps audio I/O separate from rendering.
"""
import logging
import threading
from typing import Optional

import numpy as np

from .analysis import WINDOW_SIZE, SignalMetrics, analyze
from .errors import StreamError, UnsupportedSampleFormat

_sd_import_err = None
try:
    import sounddevice as sd
except Exception as e:
    sd = None
    _sd_import_err = e

logger = logging.getLogger(__name__)

# divisor and offset mapping each raw sample format onto roughly [-1.0, 1.0]
SAMPLE_FORMATS = {
    "float32": (1.0, 0.0),
    "int32": (2147483648.0, 0.0),
    "int16": (32768.0, 0.0),
    "int8": (128.0, 0.0),
    "uint8": (128.0, 128.0),
}


def check_sample_format(dtype: str) -> str:
    if dtype not in SAMPLE_FORMATS:
        raise UnsupportedSampleFormat(
            f"Unsupported sample format {dtype!r} (expected one of {', '.join(SAMPLE_FORMATS)})")
    return dtype


def normalize_samples(indata, dtype: str = "float32") -> np.ndarray:
    """Convert a raw block (frames,) or (frames, channels) to mono float64."""
    scale, offset = SAMPLE_FORMATS[check_sample_format(dtype)]
    frame = np.asarray(indata, dtype=np.float64)
    if frame.ndim > 1:
        frame = np.mean(frame, axis=1)
    return (frame - offset) / scale


class SharedMetricsStore:
    """Single-writer / single-reader cell holding the latest `SignalMetrics`.

    `SignalMetrics` is immutable, so publishing is a reference swap done
    under a lock that is never held for longer than that assignment.
    """

    def __init__(self, initial: Optional[SignalMetrics] = None):
        self._lock = threading.Lock()
        self._metrics = initial if initial is not None else SignalMetrics.zero()

    def publish(self, metrics: SignalMetrics) -> None:
        with self._lock:
            self._metrics = metrics

    def snapshot(self, timeout: float = 0.05) -> Optional[SignalMetrics]:
        """Return the latest published value, or None if the lock was not
        obtained within `timeout` seconds."""
        if not self._lock.acquire(timeout=timeout):
            return None
        try:
            return self._metrics
        finally:
            self._lock.release()


class AudioAnalyzer:
    """Live capture from an input device, one analysis per delivered block."""

    def __init__(self, store: Optional[SharedMetricsStore] = None,
                 samplerate: Optional[float] = None, device: Optional[int] = None,
                 dtype: str = "float32", blocksize: int = WINDOW_SIZE):
        self.store = store if store is not None else SharedMetricsStore()
        self.samplerate = samplerate
        self.device = device
        self.dtype = check_sample_format(dtype)
        self.blocksize = blocksize
        self._stream = None

    def process_block(self, indata) -> SignalMetrics:
        samples = normalize_samples(indata, self.dtype)
        metrics = analyze(samples, float(self.samplerate))
        self.store.publish(metrics)
        return metrics

    def _input_callback(self, indata, frames, time_info, status):
        if status:
            logger.warning("Audio stream error: %s", status)
        try:
            self.process_block(indata)
        except Exception:
            logger.exception("Dropping audio block after analysis failure")

    def start(self):
        """Open and start the input stream on the configured device."""
        if sd is None:
            raise StreamError(f"sounddevice not available: {_sd_import_err}")
        try:
            if self.samplerate is None:
                self.samplerate = float(sd.query_devices(self.device, 'input')['default_samplerate'])
            self._stream = sd.InputStream(samplerate=self.samplerate, blocksize=self.blocksize,
                                          device=self.device, channels=1, dtype=self.dtype,
                                          callback=self._input_callback)
            self._stream.start()
        except Exception as e:
            self._stream = None
            raise StreamError(f"Unable to start audio stream: {e}") from e
        logger.info("Capture started on device %s at %s Hz", self.device, self.samplerate)

    def stop(self):
        stream, self._stream = self._stream, None
        if stream is None:
            return
        try:
            stream.stop()
            stream.close()
        except Exception:
            logger.exception("Error while closing audio stream")
        logger.info("Capture stopped")
