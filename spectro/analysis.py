"""Pure signal analysis: RMS, dominant frequency, wavelength, note name.

Nothing here knows about threads, devices or rendering. Every function
degrades to 0.0 (the silence sentinel) instead of raising, because it runs
inside the audio callback where an exception has nowhere to go.
"""
import math
from dataclasses import dataclass

import numpy as np

WINDOW_SIZE = 1024
SPEED_OF_SOUND_CM_S = 34300.0
NOTE_NAMES = ["A", "A#", "B", "C", "C#", "D", "D#", "E", "F", "F#", "G", "G#"]

# np.hanning(M) is 0.5 * (1 - cos(2*pi*i / (M - 1)))
_HANN = np.hanning(WINDOW_SIZE)


@dataclass(frozen=True)
class SignalMetrics:
    amplitude: float = 0.0
    frequency: float = 0.0
    wavelength: float = 0.0

    @classmethod
    def zero(cls) -> "SignalMetrics":
        return cls(0.0, 0.0, 0.0)


def _finite_or_zero(value) -> float:
    value = float(value)
    return value if math.isfinite(value) else 0.0


def calculate_rms(samples) -> float:
    """Root-mean-square of the samples, 0.0 for an empty buffer."""
    x = np.asarray(samples, dtype=np.float64).ravel()
    if x.size == 0:
        return 0.0
    return _finite_or_zero(np.sqrt(np.mean(x * x)))


def calculate_frequency(samples, sample_rate: float) -> float:
    """Dominant frequency of the first WINDOW_SIZE samples.

    The window is Hann-tapered, transformed, and the strongest bin in
    (0, WINDOW_SIZE / 2) is converted to Hz. Returns 0.0 when there are not
    enough samples or no bin carries any energy.
    """
    x = np.asarray(samples, dtype=np.float64).ravel()
    if x.size < WINDOW_SIZE:
        return 0.0
    if not (math.isfinite(sample_rate) and sample_rate > 0):
        return 0.0
    frame = x[:WINDOW_SIZE]
    if not np.all(np.isfinite(frame)):
        return 0.0

    spectrum = np.fft.rfft(frame * _HANN)
    magnitudes = np.abs(spectrum[1:WINDOW_SIZE // 2])
    # argmax keeps the lowest index on ties
    offset = int(np.argmax(magnitudes))
    if not magnitudes[offset] > 0.0:
        return 0.0
    peak_bin = offset + 1
    return _finite_or_zero(peak_bin * sample_rate / WINDOW_SIZE)


def wavelength_cm(frequency: float) -> float:
    if frequency > 0.0:
        return _finite_or_zero(SPEED_OF_SOUND_CM_S / frequency)
    return 0.0


def analyze(samples, sample_rate: float) -> SignalMetrics:
    """Compute a full metrics snapshot for one buffer of normalized samples."""
    amplitude = calculate_rms(samples)
    frequency = calculate_frequency(samples, sample_rate)
    wavelength = wavelength_cm(frequency)
    if wavelength == 0.0:
        frequency = 0.0
    return SignalMetrics(amplitude=amplitude, frequency=frequency, wavelength=wavelength)


def frequency_to_note(frequency: float) -> str:
    """Nearest equal-tempered note name relative to A4 = 440 Hz, e.g. "C#5"."""
    if not frequency > 0.0 or not math.isfinite(frequency):
        return "Silence"
    semitones = round(12 * math.log2(frequency / 440.0))
    octave = 4 + semitones // 12
    return f"{NOTE_NAMES[semitones % 12]}{octave}"
