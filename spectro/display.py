"""Periodic terminal report of the latest published metrics."""
import logging
import threading
import time
from typing import Callable, List, Optional

from rich.console import Group
from rich.text import Text

from .analysis import SignalMetrics, frequency_to_note
from .core import SharedMetricsStore

logger = logging.getLogger(__name__)

UPDATE_PERIOD = 0.1
POLL_INTERVAL = 0.01

# (upper bound exclusive, label)
BANDS = [
    (80.0, "Bass (0-80 Hz)"),
    (250.0, "Low Mid (80-250 Hz)"),
    (2000.0, "Mid (250-2000 Hz)"),
    (4000.0, "High Mid (2000-4000 Hz)"),
]
TREBLE = "Treble (4000+ Hz)"


def classify_band(frequency: float) -> str:
    for upper, label in BANDS:
        if frequency < upper:
            return label
    return TREBLE


def format_report(metrics: SignalMetrics) -> List[str]:
    return [
        f"Amplitude: {metrics.amplitude:.3f}",
        f"Frequency: {metrics.frequency:.1f} Hz",
        f"Wavelength: {metrics.wavelength:.2f} cm",
        classify_band(metrics.frequency),
        f"Note: {frequency_to_note(metrics.frequency)}",
    ]


def render_report(metrics: SignalMetrics) -> Group:
    amplitude, frequency, wavelength, band, note = format_report(metrics)
    return Group(
        Text("📊 Audio Analysis:", style="bold green"),
        Text(f"  {amplitude}", style="green"),
        Text(f"  {frequency}", style="green"),
        Text(f"  {wavelength}", style="green"),
        Text(""),
        Text("🎼 Frequency Range:", style="bold magenta"),
        Text(f"  {band}", style="magenta"),
        Text(""),
        Text("🎵 Note Information:", style="bold blue"),
        Text(f"  {note}", style="blue"),
        Text(""),
        Text("⚠️  Note Detection Work in Progress - Data may be inaccurate!", style="red"),
        Text(""),
        Text("Press Ctrl+C to stop recording...", style="white"),
    )


class DisplayLoop:
    """Reads the store every `period` seconds and hands the value to `render`.

    The loop wakes every `poll` seconds rather than sleeping precisely until
    the next deadline.
    """

    def __init__(self, store: SharedMetricsStore, render: Callable[[SignalMetrics], None],
                 period: float = UPDATE_PERIOD, poll: float = POLL_INTERVAL,
                 clock: Callable[[], float] = time.monotonic,
                 sleep: Callable[[float], None] = time.sleep):
        self.store = store
        self.render = render
        self.period = period
        self.poll = poll
        self._clock = clock
        self._sleep = sleep
        self.frames = 0

    def tick(self) -> bool:
        """Render the current snapshot once. Returns False if it was unavailable."""
        metrics = self.store.snapshot()
        if metrics is None:
            logger.debug("Metrics store busy, skipping frame")
            return False
        self.render(metrics)
        self.frames += 1
        return True

    def run(self, stop_event: Optional[threading.Event] = None):
        stop_event = stop_event or threading.Event()
        last_update = None
        while not stop_event.is_set():
            now = self._clock()
            if last_update is None or now - last_update >= self.period:
                self.tick()
                last_update = self._clock()
            self._sleep(self.poll)
