from __future__ import annotations

import logging
import threading
from math import pi

import numpy as np
import pytest

from spectro import core
from spectro.analysis import WINDOW_SIZE, SignalMetrics
from spectro.core import AudioAnalyzer, SharedMetricsStore, check_sample_format, normalize_samples
from spectro.errors import StreamError, UnsupportedSampleFormat


def test_store_starts_at_zero() -> None:
    assert SharedMetricsStore().snapshot() == SignalMetrics(0.0, 0.0, 0.0)


def test_store_snapshot_returns_latest_publish() -> None:
    store = SharedMetricsStore()
    store.publish(SignalMetrics(0.1, 440.0, 34300.0 / 440.0))
    store.publish(SignalMetrics(0.2, 880.0, 34300.0 / 880.0))
    assert store.snapshot() == SignalMetrics(0.2, 880.0, 34300.0 / 880.0)


def test_store_snapshot_gives_up_when_lock_is_held() -> None:
    store = SharedMetricsStore()
    store._lock.acquire()
    try:
        assert store.snapshot(timeout=0.01) is None
    finally:
        store._lock.release()
    assert store.snapshot() is not None


def test_store_never_yields_torn_snapshot() -> None:
    store = SharedMetricsStore()
    published = {SignalMetrics.zero()}
    for writer in range(4):
        for i in range(1, 301):
            value = float(writer * 1000 + i)
            published.add(SignalMetrics(value, value, value))

    start = threading.Event()

    def writer_fn(writer: int) -> None:
        start.wait()
        for i in range(1, 301):
            value = float(writer * 1000 + i)
            store.publish(SignalMetrics(value, value, value))

    seen = []
    stop = threading.Event()

    def reader_fn() -> None:
        start.wait()
        while not stop.is_set():
            snap = store.snapshot()
            if snap is not None:
                seen.append(snap)

    writers = [threading.Thread(target=writer_fn, args=(w,)) for w in range(4)]
    reader = threading.Thread(target=reader_fn)
    for t in writers + [reader]:
        t.start()
    start.set()
    for t in writers:
        t.join()
    stop.set()
    reader.join()

    assert seen
    for snap in seen:
        assert snap.amplitude == snap.frequency == snap.wavelength
        assert snap in published


@pytest.mark.parametrize(
    "dtype,raw,expected",
    [
        ("float32", np.array([0.5, -0.25], dtype=np.float32), [0.5, -0.25]),
        ("int16", np.array([16384, -32768], dtype=np.int16), [0.5, -1.0]),
        ("int32", np.array([1073741824, -2147483648], dtype=np.int32), [0.5, -1.0]),
        ("int8", np.array([64, -128], dtype=np.int8), [0.5, -1.0]),
        ("uint8", np.array([192, 0, 128], dtype=np.uint8), [0.5, -1.0, 0.0]),
    ],
)
def test_normalize_samples(dtype: str, raw: np.ndarray, expected: list) -> None:
    np.testing.assert_allclose(normalize_samples(raw, dtype), expected)


def test_normalize_samples_downmixes_channels() -> None:
    block = np.array([[0.2, 0.4], [-0.2, -0.6]], dtype=np.float32)
    np.testing.assert_allclose(normalize_samples(block), [0.3, -0.4], rtol=1e-6)


def test_unsupported_sample_format() -> None:
    with pytest.raises(UnsupportedSampleFormat):
        check_sample_format("float64")
    with pytest.raises(UnsupportedSampleFormat):
        AudioAnalyzer(samplerate=48000, dtype="int24")


def test_process_block_publishes_metrics() -> None:
    sample_rate = 48000.0
    t = np.arange(WINDOW_SIZE) / sample_rate
    block = (0.5 * np.sin(2 * pi * 1500.0 * t) * 32767).astype(np.int16).reshape(-1, 1)
    analyzer = AudioAnalyzer(samplerate=sample_rate, dtype="int16")

    metrics = analyzer.process_block(block)

    assert analyzer.store.snapshot() == metrics
    assert abs(metrics.frequency - 1500.0) <= sample_rate / WINDOW_SIZE
    assert metrics.amplitude == pytest.approx(0.5 / np.sqrt(2), rel=1e-3)


def test_callback_logs_stream_status_and_keeps_going(caplog) -> None:
    analyzer = AudioAnalyzer(samplerate=48000.0)
    block = np.full((WINDOW_SIZE, 1), 0.25, dtype=np.float32)
    with caplog.at_level(logging.WARNING, logger="spectro.core"):
        analyzer._input_callback(block, WINDOW_SIZE, None, "input overflow")
    assert "input overflow" in caplog.text
    assert analyzer.store.snapshot().amplitude == pytest.approx(0.25)


def test_callback_swallows_analysis_failure(caplog, monkeypatch) -> None:
    analyzer = AudioAnalyzer(samplerate=48000.0)
    before = SignalMetrics(0.1, 440.0, 34300.0 / 440.0)
    analyzer.store.publish(before)

    def boom(samples, sample_rate):
        raise ValueError("bad block")

    monkeypatch.setattr(core, "analyze", boom)
    with caplog.at_level(logging.ERROR, logger="spectro.core"):
        analyzer._input_callback(np.zeros((WINDOW_SIZE, 1), dtype=np.float32), WINDOW_SIZE, None, None)
    assert "Dropping audio block" in caplog.text
    assert analyzer.store.snapshot() == before


class _FakeStream:
    def __init__(self, **kwargs):
        self.kwargs = kwargs
        self.started = False
        self.closed = False

    def start(self):
        self.started = True

    def stop(self):
        self.started = False

    def close(self):
        self.closed = True


class _FakeSoundDevice:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.streams = []

    def query_devices(self, device=None, kind=None):
        return {'name': 'Fake Mic', 'default_samplerate': 44100.0, 'max_input_channels': 2}

    def InputStream(self, **kwargs):
        if self.fail:
            raise OSError("device busy")
        stream = _FakeStream(**kwargs)
        self.streams.append(stream)
        return stream


def test_start_uses_device_default_rate_and_stop_closes(monkeypatch) -> None:
    fake = _FakeSoundDevice()
    monkeypatch.setattr(core, "sd", fake)
    analyzer = AudioAnalyzer(device=3)

    analyzer.start()
    stream = fake.streams[0]
    assert analyzer.samplerate == 44100.0
    assert stream.started
    assert stream.kwargs["device"] == 3
    assert stream.kwargs["blocksize"] == WINDOW_SIZE
    assert stream.kwargs["channels"] == 1
    assert stream.kwargs["callback"] == analyzer._input_callback

    analyzer.stop()
    assert stream.closed
    analyzer.stop()


def test_start_failure_is_a_stream_error(monkeypatch) -> None:
    monkeypatch.setattr(core, "sd", _FakeSoundDevice(fail=True))
    with pytest.raises(StreamError, match="device busy"):
        AudioAnalyzer(samplerate=48000.0).start()


def test_start_without_sounddevice(monkeypatch) -> None:
    monkeypatch.setattr(core, "sd", None)
    with pytest.raises(StreamError):
        AudioAnalyzer(samplerate=48000.0).start()
