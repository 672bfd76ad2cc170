#!/usr/bin/env python3
"""Runner for the live terminal spectrum analyzer."""
import argparse
import logging
import sys

from rich.console import Console
from rich.live import Live
from rich.logging import RichHandler

from spectro.analysis import SignalMetrics
from spectro.config import Config, format_devices, list_input_devices, pick_device, select_device
from spectro.core import AudioAnalyzer, SharedMetricsStore, check_sample_format
from spectro.display import DisplayLoop, render_report
from spectro.errors import SpectroError

logger = logging.getLogger("spectro")


def parse_args(argv=None):
    p = argparse.ArgumentParser(description="Live amplitude / frequency readout of an audio input.")
    p.add_argument("--device", type=int, default=None,
                   help="Index in the input device list (see --list-devices); prompts when omitted")
    p.add_argument("--samplerate", type=float, default=None,
                   help="Force the stream sample rate (default: device default)")
    p.add_argument("--dtype", default="float32",
                   help="Sample format requested from the device (float32, int32, int16, int8, uint8)")
    p.add_argument("--list-devices", action="store_true", help="List input devices and exit")
    p.add_argument("--log-level", default="WARNING", help="Logging level (written to stderr)")
    return p.parse_args(argv)


def build_config(args) -> Config:
    devices = list_input_devices()
    if args.device is None:
        device = select_device(devices)
    else:
        device = pick_device(devices, str(args.device))
    cfg = Config(device=device['_pa_index'],
                 samplerate=args.samplerate or device.get('default_samplerate'),
                 dtype=check_sample_format(args.dtype))
    print(f"Selected device: {device['name']}")
    if cfg.samplerate is None:
        print("Sample rate: device default")
    else:
        print(f"Sample rate: {cfg.samplerate:g} Hz")
    print(f"Channels: {device.get('max_input_channels')}")
    print(f"Sample format: {cfg.dtype}")
    return cfg


def run(cfg: Config, console: Console):
    store = SharedMetricsStore()
    analyzer = AudioAnalyzer(store=store, samplerate=cfg.samplerate, device=cfg.device, dtype=cfg.dtype)
    analyzer.start()
    console.print("\n🎤 Recording started! Press Ctrl+C to stop.\n")
    try:
        with Live(render_report(SignalMetrics.zero()), console=console, auto_refresh=False) as live:
            loop = DisplayLoop(store, lambda metrics: live.update(render_report(metrics), refresh=True))
            loop.run()
    finally:
        analyzer.stop()


def configure_logging(level: str, console: Console) -> logging.Handler:
    """Route package log records through the console so Live keeps them above the report."""
    for handler in list(logger.handlers):
        if isinstance(handler, RichHandler):
            logger.removeHandler(handler)
    handler = RichHandler(console=console, show_path=False)
    logger.addHandler(handler)
    logger.setLevel(getattr(logging, str(level).upper(), logging.WARNING))
    return handler


def main(argv=None) -> int:
    args = parse_args(argv)
    console = Console()
    configure_logging(args.log_level, console)
    try:
        if args.list_devices:
            for line in format_devices(list_input_devices()):
                print(line)
            return 0
        run(build_config(args), console)
    except SpectroError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        console.print("Stopped.")
    return 0


if __name__ == '__main__':
    sys.exit(main())
