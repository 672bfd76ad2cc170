"""Audio configuration: input device listing and interactive selection.

Provides helpers to list PortAudio capture devices and a small `Config`
class to carry the options shared by the runner and the capture adapter.
"""
import sys
from typing import Optional, List, Dict

from .errors import InvalidSelection, NoInputDevices, StreamError

_sd_import_err = None
try:
    import sounddevice as sd
except Exception as e:
    sd = None
    _sd_import_err = e


class Config:
    def __init__(self, device: Optional[int] = None, samplerate: Optional[float] = None,
                 dtype: str = "float32"):
        self.device = device
        self.samplerate = samplerate
        self.dtype = dtype


def list_input_devices() -> List[Dict]:
    """Return the devices able to capture (max_input_channels > 0).

    Each entry keeps its original PortAudio index under `_pa_index` so the
    selection can be mapped back to what `sounddevice` expects.
    """
    if sd is None:
        raise StreamError(f"sounddevice not available: {_sd_import_err}")
    out = []
    for i, d in enumerate(sd.query_devices()):
        if d.get('max_input_channels', 0) > 0:
            d = dict(d)
            d['_pa_index'] = i
            out.append(d)
    return out


def format_devices(devices: List[Dict]) -> List[str]:
    return [f"{i}. {d['name']}" for i, d in enumerate(devices)]


def select_device(devices: List[Dict], stdin=None, stdout=None) -> Dict:
    """Print the numbered device list and read one choice from stdin.

    A non-numeric or out-of-range answer is fatal; there is no re-prompt.
    """
    stdin = stdin or sys.stdin
    stdout = stdout or sys.stdout
    if not devices:
        raise NoInputDevices("No input devices found!")

    stdout.write("\nAvailable input devices:\n")
    for line in format_devices(devices):
        stdout.write(line + "\n")
    stdout.write(f"\nSelect a device (0-{len(devices) - 1}): ")
    stdout.flush()

    answer = stdin.readline().strip()
    return pick_device(devices, answer)


def pick_device(devices: List[Dict], answer: str) -> Dict:
    if not devices:
        raise NoInputDevices("No input devices found!")
    try:
        index = int(answer)
    except ValueError:
        raise InvalidSelection(f"Invalid device selection: {answer!r} is not a number") from None
    if not 0 <= index < len(devices):
        raise InvalidSelection(f"Invalid device selection: {index} (expected 0-{len(devices) - 1})")
    return devices[index]
