"""Fatal error conditions reported by the runner before exiting."""


class SpectroError(RuntimeError):
    """Base class: the runner prints the message and exits with status 1."""


class NoInputDevices(SpectroError):
    pass


class InvalidSelection(SpectroError):
    pass


class UnsupportedSampleFormat(SpectroError):
    pass


class StreamError(SpectroError):
    """The audio stream could not be opened or started."""
