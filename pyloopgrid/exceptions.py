class InvalidParameterError(ValueError):
    """Raised when a caller supplies malformed analysis parameters."""


class InsufficientLengthError(Exception):
    """Raised when the audio buffer is too short for the requested analysis."""


class DegenerateSignalError(Exception):
    """Raised when the signal is silent or constant and carries no rhythm."""


class AudioLoadError(Exception):
    """Raised when audio file cannot be loaded or is invalid."""
