from pathlib import Path

import librosa
import numpy as np

from pyloopgrid.exceptions import AudioLoadError


class GridAudio:
    """Decoded audio file: a mono analysis buffer plus the original channels for export."""

    __slots__ = (
        "filepath",
        "filename",
        "rate",
        "total_duration",
        "audio",
        "playback_audio",
        "n_channels",
        "length",
    )

    def __init__(self, filepath: str | Path) -> None:
        """Load and initialize audio data from filepath."""
        path = Path(filepath)

        try:
            raw_audio, sr = librosa.load(path, sr=None, mono=False)
        except Exception as e:
            raise AudioLoadError(
                f"{path.name} could not be loaded. Invalid audio data or unsupported format."
            ) from e

        if raw_audio.size == 0:
            raise AudioLoadError(f'No audio data could be loaded from "{path}".')

        self.filepath = str(path)
        self.filename = path.name
        self.rate = int(sr)
        self.total_duration = librosa.get_duration(y=raw_audio, sr=sr)
        self.audio = librosa.to_mono(raw_audio).astype(np.float64)

        # Export audio: shape (samples, channels)
        self.n_channels = 1 if raw_audio.ndim == 1 else raw_audio.shape[0]
        self.playback_audio = np.atleast_2d(raw_audio).T
        self.length = self.playback_audio.shape[0]

    def samples_to_seconds(self, samples: int) -> float:
        return librosa.samples_to_time(samples, sr=self.rate)

    def seconds_to_samples(self, seconds: float) -> int:
        return librosa.time_to_samples(seconds, sr=self.rate)

    def _format_time(self, seconds: float) -> str:
        return f"{int(seconds // 60):02d}:{seconds % 60:06.3f}"

    def samples_to_ftime(self, samples: int) -> str:
        return self._format_time(librosa.samples_to_time(samples, sr=self.rate))

    def seconds_to_ftime(self, seconds: float) -> str:
        return self._format_time(seconds)
