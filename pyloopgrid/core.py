import logging
import os
from pathlib import Path

import lazy_loader as lazy
import numpy as np

from pyloopgrid.analysis import AnalysisResult, analyze_signal
from pyloopgrid.audio import GridAudio
from pyloopgrid.cache import AnalysisCache
from pyloopgrid.config import AnalysisConfig

soundfile = lazy.load("soundfile")


class LoopGrid:
    """High-level API access to pyloopgrid's analysis engine."""

    def __init__(self, config: AnalysisConfig | None = None, cache: AnalysisCache | None = None):
        """Initializes the engine.

        Args:
            config (AnalysisConfig, optional): engine parameters; defaults when omitted.
            cache (AnalysisCache, optional): memoization cache shared by the caller. Results
                are recomputed on every call when no cache is given.
        """
        self.config = config or AnalysisConfig()
        self.cache = cache

    def analyze(self, samples: np.ndarray, sr: int) -> AnalysisResult:
        """Analyze a decoded mono buffer."""
        if self.cache is None:
            return analyze_signal(samples, sr, self.config)

        key = AnalysisCache.make_key(np.asarray(samples), sr, self.config)
        result = self.cache.get(key)
        if result is not None:
            logging.info(f"Cache hit for buffer {key[:8]}")
            return result

        result = analyze_signal(samples, sr, self.config)
        self.cache.put(key, result)
        return result

    def analyze_audio(self, audio: GridAudio) -> AnalysisResult:
        return self.analyze(audio.audio, audio.rate)

    def analyze_file(self, filepath: str | Path) -> AnalysisResult:
        """Decode ``filepath`` to mono and analyze it."""
        return self.analyze_audio(GridAudio(filepath))


def analyze(
    samples: np.ndarray,
    sr: int,
    config: AnalysisConfig | None = None,
    cache: AnalysisCache | None = None,
) -> AnalysisResult:
    """Analyze a mono buffer for tempo, beat grid and loop points."""
    return LoopGrid(config=config, cache=cache).analyze(samples, sr)


def export_sections(
    audio: GridAudio,
    loop_start: int,
    loop_end: int,
    format: str = "WAV",
    output_dir: str | None = None,
) -> None:
    """Write the intro, loop and outro sections of ``audio`` as separate files."""
    if output_dir is not None:
        out_path = os.path.join(output_dir, audio.filename)
    else:
        out_path = os.path.abspath(audio.filepath)

    sections = {
        "intro": audio.playback_audio[:loop_start],
        "loop": audio.playback_audio[loop_start:loop_end],
        "outro": audio.playback_audio[loop_end:],
    }
    for name, data in sections.items():
        soundfile.write(
            f"{out_path}-{name}.{format.lower()}",
            data,
            audio.rate,
            format=format,
        )


def export_txt(
    audio: GridAudio,
    loop_start: str,
    loop_end: str,
    output_dir: str | None = None,
) -> str:
    """Append the loop points of ``audio`` to ``loops.txt``; returns the file path."""
    out_dir = output_dir if output_dir is not None else os.path.dirname(os.path.abspath(audio.filepath))
    out_path = os.path.join(out_dir, "loops.txt")
    with open(out_path, "a") as file:
        file.write(f"{loop_start} {loop_end} {audio.filename}\n")
    return out_path
