from __future__ import annotations

import json
import logging
import os
from typing import Literal

from pyloopgrid.analysis import AnalysisResult, LoopCandidate
from pyloopgrid.audio import GridAudio
from pyloopgrid.config import AnalysisConfig
from pyloopgrid.console import create_results_table, format_score, rich_console
from pyloopgrid.core import LoopGrid, export_sections, export_txt

# CLI option name -> AnalysisConfig field
_CONFIG_OPTIONS = {
    "min_bpm": "min_bpm",
    "max_bpm": "max_bpm",
    "hop_length": "hop_length",
    "frame_length": "frame_length",
    "beats_per_bar": "beats_per_bar",
    "min_loop_duration": "min_loop_seconds",
    "max_loop_duration": "max_loop_seconds",
    "beat_strategy": "beat_strategy",
}


def build_config(**kwargs) -> AnalysisConfig:
    """AnalysisConfig from CLI options; unset (None) options keep their defaults."""
    changes = {
        field: kwargs[option]
        for option, field in _CONFIG_OPTIONS.items()
        if kwargs.get(option) is not None
    }
    return AnalysisConfig(**changes)


class AnalysisHandler:
    def __init__(self, *, path: str, **kwargs):
        self.filepath = path
        self.in_samples = os.getenv("PLG_DISPLAY_SAMPLES") is not None
        self.audio = GridAudio(path)
        self.engine = LoopGrid(config=build_config(**kwargs))

        logging.info(f'Loaded "{path}". Analyzing...')
        self.result: AnalysisResult = self.engine.analyze_audio(self.audio)

    @property
    def loop_start(self) -> int:
        return self.result.loop_start_sample

    @property
    def loop_end(self) -> int:
        return self.result.loop_end_sample

    def format_time(self, samples: int) -> int | str:
        return samples if self.in_samples else self.audio.samples_to_ftime(samples)

    def _build_table(self):
        """Build a Rich table of the chosen loop and its runners-up."""
        table = create_results_table(
            f'Loop candidates for "{self.audio.filename}"',
            [
                ("Index", "cyan", "right"),
                ("Loop Start", "magenta", "left"),
                ("Loop End", "green", "left"),
                ("Length", "white", "left"),
                ("Bars", "yellow", "right"),
                ("Source", "blue", "left"),
                ("Score", "red", "right"),
            ],
        )
        fmt = self.format_time
        for idx, cand in enumerate(self.result.candidates):
            table.add_row(
                str(idx),
                str(fmt(cand.start)),
                str(fmt(cand.end)),
                str(fmt(cand.length)),
                f"{cand.division:.2f}",
                cand.source,
                format_score(cand.confidence),
            )
        return table

    def print_summary(self) -> None:
        result = self.result
        if result.degenerate:
            rich_console.print(
                f'[yellow]"{self.audio.filename}" has no measurable rhythm; the whole track is used as the loop.[/]'
            )
        rich_console.print(
            f"\nTempo: [green]{result.bpm:.2f} BPM[/] (confidence {result.confidence:.2%}), "
            f"{len(result.beat_grid)} beats"
        )
        rich_console.print(
            f"Loop: [green]{self.format_time(self.loop_start)}[/] -> [green]{self.format_time(self.loop_end)}[/] "
            f"({result.musical_division:.2f} bars, {result.source}); confidence: {result.loop_confidence:.2%}"
        )
        if result.crossfade is not None:
            rich_console.print(f"[dim]Crossfade: {result.crossfade.length} samples[/]")
        if result.candidates:
            rich_console.print(self._build_table())

    def print_json(self) -> None:
        rich_console.print_json(json.dumps(self.result.to_dict()))


class LoopExportHandler(AnalysisHandler):
    def __init__(
        self,
        *,
        path: str,
        output_dir: str,
        split_audio: bool = False,
        format: Literal["WAV", "FLAC", "OGG"] = "WAV",
        to_txt: bool = False,
        to_stdout: bool = False,
        fmt: Literal["SAMPLES", "SECONDS", "TIME"] = "SAMPLES",
        all_candidates: bool = False,
        **kwargs,
    ):
        super().__init__(path=path, **kwargs)
        self.output_directory = output_dir
        self.split_audio = split_audio
        self.format = format
        self.to_txt = to_txt
        self.to_stdout = to_stdout
        self.fmt = fmt.lower()
        self.all_candidates = all_candidates
        self._is_autocreated_outdir = False

    def run(self):
        loop_start, loop_end = self.loop_start, self.loop_end

        # Runners that do not need an output directory
        if self.to_stdout:
            self.stdout_export_runner(loop_start, loop_end)

        try:
            if (self.to_txt or self.split_audio) and not os.path.exists(self.output_directory):
                os.makedirs(self.output_directory)
                self._is_autocreated_outdir = True

            if self.to_txt:
                self.txt_export_runner(loop_start, loop_end)

            if self.split_audio:
                self.split_audio_runner(loop_start, loop_end)
        finally:
            if (
                self._is_autocreated_outdir
                and os.path.exists(self.output_directory)
                and len(os.listdir(self.output_directory)) == 0
            ):
                os.rmdir(self.output_directory)

    def split_audio_runner(self, loop_start: int, loop_end: int):
        try:
            export_sections(
                self.audio,
                loop_start,
                loop_end,
                format=self.format,
                output_dir=self.output_directory,
            )
            rich_console.print(
                f'Successfully exported "{self.audio.filename}" intro/loop/outro sections to "{self.output_directory}"'
            )
        # Usually: unknown file format specified; raised by soundfile
        except ValueError as e:
            logging.error(e)

    def txt_export_runner(self, loop_start: int, loop_end: int):
        if self.all_candidates:
            self.alt_export_runner(mode="TXT")
            return
        out_path = export_txt(
            self.audio,
            self._fmt(loop_start),
            self._fmt(loop_end),
            output_dir=self.output_directory,
        )
        rich_console.print(f'Successfully added "{self.audio.filename}" loop points to "{out_path}"')

    def stdout_export_runner(self, loop_start: int, loop_end: int):
        if self.all_candidates:
            self.alt_export_runner(mode="STDOUT")
            return
        rich_console.print(
            f'\nLoop points for "{self.audio.filename}":\n'
            f"LOOP_START: {self._fmt(loop_start)}\n"
            f"LOOP_END: {self._fmt(loop_end)}\n"
        )

    def alt_export_runner(self, mode: Literal["STDOUT", "TXT"]):
        def fmt_line(cand: LoopCandidate):
            return f"{self._fmt(cand.start)} {self._fmt(cand.end)} {cand.correlation:.4f} {cand.confidence:.4f}\n"

        formatted_lines = [fmt_line(cand) for cand in self.result.candidates]
        if mode == "STDOUT":
            rich_console.out(*formatted_lines, sep="", end="")
        elif mode == "TXT":
            out_path = os.path.join(self.output_directory, f"{self.audio.filename}.candidates.txt")
            with open(out_path, mode="w") as f:
                f.writelines(formatted_lines)

    def _fmt(self, samples: int):
        if self.fmt == "seconds":
            return str(self.audio.samples_to_seconds(samples))
        elif self.fmt == "time":
            return str(self.audio.samples_to_ftime(samples))
        else:
            return str(samples)
