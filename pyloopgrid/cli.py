import functools
import logging
import os
import warnings

import rich_click as click
from rich.logging import RichHandler
from rich.progress import Progress, SpinnerColumn, TimeElapsedColumn
from rich.traceback import install as rich_traceback_handler
from rich_click.patch import patch as rich_click_patch

rich_click_patch()

from pyloopgrid import __version__
from pyloopgrid.config import BEAT_STRATEGIES
from pyloopgrid.console import _COMMAND_GROUPS, _OPTION_GROUPS, rich_console
from pyloopgrid.exceptions import AudioLoadError, InsufficientLengthError, InvalidParameterError
from pyloopgrid.handler import AnalysisHandler, LoopExportHandler
from pyloopgrid.utils import get_outputdir

# CLI --help styling
click.rich_click.OPTION_GROUPS = _OPTION_GROUPS
click.rich_click.COMMAND_GROUPS = _COMMAND_GROUPS
click.rich_click.USE_RICH_MARKUP = True
# End CLI styling


@click.group("pyloopgrid")
@click.option("--debug", "-d", is_flag=True, default=False, help="Enables debugging mode.")
@click.option("--verbose", "-v", is_flag=True, default=False, help="Enables verbose logging output.")
@click.option("--samples", "-s", is_flag=True, default=False, help="Display loop points in sample points instead of the default mm:ss.sss format.")
@click.version_option(__version__, prog_name="pyloopgrid", message="%(prog)s %(version)s")
def cli_main(debug, verbose, samples):
    """Estimate the tempo, beat grid and musically aligned loop points of an audio track."""
    # Store flags in environ instead of passing them as parameters
    if debug:
        os.environ["PLG_DEBUG"] = "1"
        warnings.simplefilter("default")
        rich_traceback_handler(console=rich_console, suppress=[click])
    else:
        warnings.filterwarnings("ignore")

    if verbose:
        os.environ["PLG_VERBOSE"] = "1"
    if samples:
        os.environ["PLG_DISPLAY_SAMPLES"] = "1"

    if verbose:
        logging.basicConfig(format="%(message)s", level=logging.INFO, handlers=[RichHandler(level=logging.INFO, console=rich_console, rich_tracebacks=True, show_path=debug, show_time=False, tracebacks_suppress=[click])])
    else:
        logging.basicConfig(format="%(message)s", level=logging.ERROR, handlers=[RichHandler(level=logging.ERROR, console=rich_console, show_time=False, show_path=False)])


def common_path_options(f):
    @click.option("--path", type=click.Path(exists=True, dir_okay=False), required=True, help="Path to the audio file.")

    @functools.wraps(f)
    def wrapper_common_options(*args, **kwargs):
        return f(*args, **kwargs)

    return wrapper_common_options


def common_analysis_options(f):
    @click.option("--min-bpm", type=click.FloatRange(min=0, min_open=True), default=None, help="Lower bound of the tempo search in BPM. [dim](default: 60)[/]")
    @click.option("--max-bpm", type=click.FloatRange(min=0, min_open=True), default=None, help="Upper bound of the tempo search in BPM. [dim](default: 200)[/]")
    @click.option("--hop-length", type=click.IntRange(min=1), default=None, help="Analysis hop size in samples. [dim](default: 512)[/]")
    @click.option("--frame-length", type=click.IntRange(min=1), default=None, help="Analysis frame size in samples. [dim](default: 2048)[/]")
    @click.option("--beats-per-bar", type=click.IntRange(min=1), default=None, help="Beats per bar used to turn bar divisions into loop lengths. [dim](default: 4)[/]")
    @click.option("--min-loop-duration", type=click.FloatRange(min=0, min_open=True), default=None, help="The minimum loop duration in seconds.")
    @click.option("--max-loop-duration", type=click.FloatRange(min=0, min_open=True), default=None, help="The maximum loop duration in seconds.")
    @click.option("--beat-strategy", type=click.Choice(BEAT_STRATEGIES, case_sensitive=False), default=None, help="Beat tracking strategy: dynamic programming (dp) or greedy peak picking. [dim](default: dp)[/]")

    @functools.wraps(f)
    def wrapper_common_options(*args, **kwargs):
        if kwargs.get("beat_strategy") is not None:
            kwargs["beat_strategy"] = kwargs["beat_strategy"].lower()
        return f(*args, **kwargs)

    return wrapper_common_options


def common_export_options(f):
    @click.option('--output-dir', '-o', type=click.Path(exists=False, writable=True, file_okay=False), help="The output directory to use for the exported files.")

    @functools.wraps(f)
    def wrapper_common_options(*args, **kwargs):
        return f(*args, **kwargs)

    return wrapper_common_options


@cli_main.command()
@common_path_options
@common_analysis_options
@click.option("--json", "as_json", is_flag=True, default=False, help="Print the full analysis result as JSON instead of a summary.")
def analyze(as_json, **kwargs):
    """Analyze a track and show its tempo, beat grid and best loop candidates."""
    try:
        with Progress(
            SpinnerColumn(),
            *Progress.get_default_columns(),
            TimeElapsedColumn(),
            console=rich_console,
            transient=True
        ) as progress:
            progress.add_task("Analyzing", total=None)
            handler = AnalysisHandler(**kwargs)

        if as_json:
            handler.print_json()
        else:
            handler.print_summary()
    except (AudioLoadError, InsufficientLengthError, InvalidParameterError, Exception) as e:
        print_exception(e)


@cli_main.command()
@common_path_options
@common_analysis_options
@common_export_options
@click.option('--format', type=click.Choice(("WAV", "FLAC", "OGG"), case_sensitive=False), default="WAV", show_default=True, help="Audio format to use for the exported split audio files.")
def split_audio(**kwargs):
    """Split the input audio into intro, loop and outro sections."""
    kwargs["split_audio"] = True
    kwargs["format"] = kwargs["format"].upper()
    run_handler(**kwargs)


@cli_main.command()
@common_path_options
@common_analysis_options
@common_export_options
@click.option("--export-to", type=click.Choice(("STDOUT", "TXT"), case_sensitive=False), default="STDOUT", show_default=True, help="STDOUT: print the loop points of a track to the terminal; TXT: append the loop points to a loops.txt file.")
@click.option("--fmt", type=click.Choice(("SAMPLES", "SECONDS", "TIME"), case_sensitive=False), default="SAMPLES", show_default=True, help="Export loop points formatted as samples (default), seconds, or time (mm:ss.sss).")
@click.option("--all-candidates", is_flag=True, default=False, help="Export every ranked loop candidate (start, end, correlation, confidence) instead of only the chosen loop.")
def export_points(**kwargs):
    """Export the chosen loop points to a text file or to the terminal."""
    kwargs["to_stdout"] = kwargs["export_to"].upper() == "STDOUT"
    kwargs["to_txt"] = kwargs["export_to"].upper() == "TXT"
    kwargs["fmt"] = kwargs["fmt"].upper()
    kwargs.pop("export_to", "")

    run_handler(**kwargs)


def run_handler(**kwargs):
    try:
        kwargs["output_dir"] = str(get_outputdir(kwargs["path"], kwargs["output_dir"]))

        with Progress(
            SpinnerColumn(),
            *Progress.get_default_columns(),
            TimeElapsedColumn(),
            console=rich_console,
            transient=True
        ) as progress:
            progress.add_task("Processing", total=None)
            export_handler = LoopExportHandler(**kwargs)
        export_handler.run()
    except (AudioLoadError, InsufficientLengthError, InvalidParameterError, Exception) as e:
        print_exception(e)


def print_exception(e: Exception):
    if "PLG_DEBUG" in os.environ:
        rich_console.print_exception(suppress=[click])
    else:
        logging.error(e)


if __name__ == "__main__":
    cli_main()
