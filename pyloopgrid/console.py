"""
Console utilities and Rich formatting for pyloopgrid.

Provides the shared console, score styling, result tables and the
rich-click --help groups.
"""

from rich.box import ROUNDED
from rich.console import Console
from rich.style import Style
from rich.table import Table
from rich.text import Text

# Module-level rich console instance
rich_console = Console()

# ============================================================================
# STYLES
# ============================================================================

STYLE_SCORE_HIGH = Style(color="green", bold=True)
STYLE_SCORE_MED = Style(color="yellow")
STYLE_SCORE_LOW = Style(color="red")


# ============================================================================
# UI COMPONENTS
# ============================================================================

def score_to_style(score: float) -> Style:
    """Get appropriate style for a score value."""
    if score >= 0.75:
        return STYLE_SCORE_HIGH
    elif score >= 0.5:
        return STYLE_SCORE_MED
    else:
        return STYLE_SCORE_LOW


def format_score(score: float, width: int = 6) -> Text:
    """Format a score with appropriate coloring."""
    text = f"{score:.1%}".rjust(width)
    return Text(text, style=score_to_style(score))


def create_results_table(
    title: str,
    columns: list[tuple[str, str, str]],  # (name, style, justify)
) -> Table:
    """Create a styled results table."""
    table = Table(
        title=title,
        box=ROUNDED,
        header_style="bold cyan",
        border_style="dim",
        row_styles=["", "dim"],
    )

    for name, style, justify in columns:
        table.add_column(name, style=style, justify=justify)

    return table


# ============================================================================
# CLI HELP STYLING
# ============================================================================

# Creating groups for CLI --help styling
_basic_options = ["--path"]
_analysis_options = [
    "--min-bpm",
    "--max-bpm",
    "--hop-length",
    "--frame-length",
    "--beats-per-bar",
    "--min-loop-duration",
    "--max-loop-duration",
    "--beat-strategy",
]
_export_options = ["--output-dir", "--format"]


def _option_groups(additional_basic_options=None):
    if additional_basic_options is not None:
        combined_basic_options = _basic_options + additional_basic_options
    else:
        combined_basic_options = _basic_options
    return [
        {
            "name": "Basic options",
            "options": combined_basic_options,
        },
        {
            "name": "Analysis options",
            "options": _analysis_options,
        },
        {
            "name": "Export options",
            "options": _export_options,
        },
    ]


_OPTION_GROUPS = {
    "pyloopgrid analyze": _option_groups(["--json"]),
    "pyloopgrid split-audio": _option_groups(),
    "pyloopgrid export-points": _option_groups(["--export-to", "--fmt", "--all-candidates"]),
}

_COMMAND_GROUPS = {
    "pyloopgrid": [
        {
            "name": "Analysis Commands",
            "commands": ["analyze"],
        },
        {
            "name": "Export Commands",
            "commands": [
                "export-points",
                "split-audio",
            ],
        },
    ]
}
