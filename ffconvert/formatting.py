"""Rich-based console formatting utilities"""

from typing import Sequence

from rich.console import Console
from rich.table import Table
from rich.text import Text

from .utils import format_size

console = Console()

def print_check(message: str) -> None:
    """Print a checkmark message in bold green."""
    text = Text("✓ ", style="bold green") + Text(message, style="bold")
    console.print(text)

def print_warning(message: str) -> None:
    """Print a warning message in bold yellow."""
    text = Text("⚠ ", style="bold yellow") + Text(message, style="bold")
    console.print(text)

def print_error(message: str) -> None:
    """Print an error message in bold red."""
    text = Text("✗ ", style="bold red") + Text(message, style="bold")
    console.print(text)

def print_header(title: str, width: int = 80) -> None:
    """Print a decorative header."""
    separator = Text("=" * width, style="bold blue")
    padding = (width - len(title)) // 2
    title_line = " " * padding + title
    console.print(separator)
    console.print(title_line, style="bold blue")
    console.print(separator)

def print_info(message: str) -> None:
    """Print an informational message in a subtle style."""
    text = Text("ℹ ", style="bold blue") + Text(message, style="blue")
    console.print(text)

def print_metrics(metrics: Sequence) -> None:
    """Print collected conversion metrics as a table."""
    table = Table(title="Conversion metrics")
    for column in ("File", "#", "Engine", "Format", "Video", "Audio", "Input", "Output", "Time"):
        table.add_column(column)
    for metric in metrics:
        table.add_row(
            metric.file,
            str(metric.job_index),
            metric.variant.value,
            metric.format,
            metric.video_codec,
            metric.audio_codec,
            format_size(metric.input_size),
            format_size(metric.output_size),
            f"{metric.elapsed_seconds:.2f}s",
        )
    console.print(table)

def print_rows(title: str, columns: Sequence[str], rows: Sequence[Sequence[str]]) -> None:
    """Print an arbitrary listing as a table."""
    table = Table(title=title)
    for column in columns:
        table.add_column(column)
    for row in rows:
        table.add_row(*row)
    console.print(table)
