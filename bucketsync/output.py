"""Output formatting for the bucketsync CLI and sync engine."""

import json
from typing import Any, Optional

from rich.console import Console
from rich.table import Table

from .utils import format_size


class OutputFormatter:
    """Formats user-facing output as rich text or JSON.

    Informational messages are suppressed in quiet mode; errors and warnings
    always go to stderr.
    """

    def __init__(
        self,
        json_output: bool = False,
        quiet: bool = False,
        console: Optional[Console] = None,
        err_console: Optional[Console] = None,
    ):
        """Initialize output formatter.

        Args:
            json_output: Whether to emit machine-readable JSON
            quiet: Whether to suppress non-essential output
            console: Console for regular output (defaults to stdout)
            err_console: Console for warnings and errors (defaults to stderr)
        """
        self.json_output = json_output
        self.quiet = quiet
        self.console = console or Console()
        self.err_console = err_console or Console(stderr=True)

    def print(self, message: str = "") -> None:
        if not self.quiet and not self.json_output:
            self.console.print(message, highlight=False)

    def info(self, message: str) -> None:
        if not self.quiet and not self.json_output:
            self.console.print(message, style="cyan", highlight=False)

    def success(self, message: str) -> None:
        if not self.quiet and not self.json_output:
            self.console.print(message, style="green", highlight=False)

    def warning(self, message: str) -> None:
        self.err_console.print(message, style="yellow", highlight=False)

    def error(self, message: str) -> None:
        self.err_console.print(message, style="bold red", highlight=False)

    def format_size(self, size_bytes: int) -> str:
        return format_size(size_bytes)

    def output_json(self, data: Any) -> None:
        """Write data as indented JSON to stdout."""
        self.console.print_json(json.dumps(data, default=str))

    def print_summary(self, title: str, rows: list[tuple[str, str]]) -> None:
        """Print a two-column summary table.

        Args:
            title: Table title
            rows: (label, value) pairs
        """
        if self.quiet or self.json_output:
            return
        table = Table(title=title, show_header=False)
        table.add_column("Field", style="bold")
        table.add_column("Value")
        for label, value in rows:
            table.add_row(label, value)
        self.console.print(table)
