"""Console output helpers built on rich."""

import sys
from typing import Optional

from rich.console import Console


class OutputFormatter:
    """Formats user-facing messages for the command line client.

    Regular messages go to standard output, errors and warnings to
    standard error. ``quiet`` suppresses everything but errors and warnings.
    """

    def __init__(
        self,
        quiet: bool = False,
        console: Optional[Console] = None,
        err_console: Optional[Console] = None,
    ):
        self.quiet = quiet
        self.console = console or Console(highlight=False, soft_wrap=True)
        self.err_console = err_console or Console(
            file=sys.stderr, highlight=False, soft_wrap=True
        )

    def info(self, message: str) -> None:
        if not self.quiet:
            self.console.print(message, markup=False)

    def success(self, message: str) -> None:
        if not self.quiet:
            self.console.print(message, style="green", markup=False)

    def warning(self, message: str) -> None:
        self.err_console.print(f"Warning: {message}", style="yellow", markup=False)

    def error(self, message: str) -> None:
        self.err_console.print(f"Error: {message}", style="bold red", markup=False)

    def print_summary(self, title: str, items: list[tuple[str, str]]) -> None:
        """Print a titled list of key/value pairs."""
        if self.quiet:
            return
        self.console.print(title, style="bold", markup=False)
        width = max((len(key) for key, _ in items), default=0)
        for key, value in items:
            self.console.print(f"  {key.ljust(width)}  {value}", markup=False)
