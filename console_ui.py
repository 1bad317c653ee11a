#!/usr/bin/env python3
"""
Console UI Module using Rich

Styled console output, throttled single-line status updates for long running
phases, summary tables, and log routing through Rich.
"""

import logging
import time
from typing import Any, Optional

from rich import box
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.table import Table
from rich.text import Text

from auxiliary import trim_start


class StatusLine:
    """Single updating status line that ignores updates arriving too quickly"""

    def __init__(self, progress: Progress, description: str, min_interval: float = 0.1):
        self.progress = progress
        self.min_interval = min_interval
        self._task = None
        self._description = description
        self._last_update = 0.0

    def __enter__(self) -> "StatusLine":
        self.progress.start()
        self._task = self.progress.add_task(self._description, total=None)
        return self

    def __exit__(self, exc_type, exc, tb):
        self.progress.stop()
        return False

    def _fit(self, message: str) -> str:
        # Keep the end of the message (the file name) when the line is too long
        width = self.progress.console.width - 16
        return trim_start(message, max(width, 20))

    def update(self, message: str):
        now = time.monotonic()
        if now - self._last_update < self.min_interval:
            return
        self._last_update = now
        if self._task is not None:
            self.progress.update(self._task, description=self._fit(message))

    __call__ = update


class ConsoleUI:
    """Console UI handler using Rich"""

    def __init__(self, force_terminal: Optional[bool] = None, console: Optional[Console] = None):
        """Initialize console with optional terminal forcing"""
        self.console = console or Console(force_terminal=force_terminal, highlight=False)

    # Basic styled output methods
    def print_success(self, message: str):
        """Print success message in green"""
        self.console.print(message, style="green")

    def print_error(self, message: str):
        """Print error message in red"""
        self.console.print(message, style="red bold")

    def print_warning(self, message: str):
        """Print warning message in yellow"""
        self.console.print(message, style="yellow")

    def print_info(self, message: str):
        """Print info message in cyan"""
        self.console.print(message, style="cyan")

    def print_plain(self, message: str):
        """Print message in plain white"""
        self.console.print(message, style="white", markup=False)

    def print_header(self, title: str, subtitle: Optional[str] = None):
        """Print a header with optional subtitle"""
        if subtitle:
            header_text = f"[bold]{title}[/bold]\n[dim]{subtitle}[/dim]"
        else:
            header_text = f"[bold]{title}[/bold]"

        panel = Panel(header_text, box=box.ROUNDED, padding=(0, 1))
        self.console.print(panel)

    def show_configuration(self, config: dict[str, Any]):
        """Display configuration in a formatted table"""
        table = Table(show_header=False, box=box.SIMPLE)
        table.add_column("Setting", style="cyan dim", min_width=20, justify="right")
        table.add_column("Value", style="cyan", min_width=30)

        for key, value in config.items():
            table.add_row(key, Text(str(value)))

        self.console.print(table)

    # Progress
    def create_activity_progress(self) -> Progress:
        """Create a Rich progress display for activity-only output (no counts)"""
        return Progress(
            SpinnerColumn(),
            TextColumn("{task.description}", markup=False),
            TimeElapsedColumn(),
            console=self.console,
            transient=True,
        )

    def status_line(self, description: str, min_interval: float = 0.1) -> StatusLine:
        """Create a throttled status line for a long running phase"""
        return StatusLine(self.create_activity_progress(), description, min_interval)

    # Result displays
    def show_file_list(self, paths: list[str], title: str):
        """Show a flat list of paths"""
        if not paths:
            self.print_info(f"No files for {title.lower()}")
            return

        self.console.print(f"\n[yellow]{title} ({len(paths)} files):[/yellow]")
        for path in paths:
            self.console.print(Text(f"    {path}", style="white dim"))

    def show_grouped_files(self, grouped_files: dict[str, list[str]], title: str = "Files by Category", show_limit: int = 5):
        """Show files grouped by category (e.g. duplicates per digest)"""
        if not grouped_files:
            self.print_info(f"No files found for {title.lower()}")
            return

        self.console.print(f"\n[yellow]{title}:[/yellow]")
        for category, files in grouped_files.items():
            if not files:
                continue

            self.console.print(f"\n[yellow]{category} ({len(files)} files)[/yellow]")

            for filename in files[:show_limit]:
                self.console.print(Text(f"    • {filename}", style="white dim"))

            if len(files) > show_limit:
                remaining = len(files) - show_limit
                self.console.print(f"[white dim]    • ... and {remaining} more[/white dim]")

    def show_operation_summary(self, successful: list[str], failed: list[tuple[str, str]], operation_name: str = "moved"):
        """Show summary of completed operations"""
        if successful:
            self.print_success(f"Successfully {operation_name} {len(successful)} files")

        if failed:
            self.print_error(f"Could not handle {len(failed)} files:")
            for filename, error in failed:
                self.console.print(Text(f"  • {filename}: {error}", style="red dim"))

    # Logging
    def attach_logging(self, level: int = logging.INFO) -> logging.Handler:
        """Route standard logging through this console"""
        handler = RichHandler(console=self.console, show_path=False, show_time=False, markup=False)
        handler.setFormatter(logging.Formatter("%(message)s"))

        root_logger = logging.getLogger()
        for existing in list(root_logger.handlers):
            if isinstance(existing, RichHandler):
                root_logger.removeHandler(existing)
        root_logger.addHandler(handler)
        root_logger.setLevel(level)
        return handler
