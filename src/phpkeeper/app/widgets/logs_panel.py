"""Widgets for displaying operation logs in the application."""

from __future__ import annotations

from textual.widgets import Log


class LogsPanel(Log):
    """Panel to display Homebrew output and operation results."""

    def on_mount(self) -> None:
        """Called when the logs panel is mounted."""
        self.highlight = True
        self.write_line("Logs ready...")

    def write_transcript(self, lines: list[str]) -> None:
        """Append the output of a failed Homebrew step."""
        self.write_lines(lines)
