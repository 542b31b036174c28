"""Progress display for a running Homebrew operation."""

from __future__ import annotations

from textual.containers import Vertical
from textual.widgets import ProgressBar, Static

from phpkeeper.core.models import ProgressEvent


class ProgressPanel(Vertical):
    """Title, description and bar of the operation in progress."""

    def compose(self):
        yield Static("Idle", id="progress_title")
        yield Static("", id="progress_description")
        yield ProgressBar(total=100, show_eta=False, id="progress_bar")

    def show(self, event: ProgressEvent) -> None:
        self.query_one("#progress_title", Static).update(event.title)
        self.query_one("#progress_description", Static).update(event.description)
        self.query_one("#progress_bar", ProgressBar).update(progress=round(event.value * 100))

    def reset(self, title: str = "Idle") -> None:
        self.query_one("#progress_title", Static).update(title)
        self.query_one("#progress_description", Static).update("")
        self.query_one("#progress_bar", ProgressBar).update(progress=0)
