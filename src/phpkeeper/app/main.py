"""Terminal user interface for managing Homebrew PHP versions."""

from __future__ import annotations

from textual.app import App, ComposeResult
from textual.containers import Vertical
from textual.reactive import reactive
from textual.widgets import Footer, Header

from phpkeeper.commands.base import BrewCommand
from phpkeeper.core.cache import Cache
from phpkeeper.core.errors import OperationError, PhpKeeperError, format_error_message
from phpkeeper.core.logging import get_logger
from phpkeeper.core.models import Formula, ProgressEvent
from phpkeeper.core.store import AppStore
from phpkeeper.providers.environment import HomebrewPhpEnvironment
from .keymap import BINDINGS as KEY_BINDINGS
from .theme import set_theme
from .widgets.formula_table import FormulaTable
from .widgets.logs_panel import LogsPanel
from .widgets.progress_panel import ProgressPanel

log = get_logger(__name__)


class PhpKeeper(App):
    """Main application class for phpkeeper."""

    TITLE = "phpkeeper"
    BINDINGS = KEY_BINDINGS

    busy: reactive[bool] = reactive(False)

    def __init__(self, store: AppStore | None = None) -> None:
        super().__init__()
        self.store = store or AppStore(HomebrewPhpEnvironment(), cache=Cache("brew"))

    def compose(self) -> ComposeResult:
        """Compose the UI layout."""
        yield Header(show_clock=True)
        with Vertical(id="main"):
            yield FormulaTable(id="table")
            yield ProgressPanel(id="progress")
            yield LogsPanel(id="logs")
        yield Footer()

    def on_mount(self) -> None:
        """Called when the app is mounted."""
        set_theme(self)
        self.run_worker(self._load(), exclusive=True)

    async def _load(self, outdated: bool = True) -> None:
        try:
            if self.store.formulae:
                await self.store.environment.detect_php_versions()
                await self.store.environment.refresh_active_installation()
                await self.store.reload(outdated=outdated)
            else:
                await self.store.initial_load(outdated=outdated)
        except PhpKeeperError as e:
            self.query_one(LogsPanel).write_line(format_error_message(e))
            return
        self._render_formulae()

    def _render_formulae(self) -> None:
        self.query_one(FormulaTable).load_formulae(
            self.store.formulae, self.store.environment.current_version
        )

    def _selected(self) -> Formula | None:
        table = self.query_one(FormulaTable)
        if not self.store.formulae or table.cursor_row < 0:
            return None
        return self.store.formulae[table.cursor_row]

    def on_progress(self, event: ProgressEvent) -> None:
        """Progress sink handed to operations."""
        self.query_one(ProgressPanel).show(event)
        self.query_one(LogsPanel).write_line(f"{event.title} {event.description}".replace("\n", " "))

    async def _run(self, command: BrewCommand) -> None:
        logs = self.query_one(LogsPanel)
        self.busy = True
        try:
            await self.store.run(command, self.on_progress)
        except OperationError as e:
            logs.write_line(format_error_message(e))
            logs.write_transcript(e.log)
            self.query_one(ProgressPanel).reset("Failed")
        except PhpKeeperError as e:
            logs.write_line(format_error_message(e))
        finally:
            self.busy = False
        self._render_formulae()

    def _start(self, command: BrewCommand) -> None:
        if self.busy:
            self.notify("Another operation is still running", severity="warning")
            return
        self.run_worker(self._run(command), exclusive=True)

    def action_install(self) -> None:
        formula = self._selected()
        if formula is not None and not formula.is_installed:
            self._start(self.store.install(formula))

    def action_upgrade(self) -> None:
        formula = self._selected()
        if formula is not None and formula.has_upgrade:
            self._start(self.store.upgrade(formula))

    def action_remove(self) -> None:
        formula = self._selected()
        if formula is not None and formula.is_installed:
            self._start(self.store.remove(formula))

    async def action_switch(self) -> None:
        formula = self._selected()
        if formula is None or not formula.is_installed or self.busy:
            return
        try:
            await self.store.environment.switch_to_version(formula.display_name.removeprefix("PHP "))
        except PhpKeeperError as e:
            self.query_one(LogsPanel).write_line(format_error_message(e))
        self._render_formulae()

    def action_refresh(self) -> None:
        if not self.busy:
            self.run_worker(self._load(), exclusive=True)


def run() -> None:
    """Run the phpkeeper application."""
    PhpKeeper().run()

if __name__ == "__main__":
    run()
