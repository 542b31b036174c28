"""Widget to display a table of PHP formulae."""

from __future__ import annotations

from textual.widgets import DataTable

from phpkeeper.core.models import Formula


class FormulaTable(DataTable):
    """Widget to display a table of PHP formulae."""

    def on_mount(self) -> None:
        """Called when the widget is mounted."""
        self.zebra_stripes = True
        self.cursor_type = "row"

        self.add_column("Version", key="version")
        self.add_column("Formula", key="formula")
        self.add_column("Installed", key="installed")
        self.add_column("Upgrade", key="upgrade")

    def load_formulae(self, formulae: list[Formula], active: str | None = None) -> None:
        """Load formulae into the table, keeping the cursor position."""
        row = self.cursor_row
        self.clear()
        for f in formulae:
            label = f.display_name
            if f.display_name.removeprefix("PHP ") == active:
                label = f"● {label}"
            if f.prerelease:
                label = f"{label} (pre-release)"
            self.add_row(
                label,
                f.name,
                f.installed_version or "-",
                f.upgrade_version or "",
                key=f.name,
            )

        if formulae:
            self.move_cursor(row=min(row, len(formulae) - 1))
