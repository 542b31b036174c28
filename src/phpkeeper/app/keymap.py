"""Key mappings for the phpkeeper application."""

from textual.binding import Binding

BINDINGS = [
    Binding("q", "quit", "Quit"),
    Binding("i", "install", "Install"),
    Binding("u", "upgrade", "Upgrade"),
    Binding("x", "remove", "Remove"),
    Binding("s", "switch", "Use version"),
    Binding("r", "refresh", "Refresh"),
    Binding("l", "focus('logs')", "Logs", show=False),
]
