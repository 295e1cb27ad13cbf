import logging

from rich.console import Console
from rich.logging import RichHandler

# stdout carries hook JSON, so log lines always go to stderr
_stderr = Console(stderr=True)


def configure_logging(level: str = "WARNING") -> None:
    """Route the package's log records through rich on stderr."""
    root = logging.getLogger("paceguard_cli")
    root.setLevel(getattr(logging, level.upper(), logging.WARNING))
    if not any(isinstance(h, RichHandler) for h in root.handlers):
        handler = RichHandler(console=_stderr, show_path=False, markup=False)
        handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
        root.addHandler(handler)
