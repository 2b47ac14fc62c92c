"""CLI console helpers with optional Rich support.

Everything pg-wrap prints goes to stderr: stdout belongs to the client
program that replaces this process.  Rich is imported lazily so the
wrapper still reports errors when it is not installed.
"""

from __future__ import annotations

import sys
from typing import Any

from pgwrap.exceptions import PgWrapError


class RichUnavailableError(PgWrapError):
    """Raised when rich cannot be imported."""


def _load_rich_console_class() -> type[Any]:
    """Return ``rich.console.Console`` class or raise ``RichUnavailableError``."""
    try:
        from rich.console import Console
    except ModuleNotFoundError as exc:
        raise RichUnavailableError(
            "rich is not installed. Install with: pip install rich",
        ) from exc
    return Console


def get_rich_console() -> Any:
    """Create a Rich console instance targeting stderr."""
    console_class = _load_rich_console_class()
    return console_class(stderr=True)


class _ConsoleProxy:
    """Minimal ``print``-compatible proxy with plain-stderr fallback."""

    def print(self, *objects: object) -> None:
        """Render with Rich when available, else plain stderr print."""
        try:
            rich_console = get_rich_console()
        except RichUnavailableError:
            print(*(_strip_markup(obj) for obj in objects), file=sys.stderr)
            return
        rich_console.print(*objects)


def _strip_markup(obj: object) -> object:
    """Remove the ``[style]...[/style]`` tags used in this package."""
    if not isinstance(obj, str):
        return obj
    for tag in ("bold red", "bold green", "bold", "red", "green", "yellow", "dim", "cyan"):
        obj = obj.replace(f"[{tag}]", "").replace(f"[/{tag}]", "")
    return obj


def escape(text: str) -> str:
    """Escape Rich markup in *text*; identity when Rich is unavailable."""
    try:
        from rich.markup import escape as rich_escape
    except ModuleNotFoundError:
        return text
    return rich_escape(text)


console = _ConsoleProxy()
