"""Console helpers shared by the courier CLI commands."""

from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

import typer
from rich.console import Console
from rich.table import Table

if TYPE_CHECKING:
    from courier.config.models import CourierConfig
    from courier.storage import FileKeyValueStore

console = Console()

# Largest unit first; a countdown shows at most two of these.
_COUNTDOWN_UNITS = (("d", 86400), ("h", 3600), ("m", 60), ("s", 1))


def _styled(style: str, msg: str) -> None:
    console.print(f"[{style}]{msg}[/{style}]")


def error(msg: str) -> None:
    _styled("red", msg)


def warning(msg: str) -> None:
    _styled("yellow", msg)


def success(msg: str) -> None:
    _styled("green", msg)


def dim(msg: str) -> None:
    _styled("dim", msg)


def create_table(title: str | None, columns: list[tuple[str, Any]]) -> Table:
    """Build a table from ``(header, style)`` pairs.

    The second element may also be a dict of ``add_column`` keyword
    arguments when a column needs more than a style (width, justify...).
    """
    table = Table(title=title)
    for header, options in columns:
        kwargs = options if isinstance(options, dict) else {"style": options}
        table.add_column(header, **kwargs)
    return table


def truncate(text: str, limit: int = 40) -> str:
    if len(text) <= limit:
        return text
    return f"{text[:limit]}..."


def format_countdown(next_fire: datetime | None, now: datetime | None = None) -> str:
    """Render the time until ``next_fire`` as "in 2h 30m"."""
    if next_fire is None:
        return "[dim]?[/dim]"

    remaining = int((next_fire - (now or datetime.now(UTC))).total_seconds())
    if remaining <= 0:
        return "[green]now[/green]"

    parts: list[str] = []
    for suffix, size in _COUNTDOWN_UNITS:
        amount, remaining = divmod(remaining, size)
        if amount:
            parts.append(f"{amount}{suffix}")
        elif parts:
            # Keep "1d 3h" but never "1d 0h 5m".
            break
        if len(parts) == 2:
            break
    return "in " + " ".join(parts)


def open_state_store(
    config_path: Path | None,
) -> tuple[CourierConfig, FileKeyValueStore]:
    """Load the config and open the state directory it names.

    Exits with status 1 when the config cannot be loaded.
    """
    from courier.config import load_config
    from courier.storage import FileKeyValueStore

    try:
        config = load_config(config_path)
    except Exception as e:
        error(f"Error loading config: {e}")
        raise typer.Exit(1) from None
    return config, FileKeyValueStore(config.storage.path)
