"""``courier config``: show or validate the configuration file."""

import tomllib
from pathlib import Path
from typing import Annotated

import click
import typer
from pydantic import ValidationError

from courier.cli.console import console, create_table, dim, error, success
from courier.config import CourierConfig


def register(app: typer.Typer) -> None:
    @app.command()
    def config(
        action: Annotated[
            str | None,
            typer.Argument(help="Action: show, validate"),
        ] = None,
        path: Annotated[
            Path | None,
            typer.Option(
                "--path",
                "-p",
                help="Config file to use (default: $COURIER_HOME/config.toml)",
            ),
        ] = None,
    ) -> None:
        """Show or validate the configuration file."""
        if action is None:
            click.echo(click.get_current_context().get_help())
            raise typer.Exit(0)

        handler = _ACTIONS.get(action)
        if handler is None:
            error(f"Unknown action: {action}")
            console.print(f"Valid actions: {', '.join(_ACTIONS)}")
            raise typer.Exit(1)

        from courier.config.paths import get_config_path

        target = path.expanduser() if path else get_config_path()
        if not target.exists():
            error(f"Config file not found: {target}")
            dim("Courier runs with defaults when no config file exists")
            raise typer.Exit(1)
        handler(target)


def _show(path: Path) -> None:
    from rich.syntax import Syntax

    console.print(f"[bold]Config file: {path}[/bold]\n")
    console.print(Syntax(path.read_text(), "toml", line_numbers=True))


def _validate(path: Path) -> None:
    from courier.config import load_config

    try:
        loaded = load_config(path)
    except tomllib.TOMLDecodeError as e:
        error(f"Invalid TOML: {e}")
        raise typer.Exit(1) from None
    except ValidationError as e:
        error("Configuration validation failed:")
        for problem in e.errors():
            where = ".".join(str(part) for part in problem["loc"])
            console.print(f"  [yellow]{where}[/yellow]: {problem['msg']}")
        raise typer.Exit(1) from None

    success("Configuration is valid!")
    console.print()
    console.print(_summary(loaded))


def _summary(config: CourierConfig):
    table = create_table(
        "Configuration Summary", [("Setting", "cyan"), ("Value", "green")]
    )
    rows = [
        ("Timezone", config.scheduling.timezone),
        ("Min re-arm", f"{config.scheduling.min_rearm_seconds}s"),
        ("State", str(config.storage.path)),
        ("Delivery", config.delivery.webhook_url or "[dim]log only[/dim]"),
        ("Server", f"{config.server.host}:{config.server.port}"),
        ("Admins", ", ".join(config.admin_users) or "[dim]none[/dim]"),
    ]
    for setting, value in rows:
        table.add_row(setting, value)
    return table


_ACTIONS = {"show": _show, "validate": _validate}
