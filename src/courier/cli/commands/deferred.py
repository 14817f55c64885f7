"""Deferred post inspection command."""

from pathlib import Path
from typing import Annotated

import typer

from courier.cli.console import (
    console,
    create_table,
    dim,
    format_countdown,
    open_state_store,
    truncate,
    warning,
)


def register(app: typer.Typer) -> None:
    """Register the deferred command."""

    @app.command()
    def deferred(
        config: Annotated[
            Path | None,
            typer.Option(
                "--config",
                "-c",
                help="Path to configuration file",
            ),
        ] = None,
    ) -> None:
        """List posts waiting for their fire time."""
        from courier.scheduling.deferrals import decode_ledger
        from courier.scheduling.persistence import DEFERRED_POSTS_KEY, load_json
        from courier.scheduling.timers import utcnow

        _, store = open_state_store(config)
        entries = sorted(
            decode_ledger(load_json(store, DEFERRED_POSTS_KEY)),
            key=lambda e: e.fire_at,
        )

        if not entries:
            warning("No deferred posts found")
            return

        table = create_table(
            None,
            [
                ("ID", "dim"),
                ("Channel", ""),
                ("Author", ""),
                ("Message", ""),
                ("Fire At", ""),
                ("Due", ""),
            ],
        )
        now = utcnow()
        for entry in entries:
            table.add_row(
                entry.id,
                entry.post.channel_id,
                entry.post.user_id,
                truncate(entry.post.message),
                entry.fire_at.isoformat(timespec="seconds"),
                format_countdown(entry.fire_at, now),
            )

        console.print(table)
        dim(f"\nTotal: {len(entries)} post(s)")
