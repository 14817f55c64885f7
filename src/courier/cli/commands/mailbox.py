"""Waiting-for-online mailbox inspection command."""

from pathlib import Path
from typing import Annotated

import typer

from courier.cli.console import (
    console,
    create_table,
    dim,
    open_state_store,
    truncate,
    warning,
)


def register(app: typer.Typer) -> None:
    """Register the mailbox command."""

    @app.command()
    def mailbox(
        recipient: Annotated[
            str | None,
            typer.Option(
                "--recipient",
                "-r",
                help="Only show posts waiting for this user",
            ),
        ] = None,
        config: Annotated[
            Path | None,
            typer.Option(
                "--config",
                "-c",
                help="Path to configuration file",
            ),
        ] = None,
    ) -> None:
        """List posts waiting for their recipient to come online."""
        from courier.scheduling.mailbox import decode_mailbox
        from courier.scheduling.persistence import WAITING_FOR_ONLINE_KEY, load_json

        _, store = open_state_store(config)
        pending = decode_mailbox(load_json(store, WAITING_FOR_ONLINE_KEY))
        if recipient is not None:
            pending = {k: v for k, v in pending.items() if k == recipient}

        if not pending:
            warning("No posts waiting for online users")
            return

        table = create_table(
            None,
            [("Recipient", "cyan"), ("Channel", ""), ("Author", ""), ("Message", "")],
        )
        total = 0
        for recipient_id in sorted(pending):
            for post in pending[recipient_id]:
                table.add_row(
                    recipient_id, post.channel_id, post.user_id, truncate(post.message)
                )
                total += 1

        console.print(table)
        dim(f"\nTotal: {total} post(s) for {len(pending)} recipient(s)")
