"""Queue inspection commands.

Reads the persisted queue table directly, so it works whether or not a
server is running. Changes go through the server's HTTP API.
"""

from pathlib import Path
from typing import Annotated

import typer

from courier.cli.console import (
    console,
    create_table,
    dim,
    error,
    format_countdown,
    open_state_store,
    truncate,
    warning,
)


def register(app: typer.Typer) -> None:
    """Register the queues command."""

    @app.command()
    def queues(
        name: Annotated[
            str | None,
            typer.Argument(help="Queue to show messages for"),
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
        """List queues, or the backlog of one queue.

        Examples:
            courier queues            # All queues with their next tick
            courier queues standup    # Messages waiting in "standup"
        """
        from courier.scheduling.persistence import QUEUES_KEY, load_json
        from courier.scheduling.queues import decode_queue_table

        courier_config, store = open_state_store(config)
        table = decode_queue_table(load_json(store, QUEUES_KEY))

        if name is None:
            _list_queues(table, courier_config.scheduling.timezone)
            return

        queue = table.get(name)
        if queue is None:
            error(f"Unknown queue {name}")
            raise typer.Exit(1)
        _list_messages(queue)


def _list_queues(table, timezone: str) -> None:
    from courier.errors import InvalidScheduleError
    from courier.scheduling import CronSchedule
    from courier.scheduling.timers import utcnow

    if not table:
        warning("No queues found")
        return

    rich_table = create_table(
        None,
        [
            ("Name", "cyan"),
            ("Schedule", ""),
            ("Channel", ""),
            ("Owner", "dim"),
            ("Pending", {"justify": "right"}),
            ("Next Message", ""),
            ("Next Tick", ""),
        ],
    )

    now = utcnow()
    for name in sorted(table):
        queue = table[name]
        try:
            next_fire = CronSchedule(queue.schedule, timezone).next_after(now)
            countdown = format_countdown(next_fire, now)
        except InvalidScheduleError:
            countdown = "[red]invalid schedule[/red]"
        rich_table.add_row(
            queue.name,
            queue.schedule,
            queue.channel_id,
            queue.owner_id,
            str(len(queue.messages)),
            truncate(queue.messages[0]) if queue.messages else "[dim]empty[/dim]",
            countdown,
        )

    console.print(rich_table)
    dim(f"\nTotal: {len(table)} queue(s)")


def _list_messages(queue) -> None:
    if not queue.messages:
        warning(f"Queue {queue.name} has no messages")
        return

    rich_table = create_table(
        f"{queue.name} ({queue.schedule})",
        [("#", {"style": "dim", "justify": "right"}), ("Message", "")],
    )
    for position, message in enumerate(queue.messages):
        rich_table.add_row(str(position), message)
    console.print(rich_table)
