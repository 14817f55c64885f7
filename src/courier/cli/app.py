"""Main CLI application."""

import typer

from courier.cli.commands import config, deferred, mailbox, queues, serve

app = typer.Typer(
    name="courier",
    help="Courier - deferred and recurring post delivery",
    no_args_is_help=True,
)

for command in (serve, config, queues, deferred, mailbox):
    command.register(app)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
