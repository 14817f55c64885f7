"""CLI command modules."""

from courier.cli.commands import config, deferred, mailbox, queues, serve

__all__ = [
    "config",
    "deferred",
    "mailbox",
    "queues",
    "serve",
]
