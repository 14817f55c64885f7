"""Server command for running the Courier service."""

import asyncio
import logging
from pathlib import Path
from typing import Annotated

import typer

logger = logging.getLogger(__name__)


def register(app: typer.Typer) -> None:
    """Register the serve command."""

    @app.command()
    def serve(
        config: Annotated[
            Path | None,
            typer.Option(
                "--config",
                "-c",
                help="Path to configuration file",
            ),
        ] = None,
        host: Annotated[
            str | None,
            typer.Option(
                "--host",
                "-h",
                help="Host to bind to (default: server.host)",
            ),
        ] = None,
        port: Annotated[
            int | None,
            typer.Option(
                "--port",
                "-p",
                help="Port to bind to (default: server.port)",
            ),
        ] = None,
    ) -> None:
        """Start the Courier server."""
        try:
            asyncio.run(_run_server(config, host, port))
        except KeyboardInterrupt:
            # Use print here since logging may not be configured yet
            print("\nServer stopped")


async def _run_server(
    config_path: Path | None = None,
    host: str | None = None,
    port: int | None = None,
) -> None:
    """Run the server asynchronously."""
    import uvicorn

    from courier.logging import configure_logging

    # Rich console output plus JSONL files under $COURIER_HOME/logs
    configure_logging(use_rich=True, log_to_file=True)

    from courier.config import load_config
    from courier.scheduling import SchedulingEngine
    from courier.senders import create_sender
    from courier.server.app import create_app
    from courier.storage import FileKeyValueStore

    logger.info("Loading configuration")
    courier_config = load_config(config_path)

    store = FileKeyValueStore(courier_config.storage.path)
    logger.info(f"State directory: {store.root}")

    engine = SchedulingEngine(
        store,
        create_sender(courier_config.delivery),
        timezone=courier_config.scheduling.timezone,
        min_rearm_delay=courier_config.scheduling.min_rearm_delay,
    )
    app = create_app(engine, courier_config)

    uvicorn_config = uvicorn.Config(
        app,
        host=host or courier_config.server.host,
        port=port or courier_config.server.port,
        log_config=None,
    )
    server = uvicorn.Server(uvicorn_config)
    await server.serve()
