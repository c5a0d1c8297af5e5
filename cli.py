"""
Command line entry point of the relay server.

Starts the WebSocket listener and runs until terminated. Options default
to the values from the environment (see relay/settings.py).

Example:
    python cli.py --port 3001 --mode echo
    relay-server --log-level debug
"""

import logging

import typer
import uvicorn
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from relay.constants import RelayMode
from relay.logging import setup_logging
from relay.settings import app_settings
from relay.uvicorn_filters import ExcludeMetricsFilter

typer_app = typer.Typer(
    name="relay-server",
    help="WebSocket broadcast relay - relays messages between connected clients",
    add_completion=False,
)
console = Console()


def _print_banner(host: str, port: int, mode: RelayMode) -> None:
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("Setting", style="cyan", justify="right")
    table.add_column("Value", style="yellow")

    table.add_row("Listening", f"ws://{host}:{port}/")
    table.add_row("Default mode", str(mode))
    table.add_row("Subprotocol", app_settings.WS_SUBPROTOCOL or "[dim]none[/dim]")
    table.add_row("Client ids", str(app_settings.CLIENT_ID_STRATEGY))
    table.add_row("Empty text", str(app_settings.EMPTY_TEXT_POLICY))
    table.add_row(
        "Send timeout", f"{app_settings.BROADCAST_SEND_TIMEOUT_SECONDS}s"
    )

    console.print()
    console.print(
        Panel.fit(table, title="[bold cyan]WebSocket Relay[/bold cyan]", border_style="cyan")
    )
    console.print()


@typer_app.command()
def serve(
    host: str = typer.Option(
        app_settings.HOST, "--host", help="Address to listen on"
    ),
    port: int = typer.Option(
        app_settings.PORT, "--port", "-p", help="Port to listen on"
    ),
    mode: RelayMode = typer.Option(
        app_settings.RELAY_MODE,
        "--mode",
        "-m",
        help="Relay mode served on '/'",
    ),
    log_level: str = typer.Option(
        app_settings.LOG_LEVEL, "--log-level", help="Root log level"
    ),
):
    """
    Start the relay and serve until interrupted.

    Exits with code 1 when the listener cannot bind.
    """
    app_settings.HOST = host
    app_settings.PORT = port
    app_settings.RELAY_MODE = mode
    app_settings.LOG_LEVEL = log_level.upper()

    setup_logging(app_settings.LOG_LEVEL)
    _print_banner(host, port, mode)

    config = uvicorn.Config(
        "relay:application",
        factory=True,
        host=host,
        port=port,
        log_level=log_level.lower(),
    )
    logging.getLogger("uvicorn.access").addFilter(ExcludeMetricsFilter())

    server = uvicorn.Server(config)
    server.run()

    if not server.started:
        console.print(f"[red]✗ Could not start listener on {host}:{port}[/red]")
        raise typer.Exit(code=1)


def main() -> None:
    typer_app()


if __name__ == "__main__":
    main()
