"""CLI commands for intercom-mcp.

``serve`` runs the MCP server over stdin/stdout; ``init`` writes a default
config file; ``tools`` and ``version`` are inspection helpers. Console output
goes to stderr when serving, since stdout carries the protocol.
"""

import asyncio
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from intercom_mcp import __logo__, __version__

app = typer.Typer(
    name="intercom-mcp",
    help=f"{__logo__} intercom-mcp - Intercom support data over the Model Context Protocol",
    no_args_is_help=True,
)

console = Console()
err_console = Console(stderr=True)


def version_callback(value: bool):
    if value:
        console.print(f"{__logo__} intercom-mcp v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None, "--version", "-V", callback=version_callback, is_eager=True
    ),
):
    """intercom-mcp - Intercom MCP server."""
    pass


def _load(config_path: Path | None):
    from intercom_mcp.config.loader import load_config

    try:
        return load_config(config_path)
    except ValueError as e:
        err_console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)


@app.command()
def init(
    config_path: Path = typer.Option(None, "--config", "-c", help="Where to write config.json (default ~/.intercom-mcp/config.json)"),
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite an existing file without asking"),
):
    """Write a config file with default settings."""
    from intercom_mcp.config.loader import get_config_path, save_config
    from intercom_mcp.config.schema import Config

    path = config_path or get_config_path()
    if path.exists() and not force:
        console.print(f"[yellow]Config already exists at {path}[/yellow]")
        if not typer.confirm("Overwrite with defaults?"):
            console.print("Left the existing config unchanged.")
            raise typer.Exit()

    save_config(Config(), path)
    console.print(f"[green]✓[/green] Wrote config to {path}")
    console.print("The access token is never stored here; set [cyan]INTERCOM_ACCESS_TOKEN[/cyan] before [bold]intercom-mcp serve[/bold].")


@app.command()
def serve(
    config_path: Path = typer.Option(None, "--config", "-c", help="Path to config.json (default ~/.intercom-mcp/config.json)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging on stderr"),
):
    """Serve Intercom tools over stdio until the client disconnects."""
    from loguru import logger

    from intercom_mcp.cli.logging_utils import setup_logging
    from intercom_mcp.server.app import run_stdio_server

    config = _load(config_path)
    log_path = setup_logging(config.logging, name="serve", verbose=verbose)

    if not config.has_access_token:
        err_console.print("[red]No Intercom access token configured.[/red]")
        err_console.print("Set [cyan]INTERCOM_ACCESS_TOKEN[/cyan] or [bold]intercom.accessToken[/bold] in the config file.")
        raise typer.Exit(1)

    err_console.print(f"{__logo__} Starting intercom-mcp v{__version__} on stdio")
    if log_path is not None:
        err_console.print(f"[dim]Logs: {log_path}[/dim]")

    try:
        asyncio.run(run_stdio_server(config))
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")


@app.command()
def tools(
    config_path: Path = typer.Option(None, "--config", "-c", help="Path to config.json"),
):
    """List the tools the server exposes."""
    from intercom_mcp.intercom.client import IntercomClient
    from intercom_mcp.tools.intercom_tools import build_tool_registry

    config = _load(config_path)
    # Listing never calls the API, so a missing token is fine here.
    client = IntercomClient(
        config.intercom.api_base_url,
        config.intercom.access_token or "unset",
    )
    registry = build_tool_registry(client)

    table = Table(title="Intercom MCP Tools")
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("Required")
    table.add_column("Description")
    for definition in registry.get_definitions():
        required = ", ".join(definition["inputSchema"].get("required", []))
        summary = definition["description"].splitlines()[0]
        table.add_row(definition["name"], required or "[dim](none)[/dim]", summary)
    console.print(table)


@app.command()
def version():
    """Show the installed version."""
    console.print(f"{__logo__} intercom-mcp v{__version__}")


if __name__ == "__main__":
    app()
