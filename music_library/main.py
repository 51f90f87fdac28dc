"""CLI entry point for the music library service."""

from pathlib import Path
from typing import Annotated, Optional

import typer
from pydantic import ValidationError
from rich import print as rprint
from rich.console import Console
from rich.table import Table

from music_library.utils.config import Settings, load_config, save_config
from music_library.utils.logging import configure_logging

app = typer.Typer(
    name="library",
    help="Music Library - in-memory users, artists, albums, tracks and favorites API",
    no_args_is_help=True,
)
console = Console()


def get_config_path(config: Optional[Path]) -> Path:
    """Get the configuration file path."""
    return config or Path("config.yaml")


def _load_settings(config_path: Path) -> Settings:
    try:
        return load_config(config_path)
    except ValidationError as e:
        rprint(f"[red]Invalid configuration in {config_path}:[/red]\n{e}")
        raise typer.Exit(1)


@app.command()
def serve(
    config: Annotated[
        Optional[Path],
        typer.Option("--config", "-c", help="Path to configuration file"),
    ] = None,
    host: Annotated[
        Optional[str],
        typer.Option("--host", help="Host to bind to (overrides config)"),
    ] = None,
    port: Annotated[
        Optional[int],
        typer.Option("--port", "-p", help="Port to listen on (overrides config)"),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable debug logging"),
    ] = False,
) -> None:
    """Run the HTTP API. Library state lives only as long as the process."""
    config_path = get_config_path(config)
    settings = _load_settings(config_path)

    if host:
        settings.server.host = host
    if port:
        settings.server.port = port

    configure_logging(settings.logging, verbose=verbose)

    rprint("\n[bold blue]Starting Music Library[/bold blue]\n")
    rprint(f"Config: {config_path}")
    rprint(f"Listening on: [cyan]http://{settings.server.host}:{settings.server.port}[/cyan]")
    rprint("Press Ctrl+C to stop\n")

    from music_library.web.app import run_server

    run_server(settings)


@app.command("init-config")
def init_config(
    config: Annotated[
        Optional[Path],
        typer.Option("--config", "-c", help="Path to configuration file"),
    ] = None,
    force: Annotated[
        bool,
        typer.Option("--force", "-f", help="Overwrite an existing file"),
    ] = False,
) -> None:
    """Write a configuration file with default settings."""
    config_path = get_config_path(config)

    if config_path.exists() and not force:
        rprint(f"[yellow]![/yellow] {config_path} already exists (use --force to overwrite)")
        raise typer.Exit(1)

    save_config(Settings(), config_path)
    rprint(f"[green]✓[/green] Wrote default configuration to [cyan]{config_path}[/cyan]")


@app.command("show-config")
def show_config(
    config: Annotated[
        Optional[Path],
        typer.Option("--config", "-c", help="Path to configuration file"),
    ] = None,
) -> None:
    """Show the effective settings."""
    config_path = get_config_path(config)
    settings = _load_settings(config_path)

    source = str(config_path) if config_path.exists() else "defaults and environment"
    table = Table(title=f"Settings ({source})")
    table.add_column("Key", style="cyan")
    table.add_column("Value")

    for section, values in settings.model_dump(mode="json").items():
        for key, value in values.items():
            table.add_row(f"{section}.{key}", str(value))

    console.print(table)


if __name__ == "__main__":
    app()
