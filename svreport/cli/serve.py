"""The 'serve' command: run the gateway."""

from pathlib import Path
from typing import Union

import typer

from svreport.cli.common import console, load_settings

serve_app = typer.Typer(
    name="serve",
    help="Run the gateway server.",
    add_completion=False,
)


@serve_app.callback(invoke_without_command=True)
def serve_command(
    host: Union[str, None] = typer.Option(None, "--host", help="Bind address."),
    port: Union[int, None] = typer.Option(None, "--port", "-p", help="Port to listen on."),
    upstream: Union[str, None] = typer.Option(
        None, "--upstream", help="Upstream inventory API base URL."
    ),
    production: bool = typer.Option(
        False, "--production", help="Serve the built frontend from the static directory."
    ),
    config: Union[Path, None] = typer.Option(None, "--config", "-c", help="YAML settings file."),
) -> None:
    """Start the gateway: local flag/remark API plus the upstream proxy."""
    settings = load_settings(
        config,
        host=host,
        port=port,
        upstream_url=upstream,
        environment="production" if production else None,
    )

    console.print(f"[cyan]Starting gateway on http://{settings.host}:{settings.port}[/cyan]")
    if settings.upstream_configured:
        console.print(f"[dim]Proxying /api/* to {settings.upstream_base_url}[/dim]")
    else:
        console.print("[yellow]No upstream configured; only local endpoints are served.[/yellow]")
    console.print("[dim]Press Ctrl+C to stop.[/dim]\n")

    from svreport.web import run_web

    run_web(settings)
