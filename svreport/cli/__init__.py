"""CLI entry point for svreport.

The top-level ``app`` Typer instance is assembled here by registering
command groups.
"""

import importlib.metadata

import typer

from svreport.cli.export_cmd import export_app
from svreport.cli.serve import serve_app
from svreport.cli.tables_cmd import flags_app, remarks_app

try:
    __version__ = importlib.metadata.version("svreport")
except importlib.metadata.PackageNotFoundError:
    __version__ = "dev"


app = typer.Typer(
    name="svreport",
    help="Software inventory reporting gateway and CSV exports.",
    add_completion=False,
    no_args_is_help=True,
)

app.add_typer(serve_app, name="serve", help="Run the gateway server.")
app.add_typer(export_app, name="export", help="Export inventory reports as CSV.")
app.add_typer(flags_app, name="flags", help="Manage the open-source flag list.")
app.add_typer(remarks_app, name="remarks", help="Manage software remarks.")


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"svreport {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True, help="Show version and exit."
    ),
) -> None:
    """Software inventory reporting gateway."""


__all__ = ["app"]
