"""The 'flags' and 'remarks' command groups: edit the gateway's local tables."""

import asyncio
import json
from pathlib import Path
from typing import Union

import typer
from rich.table import Table

from svreport.cli.common import console, load_settings, setup_logging
from svreport.clients import AugmentationClient
from svreport.errors import UpstreamError

flags_app = typer.Typer(name="flags", help="Manage the open-source flag list.", add_completion=False)
remarks_app = typer.Typer(name="remarks", help="Manage software remarks.", add_completion=False)

_GATEWAY_OPTION = typer.Option(None, "--gateway", help="Gateway base URL.")
_CONFIG_OPTION = typer.Option(None, "--config", "-c", help="YAML settings file.")


def _call(gateway: Union[str, None], config: Union[Path, None], action):
    """Run *action(client)* against the gateway, exiting 1 on failure."""
    settings = load_settings(config, gateway_url=gateway)
    setup_logging(False, settings)

    async def _run():
        async with AugmentationClient(settings.gateway_url) as client:
            return await action(client)

    try:
        return asyncio.run(_run())
    except UpstreamError as e:
        console.print(f"[red]Gateway request failed: {e}[/red]")
        raise typer.Exit(1) from e


@flags_app.command("list")
def list_flags(
    gateway: Union[str, None] = _GATEWAY_OPTION,
    config: Union[Path, None] = _CONFIG_OPTION,
    output_json: bool = typer.Option(False, "--json", help="Output as JSON."),
) -> None:
    """List flagged titles."""
    flags = _call(gateway, config, lambda c: c.list_flags())
    if output_json:
        console.print(json.dumps([f.model_dump(mode="json") for f in flags], indent=2))
        return
    if not flags:
        console.print("[yellow]No titles flagged as open source[/yellow]")
        return

    table = Table(title="Open Source Software")
    table.add_column("Title ID", justify="right")
    table.add_column("Name")
    table.add_column("Updated")
    for flag in flags:
        updated = flag.updated_at.isoformat(sep=" ", timespec="seconds") if flag.updated_at else ""
        table.add_row(str(flag.software_title_id), flag.name, updated)
    console.print(table)


@flags_app.command("add")
def add_flag(
    software_title_id: int = typer.Argument(..., help="Upstream software title id."),
    name: str = typer.Argument(..., help="Title name to display."),
    gateway: Union[str, None] = _GATEWAY_OPTION,
    config: Union[Path, None] = _CONFIG_OPTION,
) -> None:
    """Flag a title as open source."""
    result = _call(gateway, config, lambda c: c.add_flag(software_title_id, name))
    console.print(f"[green]Flagged {result['name']} ({result['software_title_id']})[/green]")


@flags_app.command("remove")
def remove_flag(
    software_title_id: int = typer.Argument(..., help="Upstream software title id."),
    gateway: Union[str, None] = _GATEWAY_OPTION,
    config: Union[Path, None] = _CONFIG_OPTION,
) -> None:
    """Unflag a title."""
    deleted = _call(gateway, config, lambda c: c.remove_flag(software_title_id))
    if deleted:
        console.print(f"[green]Removed flag for {software_title_id}[/green]")
    else:
        console.print(f"[yellow]{software_title_id} was not flagged[/yellow]")


@remarks_app.command("list")
def list_remarks(
    gateway: Union[str, None] = _GATEWAY_OPTION,
    config: Union[Path, None] = _CONFIG_OPTION,
    output_json: bool = typer.Option(False, "--json", help="Output as JSON."),
) -> None:
    """List saved remarks."""
    remarks = _call(gateway, config, lambda c: c.list_remarks())
    if output_json:
        console.print(json.dumps([r.model_dump(mode="json") for r in remarks], indent=2))
        return

    table = Table(title="Software Remarks")
    table.add_column("Title ID", justify="right")
    table.add_column("Remark")
    for row in remarks:
        table.add_row(str(row.software_title_id), row.remark or "")
    console.print(table)


@remarks_app.command("set")
def set_remark(
    software_title_id: int = typer.Argument(..., help="Upstream software title id."),
    remark: str = typer.Argument("", help="Remark text; empty clears it."),
    gateway: Union[str, None] = _GATEWAY_OPTION,
    config: Union[Path, None] = _CONFIG_OPTION,
) -> None:
    """Save (or clear) the remark for a title."""
    _call(gateway, config, lambda c: c.save_remark(software_title_id, remark))
    console.print(f"[green]Saved remark for {software_title_id}[/green]")
