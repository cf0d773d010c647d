"""The 'export' command group: CSV reports."""

import asyncio
import csv
import io
from collections.abc import Awaitable, Callable
from datetime import datetime
from pathlib import Path
from typing import Union

import typer
from rich.progress import Progress, SpinnerColumn, TextColumn

from svreport.cli.common import console, load_settings, resolve_token, setup_logging
from svreport.clients import AugmentationClient, UpstreamClient
from svreport.config import Settings
from svreport.enrichment import VendorCache, VendorEnricher
from svreport.errors import ExportError
from svreport.export import ExportJob, ExportStatus, write_csv
from svreport.throttle import BatchThrottle

export_app = typer.Typer(
    name="export",
    help="Export inventory reports as CSV.",
    add_completion=False,
)


def _default_output(prefix: str) -> Path:
    return Path(f"{prefix}-{datetime.now().strftime('%Y-%m-%d')}.csv")


async def _run_export(
    settings: Settings,
    token: str,
    report: Callable[[ExportJob], Awaitable[str]],
    progress: Progress,
) -> str:
    task = progress.add_task("Starting export", total=None)

    def on_status(status: ExportStatus) -> None:
        progress.update(task, description=str(status).replace("_", " ").capitalize())

    # The gateway proxies upstream reads on the same origin
    async with UpstreamClient(settings.gateway_url, token, timeout=settings.upstream_timeout) as upstream, \
            AugmentationClient(settings.gateway_url) as augmentation:
        enricher = VendorEnricher(
            upstream,
            BatchThrottle(settings.vendor_batch_size, settings.vendor_batch_delay),
            VendorCache(),
        )
        job = ExportJob(upstream, augmentation, enricher, on_status=on_status)
        return await report(job)


def _export(prefix: str, report: Callable[[ExportJob], Awaitable[str]], output: Union[Path, None],
            token: Union[str, None], gateway: Union[str, None], config: Union[Path, None], verbose: bool) -> None:
    settings = load_settings(config, gateway_url=gateway)
    auth_token = resolve_token(token, settings)
    setup_logging(verbose, settings, token=auth_token)

    output_path = output or _default_output(prefix)

    try:
        with Progress(SpinnerColumn(), TextColumn("{task.description}"), console=console, transient=True) as progress:
            content = asyncio.run(_run_export(settings, auth_token, report, progress))
    except ExportError as e:
        console.print(f"[red]Export failed: {e}[/red]")
        raise typer.Exit(1) from e

    write_csv(content, output_path)
    rows = max(sum(1 for _ in csv.reader(io.StringIO(content))) - 1, 0)
    console.print(f"[green]Wrote {rows} rows to {output_path}[/green]")


_OUTPUT_OPTION = typer.Option(None, "--output", "-o", help="CSV file to write.")
_TOKEN_OPTION = typer.Option(None, "--token", "-t", help="Upstream API token.")
_GATEWAY_OPTION = typer.Option(None, "--gateway", help="Gateway base URL.")
_CONFIG_OPTION = typer.Option(None, "--config", "-c", help="YAML settings file.")
_VERBOSE_OPTION = typer.Option(False, "--verbose", "-v", help="Enable verbose logging")


@export_app.command("open-source")
def export_open_source(
    output: Union[Path, None] = _OUTPUT_OPTION,
    search: Union[str, None] = typer.Option(None, "--search", "-s", help="Filter titles by name."),
    token: Union[str, None] = _TOKEN_OPTION,
    gateway: Union[str, None] = _GATEWAY_OPTION,
    config: Union[Path, None] = _CONFIG_OPTION,
    verbose: bool = _VERBOSE_OPTION,
) -> None:
    """Flagged open-source titles with vendor, counts and remarks."""
    _export(
        "open-source-software-report",
        lambda job: job.export_open_source(search=search),
        output, token, gateway, config, verbose,
    )


@export_app.command("software")
def export_software(
    output: Union[Path, None] = _OUTPUT_OPTION,
    search: Union[str, None] = typer.Option(None, "--search", "-s", help="Filter titles by name."),
    vulnerable: bool = typer.Option(False, "--vulnerable", help="Only titles with vulnerabilities."),
    max_items: Union[int, None] = typer.Option(None, "--max-items", help="Stop after this many titles."),
    token: Union[str, None] = _TOKEN_OPTION,
    gateway: Union[str, None] = _GATEWAY_OPTION,
    config: Union[Path, None] = _CONFIG_OPTION,
    verbose: bool = _VERBOSE_OPTION,
) -> None:
    """Full software inventory with an Open Source column."""
    _export(
        "software-report",
        lambda job: job.export_software(search=search, vulnerable=vulnerable, max_items=max_items),
        output, token, gateway, config, verbose,
    )


@export_app.command("hosts")
def export_hosts(
    output: Union[Path, None] = _OUTPUT_OPTION,
    search: Union[str, None] = typer.Option(None, "--search", "-s", help="Filter hosts by name."),
    software_title_id: Union[int, None] = typer.Option(
        None, "--software-title-id", help="Only hosts with this software title installed."
    ),
    software_version_id: Union[int, None] = typer.Option(
        None, "--software-version-id", help="Only hosts with this software version installed."
    ),
    max_items: Union[int, None] = typer.Option(None, "--max-items", help="Stop after this many hosts."),
    token: Union[str, None] = _TOKEN_OPTION,
    gateway: Union[str, None] = _GATEWAY_OPTION,
    config: Union[Path, None] = _CONFIG_OPTION,
    verbose: bool = _VERBOSE_OPTION,
) -> None:
    """Hosts with status, issues, disk space and OS details."""
    _export(
        "hosts-report",
        lambda job: job.export_hosts(
            search=search,
            software_title_id=software_title_id,
            software_version_id=software_version_id,
            max_items=max_items,
        ),
        output, token, gateway, config, verbose,
    )


@export_app.command("vulnerabilities")
def export_vulnerabilities(
    version_id: int = typer.Argument(..., help="Software version id."),
    output: Union[Path, None] = _OUTPUT_OPTION,
    token: Union[str, None] = _TOKEN_OPTION,
    gateway: Union[str, None] = _GATEWAY_OPTION,
    config: Union[Path, None] = _CONFIG_OPTION,
    verbose: bool = _VERBOSE_OPTION,
) -> None:
    """CVEs reported against one software version."""
    _export(
        f"version-{version_id}-vulnerabilities",
        lambda job: job.export_vulnerabilities(version_id),
        output, token, gateway, config, verbose,
    )


@export_app.command("host-software")
def export_host_software(
    host_id: int = typer.Argument(..., help="Host id."),
    output: Union[Path, None] = _OUTPUT_OPTION,
    token: Union[str, None] = _TOKEN_OPTION,
    gateway: Union[str, None] = _GATEWAY_OPTION,
    config: Union[Path, None] = _CONFIG_OPTION,
    verbose: bool = _VERBOSE_OPTION,
) -> None:
    """Software installed on one host."""
    _export(
        f"host-{host_id}-software",
        lambda job: job.export_host_software(host_id),
        output, token, gateway, config, verbose,
    )
