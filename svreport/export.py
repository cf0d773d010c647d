"""CSV reports over the upstream inventory, joined with local flags and remarks."""

from __future__ import annotations

import asyncio
import csv
import io
import logging
from collections.abc import Awaitable, Callable, Iterable, Sequence
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

from svreport.aggregation import AugmentationIndex, InventoryRow, filter_rows, join_titles
from svreport.clients import UNKNOWN_VENDOR, AugmentationClient, UpstreamClient
from svreport.enrichment import VendorEnricher
from svreport.errors import ExportError
from svreport.models import Host, HostSoftware, SoftwareTitle, Vulnerability

logger = logging.getLogger(__name__)

OPEN_SOURCE_COLUMNS = [
    "Name",
    "Vendor",
    "Host Count",
    "Version Count",
    "Vulnerabilities Count",
    "Open Source",
    "Remarks",
]
SOFTWARE_COLUMNS = ["Name", "Host Count", "Version Count", "Vulnerabilities Count", "Open Source"]
HOST_COLUMNS = [
    "Host",
    "Status",
    "Issues",
    "Disk Space (GB)",
    "OS",
    "Osquery",
    "Private IP",
    "Last Fetched",
    "Last Restarted",
]
VULNERABILITY_COLUMNS = ["CVE ID", "CVSS Score", "Details Link"]
HOST_SOFTWARE_COLUMNS = ["Host", "Name", "Version", "Source"]

NOT_AVAILABLE = "N/A"


class ExportState(str, Enum):
    IDLE = "idle"
    FETCHING_TITLES = "fetching_titles"
    ENRICHING_VENDORS = "enriching_vendors"
    FETCHING_HOSTS = "fetching_hosts"
    FETCHING_VULNERABILITIES = "fetching_vulnerabilities"
    BUILDING_CSV = "building_csv"


@dataclass(frozen=True)
class ExportStatus:
    state: ExportState
    batch: int | None = None
    batch_count: int | None = None

    def __str__(self) -> str:
        if self.state is ExportState.ENRICHING_VENDORS and self.batch_count:
            return f"{self.state.value} (batch {self.batch} of {self.batch_count})"
        return self.state.value


def rows_to_csv(rows: Iterable[dict[str, Any]], columns: Sequence[str]) -> str:
    """Render dict rows as CSV text with a header line."""
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=list(columns), extrasaction="ignore")
    writer.writeheader()
    for row in rows:
        writer.writerow(row)
    return buffer.getvalue()


def write_csv(content: str, path: Path) -> Path:
    """Write CSV text to *path*, creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8", newline="") as f:
        f.write(content)
    return path


def open_source_record(row: InventoryRow) -> dict[str, Any]:
    title = row.title
    return {
        "Name": title.name,
        "Vendor": row.vendor or UNKNOWN_VENDOR,
        "Host Count": title.hosts_count,
        "Version Count": title.versions_count,
        "Vulnerabilities Count": title.vulnerability_count,
        "Open Source": "Yes",
        "Remarks": row.remark,
    }


def software_record(row: InventoryRow) -> dict[str, Any]:
    title = row.title
    return {
        "Name": title.name,
        "Host Count": title.hosts_count,
        "Version Count": title.versions_count,
        "Vulnerabilities Count": title.vulnerability_count,
        "Open Source": "Yes" if row.open_source else "No",
    }


def host_record(host: Host) -> dict[str, Any]:
    return {
        "Host": host.name,
        "Status": host.status,
        "Issues": host.issue_count,
        "Disk Space (GB)": host.gigs_disk_space_available or 0,
        "OS": host.os_version,
        "Osquery": host.osquery_version,
        "Private IP": host.primary_ip,
        "Last Fetched": host.detail_updated_at,
        "Last Restarted": host.last_restarted_at,
    }


def vulnerability_record(vulnerability: Vulnerability) -> dict[str, Any]:
    score = vulnerability.cvss_score
    return {
        "CVE ID": vulnerability.cve or NOT_AVAILABLE,
        "CVSS Score": NOT_AVAILABLE if score is None else score,
        "Details Link": vulnerability.details_link or NOT_AVAILABLE,
    }


def host_software_record(host: Host, item: HostSoftware) -> dict[str, Any]:
    return {
        "Host": host.name,
        "Name": item.name,
        "Version": item.version,
        "Source": item.source,
    }


class ExportJob:
    """
    One export run at a time, with an observable state.

    ``IDLE -> FETCHING_TITLES -> ENRICHING_VENDORS (batch i of N) ->
    BUILDING_CSV -> IDLE``. Host and vulnerability reports go through
    ``FETCHING_HOSTS`` or ``FETCHING_VULNERABILITIES`` instead and have no
    enrichment step. A failure in any state discards partial results,
    returns to ``IDLE`` and raises ``ExportError``.
    """

    def __init__(
        self,
        upstream: UpstreamClient,
        augmentation: AugmentationClient,
        enricher: VendorEnricher,
        on_status: Callable[[ExportStatus], None] | None = None,
    ) -> None:
        self.upstream = upstream
        self.augmentation = augmentation
        self.enricher = enricher
        self.on_status = on_status
        self.status = ExportStatus(ExportState.IDLE)

    @property
    def state(self) -> ExportState:
        return self.status.state

    def _set(self, state: ExportState, batch: int | None = None, batch_count: int | None = None) -> None:
        self.status = ExportStatus(state, batch, batch_count)
        logger.debug("Export status: %s", self.status)
        if self.on_status is not None:
            self.on_status(self.status)

    def _on_batch(self, batch_index: int, batch_count: int) -> None:
        self._set(ExportState.ENRICHING_VENDORS, batch_index + 1, batch_count)

    async def _run(self, label: str, build: Callable[[], Awaitable[tuple[str, int]]]) -> str:
        if self.state is not ExportState.IDLE:
            raise ExportError(f"Export already running ({self.status})")
        try:
            content, count = await build()
        except Exception as e:
            logger.error("Error exporting %s: %s", label.lower(), e)
            raise ExportError(f"{label} export failed: {e}") from e
        finally:
            self._set(ExportState.IDLE)

        logger.info("Exported %d rows (%s)", count, label.lower())
        return content

    async def _fetch_detail(self, flag_id: int, name: str) -> SoftwareTitle:
        try:
            return await self.upstream.get_software_title(flag_id)
        except Exception as e:
            logger.warning("Error fetching details for software %s: %s", flag_id, e)
            return SoftwareTitle(id=flag_id, name=name)

    async def _open_source_rows(self, search: str | None) -> list[InventoryRow]:
        index = await self.augmentation.snapshot()
        flagged = [(tid, name) for tid, name in index.flag_names.items()]
        if search:
            needle = search.lower()
            flagged = [(tid, name) for tid, name in flagged if needle in name.lower()]

        details = await self.enricher.throttle.run(flagged, lambda pair: self._fetch_detail(*pair))
        # Keep the locally cached name so the report matches what was flagged
        titles = [detail.model_copy(update={"name": name}) for detail, (_, name) in zip(details, flagged)]
        return join_titles(titles, index)

    async def export_open_source(self, search: str | None = None) -> str:
        """CSV of every flagged title with vendor, counts and remarks."""

        async def build() -> tuple[str, int]:
            self._set(ExportState.FETCHING_TITLES)
            rows = await self._open_source_rows(search)

            self._set(ExportState.ENRICHING_VENDORS)
            vendors = await self.enricher.enrich((row.title for row in rows), on_batch=self._on_batch)
            for row in rows:
                row.vendor = vendors.get(row.title_id, UNKNOWN_VENDOR)

            self._set(ExportState.BUILDING_CSV)
            return rows_to_csv((open_source_record(row) for row in rows), OPEN_SOURCE_COLUMNS), len(rows)

        return await self._run("Open source", build)

    async def export_software(
        self,
        search: str | None = None,
        vulnerable: bool = False,
        max_items: int | None = None,
    ) -> str:
        """CSV of the upstream inventory with an Open Source Yes/No column."""

        async def build() -> tuple[str, int]:
            self._set(ExportState.FETCHING_TITLES)
            index: AugmentationIndex = await self.augmentation.snapshot()
            titles = [
                title
                async for title in self.upstream.iter_software_titles(
                    max_items=max_items, vulnerable=vulnerable
                )
            ]
            rows = filter_rows(join_titles(titles, index), search)

            self._set(ExportState.BUILDING_CSV)
            return rows_to_csv((software_record(row) for row in rows), SOFTWARE_COLUMNS), len(rows)

        return await self._run("Software", build)

    async def export_hosts(
        self,
        search: str | None = None,
        software_title_id: int | None = None,
        software_version_id: int | None = None,
        max_items: int | None = None,
    ) -> str:
        """CSV of hosts, optionally only those running a given title or version."""

        async def build() -> tuple[str, int]:
            self._set(ExportState.FETCHING_HOSTS)
            hosts = [
                host
                async for host in self.upstream.iter_hosts(
                    max_items=max_items,
                    software_title_id=software_title_id,
                    software_version_id=software_version_id,
                )
            ]
            if search:
                needle = search.lower()
                hosts = [host for host in hosts if needle in host.name.lower()]

            self._set(ExportState.BUILDING_CSV)
            return rows_to_csv((host_record(host) for host in hosts), HOST_COLUMNS), len(hosts)

        return await self._run("Hosts", build)

    async def export_vulnerabilities(self, version_id: int) -> str:
        """CSV of the CVEs reported against one software version."""

        async def build() -> tuple[str, int]:
            self._set(ExportState.FETCHING_VULNERABILITIES)
            detail = await self.upstream.get_version_details(version_id)
            vulnerabilities = detail.vulnerabilities or []

            self._set(ExportState.BUILDING_CSV)
            records = (vulnerability_record(v) for v in vulnerabilities)
            return rows_to_csv(records, VULNERABILITY_COLUMNS), len(vulnerabilities)

        return await self._run("Vulnerabilities", build)

    async def export_host_software(self, host_id: int) -> str:
        """CSV of the software installed on one host."""

        async def build() -> tuple[str, int]:
            self._set(ExportState.FETCHING_HOSTS)
            host, software = await asyncio.gather(
                self.upstream.get_host(host_id),
                self.upstream.list_host_software(host_id),
            )

            self._set(ExportState.BUILDING_CSV)
            records = (host_software_record(host, item) for item in software)
            return rows_to_csv(records, HOST_SOFTWARE_COLUMNS), len(software)

        return await self._run("Host software", build)
