"""Test helpers: settings factory and in-memory stand-ins for the upstream
API and the gateway's local tables."""

from pathlib import Path

from svreport.aggregation import AugmentationIndex
from svreport.config import Settings
from svreport.errors import UpstreamError
from svreport.models import (
    FlagRecord,
    Host,
    HostSoftware,
    RemarkRecord,
    SoftwareDetail,
    SoftwareTitle,
    SoftwareVersion,
)


def make_settings(tmp_path: Path, **overrides) -> Settings:
    values = {
        "database_url": f"sqlite+aiosqlite:///{tmp_path / 'svreport.db'}",
        "data_dir": tmp_path,
        "upstream_url": None,
        "environment": "development",
        "cors_origins": ["http://localhost:5173"],
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def make_title(title_id: int, name: str, version_ids=(), vulns_per_version: int = 0, hosts: int = 1) -> SoftwareTitle:
    versions = [
        SoftwareVersion(id=vid, version=f"{i}.0", vulnerabilities=[f"CVE-{vid}-{n}" for n in range(vulns_per_version)])
        for i, vid in enumerate(version_ids, start=1)
    ]
    return SoftwareTitle(
        id=title_id,
        name=name,
        hosts_count=hosts,
        versions_count=len(versions),
        versions=versions,
    )


class FakeUpstream:
    """Duck-typed ``UpstreamClient`` backed by dicts."""

    def __init__(self, titles=(), vendors=None, failing_versions=(), missing_titles=(), hosts=(),
                 host_software=None, version_details=None):
        self.titles = {t.id: t for t in titles}
        self.hosts = list(hosts)
        self.host_software = host_software or {}
        self.version_details = version_details or {}
        self.host_filters: list[dict] = []
        self.vendors = vendors or {}
        self.failing_versions = set(failing_versions)
        self.missing_titles = set(missing_titles)
        self.vendor_calls: list[int] = []

    async def get_software_title(self, title_id: int) -> SoftwareTitle:
        if title_id in self.missing_titles or title_id not in self.titles:
            raise UpstreamError(f"Not found: {title_id}", 404)
        return self.titles[title_id]

    async def get_vendor(self, version_id: int) -> str:
        self.vendor_calls.append(version_id)
        if version_id in self.failing_versions:
            raise UpstreamError("API error: 500", 500)
        return self.vendors.get(version_id, "Unknown")

    async def iter_software_titles(self, per_page: int = 100, max_items=None, **filters):
        titles = list(self.titles.values())
        if max_items:
            titles = titles[:max_items]
        for title in titles:
            yield title

    async def iter_hosts(self, per_page: int = 100, max_items=None, **filters):
        self.host_filters.append(filters)
        hosts = self.hosts[:max_items] if max_items else self.hosts
        for host in hosts:
            yield host

    async def get_host(self, host_id: int) -> Host:
        for host in self.hosts:
            if host.id == host_id:
                return host
        raise UpstreamError(f"Not found: host {host_id}", 404)

    async def list_host_software(self, host_id: int) -> list[HostSoftware]:
        return self.host_software.get(host_id, [])

    async def get_version_details(self, version_id: int) -> SoftwareDetail:
        if version_id not in self.version_details:
            raise UpstreamError(f"Not found: version {version_id}", 404)
        return self.version_details[version_id]


class FakeAugmentation:
    """Duck-typed ``AugmentationClient`` returning a fixed snapshot."""

    def __init__(self, flags=(), remarks=(), error: Exception | None = None):
        self.flags = [
            FlagRecord(id=i, software_title_id=tid, name=name) for i, (tid, name) in enumerate(flags, start=1)
        ]
        self.remarks = [
            RemarkRecord(id=i, software_title_id=tid, remark=text) for i, (tid, text) in enumerate(remarks, start=1)
        ]
        self.error = error

    async def snapshot(self) -> AugmentationIndex:
        if self.error is not None:
            raise self.error
        return AugmentationIndex.from_snapshot(self.flags, self.remarks)


class RecordingSleep:
    """Replacement for ``asyncio.sleep`` that only records the delays."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
