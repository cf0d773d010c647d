"""Pydantic models for upstream inventory entities and augmentation rows."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator


class SoftwareVersion(BaseModel):
    """One version of a software title."""

    id: int
    version: str | None = None
    vulnerabilities: list[Any] | None = None
    hosts_count: int = 0

    model_config = {"extra": "ignore"}

    @property
    def vulnerability_count(self) -> int:
        return len(self.vulnerabilities or [])


class SoftwareTitle(BaseModel):
    """Upstream software title (a product independent of version)."""

    id: int
    name: str
    source: str | None = None
    hosts_count: int = 0
    versions_count: int = 0
    versions: list[SoftwareVersion] | None = None

    model_config = {"extra": "ignore"}

    @property
    def vulnerability_count(self) -> int:
        """Vulnerabilities summed over all listed versions."""
        return sum(v.vulnerability_count for v in self.versions or [])

    @property
    def first_version_id(self) -> int | None:
        if self.versions:
            return self.versions[0].id
        return None


class SoftwareTitlePage(BaseModel):
    """A page from the software titles listing."""

    software_titles: list[SoftwareTitle] = Field(default_factory=list)
    count: int = 0

    model_config = {"extra": "ignore"}


class Vulnerability(BaseModel):
    """A CVE reported against one software version."""

    cve: str | None = None
    cvss_score: float | None = None
    details_link: str | None = None

    model_config = {"extra": "ignore"}


class SoftwareDetail(BaseModel):
    """Per-version detail; only the fields the reports use."""

    id: int
    name: str | None = None
    version: str | None = None
    vendor: str | None = None
    source: str | None = None
    vulnerabilities: list[Vulnerability] | None = None

    model_config = {"extra": "ignore"}

    @field_validator("vulnerabilities", mode="before")
    @classmethod
    def _wrap_single(cls, value: Any) -> Any:
        # Some API versions return a lone object instead of a list
        if isinstance(value, dict):
            return [value]
        if isinstance(value, list):
            return [v for v in value if v]
        return value


class Host(BaseModel):
    """Device inventory record."""

    id: int
    hostname: str | None = None
    display_name: str | None = None
    platform: str | None = None
    os_version: str | None = None
    osquery_version: str | None = None
    status: str | None = None
    primary_ip: str | None = None
    gigs_disk_space_available: float | None = None
    issues: dict[str, Any] | None = None
    detail_updated_at: str | None = None
    last_restarted_at: str | None = None
    uuid: str | None = None
    cpu_brand: str | None = None
    memory: int | None = None
    uptime: int | None = None

    model_config = {"extra": "ignore"}

    @property
    def name(self) -> str:
        return self.display_name or self.hostname or str(self.id)

    @property
    def issue_count(self) -> int:
        return int((self.issues or {}).get("total_issues_count") or 0)


class HostPage(BaseModel):
    """A page from the hosts listing."""

    hosts: list[Host] = Field(default_factory=list)
    count: int = 0

    model_config = {"extra": "ignore"}


class HostSoftware(BaseModel):
    """A software item installed on one host."""

    id: int
    name: str
    version: str | None = None
    source: str | None = None

    model_config = {"extra": "ignore"}


class FlagRecord(BaseModel):
    """Open-source flag as returned by ``GET /api/open-source``."""

    id: int
    software_title_id: int
    name: str
    created_at: datetime | None = None
    updated_at: datetime | None = None


class RemarkRecord(BaseModel):
    """Remark as returned by ``GET /api/software-remarks``."""

    id: int
    software_title_id: int
    remark: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
