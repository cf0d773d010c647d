"""Async HTTP clients for the upstream inventory API and the local gateway."""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import AsyncIterator
from typing import Any

import httpx

from svreport.aggregation import AugmentationIndex
from svreport.errors import UpstreamError
from svreport.models import (
    FlagRecord,
    Host,
    HostPage,
    HostSoftware,
    RemarkRecord,
    SoftwareDetail,
    SoftwareTitle,
    SoftwareTitlePage,
)

logger = logging.getLogger(__name__)

# Retry configuration
RETRY_STATUS_CODES = {429, 502, 503, 504}
MAX_RETRIES = 4
MAX_RETRY_DELAY = 16

FLEET_PREFIX = "/api/latest/fleet"
UNKNOWN_VENDOR = "Unknown"


class _JSONClient:
    """Shared request plumbing: lazy httpx client, error mapping, retries."""

    def __init__(
        self,
        base_url: str,
        headers: dict[str, str] | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Any = asyncio.sleep,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.headers = headers or {}
        self.timeout = timeout
        self._transport = transport
        self._sleep = sleep
        self._client: httpx.AsyncClient | None = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=self.headers,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def _request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> Any:
        """Make an HTTP request and decode the JSON body."""
        if params:
            params = {k: v for k, v in params.items() if v is not None}

        try:
            response = await self.client.request(method, path, params=params, json=json)
        except httpx.RequestError as e:
            raise UpstreamError(f"Request to {path} failed: {e}") from e

        if response.status_code == 401:
            raise UpstreamError("Unauthorized - check your API token", 401)
        if response.status_code == 403:
            raise UpstreamError("Forbidden - insufficient permissions", 403)
        if response.status_code == 404:
            raise UpstreamError(f"Not found: {path}", 404)
        if response.status_code >= 400:
            raise UpstreamError(
                f"API error: {response.status_code}",
                response.status_code,
                response.text,
            )

        if response.status_code == 204 or not response.content:
            return None

        try:
            return response.json()
        except ValueError as e:
            raise UpstreamError(f"Invalid JSON from {path}", response.status_code, response.text) from e

    async def _get(self, path: str, params: dict[str, Any] | None = None, max_retries: int = MAX_RETRIES) -> Any:
        """GET with exponential backoff on 429/502/503/504."""
        for retry_count in range(max_retries):
            try:
                return await self._request("GET", path, params=params)
            except UpstreamError as e:
                if e.status_code not in RETRY_STATUS_CODES or retry_count >= max_retries - 1:
                    raise

                delay = min(2**retry_count, MAX_RETRY_DELAY) + random.uniform(0, 1)
                logger.warning(
                    "Request failed (%s), retry %d/%d in %.1fs",
                    e.status_code,
                    retry_count + 1,
                    max_retries,
                    delay,
                )
                await self._sleep(delay)

        raise UpstreamError("Max retries exceeded")


class UpstreamClient(_JSONClient):
    """Client for the upstream device-management (Fleet) API."""

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Any = asyncio.sleep,
    ) -> None:
        """
        Initialize the upstream client.

        Args:
            base_url: Upstream origin, or the gateway origin when going
                through the same-origin proxy
            token: Bearer token sent as ``Authorization``
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests use ``MockTransport``)
            sleep: Coroutine used between retries
        """
        headers = {"Accept": "application/json", "Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        super().__init__(base_url, headers=headers, timeout=timeout, transport=transport, sleep=sleep)

    # ── Software ──────────────────────────────────────────────────

    async def list_software_titles(
        self,
        page: int = 0,
        per_page: int = 20,
        order_key: str = "hosts_count",
        order_direction: str = "desc",
        vulnerable: bool = False,
        query: str | None = None,
    ) -> SoftwareTitlePage:
        """Fetch one page of software titles."""
        params: dict[str, Any] = {
            "page": page,
            "per_page": per_page,
            "order_key": order_key,
            "order_direction": order_direction,
            "query": query or None,
        }
        if vulnerable:
            params["vulnerable"] = "true"
        data = await self._get(f"{FLEET_PREFIX}/software/titles", params=params)
        return SoftwareTitlePage.model_validate(data or {})

    async def iter_software_titles(
        self,
        per_page: int = 100,
        max_items: int | None = None,
        **filters: Any,
    ) -> AsyncIterator[SoftwareTitle]:
        """
        Page through all software titles.

        Stops on an empty or short page, or once *max_items* titles have been
        yielded.
        """
        page = 0
        returned = 0
        while True:
            result = await self.list_software_titles(page=page, per_page=per_page, **filters)
            for title in result.software_titles:
                yield title
                returned += 1
                if max_items and returned >= max_items:
                    return
            if len(result.software_titles) < per_page:
                return
            page += 1

    async def get_software_title(self, title_id: int) -> SoftwareTitle:
        data = await self._get(f"{FLEET_PREFIX}/software/titles/{title_id}")
        return SoftwareTitle.model_validate((data or {}).get("software_title") or {})

    async def get_software_version(self, version_id: int) -> SoftwareDetail:
        data = await self._get(f"{FLEET_PREFIX}/software/{version_id}")
        return SoftwareDetail.model_validate((data or {}).get("software") or {})

    async def get_vendor(self, version_id: int) -> str:
        """Vendor of one software version, ``"Unknown"`` when the API has none."""
        detail = await self.get_software_version(version_id)
        return detail.vendor or UNKNOWN_VENDOR

    async def get_version_details(self, version_id: int) -> SoftwareDetail:
        """Version detail including its CVE list."""
        data = await self._get(f"{FLEET_PREFIX}/software/versions/{version_id}")
        return SoftwareDetail.model_validate((data or {}).get("software") or {})

    # ── Hosts ─────────────────────────────────────────────────────

    async def list_hosts(
        self,
        page: int = 0,
        per_page: int = 50,
        query: str | None = None,
        software_title_id: int | None = None,
        software_version_id: int | None = None,
        order_key: str = "display_name",
        order_direction: str = "asc",
    ) -> HostPage:
        """Fetch one page of hosts, optionally only those with a given title or version."""
        params: dict[str, Any] = {
            "page": page,
            "per_page": per_page,
            "device_mapping": "true",
            "order_key": order_key,
            "order_direction": order_direction,
            "query": query or None,
            "software_title_id": software_title_id,
            "software_version_id": software_version_id,
        }
        data = await self._get(f"{FLEET_PREFIX}/hosts", params=params)
        return HostPage.model_validate(data or {})

    async def iter_hosts(
        self,
        per_page: int = 100,
        max_items: int | None = None,
        **filters: Any,
    ) -> AsyncIterator[Host]:
        """Page through all hosts matching *filters*."""
        page = 0
        returned = 0
        while True:
            result = await self.list_hosts(page=page, per_page=per_page, **filters)
            for host in result.hosts:
                yield host
                returned += 1
                if max_items and returned >= max_items:
                    return
            if len(result.hosts) < per_page:
                return
            page += 1

    async def get_host(self, host_id: int) -> Host:
        data = await self._get(f"{FLEET_PREFIX}/hosts/{host_id}", params={"exclude_software": "true"})
        return Host.model_validate((data or {}).get("host") or {})

    async def list_host_software(self, host_id: int) -> list[HostSoftware]:
        data = await self._get(f"{FLEET_PREFIX}/hosts/{host_id}/software")
        return [HostSoftware.model_validate(s) for s in (data or {}).get("software") or []]


class AugmentationClient(_JSONClient):
    """Client for the gateway's local flag and remark endpoints."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(
            base_url,
            headers={"Accept": "application/json"},
            timeout=timeout,
            transport=transport,
        )

    async def list_flags(self) -> list[FlagRecord]:
        data = await self._get("/api/open-source")
        return [FlagRecord.model_validate(row) for row in data or []]

    async def add_flag(self, software_title_id: int, name: str) -> dict[str, Any]:
        return await self._request(
            "POST", "/api/open-source", json={"software_title_id": software_title_id, "name": name}
        )

    async def remove_flag(self, software_title_id: int) -> bool:
        data = await self._request("DELETE", f"/api/open-source/{software_title_id}")
        return bool((data or {}).get("deleted"))

    async def list_remarks(self) -> list[RemarkRecord]:
        data = await self._get("/api/software-remarks")
        return [RemarkRecord.model_validate(row) for row in data or []]

    async def save_remark(self, software_title_id: int, remark: str) -> dict[str, Any]:
        return await self._request(
            "POST",
            "/api/software-remarks",
            json={"software_title_id": software_title_id, "remark": remark},
        )

    async def snapshot(self) -> AugmentationIndex:
        """Fetch both tables concurrently and index them by title id."""
        flags, remarks = await asyncio.gather(self.list_flags(), self.list_remarks())
        return AugmentationIndex.from_snapshot(flags, remarks)
