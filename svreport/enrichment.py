"""Vendor enrichment for software titles.

A title's vendor is resolved from its first version's detail record. Lookups
run through a ``BatchThrottle``; one failed lookup degrades that title to
``"Unknown"`` and never fails the run.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING

from svreport.clients import UNKNOWN_VENDOR
from svreport.models import SoftwareTitle
from svreport.throttle import BatchThrottle, ProgressCallback

if TYPE_CHECKING:
    from svreport.clients import UpstreamClient

logger = logging.getLogger(__name__)


class VendorCache:
    """Title id -> vendor for the lifetime of one operation."""

    def __init__(self) -> None:
        self._vendors: dict[int, str] = {}

    def get(self, title_id: int) -> str | None:
        return self._vendors.get(title_id)

    def put(self, title_id: int, vendor: str) -> None:
        self._vendors[title_id] = vendor

    def __contains__(self, title_id: object) -> bool:
        return title_id in self._vendors

    def __len__(self) -> int:
        return len(self._vendors)


class VendorEnricher:
    """Resolve vendors for many titles without overwhelming the upstream API."""

    def __init__(
        self,
        upstream: UpstreamClient,
        throttle: BatchThrottle | None = None,
        cache: VendorCache | None = None,
    ) -> None:
        self.upstream = upstream
        self.throttle = throttle or BatchThrottle()
        self.cache = cache if cache is not None else VendorCache()

    async def _lookup(self, title: SoftwareTitle) -> tuple[int, str]:
        version_id = title.first_version_id
        if version_id is None:
            return title.id, UNKNOWN_VENDOR
        try:
            vendor = await self.upstream.get_vendor(version_id) or UNKNOWN_VENDOR
        except Exception as e:
            logger.warning("Error fetching vendor info for software %s: %s", title.id, e)
            return title.id, UNKNOWN_VENDOR
        self.cache.put(title.id, vendor)
        return title.id, vendor

    async def enrich(
        self,
        titles: Iterable[SoftwareTitle],
        on_batch: ProgressCallback | None = None,
    ) -> dict[int, str]:
        """Vendor per title id; every input title gets an entry."""
        vendors: dict[int, str] = {}
        pending: list[SoftwareTitle] = []
        seen: set[int] = set()

        for title in titles:
            if title.id in seen:
                continue
            seen.add(title.id)
            cached = self.cache.get(title.id)
            if cached is not None:
                vendors[title.id] = cached
            elif not title.versions:
                vendors[title.id] = UNKNOWN_VENDOR
            else:
                pending.append(title)

        if pending:
            logger.info(
                "Resolving vendors for %d titles in %d batches",
                len(pending),
                self.throttle.batch_count(len(pending)),
            )
            for title_id, vendor in await self.throttle.run(pending, self._lookup, on_batch=on_batch):
                vendors[title_id] = vendor

        return vendors
