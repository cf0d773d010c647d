"""Join upstream software titles with the local augmentation snapshot."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from svreport.models import FlagRecord, RemarkRecord, SoftwareTitle


@dataclass
class AugmentationIndex:
    """In-memory index over one snapshot of the flag and remark tables."""

    flagged: set[int] = field(default_factory=set)
    remarks: dict[int, str | None] = field(default_factory=dict)
    flag_names: dict[int, str] = field(default_factory=dict)

    @classmethod
    def from_snapshot(
        cls,
        flags: Iterable[FlagRecord],
        remarks: Iterable[RemarkRecord],
    ) -> AugmentationIndex:
        index = cls()
        for flag in flags:
            index.flagged.add(flag.software_title_id)
            index.flag_names[flag.software_title_id] = flag.name
        for row in remarks:
            index.remarks[row.software_title_id] = row.remark
        return index

    def is_flagged(self, title_id: int) -> bool:
        return title_id in self.flagged

    def has_remark(self, title_id: int) -> bool:
        """True when a remark row exists, even if its text is empty."""
        return title_id in self.remarks

    def remark_for(self, title_id: int) -> str:
        """Remark text for display; empty and missing both render as ``""``."""
        return self.remarks.get(title_id) or ""


@dataclass
class InventoryRow:
    """A software title joined with its local flag and remark."""

    title: SoftwareTitle
    open_source: bool = False
    remark: str = ""
    vendor: str | None = None

    @property
    def title_id(self) -> int:
        return self.title.id

    @property
    def name(self) -> str:
        return self.title.name


def join_titles(titles: Iterable[SoftwareTitle], index: AugmentationIndex) -> list[InventoryRow]:
    """Attach flag status and remark to each title, keeping upstream order."""
    return [
        InventoryRow(
            title=title,
            open_source=index.is_flagged(title.id),
            remark=index.remark_for(title.id),
        )
        for title in titles
    ]


def filter_rows(rows: Iterable[InventoryRow], search: str | None) -> list[InventoryRow]:
    """Case-insensitive substring match on the title name."""
    rows = list(rows)
    if not search:
        return rows
    needle = search.lower()
    return [row for row in rows if needle in row.name.lower()]


def paginate(rows: list[InventoryRow], page: int, per_page: int) -> list[InventoryRow]:
    """Zero-based client-side page slice."""
    if page < 0 or per_page < 1:
        raise ValueError("page must be >= 0 and per_page >= 1")
    start = page * per_page
    return rows[start : start + per_page]
