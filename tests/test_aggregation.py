"""Tests for joining upstream titles with the augmentation snapshot."""

import pytest
from helpers import make_title

from svreport.aggregation import AugmentationIndex, filter_rows, join_titles, paginate
from svreport.models import FlagRecord, RemarkRecord


@pytest.fixture
def index():
    return AugmentationIndex.from_snapshot(
        [FlagRecord(id=1, software_title_id=42, name="curl")],
        [
            RemarkRecord(id=1, software_title_id=42, remark="reviewed"),
            RemarkRecord(id=2, software_title_id=43, remark=""),
        ],
    )


def test_empty_remark_differs_from_missing_remark(index):
    assert index.has_remark(43)
    assert not index.has_remark(44)
    # Both render the same way
    assert index.remark_for(43) == ""
    assert index.remark_for(44) == ""


def test_join_attaches_flag_and_remark_in_upstream_order(index):
    titles = [make_title(44, "bash"), make_title(42, "curl"), make_title(43, "zlib")]

    rows = join_titles(titles, index)

    assert [(r.name, r.open_source, r.remark) for r in rows] == [
        ("bash", False, ""),
        ("curl", True, "reviewed"),
        ("zlib", False, ""),
    ]


def test_remark_without_flag_is_kept(index):
    [row] = join_titles([make_title(43, "zlib")], index)
    assert not row.open_source
    assert index.has_remark(row.title_id)


def test_filter_rows_is_case_insensitive(index):
    rows = join_titles([make_title(1, "OpenSSL"), make_title(2, "openssh"), make_title(3, "curl")], index)

    assert [r.name for r in filter_rows(rows, "openss")] == ["OpenSSL", "openssh"]
    assert len(filter_rows(rows, "")) == 3
    assert len(filter_rows(rows, None)) == 3


def test_paginate(index):
    rows = join_titles([make_title(i, f"pkg-{i}") for i in range(1, 46)], index)

    assert [r.title_id for r in paginate(rows, 0, 20)] == list(range(1, 21))
    assert [r.title_id for r in paginate(rows, 2, 20)] == list(range(41, 46))
    assert paginate(rows, 3, 20) == []
    with pytest.raises(ValueError):
        paginate(rows, -1, 20)
