"""Tests for versioned daily overrides."""

from datetime import date

import polars as pl

from spell_panel.analysis.data_quality import OVERRIDE_UNMATCHED, DataQualityReport
from spell_panel.analysis.overrides import apply_overrides, latest_overrides


def _make_daily() -> pl.LazyFrame:
    return pl.LazyFrame({
        'uid': ['a', 'a', 'a'],
        'date': [date(2024, 3, 1), date(2024, 3, 2), date(2024, 3, 3)],
        'raw_status_code': ['P', None, None],
        'status': ['present', 'left', 'left'],
        'attendance': [1, None, None],
        'employment_flag': [1, 0, 0],
        'turnover_daily': [1, 1, 1],
    }, schema_overrides={'attendance': pl.Int8, 'employment_flag': pl.Int8, 'turnover_daily': pl.Int8})


def _make_overrides() -> pl.LazyFrame:
    return pl.LazyFrame({
        'uid': ['a', 'a', 'a'],
        'date': [date(2024, 3, 1), date(2024, 3, 1), date(2024, 4, 1)],
        'version': [1, 2, 1],
        'status': ['absent', None, 'present'],
        'employment_flag': [None, None, 1],
        'turnover_daily': [None, 0, None],
        'reason': ['v1 correction', 'exit day still employed', 'typo'],
    }, schema_overrides={'employment_flag': pl.Int8, 'turnover_daily': pl.Int8})


def test_latest_overrides_keeps_highest_version() -> None:
    out = latest_overrides(_make_overrides()).collect()
    mar1 = out.filter(pl.col('date') == date(2024, 3, 1))
    assert mar1.height == 1
    assert mar1['version'].to_list() == [2]
    assert mar1['reason'].to_list() == ['exit day still employed']


def test_apply_overrides() -> None:
    report = DataQualityReport()
    out = apply_overrides(_make_daily(), _make_overrides(), report=report).collect()
    mar1 = out.filter(pl.col('date') == date(2024, 3, 1)).row(0, named=True)
    # Version 2 only sets turnover_daily; version 1's status is superseded
    assert mar1['turnover_daily'] == 0
    assert mar1['status'] == 'present'
    assert mar1['attendance'] == 1
    assert mar1['override_reason'] == 'exit day still employed'
    mar2 = out.filter(pl.col('date') == date(2024, 3, 2)).row(0, named=True)
    assert mar2['override_reason'] is None
    assert mar2['turnover_daily'] == 1
    assert report.count(OVERRIDE_UNMATCHED) == 1


def test_status_override_recomputes_attendance() -> None:
    overrides = pl.LazyFrame({
        'uid': ['a'],
        'date': [date(2024, 3, 1)],
        'version': [1],
        'status': ['absent'],
    })
    out = apply_overrides(_make_daily(), overrides).collect()
    mar1 = out.filter(pl.col('date') == date(2024, 3, 1)).row(0, named=True)
    assert mar1['status'] == 'absent'
    assert mar1['attendance'] == 0
    assert mar1['employment_flag'] == 1
    assert mar1['override_reason'] == 'manual override'


def test_apply_overrides_preserves_rows() -> None:
    out = apply_overrides(_make_daily(), _make_overrides()).collect()
    assert out.height == 3
    assert out['attendance'].dtype == pl.Int8
