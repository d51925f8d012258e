"""Tests for worker, attendance and override loading."""

import tempfile
from datetime import date
from pathlib import Path

import polars as pl
import pytest

from spell_panel.data.attendance import load_attendance
from spell_panel.data.overrides import load_overrides
from spell_panel.data.workers import load_workers


def test_load_workers_parquet() -> None:
    df = pl.DataFrame({
        'uid': [101, 102],
        'doj': ['2024-01-01', '2024-02-01'],
        'dol': ['2024-03-01', None],
        'name': ['x', 'y'],
    })
    with tempfile.TemporaryDirectory() as d:
        path = Path(d) / 'workers.parquet'
        df.write_parquet(path)
        out = load_workers(path).collect()
    assert out['uid'].to_list() == ['101', '102']
    assert out['doj'].dtype == pl.Date
    assert out['dol'].to_list() == [date(2024, 3, 1), None]
    assert 'name' in out.columns


def test_load_workers_missing_uid_raises() -> None:
    df = pl.DataFrame({'doj': ['2024-01-01']})
    with tempfile.TemporaryDirectory() as d:
        path = Path(d) / 'workers.parquet'
        df.write_parquet(path)
        with pytest.raises(ValueError, match='missing required columns'):
            load_workers(path)


def test_load_workers_without_join_columns_raises() -> None:
    df = pl.DataFrame({'uid': ['a'], 'dol': ['2024-01-01']})
    with tempfile.TemporaryDirectory() as d:
        path = Path(d) / 'workers.parquet'
        df.write_parquet(path)
        with pytest.raises(ValueError, match='no join date columns'):
            load_workers(path)


def test_load_attendance_csv() -> None:
    with tempfile.TemporaryDirectory() as d:
        path = Path(d) / 'attendance.csv'
        path.write_text('uid,date,raw_status_code\na,2024-01-02,P\na,2024-01-03,\n')
        out = load_attendance(path).collect()
    assert out.columns == ['uid', 'date', 'raw_status_code']
    assert out['date'].to_list() == [date(2024, 1, 2), date(2024, 1, 3)]
    assert out['raw_status_code'].to_list() == ['P', None]


def test_load_attendance_missing_column_raises() -> None:
    df = pl.DataFrame({'uid': ['a'], 'date': ['2024-01-01']})
    with tempfile.TemporaryDirectory() as d:
        path = Path(d) / 'attendance.parquet'
        df.write_parquet(path)
        with pytest.raises(ValueError, match='missing required columns'):
            load_attendance(path)


def test_load_overrides() -> None:
    df = pl.DataFrame({
        'uid': ['a'],
        'date': ['2024-03-01'],
        'version': [3],
        'turnover_daily': [0],
    })
    with tempfile.TemporaryDirectory() as d:
        path = Path(d) / 'overrides.parquet'
        df.write_parquet(path)
        out = load_overrides(path).collect()
    assert out['date'].to_list() == [date(2024, 3, 1)]
    assert out['turnover_daily'].dtype == pl.Int8


def test_load_overrides_without_fields_raises() -> None:
    df = pl.DataFrame({'uid': ['a'], 'date': ['2024-03-01'], 'version': [1]})
    with tempfile.TemporaryDirectory() as d:
        path = Path(d) / 'overrides.parquet'
        df.write_parquet(path)
        with pytest.raises(ValueError, match='none of'):
            load_overrides(path)


def test_load_attendance_parses_string_dates_from_parquet() -> None:
    df = pl.DataFrame({
        'uid': ['a', 'a'],
        'date': ['2024-01-02', '2024-01-03'],
        'raw_status_code': ['P', 'A'],
    })
    with tempfile.TemporaryDirectory() as d:
        path = Path(d) / 'attendance.parquet'
        df.write_parquet(path)
        out = load_attendance(path).collect()
    assert out['date'].dtype == pl.Date
    assert out['date'].to_list() == [date(2024, 1, 2), date(2024, 1, 3)]


def test_load_workers_keeps_date_typed_columns() -> None:
    df = pl.DataFrame({
        'uid': ['a'],
        'doj': [date(2024, 1, 1)],
        'dol': [date(2024, 3, 1)],
    })
    with tempfile.TemporaryDirectory() as d:
        path = Path(d) / 'workers.parquet'
        df.write_parquet(path)
        out = load_workers(path).collect()
    assert out['doj'].to_list() == [date(2024, 1, 1)]
    assert out['dol'].to_list() == [date(2024, 3, 1)]
