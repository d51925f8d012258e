"""Tests for the multi-spell survival dataset."""

from datetime import date

import polars as pl

from spell_panel.analysis.data_quality import INVALID_INTERVAL, DataQualityReport
from spell_panel.analysis.survival import (
    build_survival_spells,
    summarize_survival,
    validate_survival_intervals,
)
from spell_panel.config import StudyConfig

STUDY = StudyConfig(window_start=date(2024, 1, 1), window_end=date(2024, 6, 1))


def _make_spells() -> pl.LazyFrame:
    """a: rejoined and still active; b: one spell ending inside the window; c: three spells, last one ends."""
    return pl.LazyFrame({
        'uid': ['a', 'a', 'b', 'c', 'c', 'c'],
        'start_date': [
            date(2024, 1, 1), date(2024, 4, 1),
            date(2024, 1, 1),
            date(2023, 6, 1), date(2024, 2, 1), date(2024, 4, 1),
        ],
        'end_date': [
            date(2024, 3, 1), None,
            date(2024, 2, 1),
            date(2024, 1, 15), date(2024, 3, 1), date(2024, 5, 1),
        ],
    })


def test_survival_columns() -> None:
    out = build_survival_spells(_make_spells(), STUDY).collect()
    assert out.columns == ['uid', 'spell_index', 'entry_time', 'exit_time', 'failure_flag']


def test_rejoin_still_active() -> None:
    out = build_survival_spells(_make_spells(), STUDY).collect()
    a = out.filter(pl.col('uid') == 'a').sort('spell_index')
    assert a.height == 2
    # First exit was followed by a rejoin: censored
    assert a['failure_flag'].to_list() == [0, 0]
    assert a['entry_time'].to_list() == [0, 91]
    assert a['exit_time'].to_list() == [60, 152]


def test_single_spell_failure() -> None:
    out = build_survival_spells(_make_spells(), STUDY).collect()
    b = out.filter(pl.col('uid') == 'b')
    assert b.height == 1
    assert b['failure_flag'].to_list() == [1]
    assert b['entry_time'].to_list() == [0]
    assert b['exit_time'].to_list() == [31]


def test_terminal_failure_only_on_last_spell() -> None:
    out = build_survival_spells(_make_spells(), STUDY).collect()
    c = out.filter(pl.col('uid') == 'c').sort('spell_index')
    assert c['spell_index'].to_list() == [1, 2, 3]
    assert c['failure_flag'].to_list() == [0, 0, 1]
    # Spell starting before the window enters at time 0
    assert c['entry_time'].to_list()[0] == 0
    assert c['exit_time'].to_list()[0] == 14


def test_at_most_one_failure_per_worker() -> None:
    out = build_survival_spells(_make_spells(), STUDY).collect()
    per_worker = out.group_by('uid').agg(
        pl.col('failure_flag').cast(pl.Int64).sum().alias('failures'),
        pl.col('spell_index').max().alias('last_index'),
        pl.col('spell_index').filter(pl.col('failure_flag') == 1).first().alias('failed_index'),
    )
    for row in per_worker.iter_rows(named=True):
        assert row['failures'] <= 1
        if row['failures'] == 1:
            assert row['failed_index'] == row['last_index']


def test_times_within_window() -> None:
    out = build_survival_spells(_make_spells(), STUDY).collect()
    assert (out['entry_time'] >= 0).all()
    assert (out['exit_time'] > out['entry_time']).all()
    assert (out['exit_time'] <= STUDY.window_length).all()


def test_spells_outside_window_dropped_and_reindexed() -> None:
    spells = pl.LazyFrame({
        'uid': ['d', 'd', 'd'],
        'start_date': [date(2023, 1, 1), date(2024, 2, 1), date(2024, 7, 1)],
        'end_date': [date(2023, 6, 1), date(2024, 3, 1), None],
    })
    out = build_survival_spells(spells, STUDY).collect()
    assert out['spell_index'].to_list() == [1]
    assert out['entry_time'].to_list() == [31]
    # Last surviving spell ends inside the window
    assert out['failure_flag'].to_list() == [1]


def test_end_after_window_is_censored() -> None:
    spells = pl.LazyFrame({
        'uid': ['e'],
        'start_date': [date(2024, 3, 1)],
        'end_date': [date(2024, 9, 1)],
    })
    out = build_survival_spells(spells, STUDY).collect()
    assert out['failure_flag'].to_list() == [0]
    assert out['exit_time'].to_list() == [STUDY.window_length]


def test_zero_length_interval_excluded_and_counted() -> None:
    # Ends on the window start: entry_time == exit_time == 0
    spells = pl.LazyFrame({
        'uid': ['f', 'g'],
        'start_date': [date(2023, 12, 1), date(2024, 1, 1)],
        'end_date': [date(2024, 1, 1), None],
    })
    report = DataQualityReport()
    out = build_survival_spells(spells, STUDY, report=report).collect()
    assert out['uid'].to_list() == ['g']
    assert report.count(INVALID_INTERVAL) == 1


def test_validate_survival_intervals() -> None:
    survival = pl.LazyFrame({
        'uid': ['a', 'b', 'c'],
        'spell_index': [1, 1, 1],
        'entry_time': [0, 5, -1],
        'exit_time': [10, 5, 3],
        'failure_flag': [1, 0, 0],
    })
    valid, n_invalid = validate_survival_intervals(survival, STUDY)
    assert valid.collect()['uid'].to_list() == ['a']
    assert n_invalid == 2


def test_summarize_survival() -> None:
    summary = summarize_survival(build_survival_spells(_make_spells(), STUDY))
    row = summary.row(0, named=True)
    assert row['workers'] == 3
    assert row['spells'] == 6
    assert row['failures'] == 2
