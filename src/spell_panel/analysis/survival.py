"""Multi-spell survival dataset with a single terminal failure per worker.

Each spell overlapping the study window becomes one row with entry/exit times in
days from window_start. A spell fails when its end_date is at or before
window_end; otherwise it is censored at window_end. Only the chronologically last
spell of a worker may carry failure_flag = 1: earlier exits were followed by a
rejoin and are treated as censored.
"""

import logging

import polars as pl

from spell_panel.analysis.data_quality import INVALID_INTERVAL, DataQualityReport
from spell_panel.config import StudyConfig

logger = logging.getLogger(__name__)

SURVIVAL_COLUMNS: list[str] = ['uid', 'spell_index', 'entry_time', 'exit_time', 'failure_flag']


def build_survival_spells(
    spells: pl.LazyFrame,
    study: StudyConfig,
    report: DataQualityReport | None = None,
) -> pl.LazyFrame:
    """Reshape canonical spells into (uid, spell) survival rows over the study window.

    Steps: drop spells without a start or without overlap with
    [window_start, window_end]; re-index per worker 1..k; failure when end_date is
    non-null and <= window_end; entry_time = max(start, window_start) - window_start;
    exit_time = (end_date if failure else window_end) - window_start; zero failure
    on all but the last spell. Rows violating 0 <= entry_time < exit_time are
    excluded and counted as invalid_interval.

    Args:
        spells: Canonical spells (uid, start_date, end_date).
        study: StudyConfig supplying window_start and window_end.
        report: Optional DataQualityReport receiving invalid interval counts.

    Returns:
        LazyFrame with uid, spell_index, entry_time, exit_time, failure_flag.
    """
    report = report if report is not None else DataQualityReport()
    ws = pl.lit(study.window_start)
    we = pl.lit(study.window_end)

    overlaps = (pl.col('start_date') <= we) & (pl.col('end_date').fill_null(we) >= ws)
    df = (
        spells.filter(pl.col('start_date').is_not_null())
        .filter(overlaps)
        .sort(['uid', 'start_date'])
        .with_columns(
            pl.int_range(1, pl.len() + 1, dtype=pl.Int32).over('uid').alias('spell_index'),
        )
        .with_columns(
            (pl.col('end_date').is_not_null() & (pl.col('end_date') <= we)).alias('_failure'),
        )
        .with_columns(
            (pl.max_horizontal(pl.col('start_date'), ws) - ws).dt.total_days().alias('entry_time'),
            (
                pl.when(pl.col('_failure')).then(pl.col('end_date')).otherwise(we) - ws
            ).dt.total_days().alias('exit_time'),
            # Terminal failure: only the last spell keeps its event
            pl.when(pl.col('spell_index') == pl.col('spell_index').max().over('uid'))
            .then(pl.col('_failure').cast(pl.Int8))
            .otherwise(pl.lit(0, dtype=pl.Int8))
            .alias('failure_flag'),
        )
        .select(SURVIVAL_COLUMNS)
    )

    valid, n_invalid = validate_survival_intervals(df, study)
    report.record(INVALID_INTERVAL, n_invalid, 'survival row with exit_time <= entry_time')
    return valid


def validate_survival_intervals(
    survival: pl.LazyFrame,
    study: StudyConfig,
) -> tuple[pl.LazyFrame, int]:
    """Split off survival rows that break 0 <= entry_time < exit_time <= window length.

    Returns:
        Tuple of (valid rows LazyFrame, number of rows excluded).
    """
    ok = (
        (pl.col('entry_time') >= 0)
        & (pl.col('exit_time') > pl.col('entry_time'))
        & (pl.col('exit_time') <= study.window_length)
    )
    df = survival.collect()
    bad = df.filter(~ok)
    if bad.height:
        logger.warning(
            'Excluding %d survival rows with invalid intervals (workers: %s)',
            bad.height,
            ', '.join(bad['uid'].unique().sort().head(10).to_list()),
        )
    return df.filter(ok).lazy(), bad.height


def summarize_survival(survival: pl.LazyFrame) -> pl.DataFrame:
    """Counts of workers, spells, failures and total exposure days."""
    return survival.select(
        pl.col('uid').n_unique().alias('workers'),
        pl.len().alias('spells'),
        pl.col('failure_flag').cast(pl.Int64).sum().alias('failures'),
        (pl.col('exit_time') - pl.col('entry_time')).sum().alias('exposure_days'),
    ).collect()
