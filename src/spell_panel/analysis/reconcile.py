"""Daily status reconciliation of attendance codes against canonical spells.

The event sweep over spell boundaries is the ground truth for whether a worker
is on the books on a day. Attendance codes only refine the status of days the
sweep already counts as employed. Precedence, in order:

1. Employed by the sweep: keep the raw status, except 'left'/'not_joined' which
   become 'present'; a missing code stays 'missing'.
2. Between a spell's end and the next spell's start (rejoin gap), or after the
   final spell's end: 'left', not employed, attendance unknown.
3. Before the first join when that join is after the study start: 'not_joined',
   not employed.
4. Anything else has no spell information: 'not_joined'/not employed if a code
   was observed, otherwise 'missing' with employment unknown.
"""

import logging
from datetime import date

import polars as pl

from spell_panel.analysis.data_quality import (
    AMBIGUOUS_STATUS,
    DUPLICATE_ATTENDANCE,
    UNLINKED_ATTENDANCE,
    UNMAPPED_STATUS_CODE,
    DataQualityReport,
)
from spell_panel.config import StudyConfig
from spell_panel.spells import sweep_employment, with_next_start
from spell_panel.status_codes import (
    LEFT,
    MISSING,
    NON_EMPLOYED_STATUSES,
    NOT_JOINED,
    PRESENT,
    WORKING_STATUSES,
    attendance_expr,
    status_code_expr,
    unmapped_code_expr,
)

logger = logging.getLogger(__name__)

DAILY_COLUMNS: list[str] = [
    'uid', 'date', 'raw_status_code', 'status', 'attendance', 'employment_flag',
]


def build_day_grid(
    spells: pl.LazyFrame,
    attendance: pl.LazyFrame,
    study_start: date,
    study_end: date,
) -> pl.LazyFrame:
    """Every (uid, date) to reconcile.

    Each worker with spells gets every calendar day in [study_start, study_end],
    plus any day on which attendance was observed for them.

    Returns: uid, date sorted by uid, date.
    """
    calendar = pl.LazyFrame({'date': pl.date_range(study_start, study_end, '1d', eager=True)})
    uids = spells.select('uid').unique()
    grid = uids.join(calendar, how='cross')
    observed = attendance.select(['uid', 'date']).join(uids, on='uid', how='semi')
    return pl.concat([grid, observed]).unique(['uid', 'date']).sort(['uid', 'date'])


def _prepare_attendance(
    attendance: pl.LazyFrame,
    spells: pl.LazyFrame,
    status_col: str,
    report: DataQualityReport,
) -> pl.LazyFrame:
    att = attendance.select(
        pl.col('uid').cast(pl.Utf8),
        pl.col('date').cast(pl.Date),
        pl.col(status_col).cast(pl.Utf8).alias('raw_status_code'),
    ).filter(pl.col('uid').is_not_null() & pl.col('date').is_not_null()).with_row_index('_order')

    uids = spells.select('uid').unique()
    n_unlinked = att.join(uids, on='uid', how='anti').select(pl.len()).collect().item()
    report.record(UNLINKED_ATTENDANCE, n_unlinked, 'attendance for workers without spells')
    att = att.join(uids, on='uid', how='semi')

    # First observation of a (uid, date) wins
    n_rows = att.select(pl.len()).collect().item()
    att = att.sort('_order').unique(['uid', 'date'], keep='first', maintain_order=True).drop('_order')
    n_unique = att.select(pl.len()).collect().item()
    report.record(DUPLICATE_ATTENDANCE, n_rows - n_unique)

    n_unmapped = att.filter(unmapped_code_expr('raw_status_code')).select(pl.len()).collect().item()
    report.record(UNMAPPED_STATUS_CODE, n_unmapped)
    return att


def reconcile_daily_status(
    spells: pl.LazyFrame,
    attendance: pl.LazyFrame,
    study: StudyConfig,
    status_col: str = 'raw_status_code',
    report: DataQualityReport | None = None,
) -> pl.LazyFrame:
    """Produce one authoritative (status, attendance, employment_flag) per worker-day.

    Args:
        spells: Canonical spells (uid, start_date, end_date), non-overlapping.
        attendance: LazyFrame with uid, date and a raw status code column.
        study: StudyConfig; study_start/study_end bound the calendar.
        status_col: Name of the raw code column in attendance. Passing the
                    'status' column of a reconciled panel reproduces that panel.
        report: Optional DataQualityReport receiving conflict and exclusion counts.

    Returns:
        LazyFrame with uid, date, raw_status_code, status, attendance (Int8 0/1/null),
        employment_flag (Int8 0/1/null), sorted by uid, date.
    """
    report = report if report is not None else DataQualityReport()
    spells = spells.with_columns(pl.col('uid').cast(pl.Utf8))
    att = _prepare_attendance(attendance, spells, status_col, report)

    grid = build_day_grid(spells, att, study.study_start, study.study_end)
    days = grid.join(att, on=['uid', 'date'], how='left').with_columns(
        status_code_expr('raw_status_code').alias('_code'),
    ).with_columns(
        pl.when(pl.col('_code') == MISSING).then(pl.lit(None, dtype=pl.Utf8)).otherwise(pl.col('_code')).alias('_code'),
    )

    days = sweep_employment(days, spells)

    # Latest spell started on or before each day
    lookup = with_next_start(spells).select(['uid', 'start_date', 'end_date', 'next_start']).sort('start_date')
    first_start = spells.group_by('uid').agg(pl.col('start_date').min().alias('_first_start'))
    days = (
        days.sort('date')
        .join_asof(lookup, left_on='date', right_on='start_date', by='uid', strategy='backward')
        .join(first_start, on='uid', how='left')
    )

    employed = pl.col('running') > 0
    after_end = ~employed & pl.col('end_date').is_not_null() & (pl.col('date') > pl.col('end_date'))
    in_gap = after_end & pl.col('next_start').is_not_null()
    after_exit = after_end & pl.col('next_start').is_null()
    before_join = (
        ~employed
        & pl.col('start_date').is_null()
        & (pl.col('_first_start') > pl.lit(study.study_start))
    )
    known_off = in_gap | after_exit | before_join
    code = pl.col('_code')

    days = days.with_columns(
        pl.when(employed & code.is_in(NON_EMPLOYED_STATUSES))
        .then(pl.lit(PRESENT))
        .when(employed)
        .then(code.fill_null(MISSING))
        .when(in_gap | after_exit)
        .then(pl.lit(LEFT))
        .when(before_join | code.is_not_null())
        .then(pl.lit(NOT_JOINED))
        .otherwise(pl.lit(MISSING))
        .alias('status'),
        pl.when(employed)
        .then(pl.lit(1, dtype=pl.Int8))
        .when(known_off | code.is_not_null())
        .then(pl.lit(0, dtype=pl.Int8))
        .otherwise(pl.lit(None, dtype=pl.Int8))
        .alias('employment_flag'),
        (
            (employed & code.is_in(NON_EMPLOYED_STATUSES))
            | (~employed & code.is_in(WORKING_STATUSES))
        ).alias('_conflict'),
    ).with_columns(
        attendance_expr('status').alias('attendance'),
    ).collect()

    n_conflicts = days['_conflict'].sum()
    report.record(AMBIGUOUS_STATUS, n_conflicts, 'attendance code overruled by spells')
    n_unknown = days.filter(pl.col('employment_flag').is_null()).height
    if n_unknown:
        logger.info('%d worker-days have no spell information and no attendance code', n_unknown)

    return days.select(DAILY_COLUMNS).sort(['uid', 'date']).lazy()
