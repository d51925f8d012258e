"""Canonical spell construction and the employment event sweep.

Raw worker records carry up to MAX_SPELLS join/leave date pairs under several
historical column names. normalize_spells reduces them to one ordered,
non-overlapping spell list per worker; spell_events and sweep_employment turn
that list back into day-level coverage.
"""

import logging
import re

import polars as pl

from spell_panel import config
from spell_panel.analysis.data_quality import (
    INVALID_INTERVAL,
    MISSING_IDENTITY,
    NO_VALID_SPELL,
    OVERLAP_CLIPPED,
    DataQualityReport,
)

logger = logging.getLogger(__name__)

# Historical column prefixes, in priority order: for a given slot the first
# non-missing value among these names wins.
JOIN_FIELD_PREFIXES: list[str] = ['doj', 'join_date', 'date_of_joining', 'rejoin_date']
LEAVE_FIELD_PREFIXES: list[str] = ['dol', 'leave_date', 'date_of_leaving', 'exit_date']

SPELL_COLUMNS: list[str] = ['uid', 'spell_index', 'start_date', 'end_date', 'end_clipped']


def _slot_pattern(prefixes: list[str]) -> re.Pattern[str]:
    return re.compile(r'^(' + '|'.join(prefixes) + r')_?(\d*)$', re.IGNORECASE)


def discover_spell_fields(
    columns: list[str],
    max_spells: int = config.MAX_SPELLS,
) -> dict[int, tuple[list[str], list[str]]]:
    """Map spell slots to the join and leave columns that encode them.

    A column named like 'doj', 'doj_3' or 'join_date3' belongs to slot 1, 3 and 3
    respectively. Within a slot, candidate columns are ordered by prefix priority.

    Args:
        columns: Column names of the worker frame.
        max_spells: Slots above this number are ignored.

    Returns:
        Dict of slot -> (join columns, leave columns). Slots without any join
        column are omitted since they cannot produce a spell.
    """
    found: dict[int, tuple[list[tuple[int, str]], list[tuple[int, str]]]] = {}
    for kind, prefixes in enumerate([JOIN_FIELD_PREFIXES, LEAVE_FIELD_PREFIXES]):
        pattern = _slot_pattern(prefixes)
        for col in columns:
            m = pattern.match(col)
            if m is None:
                continue
            slot = int(m.group(2)) if m.group(2) else 1
            if slot < 1 or slot > max_spells:
                continue
            priority = [p.lower() for p in prefixes].index(m.group(1).lower())
            found.setdefault(slot, ([], []))[kind].append((priority, col))

    field_map: dict[int, tuple[list[str], list[str]]] = {}
    for slot in sorted(found):
        joins, leaves = found[slot]
        if not joins:
            continue
        field_map[slot] = (
            [c for _, c in sorted(joins)],
            [c for _, c in sorted(leaves)],
        )
    return field_map


def _coalesce_dates(cols: list[str]) -> pl.Expr:
    if not cols:
        return pl.lit(None, dtype=pl.Date)
    return pl.coalesce([pl.col(c).cast(pl.Date) for c in cols])


def normalize_spells(
    workers: pl.LazyFrame,
    field_map: dict[int, tuple[list[str], list[str]]] | None = None,
    max_spells: int = config.MAX_SPELLS,
    report: DataQualityReport | None = None,
) -> pl.LazyFrame:
    """Reduce wide join/leave fields to an ordered spell list per worker.

    Rows without a usable uid are dropped (missing_identity). Each slot yields a
    spell when its join date is present. Spells are sorted by start date and
    re-indexed 1..N. A known end on or after the next spell's start is clipped to
    the day before it (overlap_clipped); spells left with end_date <= start_date
    are dropped (invalid_interval). Workers with no remaining spell are dropped
    (no_valid_spell).

    Args:
        workers: LazyFrame with uid and join/leave date columns.
        field_map: Slot -> (join columns, leave columns); discovered from the
                   column names when omitted.
        max_spells: Highest slot number read when discovering fields.
        report: Optional DataQualityReport receiving exclusion counts.

    Returns:
        LazyFrame with uid, spell_index, start_date, end_date, end_clipped sorted by
        uid, spell_index. end_clipped marks exits moved to the day before the next join.

    Raises:
        ValueError: If uid is missing or no join date column can be found.
    """
    report = report if report is not None else DataQualityReport()
    schema_cols = workers.collect_schema().names()
    if 'uid' not in schema_cols:
        raise ValueError(f'Worker data missing required columns: [\'uid\']; got {schema_cols}')
    field_map = field_map or discover_spell_fields(schema_cols, max_spells)
    if not field_map:
        raise ValueError(f'No join date columns found among {schema_cols}')

    workers = workers.with_columns(pl.col('uid').cast(pl.Utf8).str.strip_chars())
    has_uid = pl.col('uid').is_not_null() & (pl.col('uid') != '')
    n_missing_uid = workers.filter(~has_uid).select(pl.len()).collect().item()
    report.record(MISSING_IDENTITY, n_missing_uid)
    workers = workers.filter(has_uid)

    frames: list[pl.LazyFrame] = []
    for slot, (join_cols, leave_cols) in sorted(field_map.items()):
        frames.append(
            workers.select(
                pl.col('uid'),
                pl.lit(slot, dtype=pl.Int32).alias('slot'),
                _coalesce_dates(join_cols).alias('start_date'),
                _coalesce_dates(leave_cols).alias('end_date'),
            )
        )
    spells = (
        pl.concat(frames, how='vertical_relaxed')
        .filter(pl.col('start_date').is_not_null())
        .sort(['uid', 'start_date', 'slot'])
        .with_columns(pl.col('start_date').shift(-1).over('uid').alias('next_start'))
        .collect()
    )

    # Overlap: a recorded exit that is not before the next join
    overlap = (
        pl.col('end_date').is_not_null()
        & pl.col('next_start').is_not_null()
        & (pl.col('end_date') >= pl.col('next_start'))
    )
    report.record(OVERLAP_CLIPPED, spells.filter(overlap).height)
    spells = spells.with_columns(
        pl.when(overlap)
        .then((pl.col('next_start') - pl.duration(days=1)).cast(pl.Date))
        .otherwise(pl.col('end_date'))
        .alias('end_date'),
        overlap.alias('end_clipped'),
    )

    invalid = pl.col('end_date').is_not_null() & (pl.col('end_date') <= pl.col('start_date'))
    report.record(INVALID_INTERVAL, spells.filter(invalid).height, 'spell end on or before start')
    spells = spells.filter(~invalid)

    n_workers = workers.select(pl.col('uid').n_unique()).collect().item()
    n_with_spells = spells['uid'].n_unique()
    report.record(NO_VALID_SPELL, n_workers - n_with_spells)

    spells = spells.with_columns(
        pl.int_range(1, pl.len() + 1, dtype=pl.Int32).over('uid').alias('spell_index'),
    ).select(SPELL_COLUMNS)
    logger.info('Normalized %d spells for %d workers', spells.height, n_with_spells)
    return spells.lazy()


def with_next_start(spells: pl.LazyFrame) -> pl.LazyFrame:
    """Add next_start: the start of the worker's following spell (null for the last)."""
    return spells.sort(['uid', 'start_date']).with_columns(
        pl.col('start_date').shift(-1).over('uid').alias('next_start'),
    )


def spell_events(spells: pl.LazyFrame) -> pl.LazyFrame:
    """Convert spells into +1/-1 boundary events with a per-worker running sum.

    Each spell emits +1 on start_date and, when end_date is known, -1 on the day
    after end_date. Events on the same day are netted.

    Returns:
        LazyFrame with uid, date, delta, running sorted by uid, date.
    """
    starts = spells.select(
        pl.col('uid'),
        pl.col('start_date').alias('date'),
        pl.lit(1, dtype=pl.Int32).alias('delta'),
    )
    ends = spells.filter(pl.col('end_date').is_not_null()).select(
        pl.col('uid'),
        (pl.col('end_date') + pl.duration(days=1)).cast(pl.Date).alias('date'),
        pl.lit(-1, dtype=pl.Int32).alias('delta'),
    )
    return (
        pl.concat([starts, ends])
        .group_by(['uid', 'date'])
        .agg(pl.col('delta').sum())
        .sort(['uid', 'date'])
        .with_columns(pl.col('delta').cum_sum().over('uid').alias('running'))
    )


def sweep_employment(days: pl.LazyFrame, spells: pl.LazyFrame) -> pl.LazyFrame:
    """Attach the event-sweep running sum to each (uid, date) row.

    The running sum on a day is the value after the latest event on or before it;
    days before a worker's first event get 0.

    Args:
        days: LazyFrame with uid, date.
        spells: Canonical spells (uid, start_date, end_date).

    Returns:
        days with an added running column (Int32, never null).
    """
    events = spell_events(spells).select(['uid', 'date', 'running']).sort('date')
    return (
        days.sort('date')
        .join_asof(events, on='date', by='uid', strategy='backward')
        .with_columns(pl.col('running').fill_null(0))
    )
