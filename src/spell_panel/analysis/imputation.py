"""Imputation of unrecorded leave dates for workers who rejoined.

A spell with no end_date that is followed by another spell must have ended
before the rejoin. The end is estimated as next_start - avg_gap, where avg_gap is
the population mean rejoin gap; when that estimate does not fall after the
spell's start (or no gap was ever observed) the midpoint of start and next_start
is used instead.
"""

import logging

import polars as pl

from spell_panel.analysis.data_quality import (
    IMPUTATION_FALLBACK_USED,
    INVALID_INTERVAL,
    DataQualityReport,
)
from spell_panel.spells import with_next_start

logger = logging.getLogger(__name__)

PRIMARY: str = 'avg_gap'
FALLBACK: str = 'midpoint'


def compute_avg_gap(spells: pl.LazyFrame) -> float | None:
    """Mean days between a recorded end_date and the next spell's start_date.

    Averaged over every worker and spell where both dates are observed. Ends
    flagged end_clipped were derived from the next start, not observed, and are
    left out.

    Returns:
        Mean gap in days, or None if no such pair exists.
    """
    observed = pl.col('end_date').is_not_null() & pl.col('next_start').is_not_null()
    if 'end_clipped' in spells.collect_schema().names():
        observed = observed & ~pl.col('end_clipped').fill_null(False)
    gaps = with_next_start(spells).filter(observed).select(
        (pl.col('next_start') - pl.col('end_date')).dt.total_days().mean().alias('avg_gap'),
    ).collect()
    value = gaps['avg_gap'][0]
    return None if value is None else float(value)


def impute_missing_ends(
    spells: pl.LazyFrame,
    avg_gap: float | None = None,
    report: DataQualityReport | None = None,
) -> pl.LazyFrame:
    """Fill end_date for spells that have a successor but no recorded exit.

    Primary estimate: next_start - round(avg_gap) days. Fallback, used when the
    primary is undefined or not after start_date: start_date plus half the days to
    next_start (floored). Spells whose fallback still does not end after start_date
    are dropped (invalid_interval). The final spell of a worker is never imputed.

    Args:
        spells: Canonical spells (uid, spell_index, start_date, end_date).
        avg_gap: Population mean rejoin gap; computed from spells when omitted.
        report: Optional DataQualityReport receiving fallback and exclusion counts.

    Returns:
        LazyFrame with the input columns plus end_imputed (bool) and
        imputation_method ('avg_gap', 'midpoint' or null), re-indexed 1..N.
    """
    report = report if report is not None else DataQualityReport()
    if avg_gap is None:
        avg_gap = compute_avg_gap(spells)
    logger.info('Average rejoin gap: %s days', 'n/a' if avg_gap is None else f'{avg_gap:.2f}')

    needs = pl.col('end_date').is_null() & pl.col('next_start').is_not_null()

    if avg_gap is None:
        primary = pl.lit(None, dtype=pl.Date)
    else:
        primary = (pl.col('next_start') - pl.duration(days=round(avg_gap))).cast(pl.Date)
    midpoint = (
        pl.col('start_date')
        + pl.duration(days=(pl.col('next_start') - pl.col('start_date')).dt.total_days() // 2)
    ).cast(pl.Date)

    df = with_next_start(spells).with_columns(
        primary.alias('_primary'),
        midpoint.alias('_midpoint'),
    ).with_columns(
        (pl.col('_primary').is_not_null() & (pl.col('_primary') > pl.col('start_date'))).alias('_primary_ok'),
    ).with_columns(
        pl.when(needs & pl.col('_primary_ok'))
        .then(pl.lit(PRIMARY))
        .when(needs)
        .then(pl.lit(FALLBACK))
        .otherwise(pl.lit(None, dtype=pl.Utf8))
        .alias('imputation_method'),
    ).with_columns(
        pl.when(pl.col('imputation_method') == PRIMARY)
        .then(pl.col('_primary'))
        .when(pl.col('imputation_method') == FALLBACK)
        .then(pl.col('_midpoint'))
        .otherwise(pl.col('end_date'))
        .alias('end_date'),
        pl.col('imputation_method').is_not_null().alias('end_imputed'),
    ).collect()

    n_imputed = df.filter(pl.col('end_imputed')).height
    n_fallback = df.filter(pl.col('imputation_method') == FALLBACK).height
    report.record(IMPUTATION_FALLBACK_USED, n_fallback)

    # Midpoint of a one-day gap equals start_date; nothing valid fits there
    invalid = pl.col('end_imputed') & (pl.col('end_date') <= pl.col('start_date'))
    report.record(INVALID_INTERVAL, df.filter(invalid).height, 'no room to impute leave date')
    df = df.filter(~invalid)

    logger.info('Imputed %d leave dates (%d by %s fallback)', n_imputed, n_fallback, FALLBACK)
    return df.sort(['uid', 'start_date']).with_columns(
        pl.int_range(1, pl.len() + 1, dtype=pl.Int32).over('uid').alias('spell_index'),
    ).select(['uid', 'spell_index', 'start_date', 'end_date', 'end_imputed', 'imputation_method']).lazy()
