"""Cumulative and current-spell tenure at fixed reference dates."""

from datetime import date

import polars as pl

from spell_panel import config
from spell_panel.config import TenureReference


def compute_total_tenure(spells: pl.LazyFrame, reference_date: date, cutoff_date: date) -> pl.LazyFrame:
    """Total days employed across all spells, as of reference_date and capped at cutoff_date.

    Each spell contributes min(end_date or reference_date, cutoff_date) - start_date,
    floored at zero.

    Returns: uid, total_tenure_days, total_tenure_months.
    """
    contribution = pl.max_horizontal(
        (
            pl.min_horizontal(pl.col('end_date').fill_null(pl.lit(reference_date)), pl.lit(cutoff_date))
            - pl.col('start_date')
        ).dt.total_days(),
        pl.lit(0),
    )
    return spells.group_by('uid').agg(
        contribution.sum().alias('total_tenure_days'),
    ).with_columns(
        (pl.col('total_tenure_days') / config.DAYS_PER_MONTH).alias('total_tenure_months'),
    )


def compute_current_tenure(spells: pl.LazyFrame, reference_date: date) -> pl.LazyFrame:
    """Days into the spell active on reference_date, counting the start day.

    A spell is active when start_date <= reference_date <= end_date (or end_date is null).
    Workers with no active spell are absent from the result.

    Returns: uid, current_tenure_days, current_tenure_months.
    """
    ref = pl.lit(reference_date)
    active = (pl.col('start_date') <= ref) & (pl.col('end_date').is_null() | (pl.col('end_date') >= ref))
    return spells.filter(active).group_by('uid').agg(
        ((ref - pl.col('start_date')).dt.total_days() + 1).max().alias('current_tenure_days'),
    ).with_columns(
        (pl.col('current_tenure_days') / config.DAYS_PER_MONTH).alias('current_tenure_months'),
    )


def compute_tenure(
    spells: pl.LazyFrame,
    references: tuple[TenureReference, ...] | list[TenureReference] = config.DEFAULT_TENURE_REFERENCES,
) -> pl.LazyFrame:
    """Total and current tenure for every worker at each reference.

    Args:
        spells: Canonical spells (uid, start_date, end_date).
        references: TenureReference instants to evaluate.

    Returns:
        LazyFrame with uid, reference_label, reference_date, total_tenure_days,
        total_tenure_months, current_tenure_days, current_tenure_months. Current
        tenure is null for workers not employed on the reference date.
    """
    frames: list[pl.LazyFrame] = []
    for ref in references:
        total = compute_total_tenure(spells, ref.reference_date, ref.cutoff)
        current = compute_current_tenure(spells, ref.reference_date)
        frames.append(
            total.join(current, on='uid', how='left').with_columns(
                pl.lit(ref.label).alias('reference_label'),
                pl.lit(ref.reference_date).alias('reference_date'),
            ).select([
                'uid', 'reference_label', 'reference_date',
                'total_tenure_days', 'total_tenure_months',
                'current_tenure_days', 'current_tenure_months',
            ])
        )
    return pl.concat(frames, how='vertical_relaxed').sort(['uid', 'reference_date', 'reference_label'])
