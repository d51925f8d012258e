"""Daily turnover indicator for discrete-time models.

turnover_daily is 0 while a worker is inside a spell and 1 from the day a spell's
end_date is reached until the day before the next spell starts, and permanently
after the final spell's end. The exit day itself counts as turnover. Days before
the worker's first join carry no spell information and are null.
"""

import polars as pl


def turnover_expr() -> pl.Expr:
    """Turnover from the latest spell started on or before the row's date.

    Expects start_date/end_date columns produced by an as-of join on date.
    """
    return (
        pl.when(pl.col('start_date').is_null())
        .then(pl.lit(None, dtype=pl.Int8))
        .when(pl.col('end_date').is_null() | (pl.col('date') < pl.col('end_date')))
        .then(pl.lit(0, dtype=pl.Int8))
        .otherwise(pl.lit(1, dtype=pl.Int8))
    )


def derive_turnover_daily(daily: pl.LazyFrame, spells: pl.LazyFrame) -> pl.LazyFrame:
    """Add turnover_daily to a (uid, date) panel.

    Args:
        daily: LazyFrame with at least uid, date (typically the reconciled panel).
        spells: Canonical spells (uid, start_date, end_date), non-overlapping.

    Returns:
        daily with an added turnover_daily column (Int8 0/1/null), sorted by uid, date.
    """
    lookup = spells.select(
        pl.col('uid').cast(pl.Utf8),
        pl.col('start_date'),
        pl.col('end_date'),
    ).sort('start_date')
    cols = daily.collect_schema().names()
    return (
        daily.sort('date')
        .join_asof(lookup, left_on='date', right_on='start_date', by='uid', strategy='backward')
        .with_columns(turnover_expr().alias('turnover_daily'))
        .select(cols + ['turnover_daily'])
        .sort(['uid', 'date'])
    )


def summarize_turnover(daily: pl.LazyFrame) -> pl.LazyFrame:
    """Daily headcount and exits across workers.

    Returns: date, workers_observed, employed, separated, turnover_rate
    (separated / workers with a defined turnover value).
    """
    return daily.group_by('date').agg(
        pl.col('turnover_daily').is_not_null().sum().alias('workers_observed'),
        (pl.col('turnover_daily') == 0).sum().alias('employed'),
        (pl.col('turnover_daily') == 1).sum().alias('separated'),
    ).with_columns(
        (pl.col('separated') / pl.col('workers_observed')).alias('turnover_rate'),
    ).sort('date')
