"""Load the versioned (uid, date) override table."""

from pathlib import Path

import polars as pl

from spell_panel.analysis.overrides import OVERRIDE_FIELDS
from spell_panel.data.workers import date_expr, scan_table

REQUIRED_COLUMNS: list[str] = ['uid', 'date', 'version']


def load_overrides(path: str | Path) -> pl.LazyFrame:
    """Load override rows: uid, date, version, optional status/employment_flag/turnover_daily/reason.

    Raises:
        ValueError: If required columns are missing or no override field is present.
    """
    lf = scan_table(path)
    schema = lf.collect_schema()
    schema_cols = schema.names()
    missing = [c for c in REQUIRED_COLUMNS if c not in schema_cols]
    if missing:
        raise ValueError(f'Override data missing required columns: {missing}; got {schema_cols}')
    fields = [f for f in OVERRIDE_FIELDS if f in schema_cols]
    if not fields:
        raise ValueError(f'Override data has none of {OVERRIDE_FIELDS}; got {schema_cols}')

    casts = {'status': pl.Utf8, 'employment_flag': pl.Int8, 'turnover_daily': pl.Int8}
    return lf.with_columns(
        pl.col('uid').cast(pl.Utf8),
        date_expr('date', schema['date']),
        pl.col('version').cast(pl.Int64),
        *[pl.col(f).cast(casts[f]) for f in fields],
    )
