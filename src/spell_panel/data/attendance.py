"""Load daily attendance observations."""

from pathlib import Path

import polars as pl

from spell_panel.data.workers import date_expr, scan_table

REQUIRED_COLUMNS: list[str] = ['uid', 'date', 'raw_status_code']


def load_attendance(path: str | Path) -> pl.LazyFrame:
    """Load (uid, date, raw_status_code) observations.

    Raises:
        ValueError: If required columns are missing.
    """
    lf = scan_table(path)
    schema = lf.collect_schema()
    schema_cols = schema.names()
    missing = [c for c in REQUIRED_COLUMNS if c not in schema_cols]
    if missing:
        raise ValueError(f'Attendance data missing required columns: {missing}; got {schema_cols}')

    return lf.select(
        pl.col('uid').cast(pl.Utf8),
        date_expr('date', schema['date']),
        pl.col('raw_status_code').cast(pl.Utf8),
    )
