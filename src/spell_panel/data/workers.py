"""Load cleaned worker records (uid plus join/leave date fields)."""

from pathlib import Path

import polars as pl

from spell_panel.spells import discover_spell_fields

REQUIRED_COLUMNS: list[str] = ['uid']


def scan_table(path: str | Path) -> pl.LazyFrame:
    """Scan a parquet file, a directory of parquet files, or a CSV file.

    Args:
        path: Path to the table.

    Returns:
        LazyFrame over the file(s).
    """
    p = Path(path)
    if p.is_dir():
        return pl.scan_parquet(p / '*.parquet')
    if p.suffix.lower() == '.csv':
        return pl.scan_csv(p, try_parse_dates=True)
    return pl.scan_parquet(p)


def date_expr(name: str, dtype: pl.DataType) -> pl.Expr:
    """Column as Date: ISO strings are parsed, temporal types are cast."""
    if dtype == pl.Utf8:
        return pl.col(name).str.to_date('%Y-%m-%d')
    return pl.col(name).cast(pl.Date)


def load_workers(path: str | Path) -> pl.LazyFrame:
    """Load worker records, validate, and cast identifier and date fields.

    Every column recognised as a join or leave field is cast to Date; other
    columns are kept as-is.

    Args:
        path: Parquet file, directory of parquet files, or CSV.

    Returns:
        LazyFrame with uid (string) and Date-typed spell fields.

    Raises:
        ValueError: If uid is missing or no join date column exists.
    """
    lf = scan_table(path)
    schema = lf.collect_schema()
    schema_cols = schema.names()
    missing = [c for c in REQUIRED_COLUMNS if c not in schema_cols]
    if missing:
        raise ValueError(f'Worker data missing required columns: {missing}; got {schema_cols}')

    field_map = discover_spell_fields(schema_cols)
    if not field_map:
        raise ValueError(f'Worker data has no join date columns; got {schema_cols}')
    date_cols = sorted({c for joins, leaves in field_map.values() for c in joins + leaves})

    return lf.with_columns(
        pl.col('uid').cast(pl.Utf8),
        *[date_expr(c, schema[c]) for c in date_cols],
    )
