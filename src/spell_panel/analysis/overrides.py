"""Versioned manual corrections applied as the last pass over the daily panel."""

import logging

import polars as pl

from spell_panel.analysis.data_quality import OVERRIDE_UNMATCHED, DataQualityReport
from spell_panel.status_codes import attendance_expr

logger = logging.getLogger(__name__)

OVERRIDE_FIELDS: list[str] = ['status', 'employment_flag', 'turnover_daily']


def latest_overrides(overrides: pl.LazyFrame) -> pl.LazyFrame:
    """Keep the highest version per (uid, date)."""
    return (
        overrides.sort(['uid', 'date', 'version'])
        .group_by(['uid', 'date'], maintain_order=True)
        .last()
    )


def apply_overrides(
    daily: pl.LazyFrame,
    overrides: pl.LazyFrame,
    report: DataQualityReport | None = None,
) -> pl.LazyFrame:
    """Replace panel values with override values keyed by (uid, date).

    Only non-null override fields are applied. A status override also recomputes
    attendance from the new status. Override keys with no panel row are counted
    as override_unmatched.

    Args:
        daily: Reconciled panel with uid, date, status, attendance, employment_flag,
               turnover_daily.
        overrides: LazyFrame with uid, date, version and any of status,
                   employment_flag, turnover_daily, reason.
        report: Optional DataQualityReport.

    Returns:
        daily with overridden values and an override_reason column (null where
        no override applied).
    """
    report = report if report is not None else DataQualityReport()
    schema = overrides.collect_schema().names()
    fields = [f for f in OVERRIDE_FIELDS if f in schema]

    ov = latest_overrides(overrides).select(
        ['uid', 'date']
        + [pl.col(f).alias(f'_ov_{f}') for f in fields]
        + [
            (pl.col('reason') if 'reason' in schema else pl.lit('manual override'))
            .cast(pl.Utf8).alias('override_reason'),
        ]
    )

    n_unmatched = ov.join(daily.select(['uid', 'date']), on=['uid', 'date'], how='anti').select(pl.len()).collect().item()
    report.record(OVERRIDE_UNMATCHED, n_unmatched)

    out = daily.join(ov, on=['uid', 'date'], how='left')
    for f in fields:
        out = out.with_columns(
            pl.coalesce([pl.col(f'_ov_{f}').cast(out.collect_schema()[f]), pl.col(f)]).alias(f),
        )
    if 'status' in fields:
        out = out.with_columns(
            pl.when(pl.col('_ov_status').is_not_null())
            .then(attendance_expr('status'))
            .otherwise(pl.col('attendance'))
            .alias('attendance'),
        )
    out = out.drop([f'_ov_{f}' for f in fields])

    n_applied = out.filter(pl.col('override_reason').is_not_null()).select(pl.len()).collect().item()
    logger.info('Applied %d daily overrides', n_applied)
    return out.sort(['uid', 'date'])
