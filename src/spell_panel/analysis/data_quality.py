"""Data quality accounting and spell invariant audits.

Every exclusion or local correction made by the pipeline is counted here:
- Records excluded from output (missing identity, no valid spell, invalid interval)
- Conflicts resolved by documented precedence (ambiguous status, clipped overlaps)
- Estimates that fell back to a secondary rule (gap imputation)
"""

import logging
from dataclasses import dataclass, field

import polars as pl

logger = logging.getLogger(__name__)

MISSING_IDENTITY: str = 'missing_identity'
NO_VALID_SPELL: str = 'no_valid_spell'
INVALID_INTERVAL: str = 'invalid_interval'
AMBIGUOUS_STATUS: str = 'ambiguous_status'
IMPUTATION_FALLBACK_USED: str = 'imputation_fallback_used'
OVERLAP_CLIPPED: str = 'overlap_clipped'
UNMAPPED_STATUS_CODE: str = 'unmapped_status_code'
DUPLICATE_ATTENDANCE: str = 'duplicate_attendance'
UNLINKED_ATTENDANCE: str = 'unlinked_attendance'
OVERRIDE_UNMATCHED: str = 'override_unmatched'

# excluded: the record is removed from output. resolved: corrected in place by policy.
CONDITION_SEVERITY: dict[str, str] = {
    MISSING_IDENTITY: 'excluded',
    NO_VALID_SPELL: 'excluded',
    INVALID_INTERVAL: 'excluded',
    UNLINKED_ATTENDANCE: 'excluded',
    DUPLICATE_ATTENDANCE: 'excluded',
    AMBIGUOUS_STATUS: 'resolved',
    IMPUTATION_FALLBACK_USED: 'resolved',
    OVERLAP_CLIPPED: 'resolved',
    UNMAPPED_STATUS_CODE: 'resolved',
    OVERRIDE_UNMATCHED: 'resolved',
}


@dataclass
class DataQualityReport:
    """Running counts of data quality conditions for one pipeline run."""

    counts: dict[str, int] = field(default_factory=dict)

    def record(self, condition: str, n: int, detail: str = '') -> None:
        """Add n occurrences of condition. Zero counts are ignored."""
        if condition not in CONDITION_SEVERITY:
            raise ValueError(f'Unknown data quality condition: {condition}')
        if n <= 0:
            return
        self.counts[condition] = self.counts.get(condition, 0) + int(n)
        level = logging.WARNING if CONDITION_SEVERITY[condition] == 'excluded' else logging.INFO
        logger.log(level, '%s: %d%s', condition, n, f' ({detail})' if detail else '')

    def count(self, condition: str) -> int:
        return self.counts.get(condition, 0)

    def to_frame(self) -> pl.DataFrame:
        """Summary with one row per known condition: condition, severity, count."""
        return pl.DataFrame(
            {
                'condition': list(CONDITION_SEVERITY),
                'severity': list(CONDITION_SEVERITY.values()),
                'count': [self.count(c) for c in CONDITION_SEVERITY],
            },
            schema={'condition': pl.Utf8, 'severity': pl.Utf8, 'count': pl.Int64},
        )


def flag_spell_issues(spells: pl.LazyFrame) -> tuple[pl.LazyFrame, pl.DataFrame]:
    """Audit a spell frame against the canonical spell invariants.

    Args:
        spells: LazyFrame with uid, start_date, end_date.

    Returns:
        Tuple of (flagged LazyFrame, summary DataFrame).
        flagged has original columns plus flag_non_positive (end_date <= start_date),
        flag_out_of_order (start before the previous spell's start), flag_overlap
        (start on or before the previous spell's end, or previous spell open),
        flag_multiple_open (worker has more than one null end_date), has_any_flag.
        summary has one row with counts per flag and total_records.
    """
    # Row order is the order to audit; keep it and look back one spell per worker
    df = spells.with_row_index('_row').sort(['uid', '_row']).with_columns(
        pl.col('start_date').shift(1).over('uid').alias('_prev_start'),
        pl.col('end_date').shift(1).over('uid').alias('_prev_end'),
        pl.int_range(pl.len()).over('uid').alias('_position'),
    )

    df = df.with_columns(
        (pl.col('end_date').is_not_null() & (pl.col('end_date') <= pl.col('start_date'))).alias('flag_non_positive'),
        (pl.col('_prev_start').is_not_null() & (pl.col('start_date') < pl.col('_prev_start'))).alias('flag_out_of_order'),
        (
            (pl.col('_position') > 0)
            & (pl.col('_prev_end').is_null() | (pl.col('start_date') <= pl.col('_prev_end')))
        ).alias('flag_overlap'),
        (pl.col('end_date').is_null().sum().over('uid') > 1).alias('flag_multiple_open'),
    )

    df = df.with_columns(
        (
            pl.col('flag_non_positive')
            | pl.col('flag_out_of_order')
            | pl.col('flag_overlap')
            | pl.col('flag_multiple_open')
        ).alias('has_any_flag'),
    ).sort('_row').drop(['_row', '_prev_start', '_prev_end', '_position'])

    summary = df.select(
        pl.col('flag_non_positive').sum().alias('non_positive_count'),
        pl.col('flag_out_of_order').sum().alias('out_of_order_count'),
        pl.col('flag_overlap').sum().alias('overlap_count'),
        pl.col('flag_multiple_open').sum().alias('multiple_open_count'),
        pl.col('has_any_flag').sum().alias('total_flagged'),
        pl.len().alias('total_records'),
    ).collect()

    return df, summary
