"""Attendance status code normalization (raw register codes to canonical statuses)."""

import polars as pl

PRESENT: str = 'present'
ABSENT: str = 'absent'
WEEKEND: str = 'weekend'
HOLIDAY: str = 'holiday'
LEFT: str = 'left'
MISSING: str = 'missing'
NOT_JOINED: str = 'not_joined'

LEAVE_STATUSES: list[str] = [
    'sick_leave',
    'casual_leave',
    'earned_leave',
    'maternity_leave',
    'unpaid_leave',
]

CANONICAL_STATUSES: list[str] = [
    PRESENT, ABSENT, *LEAVE_STATUSES, WEEKEND, HOLIDAY, LEFT, MISSING, NOT_JOINED,
]

# Statuses that can only be recorded for a worker who is not on the books.
NON_EMPLOYED_STATUSES: list[str] = [LEFT, NOT_JOINED]

# Statuses that assert the worker was on the books that day.
WORKING_STATUSES: list[str] = [PRESENT, ABSENT, *LEAVE_STATUSES]

# Register abbreviations seen across attendance extracts. Keys are upper-cased.
# Canonical names map to themselves so reconciled output can be fed back in.
RAW_CODE_MAP: dict[str, str] = {
    'P': PRESENT,
    'PR': PRESENT,
    'HD': PRESENT,
    'OD': PRESENT,
    'A': ABSENT,
    'AB': ABSENT,
    'SL': 'sick_leave',
    'CL': 'casual_leave',
    'EL': 'earned_leave',
    'PL': 'earned_leave',
    'ML': 'maternity_leave',
    'LWP': 'unpaid_leave',
    'LOP': 'unpaid_leave',
    'WO': WEEKEND,
    'W': WEEKEND,
    'H': HOLIDAY,
    'PH': HOLIDAY,
    'L': LEFT,
    'LFT': LEFT,
    'NA': MISSING,
    '-': MISSING,
    '': MISSING,
    **{s.upper(): s for s in CANONICAL_STATUSES},
}


def normalize_status_code(code: str | None) -> str:
    """Return the canonical status for a raw attendance code.

    Args:
        code: Raw register code (any case, may be None).

    Returns:
        Canonical status. None and unknown codes return 'missing'.
    """
    if code is None:
        return MISSING
    return RAW_CODE_MAP.get(code.strip().upper(), MISSING)


def status_code_expr(col: str) -> pl.Expr:
    """Polars expression normalizing a raw code column to canonical statuses.

    Args:
        col: Name of the column holding raw codes (string).

    Returns:
        Expression evaluating to a canonical status string (never null).
    """
    return (
        pl.col(col)
        .cast(pl.Utf8)
        .str.strip_chars()
        .str.to_uppercase()
        .replace_strict(RAW_CODE_MAP, default=MISSING, return_dtype=pl.Utf8)
        .fill_null(MISSING)
    )


def attendance_expr(col: str) -> pl.Expr:
    """Polars expression for the 0/1/null attendance indicator of a status column."""
    s = pl.col(col)
    return (
        pl.when(s == PRESENT)
        .then(pl.lit(1, dtype=pl.Int8))
        .when(s.is_in([ABSENT, *LEAVE_STATUSES]))
        .then(pl.lit(0, dtype=pl.Int8))
        .otherwise(pl.lit(None, dtype=pl.Int8))
    )


def unmapped_code_expr(col: str) -> pl.Expr:
    """True where a non-null raw code has no entry in RAW_CODE_MAP."""
    upper = pl.col(col).cast(pl.Utf8).str.strip_chars().str.to_uppercase()
    return pl.col(col).is_not_null() & ~upper.is_in(list(RAW_CODE_MAP))
