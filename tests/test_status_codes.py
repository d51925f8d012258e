"""Tests for attendance status code normalization."""

import polars as pl

from spell_panel.status_codes import (
    MISSING,
    RAW_CODE_MAP,
    attendance_expr,
    normalize_status_code,
    status_code_expr,
    unmapped_code_expr,
)


def test_normalize_status_code() -> None:
    assert normalize_status_code('P') == 'present'
    assert normalize_status_code(' p ') == 'present'
    assert normalize_status_code('A') == 'absent'
    assert normalize_status_code('SL') == 'sick_leave'
    assert normalize_status_code('WO') == 'weekend'
    assert normalize_status_code('PH') == 'holiday'
    assert normalize_status_code('L') == 'left'
    assert normalize_status_code(None) == MISSING
    assert normalize_status_code('??') == MISSING


def test_canonical_statuses_map_to_themselves() -> None:
    for status in ['present', 'absent', 'casual_leave', 'left', 'not_joined', 'missing']:
        assert normalize_status_code(status) == status
        assert RAW_CODE_MAP[status.upper()] == status


def test_status_code_expr() -> None:
    df = pl.DataFrame({'code': ['P', 'a', 'EL', 'xx', None, 'left']})
    out = df.with_columns(status_code_expr('code').alias('status'))
    assert out['status'].to_list() == ['present', 'absent', 'earned_leave', 'missing', 'missing', 'left']


def test_unmapped_code_expr() -> None:
    df = pl.DataFrame({'code': ['P', 'xx', None, '']})
    out = df.with_columns(unmapped_code_expr('code').alias('unmapped'))
    assert out['unmapped'].to_list() == [False, True, False, False]


def test_attendance_expr() -> None:
    df = pl.DataFrame({'status': ['present', 'absent', 'sick_leave', 'weekend', 'left', 'missing']})
    out = df.with_columns(attendance_expr('status').alias('attendance'))
    assert out['attendance'].to_list() == [1, 0, 0, None, None, None]
