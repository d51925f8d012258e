"""Assemble canonical spells and the worker-day panel."""

import polars as pl

from spell_panel.analysis.data_quality import DataQualityReport
from spell_panel.analysis.imputation import impute_missing_ends
from spell_panel.analysis.overrides import apply_overrides
from spell_panel.analysis.reconcile import reconcile_daily_status
from spell_panel.analysis.turnover import derive_turnover_daily
from spell_panel.config import StudyConfig
from spell_panel.spells import normalize_spells

PANEL_COLUMNS: list[str] = [
    'uid', 'date', 'raw_status_code', 'status', 'attendance', 'employment_flag', 'turnover_daily',
]


def build_spells(
    workers: pl.LazyFrame,
    study: StudyConfig,
    report: DataQualityReport | None = None,
) -> pl.LazyFrame:
    """Normalize raw join/leave fields and impute missing leave dates.

    Args:
        workers: LazyFrame with uid and join/leave date columns.
        study: StudyConfig (max_spells bounds the slots read).
        report: Optional DataQualityReport shared across stages.

    Returns:
        LazyFrame with uid, spell_index, start_date, end_date, end_imputed, imputation_method.
    """
    report = report if report is not None else DataQualityReport()
    spells = normalize_spells(workers, max_spells=study.max_spells, report=report)
    return impute_missing_ends(spells, report=report)


def build_daily_panel(
    spells: pl.LazyFrame,
    attendance: pl.LazyFrame,
    study: StudyConfig,
    overrides: pl.LazyFrame | None = None,
    report: DataQualityReport | None = None,
) -> pl.LazyFrame:
    """Reconcile attendance against spells, derive turnover, then apply overrides.

    Args:
        spells: Canonical spells from build_spells.
        attendance: LazyFrame with uid, date, raw_status_code.
        study: StudyConfig bounding the calendar.
        overrides: Optional override table (see analysis.overrides).
        report: Optional DataQualityReport shared across stages.

    Returns:
        LazyFrame with uid, date, raw_status_code, status, attendance, employment_flag,
        turnover_daily (plus override_reason when overrides are given).
    """
    report = report if report is not None else DataQualityReport()
    daily = reconcile_daily_status(spells, attendance, study, report=report)
    daily = derive_turnover_daily(daily, spells).select(PANEL_COLUMNS)
    if overrides is not None:
        daily = apply_overrides(daily, overrides, report=report)
    return daily
