"""Typer CLI entry point."""

import logging
from datetime import date
from pathlib import Path
from typing import List, Optional

import polars as pl
import typer

from spell_panel import config
from spell_panel.analysis import data_quality, survival, tenure, turnover
from spell_panel.analysis.data_quality import DataQualityReport
from spell_panel.config import StudyConfig, TenureReference
from spell_panel.data.attendance import load_attendance
from spell_panel.data.overrides import load_overrides
from spell_panel.data.workers import load_workers, scan_table
from spell_panel.panel import build_daily_panel, build_spells

app = typer.Typer(help='Reconstruct employment spells, daily status panels and survival data.')


def _parse_date(value: str, name: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise typer.BadParameter(f'{value!r} is not an ISO date (YYYY-MM-DD)', param_hint=name) from None


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=config.LOG_FORMAT,
        force=True,
    )


@app.command()
def run(
    workers_path: str = typer.Option(..., help='Worker records (parquet file/dir or CSV)'),
    attendance_path: str = typer.Option(..., help='Daily attendance (parquet file/dir or CSV)'),
    output_dir: str = typer.Option('./output', help='Output directory'),
    overrides_path: Optional[str] = typer.Option(None, help='Versioned (uid, date) override table'),
    study_start: str = typer.Option(config.STUDY_START.isoformat(), help='First day of the daily panel'),
    study_end: str = typer.Option(config.STUDY_END.isoformat(), help='Last day of the daily panel'),
    window_start: str = typer.Option(config.WINDOW_START.isoformat(), help='Survival window start'),
    window_end: str = typer.Option(config.WINDOW_END.isoformat(), help='Survival window end'),
    reference_date: List[str] = typer.Option([], help='Tenure reference date (repeatable)'),
    verbose: bool = typer.Option(False, help='Debug logging'),
) -> None:
    """Run the full pipeline.

    1. Load workers and attendance
    2. Canonical spells (normalize + impute)
    3. Tenure at reference dates
    4. Daily panel (reconcile + turnover + overrides)
    5. Survival spells
    6. Data quality summary
    """
    _configure_logging(verbose)
    references = tuple(
        TenureReference(d, _parse_date(d, '--reference-date')) for d in reference_date
    ) or config.DEFAULT_TENURE_REFERENCES
    try:
        study = StudyConfig(
            study_start=_parse_date(study_start, '--study-start'),
            study_end=_parse_date(study_end, '--study-end'),
            window_start=_parse_date(window_start, '--window-start'),
            window_end=_parse_date(window_end, '--window-end'),
            tenure_references=references,
        )
    except ValueError as e:
        typer.echo(f'Invalid study configuration: {e}', err=True)
        raise typer.Exit(1)

    out_dir = Path(output_dir).resolve()
    out_dir.mkdir(parents=True, exist_ok=True)
    report = DataQualityReport()

    # Step 1: Load inputs
    typer.echo('Loading workers and attendance...')
    try:
        workers_lf = load_workers(workers_path)
        attendance_lf = load_attendance(attendance_path)
        overrides_lf = load_overrides(overrides_path) if overrides_path else None
    except ValueError as e:
        typer.echo(str(e), err=True)
        raise typer.Exit(1)

    # Step 2: Canonical spells
    typer.echo('Building canonical spells...')
    spells_df = build_spells(workers_lf, study, report=report).collect()
    spells_df.write_parquet(out_dir / 'spells.parquet')

    # Step 3: Tenure
    typer.echo('Computing tenure...')
    tenure_df = tenure.compute_tenure(spells_df.lazy(), study.tenure_references).collect()
    tenure_df.write_parquet(out_dir / 'tenure.parquet')

    # Step 4: Daily panel
    typer.echo('Reconciling daily status...')
    panel_df = build_daily_panel(
        spells_df.lazy(), attendance_lf, study, overrides=overrides_lf, report=report,
    ).collect()
    panel_df.write_parquet(out_dir / 'daily_panel.parquet')
    turnover.summarize_turnover(panel_df.lazy()).collect().write_parquet(out_dir / 'daily_turnover_summary.parquet')

    # Step 5: Survival spells
    typer.echo('Building survival spells...')
    survival_df = survival.build_survival_spells(spells_df.lazy(), study, report=report).collect()
    survival_df.write_parquet(out_dir / 'survival.parquet')

    # Step 6: Data quality summary
    summary_df = report.to_frame()
    summary_df.write_parquet(out_dir / 'data_quality_summary.parquet')
    for row in summary_df.filter(pl.col('count') > 0).iter_rows(named=True):
        typer.echo(f"  {row['condition']}: {row['count']} ({row['severity']})")

    counts = survival.summarize_survival(survival_df.lazy()).row(0, named=True)
    typer.echo(
        f"Done. {spells_df['uid'].n_unique()} workers, {spells_df.height} spells, "
        f"{panel_df.height} worker-days, {counts['failures']} terminal failures. Output in {out_dir}"
    )


@app.command()
def audit(
    spells_path: str = typer.Option(..., help='Spell table (uid, start_date, end_date)'),
) -> None:
    """Check a spell table against the canonical spell invariants."""
    spells_lf = scan_table(spells_path)
    _, summary = data_quality.flag_spell_issues(spells_lf)
    row = summary.row(0, named=True)
    for name, value in row.items():
        typer.echo(f'{name}: {value}')
    if row['total_flagged']:
        raise typer.Exit(1)


if __name__ == '__main__':
    app()
