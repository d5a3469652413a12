from __future__ import annotations

import asyncio
from datetime import datetime
from pathlib import Path

import typer

from call_insights.config import DEFAULT_CONFIG_PATH, AppConfig, load_config
from call_insights.datasets import profile_for
from call_insights.features.aggregates import field_bounds
from call_insights.io.write import write_export, write_summary
from call_insights.logging import configure_logging
from call_insights.pipeline.session import DatasetSession
from call_insights.query.filters import ALL_CATEGORIES, FilterState, RangeFilter
from call_insights.query.sorting import SortState

app = typer.Typer(no_args_is_help=True, add_completion=False)


@app.callback()
def main(
    log_level: str | None = typer.Option(
        None, help="Logging level; defaults to CALL_INSIGHTS_LOG_LEVEL or INFO."
    ),
) -> None:
    configure_logging(log_level)


def _load_app_config(config_path: Path) -> AppConfig:
    return load_config(config_path)


def _open_session(dataset: str, cfg: AppConfig) -> DatasetSession:
    try:
        session = DatasetSession(dataset, cfg)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--dataset") from exc
    result = asyncio.run(session.load())
    if result.error is not None:
        typer.echo(f"Failed to load {dataset} ({result.error.kind}): {result.error}", err=True)
        raise typer.Exit(code=1)
    return session


def _range_filters(
    session: DatasetSession,
    range_field: str | None,
    low: float | None,
    high: float | None,
) -> tuple[RangeFilter, ...]:
    if range_field is None:
        if low is not None or high is not None:
            raise typer.BadParameter("--min/--max require --range-field")
        return ()
    defaults = {field: (lo, hi) for field, lo, hi in profile_for(session.entity).range_defaults}
    bounds = field_bounds(session.records, range_field, default=defaults.get(range_field, (0.0, 0.0)))
    return (
        RangeFilter(
            field=range_field,
            low=low,
            high=high,
            default_low=bounds[0],
            default_high=bounds[1],
        ),
    )


@app.command("datasets")
def list_datasets(
    config: Path = typer.Option(DEFAULT_CONFIG_PATH, exists=True, readable=True, resolve_path=True),
) -> None:
    """List configured datasets and their sources."""
    cfg = _load_app_config(config)
    for name, source in sorted(cfg.sources.items()):
        typer.echo(f"{name}: entity={source.entity} kind={source.kind}")


@app.command()
def fetch(
    dataset: str = typer.Option(..., help="Configured dataset name."),
    config: Path = typer.Option(DEFAULT_CONFIG_PATH, exists=True, readable=True, resolve_path=True),
) -> None:
    """Fetch and normalize one dataset, reporting the record count."""
    cfg = _load_app_config(config)
    session = _open_session(dataset, cfg)
    typer.echo(f"Loaded {len(session.records)} {session.entity} records from {dataset}")


@app.command()
def summary(
    dataset: str = typer.Option(..., help="Configured dataset name."),
    config: Path = typer.Option(DEFAULT_CONFIG_PATH, exists=True, readable=True, resolve_path=True),
    out: Path | None = typer.Option(None, resolve_path=True, help="Optional JSON output path."),
) -> None:
    """Print aggregate statistics for one dataset."""
    cfg = _load_app_config(config)
    session = _open_session(dataset, cfg)
    stats = session.summary()
    for name, value in stats.metrics.items():
        typer.echo(f"{name}: {value:g}" if isinstance(value, float) else f"{name}: {value}")
    for name, ranking in stats.rankings.items():
        typer.echo(f"{name}:")
        for label, count in ranking:
            typer.echo(f"- {label}: {count}")
    if out is not None:
        write_summary(stats, out)
        typer.echo(f"Summary written to: {out}")


@app.command()
def export(
    dataset: str = typer.Option(..., help="Configured dataset name."),
    config: Path = typer.Option(DEFAULT_CONFIG_PATH, exists=True, readable=True, resolve_path=True),
    out: Path | None = typer.Option(None, resolve_path=True, help="Output directory."),
    search: str = typer.Option("", help="Case-insensitive text search."),
    category: str = typer.Option(ALL_CATEGORIES, help="Category value, or 'all'."),
    range_field: str | None = typer.Option(None, help="Numeric field for --min/--max."),
    low: float | None = typer.Option(None, "--min"),
    high: float | None = typer.Option(None, "--max"),
    date_from: datetime | None = typer.Option(None, formats=["%Y-%m-%d"]),
    date_to: datetime | None = typer.Option(None, formats=["%Y-%m-%d"]),
    sort_field: str | None = typer.Option(None, help="Field to sort by."),
    descending: bool = typer.Option(False, help="Sort descending."),
) -> None:
    """Filter, sort and export one dataset as CSV."""
    cfg = _load_app_config(config)
    session = _open_session(dataset, cfg)
    profile = profile_for(session.entity)

    filters = FilterState(
        search_term=search,
        category_field=profile.category_field,
        category=category,
        ranges=_range_filters(session, range_field, low, high),
        date_from=date_from.date() if date_from else None,
        date_to=date_to.date() if date_to else None,
    )
    rows = session.view(filters, SortState(field=sort_field, descending=descending))
    out_dir = out or Path(cfg.export.out_dir)
    path = write_export(rows, profile.export_columns, out_dir, dataset)
    typer.echo(f"Exported {len(rows)} of {len(session.records)} records to: {path}")


if __name__ == "__main__":
    app()
