"""Command line host: profiles files and compares two versions of a dataset."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.progress import BarColumn, Progress, TextColumn
from rich.table import Table

from .config import DatalensConfig, load_config
from .dataset import DatasetProfile, ProfileBuilder
from .engine import DiffCache, DiffResult, VersionDiffEngine, VersionRef, VersionSnapshot
from .errors import DatalensError
from .logger import LogManager
from .parser import RawTable, parse_bytes
from .report import ReportManager

log = LogManager("cli").get_logger()

console = Console()

app = typer.Typer(
    name="datalens",
    help="Profile delimited data files and diff versions of a dataset.",
    no_args_is_help=True,
)

InputFile = Annotated[
    Path,
    typer.Argument(exists=True, dir_okay=False, file_okay=True, resolve_path=True),
]

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="JSON configuration file"),
]

DelimiterOption = Annotated[
    Optional[str],
    typer.Option("--delimiter", "-d", help="Field delimiter (auto-detected when omitted)"),
]

JsonFlag = Annotated[
    bool,
    typer.Option("--json", help="Output as JSON for scripting"),
]

ReportOption = Annotated[
    Optional[str],
    typer.Option("--report", "-r", help="Write a report: json, md, csv or a combination like json+md"),
]

OutputDirOption = Annotated[
    Optional[Path],
    typer.Option("--output", "-o", help="Directory for reports (default: outputs/)"),
]


def _load(config_path: Optional[Path]) -> DatalensConfig:
    try:
        return load_config(config_path)
    except DatalensError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e


def _profile_file(
    path: Path,
    config: DatalensConfig,
    delimiter: Optional[str],
    quiet: bool = False,
) -> tuple[DatasetProfile, RawTable]:
    try:
        table = parse_bytes(path.read_bytes(), delimiter)
    except DatalensError as e:
        console.print(f"[red]Error:[/red] {path.name}: {e}")
        raise typer.Exit(1) from e

    builder = ProfileBuilder(table, path.name, config.profiler)
    with Progress(
        TextColumn("{task.description}"),
        BarColumn(),
        TextColumn("{task.completed}/{task.total}"),
        console=console,
        transient=True,
        disable=quiet,
    ) as progress:
        task = progress.add_task(f"Profiling {path.name}", total=None)
        for step in builder.steps():
            progress.update(
                task,
                description=f"{path.name}: {step.stage}",
                completed=step.completed,
                total=step.total,
            )
    return builder.result(), table


def _print_profile(profile: DatasetProfile) -> None:
    console.print(
        f"[bold]{profile.filename}[/bold]: {profile.row_count} rows, "
        f"{len(profile.columns)} columns, {profile.total_missing} missing cells, "
        f"{profile.duplicate_row_count} duplicate rows"
    )
    if profile.dropped_rows:
        console.print(f"[yellow]{profile.dropped_rows} malformed rows skipped[/yellow]")

    table = Table(title="Columns")
    table.add_column("Column", style="cyan")
    table.add_column("Type")
    table.add_column("Missing %", justify="right")
    table.add_column("Unique", justify="right")
    table.add_column("Summary")

    for col in profile.columns:
        summary = ""
        if col.inferred_type == "numeric" and getattr(col, "min", None) is not None:
            summary = f"min {col.min:g}  median {col.median:g}  max {col.max:g}  outliers {col.outlier_count}"
        elif getattr(col, "mode", None) is not None:
            summary = f"mode {col.mode}"
        elif getattr(col, "earliest", None) is not None:
            summary = f"{col.earliest} .. {col.latest}"
        table.add_row(
            col.name,
            col.inferred_type,
            f"{col.missing_percent:.1f}",
            str(col.unique_value_count),
            summary,
        )
    console.print(table)

    if profile.skewed_columns:
        console.print(f"Skewed: {', '.join(profile.skewed_columns)}")


def _print_diff(result: DiffResult, max_rows: int) -> None:
    if not result.available:
        console.print(f"[red]Diff unavailable:[/red] {', '.join(result.conditions)}")
        return

    s = result.row_stats
    console.print(
        f"[green]+{s.added} added[/green]  [red]-{s.removed} removed[/red]  "
        f"[yellow]~{s.modified} modified[/yellow]  {s.unchanged} unchanged"
    )
    if result.conditions:
        console.print(f"[dim]Conditions: {', '.join(result.conditions)}[/dim]")

    changed = [r for r in result.rows if r.status != "unchanged"][:max_rows]
    if changed:
        rows = Table(title="Changed rows")
        rows.add_column("Id", style="cyan")
        rows.add_column("Status")
        rows.add_column("Changed columns")
        for r in changed:
            rows.add_row(r.id, r.status, ", ".join(r.changed_columns))
        console.print(rows)

    if result.column_comparisons:
        cols = Table(title="Columns")
        cols.add_column("Column", style="cyan")
        cols.add_column("Type")
        cols.add_column("Missing Δ", justify="right")
        cols.add_column("Outlier Δ", justify="right")
        cols.add_column("Mean Δ", justify="right")
        cols.add_column("Changed %", justify="right")
        for comp in result.column_comparisons:
            mean = comp.numeric_deltas.mean if comp.numeric_deltas else None
            cols.add_row(
                comp.name,
                comp.type + (" (changed)" if comp.type_changed else ""),
                f"{comp.missing_delta:+.1f}",
                f"{comp.outlier_delta:+d}",
                "" if mean is None else f"{mean:+.4g}",
                "" if comp.changed_cell_percent is None else f"{comp.changed_cell_percent:.1f}",
            )
        console.print(cols)

    for ch in result.correlation_changes:
        console.print(f"Correlation {ch.first}/{ch.second}: {ch.base:.2f} -> {ch.compare:.2f} ({ch.delta:+.2f})")


def profile(
    file: InputFile,
    config_path: ConfigOption = None,
    delimiter: DelimiterOption = None,
    output_json: JsonFlag = False,
    report: ReportOption = None,
    output_dir: OutputDirOption = None,
) -> None:
    """Profile a delimited text file."""
    config = _load(config_path)
    result, _ = _profile_file(file, config, delimiter, quiet=output_json)

    if output_json:
        console.print_json(json.dumps(result.to_dict(include_preview=False)))
    else:
        _print_profile(result)

    if report:
        paths = ReportManager(output_dir).generate_profile_report(result, report, base_name=file.stem)
        for fmt, path in paths.items():
            if path is not None and not output_json:
                console.print(f"Report {fmt}: {path}")


def diff(
    base: InputFile,
    compare: InputFile,
    config_path: ConfigOption = None,
    delimiter: DelimiterOption = None,
    id_column: Annotated[
        Optional[str], typer.Option("--id-column", help="Key column used to match rows")
    ] = None,
    max_rows: Annotated[int, typer.Option("--max-rows", help="Changed rows to print")] = 20,
    output_json: JsonFlag = False,
    report: ReportOption = None,
    output_dir: OutputDirOption = None,
) -> None:
    """Compare two versions of a dataset, row by row and column by column."""
    config = _load(config_path)
    if id_column is not None:
        config = config.with_diff(id_column=id_column)

    base_profile, base_table = _profile_file(base, config, delimiter, quiet=output_json)
    compare_profile, compare_table = _profile_file(compare, config, delimiter, quiet=output_json)

    engine = VersionDiffEngine(config.diff, DiffCache(config.diff.cache_size))
    engine.select(
        VersionSnapshot(VersionRef(str(base)), base_profile, base_table.rows),
        VersionSnapshot(VersionRef(str(compare), parent_id=str(base)), compare_profile, compare_table.rows),
    )
    with Progress(console=console, transient=True, disable=output_json) as progress:
        task = progress.add_task("Diffing rows", total=None)
        for page in engine.pages():
            progress.update(task, completed=page.processed, total=page.total)
    result = engine.run()

    if output_json:
        console.print_json(json.dumps(result.to_dict(include_rows=False)))
    else:
        _print_diff(result, max_rows)

    if report:
        paths = ReportManager(output_dir).generate_diff_report(
            result, report, base_name=f"{base.stem}_vs_{compare.stem}"
        )
        for fmt, path in paths.items():
            if path is not None and not output_json:
                console.print(f"Report {fmt}: {path}")

    if not result.available:
        raise typer.Exit(2)


@app.callback()
def _root(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Show INFO logs on the console")] = False,
) -> None:
    if verbose:
        LogManager.set_console_level(logging.INFO)


app.command()(profile)
app.command()(diff)


def main() -> None:
    """Entry point for the CLI."""
    try:
        app()
    except Exception as exc:
        log.error("Errore critico nella CLI: %s", exc, exc_info=True)
        raise
