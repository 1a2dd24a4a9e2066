# ABOUTME: Provides a CLI that triages students, ranks interventions, and compares groups.
# ABOUTME: Reads exported JSON records, runs the DRI core, and prints rich tables.

import json
from pathlib import Path
from typing import Any, List, Optional

import typer
from rich.console import Console
from rich.table import Table

from src.common.adapters import parse_interventions, parse_snapshots, parse_student_profile, parse_timestamp
from src.common.config import DRIConfig, load_dri_config
from src.impact_analytics.effectiveness import calculate_coach_performance, calculate_intervention_effectiveness
from src.impact_analytics.groups import DIMENSIONS, calculate_all_group_stats, generate_group_summary
from src.impact_analytics.impact import impact_for_event
from src.risk_calculus.pipeline import evaluate_population, evaluations_to_frame

console = Console()
app = typer.Typer(help="Triage students by DRI risk tier and measure coaching impact.")

TIER_STYLES = {"RED": "bold red", "YELLOW": "yellow", "GREEN": "green"}


def _load_records(path: Path) -> List[Any]:
    if not path.exists():
        console.print(f"[red]Missing input file at {path}[/red]")
        raise typer.Exit(code=1)
    data = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(data, dict):
        for key in ("students", "snapshots", "interventions", "records"):
            if key in data:
                return list(data[key])
        return [data]
    return list(data)


def _load_config(config: Optional[Path]) -> DRIConfig:
    try:
        return load_dri_config(config)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--config") from exc


def _parse_as_of(as_of: Optional[str]):
    if as_of is None:
        return None
    parsed = parse_timestamp(as_of)
    if parsed is None:
        raise typer.BadParameter(f"Could not parse '{as_of}' as a timestamp.", param_hint="--as-of")
    return parsed


@app.command()
def triage(
    students: Path = typer.Option(..., "--students", help="JSON file with exported student records."),
    config: Optional[Path] = typer.Option(None, "--config", help="DRI config YAML with threshold overrides."),
    as_of: Optional[str] = typer.Option(None, "--as-of", help="Evaluation instant (ISO8601); defaults to now."),
    output: Optional[Path] = typer.Option(None, "--output", help="Optional .csv or .parquet path for the full table."),
    limit: int = typer.Option(25, "--limit", help="Rows to print."),
) -> None:
    """Evaluate every student and list them by risk score, highest first."""
    cfg = _load_config(config)
    profiles = [parse_student_profile(r) for r in _load_records(students)]
    console.rule("[bold blue]DRI Triage[/bold blue]")
    typer.echo(f"[dri] Loaded {len(profiles)} students from {students}")

    evaluations = evaluate_population(profiles, cfg, as_of=_parse_as_of(as_of))
    frame = evaluations_to_frame(evaluations).sort_values("risk_score", ascending=False, kind="mergesort")

    tier_counts = frame["dri_tier"].value_counts().to_dict() if not frame.empty else {}
    typer.echo(
        f"[dri] RED={tier_counts.get('RED', 0)} YELLOW={tier_counts.get('YELLOW', 0)} GREEN={tier_counts.get('GREEN', 0)}"
    )

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Student")
    table.add_column("Tier")
    table.add_column("Risk")
    table.add_column("Signal")
    table.add_column("RSR")
    table.add_column("Velocity")
    for row in frame.head(limit).itertuples(index=False):
        style = TIER_STYLES.get(row.dri_tier, "")
        table.add_row(
            str(row.student_id),
            f"[{style}]{row.dri_tier}[/{style}]" if style else row.dri_tier,
            str(row.risk_score),
            row.dri_signal,
            f"{row.rsr:.0f}%",
            str(row.velocity_score),
        )
    console.print(table)

    if output is not None:
        output.parent.mkdir(parents=True, exist_ok=True)
        if output.suffix == ".parquet":
            frame.to_parquet(output, index=False)
        else:
            frame.to_csv(output, index=False)
        typer.echo(f"[dri] Wrote {len(frame)} rows to {output}")


@app.command()
def impact(
    snapshots: Path = typer.Option(..., "--snapshots", help="JSON file with dated metric snapshots."),
    interventions: Path = typer.Option(..., "--interventions", help="JSON file with intervention events."),
    config: Optional[Path] = typer.Option(None, "--config", help="DRI config YAML with threshold overrides."),
) -> None:
    """Rank objectives by success rate and coaches by impact score."""
    cfg = _load_config(config)
    history = parse_snapshots(_load_records(snapshots))
    events = parse_interventions(_load_records(interventions))
    console.rule("[bold blue]Intervention Impact[/bold blue]")
    typer.echo(f"[impact] {len(events)} interventions, {len(history)} snapshots")
    if not events:
        console.print("[yellow]No interventions to analyze.[/yellow]")
        return

    impacts = [impact_for_event(e, history, cfg) for e in events]

    objective_table = Table(show_header=True, header_style="bold magenta")
    objective_table.add_column("Objective")
    objective_table.add_column("Interventions")
    objective_table.add_column("Success %")
    objective_table.add_column("Avg Risk Drop")
    objective_table.add_column("Best For")
    for row in calculate_intervention_effectiveness(events, impacts, cfg):
        objective_table.add_row(
            row.objective,
            str(row.total_interventions),
            f"{row.success_rate:.0f}",
            f"{row.avg_risk_decrease:.1f}",
            row.most_effective_for,
        )
    console.print(objective_table)

    coach_table = Table(show_header=True, header_style="bold magenta")
    coach_table.add_column("#")
    coach_table.add_column("Coach")
    coach_table.add_column("Impact")
    coach_table.add_column("Success %")
    coach_table.add_column("Students")
    coach_table.add_column("Follow-up %")
    for rank, row in enumerate(calculate_coach_performance(events, impacts), start=1):
        coach_table.add_row(
            str(rank),
            row.coach_name,
            str(row.impact_score),
            f"{row.success_rate:.0f}",
            str(row.students_helped),
            f"{row.follow_up_rate:.0f}",
        )
    console.print(coach_table)


@app.command()
def groups(
    students: Path = typer.Option(..., "--students", help="JSON file with exported student records."),
    dimension: str = typer.Option("campus", "--dimension", help="One of: campus, grade, guide."),
    config: Optional[Path] = typer.Option(None, "--config", help="DRI config YAML with threshold overrides."),
    as_of: Optional[str] = typer.Option(None, "--as-of", help="Evaluation instant (ISO8601); defaults to now."),
) -> None:
    """Compare groups of students along one organizational dimension."""
    if dimension not in DIMENSIONS:
        raise typer.BadParameter(f"Expected one of: {', '.join(DIMENSIONS)}.", param_hint="--dimension")
    cfg = _load_config(config)
    profiles = [parse_student_profile(r) for r in _load_records(students)]
    evaluations = evaluate_population(profiles, cfg, as_of=_parse_as_of(as_of))

    console.rule(f"[bold blue]Groups by {dimension}[/bold blue]")
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Group")
    table.add_column("Students")
    table.add_column("Avg RSR")
    table.add_column("Median RSR")
    table.add_column("Avg Risk")
    table.add_column("RED/YELLOW/GREEN")
    table.add_column("Summary")
    for stats in calculate_all_group_stats(evaluations, dimension, cfg):
        table.add_row(
            stats.group,
            str(stats.count),
            f"{stats.avg_rsr:.0f}%",
            f"{stats.median_rsr:.0f}%",
            f"{stats.avg_risk_score:.0f}",
            f"{stats.red_count}/{stats.yellow_count}/{stats.green_count}",
            generate_group_summary(stats),
            style="dim" if stats.has_insufficient_data else None,
        )
    console.print(table)


if __name__ == "__main__":
    app()
