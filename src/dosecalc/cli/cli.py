import typer  # type: ignore
from pathlib import Path
from typing import List, Optional
from typing_extensions import Annotated
import json
import logging

import yaml
from pydantic import ValidationError
from rich.console import Console  # type: ignore # For pretty printing
from rich.table import Table  # type: ignore # For breakdown table
from rich.panel import Panel  # type: ignore # For status output
from rich.markup import escape  # type: ignore

from dosecalc.core.calculator import InvalidProfile
from dosecalc.core.profile import TherapyProfile
from dosecalc.core.safety import DoseStatus
from dosecalc.core.session import BolusSession
from dosecalc.core.snapshot import ClinicalSnapshot
from dosecalc.core.units import round2
from dosecalc.presets import get_preset, load_presets
from dosecalc.validation import (
    format_validation_error,
    load_profile,
    load_snapshot,
    profile_warnings,
    validate_profile_dict,
)


app = typer.Typer(help="dosecalc - bolus calculation engine with max-bolus safety clamp.")
presets_app = typer.Typer(help="Built-in therapy profile presets.")
app.add_typer(presets_app, name="presets")


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S%z",
    )


def _print_errors(console: Console, title: str, errors: List[str]) -> None:
    console.print(f"[bold red]{title}:[/bold red]")
    for error in errors:
        console.print(f"- {error}")


def _resolve_profile(profile: Optional[Path], preset: Optional[str], console: Console) -> TherapyProfile:
    if profile is not None and preset is not None:
        console.print("[bold red]Error: pass exactly one of --profile or --preset.[/bold red]")
        raise typer.Exit(code=1)
    try:
        if profile is not None:
            if not profile.is_file():
                console.print(f"[bold red]Error: Profile file '{profile}' not found.[/bold red]")
                raise typer.Exit(code=1)
            return load_profile(profile)
        if preset is not None:
            return validate_profile_dict(get_preset(preset)["profile"])
    except KeyError:
        console.print(f"[bold red]Error: Unknown preset '{preset}'.[/bold red]")
        raise typer.Exit(code=1)
    except ValidationError as e:
        _print_errors(console, "Profile Errors", format_validation_error(e))
        raise typer.Exit(code=1)
    except (ValueError, yaml.YAMLError) as e:
        console.print(f"[bold red]Error: {escape(str(e))}[/bold red]")
        raise typer.Exit(code=1)
    console.print("[bold red]Error: pass exactly one of --profile or --preset.[/bold red]")
    raise typer.Exit(code=1)


def _resolve_snapshot(snapshot: Path, console: Console) -> ClinicalSnapshot:
    if not snapshot.is_file():
        console.print(f"[bold red]Error: Snapshot file '{snapshot}' not found.[/bold red]")
        raise typer.Exit(code=1)
    try:
        return load_snapshot(snapshot)
    except ValidationError as e:
        _print_errors(console, "Snapshot Errors", format_validation_error(e))
        raise typer.Exit(code=1)
    except (ValueError, yaml.YAMLError) as e:
        console.print(f"[bold red]Error: {escape(str(e))}[/bold red]")
        raise typer.Exit(code=1)


def _breakdown_table(session: BolusSession) -> Table:
    breakdown = session.breakdown
    table = Table(title="Bolus Calculation", show_header=True, header_style="bold magenta")
    table.add_column("Component", style="cyan", no_wrap=True)
    table.add_column("Detail")
    table.add_column("Insulin (U)", justify="right", style="green")
    for entry in breakdown.explain():
        value = "" if entry.value is None else str(entry.value)
        table.add_row(entry.category, entry.reason, value)
    return table


@app.command()
def calculate(
    snapshot: Annotated[Path, typer.Option(help="Clinical snapshot YAML/JSON file")],
    profile: Annotated[Optional[Path], typer.Option(help="Therapy profile YAML/JSON file")] = None,
    preset: Annotated[Optional[str], typer.Option(help="Use a built-in therapy profile preset")] = None,
    fatty: Annotated[Optional[bool], typer.Option("--fatty/--no-fatty", help="Override the fatty meal selection")] = None,
    amount: Annotated[Optional[float], typer.Option(help="Manually entered bolus amount (U)")] = None,
    audit_dir: Annotated[Optional[Path], typer.Option(help="Directory to write the calculation audit trail")] = None,
    validate_inputs: Annotated[bool, typer.Option("--validate-inputs/--no-validate-inputs", help="Run plausibility checks on the snapshot")] = True,
    log_level: Annotated[str, typer.Option(help="Logging level")] = "WARNING",
):
    """Calculate a recommended bolus and show its breakdown and safety status."""
    console = Console()
    _configure_logging(log_level)

    therapy = _resolve_profile(profile, preset, console)
    clinical = _resolve_snapshot(snapshot, console)

    try:
        session = BolusSession(therapy, clinical, validate_inputs=validate_inputs)
        if fatty is not None:
            session.set_fatty_meal(fatty)
    except InvalidProfile as e:
        _print_errors(console, "Configuration Error", e.problems)
        raise typer.Exit(code=1)
    except ValueError as e:
        console.print(f"[bold red]Error: {e}[/bold red]")
        raise typer.Exit(code=1)

    if amount is not None:
        session.set_amount(amount)

    console.print(_breakdown_table(session))

    recommendation = session.recommendation_decision
    if recommendation.status is DoseStatus.NO_RECOMMENDATION:
        console.print(Panel(
            f"No bolus needed (calculated {recommendation.candidate} U).",
            title="No Recommendation", border_style="yellow",
        ))
    elif recommendation.status is DoseStatus.EXCEEDS_MAX_BOLUS:
        console.print(Panel(
            f"Recommended {recommendation.candidate} U was limited by your max bolus setting "
            f"of {therapy.max_bolus} U.",
            title="Max Bolus Exceeded", border_style="red",
        ))
    else:
        console.print(Panel(f"Recommended bolus: {recommendation.candidate} U", border_style="blue"))

    decision = session.decision
    if decision.can_confirm:
        console.print(f"[green]Bolus amount {round2(decision.accepted)} U can be confirmed.[/green]")
    elif decision.status is DoseStatus.EXCEEDS_MAX_BOLUS:
        console.print(f"[bold red]Entered amount {decision.candidate} U exceeds max bolus {therapy.max_bolus} U.[/bold red]")
    else:
        console.print("[yellow]Nothing to confirm; continue without bolus.[/yellow]")

    if audit_dir is not None:
        paths = session.audit.export(audit_dir)
        console.print(f"Audit trail written to {paths['json']} and {paths['csv']}")


@app.command()
def validate(
    profile: Annotated[Path, typer.Option(help="Therapy profile YAML/JSON file")],
    snapshot: Annotated[Optional[Path], typer.Option(help="Optional clinical snapshot to validate")] = None,
):
    """Validate a therapy profile (and optionally a snapshot) for out-of-range values."""
    console = Console()
    therapy = _resolve_profile(profile, None, console)

    warnings = profile_warnings(therapy)
    if warnings:
        console.print("[yellow]Warnings:[/yellow]")
        for warning in warnings:
            console.print(f"- {warning}")

    if snapshot is not None:
        _resolve_snapshot(snapshot, console)

    console.print("[green]Validation passed.[/green]")


@presets_app.command("list")
def presets_list():
    """List built-in therapy profile presets."""
    console = Console()
    table = Table(title="Therapy Profile Presets", show_header=True, header_style="bold magenta")
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("Unit")
    table.add_column("Description")
    for preset in load_presets():
        table.add_row(preset["name"], preset["profile"].get("glucose_unit", "mg/dL"), preset.get("description", ""))
    console.print(table)


@presets_app.command("show")
def presets_show(
    name: Annotated[str, typer.Option(help="Preset name")],
):
    """Print a preset as JSON."""
    console = Console()
    try:
        preset = get_preset(name)
    except KeyError:
        console.print(f"[bold red]Error: Unknown preset '{name}'.[/bold red]")
        raise typer.Exit(code=1)
    console.print_json(json.dumps(preset))


if __name__ == "__main__":
    app()
