"""Main CLI entry point for the dealhealth command."""

import json
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import IO, Optional, Tuple

import click
from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .. import __version__
from ..core.checklists import STAGE_LABELS, STAGE_ORDER, Stage
from ..core.config import HealthConfigManager
from ..core.policy import ProbabilityReasonRequired, requires_justification, validate_probability_override
from ..core.scorer import DealHealth, DealHealthScorer, Severity, Tone
from ..schemas import OpportunitySnapshot

console = Console()

TONE_COLORS = {Tone.POSITIVE: "green", Tone.WARNING: "yellow", Tone.NEGATIVE: "red"}
SEVERITY_COLORS = {Severity.HIGH: "red", Severity.MEDIUM: "yellow", Severity.LOW: "dim"}

DATETIME_FORMATS = ["%Y-%m-%d", "%Y-%m-%dT%H:%M:%S", "%Y-%m-%d %H:%M:%S"]


def get_config(config_path: Optional[str] = None) -> HealthConfigManager:
    """Get config manager instance."""
    path = Path(config_path) if config_path else None
    return HealthConfigManager(path)


def load_snapshot(source: IO) -> OpportunitySnapshot:
    """Read and validate an opportunity snapshot from a JSON file."""
    try:
        data = json.load(source)
    except ValueError as e:
        raise click.BadParameter(f"Invalid JSON: {e}", param_hint="PATH")
    try:
        return OpportunitySnapshot.model_validate(data)
    except ValidationError as e:
        raise click.BadParameter(f"Invalid opportunity snapshot:\n{e}", param_hint="PATH")


def build_scorer(manager: HealthConfigManager) -> DealHealthScorer:
    try:
        model = manager.build_checklist_model()
    except (ValueError, KeyError, TypeError) as e:
        raise click.UsageError(f"Invalid checklist configuration in {manager.config_path}: {e}")
    return DealHealthScorer(checklist_model=model)


def render_health(health: DealHealth, manager: HealthConfigManager, current_probability: float):
    level = manager.get_level(health.score)
    color = TONE_COLORS[level.tone]
    delta = health.probability_delta
    delta_style = "red" if requires_justification(delta, manager.config.justification_threshold) else "dim"

    last_activity = (
        "No data" if health.last_interaction_days is None
        else f"{health.last_interaction_days} days ago"
    )
    stage_age = "No data" if health.stage_age_days is None else f"{health.stage_age_days} days"

    console.print(Panel.fit(
        f"[bold {color}]{health.score}[/bold {color}] [{color}]{level.label}[/{color}]\n\n"
        f"Recommended probability: [cyan]{health.recommended_probability}%[/cyan]\n"
        f"Current: {current_probability:g}% · [{delta_style}]{delta:+d}%[/{delta_style}]\n\n"
        f"[dim]Last activity: {last_activity} · Stage age: {stage_age} · "
        f"Open next steps: {health.open_task_count}[/dim]",
        title="Deal Health"
    ))

    breakdown = Table(title="Breakdown")
    breakdown.add_column("Factor")
    breakdown.add_column("Score", justify="right", style="bold")
    for name, value in health.breakdown.to_dict().items():
        breakdown.add_row(name.replace("_score", "").replace("_", " ").title(), str(value))
    console.print(breakdown)

    if not health.signals:
        console.print("[green]No major risks[/green]")
        return

    signals = Table(title=f"Signals ({len(health.signals)})")
    signals.add_column("Severity", justify="center")
    signals.add_column("Signal", style="cyan")
    signals.add_column("ID", style="dim")
    for signal in health.signals:
        style = SEVERITY_COLORS[signal.severity]
        signals.add_row(f"[{style}]{signal.severity.value}[/{style}]", signal.label, signal.id)
    console.print(signals)


@click.group()
@click.version_option(version=__version__, prog_name="dealhealth")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def cli(verbose: bool):
    """Deal Health - opportunity health scoring and probability recommendations.

    \b
    Quick Start:
      dealhealth score opportunity.json             # Score a snapshot
      dealhealth score opportunity.json --json      # Machine-readable output
      dealhealth checklist --stage PROPOSAL         # Show checklist weights
      dealhealth check-override opp.json -p 80      # Check a manual probability
    """
    if verbose:
        logging.basicConfig(level=logging.DEBUG)


@cli.command()
@click.argument("source", metavar="PATH", type=click.File("r"))
@click.option("--now", type=click.DateTime(formats=DATETIME_FORMATS), help="Score as of this date/time")
@click.option("--json", "as_json", is_flag=True, help="Print the result as JSON")
@click.option("--plain", is_flag=True, help="Print a plain-text summary")
@click.option("--config", "config_path", help="Custom config file path")
def score(source: IO, now: Optional[datetime], as_json: bool, plain: bool, config_path: Optional[str]):
    """Score an opportunity snapshot (JSON file, or - for stdin)."""
    manager = get_config(config_path)
    snapshot = load_snapshot(source)
    scorer = build_scorer(manager)

    health = scorer.compute_health(snapshot.to_input(), now=now)
    current = health.recommended_probability - health.probability_delta
    level = manager.get_level(health.score)

    if as_json:
        data = health.to_dict(level)
        data["requires_justification"] = requires_justification(
            health.probability_delta, manager.config.justification_threshold
        )
        click.echo(json.dumps(data, indent=2))
        return

    if plain:
        click.echo(scorer.explain_health(health, current, level=level))
        return

    render_health(health, manager, current)


@cli.command()
@click.option("--stage", "-s", type=click.Choice([s.value for s in Stage], case_sensitive=False),
              help="Only show one stage")
@click.option("--completed", "-c", multiple=True, help="Completed item id (repeatable)")
@click.option("--config", "config_path", help="Custom config file path")
def checklist(stage: Optional[str], completed: Tuple[str, ...], config_path: Optional[str]):
    """Show checklist items, weights and base probabilities per stage.

    \b
    Examples:
      dealhealth checklist
      dealhealth checklist -s PROPOSAL -c PROP_SENT -c BANT_BUDGET
    """
    model = build_scorer(get_config(config_path)).checklist_model
    stages = [Stage.coerce(stage)] if stage else STAGE_ORDER
    done_ids = set(completed)

    table = Table(title="Stage Checklists")
    table.add_column("Stage", style="cyan")
    table.add_column("Base", justify="right")
    table.add_column("", justify="center")
    table.add_column("Item ID", style="dim")
    table.add_column("Label")
    table.add_column("Weight", justify="right", style="bold")

    for current in stages:
        items = model.items_for_stage(current)
        base = f"{model.base_probability(current)}%"
        if not items:
            table.add_row(STAGE_LABELS[current], base, "", "-", "[dim](no checklist)[/dim]", "-")
            continue
        done, total = model.stage_progress(current, done_ids)
        for index, item in enumerate(items):
            table.add_row(
                f"{STAGE_LABELS[current]} ({done}/{total})" if index == 0 else "",
                base if index == 0 else "",
                "[green]✓[/green]" if item.id in done_ids else "",
                item.id,
                item.label,
                f"+{item.weight}",
            )

    console.print(table)

    unknown = sorted(i for i in done_ids if not model.has_item(i))
    if unknown:
        console.print(f"[yellow]Warning:[/yellow] unknown checklist items ignored: {', '.join(unknown)}")

    if stage and done_ids:
        probability = model.checklist_probability(stage, done_ids)
        console.print(f"Checklist probability for {STAGE_LABELS[Stage.coerce(stage)]}: "
                      f"[cyan]{probability}%[/cyan]")


@cli.command("check-override")
@click.argument("source", metavar="PATH", type=click.File("r"))
@click.option("--probability", "-p", type=click.FloatRange(0, 100), required=True,
              help="Probability the user wants to submit")
@click.option("--reason", "-r", default="", help="Justification for the override")
@click.option("--now", type=click.DateTime(formats=DATETIME_FORMATS), help="Score as of this date/time")
@click.option("--config", "config_path", help="Custom config file path")
def check_override(source: IO, probability: float, reason: str, now: Optional[datetime],
                   config_path: Optional[str]):
    """Check whether a manual probability needs a justification."""
    manager = get_config(config_path)
    snapshot = load_snapshot(source)
    health = build_scorer(manager).compute_health(snapshot.to_input(), now=now)

    try:
        cleaned = validate_probability_override(
            health, probability, reason, threshold=manager.config.justification_threshold
        )
    except ProbabilityReasonRequired as e:
        console.print(f"[red]✗ {e.code}[/red]: {e}")
        sys.exit(1)

    if cleaned:
        console.print(f"[green]✓ Override accepted[/green] ({probability:g}% vs recommended "
                      f"{health.recommended_probability}%): {cleaned}")
    else:
        console.print(f"[green]✓ No justification needed[/green] ({probability:g}% vs recommended "
                      f"{health.recommended_probability}%)")


# ============================================================================
# CONFIG COMMANDS
# ============================================================================

@cli.group()
def config():
    """View and change scoring configuration."""
    pass


@config.command("show")
@click.option("--config", "config_path", help="Custom config file path")
def config_show(config_path: Optional[str]):
    """Show the active configuration."""
    manager = get_config(config_path)
    cfg = manager.config

    output = (
        f"Location: [cyan]{manager.config_path}[/cyan]\n\n"
        f"Healthy at: [green]{cfg.healthy_threshold}+[/green]\n"
        f"Watch at: [yellow]{cfg.watch_threshold}+[/yellow]\n"
        f"Justification required at: [red]±{cfg.justification_threshold}[/red]"
    )
    if cfg.weight_overrides:
        output += "\n\n[bold]Weight overrides:[/bold]"
        for item_id, weight in sorted(cfg.weight_overrides.items()):
            output += f"\n  {item_id}: {weight}"
    if cfg.checklists or cfg.base_probabilities:
        output += "\n\n[dim]Custom checklists configured - run 'dealhealth checklist' to view[/dim]"

    console.print(Panel.fit(output, title="Deal Health Config"))


@config.command("set-thresholds")
@click.argument("healthy", type=int)
@click.argument("watch", type=int)
@click.option("--config", "config_path", help="Custom config file path")
def config_set_thresholds(healthy: int, watch: int, config_path: Optional[str]):
    """Set the Healthy and Watch score thresholds."""
    manager = get_config(config_path)
    try:
        manager.update_thresholds(healthy, watch)
    except ValueError as e:
        raise click.BadParameter(str(e))
    console.print(f"[green]✓ Thresholds updated[/green] (Healthy {healthy}+, Watch {watch}+)")


@config.command("set-justification")
@click.argument("threshold", type=int)
@click.option("--config", "config_path", help="Custom config file path")
def config_set_justification(threshold: int, config_path: Optional[str]):
    """Set the probability gap that requires a justification."""
    manager = get_config(config_path)
    try:
        manager.set_justification_threshold(threshold)
    except ValueError as e:
        raise click.BadParameter(str(e))
    console.print(f"[green]✓ Justification threshold set to ±{threshold}[/green]")


@config.command("set-weight")
@click.argument("item_id")
@click.argument("weight", type=int)
@click.option("--config", "config_path", help="Custom config file path")
def config_set_weight(item_id: str, weight: int, config_path: Optional[str]):
    """Override the weight of a checklist item."""
    manager = get_config(config_path)
    if not build_scorer(manager).checklist_model.has_item(item_id):
        raise click.BadParameter(f"Unknown checklist item: {item_id}", param_hint="ITEM_ID")
    manager.set_item_weight(item_id, weight)
    console.print(f"[green]✓ {item_id} weight set to {weight}[/green]")


if __name__ == "__main__":
    cli()
