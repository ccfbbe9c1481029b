#!/usr/bin/env python3
"""
Command line front end for WayPoint.

Usage:
    wp search "query"          - Rank tracked folders for a query
    wp visit PATH              - Record a visit to a folder
    wp favorite PATH           - Toggle favorite
    wp rename PATH ALIAS       - Set a display name
    wp exclude PATH            - Stop tracking a folder
    wp unexclude PATH          - Allow a folder to be tracked again
    wp analyze PATH            - Show tags, status and actions for a folder
    wp insights                - Jump statistics
    wp rules                   - List detection, action and predictor rules
    wp import-autojump         - Merge an autojump database
"""

import asyncio
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from ..app import WayPoint
from ..config import Config
from ..core.models import AnalysisResult, SourceType
from ..core.predictor import StaticForegroundApp
from ..core.ranking import RankingResult, View
from ..insights import compute_insights
from ..logging_setup import configure_logging

console = Console()


def _open(ctx: click.Context, app_id: Optional[str] = None) -> WayPoint:
    config: Config = ctx.obj["config"]
    foreground = StaticForegroundApp(app_id) if app_id else None
    waypoint = WayPoint(config, foreground=foreground)
    waypoint.store.load()
    return waypoint


def _resolve(path: str) -> str:
    return str(Path(path).expanduser().resolve())


@click.group()
@click.option("--config", "-c", "config_path", type=click.Path(exists=True, path_type=Path), help="Config file path")
@click.option("--data-dir", type=click.Path(file_okay=False, path_type=Path), help="Override the data directory")
@click.option("--verbose", "-v", is_flag=True, help="Debug logging")
@click.pass_context
def cli(ctx, config_path: Optional[Path], data_dir: Optional[Path], verbose: bool):
    """WayPoint - ranked folder launcher."""
    ctx.ensure_object(dict)
    try:
        config = Config.load(config_path)
    except Exception as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        sys.exit(1)
    if data_dir is not None:
        config = config.model_copy(update={"data_dir": data_dir})
    configure_logging(config.logging, verbose=verbose)
    ctx.obj["config"] = config


@cli.command()
@click.argument("query", required=False, default="")
@click.option("--view", "-w", type=click.Choice([v.value for v in View]), default=View.ALL.value)
@click.option("--limit", "-l", type=int, help="Max results")
@click.option("--app", "app_id", help="Treat this application id as the foreground app")
@click.pass_context
def search(ctx, query: str, view: str, limit: Optional[int], app_id: Optional[str]):
    """Rank tracked folders for QUERY (empty lists by frecency)."""
    waypoint = _open(ctx, app_id)
    result = waypoint.search(query, View(view))
    display_results(result, limit)


def display_results(result: RankingResult, limit: Optional[int] = None):
    """Display ranked records in a table."""
    if not result.ranked:
        console.print("[yellow]No results found[/yellow]")
        return

    ranked = result.ranked[:limit] if limit else result.ranked
    table = Table(title=f"Results ({len(result)})")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Alias", style="cyan", no_wrap=True)
    table.add_column("Path", no_wrap=False)
    table.add_column("Tags", style="magenta")
    table.add_column("Score", justify="right")
    table.add_column("Match", justify="right")

    for i, entry in enumerate(ranked):
        record = entry.record
        alias = f"★ {record.alias}" if record.is_favorite else record.alias
        table.add_row(
            str(i + 1),
            alias,
            record.path,
            ", ".join(record.tags),
            f"{entry.score:.2f}",
            "" if entry.match_score is None else str(entry.match_score)
        )

    console.print(table)


@cli.command()
@click.argument("path", type=click.Path(exists=True, file_okay=False))
@click.option("--action", "-a", "action_type", default="Finder", help="Action type recorded in history")
@click.option("--source", type=click.Choice([s.value for s in SourceType]), default=SourceType.MANUAL.value)
@click.pass_context
def visit(ctx, path: str, action_type: str, source: str):
    """Record a visit to PATH."""
    waypoint = _open(ctx)
    record = waypoint.store.visit(_resolve(path), action_type=action_type, source=SourceType(source))
    if record is None:
        console.print(f"[yellow]Not tracked (excluded or not a directory):[/yellow] {path}")
        return
    asyncio.run(waypoint.analyze_now(record.path))
    console.print(f"[green]✓[/green] {record.alias} ({record.visit_count} visits)")


@cli.command()
@click.argument("path")
@click.pass_context
def favorite(ctx, path: str):
    """Toggle favorite status of PATH."""
    waypoint = _open(ctx)
    record = waypoint.store.get(_resolve(path))
    if record is None:
        console.print(f"[red]Unknown path:[/red] {path}")
        sys.exit(1)
    state = waypoint.store.toggle_favorite(record.id)
    console.print(f"[green]✓[/green] {record.alias} {'is now' if state else 'is no longer'} a favorite")


@cli.command()
@click.argument("path")
@click.argument("alias")
@click.pass_context
def rename(ctx, path: str, alias: str):
    """Set the display name of PATH."""
    waypoint = _open(ctx)
    record = waypoint.store.get(_resolve(path))
    if record is None or not waypoint.store.rename(record.id, alias):
        console.print(f"[red]Could not rename:[/red] {path}")
        sys.exit(1)
    console.print(f"[green]✓[/green] Renamed to {alias.strip()}")


@cli.command()
@click.argument("path")
@click.pass_context
def exclude(ctx, path: str):
    """Stop tracking PATH."""
    waypoint = _open(ctx)
    removed = waypoint.store.exclude(_resolve(path))
    console.print(f"[green]✓[/green] Excluded {path} ({removed} record(s) removed)")


@cli.command()
@click.argument("path")
@click.pass_context
def unexclude(ctx, path: str):
    """Allow PATH to be tracked again."""
    waypoint = _open(ctx)
    if waypoint.store.unexclude(_resolve(path)):
        console.print(f"[green]✓[/green] {path} can be tracked again")
    else:
        console.print(f"[yellow]{path} was not excluded[/yellow]")


@cli.command()
@click.argument("path", type=click.Path(exists=True, file_okay=False))
@click.pass_context
def analyze(ctx, path: str):
    """Show tags, technology, status and actions for PATH."""
    waypoint = _open(ctx)
    result = asyncio.run(waypoint.analyze_now(_resolve(path)))
    display_analysis(_resolve(path), result)


def display_analysis(path: str, result: AnalysisResult):
    console.print(f"[bold]{path}[/bold]")
    console.print(f"  Technology: {result.technology or '-'}")
    console.print(f"  Tags: {', '.join(result.tags) or '-'}")
    console.print(f"  Status: {result.status_summary or '-'}")
    if result.actions:
        console.print("\n[bold]Quick Actions:[/bold]")
        for i, action in enumerate(result.actions, 1):
            console.print(f"  {i}. {action.label} [dim]({action.type.value}: {action.target})[/dim]")


@cli.command()
@click.pass_context
def insights(ctx):
    """Jump statistics."""
    waypoint = _open(ctx)
    stats = compute_insights(waypoint.store.history())

    console.print(f"Today: {stats.today_count}")
    console.print(f"Last 7 days: {stats.weekly_count}")
    console.print(f"Total: {stats.total_count}")
    console.print(f"Top destination: {stats.top_path or '-'}")
    console.print(f"Time saved: {stats.time_saved_seconds // 60} min")
    console.print(f"Trend: {' '.join(str(n) for n in stats.weekly_trend)}")

    if stats.action_distribution:
        console.print("\n[bold]Top Actions:[/bold]")
        for name, count in stats.action_distribution:
            console.print(f"  • {name}: {count}")


@cli.command()
@click.pass_context
def rules(ctx):
    """List detection, action and predictor rules."""
    waypoint = _open(ctx)

    table = Table(title="Detection Rules")
    table.add_column("Name", style="cyan")
    table.add_column("Triggers")
    table.add_column("Status Command", style="dim")
    table.add_column("Enabled")
    for rule in waypoint.rules.detection_rules(include_disabled=True):
        table.add_row(rule.name, rule.trigger_files, rule.status_command or "", "yes" if rule.enabled else "no")
    console.print(table)

    table = Table(title="Action Rules")
    table.add_column("Name", style="cyan")
    table.add_column("Triggers")
    table.add_column("Kind", style="magenta")
    table.add_column("Command", style="dim")
    table.add_column("Enabled")
    for rule in waypoint.rules.action_rules(include_disabled=True):
        table.add_row(rule.name, rule.trigger_files, rule.action_type.value, rule.command, "yes" if rule.enabled else "no")
    console.print(table)

    table = Table(title="Predictor Rules")
    table.add_column("Application", style="cyan")
    table.add_column("Tags")
    table.add_column("Boost", justify="right")
    table.add_column("Enabled")
    for rule in waypoint.rules.predictor_rules(include_disabled=True):
        table.add_row(rule.app_id, ", ".join(rule.target_tags), str(rule.boost), "yes" if rule.enabled else "no")
    console.print(table)


@cli.command(name="import-autojump")
@click.option("--file", "-f", "files", multiple=True, type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_context
def import_autojump(ctx, files):
    """Merge autojump databases into the store."""
    waypoint = _open(ctx)
    changes = waypoint.store.import_autojump(list(files) if files else None)
    console.print(f"[green]✓[/green] {changes} entries imported")


def main():
    """Entry point for the CLI."""
    cli(obj={})


if __name__ == "__main__":
    main()
