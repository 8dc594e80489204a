import click
from flask.cli import with_appcontext

from leaderboard_cycles.services.cycle_service import get_cycle_stats
from leaderboard_cycles.services.sweep_service import run_sweep


@click.group("cycles")
def cycles_cli():
    """Leaderboard cycle maintenance."""


@cycles_cli.command("sweep")
@with_appcontext
def sweep_command():
    """
    Activate due cycles, complete ended ones and top up auto-generated cycles.
    Run this periodically (cron job or scheduler).

    Usage: flask cycles sweep
    """
    result = run_sweep()
    click.echo(
        f"Activated: {result['activated']}  Completed: {result['completed']}  "
        f"Created: {result['created']}  Failed: {result['failed']}"
    )
    if result["failed"]:
        raise SystemExit(1)


@cycles_cli.command("stats")
@with_appcontext
def stats_command():
    """Print cycle counts by status and the active cycles."""
    stats = get_cycle_stats()
    for status, count in sorted(stats["status_counts"].items()):
        click.echo(f"{status:<10} {count}")
    for cycle in stats["active_cycles"]:
        click.echo(
            f"- {cycle['name']} ({cycle['id']}): {cycle['participant_count']} participant(s), "
            f"{cycle['remaining_days']} day(s) left"
        )
