"""CLI command for previewing schedule fire times.

Usage:
    cronlock next "*/5 * * * *"
    cronlock next --count 10 "@every 90s"
    cronlock next --tz Europe/Berlin "0 0 9 * * 1-5"
"""

from __future__ import annotations

from datetime import datetime
from zoneinfo import ZoneInfo

import typer
from rich.console import Console
from rich.markup import escape

from cronlock.config import settings
from cronlock.errors import InvalidScheduleSpec
from cronlock.jobs.cron import next_runs

app = typer.Typer(help="Preview the fire times of a schedule spec")


@app.callback(invoke_without_command=True)
def next_fire_times(
    spec: str = typer.Argument(..., help="Cron expression, descriptor or '@every <duration>'"),
    count: int = typer.Option(5, "--count", "-n", min=1, help="Number of fire times to show"),
    tz: str = typer.Option(settings.timezone, "--tz", help="Timezone used to evaluate the spec"),
) -> None:
    """Print the next fire times of a schedule spec."""
    console = Console()

    try:
        runs = next_runs(spec, count, after=datetime.now(ZoneInfo(tz)))
    except InvalidScheduleSpec as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(code=1) from e

    for run in runs:
        console.print(run.isoformat())
