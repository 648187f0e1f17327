"""CLI command for validating schedule configuration files.

Usage:
    cronlock validate schedules.json
    cronlock validate --format json schedules.json
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import TypedDict

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from cronlock.errors import CronlockError
from cronlock.jobs.cron import next_runs
from cronlock.jobs.options import ScheduleConfigLoader, resolve_handler
from cronlock.jobs.schedule import Schedule


class ValidationResult(TypedDict):
    name: str
    valid: bool
    mode: str
    lock_key: str
    next_runs: list[str]
    errors: list[str]


app = typer.Typer(help="Validate a schedules file")


@app.callback(invoke_without_command=True)
def validate(
    path: Path = typer.Argument(..., help="Path to the schedules JSON file"),
    app_name: str = typer.Option(None, "--app-name", help="Default lock prefix"),
    check_handlers: bool = typer.Option(
        True,
        "--check-handlers/--no-check-handlers",
        help="Import handler paths referenced by the file",
    ),
    output_format: str = typer.Option(
        "text",
        "--format",
        "-f",
        help="Output format: text, json",
    ),
) -> None:
    """Validate every schedule in a configuration file.

    Checks names, specs and handler paths, and shows each schedule's lock
    key and next fire times.
    """
    console = Console()

    try:
        configs = ScheduleConfigLoader.load_from_file(path)
    except (FileNotFoundError, CronlockError) as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(code=1) from e

    results: list[ValidationResult] = []
    for name, config in configs.items():
        schedule = Schedule(name, config, app_name=app_name)
        result: ValidationResult = {
            "name": name,
            "valid": True,
            "mode": config.mode.name,
            "lock_key": schedule.lock_key,
            "next_runs": [],
            "errors": [],
        }

        try:
            # The file carries no locker; only structural checks apply here
            schedule.validate(require_locker=False)
            if config.spec.strip():
                result["next_runs"] = [run.isoformat() for run in next_runs(config.spec, 3)]
        except CronlockError as e:
            result["errors"].append(str(e))

        if check_handlers:
            for handler_path in (config.once_handler, config.periodic_handler):
                if handler_path:
                    try:
                        resolve_handler(handler_path)
                    except CronlockError as e:
                        result["errors"].append(str(e))

        result["valid"] = not result["errors"]
        results.append(result)

    failed = sum(1 for r in results if not r["valid"])

    if output_format == "json":
        typer.echo(json.dumps(results, indent=2))
    else:
        table = Table(title=f"Schedules in {path}")
        table.add_column("Name")
        table.add_column("Mode")
        table.add_column("Lock key")
        table.add_column("Next run")
        table.add_column("Status")
        for r in results:
            if r["valid"]:
                status = "[green]ok[/green]"
            else:
                status = f"[red]{escape('; '.join(r['errors']))}[/red]"
            table.add_row(
                r["name"],
                r["mode"],
                r["lock_key"],
                r["next_runs"][0] if r["next_runs"] else "-",
                status,
            )
        console.print(table)
        console.print(f"[bold]Summary:[/bold] {len(results) - failed} valid, {failed} invalid")

    if failed > 0:
        raise typer.Exit(code=1)
