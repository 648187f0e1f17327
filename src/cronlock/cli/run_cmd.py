"""CLI command for serving schedules from a configuration file.

Usage:
    cronlock run schedules.json
    cronlock run --app-name billing --log-level debug schedules.json
    cronlock run --memory-lock schedules.json
    cronlock run --metrics-port 9100 schedules.json
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import typer

from cronlock.config import settings

app = typer.Typer(help="Serve every schedule in a configuration file")


@app.callback(invoke_without_command=True)
def run(
    path: Path = typer.Argument(None, help="Path to the schedules JSON file"),
    app_name: str = typer.Option(None, "--app-name", help="Default lock prefix"),
    memory_lock: bool = typer.Option(
        False,
        "--memory-lock",
        help="Use an in-process lock instead of Redis (single instance only)",
    ),
    drain_timeout: float = typer.Option(
        30.0,
        "--drain-timeout",
        help="Seconds to wait for in-flight runs on shutdown",
    ),
    log_level: str = typer.Option(settings.log_level, "--log-level", "-l", help="Log level"),
    json_logs: bool = typer.Option(settings.log_json, "--json-logs/--console-logs"),
    metrics_port: int = typer.Option(
        settings.metrics_port,
        "--metrics-port",
        help="Serve Prometheus metrics on this port (needs ENABLE_METRICS)",
    ),
) -> None:
    """Serve schedules until SIGINT or SIGTERM.

    Competing schedules coordinate through the Redis instance configured by
    REDIS_URL.
    """
    from cronlock.distributed.lock import Locker, MemoryLocker, RedisLocker
    from cronlock.distributed.redis import close_redis
    from cronlock.errors import CronlockError
    from cronlock.jobs.options import ScheduleConfigLoader
    from cronlock.jobs.scheduler import Scheduler
    from cronlock.observability.logging import configure_logging, instance_id_var
    from cronlock.observability.metrics import start_metrics_server

    configure_logging(json_format=json_logs, level=log_level)

    config_path = path or (Path(settings.schedules_file) if settings.schedules_file else None)
    if config_path is None:
        typer.echo("No schedules file given (argument or CRONLOCK_SCHEDULES_FILE)", err=True)
        raise typer.Exit(code=2)

    locker: Locker = MemoryLocker() if memory_lock else RedisLocker()

    try:
        configs = ScheduleConfigLoader.load_from_file(config_path)
        scheduler = Scheduler.from_configs(configs, locker=locker, app_name=app_name)
    except (FileNotFoundError, CronlockError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1) from e

    if metrics_port is not None:
        start_metrics_server(metrics_port)

    typer.echo(f"Starting {len(configs)} schedule(s) as instance {settings.instance_id}")

    async def _serve() -> None:
        instance_id_var.set(settings.instance_id)
        try:
            await scheduler.run(drain_timeout=drain_timeout)
        finally:
            await close_redis()

    try:
        asyncio.run(_serve())
    except CronlockError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1) from e
