"""CLI commands for cronlock.

Provides command-line interface using Typer:
- cronlock validate: Validate a schedules file
- cronlock next: Preview the fire times of a schedule spec
- cronlock run: Serve every schedule in a file

Usage:
    cronlock --help
    cronlock validate schedules.json
    cronlock next --count 3 "*/5 * * * *"
    cronlock run schedules.json
"""

import typer

from cronlock.cli.next_cmd import app as next_app
from cronlock.cli.run_cmd import app as run_app
from cronlock.cli.validate_cmd import app as validate_app

# Main CLI application
app = typer.Typer(
    name="cronlock",
    help="cronlock: leader-gated one-shot and cron tasks",
    no_args_is_help=True,
)

app.add_typer(validate_app, name="validate")
app.add_typer(next_app, name="next")
app.add_typer(run_app, name="run")


@app.callback()
def callback() -> None:
    """cronlock: leader-gated one-shot and cron tasks."""
    pass


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
