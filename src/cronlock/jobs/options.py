"""Schedule construction and configuration loading.

Builds validated ``Schedule`` instances from code or from JSON files.

Expected JSON structure:
{
    "schedules": {
        "cleanup": {
            "type": 2,
            "spec": "0 2 * * *",
            "compete": true,
            "autoUnlock": true,
            "lockSeconds": 60,
            "args": {"days": 30},
            "periodicHandler": "myapp.tasks:cleanup"
        }
    }
}
"""

from __future__ import annotations

import importlib
import json
import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from cronlock.distributed.lock import Locker
from cronlock.errors import ScheduleConfigError
from cronlock.jobs.models import ScheduleConfig
from cronlock.jobs.schedule import EngineFactory, Handler, Schedule

logger = logging.getLogger(__name__)


def create_schedule(
    name: str,
    config: ScheduleConfig | dict[str, Any] | None = None,
    *,
    locker: Locker | None = None,
    once_handler: Handler | None = None,
    periodic_handler: Handler | None = None,
    app_name: str | None = None,
    engine_factory: EngineFactory | None = None,
) -> Schedule:
    """Factory function to create a validated schedule.

    Handlers given here take precedence over import paths in the config.

    Args:
        name: Schedule name
        config: Schedule configuration (model or raw dict)
        locker: Lock backend, required for competing schedules
        once_handler: Handler for the one-shot run
        periodic_handler: Handler for periodic runs
        app_name: Default lock prefix
        engine_factory: Builds the trigger engine

    Returns:
        Validated schedule, ready to serve

    Raises:
        ScheduleConfigError: If the configuration is invalid
    """
    if isinstance(config, dict):
        config = parse_config(name, config)
    config = config or ScheduleConfig()

    if once_handler is None and config.once_handler:
        once_handler = resolve_handler(config.once_handler)
    if periodic_handler is None and config.periodic_handler:
        periodic_handler = resolve_handler(config.periodic_handler)

    schedule = Schedule(
        name,
        config,
        locker=locker,
        once_handler=once_handler,
        periodic_handler=periodic_handler,
        app_name=app_name,
        engine_factory=engine_factory,
    )
    schedule.validate()
    return schedule


def parse_config(name: str, data: dict[str, Any]) -> ScheduleConfig:
    """Validate a raw configuration dictionary."""
    try:
        return ScheduleConfig.model_validate(data)
    except ValidationError as e:
        raise ScheduleConfigError(f"Invalid configuration for schedule [{name}]: {e}") from e


def resolve_handler(path: str) -> Handler:
    """Import a handler from a ``package.module:function`` path.

    Raises:
        ScheduleConfigError: If the path cannot be imported or is not callable
    """
    module_name, sep, attr_path = path.partition(":")
    if not sep or not module_name or not attr_path:
        raise ScheduleConfigError(f"Handler path must look like 'module:function', got {path!r}")

    try:
        target: Any = importlib.import_module(module_name)
    except ImportError as e:
        raise ScheduleConfigError(f"Cannot import handler module {module_name!r}: {e}") from e

    for attr in attr_path.split("."):
        try:
            target = getattr(target, attr)
        except AttributeError as e:
            raise ScheduleConfigError(f"Handler {path!r} not found") from e

    if not callable(target):
        raise ScheduleConfigError(f"Handler {path!r} is not callable")
    return target  # type: ignore[no-any-return]


class ScheduleConfigLoader:
    """Loads schedule configurations from JSON files."""

    @staticmethod
    def load_from_file(file_path: str | Path) -> dict[str, ScheduleConfig]:
        """Load schedule configurations from a JSON file.

        Raises:
            FileNotFoundError: If file does not exist
            ScheduleConfigError: If configuration is invalid
        """
        path = Path(file_path)

        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {file_path}")

        logger.info(f"Loading schedules from {file_path}")

        try:
            with path.open("r") as f:
                config_data = json.load(f)
        except json.JSONDecodeError as e:
            raise ScheduleConfigError(f"Invalid JSON in {file_path}: {e}") from e

        return ScheduleConfigLoader.load_from_dict(config_data)

    @staticmethod
    def load_from_dict(config_data: Any) -> dict[str, ScheduleConfig]:
        """Load schedule configurations from a dictionary.

        Raises:
            ScheduleConfigError: If configuration is invalid
        """
        if not isinstance(config_data, dict):
            raise ScheduleConfigError("Configuration must be a JSON object")

        if "schedules" not in config_data:
            raise ScheduleConfigError("Configuration must contain 'schedules' key")

        schedules = config_data["schedules"]
        if not isinstance(schedules, dict):
            raise ScheduleConfigError("'schedules' must be an object keyed by schedule name")

        configs: dict[str, ScheduleConfig] = {}
        for name, raw in schedules.items():
            if not isinstance(raw, dict):
                raise ScheduleConfigError(f"Schedule [{name}] must be an object")
            configs[name] = parse_config(name, raw)

        logger.info(f"Loaded {len(configs)} schedule configuration(s)")
        return configs
