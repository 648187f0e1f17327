"""Tests for schedule construction and configuration loading."""

import json
from pathlib import Path

import pytest

from cronlock.distributed.lock import MemoryLocker
from cronlock.errors import ScheduleConfigError
from cronlock.jobs.models import Mode, OverlapPolicy, ScheduleConfig
from cronlock.jobs.options import (
    ScheduleConfigLoader,
    create_schedule,
    parse_config,
    resolve_handler,
)


class TestScheduleConfig:
    """Tests for ScheduleConfig parsing."""

    def test_defaults(self) -> None:
        config = ScheduleConfig()

        assert config.mode is Mode.STOPPED
        assert config.lock_prefix == ""
        assert config.lock_seconds == 0
        assert config.auto_release is False
        assert config.compete is False
        assert config.overlap is OverlapPolicy.ALLOW
        assert config.advisory_check is True

    def test_camel_case_keys(self) -> None:
        config = parse_config(
            "job",
            {
                "type": 3,
                "lockPrefix": "billing",
                "lockSeconds": 30,
                "autoUnlock": True,
                "compete": True,
                "spec": "@every 1m",
                "args": ["a", 1],
                "periodicHandler": "json:dumps",
            },
        )

        assert config.mode is Mode.ONCE_AND_PERIODIC
        assert config.lock_prefix == "billing"
        assert config.lock_seconds == 30
        assert config.auto_release is True
        assert config.args == ["a", 1]
        assert config.periodic_handler == "json:dumps"

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("periodic", Mode.PERIODIC),
            ("timing", Mode.PERIODIC),
            ("Once", Mode.ONCE),
            ("once_and_timing", Mode.ONCE_AND_PERIODIC),
            ("stop", Mode.STOPPED),
            ("2", Mode.PERIODIC),
            (1, Mode.ONCE),
        ],
    )
    def test_mode_values(self, value: object, expected: Mode) -> None:
        assert parse_config("job", {"mode": value}).mode is expected

    @pytest.mark.parametrize(
        "data",
        [
            {"mode": "sometimes"},
            {"mode": 7},
            {"lockSeconds": -1},
            {"overlap": "queue"},
            {"unknown": True},
        ],
    )
    def test_invalid_config(self, data: dict) -> None:
        with pytest.raises(ScheduleConfigError, match=r"schedule \[job\]"):
            parse_config("job", data)


class TestResolveHandler:
    """Tests for resolve_handler."""

    def test_resolves_function(self) -> None:
        assert resolve_handler("json:dumps") is json.dumps

    def test_resolves_nested_attribute(self) -> None:
        assert resolve_handler("json:JSONEncoder.encode") is json.JSONEncoder.encode

    @pytest.mark.parametrize(
        ("path", "message"),
        [
            ("json.dumps", "module:function"),
            (":dumps", "module:function"),
            ("json:", "module:function"),
            ("no_such_module_xyz:run", "Cannot import"),
            ("json:missing", "not found"),
            ("json:__doc__", "not callable"),
        ],
    )
    def test_invalid_paths(self, path: str, message: str) -> None:
        with pytest.raises(ScheduleConfigError, match=message):
            resolve_handler(path)


class TestCreateSchedule:
    """Tests for create_schedule."""

    def test_from_dict(self, locker: MemoryLocker) -> None:
        schedule = create_schedule(
            "job",
            {"type": 2, "spec": "*/5 * * * *", "compete": True, "periodicHandler": "json:dumps"},
            locker=locker,
            app_name="svc",
        )

        assert schedule.mode is Mode.PERIODIC
        assert schedule.periodic_handler is json.dumps
        assert schedule.lock_key == "svc.schedules.job.locker"

    def test_explicit_handler_wins(self) -> None:
        async def handler(schedule) -> None:
            pass

        schedule = create_schedule(
            "job",
            ScheduleConfig(mode=Mode.ONCE, once_handler="json:dumps"),
            once_handler=handler,
        )

        assert schedule.once_handler is handler

    def test_validates(self) -> None:
        with pytest.raises(ScheduleConfigError, match="requires a spec"):
            create_schedule("job", {"mode": "periodic"})

        with pytest.raises(ScheduleConfigError, match="no locker"):
            create_schedule("job", {"compete": True})


class TestScheduleConfigLoader:
    """Tests for ScheduleConfigLoader."""

    def test_load_from_file(self, tmp_path: Path) -> None:
        path = tmp_path / "schedules.json"
        path.write_text(
            json.dumps(
                {
                    "schedules": {
                        "cleanup": {"type": 2, "spec": "0 2 * * *", "autoUnlock": True},
                        "warmup": {"mode": "once"},
                    }
                }
            )
        )

        configs = ScheduleConfigLoader.load_from_file(path)

        assert set(configs) == {"cleanup", "warmup"}
        assert configs["cleanup"].auto_release is True
        assert configs["warmup"].mode is Mode.ONCE

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            ScheduleConfigLoader.load_from_file(tmp_path / "missing.json")

    def test_invalid_json(self, tmp_path: Path) -> None:
        path = tmp_path / "schedules.json"
        path.write_text("{not json")

        with pytest.raises(ScheduleConfigError, match="Invalid JSON"):
            ScheduleConfigLoader.load_from_file(path)

    @pytest.mark.parametrize(
        ("data", "message"),
        [
            ([], "JSON object"),
            ({}, "'schedules' key"),
            ({"schedules": []}, "keyed by schedule name"),
            ({"schedules": {"job": 5}}, "must be an object"),
            ({"schedules": {"job": {"mode": "sometimes"}}}, r"schedule \[job\]"),
        ],
    )
    def test_invalid_structure(self, data: object, message: str) -> None:
        with pytest.raises(ScheduleConfigError, match=message):
            ScheduleConfigLoader.load_from_dict(data)
