"""Shared fixtures: a fake sysfs battery tree and a recording systemctl runner."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

import pytest

import utils
from errors import ServiceError

if TYPE_CHECKING:
    from pathlib import Path


class FakeRunner:
    """Stands in for utils.execute_command; records every call."""

    def __init__(self, fail_on: str | None = None) -> None:
        self.calls: list[list[str]] = []
        self.fail_on = fail_on

    def __call__(self, args: list[str], timeout: int = 10) -> str:
        self.calls.append(list(args))
        if self.fail_on is not None and self.fail_on in args:
            raise ServiceError(f"'{' '.join(args)}' failed with status 1: boom")
        return ""


@pytest.fixture()
def battery_dir(tmp_path: Path) -> Path:
    bat = tmp_path / "power_supply" / "BAT0"
    bat.mkdir(parents=True)
    (bat / "charge_control_end_threshold").write_text("80\n")
    (bat / "capacity").write_text("57\n")
    (bat / "status").write_text("Discharging\n")
    (bat / "model_name").write_text("5B10W13975\n")
    return bat


@pytest.fixture()
def config(tmp_path: Path, battery_dir: Path) -> dict[str, Any]:
    unit_dir = tmp_path / "systemd"
    unit_dir.mkdir()
    cfg = dict(utils.DEFAULT_CONFIG)
    cfg.update(
        power_supply_dir=str(battery_dir.parent),
        unit_dir=str(unit_dir),
        log_dir=str(tmp_path / "logs"),
    )
    return cfg


@pytest.fixture()
def config_file(tmp_path: Path, config: dict[str, Any]) -> Path:
    path = tmp_path / "config.json"
    path.write_text(json.dumps(config))
    return path


@pytest.fixture()
def fake_runner(monkeypatch: pytest.MonkeyPatch) -> FakeRunner:
    runner = FakeRunner()
    monkeypatch.setattr("persistence.execute_command", runner)
    return runner


@pytest.fixture(autouse=True)
def _reset_logging() -> Any:
    yield
    root = logging.getLogger()
    for handler in utils._log_handlers:
        root.removeHandler(handler)
        handler.close()
    utils._log_handlers.clear()
