"""Tests for the ready-made builtin hooks."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from tykctl.exceptions import HookError
from tykctl.hooks import HookData, HookManager
from tykctl.hooks.builtin import logging_hook, metrics_hook, timing_hook, validation_hook


@pytest.fixture
def hooks(tmp_path: Path) -> HookManager:
    return HookManager(hook_dir=tmp_path / "hooks")


def test_logging_hook(hooks: HookManager, caplog) -> None:
    caplog.set_level(logging.INFO, logger="tykctl")
    hooks.register_builtin("before-install", logging_hook())
    hooks.execute("before-install", HookData(extension_name="widgets", metadata={"owner": "acme"}))
    assert "before-install" in caplog.text
    assert "extension=widgets" in caplog.text
    assert "acme" in caplog.text


def test_timing_hook_records_duration(hooks: HookManager) -> None:
    def inner(data: HookData) -> None:
        data.metadata["inner"] = True

    hooks.register_builtin("before-run", timing_hook(inner))
    data = HookData(extension_name="widgets")
    hooks.execute("before-run", data)

    assert data.metadata["inner"] is True
    assert data.metadata["inner_duration"] >= 0


def test_timing_hook_propagates_failure(hooks: HookManager) -> None:
    def inner(data: HookData) -> None:
        raise ValueError("bad")

    hooks.register_builtin("before-run", timing_hook(inner))
    data = HookData(extension_name="widgets")
    with pytest.raises(HookError, match="bad"):
        hooks.execute("before-run", data)
    assert "inner_duration" in data.metadata


def test_validation_hook(hooks: HookManager) -> None:
    hooks.register_builtin(
        "before-install",
        validation_hook(lambda d: d.extension_name != "legacy", "legacy is retired"),
    )
    hooks.execute("before-install", HookData(extension_name="widgets"))
    with pytest.raises(HookError, match="legacy is retired"):
        hooks.execute("before-install", HookData(extension_name="legacy"))


def test_metrics_hook(hooks: HookManager) -> None:
    collected: list[tuple[str, dict]] = []
    hooks.register_builtin("after-run", metrics_hook(lambda event, fields: collected.append((event, fields))))
    hooks.execute("after-run", HookData(extension_name="widgets", metadata={"exit_code": 0}))

    [(event, fields)] = collected
    assert event == "after-run"
    assert fields["extension"] == "widgets"
    assert fields["exit_code"] == 0
    assert "timestamp" in fields
