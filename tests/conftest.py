"""Shared test fixtures for tykctl.

Provides isolated XDG directories, an executable-script factory for
subprocess tests, output-state management, and a Typer CLI runner.
These fixtures are discovered by pytest automatically.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Callable

import pytest

from tykctl.output import OutputFormat, OutputManager, reset_output, set_output


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager and the ``tykctl`` logger after every test.

    The OutputManager and the Rich log handler hold references to the
    streams that existed when they were created; CliRunner swaps those
    streams, so leftovers from one test would write to closed files in the
    next. The logger is also made to propagate again so ``caplog`` works.
    """
    yield
    reset_output()
    log = logging.getLogger("tykctl")
    for handler in list(log.handlers):
        log.removeHandler(handler)
    log.setLevel(logging.NOTSET)
    log.propagate = True


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Forces the XDG layout, points XDG_CONFIG_HOME and XDG_DATA_HOME at
    subdirectories of tmp_path, clears TYKCTL_* variables that would leak
    into plugin or hook environments, and changes the working directory
    to tmp_path.

    Returns:
        The tmp_path root directory.
    """
    monkeypatch.setattr("tykctl.config._is_xdg_platform", lambda: True)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    monkeypatch.setenv("HOME", str(tmp_path / "home"))

    for var in list(os.environ):
        if var.startswith(("TYKCTL_", "TYK_")):
            monkeypatch.delenv(var, raising=False)

    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Executable scripts
# ---------------------------------------------------------------------------


@pytest.fixture
def make_script() -> Callable[..., Path]:
    """Factory writing an executable ``/bin/sh`` script.

    Usage::

        path = make_script(tmp_path / "tykctl-widgets-deploy", 'echo "$@"')
    """

    def _make(path: Path, body: str = "exit 0", executable: bool = True) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(f"#!/bin/sh\n{body}\n", encoding="utf-8")
        path.chmod(0o755 if executable else 0o644)
        return path

    return _make


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a PLAIN-format, quiet OutputManager for the test."""
    output = OutputManager(format=OutputFormat.PLAIN, quiet=True)
    set_output(output)
    yield output
    reset_output()


@pytest.fixture
def json_output() -> OutputManager:
    """Install a JSON-format OutputManager for the test."""
    output = OutputManager(format=OutputFormat.JSON)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# CLI runner fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()
