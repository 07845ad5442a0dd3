"""Tests for tykctl.plugins.wrapper -- generated dispatcher and template scripts."""

from __future__ import annotations

from pathlib import Path

import pytest

from tykctl.plugins.wrapper import (
    PosixScriptGenerator,
    WindowsScriptGenerator,
    _title,
    get_generator,
)


class TestGetGenerator:
    def test_explicit_choice(self) -> None:
        assert isinstance(get_generator(windows=True), WindowsScriptGenerator)
        assert isinstance(get_generator(windows=False), PosixScriptGenerator)

    def test_follows_platform(self, monkeypatch) -> None:
        monkeypatch.setattr("tykctl.plugins.wrapper.is_windows", lambda: True)
        assert get_generator().suffix == ".bat"


class TestPosixWrapper:
    def test_dispatch_structure(self) -> None:
        script = PosixScriptGenerator().wrapper(Path("/opt/bundle"), ["a", "b"])
        assert script.startswith("#!/usr/bin/env bash\n")
        assert "PLUGIN_DIR=/opt/bundle" in script
        assert 'COMMAND="${1:-help}"' in script
        assert '    b)\n        exec "$PLUGIN_DIR/"b ${1+"$@"}' in script
        assert "exit 1" in script

    def test_paths_with_spaces_are_quoted(self) -> None:
        script = PosixScriptGenerator().wrapper(Path("/opt/my bundle"), ["a"])
        assert "PLUGIN_DIR='/opt/my bundle'" in script

    def test_executable_names_are_quoted(self) -> None:
        script = PosixScriptGenerator().wrapper(Path("/opt/bundle"), ["run it"])
        assert "    'run it')\n" in script
        assert "echo '  - run it'" in script

    def test_single_trailing_newline(self) -> None:
        script = PosixScriptGenerator().wrapper(Path("/opt/bundle"), ["a"])
        assert script.endswith("esac\n")
        assert "\n\n\n" not in script


class TestWindowsWrapper:
    def test_dispatch_structure(self) -> None:
        script = WindowsScriptGenerator().wrapper(Path("C:/bundle"), ["a.exe", "b.exe"])
        assert script.startswith("@echo off")
        assert 'if "%COMMAND%"=="b.exe" (' in script
        assert '"%PLUGIN_DIR%\\b.exe" !ARGS!' in script
        assert "exit /b !ERRORLEVEL!" in script
        assert "exit /b 1" in script


class TestTemplates:
    @pytest.mark.parametrize("generator", [PosixScriptGenerator(), WindowsScriptGenerator()])
    def test_template_mentions_subcommands(self, generator) -> None:
        script = generator.template("log-shipper", "widgets")
        for word in ("version", "info", "help", "1.0.0"):
            assert word in script
        assert "Description: Log-Shipper plugin for tykctl-widgets" in script

    def test_title(self) -> None:
        assert _title("log-shipper") == "Log-Shipper"
        assert _title("deploy") == "Deploy"
