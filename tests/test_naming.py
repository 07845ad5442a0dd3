"""Tests for tykctl.naming -- the plugin and extension file-name contract."""

from __future__ import annotations

import pytest

from tykctl.exceptions import InvalidUsageError
from tykctl.naming import (
    env_token,
    extension_binary_name,
    extension_name_from_binary,
    plugin_file_name,
    plugin_name_from_file,
    plugin_prefix,
    strip_platform_suffix,
    validate_name,
)


class TestPluginNames:
    def test_prefix(self) -> None:
        assert plugin_prefix("widgets") == "tykctl-widgets-"

    def test_file_name(self) -> None:
        assert plugin_file_name("widgets", "deploy") == "tykctl-widgets-deploy"

    @pytest.mark.parametrize("name", ["deploy", "log-shipper", "a", "v2.sync"])
    def test_round_trip(self, name: str) -> None:
        assert plugin_name_from_file("widgets", plugin_file_name("widgets", name)) == name

    def test_other_extension_does_not_match(self) -> None:
        assert plugin_name_from_file("widgets", "tykctl-other-tool") is None

    def test_bare_prefix_is_not_a_plugin(self) -> None:
        assert plugin_name_from_file("widgets", "tykctl-widgets-") is None

    def test_suffix_kept_by_default(self) -> None:
        assert plugin_name_from_file("widgets", "tykctl-widgets-deploy.exe") == "deploy.exe"

    def test_suffix_stripped_on_request(self) -> None:
        assert (
            plugin_name_from_file("widgets", "tykctl-widgets-deploy.exe", strip_suffix=True)
            == "deploy"
        )

    def test_prefix_of_longer_extension_name(self) -> None:
        # "tykctl-widgets-pro-x" is plugin "pro-x" of "widgets" and plugin "x" of "widgets-pro"
        assert plugin_name_from_file("widgets", "tykctl-widgets-pro-x") == "pro-x"
        assert plugin_name_from_file("widgets-pro", "tykctl-widgets-pro-x") == "x"


class TestExtensionNames:
    def test_binary_name(self) -> None:
        assert extension_binary_name("widgets") == "tykctl-widgets"

    def test_inverse(self) -> None:
        assert extension_name_from_binary("tykctl-widgets") == "widgets"

    def test_inverse_rejects_unprefixed(self) -> None:
        assert extension_name_from_binary("widgets") is None
        assert extension_name_from_binary("tykctl-") is None

    def test_inverse_strips_suffix(self) -> None:
        assert extension_name_from_binary("tykctl-widgets.exe", strip_suffix=True) == "widgets"


class TestHelpers:
    @pytest.mark.parametrize(
        "file_name, expected",
        [
            ("tool.exe", "tool"),
            ("tool.BAT", "tool"),
            ("tool.cmd", "tool"),
            ("tool.ps1", "tool"),
            ("tool.sh", "tool.sh"),
            ("tool", "tool"),
        ],
    )
    def test_strip_platform_suffix(self, file_name: str, expected: str) -> None:
        assert strip_platform_suffix(file_name) == expected

    def test_env_token(self) -> None:
        assert env_token("widgets") == "WIDGETS"
        assert env_token("api-gw") == "API_GW"

    @pytest.mark.parametrize("bad", ["", ".", "..", "a/b", "a\\b"])
    def test_validate_name_rejects(self, bad: str) -> None:
        with pytest.raises(InvalidUsageError):
            validate_name(bad, "plugin name")

    def test_validate_name_returns_name(self) -> None:
        assert validate_name("deploy") == "deploy"
