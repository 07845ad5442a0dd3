"""Tests for tykctl.extensions.registry -- the extensions.yaml store."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import pytest
import yaml

from tykctl.exceptions import RegistryError
from tykctl.extensions import ExtensionRegistry
from tykctl.models import Installed


def _record(name: str, version: str = "1.0.0") -> Installed:
    return Installed(
        name=name,
        version=version,
        repository=f"https://github.com/acme/{name}",
        installed_at=datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc),
        path=f"/data/extensions/tykctl-{name}/tykctl-{name}",
    )


@pytest.fixture
def registry(tmp_path: Path) -> ExtensionRegistry:
    return ExtensionRegistry(tmp_path)


class TestLoad:
    def test_missing_file_is_empty(self, registry: ExtensionRegistry) -> None:
        assert registry.load() == {}
        assert registry.names() == []

    def test_empty_file_is_empty(self, registry: ExtensionRegistry) -> None:
        registry.path.write_text("")
        assert registry.load() == {}

    def test_invalid_yaml(self, registry: ExtensionRegistry) -> None:
        registry.path.write_text("widgets: [unclosed\n")
        with pytest.raises(RegistryError, match="Failed to parse"):
            registry.load()

    def test_not_a_mapping(self, registry: ExtensionRegistry) -> None:
        registry.path.write_text("- widgets\n- gadgets\n")
        with pytest.raises(RegistryError, match="expected a mapping"):
            registry.load()

    def test_invalid_record(self, registry: ExtensionRegistry) -> None:
        registry.path.write_text("widgets:\n  name: widgets\n")
        with pytest.raises(RegistryError, match="Invalid registry"):
            registry.load()


class TestSave:
    def test_put_writes_yaml_keyed_by_name(self, registry: ExtensionRegistry) -> None:
        registry.put(_record("widgets"))
        raw = yaml.safe_load(registry.path.read_text())
        assert list(raw) == ["widgets"]
        assert raw["widgets"]["version"] == "1.0.0"
        assert raw["widgets"]["repository"] == "https://github.com/acme/widgets"

    def test_put_overwrites(self, registry: ExtensionRegistry) -> None:
        registry.put(_record("widgets"))
        registry.put(_record("widgets", version="2.0.0"))
        assert registry.get("widgets").version == "2.0.0"
        assert registry.names() == ["widgets"]

    def test_sorted_by_name(self, registry: ExtensionRegistry) -> None:
        registry.put(_record("zeta"))
        registry.put(_record("alpha"))
        raw = yaml.safe_load(registry.path.read_text())
        assert list(raw) == ["alpha", "zeta"]

    def test_reload_preserves_fields(self, registry: ExtensionRegistry) -> None:
        record = _record("widgets")
        registry.put(record)
        assert ExtensionRegistry(registry.config_dir).get("widgets") == record

    def test_delete(self, registry: ExtensionRegistry) -> None:
        registry.put(_record("widgets"))
        assert registry.delete("widgets") is True
        assert registry.delete("widgets") is False
        assert registry.load() == {}
