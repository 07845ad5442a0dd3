"""The ``extensions.yaml`` registry of installed extensions.

The file is a YAML mapping keyed by extension name::

    widgets:
      name: widgets
      version: 1.0.0
      repository: https://github.com/acme/widgets
      installed_at: '2026-01-01T12:00:00+00:00'
      path: /home/me/.local/share/tykctl/extensions/tykctl-widgets/tykctl-widgets

It is the source of truth for what is installed. Every change is a full
load-modify-save cycle written with :func:`~tykctl.config.atomic_write`.
Concurrent tykctl processes are not locked against each other, so two
simultaneous installs may lose one update.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import yaml
from pydantic import ValidationError

from tykctl.config import atomic_write
from tykctl.exceptions import RegistryError
from tykctl.models import Installed

logger = logging.getLogger(__name__)

REGISTRY_FILE = "extensions.yaml"


class ExtensionRegistry:
    """Load and save :class:`~tykctl.models.Installed` records.

    Args:
        config_dir: Directory holding ``extensions.yaml``.
    """

    def __init__(self, config_dir: Path) -> None:
        self.config_dir = Path(config_dir)

    @property
    def path(self) -> Path:
        return self.config_dir / REGISTRY_FILE

    def load(self) -> dict[str, Installed]:
        """Read the registry; a missing or empty file is an empty registry.

        Raises:
            RegistryError: If the file cannot be read, is not valid YAML,
                or holds records that do not validate.
        """
        if not self.path.exists():
            return {}
        try:
            raw = yaml.safe_load(self.path.read_text(encoding="utf-8"))
        except OSError as exc:
            raise RegistryError(f"Failed to read {self.path}: {exc}") from exc
        except yaml.YAMLError as exc:
            raise RegistryError(f"Failed to parse {self.path}: {exc}") from exc

        if raw is None:
            return {}
        if not isinstance(raw, dict):
            raise RegistryError(
                f"Invalid registry {self.path}: expected a mapping, got {type(raw).__name__}"
            )
        try:
            return {str(name): Installed.model_validate(record) for name, record in raw.items()}
        except ValidationError as exc:
            raise RegistryError(f"Invalid registry {self.path}: {exc}") from exc

    def save(self, extensions: dict[str, Installed]) -> None:
        """Atomically replace the registry with *extensions*.

        Raises:
            RegistryError: If the file cannot be written.
        """
        data = {
            name: record.model_dump(mode="json")
            for name, record in sorted(extensions.items())
        }
        try:
            atomic_write(self.path, yaml.safe_dump(data, default_flow_style=False, sort_keys=False))
        except OSError as exc:
            raise RegistryError(f"Failed to write {self.path}: {exc}") from exc
        logger.debug("Saved %d extension record(s) to %s", len(data), self.path)

    def get(self, name: str) -> Optional[Installed]:
        return self.load().get(name)

    def put(self, record: Installed) -> None:
        """Insert or overwrite the record for ``record.name``."""
        extensions = self.load()
        extensions[record.name] = record
        self.save(extensions)

    def delete(self, name: str) -> bool:
        """Remove the record for *name*.

        Returns:
            True if a record was removed.
        """
        extensions = self.load()
        if extensions.pop(name, None) is None:
            return False
        self.save(extensions)
        return True

    def names(self) -> list[str]:
        return sorted(self.load())
