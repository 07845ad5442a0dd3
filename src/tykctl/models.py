"""Canonical Pydantic models shared across all tykctl modules.

This is the single source of truth for data shapes in the project. Every other
module imports from here rather than defining its own models. The models fall
into three groups:

**Persisted models** -- serialised as YAML in the extension config directory:
    :class:`Installed`.

**Discovery models** -- recomputed on every call, never persisted:
    :class:`Plugin`, :class:`ExternalHook`, :class:`ExtensionInfo`.

**Execution models** -- live only for the duration of one process launch:
    :class:`ExecutionConfig` and :class:`ExecutionResult`.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


# --- Plugins ---


class Plugin(BaseModel):
    """A discovered plugin executable.

    ``name`` is the file name with the ``tykctl-<extension>-`` prefix
    stripped. Instances are rebuilt on every discovery call.

    Example::

        Plugin(name="deploy", path=Path("/opt/p/tykctl-widgets-deploy"), extension="widgets")
    """

    model_config = ConfigDict(frozen=True)

    name: str
    path: Path
    extension: str


class ExecutionResult(BaseModel):
    """Outcome of a successful plugin or extension run.

    Failures are not represented here: they are raised as
    :class:`~tykctl.exceptions.PluginError` subclasses.
    """

    exit_code: int = 0
    stdout: Optional[str] = Field(
        default=None, description="Captured stdout; None when streams were inherited"
    )
    duration: float = Field(default=0.0, description="Wall-clock seconds")


class ExecutionConfig(BaseModel):
    """Explicit execution settings for one extension's plugins.

    Built once at startup by :func:`tykctl.config.load_execution_config`
    so the plugin engine never reads process-wide environment variables
    itself. Durations are in seconds; ``0`` means unbounded.
    """

    extension: str
    default_timeout: float = Field(default=0.0, ge=0)
    extension_timeout: Optional[float] = Field(
        default=None, ge=0, description="TYKCTL_<EXT>_PLUGIN_TIMEOUT"
    )
    global_timeout: Optional[float] = Field(
        default=None, ge=0, description="TYKCTL_PLUGIN_TIMEOUT"
    )
    config_dir: Path
    plugin_dir: Path
    global_config_dir: Path
    discovery_paths: list[Path] = Field(default_factory=list)
    context: Optional[str] = None
    debug: Optional[str] = None
    verbose: Optional[str] = None
    api_url: Optional[str] = None
    api_token: Optional[str] = None

    def resolve_timeout(self) -> float:
        """Return the effective timeout: extension override, then global, then default."""
        if self.extension_timeout is not None:
            return self.extension_timeout
        if self.global_timeout is not None:
            return self.global_timeout
        return self.default_timeout


# --- Hooks ---


class ExternalHook(BaseModel):
    """A file-backed executable hook living in the hook directory.

    ``enabled`` reflects the absence of a ``.<name>.disabled`` marker file;
    disabling a hook never deletes it.
    """

    name: str
    path: Path
    enabled: bool = True
    timeout: float = Field(default=30.0, ge=0, description="Seconds; 0 for no limit")


# --- Extensions ---


class Installed(BaseModel):
    """Registry record for one installed extension.

    Stored in ``extensions.yaml`` as a mapping keyed by extension name.
    Re-installing overwrites the record; removal deletes it.
    """

    name: str
    version: str
    repository: str
    installed_at: datetime
    path: str


class ExtensionInfo(BaseModel):
    """A search hit from the GitHub extension index."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    full_name: str = ""
    description: Optional[str] = None
    stars: int = Field(default=0, alias="stargazers_count")
    updated_at: Optional[datetime] = None
