"""Configuration management with XDG paths, atomic writes, and execution settings.

This module handles all persistent and environment-derived configuration for
tykctl:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.tykctl/`` on macOS and Windows. See :func:`get_config_dir`,
  :func:`get_data_dir`, :func:`get_extension_config_dir`,
  :func:`get_extension_plugin_dir`, :func:`get_hook_dir`,
  :func:`get_extensions_dir`.
* **Durations** -- :func:`parse_duration` accepts the Go-style duration
  strings used by the ``*_PLUGIN_TIMEOUT`` variables (``30s``, ``1m30s``).
* **Execution settings** -- :func:`load_execution_config` reads the
  environment exactly once and returns an
  :class:`~tykctl.models.ExecutionConfig` that the plugin engine consumes,
  so timeout resolution and environment injection never touch
  ``os.environ`` directly.

All file writes use an atomic temp-file-then-rename strategy
(:func:`atomic_write`) so a crash never leaves a half-written registry.
"""

from __future__ import annotations

import logging
import os
import platform
import re
import tempfile
from pathlib import Path
from typing import Mapping, Optional

from pydantic import ValidationError

from tykctl.exceptions import ConfigError
from tykctl.models import ExecutionConfig
from tykctl.naming import env_token

logger = logging.getLogger(__name__)

_APP_NAME = "tykctl"


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform supports XDG Base Directory spec (Linux/FreeBSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _fallback_base_dir() -> Path:
    """Fallback base directory for non-XDG platforms (macOS, Windows)."""
    return Path.home() / f".{_APP_NAME}"


def _xdg_base(env_var: str, default_segments: tuple[str, ...]) -> Path:
    """Resolve an XDG base directory from an env var with fallback segments under $HOME."""
    env_value = os.environ.get(env_var, "")
    if env_value:
        return Path(env_value)
    base = Path.home()
    for seg in default_segments:
        base = base / seg
    return base


def get_config_dir() -> Path:
    """Return the global configuration directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CONFIG_HOME/tykctl/`` (default ``~/.config/tykctl/``).
    On macOS/Windows: ``~/.tykctl/``.

    Returns:
        Absolute path to the configuration directory (guaranteed to exist).
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CONFIG_HOME", (".config",)) / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the data directory (extension binaries, plugins, crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/tykctl/`` (default ``~/.local/share/tykctl/``).
    On macOS/Windows: ``~/.tykctl/data/``.

    Returns:
        Absolute path to the data directory (guaranteed to exist).
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_DATA_HOME", (".local", "share")) / _APP_NAME
    else:
        path = _fallback_base_dir() / "data"
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_extension_config_dir(extension: str) -> Path:
    """Return ``<config_dir>/<extension>/``, home of that extension's ``extensions.yaml``."""
    return get_config_dir() / extension


def get_extension_plugin_dir(extension: str) -> Path:
    """Return ``<data_dir>/<extension>/plugins/``, the default plugin install target."""
    return get_data_dir() / extension / "plugins"


def get_hook_dir() -> Path:
    """Return ``<config_dir>/hooks/``, where external hook scripts live."""
    return get_config_dir() / "hooks"


def get_extensions_dir() -> Path:
    """Return ``<data_dir>/extensions/``, holding one ``tykctl-<name>/`` directory per extension."""
    return get_data_dir() / "extensions"


def get_legacy_extensions_dir() -> Path:
    """Return ``<config_dir>/extensions/``, the pre-XDG-data extension location."""
    return get_config_dir() / "extensions"


# --- Atomic file writes ---


def atomic_write(path: Path, data: str, mode: int = 0o644) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file is created in the same directory as *path* so that
    ``os.replace`` is an atomic rename on POSIX systems. On any failure the
    temp file is cleaned up and *path* is left untouched.

    Args:
        path: Destination file.
        data: Text content.
        mode: Permission bits applied to the file before it is renamed.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd = None
    tmp_path: Optional[str] = None
    try:
        fd = tempfile.NamedTemporaryFile(
            mode="w",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        )
        tmp_path = fd.name
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None
        os.chmod(tmp_path, mode)
        os.replace(tmp_path, path)
    except BaseException:
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


# --- Durations ---

_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "μs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}

_DURATION_PART = re.compile(r"(\d+\.?\d*|\.\d+)(ns|us|µs|μs|ms|s|m|h)")


def parse_duration(text: str) -> float:
    """Parse a Go duration string into seconds.

    Accepts a sequence of decimal numbers each followed by a unit
    (``ns``, ``us``, ``ms``, ``s``, ``m``, ``h``), e.g. ``"300ms"``,
    ``"1.5h"`` or ``"2h45m"``. A bare ``"0"`` is zero.

    Args:
        text: The duration string.

    Returns:
        The duration in seconds.

    Raises:
        ValueError: If *text* is empty, negative, or not a valid duration.
    """
    value = text.strip()
    if value.startswith("+"):
        value = value[1:]
    if value == "0":
        return 0.0
    if not value or value.startswith("-"):
        raise ValueError(f"invalid duration: {text!r}")

    total = 0.0
    pos = 0
    while pos < len(value):
        match = _DURATION_PART.match(value, pos)
        if match is None:
            raise ValueError(f"invalid duration: {text!r}")
        number, unit = match.groups()
        total += float(number) * _DURATION_UNITS[unit]
        pos = match.end()
    return total


def format_duration(seconds: float) -> str:
    """Render seconds the way :func:`parse_duration` reads them (``"30s"``, ``"250ms"``, ``"1m30s"``)."""
    if seconds < 1:
        return f"{seconds * 1000:g}ms"
    minutes, secs = divmod(seconds, 60)
    if minutes < 1:
        return f"{secs:g}s"
    hours, minutes = divmod(int(minutes), 60)
    text = f"{hours}h" if hours else ""
    if minutes or (hours and secs):
        text += f"{minutes}m"
    if secs:
        text += f"{secs:g}s"
    return text


def _env_timeout(environ: Mapping[str, str], key: str) -> Optional[float]:
    """Read a duration variable, logging and ignoring malformed values."""
    raw = environ.get(key, "")
    if not raw:
        return None
    try:
        return parse_duration(raw)
    except ValueError:
        logger.warning("Ignoring invalid duration in %s: %r", key, raw)
        return None


# --- Execution settings ---


def default_discovery_paths(
    extension: str, environ: Optional[Mapping[str, str]] = None
) -> list[Path]:
    """Return the ordered plugin discovery path list for *extension*.

    Order (first wins when the caller picks a single match):
        1. ``TYKCTL_<EXT>_PLUGIN_DIR``
        2. ``TYKCTL_<EXT>_PLUGIN_DATA_DIR``
        3. ``<data_dir>/<ext>/plugins``
        4. ``~/.tykctl/<ext>/plugins``
        5. ``/usr/local/lib/tykctl/<ext>/plugins`` and ``/usr/lib/tykctl/<ext>/plugins``
        6. ``./plugins``

    Directories are not required to exist; discovery skips missing ones.
    """
    env = os.environ if environ is None else environ
    upper = env_token(extension)
    paths: list[Path] = []
    for key in (f"TYKCTL_{upper}_PLUGIN_DIR", f"TYKCTL_{upper}_PLUGIN_DATA_DIR"):
        if env.get(key):
            paths.append(Path(env[key]))
    paths.append(get_extension_plugin_dir(extension))
    paths.append(Path.home() / f".{_APP_NAME}" / extension / "plugins")
    paths.append(Path("/usr/local/lib") / _APP_NAME / extension / "plugins")
    paths.append(Path("/usr/lib") / _APP_NAME / extension / "plugins")
    paths.append(Path("plugins"))

    unique: list[Path] = []
    for path in paths:
        if path not in unique:
            unique.append(path)
    return unique


def load_execution_config(
    extension: str,
    environ: Optional[Mapping[str, str]] = None,
    default_timeout: float = 0.0,
) -> ExecutionConfig:
    """Build an :class:`~tykctl.models.ExecutionConfig` from the environment.

    This is the only place the plugin subsystem reads environment
    variables. Tests pass an explicit *environ* mapping instead of
    mutating the process environment.

    Args:
        extension: Extension whose plugins will be run.
        environ: Environment to read; defaults to ``os.environ``.
        default_timeout: Compiled-in timeout in seconds (``0`` = unbounded).

    Returns:
        The populated execution configuration.

    Raises:
        ConfigError: If the resulting settings fail validation.
    """
    env = os.environ if environ is None else environ
    upper = env_token(extension)
    try:
        return ExecutionConfig(
            extension=extension,
            default_timeout=default_timeout,
            extension_timeout=_env_timeout(env, f"TYKCTL_{upper}_PLUGIN_TIMEOUT"),
            global_timeout=_env_timeout(env, "TYKCTL_PLUGIN_TIMEOUT"),
            config_dir=get_extension_config_dir(extension),
            plugin_dir=Path(env.get(f"TYKCTL_{upper}_PLUGIN_DIR") or get_extension_plugin_dir(extension)),
            global_config_dir=get_config_dir(),
            discovery_paths=default_discovery_paths(extension, env),
            context=env.get("TYKCTL_CONTEXT") or None,
            debug=env.get("TYKCTL_DEBUG") or None,
            verbose=env.get("TYKCTL_VERBOSE") or None,
            api_url=env.get(f"TYK_{upper}_URL") or None,
            api_token=env.get(f"TYK_{upper}_TOKEN") or None,
        )
    except ValidationError as exc:
        raise ConfigError(f"Invalid execution settings for {extension}: {exc}") from exc
