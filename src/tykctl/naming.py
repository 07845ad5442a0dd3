"""The ``tykctl-<extension>-<name>`` file-name contract.

Plugins are not listed in any registry: a file is a plugin of extension
``E`` exactly when its name starts with ``tykctl-E-``. Extensions
themselves ship a single binary named ``tykctl-<name>``.

Example::

    >>> plugin_file_name("widgets", "deploy")
    'tykctl-widgets-deploy'
    >>> plugin_name_from_file("widgets", "tykctl-widgets-deploy")
    'deploy'
    >>> plugin_name_from_file("widgets", "tykctl-other-tool") is None
    True
"""

from __future__ import annotations

from typing import Optional

from tykctl.exceptions import InvalidUsageError

BINARY_PREFIX = "tykctl-"

_WINDOWS_SUFFIXES = (".exe", ".bat", ".cmd", ".ps1", ".com")


def validate_name(name: str, kind: str = "name") -> str:
    """Reject names that would escape the target directory or break the prefix contract."""
    if not name or name in (".", "..") or "/" in name or "\\" in name:
        raise InvalidUsageError(f"Invalid {kind}: {name!r}")
    return name


def plugin_prefix(extension: str) -> str:
    """Return ``"tykctl-<extension>-"``."""
    return f"{BINARY_PREFIX}{extension}-"


def plugin_file_name(extension: str, name: str) -> str:
    """Return the executable file name for plugin *name* of *extension*."""
    return f"{plugin_prefix(extension)}{name}"


def strip_platform_suffix(file_name: str) -> str:
    """Drop a trailing Windows executable/script suffix, if any."""
    lowered = file_name.lower()
    for suffix in _WINDOWS_SUFFIXES:
        if lowered.endswith(suffix):
            return file_name[: -len(suffix)]
    return file_name


def plugin_name_from_file(
    extension: str, file_name: str, strip_suffix: bool = False
) -> Optional[str]:
    """Return the plugin name encoded in *file_name*, or ``None`` if it is not a plugin of *extension*.

    With *strip_suffix* (used on Windows) a trailing ``.exe``/``.bat``/...
    is removed, so ``tykctl-widgets-deploy.exe`` yields ``deploy``.
    """
    prefix = plugin_prefix(extension)
    if not file_name.startswith(prefix):
        return None
    name = file_name[len(prefix):]
    if strip_suffix:
        name = strip_platform_suffix(name)
    return name or None


def extension_binary_name(name: str) -> str:
    """Return ``"tykctl-<name>"``."""
    return f"{BINARY_PREFIX}{name}"


def extension_name_from_binary(file_name: str, strip_suffix: bool = False) -> Optional[str]:
    """Inverse of :func:`extension_binary_name`; ``None`` when the prefix is missing."""
    if not file_name.startswith(BINARY_PREFIX):
        return None
    name = file_name[len(BINARY_PREFIX):]
    if strip_suffix:
        name = strip_platform_suffix(name)
    return name or None


def env_token(extension: str) -> str:
    """Return the upper-cased form of *extension* used inside environment variable names.

    ``"widgets"`` -> ``"WIDGETS"``; dashes become underscores so
    ``"api-gw"`` yields ``TYKCTL_API_GW_PLUGIN_TIMEOUT``.
    """
    return extension.upper().replace("-", "_")
