"""File-backed hook storage, modelled on git's ``.git/hooks`` directory.

Each regular, non-hidden file in the hook directory is an external hook.
A hook runs for event ``E`` when its file name is ``E`` or starts with
``E-`` (``before-install``, ``before-install-02-notify``). Matching hooks
run in file-name order, so a numeric suffix controls ordering.

Disabling a hook creates an empty sidecar marker ``.<name>.disabled`` next
to it; the hook file itself is never touched until it is deleted.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from tykctl.exceptions import ConflictError, HookError, NotFoundError
from tykctl.models import ExternalHook
from tykctl.naming import strip_platform_suffix, validate_name
from tykctl.platform import is_executable, is_windows, write_executable

logger = logging.getLogger(__name__)

DEFAULT_HOOK_TIMEOUT = 30.0
"""Seconds an external hook may run before it is killed."""


class ExternalHookStore:
    """Lists, creates, toggles, and deletes the hook files in *hook_dir*.

    Args:
        hook_dir: Directory holding the hook files. It is created on first
            write; a missing directory simply lists as empty.
        timeout: Per-hook timeout in seconds applied to listed hooks.
    """

    def __init__(self, hook_dir: Path, timeout: float = DEFAULT_HOOK_TIMEOUT) -> None:
        self.hook_dir = Path(hook_dir)
        self.timeout = timeout

    def _marker(self, name: str) -> Path:
        return self.hook_dir / f".{name}.disabled"

    def _record(self, name: str) -> ExternalHook:
        return ExternalHook(
            name=name,
            path=self.hook_dir / name,
            enabled=not self._marker(name).exists(),
            timeout=self.timeout,
        )

    def list(self) -> list[ExternalHook]:
        """Return every hook file, sorted by name.

        Raises:
            HookError: If the directory exists but cannot be read.
        """
        if not self.hook_dir.is_dir():
            logger.debug("Hook directory %s does not exist", self.hook_dir)
            return []
        try:
            entries = sorted(os.scandir(self.hook_dir), key=lambda e: e.name)
        except OSError as exc:
            raise HookError(f"Failed to read hook directory {self.hook_dir}: {exc}") from exc
        return [
            self._record(entry.name)
            for entry in entries
            if not entry.name.startswith(".") and entry.is_file()
        ]

    def get(self, name: str) -> ExternalHook:
        """Return the hook called *name*.

        Raises:
            NotFoundError: If there is no such hook file.
        """
        validate_name(name, "hook name")
        if not (self.hook_dir / name).is_file():
            raise NotFoundError(f"External hook not found: {name}")
        return self._record(name)

    def for_event(self, event: str) -> list[ExternalHook]:
        """Return the enabled, executable hooks that run for *event*, in name order."""
        prefix = f"{event}-"
        matched: list[ExternalHook] = []
        for hook in self.list():
            stem = strip_platform_suffix(hook.name) if is_windows() else hook.name
            if stem != event and not stem.startswith(prefix):
                continue
            if not hook.enabled:
                logger.debug("External hook %s disabled, skipping", hook.name)
                continue
            if not is_executable(hook.path):
                logger.warning("External hook %s is not executable, skipping", hook.path)
                continue
            matched.append(hook)
        return matched

    def create(self, name: str, content: str, overwrite: bool = False) -> ExternalHook:
        """Write an executable hook file.

        Args:
            name: File name; conventionally the event tag, optionally with a
                ``-<suffix>``.
            content: Script body, including its shebang line.
            overwrite: Replace an existing hook instead of failing.

        Raises:
            ConflictError: If the hook exists and *overwrite* is false.
        """
        validate_name(name, "hook name")
        if name.startswith("."):
            raise HookError(f"Hook names may not start with '.': {name}")
        path = self.hook_dir / name
        if path.exists() and not overwrite:
            raise ConflictError(f"External hook already exists: {path}")
        self.hook_dir.mkdir(parents=True, exist_ok=True)
        write_executable(path, content)
        logger.info("External hook created: %s", name)
        return self._record(name)

    def delete(self, name: str) -> None:
        """Remove a hook file and its disabled marker.

        Raises:
            NotFoundError: If there is no such hook file.
        """
        hook = self.get(name)
        hook.path.unlink()
        self._marker(name).unlink(missing_ok=True)
        logger.info("External hook deleted: %s", name)

    def enable(self, name: str) -> ExternalHook:
        """Remove the disabled marker of *name*; a no-op when already enabled."""
        self.get(name)
        self._marker(name).unlink(missing_ok=True)
        logger.info("External hook enabled: %s", name)
        return self._record(name)

    def disable(self, name: str) -> ExternalHook:
        """Create the disabled marker of *name*; the hook file is kept."""
        self.get(name)
        self._marker(name).touch()
        logger.info("External hook disabled: %s", name)
        return self._record(name)
