"""Locate and execute installed extensions.

An extension ``widgets`` is resolved, first match wins, from:

1. ``<data_dir>/extensions/tykctl-widgets/tykctl-widgets``
2. ``<config_dir>/extensions/tykctl-widgets`` (legacy layout; either the
   binary itself or a directory containing it)
3. ``tykctl-widgets`` on ``PATH``

The child inherits stdin, the parent environment, ``TYK_CLI_CONFIG``
pointing at the extension config directory, and ``TYKCTL_DEBUG`` set to
``true`` or ``false``.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import time
from pathlib import Path
from typing import Optional, Sequence

from tykctl.config import get_extensions_dir, get_legacy_extensions_dir
from tykctl.exceptions import ExecutionError, HookError, NonZeroExitError, NotFoundError
from tykctl.hooks import HookData, HookEvent, HookManager
from tykctl.models import ExecutionResult
from tykctl.naming import extension_binary_name, extension_name_from_binary, validate_name
from tykctl.platform import (
    build_command,
    exit_code_from_returncode,
    is_executable,
    kill_process_tree,
)

logger = logging.getLogger(__name__)


class ExtensionRunner:
    """Runs extension binaries with before/after-run hooks.

    Args:
        config_dir: Extension config directory, exported as ``TYK_CLI_CONFIG``.
        hooks: Hook manager for ``before-run`` and ``after-run``.
        extensions_dir: Root of installed extension directories.
        legacy_dir: Pre-data-dir extension location.
        debug: Value forwarded as ``TYKCTL_DEBUG``. When omitted it is
            true only if the parent's ``TYKCTL_DEBUG`` is ``"true"``.
    """

    def __init__(
        self,
        config_dir: Path,
        hooks: Optional[HookManager] = None,
        extensions_dir: Optional[Path] = None,
        legacy_dir: Optional[Path] = None,
        debug: Optional[bool] = None,
    ) -> None:
        self.config_dir = Path(config_dir)
        self.hooks = hooks if hooks is not None else HookManager()
        self.extensions_dir = Path(extensions_dir) if extensions_dir else get_extensions_dir()
        self.legacy_dir = Path(legacy_dir) if legacy_dir else get_legacy_extensions_dir()
        self.debug = debug if debug is not None else os.environ.get("TYKCTL_DEBUG") == "true"

    # ------------------------------------------------------------------ #
    # Lookup
    # ------------------------------------------------------------------ #

    def find(self, name: str) -> Optional[Path]:
        """Return the binary for extension *name*, or ``None``."""
        binary = extension_binary_name(name)
        candidates = [
            self.extensions_dir / binary / binary,
            self.legacy_dir / binary / binary,
            self.legacy_dir / binary,
        ]
        for candidate in candidates:
            if candidate.is_file():
                return candidate
        found = shutil.which(binary)
        return Path(found) if found else None

    def is_available(self, name: str) -> bool:
        return self.find(name) is not None

    def list_available(self) -> list[str]:
        """Return the names of extensions installed in the data or legacy directory."""
        names: list[str] = []
        for root in (self.extensions_dir, self.legacy_dir):
            if not root.is_dir():
                continue
            for entry in sorted(root.iterdir()):
                name = extension_name_from_binary(entry.name)
                if name is None or name in names:
                    continue
                if entry.is_dir() or is_executable(entry):
                    names.append(name)
        return names

    # ------------------------------------------------------------------ #
    # Execution
    # ------------------------------------------------------------------ #

    def environment(self, env: Optional[dict[str, str]] = None) -> dict[str, str]:
        """Return the full child environment.

        Caller-supplied *env* overrides the inherited environment;
        ``TYKCTL_DEBUG`` always reflects :attr:`debug`.
        """
        merged = dict(os.environ)
        merged["TYK_CLI_CONFIG"] = str(self.config_dir)
        merged.update(env or {})
        merged["TYKCTL_DEBUG"] = "true" if self.debug else "false"
        return merged

    def run(
        self,
        name: str,
        args: Sequence[str] = (),
        env: Optional[dict[str, str]] = None,
    ) -> ExecutionResult:
        """Run extension *name* with inherited stdio.

        Raises:
            NotFoundError: If the extension cannot be located.
            HookError: If a ``before-run`` hook fails; the extension is not started.
            ExecutionError: If the binary cannot be started.
            NonZeroExitError: If the extension exits non-zero.
        """
        return self._run(name, args, env, capture_output=False)

    def run_with_output(
        self,
        name: str,
        args: Sequence[str] = (),
        env: Optional[dict[str, str]] = None,
    ) -> str:
        """Run extension *name* and return its captured stdout.

        On a non-zero exit the captured stderr is part of the raised
        :class:`~tykctl.exceptions.NonZeroExitError`.
        """
        return self._run(name, args, env, capture_output=True).stdout or ""

    def _run(
        self,
        name: str,
        args: Sequence[str],
        env: Optional[dict[str, str]],
        capture_output: bool,
    ) -> ExecutionResult:
        validate_name(name, "extension name")
        path = self.find(name)
        if path is None:
            raise NotFoundError(
                f"Extension '{name}' not found. Run 'tykctl extension list' to see available extensions."
            )
        args = list(args)

        try:
            self.hooks.execute(
                HookEvent.BEFORE_RUN,
                HookData(extension_name=name, extension_path=str(path), metadata={"args": args}),
            )
        except HookError as exc:
            raise HookError(
                f"before run hook failed: {exc}", event=HookEvent.BEFORE_RUN, hook_name=exc.hook_name
            ) from exc

        logger.info("Running extension %s (%s) with args %s", name, path, args)
        start = time.monotonic()
        try:
            proc = subprocess.Popen(
                build_command(path, args),
                env=self.environment(env),
                stdout=subprocess.PIPE if capture_output else None,
                stderr=subprocess.PIPE if capture_output else None,
                text=capture_output or None,
            )
        except OSError as exc:
            raise ExecutionError(f"Failed to run extension {name}: {exc}") from exc

        try:
            stdout, stderr = proc.communicate()
        except KeyboardInterrupt:
            kill_process_tree(proc, False)
            raise
        duration = time.monotonic() - start
        code = exit_code_from_returncode(proc.returncode)

        try:
            self.hooks.execute(
                HookEvent.AFTER_RUN,
                HookData(
                    extension_name=name,
                    extension_path=str(path),
                    metadata={"args": args, "exit_code": code, "duration": duration},
                ),
            )
        except HookError as exc:
            logger.error("after-run hook failed, continuing: %s", exc)

        if code != 0:
            logger.error("Extension %s exited with code %d", name, code)
            message = f"extension {name} failed with exit code {code}"
            if capture_output and stderr:
                message = f"{message}: {stderr.strip()}"
            raise NonZeroExitError(message, exit_code=code, stderr=stderr or "")

        logger.info("Extension %s completed in %.3fs", name, duration)
        return ExecutionResult(exit_code=0, stdout=stdout, duration=duration)
