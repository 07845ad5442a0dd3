"""Hook events, the per-firing payload, and the two kinds of hook source.

Every lifecycle point is identified by a plain string tag
(:class:`HookEvent` lists the ones tykctl fires itself; extensions may fire
any other tag). For each firing the dispatcher builds one
:class:`HookData` and hands the *same* instance to every hook, so a
builtin hook can enrich ``metadata`` for the hooks that run after it.

Both kinds of hook implement :class:`HookSource`:

* :class:`InProcessHook` -- a Python callable registered at runtime.
* :class:`ExternalScriptHook` -- an executable in the hook directory, run
  as a subprocess in the manner of git hooks.
"""

from __future__ import annotations

import logging
import os
import subprocess
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from tykctl.config import format_duration
from tykctl.exceptions import HookError
from tykctl.models import ExternalHook
from tykctl.platform import (
    build_command,
    exit_code_from_returncode,
    kill_process_tree,
    popen_kwargs,
)

logger = logging.getLogger(__name__)


class HookEvent:
    """Lifecycle events fired by the extension installer and runner."""

    BEFORE_INSTALL = "before-install"
    AFTER_INSTALL = "after-install"
    BEFORE_UNINSTALL = "before-uninstall"
    AFTER_UNINSTALL = "after-uninstall"
    BEFORE_RUN = "before-run"
    AFTER_RUN = "after-run"

    ALL = (
        BEFORE_INSTALL,
        AFTER_INSTALL,
        BEFORE_UNINSTALL,
        AFTER_UNINSTALL,
        BEFORE_RUN,
        AFTER_RUN,
    )


@dataclass
class HookData:
    """Payload shared by all hooks of a single firing.

    Attributes:
        extension_name: The extension the operation targets.
        extension_path: Path of the extension binary; empty before install.
        metadata: Free-form operation details (owner, version, args...).
            Scalar values are also exported to external hooks as
            ``TYKCTL_HOOK_<KEY>``.
        event: Set by the dispatcher to the event being fired.
    """

    extension_name: str
    extension_path: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)
    event: str = ""


BuiltinHook = Callable[[HookData], None]
"""Signature of an in-process hook. Raising any exception fails the hook."""


class HookSource(ABC):
    """Something the dispatcher can run for an event."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Identifier used in logs and error messages."""

    @property
    def enabled(self) -> bool:
        """Disabled sources stay registered but are skipped."""
        return True

    @abstractmethod
    def run(self, event: str, data: HookData) -> None:
        """Run the hook.

        Raises:
            HookError: If the hook fails.
        """


class InProcessHook(HookSource):
    """Wraps a :data:`BuiltinHook` callable."""

    def __init__(self, func: BuiltinHook, name: Optional[str] = None) -> None:
        self.func = func
        self._name = name or getattr(func, "__name__", repr(func))

    @property
    def name(self) -> str:
        return self._name

    def run(self, event: str, data: HookData) -> None:
        try:
            self.func(data)
        except Exception as exc:
            raise HookError(
                f"builtin hook {self.name} for {event} failed: {exc}",
                event=event,
                hook_name=self.name,
            ) from exc


def _metadata_env(metadata: dict[str, Any]) -> dict[str, str]:
    """Export scalar metadata as ``TYKCTL_HOOK_<KEY>`` variables; lists of scalars are space-joined."""
    env: dict[str, str] = {}
    for key, value in metadata.items():
        env_key = "TYKCTL_HOOK_" + "".join(c if c.isalnum() else "_" for c in str(key)).upper()
        if isinstance(value, (list, tuple)):
            if all(isinstance(v, (str, int, float, bool)) for v in value):
                env[env_key] = " ".join(str(v) for v in value)
        elif isinstance(value, (str, int, float, bool)):
            env[env_key] = str(value)
    return env


class ExternalScriptHook(HookSource):
    """Runs an :class:`~tykctl.models.ExternalHook` file as a subprocess.

    The child inherits stdin, stdout and stderr and the parent environment,
    plus ``TYKCTL_HOOK_EVENT``, ``TYKCTL_HOOK_EXTENSION``,
    ``TYKCTL_HOOK_PATH``, ``TYKCTL_HOOK_WORKING_DIR`` and the exported
    metadata.
    """

    def __init__(self, hook: ExternalHook) -> None:
        self.hook = hook

    @property
    def name(self) -> str:
        return self.hook.name

    @property
    def enabled(self) -> bool:
        return self.hook.enabled

    def environment(self, event: str, data: HookData) -> dict[str, str]:
        """Return the variables layered on top of the inherited environment."""
        env = _metadata_env(data.metadata)
        env.update(
            {
                "TYKCTL_HOOK_EVENT": event,
                "TYKCTL_HOOK_EXTENSION": data.extension_name,
                "TYKCTL_HOOK_PATH": data.extension_path,
                "TYKCTL_HOOK_WORKING_DIR": os.getcwd(),
            }
        )
        return env

    def run(self, event: str, data: HookData) -> None:
        timeout = self.hook.timeout
        isolate = timeout > 0
        logger.info("Executing external hook %s for %s", self.name, event)
        try:
            proc = subprocess.Popen(
                build_command(self.hook.path),
                env={**os.environ, **self.environment(event, data)},
                **popen_kwargs(isolate),
            )
        except OSError as exc:
            raise HookError(
                f"external hook {self.name} failed to start: {exc}",
                event=event,
                hook_name=self.name,
            ) from exc

        try:
            proc.wait(timeout=timeout or None)
        except subprocess.TimeoutExpired:
            kill_process_tree(proc, isolate)
            raise HookError(
                f"external hook {self.name} timed out after {format_duration(timeout)}",
                event=event,
                hook_name=self.name,
            ) from None
        except KeyboardInterrupt:
            kill_process_tree(proc, isolate)
            raise

        if proc.returncode != 0:
            code = exit_code_from_returncode(proc.returncode)
            raise HookError(
                f"external hook {self.name} exited with code {code}",
                event=event,
                hook_name=self.name,
            )
        logger.info("External hook %s completed", self.name)
