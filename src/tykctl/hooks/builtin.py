"""Ready-made builtin hooks.

Each factory returns a callable suitable for
:meth:`~tykctl.hooks.manager.HookManager.register_builtin`::

    hooks.register_builtin(HookEvent.BEFORE_INSTALL, logging_hook())
    hooks.register_builtin(
        HookEvent.BEFORE_RUN,
        validation_hook(lambda d: d.extension_name != "legacy", "legacy is retired"),
    )
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Optional

from tykctl.hooks.base import BuiltinHook, HookData

logger = logging.getLogger(__name__)


def logging_hook(level: int = logging.INFO, log: Optional[logging.Logger] = None) -> BuiltinHook:
    """Log every firing with its extension and metadata."""
    target = log or logger

    def _log(data: HookData) -> None:
        target.log(
            level,
            "Hook %s: extension=%s path=%s metadata=%s",
            data.event,
            data.extension_name,
            data.extension_path or "-",
            data.metadata,
        )

    _log.__name__ = "logging_hook"
    return _log


def timing_hook(hook: BuiltinHook, log: Optional[logging.Logger] = None) -> BuiltinHook:
    """Wrap *hook*, logging how long it took and recording it in ``metadata``.

    The elapsed seconds are stored under ``metadata["<name>_duration"]`` so
    hooks later in the same firing can read it.
    """
    target = log or logger
    name = getattr(hook, "__name__", "hook")

    def _timed(data: HookData) -> None:
        start = time.monotonic()
        try:
            hook(data)
        finally:
            elapsed = time.monotonic() - start
            data.metadata[f"{name}_duration"] = elapsed
            target.info("Hook %s for %s took %.3fs", name, data.event, elapsed)

    _timed.__name__ = f"timing_hook({name})"
    return _timed


def validation_hook(
    predicate: Callable[[HookData], bool], message: str = "validation failed"
) -> BuiltinHook:
    """Fail the firing with *message* when *predicate* returns False.

    Registered on a ``before-*`` event this aborts the operation.
    """

    def _validate(data: HookData) -> None:
        if not predicate(data):
            raise ValueError(message)

    _validate.__name__ = "validation_hook"
    return _validate


def metrics_hook(collector: Callable[[str, dict[str, Any]], None]) -> BuiltinHook:
    """Report each firing to *collector* as ``(event, fields)``."""

    def _collect(data: HookData) -> None:
        collector(
            data.event,
            {
                "extension": data.extension_name,
                "path": data.extension_path,
                "timestamp": time.time(),
                **data.metadata,
            },
        )

    _collect.__name__ = "metrics_hook"
    return _collect
