"""Hook registration and dispatch.

:class:`HookManager` owns two kinds of hooks:

* **builtin** hooks, Python callables registered per event at runtime, and
* **external** hooks, executable files in the hook directory managed by an
  :class:`~tykctl.hooks.external.ExternalHookStore`.

For every firing :meth:`HookManager.sources_for` builds one ordered list
(builtins in registration order, then enabled external hooks in file-name
order) and :meth:`HookManager.execute` runs it, stopping at the first
failure.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from tykctl.config import get_hook_dir
from tykctl.exceptions import HookError
from tykctl.hooks.base import (
    BuiltinHook,
    ExternalScriptHook,
    HookData,
    HookSource,
    InProcessHook,
)
from tykctl.hooks.external import DEFAULT_HOOK_TIMEOUT, ExternalHookStore
from tykctl.models import ExternalHook

logger = logging.getLogger(__name__)


class HookManager:
    """Registers builtin hooks and dispatches events to all hook sources.

    Args:
        hook_dir: Directory of external hooks. Defaults to
            :func:`tykctl.config.get_hook_dir`.
        extension: Optional extension this manager fires hooks for; used
            as the default ``extension_name`` by :meth:`fire`.
        external_timeout: Per-hook timeout, in seconds, for external hooks.
    """

    def __init__(
        self,
        hook_dir: Optional[Path] = None,
        extension: Optional[str] = None,
        external_timeout: float = DEFAULT_HOOK_TIMEOUT,
    ) -> None:
        self.extension = extension
        self.store = ExternalHookStore(
            hook_dir if hook_dir is not None else get_hook_dir(),
            timeout=external_timeout,
        )
        self._builtin: dict[str, list[InProcessHook]] = {}

    @property
    def hook_dir(self) -> Path:
        return self.store.hook_dir

    # ------------------------------------------------------------------ #
    # Builtin hooks
    # ------------------------------------------------------------------ #

    def register_builtin(
        self, event: str, hook: BuiltinHook, name: Optional[str] = None
    ) -> None:
        """Append *hook* to the builtin list for *event*.

        Hooks for the same event run in registration order. Registering the
        same callable twice runs it twice.
        """
        source = InProcessHook(hook, name=name)
        self._builtin.setdefault(event, []).append(source)
        logger.debug("Registered builtin hook %s for %s", source.name, event)

    def unregister_builtin(self, event: str, hook: BuiltinHook) -> bool:
        """Remove the first registration of *hook* for *event*.

        Returns:
            True if a registration was removed.
        """
        sources = self._builtin.get(event, [])
        for i, source in enumerate(sources):
            if source.func is hook:
                del sources[i]
                if not sources:
                    del self._builtin[event]
                return True
        return False

    def list_builtin(self) -> dict[str, list[str]]:
        """Return the names of registered builtin hooks, keyed by event."""
        return {event: [s.name for s in sources] for event, sources in self._builtin.items()}

    def count_builtin(self) -> int:
        return sum(len(sources) for sources in self._builtin.values())

    def clear_builtin(self, event: Optional[str] = None) -> None:
        """Drop builtin hooks for *event*, or for every event when omitted."""
        if event is None:
            self._builtin.clear()
        else:
            self._builtin.pop(event, None)

    # ------------------------------------------------------------------ #
    # External hooks
    # ------------------------------------------------------------------ #

    def list_external(self) -> list[ExternalHook]:
        return self.store.list()

    def count_external(self) -> int:
        return len(self.store.list())

    def create_external_hook(
        self, name: str, content: str, overwrite: bool = False
    ) -> ExternalHook:
        return self.store.create(name, content, overwrite=overwrite)

    def delete_external_hook(self, name: str) -> None:
        self.store.delete(name)

    def enable_external_hook(self, name: str) -> ExternalHook:
        return self.store.enable(name)

    def disable_external_hook(self, name: str) -> ExternalHook:
        return self.store.disable(name)

    # ------------------------------------------------------------------ #
    # Dispatch
    # ------------------------------------------------------------------ #

    def sources_for(self, event: str) -> list[HookSource]:
        """Return the ordered hook sources that run for *event*."""
        sources: list[HookSource] = list(self._builtin.get(event, []))
        sources.extend(ExternalScriptHook(hook) for hook in self.store.for_event(event))
        return sources

    def execute(self, event: str, data: HookData) -> None:
        """Run every hook for *event* against *data*.

        ``data.event`` is set to *event* before the first hook runs. The
        first failing hook stops the chain.

        Raises:
            HookError: From the first hook that fails.
        """
        data.event = event
        sources = self.sources_for(event)
        if not sources:
            logger.debug("No hooks for %s", event)
            return
        logger.debug("Running %d hook(s) for %s", len(sources), event)
        for source in sources:
            if not source.enabled:
                continue
            try:
                source.run(event, data)
            except HookError as exc:
                logger.error("Hook %s failed for %s: %s", source.name, event, exc)
                raise

    def fire(
        self,
        event: str,
        extension_name: Optional[str] = None,
        extension_path: str = "",
        **metadata,
    ) -> HookData:
        """Build a fresh :class:`HookData` and :meth:`execute` it.

        Returns:
            The payload after all hooks ran, including any metadata the
            hooks added.
        """
        data = HookData(
            extension_name=extension_name or self.extension or "",
            extension_path=extension_path,
            metadata=dict(metadata),
        )
        self.execute(event, data)
        return data
