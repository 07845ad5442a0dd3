"""Lifecycle hooks: builtin Python callables and git-style external scripts."""

from tykctl.hooks.base import (
    ExternalScriptHook,
    HookData,
    HookEvent,
    HookSource,
    InProcessHook,
)
from tykctl.hooks.external import ExternalHookStore
from tykctl.hooks.manager import HookManager

__all__ = [
    "ExternalHookStore",
    "ExternalScriptHook",
    "HookData",
    "HookEvent",
    "HookManager",
    "HookSource",
    "InProcessHook",
]
