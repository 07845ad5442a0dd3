"""Hook commands -- manage external hook scripts in the hook directory."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from tykctl.output import info, print_table, success, suggest, warning


hook_app = typer.Typer(no_args_is_help=True)

_DEFAULT_BODY = """#!/bin/sh
# tykctl hook: {name}
echo "tykctl: $TYKCTL_HOOK_EVENT $TYKCTL_HOOK_EXTENSION" >&2
"""


def _manager():
    from tykctl.hooks import HookManager

    return HookManager()


@hook_app.command("list")
def hook_list() -> None:
    """List external hooks in run order."""
    manager = _manager()
    hooks = manager.list_external()
    if not hooks:
        info(f"No hooks in {manager.hook_dir}.")
        suggest("Create one with: tykctl hook create before-install")
        return
    print_table(
        ["Name", "Enabled", "Path"],
        [[h.name, "yes" if h.enabled else "no", str(h.path)] for h in hooks],
        title="External hooks",
    )


@hook_app.command("create")
def hook_create(
    name: str = typer.Argument(help="Hook file name, e.g. before-install or after-run-notify."),
    source: Optional[Path] = typer.Option(
        None, "--from", help="Copy the hook body from this file."
    ),
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite an existing hook."),
) -> None:
    """Create an executable hook script.

    Example::

        tykctl hook create before-install-audit --from ./audit.sh
    """
    from tykctl.hooks import HookEvent

    if not any(name == e or name.startswith(f"{e}-") for e in HookEvent.ALL):
        warning(f"{name} does not match a built-in event; it only runs for custom events.")
    body = source.read_text(encoding="utf-8") if source else _DEFAULT_BODY.format(name=name)
    hook = _manager().create_external_hook(name, body, overwrite=force)
    success(f"Created hook {hook.path}")


@hook_app.command("delete")
def hook_delete(name: str = typer.Argument(help="Hook name.")) -> None:
    """Delete a hook script."""
    _manager().delete_external_hook(name)
    success(f"Deleted hook {name}")


@hook_app.command("enable")
def hook_enable(name: str = typer.Argument(help="Hook name.")) -> None:
    """Re-enable a disabled hook."""
    _manager().enable_external_hook(name)
    success(f"Enabled hook {name}")


@hook_app.command("disable")
def hook_disable(name: str = typer.Argument(help="Hook name.")) -> None:
    """Disable a hook without deleting it."""
    _manager().disable_external_hook(name)
    success(f"Disabled hook {name}")
