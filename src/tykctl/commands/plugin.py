"""Plugin commands -- manage the ``tykctl-<extension>-<name>`` executables of an extension.

Every command takes ``--extension``/``-e`` (or ``TYKCTL_EXTENSION``) to
select whose plugins to act on.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from tykctl.output import info, print_table, success, suggest, warning


plugin_app = typer.Typer(no_args_is_help=True)

_EXTENSION = typer.Option(
    ..., "--extension", "-e", envvar="TYKCTL_EXTENSION", help="Extension that owns the plugins."
)
_DIR = typer.Option(
    None, "--dir", "-d", help="Plugin directory (defaults to the extension's plugin dir)."
)


def _manager(extension: str):
    from tykctl.plugins import PluginManager

    return PluginManager(extension)


@plugin_app.command("list")
def plugin_list(extension: str = _EXTENSION) -> None:
    """List discovered plugins in discovery-path order.

    Example::

        tykctl plugin list -e widgets
    """
    plugins = _manager(extension).discover()
    if not plugins:
        info(f"No plugins found for extension {extension}.")
        suggest(f"Create one with: tykctl plugin create <name> -e {extension}")
        return
    print_table(
        ["Name", "Path"],
        [[p.name, str(p.path)] for p in plugins],
        title=f"Plugins for {extension}",
    )


@plugin_app.command("install")
def plugin_install(
    source: Path = typer.Argument(help="Executable file or directory of executables."),
    extension: str = _EXTENSION,
    name: Optional[str] = typer.Option(None, "--name", "-n", help="Plugin name override."),
    plugin_dir: Optional[Path] = _DIR,
) -> None:
    """Install a plugin from a file or a directory.

    A directory with several executables gets a wrapper script that
    dispatches on its first argument.
    """
    from tykctl.exceptions import NotFoundError

    manager = _manager(extension)
    if source.is_dir():
        installed = manager.install_from_directory(source, plugin_dir, name)
    elif source.exists():
        installed = [manager.install_from_file(source, plugin_dir, name)]
    else:
        raise NotFoundError(f"No such file or directory: {source}")
    if not installed:
        warning("Nothing installed; every plugin in the directory already exists.")
        return
    for path in installed:
        success(f"Installed {path}")


@plugin_app.command("remove")
def plugin_remove(
    name: str = typer.Argument(help="Plugin name."),
    extension: str = _EXTENSION,
    plugin_dir: Optional[Path] = _DIR,
) -> None:
    """Delete an installed plugin."""
    path = _manager(extension).remove(name, plugin_dir)
    success(f"Removed {path}")


@plugin_app.command("create")
def plugin_create(
    name: str = typer.Argument(help="Plugin name."),
    extension: str = _EXTENSION,
    plugin_dir: Optional[Path] = _DIR,
) -> None:
    """Write a skeleton plugin script to start from."""
    path = _manager(extension).create_template(name, plugin_dir)
    success(f"Created {path}")
    suggest(f"Try it: tykctl plugin run {name} -e {extension} -- help")


@plugin_app.command(
    "run",
    context_settings={"allow_extra_args": True, "ignore_unknown_options": True},
)
def plugin_run(
    name: str = typer.Argument(help="Plugin name."),
    args: Optional[list[str]] = typer.Argument(None, help="Arguments passed to the plugin."),
    extension: str = _EXTENSION,
    timeout: Optional[str] = typer.Option(
        None, "--timeout", "-t", help="Deadline such as 30s or 2m; 0 disables it."
    ),
) -> None:
    """Run a plugin, forwarding all remaining arguments.

    Without ``--timeout`` the deadline comes from
    ``TYKCTL_<EXT>_PLUGIN_TIMEOUT`` or ``TYKCTL_PLUGIN_TIMEOUT``.
    """
    from tykctl.config import parse_duration
    from tykctl.exceptions import InvalidUsageError

    manager = _manager(extension)
    plugin = manager.find(name)
    if timeout is None:
        manager.execute(plugin.path, args or [])
        return
    try:
        seconds = parse_duration(timeout)
    except ValueError as exc:
        raise InvalidUsageError(str(exc)) from None
    manager.execute_with_timeout(plugin.path, args or [], seconds)
